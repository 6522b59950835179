"""
Daily analytics aggregation.

Fans one reporting call out per calendar day, keeps each day's outcome
(success, no-data or error) and merges the successful records by geo key.
"""

import asyncio
import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from connectors.linkedin_ads import GEO_PIVOT, DateWindow, LinkedInAdsConnector, TimeGranularity
from connectors.linkedin_models import (
    COUNTER_FIELDS,
    AnalyticsRecord,
    ApiModel,
    DateParts,
    DateRange,
    FetchStatus,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class DayResult(ApiModel):
    date: str
    records: list[AnalyticsRecord] = []
    status: FetchStatus
    error_message: Optional[str] = None


class AggregateReport(ApiModel):
    daily_results: list[DayResult]
    merged: list[AnalyticsRecord]


def enumerate_days(start_date: date, end_date: date) -> list[str]:
    """ISO dates from start to end, both included."""
    days = []
    current = start_date
    while current <= end_date:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


def sum_costs(costs: Iterable[str]) -> Decimal:
    """Exact decimal sum of costInLocalCurrency strings."""
    return sum((Decimal(cost) for cost in costs), Decimal("0"))


def format_cost(value: Decimal) -> str:
    """Render a cost with at least two fractional digits, never dropping precision."""
    if value.as_tuple().exponent > -2:
        value = value.quantize(CENT)
    return format(value, "f")


def format_cost_total(value: Decimal) -> str:
    """Render a cost rounded to cents, for report totals."""
    return format(value.quantize(CENT, rounding=ROUND_HALF_UP), "f")


def _widen(left: Optional[DateRange], right: Optional[DateRange]) -> Optional[DateRange]:
    if left is None or right is None:
        return left or right
    start = min(left.start.to_date(), right.start.to_date())
    end = max(left.end.to_date(), right.end.to_date())
    return DateRange(start=DateParts.from_date(start), end=DateParts.from_date(end))


def combine_records(existing: AnalyticsRecord, record: AnalyticsRecord) -> AnalyticsRecord:
    """New record holding the sum of two records for the same geo key."""
    update = {field: getattr(existing, field) + getattr(record, field) for field in COUNTER_FIELDS}
    update["cost_in_local_currency"] = format_cost(
        sum_costs([existing.cost_in_local_currency, record.cost_in_local_currency])
    )
    update["date_range"] = _widen(existing.date_range, record.date_range)
    # Reach is a unique-member count, summing it would overstate it
    update["approximate_member_reach"] = None
    return existing.model_copy(update=update)


def merge_records(records: Iterable[AnalyticsRecord]) -> list[AnalyticsRecord]:
    """
    Merge records into one record per geo key.

    A record listing several geo keys gives each key its own full copy of
    its metrics. Records without pivot values share the empty key.
    """
    merged: dict[str, AnalyticsRecord] = {}

    for record in records:
        for geo_key in record.pivot_values or [""]:
            existing = merged.get(geo_key)
            if existing is None:
                pivot_values = [geo_key] if geo_key else []
                merged[geo_key] = record.model_copy(update={"pivot_values": pivot_values})
            else:
                merged[geo_key] = combine_records(existing, record)

    return list(merged.values())


class DailyAggregator:
    """Runs one reporting call per day and merges the results."""

    def __init__(self, connector: LinkedInAdsConnector, pivot: Optional[str] = GEO_PIVOT):
        self.connector = connector
        self.pivot = pivot

    async def _fetch_day(self, client, campaign_id: str, day: str, access_token: str) -> DayResult:
        window = DateWindow.single_day(date.fromisoformat(day))
        result = await self.connector.fetch_window(
            campaign_id,
            window,
            access_token,
            granularity=TimeGranularity.DAILY,
            pivot=self.pivot,
            client=client,
        )
        return DayResult(
            date=day,
            records=result.records,
            status=result.status,
            error_message=result.error_message,
        )

    async def run(
        self,
        campaign_id: str,
        start_date: date,
        end_date: date,
        access_token: str,
    ) -> AggregateReport:
        days = enumerate_days(start_date, end_date)
        logger.info("Fetching daily data for %d days (%s..%s)", len(days), start_date, end_date)

        async with self.connector.client() as client:
            daily_results = await asyncio.gather(
                *(self._fetch_day(client, campaign_id, day, access_token) for day in days)
            )

        failed = [day.date for day in daily_results if day.status == FetchStatus.ERROR]
        if failed:
            logger.warning("Daily fetch failed for %d of %d days: %s", len(failed), len(days), failed)

        merged = merge_records(
            record
            for day in daily_results
            if day.status == FetchStatus.SUCCESS
            for record in day.records
        )
        return AggregateReport(daily_results=list(daily_results), merged=merged)
