"""
Query strategies for a campaign report.

The same campaign and date range are pulled four ways (whole range with
no pivot, whole range by geography, monthly by geography, and daily by
geography). Each strategy gets its own outcome so one failure does not
hide the others, and the totals are reconciled against the whole-range
figures.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

import httpx

from connectors.linkedin_ads import (
    GEO_PIVOT,
    DateWindow,
    LinkedInAdsConnector,
    LinkedInAPIError,
    TimeGranularity,
)
from connectors.linkedin_models import AnalyticsRecord, ApiModel, FetchStatus
from services.aggregation import AggregateReport, DailyAggregator, format_cost_total, sum_costs

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    OVERALL = "overall"
    GEOGRAPHIC = "geographic"
    MONTHLY = "monthly"
    DAILY = "daily"


# (granularity, pivot) for the single-call strategies
WINDOW_STRATEGIES = {
    Strategy.OVERALL: (TimeGranularity.ALL, None),
    Strategy.GEOGRAPHIC: (TimeGranularity.ALL, GEO_PIVOT),
    Strategy.MONTHLY: (TimeGranularity.MONTHLY, GEO_PIVOT),
}


class StrategyTotals(ApiModel):
    impressions: int
    clicks: int
    cost: str
    company_page_clicks: int = 0
    engagement: int = 0
    ctr: float = 0.0  # percent
    cpm: str = "0.00"


class StrategyOutcome(ApiModel):
    strategy: Strategy
    ok: bool
    records: list[AnalyticsRecord] = []
    daily: Optional[AggregateReport] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    totals: Optional[StrategyTotals] = None
    failed_days: list[str] = []

    @property
    def partial(self) -> bool:
        return bool(self.failed_days)


class Discrepancy(ApiModel):
    strategy: Strategy
    impressions: int
    clicks: int
    cost: str
    company_page_clicks: int
    engagement: int
    # None when the strategy is missing data from failed calls
    matches: Optional[bool]
    partial: bool = False


class DashboardReport(ApiModel):
    campaign_id: str
    start_date: date
    end_date: date
    strategies: dict[Strategy, StrategyOutcome]
    reconciliation: list[Discrepancy] = []


def summarize_records(records: list[AnalyticsRecord]) -> StrategyTotals:
    """
    Totals across records, plus CTR (percent) and CPM derived from them.

    Engagement is likes + comments + shares + follows. Costs are rounded to
    cents.
    """
    impressions = sum(r.impressions for r in records)
    clicks = sum(r.clicks for r in records)
    cost = sum_costs(r.cost_in_local_currency for r in records)

    ctr = round(clicks / impressions * 100, 2) if impressions else 0.0
    cpm = cost / impressions * 1000 if impressions else Decimal("0")

    return StrategyTotals(
        impressions=impressions,
        clicks=clicks,
        cost=format_cost_total(cost),
        company_page_clicks=sum(r.company_page_clicks for r in records),
        engagement=sum(r.likes + r.comments + r.shares + r.follows for r in records),
        ctr=ctr,
        cpm=format_cost_total(cpm),
    )


def reconcile(outcomes: dict[Strategy, StrategyOutcome]) -> list[Discrepancy]:
    """
    Compare every successful strategy's totals with the whole-range totals.

    Returns an empty list when the whole-range strategy itself failed. A
    strategy with failed calls is reported as partial and left unjudged.
    """
    baseline = outcomes.get(Strategy.OVERALL)
    if baseline is None or not baseline.ok or baseline.totals is None:
        return []

    discrepancies = []
    for strategy, outcome in outcomes.items():
        if strategy == Strategy.OVERALL or not outcome.ok or outcome.totals is None:
            continue
        totals, base = outcome.totals, baseline.totals
        diffs = {
            "impressions": totals.impressions - base.impressions,
            "clicks": totals.clicks - base.clicks,
            "company_page_clicks": totals.company_page_clicks - base.company_page_clicks,
            "engagement": totals.engagement - base.engagement,
        }
        cost = sum_costs([totals.cost]) - sum_costs([base.cost])

        matches = None
        if not outcome.partial:
            matches = cost == 0 and all(diff == 0 for diff in diffs.values())

        discrepancies.append(Discrepancy(
            strategy=strategy,
            cost=format_cost_total(cost),
            partial=outcome.partial,
            matches=matches,
            **diffs,
        ))
    return discrepancies


class StrategyRunner:
    """Runs the four report strategies for one campaign and date range."""

    def __init__(self, connector: LinkedInAdsConnector):
        self.connector = connector
        self.aggregator = DailyAggregator(connector)

    @staticmethod
    def _daily_outcome(report: AggregateReport) -> StrategyOutcome:
        # Failed days only make the outcome partial; it fails when none succeeded
        failed_days = [day.date for day in report.daily_results if day.status == FetchStatus.ERROR]
        all_failed = bool(failed_days) and len(failed_days) == len(report.daily_results)
        return StrategyOutcome(
            strategy=Strategy.DAILY,
            ok=not all_failed,
            records=report.merged,
            daily=report,
            error=f"All {len(failed_days)} daily calls failed" if all_failed else None,
            totals=summarize_records(report.merged),
            failed_days=failed_days,
        )

    async def run_window_strategy(
        self,
        strategy: Strategy,
        campaign_id: str,
        start_date: date,
        end_date: date,
        access_token: str,
    ) -> list[AnalyticsRecord]:
        """Run a single-call strategy. Raises on upstream failure."""
        granularity, pivot = WINDOW_STRATEGIES[strategy]
        return await self.connector.get_analytics(
            campaign_id,
            DateWindow(start=start_date, end=end_date),
            access_token,
            granularity=granularity,
            pivot=pivot,
        )

    async def run_strategy(
        self,
        strategy: Strategy,
        campaign_id: str,
        start_date: date,
        end_date: date,
        access_token: str,
    ) -> StrategyOutcome:
        """Run one strategy and capture its failure as an outcome."""
        try:
            if strategy == Strategy.DAILY:
                report = await self.aggregator.run(campaign_id, start_date, end_date, access_token)
                return self._daily_outcome(report)

            records = await self.run_window_strategy(strategy, campaign_id, start_date, end_date, access_token)
        except LinkedInAPIError as e:
            logger.error("Strategy %s failed with upstream status %s", strategy.value, e.status_code)
            return StrategyOutcome(
                strategy=strategy,
                ok=False,
                error=f"{e}: {e.detail}",
                status_code=e.status_code,
            )
        except httpx.HTTPError as e:
            logger.error("Strategy %s failed with network error: %s", strategy.value, e)
            return StrategyOutcome(strategy=strategy, ok=False, error=f"Network error: {e}")
        except ValueError as e:
            logger.error("Strategy %s returned a malformed payload: %s", strategy.value, e)
            return StrategyOutcome(strategy=strategy, ok=False, error=f"Malformed response: {e}")

        return StrategyOutcome(
            strategy=strategy,
            ok=True,
            records=records,
            totals=summarize_records(records),
        )

    async def run_all(
        self,
        campaign_id: str,
        start_date: date,
        end_date: date,
        access_token: str,
    ) -> DashboardReport:
        """Run every strategy concurrently; each keeps its own outcome."""
        strategies = list(Strategy)
        outcomes = await asyncio.gather(
            *(self.run_strategy(s, campaign_id, start_date, end_date, access_token) for s in strategies)
        )
        by_strategy = dict(zip(strategies, outcomes))

        failed = [s.value for s, outcome in by_strategy.items() if not outcome.ok]
        if failed:
            logger.warning("Dashboard strategies failed: %s", failed)

        return DashboardReport(
            campaign_id=campaign_id,
            start_date=start_date,
            end_date=end_date,
            strategies=by_strategy,
            reconciliation=reconcile(by_strategy),
        )
