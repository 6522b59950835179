"""
CSV export of strategy reports.

Every cell is quoted; totals rows close each file.
"""

import csv
import re
from typing import Optional

import pandas as pd

from connectors.linkedin_models import COUNTER_FIELDS, AnalyticsRecord, DateRange
from services.aggregation import AggregateReport, format_cost_total, sum_costs

GEO_URN = re.compile(r"urn:li:geo:(\d+)")

# (header, record field) in column order after Date Range / Geography
METRIC_COLUMNS = [
    ("Impressions", "impressions"),
    ("Clicks", "clicks"),
    ("Cost (USD)", "cost_in_local_currency"),
    ("Company Page Clicks", "company_page_clicks"),
    ("Likes", "likes"),
    ("Comments", "comments"),
    ("Shares", "shares"),
    ("Follows", "follows"),
    ("Action Clicks", "action_clicks"),
    ("Viral Impressions", "viral_impressions"),
    ("One Click Leads", "one_click_leads"),
    ("Landing Page Clicks", "landing_page_clicks"),
    ("Ad Unit Clicks", "ad_unit_clicks"),
    ("One Click Lead Form Opens", "one_click_lead_form_opens"),
    ("Viral Follows", "viral_follows"),
    ("Sends", "sends"),
    ("Viral Clicks", "viral_clicks"),
]

STRATEGY_HEADERS = ["Date Range", "Geography"] + [h for h, _ in METRIC_COLUMNS]
DAILY_HEADERS = ["Date"] + STRATEGY_HEADERS


def format_date_range(date_range: Optional[DateRange]) -> str:
    if date_range is None:
        return ""
    start, end = date_range.start.to_date(), date_range.end.to_date()
    return f"{start.isoformat()} to {end.isoformat()}"


def format_pivot_value(pivot_value: str, geo_names: Optional[dict[str, str]] = None) -> str:
    """Human label for a geo URN, falling back to 'Geo: <id>'."""
    match = GEO_URN.search(pivot_value)
    if match:
        geo_id = match.group(1)
        return (geo_names or {}).get(geo_id) or f"Geo: {geo_id}"
    return pivot_value


def format_geography(record: AnalyticsRecord, geo_names: Optional[dict[str, str]] = None) -> str:
    if not record.pivot_values:
        return "All Regions"
    return "; ".join(format_pivot_value(pv, geo_names) for pv in record.pivot_values)


def _metric_values(record: AnalyticsRecord) -> list:
    return [getattr(record, field) for _, field in METRIC_COLUMNS]


def _totals(records: list[AnalyticsRecord]) -> list:
    totals = {field: sum(getattr(r, field) for r in records) for field in COUNTER_FIELDS}
    totals["cost_in_local_currency"] = format_cost_total(sum_costs(r.cost_in_local_currency for r in records))
    return [totals[field] for _, field in METRIC_COLUMNS]


def _to_csv(rows: list[list], headers: list[str]) -> str:
    frame = pd.DataFrame(rows, columns=headers)
    return frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def generate_strategy_csv(records: list[AnalyticsRecord], geo_names: Optional[dict[str, str]] = None) -> str:
    """CSV for the overall, geographic and monthly strategies."""
    rows = [
        [format_date_range(r.date_range), format_geography(r, geo_names)] + _metric_values(r)
        for r in records
    ]
    rows.append(["TOTALS", "All Regions Combined"] + _totals(records))
    return _to_csv(rows, STRATEGY_HEADERS)


def generate_daily_csv(report: AggregateReport, geo_names: Optional[dict[str, str]] = None) -> str:
    """CSV of the per-day breakdown followed by the aggregated totals."""
    rows = []
    for day in report.daily_results:
        for r in day.records:
            rows.append(
                [day.date, format_date_range(r.date_range), format_geography(r, geo_names)]
                + _metric_values(r)
            )

    rows.append(["AGGREGATED TOTALS", "All Days Combined", "All Regions Combined"] + _totals(report.merged))
    return _to_csv(rows, DAILY_HEADERS)
