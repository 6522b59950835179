import csv
import io
from datetime import date

from connectors.linkedin_models import AnalyticsRecord, FetchStatus
from factories import element
from services.aggregation import AggregateReport, DayResult, merge_records
from services.csv_export import (
    DAILY_HEADERS,
    STRATEGY_HEADERS,
    format_pivot_value,
    generate_daily_csv,
    generate_strategy_csv,
)

US = "urn:li:geo:103644278"
CA = "urn:li:geo:101174742"


def _rows(content: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content)))


def _record(geo, **kwargs) -> AnalyticsRecord:
    return AnalyticsRecord.model_validate(element(geo, **kwargs))


def test_strategy_csv_rows_and_totals() -> None:
    records = [
        _record(US, impressions=200, clicks=10, cost="20.005", day=date(2024, 1, 1), likes=3),
        _record(CA, impressions=100, clicks=5, cost="10"),
    ]

    content = generate_strategy_csv(records, {"103644278": "United States"})
    rows = _rows(content)

    assert rows[0] == STRATEGY_HEADERS
    assert rows[1][:5] == ["2024-01-01 to 2024-01-01", "United States", "200", "10", "20.005"]
    assert rows[2][:5] == ["", "Geo: 101174742", "100", "5", "10"]
    assert rows[-1][:5] == ["TOTALS", "All Regions Combined", "300", "15", "30.01"]
    assert rows[-1][STRATEGY_HEADERS.index("Likes")] == "3"
    assert content.startswith('"Date Range","Geography","Impressions"')


def test_strategy_csv_without_pivot() -> None:
    rows = _rows(generate_strategy_csv([_record(None, impressions=7)]))
    assert rows[1][1] == "All Regions"
    assert rows[-1][2] == "7"


def test_strategy_csv_empty() -> None:
    rows = _rows(generate_strategy_csv([]))
    assert rows[0] == STRATEGY_HEADERS
    assert rows[1][:5] == ["TOTALS", "All Regions Combined", "0", "0", "0.00"]


def test_daily_csv() -> None:
    day_one = [_record(US, impressions=100, cost="5.00", day=date(2024, 1, 1))]
    day_three = [_record(US, impressions=50, cost="2.50", day=date(2024, 1, 3))]
    report = AggregateReport(
        daily_results=[
            DayResult(date="2024-01-01", records=day_one, status=FetchStatus.SUCCESS),
            DayResult(date="2024-01-02", status=FetchStatus.ERROR, error_message="API Error 500: boom"),
            DayResult(date="2024-01-03", records=day_three, status=FetchStatus.SUCCESS),
        ],
        merged=merge_records(day_one + day_three),
    )

    rows = _rows(generate_daily_csv(report))

    assert rows[0] == DAILY_HEADERS
    assert [row[0] for row in rows[1:]] == ["2024-01-01", "2024-01-03", "AGGREGATED TOTALS"]
    assert rows[1][2] == "Geo: 103644278"
    assert rows[-1][:6] == [
        "AGGREGATED TOTALS",
        "All Days Combined",
        "All Regions Combined",
        "150",
        "10",
        "7.50",
    ]


def test_format_pivot_value_passes_through_non_geo() -> None:
    assert format_pivot_value("urn:li:sponsoredCampaign:1") == "urn:li:sponsoredCampaign:1"
    assert format_pivot_value(US, {"103644278": "United States"}) == "United States"
