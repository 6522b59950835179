"""
Analytics API endpoints.

One endpoint per query strategy, a combined dashboard call and CSV export.
"""

import asyncio
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from connectors.linkedin_ads import LinkedInAPIError
from connectors.linkedin_models import AnalyticsRecord
from dependencies import (
    ReportQuery,
    get_connector,
    get_strategy_runner,
    report_query,
    require_access_token,
)
from services.aggregation import AggregateReport
from services.csv_export import GEO_URN, generate_daily_csv, generate_strategy_csv
from services.strategies import DashboardReport, Strategy, StrategyRunner, summarize_records

router = APIRouter()


async def _window_strategy(
    strategy: Strategy,
    query: ReportQuery,
    access_token: str,
    runner: StrategyRunner,
) -> dict:
    try:
        records = await runner.run_window_strategy(
            strategy, query.campaign_id, query.start_date, query.end_date, access_token
        )
    except LinkedInAPIError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": str(e), "details": e.detail, "url": e.url},
        )
    except httpx.HTTPError as e:
        raise HTTPException(status_code=502, detail={"error": f"Network error: {e}"})
    except ValueError as e:
        raise HTTPException(status_code=502, detail={"error": f"Malformed LinkedIn response: {e}"})

    return {
        "strategy": strategy.value,
        "elements": [r.model_dump(by_alias=True, mode="json") for r in records],
        "totals": summarize_records(records).model_dump(by_alias=True),
    }


@router.get("/overall")
async def get_overall(
    query: ReportQuery = Depends(report_query),
    access_token: str = Depends(require_access_token),
    runner: StrategyRunner = Depends(get_strategy_runner),
):
    """Whole date range, no pivot."""
    return await _window_strategy(Strategy.OVERALL, query, access_token, runner)


@router.get("/geographic")
async def get_geographic(
    query: ReportQuery = Depends(report_query),
    access_token: str = Depends(require_access_token),
    runner: StrategyRunner = Depends(get_strategy_runner),
):
    """Whole date range, split by member country."""
    return await _window_strategy(Strategy.GEOGRAPHIC, query, access_token, runner)


@router.get("/monthly")
async def get_monthly(
    query: ReportQuery = Depends(report_query),
    access_token: str = Depends(require_access_token),
    runner: StrategyRunner = Depends(get_strategy_runner),
):
    """Monthly granularity, split by member country."""
    return await _window_strategy(Strategy.MONTHLY, query, access_token, runner)


@router.get("/daily", response_model=AggregateReport)
async def get_daily(
    query: ReportQuery = Depends(report_query),
    access_token: str = Depends(require_access_token),
    runner: StrategyRunner = Depends(get_strategy_runner),
):
    """
    One call per day, merged by geography.

    Days that fail upstream are reported with status "error" and do not
    affect the other days.
    """
    return await runner.aggregator.run(query.campaign_id, query.start_date, query.end_date, access_token)


@router.get("/dashboard", response_model=DashboardReport)
async def get_dashboard(
    query: ReportQuery = Depends(report_query),
    access_token: str = Depends(require_access_token),
    runner: StrategyRunner = Depends(get_strategy_runner),
):
    """All four strategies with per-strategy outcomes and totals reconciliation."""
    return await runner.run_all(query.campaign_id, query.start_date, query.end_date, access_token)


async def _resolve_geo_names(records: list[AnalyticsRecord], access_token: str, connector) -> dict[str, str]:
    geo_ids = set()
    for r in records:
        for pv in r.pivot_values:
            match = GEO_URN.search(pv)
            if match:
                geo_ids.add(match.group(1))

    results = await asyncio.gather(*(connector.get_geo(geo_id, access_token) for geo_id in sorted(geo_ids)))
    return {result["id"]: result["name"] for result in results}


@router.get("/export/{strategy}")
async def export_csv(
    strategy: Strategy,
    resolve_geo: bool = True,
    query: ReportQuery = Depends(report_query),
    access_token: str = Depends(require_access_token),
    runner: StrategyRunner = Depends(get_strategy_runner),
    connector=Depends(get_connector),
):
    """Download one strategy as CSV."""
    geo_names: Optional[dict[str, str]] = None

    if strategy == Strategy.DAILY:
        report = await runner.aggregator.run(query.campaign_id, query.start_date, query.end_date, access_token)
        if resolve_geo:
            geo_names = await _resolve_geo_names(report.merged, access_token, connector)
        content = generate_daily_csv(report, geo_names)
    else:
        outcome = await runner.run_strategy(
            strategy, query.campaign_id, query.start_date, query.end_date, access_token
        )
        if not outcome.ok:
            raise HTTPException(
                status_code=outcome.status_code or 502,
                detail={"error": outcome.error, "strategy": strategy.value},
            )
        if resolve_geo:
            geo_names = await _resolve_geo_names(outcome.records, access_token, connector)
        content = generate_strategy_csv(outcome.records, geo_names)

    filename = f"linkedin-{strategy.value}-{query.campaign_id}-{query.start_date}-{query.end_date}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
