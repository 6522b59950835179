"""
Shared FastAPI dependencies: collaborators from app state, the request's
access token and the validated report query.
"""

from dataclasses import dataclass
from datetime import date

from fastapi import HTTPException, Query, Request

from connectors.linkedin_ads import LinkedInAdsConnector
from connectors.linkedin_oauth import LinkedInOAuthClient
from services.session_tokens import SessionTokenManager
from services.strategies import StrategyRunner

SIGNIN_PATH = "/auth/signin"


def get_token_manager(request: Request) -> SessionTokenManager:
    return request.app.state.token_manager


def get_oauth_client(request: Request) -> LinkedInOAuthClient:
    return request.app.state.oauth_client


def get_connector(request: Request) -> LinkedInAdsConnector:
    return request.app.state.ads_connector


def get_strategy_runner(request: Request) -> StrategyRunner:
    return StrategyRunner(get_connector(request))


def require_access_token(request: Request) -> str:
    """
    Access token for upstream calls.

    An explicit Bearer header wins; otherwise the session token is
    evaluated (and refreshed if needed). Raises 401 when neither is usable.
    """
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token

    evaluation = get_token_manager(request).evaluate(request.session)
    if not evaluation.usable:
        raise HTTPException(
            status_code=401,
            detail={
                "error": "Unauthorized - no usable LinkedIn access token",
                "token_error": evaluation.error.value if evaluation.error else None,
                "signin_url": SIGNIN_PATH,
            },
        )
    return evaluation.access_token


@dataclass
class ReportQuery:
    campaign_id: str
    start_date: date
    end_date: date


def report_query(
    campaign_id: str = Query(..., alias="campaignId", min_length=1),
    start_date: date = Query(..., alias="startDate", description="YYYY-MM-DD"),
    end_date: date = Query(..., alias="endDate", description="YYYY-MM-DD"),
) -> ReportQuery:
    """Campaign and closed date range; malformed dates are rejected with 422."""
    if start_date > end_date:
        raise HTTPException(
            status_code=400,
            detail=f"startDate ({start_date}) must not be after endDate ({end_date})",
        )
    return ReportQuery(campaign_id=campaign_id, start_date=start_date, end_date=end_date)
