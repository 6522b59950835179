"""
LinkedIn Ads Connector

Pulls sponsored-campaign analytics from the LinkedIn Marketing API
(rest/adAnalytics) for one date window per call.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import AsyncIterator, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from connectors.linkedin_models import AnalyticsRecord, FetchStatus, WindowResult

logger = logging.getLogger(__name__)

GEO_PIVOT = "MEMBER_COUNTRY_V2"

# Same field set for every strategy so totals stay comparable
ANALYTICS_FIELDS = [
    "dateRange",
    "costInLocalCurrency",
    "impressions",
    "viralImpressions",
    "likes",
    "comments",
    "shares",
    "clicks",
    "actionClicks",
    "adUnitClicks",
    "follows",
    "companyPageClicks",
    "landingPageClicks",
    "oneClickLeadFormOpens",
    "oneClickLeads",
    "pivotValues",
    "sends",
    "approximateMemberReach",
    "viralClicks",
    "viralFollows",
]


class TimeGranularity(str, Enum):
    ALL = "ALL"
    MONTHLY = "MONTHLY"
    DAILY = "DAILY"


@dataclass(frozen=True)
class DateWindow:
    """Closed date range submitted in a single reporting call."""
    start: date
    end: date

    @classmethod
    def single_day(cls, day: date) -> "DateWindow":
        return cls(start=day, end=day)

    def to_restli(self) -> str:
        return (
            f"(start:(year:{self.start.year},month:{self.start.month},day:{self.start.day}),"
            f"end:(year:{self.end.year},month:{self.end.month},day:{self.end.day}))"
        )


class LinkedInAPIError(Exception):
    """Non-success response from the reporting API."""

    def __init__(self, status_code: int, detail: str = "", url: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.url = url
        super().__init__(f"LinkedIn API request failed: {status_code}")


class LinkedInAdsConnector:
    """Connector for the LinkedIn adAnalytics endpoint."""

    def __init__(
        self,
        api_version: str,
        base_url: str = "https://api.linkedin.com",
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "LinkedInAdsConnector":
        """Build a connector from a LinkedInSettings-shaped object."""
        return cls(
            api_version=settings.api_version,
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            **kwargs,
        )

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Async HTTP client shared by every call made inside the block."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            yield client

    def _headers(self, access_token: str) -> dict:
        return {
            "LinkedIn-Version": self.api_version,
            "Authorization": f"Bearer {access_token}",
            "X-Restli-Protocol-Version": "2.0.0",
        }

    def build_analytics_url(
        self,
        campaign_id: str,
        window: DateWindow,
        granularity: TimeGranularity = TimeGranularity.DAILY,
        pivot: Optional[str] = GEO_PIVOT,
    ) -> str:
        """
        Build the Rest.li query URL.

        The query is assembled by hand: Rest.li list and record syntax
        (List(...), (start:(...))) must reach LinkedIn unencoded.
        """
        campaign_urn = f"urn:li:sponsoredCampaign:{campaign_id}"

        url = f"{self.base_url}/rest/adAnalytics"
        url += "?q=analytics"
        url += f"&timeGranularity={granularity.value}"
        if pivot:
            url += f"&pivot={pivot}"
        url += f"&campaigns=List({quote(campaign_urn, safe='')})"
        url += f"&dateRange={window.to_restli()}"
        url += f"&fields={','.join(ANALYTICS_FIELDS)}"
        return url

    async def _request(self, client: httpx.AsyncClient, url: str, access_token: str) -> httpx.Response:
        return await client.get(url, headers=self._headers(access_token))

    async def get_analytics(
        self,
        campaign_id: str,
        window: DateWindow,
        access_token: str,
        granularity: TimeGranularity = TimeGranularity.ALL,
        pivot: Optional[str] = GEO_PIVOT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> list[AnalyticsRecord]:
        """
        Fetch one window and return its records.

        Raises LinkedInAPIError on a non-success status and ValueError on a
        body that is not an adAnalytics payload; transport errors from httpx
        propagate.
        """
        url = self.build_analytics_url(campaign_id, window, granularity, pivot)
        logger.info("LinkedIn analytics request (%s, pivot=%s): %s", granularity.value, pivot, url)

        if client is None:
            async with self.client() as own_client:
                response = await self._request(own_client, url, access_token)
        else:
            response = await self._request(client, url, access_token)

        if response.is_error:
            logger.error("LinkedIn API error %s for %s: %s", response.status_code, url, response.text)
            raise LinkedInAPIError(response.status_code, response.text, url)

        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        elements = payload.get("elements") or []
        if not isinstance(elements, list):
            raise ValueError(f"expected an elements list, got {type(elements).__name__}")
        return [AnalyticsRecord.model_validate(element) for element in elements]

    async def fetch_window(
        self,
        campaign_id: str,
        window: DateWindow,
        access_token: str,
        granularity: TimeGranularity = TimeGranularity.DAILY,
        pivot: Optional[str] = GEO_PIVOT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> WindowResult:
        """
        Fetch one window and tag the outcome instead of raising.

        Lets a caller fanning out many windows keep the ones that succeed.
        """
        try:
            records = await self.get_analytics(
                campaign_id, window, access_token, granularity, pivot, client=client
            )
        except LinkedInAPIError as e:
            return WindowResult(
                status=FetchStatus.ERROR,
                error_message=f"API Error {e.status_code}: {e.detail}",
            )
        except httpx.HTTPError as e:
            logger.error("Network error for window %s..%s: %s", window.start, window.end, e)
            return WindowResult(status=FetchStatus.ERROR, error_message=f"Network error: {e}")
        except (ValidationError, ValueError) as e:
            logger.error("Malformed analytics payload for window %s..%s: %s", window.start, window.end, e)
            return WindowResult(status=FetchStatus.ERROR, error_message=f"Malformed response: {e}")

        logger.info("Window %s..%s returned %d elements", window.start, window.end, len(records))
        if not records:
            return WindowResult(status=FetchStatus.NO_DATA)
        return WindowResult(records=records, status=FetchStatus.SUCCESS)

    async def get_geo(self, geo_id: str, access_token: str) -> dict:
        """
        Resolve a geo id to its localized name.

        Falls back to a "Geo: <id>" label when LinkedIn does not answer.
        """
        fallback = {
            "id": geo_id,
            "name": f"Geo: {geo_id}",
        }
        try:
            async with self.client() as client:
                response = await client.get(
                    f"{self.base_url}/v2/geo/{geo_id}",
                    headers=self._headers(access_token),
                )
        except httpx.HTTPError as e:
            logger.warning("Geo lookup failed for %s: %s", geo_id, e)
            return fallback

        if response.is_error:
            logger.warning("Geo lookup error %s for %s: %s", response.status_code, geo_id, response.text)
            return fallback

        data = response.json()
        name = (data.get("defaultLocalizedName") or {}).get("value")
        return {"id": geo_id, "name": name or fallback["name"]}
