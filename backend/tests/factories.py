"""Fakes and payload builders shared by the test modules."""

from __future__ import annotations

import json
import re
from datetime import date
from typing import Optional
from urllib.parse import unquote

import httpx
import requests

START_PATTERN = re.compile(r"start:\(year:(\d+),month:(\d+),day:(\d+)\)")


def make_response(status_code: int, payload: Optional[dict] = None, text: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Error"
    response._content = json.dumps(payload).encode() if payload is not None else text.encode()
    return response


class FakeHttp:
    """Stands in for requests.Session; replays queued responses and records calls."""

    def __init__(self, post=None, get=None):
        self.post_results = list(post or [])
        self.get_results = list(get or [])
        self.posts: list[dict] = []
        self.gets: list[dict] = []

    @staticmethod
    def _next(results):
        result = results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append({"url": url, "data": data, "headers": headers})
        return self._next(self.post_results)

    def get(self, url, headers=None, timeout=None):
        self.gets.append({"url": url, "headers": headers})
        return self._next(self.get_results)


def element(
    geo: Optional[str] = "urn:li:geo:103644278",
    impressions: int = 100,
    clicks: int = 5,
    cost: str = "10.00",
    day: Optional[date] = None,
    **extra,
) -> dict:
    """adAnalytics element as LinkedIn returns it (camelCase)."""
    payload = {
        "pivotValues": [geo] if geo else [],
        "impressions": impressions,
        "clicks": clicks,
        "costInLocalCurrency": cost,
    }
    if day is not None:
        parts = {"year": day.year, "month": day.month, "day": day.day}
        payload["dateRange"] = {"start": parts, "end": parts}
    payload.update(extra)
    return payload


def requested_day(request: httpx.Request) -> date:
    """Start date of the dateRange in an adAnalytics request."""
    match = START_PATTERN.search(unquote(str(request.url)))
    year, month, day = (int(g) for g in match.groups())
    return date(year, month, day)


def query_param(request: httpx.Request, name: str) -> Optional[str]:
    match = re.search(rf"[?&]{name}=([^&]*)", unquote(str(request.url)))
    return match.group(1) if match else None


GEO_NAMES = {"103644278": "United States", "101174742": "Canada"}
US = "urn:li:geo:103644278"
CA = "urn:li:geo:101174742"


def campaign_handler(failing_granularity: Optional[str] = None, status_code: int = 500, seen: Optional[list] = None):
    """Upstream whose four views of one campaign add up to the same totals."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)

        if request.url.path.startswith("/v2/geo/"):
            geo_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"defaultLocalizedName": {"value": GEO_NAMES.get(geo_id, "")}})

        granularity = query_param(request, "timeGranularity")
        if granularity == failing_granularity:
            return httpx.Response(status_code, text="upstream failure")

        if granularity == "DAILY":
            day = requested_day(request)
            return httpx.Response(200, json={"elements": [
                element(US, impressions=100, clicks=5, cost="10.00", day=day),
            ]})
        if query_param(request, "pivot") is None:
            return httpx.Response(200, json={"elements": [
                element(None, impressions=300, clicks=15, cost="30.00"),
            ]})
        return httpx.Response(200, json={"elements": [
            element(US, impressions=200, clicks=10, cost="20.00"),
            element(CA, impressions=100, clicks=5, cost="10.00"),
        ]})

    return handler
