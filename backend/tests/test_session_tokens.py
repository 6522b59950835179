import math

import pytest
import requests

from connectors.linkedin_oauth import LinkedInOAuthClient, TokenGrant, TokenRefreshError
from factories import FakeHttp, make_response
from services import session_tokens as keys
from services.session_tokens import (
    SessionTokenManager,
    TokenError,
    TokenState,
    build_token_status,
)
from services.token_policy import REFRESH_TOKEN_LIFETIME, SECONDS_PER_DAY

NOW = 1_700_000_000
DAY = SECONDS_PER_DAY


class FakeRefresher:
    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[str] = []

    def refresh(self, refresh_token: str) -> TokenGrant:
        self.calls.append(refresh_token)
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _session(expires_in: float = 30 * DAY, issued_ago: int = 30 * DAY, **extra) -> dict:
    session = {
        keys.ACCESS_TOKEN: "access-1",
        keys.REFRESH_TOKEN: "refresh-1",
        keys.EXPIRES_AT: NOW + expires_in,
        keys.ISSUED_AT: NOW - issued_ago,
        keys.TOKEN_TYPE: "Bearer",
    }
    session.update(extra)
    return session


def _manager(refresher: FakeRefresher) -> SessionTokenManager:
    return SessionTokenManager(refresher, clock=lambda: NOW)


def test_sign_in_stores_grant_without_checks() -> None:
    refresher = FakeRefresher()
    session = {keys.ERROR: TokenError.REFRESH_TOKEN_MISSING.value}
    grant = TokenGrant(access_token="access-1", refresh_token="refresh-1", expires_at=NOW + 60 * DAY)

    evaluation = _manager(refresher).sign_in(session, grant, {"id": "abc", "name": "Ada Lovelace"})

    assert evaluation.state == TokenState.FRESH
    assert evaluation.usable is True
    assert evaluation.status.expires_in_days == 60
    assert session[keys.ISSUED_AT] == NOW
    assert session[keys.LINKEDIN_ID] == "abc"
    assert session[keys.NAME] == "Ada Lovelace"
    assert keys.ERROR not in session
    assert refresher.calls == []


def test_empty_session_is_invalidated() -> None:
    evaluation = _manager(FakeRefresher()).evaluate({})
    assert evaluation.state == TokenState.INVALIDATED
    assert evaluation.status is None
    assert evaluation.usable is False


def test_valid_token_is_kept() -> None:
    refresher = FakeRefresher()
    session = _session(expires_in=30 * DAY)

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.state == TokenState.VALID
    assert evaluation.access_token == "access-1"
    assert evaluation.status.expires_in_days == 30
    assert evaluation.status.is_near_expiry is False
    assert evaluation.status.message == "Your LinkedIn token is valid for 30 more days."
    assert refresher.calls == []


def test_proactive_refresh_inside_seven_days() -> None:
    refresher = FakeRefresher(TokenGrant("access-2", "refresh-2", NOW + 60 * DAY))
    session = _session(expires_in=3 * DAY, issued_ago=100 * DAY)

    evaluation = _manager(refresher).evaluate(session)

    assert refresher.calls == ["refresh-1"]
    assert evaluation.state == TokenState.VALID
    assert evaluation.access_token == "access-2"
    assert session[keys.REFRESH_TOKEN] == "refresh-2"
    assert session[keys.EXPIRES_AT] == NOW + 60 * DAY
    # The 360-day window stays anchored on the original sign in
    assert session[keys.ISSUED_AT] == NOW - 100 * DAY


def test_failed_proactive_refresh_keeps_current_token() -> None:
    refresher = FakeRefresher(TokenRefreshError(400, "invalid_grant"))
    session = _session(expires_in=3 * DAY)

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.state == TokenState.NEAR_EXPIRY
    assert evaluation.error is None
    assert evaluation.usable is True
    assert evaluation.access_token == "access-1"
    assert evaluation.status.is_near_expiry is True
    assert evaluation.status.message == (
        "Your LinkedIn token expires in 3 days. It will be automatically refreshed."
    )
    assert keys.ERROR not in session


def test_expired_without_refresh_token() -> None:
    refresher = FakeRefresher()
    session = _session(expires_in=-DAY)
    del session[keys.REFRESH_TOKEN]

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.state == TokenState.INVALIDATED
    assert evaluation.error == TokenError.REFRESH_TOKEN_MISSING
    assert evaluation.usable is False
    assert session[keys.ERROR] == "RefreshTokenMissing"
    assert refresher.calls == []


def test_expired_with_refresh_token_past_360_days() -> None:
    refresher = FakeRefresher()
    session = _session(expires_in=-DAY, issued_ago=REFRESH_TOKEN_LIFETIME + DAY)

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.state == TokenState.INVALIDATED
    assert evaluation.error == TokenError.REFRESH_TOKEN_EXPIRED
    assert evaluation.status is None
    for key in (keys.ACCESS_TOKEN, keys.REFRESH_TOKEN, keys.EXPIRES_AT):
        assert key not in session
    assert refresher.calls == []


def test_expired_token_refreshed() -> None:
    refresher = FakeRefresher(TokenGrant("access-2", "refresh-2", NOW + 60 * DAY))
    session = _session(expires_in=0, **{keys.ERROR: TokenError.REFRESH_ACCESS_TOKEN_ERROR.value})

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.state == TokenState.VALID
    assert evaluation.error is None
    assert evaluation.usable is True
    assert evaluation.access_token == "access-2"
    assert keys.ERROR not in session


@pytest.mark.parametrize(
    "failure",
    [TokenRefreshError(401, "revoked"), requests.ConnectionError("connection reset")],
)
def test_expired_token_refresh_failure(failure: Exception) -> None:
    refresher = FakeRefresher(failure)
    session = _session(expires_in=-DAY)

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.state == TokenState.INVALIDATED
    assert evaluation.error == TokenError.REFRESH_ACCESS_TOKEN_ERROR
    assert evaluation.usable is False
    assert evaluation.status.error == TokenError.REFRESH_ACCESS_TOKEN_ERROR
    assert evaluation.status.message == "Your LinkedIn token has expired."
    assert refresher.calls == ["refresh-1"]


def test_missing_expiry_gives_no_status() -> None:
    session = _session()
    session[keys.EXPIRES_AT] = math.nan

    evaluation = _manager(FakeRefresher()).evaluate(session)

    assert evaluation.state == TokenState.VALID
    assert evaluation.status is None
    assert evaluation.usable is True


def test_build_token_status_boundaries() -> None:
    assert build_token_status(NOW + 7 * DAY, now=NOW).is_near_expiry is True
    assert build_token_status(NOW + 8 * DAY, now=NOW).is_near_expiry is False
    expired = build_token_status(NOW - DAY, now=NOW)
    assert expired.expires_in_days == -1
    assert expired.message == "Your LinkedIn token has expired."


def test_refresh_token_at_exactly_360_days_is_expired() -> None:
    refresher = FakeRefresher()
    session = _session(expires_in=-DAY, issued_ago=REFRESH_TOKEN_LIFETIME)

    evaluation = _manager(refresher).evaluate(session)

    assert evaluation.error == TokenError.REFRESH_TOKEN_EXPIRED
    assert refresher.calls == []


@pytest.mark.parametrize("body", ["[]", '{"access_token": "access-2", "expires_in": "soon"}'])
def test_unusable_refresh_response_invalidates_expired_token(body: str) -> None:
    client = LinkedInOAuthClient(
        client_id="client-123",
        client_secret="secret-456",
        redirect_uri="http://localhost:8000/auth/callback",
        scope="r_ads_reporting",
        api_version="202506",
        http=FakeHttp(post=[make_response(200, text=body)]),
        clock=lambda: NOW,
    )
    session = _session(expires_in=-DAY)

    evaluation = SessionTokenManager(client, clock=lambda: NOW).evaluate(session)

    assert evaluation.state == TokenState.INVALIDATED
    assert evaluation.error == TokenError.REFRESH_ACCESS_TOKEN_ERROR
    assert session[keys.ERROR] == "RefreshAccessTokenError"
