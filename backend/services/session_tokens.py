"""
Session token lifecycle.

Every time the signed session is read, the stored LinkedIn token is
evaluated: kept, refreshed (reactively once expired, proactively inside
the 7-day window) or invalidated. The outcome carries a TokenStatus for
the UI badge and an error the caller must check before using the token.
"""

import logging
from enum import Enum
from typing import Callable, MutableMapping, Optional, Protocol

import requests
from pydantic import BaseModel, Field

from connectors.linkedin_oauth import LinkedInOAuthError, TokenGrant
from services.token_policy import (
    current_timestamp,
    days_until_expiry,
    is_refresh_token_valid,
    is_token_expired,
    should_refresh_token,
)

logger = logging.getLogger(__name__)

# Session keys
ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"
EXPIRES_AT = "expires_at"
ISSUED_AT = "issued_at"
TOKEN_TYPE = "token_type"
ERROR = "error"
LINKEDIN_ID = "linkedin_id"
NAME = "name"
EMAIL = "email"

NEAR_EXPIRY_DAYS = 7


class TokenError(str, Enum):
    REFRESH_TOKEN_MISSING = "RefreshTokenMissing"
    REFRESH_TOKEN_EXPIRED = "RefreshTokenExpired"
    REFRESH_ACCESS_TOKEN_ERROR = "RefreshAccessTokenError"


class TokenState(str, Enum):
    FRESH = "fresh"
    VALID = "valid"
    NEAR_EXPIRY = "near_expiry"
    INVALIDATED = "invalidated"


class TokenStatus(BaseModel):
    expires_in_days: int
    is_near_expiry: bool
    message: str
    error: Optional[TokenError] = None


class SessionEvaluation(BaseModel):
    state: TokenState
    status: Optional[TokenStatus] = None
    error: Optional[TokenError] = None
    access_token: Optional[str] = Field(default=None, exclude=True)

    @property
    def usable(self) -> bool:
        """True when the access token may be used for API calls."""
        return self.state != TokenState.INVALIDATED and self.error is None and bool(self.access_token)


class TokenRefresher(Protocol):
    def refresh(self, refresh_token: str) -> TokenGrant: ...


def build_token_status(expires_at, error: Optional[TokenError] = None, now=None) -> Optional[TokenStatus]:
    """Derive the display status for a stored expiry, or None if it is not a number."""
    days = days_until_expiry(expires_at, now)
    if days is None:
        return None

    is_near_expiry = days <= NEAR_EXPIRY_DAYS
    if days <= 0:
        message = "Your LinkedIn token has expired."
    elif is_near_expiry:
        message = f"Your LinkedIn token expires in {days} days. It will be automatically refreshed."
    else:
        message = f"Your LinkedIn token is valid for {days} more days."

    return TokenStatus(expires_in_days=days, is_near_expiry=is_near_expiry, message=message, error=error)


class SessionTokenManager:
    """Evaluates and maintains the token held in a session mapping."""

    def __init__(self, refresher: TokenRefresher, clock: Callable[[], int] = current_timestamp):
        self.refresher = refresher
        self.clock = clock

    def sign_in(
        self,
        session: MutableMapping,
        grant: TokenGrant,
        profile: Optional[dict] = None,
    ) -> SessionEvaluation:
        """Store a fresh credential grant; no further checks this cycle."""
        now = self.clock()
        session.pop(ERROR, None)
        session[ACCESS_TOKEN] = grant.access_token
        session[REFRESH_TOKEN] = grant.refresh_token
        session[EXPIRES_AT] = grant.expires_at
        session[ISSUED_AT] = now
        session[TOKEN_TYPE] = grant.token_type or "Bearer"

        if profile:
            session[LINKEDIN_ID] = profile.get("id")
            session[NAME] = profile.get("name") or "LinkedIn User"
            session[EMAIL] = profile.get("email")

        logger.info("Initial sign in, token stored (refresh_token %s)", "present" if grant.refresh_token else "missing")
        return self._evaluation(session, TokenState.FRESH, now)

    def evaluate(self, session: MutableMapping) -> SessionEvaluation:
        """Decide whether the stored token is reused, refreshed or invalidated."""
        now = self.clock()
        access_token = session.get(ACCESS_TOKEN)
        expires_at = session.get(EXPIRES_AT)

        if not access_token or expires_at is None:
            logger.debug("No access token or expiry in session")
            return SessionEvaluation(state=TokenState.INVALIDATED, error=self._stored_error(session))

        if is_token_expired(expires_at, now):
            return self._handle_expired(session, now)

        if should_refresh_token(expires_at, now):
            return self._refresh_proactively(session, now)

        return self._evaluation(session, TokenState.VALID, now)

    def _handle_expired(self, session: MutableMapping, now: int) -> SessionEvaluation:
        logger.info("Session token is expired")
        refresh_token = session.get(REFRESH_TOKEN)
        if not refresh_token:
            logger.warning("No refresh token available")
            return self._invalidate(session, TokenError.REFRESH_TOKEN_MISSING, now)

        issued_at = session.get(ISSUED_AT)
        if issued_at is None or not is_refresh_token_valid(issued_at, now):
            logger.warning("Refresh token is beyond its 360-day window")
            for key in (ACCESS_TOKEN, REFRESH_TOKEN, EXPIRES_AT):
                session.pop(key, None)
            return self._invalidate(session, TokenError.REFRESH_TOKEN_EXPIRED, now)

        try:
            grant = self.refresher.refresh(refresh_token)
        except (LinkedInOAuthError, requests.RequestException) as e:
            logger.error("Token refresh failed: %s", e)
            return self._invalidate(session, TokenError.REFRESH_ACCESS_TOKEN_ERROR, now)

        self._store(session, grant)
        logger.info("Token refresh successful")
        return self._evaluation(session, TokenState.VALID, now)

    def _refresh_proactively(self, session: MutableMapping, now: int) -> SessionEvaluation:
        logger.info("Session token should be refreshed proactively")
        refresh_token = session.get(REFRESH_TOKEN)
        issued_at = session.get(ISSUED_AT)

        if refresh_token and issued_at is not None and is_refresh_token_valid(issued_at, now):
            try:
                grant = self.refresher.refresh(refresh_token)
            except (LinkedInOAuthError, requests.RequestException) as e:
                # The current token still works for the remaining days
                logger.warning("Proactive token refresh failed: %s", e)
            else:
                self._store(session, grant)
                logger.info("Proactive token refresh successful")
                return self._evaluation(session, TokenState.VALID, now)

        return self._evaluation(session, TokenState.NEAR_EXPIRY, now)

    def _store(self, session: MutableMapping, grant: TokenGrant):
        session[ACCESS_TOKEN] = grant.access_token
        session[REFRESH_TOKEN] = grant.refresh_token
        session[EXPIRES_AT] = grant.expires_at
        session.pop(ERROR, None)

    def _invalidate(self, session: MutableMapping, error: TokenError, now: int) -> SessionEvaluation:
        session[ERROR] = error.value
        return self._evaluation(session, TokenState.INVALIDATED, now)

    @staticmethod
    def _stored_error(session: MutableMapping) -> Optional[TokenError]:
        error = session.get(ERROR)
        return TokenError(error) if error else None

    def _evaluation(self, session: MutableMapping, state: TokenState, now: int) -> SessionEvaluation:
        error = self._stored_error(session)
        expires_at = session.get(EXPIRES_AT)

        status = None
        if expires_at is not None:
            status = build_token_status(expires_at, error, now)
            if status is None:
                logger.warning("Session token expiry is not a number: %r", expires_at)

        return SessionEvaluation(
            state=state,
            status=status,
            error=error,
            access_token=session.get(ACCESS_TOKEN),
        )
