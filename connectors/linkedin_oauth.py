"""
LinkedIn OAuth Client

Authorization-code exchange, refresh-token exchange, token introspection
and the member profile lookup used at sign-in.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)


class LinkedInOAuthError(Exception):
    """Non-success response from a LinkedIn OAuth endpoint."""

    message = "LinkedIn OAuth request failed"

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{self.message}: {status_code}")


class TokenRefreshError(LinkedInOAuthError):
    """The refresh-token exchange was rejected."""

    message = "Token refresh failed"


@dataclass
class TokenGrant:
    """Tokens returned by a code exchange or a refresh."""
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Union[int, float]  # epoch seconds, NaN when the provider omits expires_in
    token_type: str = "Bearer"


def _expiry_from(expires_in, now: int) -> Union[int, float]:
    # A missing expires_in is passed through as NaN rather than guessed.
    if expires_in is None:
        return math.nan
    return now + int(expires_in)


def _json_object(response: requests.Response, error_cls: type) -> dict:
    """JSON object body of an OAuth or profile response; anything else raises error_cls."""
    try:
        body = response.json()
    except ValueError:
        raise error_cls(response.status_code, f"Response is not JSON: {response.text}")
    if not isinstance(body, dict):
        raise error_cls(response.status_code, f"Response is not a JSON object: {response.text}")
    return body


def _grant_from(
    response: requests.Response,
    error_cls: type,
    now: int,
    previous_refresh_token: Optional[str] = None,
) -> TokenGrant:
    tokens = _json_object(response, error_cls)
    try:
        expires_at = _expiry_from(tokens.get("expires_in"), now)
    except (TypeError, ValueError):
        raise error_cls(response.status_code, f"Invalid expires_in: {tokens.get('expires_in')!r}")

    return TokenGrant(
        access_token=tokens.get("access_token"),
        # LinkedIn may keep the same refresh token across rotations
        refresh_token=tokens.get("refresh_token") or previous_refresh_token,
        expires_at=expires_at,
        token_type=tokens.get("token_type") or "Bearer",
    )


class LinkedInOAuthClient:
    """Client for the LinkedIn OAuth 2.0 endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: str,
        api_version: str,
        authorization_url: str = "https://www.linkedin.com/oauth/v2/authorization",
        token_url: str = "https://www.linkedin.com/oauth/v2/accessToken",
        introspect_url: str = "https://www.linkedin.com/oauth/v2/introspectToken",
        api_base_url: str = "https://api.linkedin.com",
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.api_version = api_version
        self.authorization_endpoint = authorization_url
        self.token_url = token_url
        self.introspect_url = introspect_url
        self.api_base_url = api_base_url
        self.timeout = timeout
        self.http = http or requests.Session()
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "LinkedInOAuthClient":
        """Build a client from a LinkedInSettings-shaped object."""
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            scope=settings.scope,
            api_version=settings.api_version,
            authorization_url=settings.authorization_url,
            token_url=settings.token_url,
            introspect_url=settings.introspect_url,
            api_base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            **kwargs,
        )

    def _now(self) -> int:
        return int(self.clock())

    def authorization_url(self, state: str) -> str:
        """URL that starts the LinkedIn sign-in for the given state token."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope.replace(",", " "),
            "state": state,
        }
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    def _post_token(self, data: dict) -> requests.Response:
        return self.http.post(
            self.token_url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )

    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for the initial token grant."""
        response = self._post_token({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        })

        if not response.ok:
            logger.error("Authorization code exchange failed: %s %s", response.status_code, response.text)
            raise LinkedInOAuthError(response.status_code, response.text)

        grant = _grant_from(response, LinkedInOAuthError, self._now())
        logger.info(
            "Authorization code exchanged (access_token %s, refresh_token %s)",
            "present" if grant.access_token else "missing",
            "present" if grant.refresh_token else "missing",
        )
        return grant

    def refresh(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        A single attempt: a rejected exchange or an unusable response body
        raises TokenRefreshError; transport errors from requests propagate
        unchanged.
        """
        logger.info("Attempting to refresh LinkedIn token")

        response = self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        })

        if not response.ok:
            logger.error(
                "LinkedIn token refresh failed: %s %s %s",
                response.status_code, response.reason, response.text,
            )
            raise TokenRefreshError(response.status_code, response.text)

        grant = _grant_from(response, TokenRefreshError, self._now(), previous_refresh_token=refresh_token)
        logger.info(
            "LinkedIn token refreshed (access_token %s, expires_at %s)",
            "present" if grant.access_token else "missing",
            grant.expires_at,
        )
        return grant

    def introspect(self, access_token: str) -> dict:
        """Introspect an access token and add computed age/expiry fields."""
        response = self.http.post(
            self.introspect_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "token": access_token,
            },
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "LinkedIn-Version": self.api_version,
            },
            timeout=self.timeout,
        )

        if not response.ok:
            logger.error("LinkedIn token introspection failed: %s %s", response.status_code, response.text)
            raise LinkedInOAuthError(response.status_code, response.text)

        result = _json_object(response, LinkedInOAuthError)
        now = self._now()
        expires_at = result.get("expires_at")
        created_at = result.get("created_at")
        result["computed"] = {
            "is_expired": now >= expires_at if expires_at else False,
            "expires_in_days": round((expires_at - now) / 86400) if expires_at else None,
            "age_in_days": round((now - created_at) / 86400) if created_at else None,
        }
        return result

    def get_profile(self, access_token: str) -> dict:
        """Fetch the signed-in member's id and display name."""
        response = self.http.get(
            f"{self.api_base_url}/v2/me",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "LinkedIn-Version": self.api_version,
                "X-Restli-Protocol-Version": "2.0.0",
            },
            timeout=self.timeout,
        )

        if not response.ok:
            raise LinkedInOAuthError(response.status_code, response.text)

        profile = _json_object(response, LinkedInOAuthError)
        first = profile.get("localizedFirstName") or profile.get("firstName", {}).get("localized", {}).get("en_US", "")
        last = profile.get("localizedLastName") or profile.get("lastName", {}).get("localized", {}).get("en_US", "")

        return {
            "id": profile.get("id"),
            "name": f"{first} {last}".strip() or "LinkedIn User",
            "email": profile.get("emailAddress"),
        }
