"""
Token timing rules for LinkedIn OAuth tokens.

Pure functions over epoch-second timestamps. `now` defaults to the
current time so callers and tests can pin it.
"""

import math
import time
from typing import Optional, Union

Timestamp = Union[int, float]

SECONDS_PER_DAY = 24 * 60 * 60

# Refresh ahead of expiry inside this window
PROACTIVE_REFRESH_WINDOW = 7 * SECONDS_PER_DAY

# LinkedIn refresh tokens stop working 360 days after the original grant
REFRESH_TOKEN_LIFETIME = 360 * SECONDS_PER_DAY


def current_timestamp() -> int:
    return int(time.time())


def _now(now: Optional[Timestamp]) -> Timestamp:
    return current_timestamp() if now is None else now


def is_token_expired(expires_at: Timestamp, now: Optional[Timestamp] = None) -> bool:
    """Check if the access token is expired (expiry second included)."""
    return _now(now) >= expires_at


def should_refresh_token(expires_at: Timestamp, now: Optional[Timestamp] = None) -> bool:
    """Check if the token is inside the 7-day proactive refresh window."""
    return expires_at - _now(now) < PROACTIVE_REFRESH_WINDOW


def is_refresh_token_valid(issued_at: Timestamp, now: Optional[Timestamp] = None) -> bool:
    """Check the refresh token is younger than 360 days from the original grant."""
    return _now(now) - issued_at < REFRESH_TOKEN_LIFETIME


def days_until_expiry(expires_at: Timestamp, now: Optional[Timestamp] = None) -> Optional[int]:
    """Whole days left before expiry, rounded up. None for a non-finite expiry."""
    remaining = expires_at - _now(now)
    if not math.isfinite(remaining):
        return None
    return math.ceil(remaining / SECONDS_PER_DAY)
