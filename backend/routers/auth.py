"""
Sign-in endpoints.

LinkedIn authorization-code flow into the signed session, sign-out and
the session/token status read by the UI badge.
"""

import logging
import math
import secrets
from typing import Optional

import requests
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from connectors.linkedin_oauth import LinkedInOAuthClient, LinkedInOAuthError
from dependencies import get_oauth_client, get_token_manager
from services import session_tokens
from services.session_tokens import SessionTokenManager

logger = logging.getLogger(__name__)

router = APIRouter()

STATE_KEY = "oauth_state"


@router.get("/signin")
def signin(request: Request, oauth: LinkedInOAuthClient = Depends(get_oauth_client)):
    """Redirect to LinkedIn to start the authorization-code flow."""
    state = secrets.token_urlsafe(16)
    request.session[STATE_KEY] = state
    return RedirectResponse(oauth.authorization_url(state), status_code=302)


@router.get("/callback")
def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    oauth: LinkedInOAuthClient = Depends(get_oauth_client),
    manager: SessionTokenManager = Depends(get_token_manager),
):
    """Exchange the authorization code and store the initial grant."""
    if error:
        raise HTTPException(status_code=400, detail=f"OAuth error: {error_description or error}")

    expected_state = request.session.pop(STATE_KEY, None)
    if not state or state != expected_state:
        raise HTTPException(status_code=400, detail="Invalid state parameter")

    if not code:
        raise HTTPException(status_code=400, detail="No code provided")

    try:
        grant = oauth.exchange_code(code)
    except LinkedInOAuthError as e:
        raise HTTPException(status_code=502, detail=f"Token exchange failed: {e.status_code}")
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Token exchange failed: {e}")

    profile = None
    try:
        profile = oauth.get_profile(grant.access_token)
    except (LinkedInOAuthError, requests.RequestException) as e:
        logger.warning("Could not load LinkedIn profile at sign in: %s", e)

    evaluation = manager.sign_in(request.session, grant, profile)
    return {
        "signed_in": True,
        "state": evaluation.state.value,
        "token_status": evaluation.status.model_dump() if evaluation.status else None,
        "user": profile,
    }


@router.post("/signout")
def signout(request: Request):
    """Drop the session and its token."""
    request.session.clear()
    return {"signed_out": True}


@router.get("/session")
def get_session(request: Request, manager: SessionTokenManager = Depends(get_token_manager)):
    """Evaluate the session token and report its status."""
    session = request.session
    evaluation = manager.evaluate(session)

    expires_at = session.get(session_tokens.EXPIRES_AT)
    if isinstance(expires_at, float) and not math.isfinite(expires_at):
        expires_at = None

    return {
        "authenticated": evaluation.usable,
        "state": evaluation.state.value,
        "error": evaluation.error.value if evaluation.error else None,
        "access_token": "present" if evaluation.access_token else "missing",
        "expires_at": expires_at,
        "token_status": evaluation.status.model_dump() if evaluation.status else None,
        "user": {
            "id": session.get(session_tokens.LINKEDIN_ID),
            "name": session.get(session_tokens.NAME),
            "email": session.get(session_tokens.EMAIL),
        },
    }
