"""
LinkedIn lookup endpoints: geo names, member profile and token introspection.
"""

import requests
from fastapi import APIRouter, Depends, HTTPException

from connectors.linkedin_oauth import LinkedInOAuthClient, LinkedInOAuthError
from dependencies import get_connector, get_oauth_client, require_access_token

router = APIRouter()


@router.get("/geo/{geo_id}")
async def get_geo(
    geo_id: str,
    access_token: str = Depends(require_access_token),
    connector=Depends(get_connector),
):
    """Localized name for a geo id (falls back to "Geo: <id>")."""
    if not geo_id.isdigit():
        raise HTTPException(status_code=400, detail="Geo ID must be numeric")
    return await connector.get_geo(geo_id, access_token)


@router.get("/profile")
def get_profile(
    access_token: str = Depends(require_access_token),
    oauth: LinkedInOAuthClient = Depends(get_oauth_client),
):
    """Signed-in member's id, name and email."""
    try:
        return oauth.get_profile(access_token)
    except LinkedInOAuthError as e:
        raise HTTPException(
            status_code=e.status_code if e.status_code >= 400 else 502,
            detail={"error": "Failed to fetch LinkedIn profile", "details": e.detail},
        )
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail={"error": f"Failed to fetch LinkedIn profile: {e}"})


@router.post("/introspect")
def introspect_token(
    access_token: str = Depends(require_access_token),
    oauth: LinkedInOAuthClient = Depends(get_oauth_client),
):
    """Introspect the current access token."""
    try:
        return oauth.introspect(access_token)
    except LinkedInOAuthError as e:
        raise HTTPException(
            status_code=e.status_code if e.status_code >= 400 else 502,
            detail=f"Token introspection failed: {e.status_code}",
        )
    except requests.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Token introspection failed: {e}")
