"""
Configuration for the LinkedIn Ads Analytics API.

Reads the environment (and the repo-level .env file) once and hands an
explicit Settings object to the app factory and the LinkedIn connectors.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

ENV_FILE = Path(__file__).parent.parent / ".env"

DEFAULT_API_VERSION = "202506"
DEFAULT_SCOPE = "r_ads_reporting,r_basicprofile,r_ads,rw_ads"
DEFAULT_REDIRECT_URI = "http://localhost:8000/auth/callback"


class ConfigurationError(ValueError):
    """Raised when required settings are missing at startup."""


class LinkedInSettings(BaseModel):
    """Client credentials and endpoints for the LinkedIn Marketing API."""
    client_id: str
    client_secret: str
    api_version: str = DEFAULT_API_VERSION
    scope: str = DEFAULT_SCOPE
    redirect_uri: str = DEFAULT_REDIRECT_URI
    request_timeout: float = 30.0
    authorization_url: str = "https://www.linkedin.com/oauth/v2/authorization"
    token_url: str = "https://www.linkedin.com/oauth/v2/accessToken"
    introspect_url: str = "https://www.linkedin.com/oauth/v2/introspectToken"
    api_base_url: str = "https://api.linkedin.com"


class Settings(BaseModel):
    linkedin: LinkedInSettings
    session_secret: str
    cors_origins: list[str] = []
    log_level: str = "INFO"


def get_allowed_origins(custom_origins: str = "", frontend_url: Optional[str] = None) -> list[str]:
    """Build the CORS allow-list from defaults plus configured extras."""
    # Default origins for development
    origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8501",
    ]

    # Comma-separated extras
    if custom_origins:
        origins.extend([o.strip() for o in custom_origins.split(",") if o.strip()])

    if frontend_url:
        origins.append(frontend_url)

    return origins


def load_settings(env_file: Optional[Path] = ENV_FILE) -> Settings:
    """
    Load settings from the environment.

    Raises ConfigurationError naming every missing required variable.
    """
    if env_file is not None:
        load_dotenv(env_file)

    required = {
        "LINKEDIN_CLIENT_ID": os.getenv("LINKEDIN_CLIENT_ID"),
        "LINKEDIN_CLIENT_SECRET": os.getenv("LINKEDIN_CLIENT_SECRET"),
        "SESSION_SECRET": os.getenv("SESSION_SECRET"),
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise ConfigurationError(f"Missing configuration: {', '.join(missing)}")

    linkedin = LinkedInSettings(
        client_id=required["LINKEDIN_CLIENT_ID"],
        client_secret=required["LINKEDIN_CLIENT_SECRET"],
        api_version=os.getenv("LINKEDIN_API_VERSION") or DEFAULT_API_VERSION,
        scope=os.getenv("LINKEDIN_SCOPE") or DEFAULT_SCOPE,
        redirect_uri=os.getenv("LINKEDIN_REDIRECT_URI") or DEFAULT_REDIRECT_URI,
        request_timeout=float(os.getenv("LINKEDIN_REQUEST_TIMEOUT") or 30.0),
    )

    return Settings(
        linkedin=linkedin,
        session_secret=required["SESSION_SECRET"],
        cors_origins=get_allowed_origins(
            os.environ.get("CORS_ORIGINS", ""),
            os.environ.get("FRONTEND_URL"),
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
