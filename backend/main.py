"""
LinkedIn Ads Analytics API

FastAPI backend for the campaign analytics dashboard.
Exposes the four report strategies, CSV export and the LinkedIn sign-in
flow backed by a signed cookie session.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

# Backend modules and the repo-level connectors package
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(1, str(Path(__file__).parent.parent))

from config import Settings, load_settings
from connectors.linkedin_ads import LinkedInAdsConnector
from connectors.linkedin_oauth import LinkedInOAuthClient
from routers import analytics, auth, linkedin
from services.session_tokens import SessionTokenManager

logger = logging.getLogger(__name__)

SESSION_COOKIE = "linkedin_ads_session"
SESSION_MAX_AGE = 30 * 24 * 60 * 60


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting LinkedIn Ads Analytics API (LinkedIn-Version %s)", app.state.settings.linkedin.api_version)
    logger.info("CORS allowed origins: %s", app.state.settings.cors_origins)
    yield
    logger.info("Shutting down...")


def create_app(
    settings: Optional[Settings] = None,
    oauth_client: Optional[LinkedInOAuthClient] = None,
    ads_connector: Optional[LinkedInAdsConnector] = None,
) -> FastAPI:
    """Build the API. Missing configuration fails here, before serving."""
    settings = settings or load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="LinkedIn Ads Analytics API",
        description="Campaign analytics across four query strategies with CSV export",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.oauth_client = oauth_client or LinkedInOAuthClient.from_settings(settings.linkedin)
    app.state.ads_connector = ads_connector or LinkedInAdsConnector.from_settings(settings.linkedin)
    app.state.token_manager = SessionTokenManager(app.state.oauth_client)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE,
        max_age=SESSION_MAX_AGE,
        same_site="lax",
    )

    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
    app.include_router(linkedin.router, prefix="/api/linkedin", tags=["LinkedIn"])

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "healthy", "service": "LinkedIn Ads Analytics API"}

    @app.get("/api/health")
    async def health_check():
        """Detailed health check."""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "api_version": settings.linkedin.api_version,
            "endpoints": [
                "/auth",
                "/api/analytics",
                "/api/linkedin",
            ],
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
