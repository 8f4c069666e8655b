"""
Form relay backend API
FastAPI application that turns website form submissions into company
notifications, customer confirmations and configurator PDFs.
"""

import logging
import os
from typing import List

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formrelay.config import Settings, load_settings, missing_required_settings
from formrelay.dependencies import Services, get_services
from formrelay.routers import forms

# Configure logging to output to console
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="Form Relay API",
    description="Contact form and bathroom configurator notifications",
    version=VERSION,
)


def get_cors_origins(settings: Settings) -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes the local dev servers:
    - http://localhost:3000
    - http://localhost:3001

    FRONTEND_URL adds the production site; CORS_ORIGINS adds any further
    origins as a comma-separated list, e.g.:
        CORS_ORIGINS=https://mitra-sanitaer.de,https://www.mitra-sanitaer.de

    Duplicates are removed while preserving order.
    """
    always_included = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]
    if settings.frontend_url:
        always_included.append(settings.frontend_url.rstrip("/"))

    # Deduplicate while preserving order
    seen: set = set()
    origins: List[str] = []
    for origin in always_included + settings.cors_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


# CORS origins are resolved once at startup from the environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(load_settings()),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
)

# Include routers
app.include_router(forms.router, prefix="/api", tags=["forms"])


@app.get("/")
async def root():
    return {"message": "Form Relay API", "version": VERSION}


def _health_payload(services: Services) -> dict:
    settings = services.settings
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.app_env,
        "endpoints": {
            "health": "/api/health",
            "contact": "/api/contact",
            "bathroomConfiguration": "/api/send-bathroom-configuration",
            "pdfTest": "/api/generate-pdf-only",
        },
        "services": {
            "email": {
                "host": settings.email_host,
                "port": settings.email_port,
                "credentialsConfigured": not missing_required_settings(settings),
                "testMode": services.selection.degraded,
            },
            "pdf": {"available": True, "archive": services.archive is not None},
            "rateLimit": {
                "enabled": services.rate_limiter.enabled,
                "maxRequests": settings.rate_limit_max_requests,
                "windowMinutes": settings.rate_limit_window_minutes,
            },
        },
    }


@app.get("/health")
def health(services: Services = Depends(get_services)):
    return _health_payload(services)


@app.get("/api/health")
def api_health(services: Services = Depends(get_services)):
    return _health_payload(services)
