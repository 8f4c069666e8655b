"""
Service wiring and FastAPI dependencies.

All pipeline components are built once per application by build_services()
and kept on app.state.services. Tests replace that attribute with services
built from fakes.

Dependencies:
  get_services(request)        -> Services
  enforce_rate_limit(...)      -> AdmitDecision  (raises 429 when throttled)
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Depends, HTTPException, Request, Response

from formrelay.clock import Clock, utc_now
from formrelay.config import Settings, load_settings, missing_required_settings
from formrelay.models.notification import AdmitDecision
from formrelay.services.dispatcher import NotificationDispatcher
from formrelay.services.document_renderer import DocumentRenderer, RenderEngine
from formrelay.services.document_store import DocumentArchive
from formrelay.services.events import EventSink, LoggingEventSink
from formrelay.services.pdf_engine import XhtmlToPdfEngine
from formrelay.services.rate_limiter import (
    FileRateStateStore,
    InMemoryRateStateStore,
    RateLimiter,
    RateStateStore,
    client_fingerprint,
)
from formrelay.services.transport_selector import TransportSelection, select_transport

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    selection: TransportSelection
    renderer: DocumentRenderer
    dispatcher: NotificationDispatcher
    rate_limiter: RateLimiter
    archive: Optional[DocumentArchive] = None


def _rate_state_store(settings: Settings, clock: Clock) -> RateStateStore:
    try:
        return FileRateStateStore(settings.rate_limit_storage_dir, clock=clock)
    except OSError as e:
        logger.warning(
            f"Rate limit storage {settings.rate_limit_storage_dir!r} unusable ({e}); "
            "keeping rate limit state in memory"
        )
        return InMemoryRateStateStore(clock=clock)


def build_services(
    settings: Settings,
    events: Optional[EventSink] = None,
    clock: Clock = utc_now,
    engine: Optional[RenderEngine] = None,
    selection: Optional[TransportSelection] = None,
    rate_store: Optional[RateStateStore] = None,
) -> Services:
    """
    Assemble the pipeline from settings.

    Raises:
        ConfigurationError: From select_transport when no company inbox is set.
    """
    events = events or LoggingEventSink()

    missing = missing_required_settings(settings)
    if missing:
        logger.warning(f"Missing mail settings: {', '.join(missing)}")

    if selection is None:
        selection = select_transport(settings, events=events, clock=clock)

    renderer = DocumentRenderer(
        engine or XhtmlToPdfEngine(),
        company=settings.company,
        clock=clock,
        timeout_seconds=settings.pdf_render_timeout_seconds,
    )
    archive = DocumentArchive(settings.pdf_output_dir) if settings.pdf_save_documents else None

    dispatcher = NotificationDispatcher(
        settings,
        selection,
        renderer=renderer,
        events=events,
        clock=clock,
        archive=archive,
    )
    rate_limiter = RateLimiter(
        rate_store or _rate_state_store(settings, clock),
        window_minutes=settings.rate_limit_window_minutes,
        max_requests=settings.rate_limit_max_requests,
        clock=clock,
        events=events,
    )

    return Services(
        settings=settings,
        selection=selection,
        renderer=renderer,
        dispatcher=dispatcher,
        rate_limiter=rate_limiter,
        archive=archive,
    )


_build_lock = threading.Lock()


def get_services(request: Request) -> Services:
    """Return the app's services, building them from the environment on first use."""
    state = request.app.state
    services = getattr(state, "services", None)
    if services is None:
        with _build_lock:
            services = getattr(state, "services", None)
            if services is None:
                services = build_services(load_settings())
                state.services = services
    return services


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


def rate_limit_headers(decision: AdmitDecision) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(int(decision.reset_at.timestamp())),
    }


def enforce_rate_limit(
    request: Request,
    response: Response,
    services: Services = Depends(get_services),
) -> AdmitDecision:
    """
    Admit the request or raise 429.

    Declared sync so the file-backed store runs in FastAPI's threadpool.
    """
    fingerprint = client_fingerprint(client_ip(request), request.headers.get("user-agent", ""))
    decision = services.rate_limiter.admit(fingerprint)
    if not decision.enabled:
        return decision

    headers = rate_limit_headers(decision)
    if not decision.allowed:
        now = services.rate_limiter.clock()
        retry_after = max(1, math.ceil((decision.reset_at - now).total_seconds()))
        headers["Retry-After"] = str(retry_after)
        raise HTTPException(
            status_code=429,
            detail={
                "detail": "Zu viele Anfragen. Bitte versuchen Sie es später erneut.",
                "error_code": "rate_limited",
                "retry_after": retry_after,
                "reset_at": decision.reset_at.isoformat(),
            },
            headers=headers,
        )

    response.headers.update(headers)
    return decision
