"""
Startup-time choice between live SMTP delivery and degraded (simulated) mode.

The live transport is used only when the configured credentials look real
AND a single connectivity probe succeeds. Otherwise the app keeps running on
SimulatedMailTransport with degraded=True so the forms still work and
operators can tell simulated from real delivery in logs and API responses.

The probe runs once here, never per message. A live transport that starts
failing later shows up in per-recipient outcomes instead.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from formrelay.clock import Clock, utc_now
from formrelay.config import Settings
from formrelay.errors import ConfigurationError
from formrelay.services.events import EventSink, NullEventSink
from formrelay.services.mail_transport import (
    MailTransport,
    SimulatedMailTransport,
    SmtpMailTransport,
)

logger = logging.getLogger(__name__)

# Values left behind by .env templates and setup guides.
PLACEHOLDER_CREDENTIALS = frozenset({
    "ihre-email@outlook.com",
    "your-email@outlook.com",
    "test@example.com",
    "ihr-app-passwort",
    "your-app-password",
    "app-passwort",
    "auto-generated",
})

MIN_USERNAME_LENGTH = 5
MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class TransportSelection:
    transport: MailTransport
    degraded: bool
    reason: str = ""


def credential_problem(settings: Settings) -> str:
    """Return why the SMTP credentials look unusable, or "" if they look real."""
    username = settings.email_username.strip()
    password = settings.email_password.strip()

    if not username or not password:
        return "EMAIL_USERNAME or EMAIL_PASSWORD is not set"
    if username.lower() in PLACEHOLDER_CREDENTIALS:
        return "EMAIL_USERNAME is a placeholder value"
    if password.lower() in PLACEHOLDER_CREDENTIALS:
        return "EMAIL_PASSWORD is a placeholder value"
    if len(username) < MIN_USERNAME_LENGTH:
        return f"EMAIL_USERNAME is shorter than {MIN_USERNAME_LENGTH} characters"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"EMAIL_PASSWORD is shorter than {MIN_PASSWORD_LENGTH} characters"
    return ""


def has_valid_email_credentials(settings: Settings) -> bool:
    return not credential_problem(settings)


def _smtp_from_settings(settings: Settings) -> MailTransport:
    return SmtpMailTransport(
        host=settings.email_host,
        port=settings.email_port,
        username=settings.email_username,
        password=settings.email_password,
        secure=settings.email_secure,
        timeout_seconds=settings.email_timeout_seconds,
    )


def select_transport(
    settings: Settings,
    events: Optional[EventSink] = None,
    clock: Clock = utc_now,
    live_factory: Callable[[Settings], MailTransport] = _smtp_from_settings,
) -> TransportSelection:
    """
    Pick the transport for this process.

    Raises:
        ConfigurationError: No company inbox is configured, or even the
            simulated fallback could not be constructed. Fatal at startup.
    """
    events = events or NullEventSink()

    if not settings.email_to.strip():
        raise ConfigurationError("EMAIL_TO is empty; there is no company inbox to notify")

    reason = credential_problem(settings)
    if not reason:
        live = live_factory(settings)
        if live.probe():
            events.emit(
                "transport.selected",
                transport="smtp",
                degraded=False,
                host=settings.email_host,
                port=settings.email_port,
            )
            return TransportSelection(transport=live, degraded=False)
        reason = f"connectivity probe to {settings.email_host}:{settings.email_port} failed"

    try:
        fallback = SimulatedMailTransport(events=events, clock=clock)
    except Exception as e:
        raise ConfigurationError(f"could not construct simulated mail transport: {e}") from e

    logger.warning(f"Mail delivery is SIMULATED: {reason}")
    events.emit("transport.selected", transport="simulated", degraded=True, reason=reason)
    return TransportSelection(transport=fallback, degraded=True, reason=reason)
