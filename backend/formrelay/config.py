"""
Application configuration.

All settings come from environment variables (optionally loaded from a .env
file) and are collected into a single Settings object that is passed
explicitly to every component. Nothing reads os.environ after startup.
"""

import logging
import os
from typing import List, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from formrelay.clock import DEFAULT_TIMEZONE

load_dotenv()

logger = logging.getLogger(__name__)


class CompanyInfo(BaseModel):
    """Company details shown in emails, documents and fallback messages."""

    name: str = "Mitra Sanitär GmbH"
    address: str = "Borussiastraße 62a"
    city: str = "12103 Berlin"
    phone: str = "030 76008921"
    email: str = "hey@mitra-sanitaer.de"
    # IANA zone for every time shown in emails and documents
    timezone: str = DEFAULT_TIMEZONE


class Settings(BaseModel):
    app_env: str = "development"
    log_level: str = "INFO"

    # Outbound mail
    email_host: str = "smtp-mail.outlook.com"
    email_port: int = 587
    email_secure: bool = True
    email_username: str = ""
    email_password: str = ""
    email_from_address: str = ""
    email_from_name: str = ""
    email_to: str = "hey@mitra-sanitaer.de"
    email_timeout_seconds: float = 15.0

    company: CompanyInfo = Field(default_factory=CompanyInfo)

    # Document rendering
    pdf_output_dir: str = "storage/generated-pdfs"
    pdf_save_documents: bool = True
    pdf_render_timeout_seconds: float = 30.0

    # Rate limiting
    rate_limit_window_minutes: int = 15
    rate_limit_max_requests: int = 10
    rate_limit_storage_dir: str = "storage/cache"

    # HTTP
    frontend_url: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=list)

    @property
    def sender_address(self) -> str:
        """Envelope/From address: explicit setting, then SMTP user, then inbox."""
        return self.email_from_address or self.email_username or self.email_to

    @property
    def sender_name(self) -> str:
        return self.email_from_name or self.company.name

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


# ---------------------------------------------------------------------------
# Environment parsing helpers
# ---------------------------------------------------------------------------

def _env_bool(value: Optional[str], default: bool) -> bool:
    """Interpret "true"/"false" (any case) as booleans; anything else keeps the default."""
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    return default


def _env_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _env_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _env_timezone(value: Optional[str], default: str) -> str:
    """Accept a known IANA zone name; anything else keeps the default."""
    if value is None or not value.strip():
        return default
    try:
        ZoneInfo(value.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning(f"Unknown COMPANY_TIMEZONE {value!r}; using {default}")
        return default
    return value.strip()


def _split_origins(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ). Tests pass a
             plain dict so they never depend on the developer's shell.
    """
    if env is None:
        env = os.environ

    defaults = Settings()
    company_defaults = CompanyInfo()

    company = CompanyInfo(
        name=env.get("COMPANY_NAME") or company_defaults.name,
        address=env.get("COMPANY_ADDRESS") or company_defaults.address,
        city=env.get("COMPANY_CITY") or company_defaults.city,
        phone=env.get("COMPANY_PHONE") or company_defaults.phone,
        email=env.get("COMPANY_EMAIL") or company_defaults.email,
        timezone=_env_timezone(env.get("COMPANY_TIMEZONE"), company_defaults.timezone),
    )

    return Settings(
        app_env=env.get("APP_ENV") or defaults.app_env,
        log_level=(env.get("LOG_LEVEL") or defaults.log_level).upper(),
        email_host=env.get("EMAIL_HOST") or defaults.email_host,
        email_port=_env_int(env.get("EMAIL_PORT"), defaults.email_port),
        email_secure=_env_bool(env.get("EMAIL_SECURE"), defaults.email_secure),
        email_username=(env.get("EMAIL_USERNAME") or "").strip(),
        email_password=(env.get("EMAIL_PASSWORD") or "").strip(),
        email_from_address=(env.get("EMAIL_FROM_ADDRESS") or "").strip(),
        email_from_name=(env.get("EMAIL_FROM_NAME") or "").strip(),
        email_to=(env.get("EMAIL_TO") or defaults.email_to).strip(),
        email_timeout_seconds=_env_float(
            env.get("EMAIL_TIMEOUT_SECONDS"), defaults.email_timeout_seconds
        ),
        company=company,
        pdf_output_dir=env.get("PDF_OUTPUT_DIR") or defaults.pdf_output_dir,
        pdf_save_documents=_env_bool(
            env.get("PDF_SAVE_DOCUMENTS"), defaults.pdf_save_documents
        ),
        pdf_render_timeout_seconds=_env_float(
            env.get("PDF_RENDER_TIMEOUT_SECONDS"), defaults.pdf_render_timeout_seconds
        ),
        rate_limit_window_minutes=_env_int(
            env.get("RATE_LIMIT_WINDOW_MINUTES"), defaults.rate_limit_window_minutes
        ),
        rate_limit_max_requests=_env_int(
            env.get("RATE_LIMIT_MAX_REQUESTS"), defaults.rate_limit_max_requests
        ),
        rate_limit_storage_dir=env.get("RATE_LIMIT_STORAGE_DIR") or defaults.rate_limit_storage_dir,
        frontend_url=(env.get("FRONTEND_URL") or "").strip() or None,
        cors_origins=_split_origins(env.get("CORS_ORIGINS")),
    )


_REQUIRED_MAIL_SETTINGS = {
    "EMAIL_USERNAME": "email_username",
    "EMAIL_PASSWORD": "email_password",
    "EMAIL_TO": "email_to",
}


def missing_required_settings(settings: Settings) -> List[str]:
    """Return the names of required mail variables that are empty."""
    return [
        env_name
        for env_name, attr in _REQUIRED_MAIL_SETTINGS.items()
        if not getattr(settings, attr)
    ]
