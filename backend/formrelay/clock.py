"""
Injectable clock. Components take a Clock so tests can freeze time.

Timestamps stay in UTC inside the pipeline; to_local converts them only
where they are shown to people (emails, PDF, PDF filename).
"""

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

DEFAULT_TIMEZONE = "Europe/Berlin"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(moment: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Convert to the named zone. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))
