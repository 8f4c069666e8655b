"""
Semantic event sink.

Pipeline components report what happened ("document.generated",
"message.delivered", ...) through an EventSink instead of writing to a
global logger, so tests can assert on events directly.

Event names:
  transport.selected      startup transport choice (live or simulated)
  document.generated      PDF rendered
  document.failed         PDF rendering failed (soft)
  document.archived       PDF written to the output directory
  message.delivered       one recipient's message accepted by the transport
  message.failed          one recipient's message failed (soft)
  message.simulated       simulated transport pretended to deliver
  notification.rejected   submission aborted (invalid recipient)
  notification.completed  summary for one submission
  rate_limit.exceeded     a request was throttled
"""

import logging
from typing import Any, Protocol

logger = logging.getLogger("formrelay.events")

_WARNING_EVENTS = {"document.failed", "message.failed", "notification.rejected", "rate_limit.exceeded"}


class EventSink(Protocol):
    def emit(self, event: str, **attributes: Any) -> None:
        ...


class LoggingEventSink:
    """Default sink: one log line per event, key=value formatted."""

    def __init__(self, log: logging.Logger = logger):
        self._log = log

    def emit(self, event: str, **attributes: Any) -> None:
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        details = " ".join(f"{key}={value!r}" for key, value in attributes.items())
        self._log.log(level, "event=%s %s", event, details)


class NullEventSink:
    def emit(self, event: str, **attributes: Any) -> None:
        pass
