"""
Configurator PDF generation.

Turns a ConfigurationSubmission into a RenderedDocument by building the
document markup (services.templates.configuration_document) and handing it
to a RenderEngine in a single call.

Public API:
  DocumentRenderer.render(submission, correlation_id=None) -> RenderedDocument
  build_filename(first_name, last_name, moment) -> str
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Dict, Optional, Protocol

from formrelay.clock import Clock, to_local, utc_now
from formrelay.config import CompanyInfo
from formrelay.errors import RenderError
from formrelay.models.notification import RenderedDocument
from formrelay.models.submission import ConfigurationSubmission
from formrelay.services import templates

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
UNKNOWN_NAME = "Unknown"

DEFAULT_RENDER_OPTIONS: Dict[str, Any] = {
    "paper": "A4",
    "orientation": "portrait",
    "encoding": "utf-8",
}


class RenderEngine(Protocol):
    def render_to_document(self, markup: str, options: Dict[str, Any]) -> bytes:
        ...


def _sanitize_name_part(value: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("", value)


def build_filename(first_name: str, last_name: str, moment) -> str:
    """
    Badkonfigurator_{First}_{Last}_{YYYY-mm-dd_HH-MM-SS}.pdf

    Characters outside [A-Za-z0-9_-], spaces included, are dropped; a name
    that sanitizes to nothing becomes "Unknown". moment is formatted as given,
    so callers pass it already in local time.
    """
    parts = [p for p in (_sanitize_name_part(first_name or ""), _sanitize_name_part(last_name or "")) if p]
    name = "_".join(parts) or UNKNOWN_NAME
    return f"Badkonfigurator_{name}_{moment.strftime('%Y-%m-%d_%H-%M-%S')}.pdf"


class DocumentRenderer:
    """
    Renders configurator submissions to PDF.

    The engine call is bounded by timeout_seconds. Engine exceptions, empty
    output and timeouts all surface as RenderError; missing optional fields
    never do (the templates substitute placeholders).
    """

    def __init__(
        self,
        engine: RenderEngine,
        company: Optional[CompanyInfo] = None,
        clock: Clock = utc_now,
        timeout_seconds: float = 30.0,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.engine = engine
        self.company = company or CompanyInfo()
        self.clock = clock
        self.timeout_seconds = timeout_seconds
        self.options = dict(options or DEFAULT_RENDER_OPTIONS)

    def build_markup(self, submission: ConfigurationSubmission, correlation_id: str = ""):
        """Return (markup, created_at) for the submission."""
        created_at = self.clock()
        context = templates.configuration_context(
            submission,
            correlation_id=correlation_id,
            received_at=created_at,
            company=self.company,
            degraded=False,
        )
        return templates.configuration_document(context), created_at

    def render(
        self, submission: ConfigurationSubmission, correlation_id: str = ""
    ) -> RenderedDocument:
        markup, created_at = self.build_markup(submission, correlation_id)
        content = self._run_engine(markup)

        if not content:
            raise RenderError("render engine returned an empty document")

        contact = submission.contact
        filename = build_filename(
            contact.first_name, contact.last_name, to_local(created_at, self.company.timezone)
        )
        logger.info(f"Rendered {filename} ({len(content)} bytes)")

        return RenderedDocument(
            filename=filename,
            content=content,
            size_bytes=len(content),
            created_at=created_at,
        )

    def _run_engine(self, markup: str) -> bytes:
        # A dedicated worker so a hung engine cannot hold the request past the
        # timeout. The worker thread itself is abandoned, not killed.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-render")
        try:
            future = executor.submit(self.engine.render_to_document, markup, dict(self.options))
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            raise RenderError(f"render engine timed out after {self.timeout_seconds:g}s")
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(f"render engine failed: {e}") from e
        finally:
            executor.shutdown(wait=False)
