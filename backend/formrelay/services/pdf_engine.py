"""
HTML → PDF render engine backed by xhtml2pdf (ReportLab underneath).
"""

import io
import logging
from typing import Any, Dict

from xhtml2pdf import pisa

from formrelay.errors import RenderError

logger = logging.getLogger(__name__)


class XhtmlToPdfEngine:
    """RenderEngine adapter. Page size and margins come from the markup's @page rule."""

    def render_to_document(self, markup: str, options: Dict[str, Any]) -> bytes:
        buffer = io.BytesIO()
        status = pisa.CreatePDF(
            markup,
            dest=buffer,
            encoding=options.get("encoding", "utf-8"),
        )
        if status.err:
            raise RenderError(f"xhtml2pdf reported {status.err} error(s)")
        if status.warn:
            logger.debug(f"xhtml2pdf reported {status.warn} warning(s)")
        return buffer.getvalue()
