"""
Local archive for generated configurator PDFs.

Handles saving documents to PDF_OUTPUT_DIR and listing what is there.
The dispatcher only calls save(); failures are logged by the caller and
never block delivery.
"""

import logging
import os
import re
from pathlib import Path

from formrelay.models.notification import RenderedDocument

logger = logging.getLogger(__name__)


class DocumentArchive:
    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)

    def save(self, document: RenderedDocument) -> str:
        """
        Write the document to the archive directory.

        Path is deterministic: {output_dir}/{sanitized_filename}. An existing
        file with the same name is overwritten.

        Returns:
            The path of the written file.

        Raises:
            OSError: If the directory cannot be created or the file written.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        # Replace anything outside word chars, dash and dot with underscores.
        sanitized = re.sub(r"[^\w\-.]", "_", document.filename) or "document.pdf"
        target = self.output_dir / sanitized

        tmp = target.with_name(f".{target.name}.tmp")
        tmp.write_bytes(document.content)
        os.replace(tmp, target)

        logger.info(f"Archived {sanitized} ({document.size_kb} KB) to {self.output_dir}")
        return str(target)

