"""Text layer of digital PDF bills, read with pypdf."""

import asyncio
import io
import logging
import time
from dataclasses import dataclass, field

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from claim_organizer.extraction.base import BaseExtractor, ExtractionArtifact, normalize_scan_text

logger = logging.getLogger(__name__)


@dataclass
class _PdfText:
    pages: list[str]
    total_pages: int
    info: dict[str, str] = field(default_factory=dict)

    @property
    def blank_pages(self) -> int:
        return sum(1 for page in self.pages if not page)


class PdfExtractor(BaseExtractor):
    """Digital PDFs (hospital bills, lab reports) with an embedded text layer.

    A scanned PDF has no text layer and yields an empty artifact, which the
    pipeline skips as text-absent.
    """

    def __init__(self, max_pages: int | None = None):
        """Initialize PDF extractor.

        Args:
            max_pages: Read at most this many leading pages. Only the start
                of a document reaches the model.
        """
        self._max_pages = max_pages

    @property
    def name(self) -> str:
        return "pdf"

    @property
    def supported_content_types(self) -> list[str]:
        return ["application/pdf"]

    async def extract(
        self,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> ExtractionArtifact:
        start_time = time.time()
        artifact = self._create_artifact(metadata={"filename": filename})

        try:
            pdf = await asyncio.to_thread(self._read_pages, data)
        except PdfReadError as e:
            logger.warning(f"Could not read PDF {filename}: {e}")
            artifact.warnings.append(f"PDF read failed: {e}")
            return artifact

        text = "\n\n".join(page for page in pdf.pages if page)
        if pdf.blank_pages:
            logger.debug(f"{filename}: {pdf.blank_pages} of {len(pdf.pages)} pages without text")

        artifact.text = text or None
        artifact.char_count = len(text)
        artifact.page_count = pdf.total_pages
        artifact.metadata.update(pdf.info)
        artifact.processing_time_ms = int((time.time() - start_time) * 1000)
        return artifact

    def _read_pages(self, data: bytes) -> _PdfText:
        reader = PdfReader(io.BytesIO(data))
        pages = reader.pages
        limit = len(pages) if self._max_pages is None else min(self._max_pages, len(pages))

        info: dict[str, str] = {}
        if reader.metadata:
            for key in ("title", "author", "producer"):
                value = getattr(reader.metadata, key, None)
                if value:
                    info[key] = str(value)

        return _PdfText(
            pages=[normalize_scan_text(pages[i].extract_text() or "") for i in range(limit)],
            total_pages=len(pages),
            info=info,
        )
