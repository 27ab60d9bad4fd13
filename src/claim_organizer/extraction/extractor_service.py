"""Text extraction orchestration for source documents."""

import logging

from claim_organizer.extraction.base import BaseExtractor, ExtractionArtifact
from claim_organizer.extraction.image_extractor import ImageExtractor, TesseractOCRProvider
from claim_organizer.extraction.pdf_extractor import PdfExtractor
from claim_organizer.extraction.text_extractor import TextExtractor

logger = logging.getLogger(__name__)


class TextExtractionService:
    """Chooses an extractor by content type and returns plain text.

    Extraction failure is reported as an empty string, never as an exception:
    the pipeline treats a document without text as skippable.
    """

    def __init__(self, extractors: list[BaseExtractor] | None = None):
        """Initialize extraction service.

        Args:
            extractors: Extractors to use, in priority order. Defaults to the
                built-in PDF, image (no OCR) and text extractors.
        """
        self._extractors = extractors or [
            PdfExtractor(),
            ImageExtractor(),
            TextExtractor(),
        ]

    @classmethod
    def with_ocr(
        cls,
        enabled: bool = True,
        tesseract_cmd: str | None = None,
    ) -> "TextExtractionService":
        """Build the default extractor set, optionally with Tesseract OCR."""
        ocr = TesseractOCRProvider(tesseract_cmd) if enabled else None
        return cls([PdfExtractor(), ImageExtractor(ocr), TextExtractor()])

    @property
    def extractors(self) -> list[BaseExtractor]:
        return list(self._extractors)

    def get_extractor(self, content_type: str) -> BaseExtractor | None:
        """Get the first extractor that handles a content type."""
        for extractor in self._extractors:
            if extractor.can_handle(content_type):
                return extractor
        return None

    async def extract_artifact(
        self,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> ExtractionArtifact | None:
        """Run the matching extractor.

        Returns:
            The artifact, or None if the type is unsupported or the
            extractor failed.
        """
        extractor = self.get_extractor(content_type)
        if extractor is None:
            logger.warning(f"No extractor for {filename} ({content_type})")
            return None

        try:
            return await extractor.extract(data, filename, content_type)
        except Exception as e:
            logger.error(f"{extractor.name} extractor failed for {filename}: {e}")
            return None

    async def extract_text(self, data: bytes, filename: str, content_type: str) -> str:
        """Extract text from a document, returning "" when nothing is usable."""
        artifact = await self.extract_artifact(data, filename, content_type)
        if artifact is None or not artifact.has_content():
            return ""
        return artifact.text or ""
