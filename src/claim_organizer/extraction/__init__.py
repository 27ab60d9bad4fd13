"""Document extraction module.

Two stages:
- Text extraction: PdfExtractor, ImageExtractor (OCR) and TextExtractor,
  orchestrated by TextExtractionService
- Record extraction: RecordExtractor turns text into a DocumentRecord via a
  language model
"""

from claim_organizer.extraction.base import (
    BaseExtractor,
    ExtractionArtifact,
    NoOpOCRProvider,
    OCRProvider,
)
from claim_organizer.extraction.extractor_service import TextExtractionService
from claim_organizer.extraction.image_extractor import ImageExtractor, TesseractOCRProvider
from claim_organizer.extraction.pdf_extractor import PdfExtractor
from claim_organizer.extraction.record_extractor import (
    ExtractedFields,
    RecordExtractor,
    parse_model_response,
    strip_code_fences,
)
from claim_organizer.extraction.text_extractor import TextExtractor

__all__ = [
    # Base classes
    "BaseExtractor",
    "ExtractionArtifact",
    # OCR providers
    "OCRProvider",
    "NoOpOCRProvider",
    "TesseractOCRProvider",
    # Extractors
    "PdfExtractor",
    "TextExtractor",
    "ImageExtractor",
    # Services
    "TextExtractionService",
    "RecordExtractor",
    "ExtractedFields",
    "parse_model_response",
    "strip_code_fences",
]
