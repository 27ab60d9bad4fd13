"""Scanned-image extractor and the Tesseract OCR provider."""

import asyncio
import io
import logging
import time

import pytesseract
from PIL import Image, ImageOps, UnidentifiedImageError

from claim_organizer.extraction.base import (
    BaseExtractor,
    ExtractionArtifact,
    NoOpOCRProvider,
    OCRProvider,
    base_content_type,
    normalize_scan_text,
)

logger = logging.getLogger(__name__)

# Phone photos of bills are often small or huge; Tesseract reads best
# around 1500-3000 px on the long side
OCR_MIN_SIDE = 1500
OCR_MAX_SIDE = 3000


def prepare_for_ocr(image: Image.Image) -> Image.Image:
    """Grayscale, orientation-corrected image scaled into the OCR size band."""
    image = ImageOps.exif_transpose(image).convert("L")
    longest = max(image.size)
    if longest < OCR_MIN_SIDE:
        scale = OCR_MIN_SIDE / longest
    elif longest > OCR_MAX_SIDE:
        scale = OCR_MAX_SIDE / longest
    else:
        return image
    width, height = image.size
    return image.resize((int(width * scale), int(height * scale)), Image.LANCZOS)


class ImageExtractor(BaseExtractor):
    """Scanned bills and prescriptions delivered as images.

    All text comes from the OCR provider. With NoOpOCRProvider (OCR
    disabled) every image yields an empty artifact and is later skipped as
    text-absent.
    """

    FORMAT_INFO = {
        "image/png": "PNG",
        "image/jpeg": "JPEG",
        "image/tiff": "TIFF",
        "image/bmp": "BMP",
        "image/gif": "GIF",
        "image/webp": "WebP",
    }

    def __init__(self, ocr_provider: OCRProvider | None = None, language: str = "eng"):
        """Initialize image extractor.

        Args:
            ocr_provider: Provider used to read the image. Defaults to no OCR.
            language: Tesseract language code.
        """
        self._ocr = ocr_provider or NoOpOCRProvider()
        self._language = language

    @property
    def name(self) -> str:
        return "image"

    @property
    def supported_content_types(self) -> list[str]:
        return list(self.FORMAT_INFO)

    @property
    def ocr_provider(self) -> OCRProvider:
        return self._ocr

    async def extract(
        self,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> ExtractionArtifact:
        start_time = time.time()
        artifact = self._create_artifact(
            metadata={
                "filename": filename,
                "format": self.FORMAT_INFO.get(base_content_type(content_type), "Unknown"),
                "file_size": len(data),
                "ocr_provider": self._ocr.name,
            }
        )

        if isinstance(self._ocr, NoOpOCRProvider):
            logger.debug(f"OCR disabled; no text for {filename}")
            return artifact

        try:
            text = normalize_scan_text(
                await self._ocr.extract_text(data, content_type, self._language)
            )
        except RuntimeError as e:
            logger.warning(f"OCR failed for {filename}: {e}")
            artifact.warnings.append(f"OCR failed: {e}")
            text = ""

        artifact.text = text or None
        artifact.char_count = len(text)
        artifact.metadata["has_ocr_text"] = bool(text)
        artifact.processing_time_ms = int((time.time() - start_time) * 1000)
        return artifact


class TesseractOCRProvider(OCRProvider):
    """Local Tesseract OCR through pytesseract.

    The tesseract binary must be installed; ``tesseract_cmd`` points at it
    when it is not on PATH.
    """

    def __init__(self, tesseract_cmd: str | None = None):
        self._tesseract_cmd = tesseract_cmd

    @property
    def name(self) -> str:
        return "tesseract"

    async def extract_text(
        self,
        image_data: bytes,
        content_type: str,
        language: str = "eng",
    ) -> str:
        """Recognize the text of one scanned page.

        Raises:
            RuntimeError: If the image cannot be opened or Tesseract fails.
        """
        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd

        def run_ocr() -> str:
            with Image.open(io.BytesIO(image_data)) as image:
                return pytesseract.image_to_string(prepare_for_ocr(image), lang=language)

        try:
            return await asyncio.to_thread(run_ocr)
        except (UnidentifiedImageError, pytesseract.TesseractError, OSError) as e:
            raise RuntimeError(f"Tesseract OCR failed: {e}") from e
