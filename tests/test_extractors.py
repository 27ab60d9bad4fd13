"""Tests for document text extractors."""

import codecs
import io
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image
from pypdf import PdfWriter

from claim_organizer.extraction.base import (
    ExtractionArtifact,
    NoOpOCRProvider,
    OCRProvider,
    base_content_type,
    normalize_scan_text,
)
from claim_organizer.extraction.extractor_service import TextExtractionService
from claim_organizer.extraction.image_extractor import (
    OCR_MAX_SIDE,
    OCR_MIN_SIDE,
    ImageExtractor,
    TesseractOCRProvider,
    prepare_for_ocr,
)
from claim_organizer.extraction.pdf_extractor import PdfExtractor
from claim_organizer.extraction.text_extractor import TextExtractor, decode_bytes


def blank_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def mock_ocr(text: str = "", error: Exception | None = None) -> MagicMock:
    provider = MagicMock(spec=OCRProvider)
    provider.name = "mock"
    if error is not None:
        provider.extract_text = AsyncMock(side_effect=error)
    else:
        provider.extract_text = AsyncMock(return_value=text)
    return provider


class TestExtractionArtifact:
    """Tests for ExtractionArtifact dataclass."""

    def test_char_count_derived(self):
        artifact = ExtractionArtifact(text="Hello world", extractor_name="test")
        assert artifact.char_count == 11

    def test_has_content(self):
        assert not ExtractionArtifact().has_content()
        assert not ExtractionArtifact(text="  \n ").has_content()
        assert ExtractionArtifact(text="Rx").has_content()


class TestNormalizeScanText:
    """Tests for normalize_scan_text."""

    def test_collapses_spacing(self):
        raw = "Patient:\t Asha   Rao\r\n\r\n\r\n\r\nAmount:  450\x0c"
        assert normalize_scan_text(raw) == "Patient: Asha Rao\n\nAmount: 450"

    def test_base_content_type(self):
        assert base_content_type("Text/Plain; charset=utf-8") == "text/plain"


class TestDecodeBytes:
    """Tests for decode_bytes."""

    def test_utf16_bom(self):
        text, encoding = decode_bytes(codecs.BOM_UTF16_LE + "Rx".encode("utf-16-le"))
        assert (text, encoding) == ("Rx", "utf-16-le")

    def test_utf8_bom_stripped(self):
        assert decode_bytes(codecs.BOM_UTF8 + b"Bill") == ("Bill", "utf-8")


class TestPrepareForOcr:
    """Tests for prepare_for_ocr."""

    def test_small_scan_upscaled_to_grayscale(self):
        prepared = prepare_for_ocr(Image.new("RGB", (300, 150), "white"))
        assert prepared.mode == "L"
        assert prepared.size == (OCR_MIN_SIDE, OCR_MIN_SIDE // 2)

    def test_large_scan_downscaled(self):
        prepared = prepare_for_ocr(Image.new("RGB", (6000, 3000), "white"))
        assert max(prepared.size) == OCR_MAX_SIDE

    def test_mid_size_scan_kept(self):
        prepared = prepare_for_ocr(Image.new("L", (2000, 1000)))
        assert prepared.size == (2000, 1000)


class TestTextExtractor:
    """Tests for TextExtractor."""

    @pytest.mark.asyncio
    async def test_utf8(self):
        artifact = await TextExtractor().extract("Paciente: José".encode("utf-8"), "a.txt", "text/plain")
        assert artifact.text == "Paciente: José"
        assert artifact.metadata["encoding"] == "utf-8"

    @pytest.mark.asyncio
    async def test_latin1_fallback(self):
        artifact = await TextExtractor().extract("José".encode("latin-1"), "a.txt", "text/plain")
        assert "Jos" in artifact.text

    def test_can_handle(self):
        extractor = TextExtractor()
        assert extractor.can_handle("text/plain")
        assert not extractor.can_handle("application/pdf")


class TestPdfExtractor:
    """Tests for PdfExtractor."""

    @pytest.mark.asyncio
    async def test_blank_pdf(self):
        artifact = await PdfExtractor().extract(blank_pdf(2), "scan.pdf", "application/pdf")
        assert artifact.page_count == 2
        assert not artifact.has_content()

    @pytest.mark.asyncio
    async def test_max_pages(self):
        artifact = await PdfExtractor(max_pages=1).extract(blank_pdf(3), "scan.pdf", "application/pdf")
        assert artifact.page_count == 3


class TestImageExtractor:
    """Tests for ImageExtractor."""

    @pytest.mark.asyncio
    async def test_without_ocr(self):
        extractor = ImageExtractor()
        artifact = await extractor.extract(b"\x89PNG", "scan.png", "image/png")

        assert isinstance(extractor.ocr_provider, NoOpOCRProvider)
        assert artifact.text is None
        assert artifact.metadata["format"] == "PNG"

    @pytest.mark.asyncio
    async def test_with_ocr(self):
        provider = mock_ocr("  Rx: Paracetamol 500mg  ")
        artifact = await ImageExtractor(ocr_provider=provider).extract(b"img", "scan.jpg", "image/jpeg")

        assert artifact.text == "Rx: Paracetamol 500mg"
        assert artifact.metadata["has_ocr_text"]
        provider.extract_text.assert_awaited_once_with(b"img", "image/jpeg", "eng")

    @pytest.mark.asyncio
    async def test_ocr_failure_becomes_warning(self):
        provider = mock_ocr(error=RuntimeError("tesseract missing"))
        artifact = await ImageExtractor(ocr_provider=provider).extract(b"img", "scan.jpg", "image/jpeg")

        assert artifact.text is None
        assert any("tesseract missing" in w for w in artifact.warnings)

    @pytest.mark.asyncio
    async def test_tesseract_rejects_non_image(self):
        with pytest.raises(RuntimeError, match="Tesseract OCR failed"):
            await TesseractOCRProvider().extract_text(b"not an image", "image/png")


class TestTextExtractionService:
    """Tests for TextExtractionService."""

    def test_default_extractors(self):
        service = TextExtractionService.with_ocr(enabled=False)
        names = [e.name for e in service.extractors]
        assert names == ["pdf", "image", "text"]

    def test_with_ocr_uses_tesseract(self):
        service = TextExtractionService.with_ocr(enabled=True)
        image = service.get_extractor("image/png")
        assert isinstance(image.ocr_provider, TesseractOCRProvider)

    @pytest.mark.asyncio
    async def test_routes_by_content_type(self):
        service = TextExtractionService.with_ocr(enabled=False)
        assert await service.extract_text(b"Consultation fee", "a.txt", "text/plain") == "Consultation fee"

    @pytest.mark.asyncio
    async def test_unsupported_type_yields_empty_text(self):
        service = TextExtractionService.with_ocr(enabled=False)
        assert await service.extract_text(b"PK", "a.zip", "application/zip") == ""

    @pytest.mark.asyncio
    async def test_corrupt_pdf_yields_empty_text(self):
        service = TextExtractionService.with_ocr(enabled=False)
        assert await service.extract_text(b"not a pdf", "a.pdf", "application/pdf") == ""

    @pytest.mark.asyncio
    async def test_extractor_error_yields_empty_text(self):
        broken = MagicMock(spec=TextExtractor)
        broken.name = "broken"
        broken.can_handle.return_value = True
        broken.extract = AsyncMock(side_effect=ValueError("boom"))
        service = TextExtractionService(extractors=[broken])

        assert await service.extract_text(b"x", "a.txt", "text/plain") == ""
