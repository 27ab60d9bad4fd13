"""Text-extractor interface and the artifact it produces."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SPACE_RUN = re.compile(r"[ \t\u00a0]+")
_BLANK_LINES = re.compile(r"\n{3,}")


def normalize_scan_text(text: str) -> str:
    """Tidy text pulled from a scan or a PDF text layer.

    Control characters are dropped, runs of spaces and tabs collapse to one
    space, and more than one blank line collapses to a single blank line.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    lines = [_SPACE_RUN.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def base_content_type(content_type: str) -> str:
    """MIME type without parameters, lower-cased (``text/plain; charset=x`` -> ``text/plain``)."""
    return content_type.split(";", 1)[0].strip().lower()


@dataclass
class ExtractionArtifact:
    """Text pulled out of one source document."""

    text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    extractor_name: str = ""
    extractor_version: str = "1.0.0"
    page_count: int | None = None
    char_count: int | None = None
    processing_time_ms: int | None = None
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.text and self.char_count is None:
            self.char_count = len(self.text)

    def has_content(self) -> bool:
        """Whether any non-blank text was extracted."""
        return bool(self.text and self.text.strip())


class BaseExtractor(ABC):
    """One family of source documents (PDF, scanned image, plain text).

    Subclasses declare their MIME types and turn raw bytes into an
    ExtractionArtifact. Extractors may raise; the extraction service turns
    failures into empty text.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def supported_content_types(self) -> list[str]:
        pass

    @property
    def version(self) -> str:
        return "1.0.0"

    def can_handle(self, content_type: str) -> bool:
        """Whether this extractor reads the given MIME type (parameters ignored)."""
        return base_content_type(content_type) in {ct.lower() for ct in self.supported_content_types}

    @abstractmethod
    async def extract(
        self,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> ExtractionArtifact:
        """Extract text from a document.

        Args:
            data: Raw document bytes.
            filename: Original file name, used in logs and metadata.
            content_type: MIME type of the document.

        Returns:
            ExtractionArtifact with normalized text (None when nothing was found).
        """
        pass

    def _create_artifact(self, **kwargs: Any) -> ExtractionArtifact:
        return ExtractionArtifact(
            extractor_name=self.name,
            extractor_version=self.version,
            **kwargs,
        )


class OCRProvider(ABC):
    """Turns the image of a scanned bill or prescription into text."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def extract_text(
        self,
        image_data: bytes,
        content_type: str,
        language: str = "eng",
    ) -> str:
        """Run OCR over one image.

        Args:
            image_data: Raw image bytes.
            content_type: MIME type of the image.
            language: Tesseract language code, e.g. ``eng`` or ``eng+hin``.

        Returns:
            Recognized text.

        Raises:
            RuntimeError: If the image cannot be read or recognized.
        """
        pass


class NoOpOCRProvider(OCRProvider):
    """Provider used when OCR is disabled; recognizes nothing."""

    @property
    def name(self) -> str:
        return "noop"

    async def extract_text(
        self,
        image_data: bytes,
        content_type: str,
        language: str = "eng",
    ) -> str:
        return ""
