"""Extractor for documents that were dropped already transcribed."""

import codecs
import logging
import time

from claim_organizer.extraction.base import BaseExtractor, ExtractionArtifact, normalize_scan_text

logger = logging.getLogger(__name__)

# Byte-order marks seen on exported transcripts
_BOMS = [
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
]

# Tried in order when there is no BOM; latin-1 is the final fallback
FALLBACK_ENCODINGS = ["utf-8", "cp1252"]


def decode_bytes(data: bytes) -> tuple[str, str]:
    """Decode document bytes.

    Returns:
        Tuple of (text, encoding used).
    """
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return data[len(bom):].decode(encoding, errors="replace"), encoding

    for encoding in FALLBACK_ENCODINGS:
        try:
            return data.decode(encoding), encoding
        except UnicodeDecodeError:
            continue

    return data.decode("latin-1"), "latin-1"


class TextExtractor(BaseExtractor):
    """Plain-text and markdown transcripts of bills and prescriptions."""

    @property
    def name(self) -> str:
        return "text"

    @property
    def supported_content_types(self) -> list[str]:
        return ["text/plain", "text/markdown", "text/x-markdown"]

    async def extract(
        self,
        data: bytes,
        filename: str,
        content_type: str,
    ) -> ExtractionArtifact:
        start_time = time.time()
        text, encoding = decode_bytes(data)
        if encoding != "utf-8":
            logger.debug(f"Decoded {filename} as {encoding}")

        text = normalize_scan_text(text)
        artifact = self._create_artifact(
            text=text or None,
            metadata={"filename": filename, "encoding": encoding},
        )
        artifact.char_count = len(text)
        artifact.processing_time_ms = int((time.time() - start_time) * 1000)
        return artifact
