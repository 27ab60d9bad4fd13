"""Pytest configuration and fixtures."""

import json
import os
import shutil
import tempfile
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment before importing the package
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["SOURCE_ROOT"] = "./data/test_inbox"
os.environ["DESTINATION_ROOT"] = "./data/test_claims"
os.environ["OCR_ENABLED"] = "false"

from claim_organizer.extraction.extractor_service import TextExtractionService
from claim_organizer.extraction.record_extractor import RecordExtractor
from claim_organizer.models.document import (
    DocumentCategory,
    DocumentRecord,
    IdentitySource,
)
from claim_organizer.reports.excel import ExcelReportStore
from claim_organizer.storage.local import LocalDocumentSource, LocalGroupingStore

TODAY = date(2025, 3, 1)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires running services)"
    )


# =============================================================================
# Model client fakes
# =============================================================================


def make_completion(content: str | None) -> MagicMock:
    """Build an object shaped like an OpenAI chat completion."""
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


def make_model_client(content: str | None = None, side_effect: Any = None) -> MagicMock:
    """Build a client exposing ``chat.completions.create``."""
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create = AsyncMock(side_effect=side_effect)
    else:
        client.chat.completions.create = AsyncMock(return_value=make_completion(content))
    return client


def model_fields(**overrides: Any) -> dict[str, Any]:
    """A complete model response payload."""
    fields = {
        "category": "ConsultationBill",
        "patient_name": "Asha Rao",
        "unique_health_id": None,
        "condition": "Fever",
        "document_date": "2025-01-05",
        "clinic_name": "City Clinic",
        "bill_number": "B-100",
        "amount": "500",
        "claim_label": None,
    }
    fields.update(overrides)
    return fields


class ScriptedModel:
    """Answers each prompt with the response registered for a marker in it.

    Documents in tests carry a marker such as ``DOC-A`` in their text.
    """

    def __init__(self, responses: dict[str, dict[str, Any] | str | Exception]):
        self.responses = responses
        self.prompts: list[str] = []

    async def create(self, **kwargs: Any) -> MagicMock:
        prompt = kwargs["messages"][-1]["content"]
        self.prompts.append(prompt)
        for marker, response in self.responses.items():
            if marker in prompt:
                if isinstance(response, Exception):
                    raise response
                if isinstance(response, dict):
                    response = json.dumps(response)
                return make_completion(response)
        raise AssertionError("No scripted response for prompt")


# =============================================================================
# Storage fixtures
# =============================================================================


@pytest.fixture
def temp_root():
    """Create a temporary directory holding inbox and claims folders."""
    temp_dir = tempfile.mkdtemp(prefix="test_claims_")
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def inbox_dir(temp_root) -> str:
    return os.path.join(temp_root, "inbox")


@pytest.fixture
def claims_dir(temp_root) -> str:
    return os.path.join(temp_root, "claims")


@pytest.fixture
def document_source(inbox_dir) -> LocalDocumentSource:
    return LocalDocumentSource(base_path=inbox_dir)


@pytest.fixture
def grouping_store(claims_dir) -> LocalGroupingStore:
    return LocalGroupingStore(base_path=claims_dir)


@pytest.fixture
def report_store() -> ExcelReportStore:
    return ExcelReportStore()


@pytest.fixture
def text_extraction() -> TextExtractionService:
    """Text extraction without OCR."""
    return TextExtractionService.with_ocr(enabled=False)


@pytest.fixture
def write_document(inbox_dir):
    """Drop a text document into the inbox."""

    def _write(name: str, text: str) -> str:
        os.makedirs(inbox_dir, exist_ok=True)
        path = os.path.join(inbox_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    return _write


@pytest.fixture
def make_extractor():
    """Build a RecordExtractor around a fake client."""

    def _make(client: Any, **kwargs: Any) -> RecordExtractor:
        kwargs.setdefault("min_chars", 10)
        return RecordExtractor(client=client, today=lambda: TODAY, **kwargs)

    return _make


# =============================================================================
# Record factory
# =============================================================================


def make_record(
    source_id: str = "file:///inbox/doc.pdf",
    event_date: date = date(2025, 1, 5),
    identity_key: str | None = "U1",
    identity_source: IdentitySource | None = None,
    patient_name: str | None = "Asha Rao",
    condition: str | None = "Fever",
    category: DocumentCategory = DocumentCategory.CONSULTATION_BILL,
    suggested_label: str | None = None,
) -> DocumentRecord:
    """Build a DocumentRecord with sensible defaults."""
    if identity_source is None:
        identity_source = IdentitySource.EXPLICIT if identity_key else IdentitySource.ABSENT
    return DocumentRecord(
        source_id=source_id,
        raw_text="text",
        category=category,
        event_date=event_date,
        identity_key=identity_key,
        identity_source=identity_source,
        patient_name=patient_name,
        condition=condition,
        suggested_label=suggested_label,
    )
