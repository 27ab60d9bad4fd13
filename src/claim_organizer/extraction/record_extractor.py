"""LLM-based extraction of structured records from document text.

Turns the raw text of one scanned bill or prescription into a
DocumentRecord: category, patient identity, event date and the descriptive
fields written to the claim report.
"""

import json
import logging
import re
from datetime import date
from typing import Any, Callable

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError, field_validator

from claim_organizer.clustering.labels import sanitize_component
from claim_organizer.errors import (
    ExtractionTextAbsent,
    ModelCallFailure,
    ModelResponseUnparseable,
)
from claim_organizer.extraction.prompts import SYSTEM_PROMPT, build_user_prompt
from claim_organizer.models.document import DocumentCategory, DocumentRecord, IdentitySource
from claim_organizer.utils.dates import parse_event_date

logger = logging.getLogger(__name__)

# Values the model uses to say "not present"
PLACEHOLDER_VALUES = {"", "unknown", "n/a", "na", "none", "null", "nil", "-", "not available"}

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


# =============================================================================
# Extraction Output Schema
# =============================================================================


class ExtractedFields(BaseModel):
    """Structured output expected from the model.

    Keys without defaults must be present in the response (their value may
    be null).
    """

    category: str = Field(description="One of the DocumentCategory values")
    patient_name: str | None = Field(description="Patient name as printed")
    unique_health_id: str | None = Field(default=None, description="Explicit patient identifier")
    condition: str | None = Field(default=None, description="Diagnosis or treatment context")
    document_date: str | None = Field(description="Issue date, ideally YYYY-MM-DD")
    clinic_name: str | None = None
    bill_number: str | None = None
    amount: str | None = None
    claim_label: str | None = None

    @field_validator(
        "patient_name",
        "unique_health_id",
        "condition",
        "document_date",
        "clinic_name",
        "bill_number",
        "amount",
        "claim_label",
        mode="before",
    )
    @classmethod
    def coerce_to_text(cls, v: Any) -> str | None:
        """Accept numbers for text fields and blank out placeholders."""
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str) and v.strip().lower() in PLACEHOLDER_VALUES:
            return None
        return v.strip() if isinstance(v, str) else v


def strip_code_fences(content: str) -> str:
    """Remove markdown code-fence decoration around a model response."""
    content = content.strip()
    if content.startswith("```"):
        content = _FENCE.sub("", content).strip()
    return content


def parse_model_response(content: str | None) -> ExtractedFields:
    """Parse a free-form model response into ExtractedFields.

    Args:
        content: Raw response text, possibly wrapped in code fences or
            surrounded by commentary.

    Returns:
        Validated fields.

    Raises:
        ModelResponseUnparseable: If no valid JSON object with the required
            keys can be recovered.
    """
    if not content or not content.strip():
        raise ModelResponseUnparseable("Empty model response", raw_response=content)

    cleaned = strip_code_fences(content)

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ModelResponseUnparseable("No JSON object in model response", raw_response=content)

    try:
        data = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as e:
        raise ModelResponseUnparseable(
            f"Failed to parse model response as JSON: {e}", raw_response=content
        ) from e

    if not isinstance(data, dict):
        raise ModelResponseUnparseable("Model response is not a JSON object", raw_response=content)

    try:
        return ExtractedFields(**data)
    except ValidationError as e:
        raise ModelResponseUnparseable(
            f"Model response is missing required fields: {e.error_count()} error(s)",
            raw_response=content,
        ) from e


def normalize_key(value: str) -> str:
    """Lower-case, punctuation-free, single-spaced form of a text value."""
    return " ".join(re.sub(r"[^\w\s]", " ", value).lower().split())


def derive_identity(fields: ExtractedFields) -> tuple[str | None, IdentitySource]:
    """Pick the identity signal for a record.

    An explicit health identifier wins, reduced to the label alphabet and
    upper-cased so the key and its label component agree. Otherwise the
    patient name plus the condition form a derived grouping key. Without a
    patient name there is no identity.
    """
    if fields.unique_health_id:
        explicit = sanitize_component(re.sub(r"\s+", "", fields.unique_health_id)).upper()
        if explicit:
            return explicit, IdentitySource.EXPLICIT

    if fields.patient_name and normalize_key(fields.patient_name):
        parts = [normalize_key(fields.patient_name)]
        if fields.condition:
            parts.append(normalize_key(fields.condition))
        return "|".join(parts), IdentitySource.DERIVED

    return None, IdentitySource.ABSENT


# =============================================================================
# Record Extractor
# =============================================================================


class RecordExtractor:
    """Extracts a DocumentRecord from raw document text via a language model.

    The client is any object exposing ``chat.completions.create`` (the
    OpenAI SDK shape). By default an AsyncOpenAI client is created lazily
    from the API key.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        max_chars: int = 2500,
        min_chars: int = 20,
        timeout_seconds: float = 60.0,
        max_tokens: int = 1000,
        client: Any | None = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize record extractor.

        Args:
            api_key: OpenAI API key.
            model: Model identifier.
            max_chars: Prefix of the document text sent to the model.
            min_chars: Texts shorter than this are skipped without a call.
            timeout_seconds: Per-call timeout handed to the client.
            max_tokens: Maximum tokens for the response.
            client: Pre-built client (tests, alternative providers).
            today: Source of the fallback date for unreadable dates.
        """
        self.api_key = api_key
        self.model = model
        self.max_chars = max_chars
        self.min_chars = min_chars
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self._client = client
        self._today = today

    @property
    def client(self) -> Any:
        """Get or create the AsyncOpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("OpenAI API key not configured")
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def truncate(self, raw_text: str) -> str:
        """Bound the text submitted to the model."""
        return raw_text.strip()[: self.max_chars]

    async def extract(
        self,
        raw_text: str,
        source_id: str,
        known_labels: list[str] | None = None,
    ) -> DocumentRecord:
        """Extract a structured record from document text.

        Args:
            raw_text: Text extracted from the source document.
            source_id: Handle of the source document.
            known_labels: Existing claim labels the model may reuse.

        Returns:
            The extracted DocumentRecord.

        Raises:
            ExtractionTextAbsent: Text is shorter than ``min_chars``.
            ModelCallFailure: The model service call failed.
            ModelResponseUnparseable: The response could not be parsed.
        """
        text = self.truncate(raw_text or "")
        if len(text) < self.min_chars:
            raise ExtractionTextAbsent(
                f"Only {len(text)} characters of text in {source_id}",
                char_count=len(text),
            )

        prompt = build_user_prompt(text, known_labels)
        content = await self._call_model(prompt)
        fields = parse_model_response(content)
        return self.build_record(fields, text, source_id)

    async def _call_model(self, prompt: str) -> str | None:
        """Send one prompt to the model and return its text."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=0,
            )
        except openai.APIStatusError as e:
            raise ModelCallFailure(
                f"Model service returned {e.status_code}", payload=e.response.text
            ) from e
        except openai.OpenAIError as e:
            raise ModelCallFailure(f"Model call failed: {e}", payload=str(e)) from e

        if not response.choices:
            return None
        return response.choices[0].message.content

    def build_record(
        self,
        fields: ExtractedFields,
        text: str,
        source_id: str,
    ) -> DocumentRecord:
        """Assemble a DocumentRecord from validated model output."""
        identity_key, identity_source = derive_identity(fields)
        if identity_key is None:
            logger.info(f"No identity signal in {source_id}; record stays unassigned")

        return DocumentRecord(
            source_id=source_id,
            raw_text=text,
            category=DocumentCategory.parse(fields.category),
            event_date=parse_event_date(fields.document_date, today=self._today()),
            identity_key=identity_key,
            identity_source=identity_source,
            patient_name=fields.patient_name,
            condition=fields.condition,
            suggested_label=fields.claim_label,
            fields={
                "clinic_name": fields.clinic_name,
                "bill_number": fields.bill_number,
                "amount": fields.amount,
            },
        )
