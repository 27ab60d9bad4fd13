"""Source documents and the structured records extracted from them."""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from claim_organizer.errors import IdentityAbsent


class DocumentCategory(str, enum.Enum):
    """Fixed set of document categories the extractor may assign."""

    PRESCRIPTION = "Prescription"
    CONSULTATION_BILL = "ConsultationBill"
    MEDICINE_BILL = "MedicineBill"
    DIAGNOSTICS_BILL = "DiagnosticsBill"
    OTHER = "Other"

    @property
    def file_prefix(self) -> str:
        """Prefix used when renaming an organized document."""
        return _FILE_PREFIXES[self]

    @classmethod
    def parse(cls, value: str | None) -> "DocumentCategory":
        """Map a free-form category string onto the enumeration.

        Matching ignores case, spaces and underscores; anything unrecognized
        is ``OTHER``.
        """
        if not value:
            return cls.OTHER
        normalized = value.replace(" ", "").replace("_", "").lower()
        for category in cls:
            if category.value.lower() == normalized:
                return category
        return cls.OTHER


_FILE_PREFIXES = {
    DocumentCategory.PRESCRIPTION: "RX",
    DocumentCategory.CONSULTATION_BILL: "CONSULT",
    DocumentCategory.MEDICINE_BILL: "MED",
    DocumentCategory.DIAGNOSTICS_BILL: "DIAG",
    DocumentCategory.OTHER: "OTHER",
}


class IdentitySource(str, enum.Enum):
    """Where a record's identity key came from."""

    EXPLICIT = "explicit"
    DERIVED = "derived"
    ABSENT = "absent"


@dataclass
class SourceDocument:
    """Opaque handle to a document owned by the document source."""

    source_id: str
    name: str
    content_type: str
    size: int = 0
    modified_at: datetime | None = None


@dataclass
class DocumentRecord:
    """Structured fields extracted from one source document."""

    source_id: str
    raw_text: str
    category: DocumentCategory
    event_date: date
    identity_key: str | None = None
    identity_source: IdentitySource = IdentitySource.ABSENT
    patient_name: str | None = None
    condition: str | None = None
    suggested_label: str | None = None
    content_digest: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def has_identity(self) -> bool:
        return bool(self.identity_key)

    def require_identity(self) -> str:
        """Return the identity key, raising if the record has none."""
        if not self.identity_key:
            raise IdentityAbsent(f"Record {self.source_id} has no identity signal")
        return self.identity_key

    def report_row(self) -> dict[str, Any]:
        """Descriptive values written to the claim report."""
        return {
            "category": self.category.value,
            "patient_name": self.patient_name or "",
            "identity": self.identity_key or "Unknown",
            "clinic_name": self.fields.get("clinic_name") or "",
            "bill_number": self.fields.get("bill_number") or "",
            "amount": self.fields.get("amount") or "",
            "event_date": self.event_date.isoformat(),
        }
