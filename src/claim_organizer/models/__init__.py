"""Domain models for documents and claims."""

from claim_organizer.models.claim import METADATA_SCHEMA_VERSION, Claim
from claim_organizer.models.document import (
    DocumentCategory,
    DocumentRecord,
    IdentitySource,
    SourceDocument,
)

__all__ = [
    "Claim",
    "METADATA_SCHEMA_VERSION",
    "DocumentCategory",
    "DocumentRecord",
    "IdentitySource",
    "SourceDocument",
]
