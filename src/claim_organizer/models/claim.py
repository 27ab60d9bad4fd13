"""Claim clusters and their persisted metadata."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

METADATA_SCHEMA_VERSION = 1


@dataclass
class Claim:
    """A cluster of documents believed to belong to one care episode.

    ``anchor_date`` is fixed at creation and is the temporal reference for
    matching. Label-only claims (recovered from a grouping name that could not
    be parsed into structured identity) have neither identity nor anchor and
    are matched by exact label only.
    """

    label: str
    identity_key: str | None = None
    anchor_date: date | None = None
    patient_name: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    persisted: bool = False

    @property
    def matchable_by_identity(self) -> bool:
        return self.identity_key is not None and self.anchor_date is not None

    def days_from(self, event_date: date) -> int | None:
        """Absolute day gap between ``event_date`` and the anchor."""
        if self.anchor_date is None:
            return None
        return abs((event_date - self.anchor_date).days)

    def to_metadata(self) -> dict[str, Any]:
        """Versioned sidecar record stored alongside the grouping."""
        return {
            "schema_version": METADATA_SCHEMA_VERSION,
            "label": self.label,
            "identity_key": self.identity_key,
            "anchor_date": self.anchor_date.isoformat() if self.anchor_date else None,
            "patient_name": self.patient_name,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_metadata(cls, meta: dict[str, Any], label: str) -> "Claim | None":
        """Rebuild a claim from a sidecar record.

        Returns None for unknown schema versions or malformed dates so the
        caller can fall back to label parsing.
        """
        if meta.get("schema_version") != METADATA_SCHEMA_VERSION:
            return None
        try:
            anchor = meta.get("anchor_date")
            created = meta.get("created_at")
            return cls(
                label=meta.get("label") or label,
                identity_key=meta.get("identity_key") or None,
                anchor_date=date.fromisoformat(anchor) if anchor else None,
                patient_name=meta.get("patient_name"),
                created_at=(
                    datetime.fromisoformat(created)
                    if created
                    else datetime.now(timezone.utc)
                ),
                persisted=True,
            )
        except (TypeError, ValueError):
            return None
