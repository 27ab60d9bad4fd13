"""Claim label generation and legacy label parsing.

A label is ``<patient>_<identity>_<YYYY-MM-DD>``: three components drawn from
the safe alphabet (ASCII letters, digits, ``-``) joined by ``_``. Labels name
the claim groupings in the destination store, so they must be filesystem
safe and deterministic.
"""

import hashlib
import re
import unicodedata
from collections.abc import Container
from dataclasses import dataclass
from datetime import date

from claim_organizer.models.document import DocumentRecord, IdentitySource

SEPARATOR = "_"
UNKNOWN_COMPONENT = "Unknown"
UNASSIGNED_PREFIX = "UNASSIGNED"
LABEL_COMPONENTS = 3

_UNSAFE = re.compile(r"[^A-Za-z0-9-]")
_DASH_RUN = re.compile(r"-{2,}")


def sanitize_component(value: str | None) -> str:
    """Reduce a value to the safe identifier alphabet.

    Accents are folded to ASCII, whitespace runs become ``-``, every other
    character outside ``[A-Za-z0-9-]`` is dropped.
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"\s+", "-", text.strip())
    text = _UNSAFE.sub("", text)
    return _DASH_RUN.sub("-", text).strip("-")


def build_claim_label(patient_name: str | None, identity: str | None, anchor_date: date) -> str:
    """Join sanitized label components; empty ones become ``Unknown``."""
    components = [
        sanitize_component(patient_name) or UNKNOWN_COMPONENT,
        sanitize_component(identity) or UNKNOWN_COMPONENT,
        anchor_date.isoformat(),
    ]
    return SEPARATOR.join(components)


def unassigned_token(seed: str) -> str:
    """Token for a record without identity, derived from its content digest or handle."""
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:8]
    return f"{UNASSIGNED_PREFIX}-{digest}"


def label_for_record(record: DocumentRecord) -> str:
    """Derive the label of a new claim seeded by ``record``.

    Explicit identities appear in the label as-is; derived identities use the
    condition instead. Records without identity get a token computed from
    the document content, so a file name reused by a later scan does not
    reproduce an earlier label.
    """
    if record.identity_source is IdentitySource.EXPLICIT:
        identity = record.identity_key
    elif record.identity_source is IdentitySource.DERIVED:
        identity = record.condition or "General"
    else:
        identity = unassigned_token(record.content_digest or record.source_id)
    return build_claim_label(record.patient_name, identity, record.event_date)


def disambiguate_label(label: str, taken: Container[str]) -> str:
    """First numbered variant of ``label`` not in ``taken``.

    The number goes on the identity component (``Asha-Rao_U1-2_2025-01-05``)
    so the date stays the last component; labels of another shape get it at
    the end.
    """
    parts = label.split(SEPARATOR)
    slot = 1 if len(parts) == LABEL_COMPONENTS else len(parts) - 1
    number = 2
    while True:
        numbered = list(parts)
        numbered[slot] = f"{parts[slot]}-{number}"
        candidate = SEPARATOR.join(numbered)
        if candidate not in taken:
            return candidate
        number += 1


def sanitize_label(label: str | None) -> str:
    """Sanitize a free-form label (e.g. one suggested by the model)."""
    if not label:
        return ""
    parts = [sanitize_component(part) for part in label.split(SEPARATOR)]
    return SEPARATOR.join(part for part in parts if part)


@dataclass(frozen=True)
class ParsedLabel:
    """Structured fields recovered from a legacy label."""

    patient: str
    identity_key: str | None
    anchor_date: date


def parse_legacy_label(label: str) -> ParsedLabel | None:
    """Recover identity and anchor date from a grouping name.

    Best-effort fallback for groupings created without a metadata sidecar.
    Names that do not split into exactly three components ending in an ISO
    date yield None.
    """
    parts = label.split(SEPARATOR)
    if len(parts) != LABEL_COMPONENTS:
        return None

    patient, identity, date_part = parts
    if not patient or not identity:
        return None
    try:
        anchor = date.fromisoformat(date_part)
    except ValueError:
        return None

    if identity.startswith(UNASSIGNED_PREFIX):
        return ParsedLabel(patient=patient, identity_key=None, anchor_date=anchor)
    return ParsedLabel(patient=patient, identity_key=identity.upper(), anchor_date=anchor)
