"""Assignment of extracted records to new or existing claims.

Two strategies:

- IdentityWindowMatcher: a record joins a claim iff the identity keys are
  equal and the record's date is within ``window_days`` of the claim's
  anchor date.
- CandidateLabelMatcher: the model was shown recent claim labels and
  proposes one; only an exact match against the registry joins a claim.

A record without identity is never merged by identity, and a match is
always at most one claim. Matchers do not mutate the registry; the caller
registers newly created claims.
"""

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from claim_organizer.clustering.labels import disambiguate_label, label_for_record, sanitize_label
from claim_organizer.clustering.registry import ClaimRegistry
from claim_organizer.errors import IdentityAbsent
from claim_organizer.models.claim import Claim
from claim_organizer.models.document import DocumentRecord

logger = logging.getLogger(__name__)


class MatchStrategy(str, enum.Enum):
    """Available matching strategies."""

    IDENTITY_WINDOW = "identity_window"
    CANDIDATE_LABEL = "candidate_label"


class TieBreak(str, enum.Enum):
    """How to choose among several claims that all satisfy the window."""

    FIRST = "first"
    CLOSEST = "closest"


@dataclass
class MatchResult:
    """Outcome of matching one record."""

    claim: Claim
    created: bool
    reason: str


class ClaimMatcher(ABC):
    """Base class for matching strategies."""

    strategy: MatchStrategy

    @abstractmethod
    def match(self, record: DocumentRecord, registry: ClaimRegistry) -> MatchResult:
        """Assign ``record`` to an existing claim or synthesize a new one."""
        pass

    def _new_claim(self, record: DocumentRecord, registry: ClaimRegistry, label: str, reason: str) -> MatchResult:
        """Synthesize a claim anchored on the record's date.

        A label already taken by a claim of the same identity resolves to
        that claim. A label taken by another identity, or any collision for
        a record without identity, is numbered until it is free.
        """
        existing = registry.get(label)
        if existing is not None:
            if record.has_identity and existing.identity_key == record.identity_key:
                return MatchResult(claim=existing, created=False, reason="label collision")
            label = disambiguate_label(label, registry)
            logger.info(f"Label {existing.label} belongs to another claim; using {label}")

        claim = Claim(
            label=label,
            identity_key=record.identity_key,
            anchor_date=record.event_date,
            patient_name=record.patient_name,
        )
        return MatchResult(claim=claim, created=True, reason=reason)


class IdentityWindowMatcher(ClaimMatcher):
    """Deterministic identity plus tolerance-window matching."""

    strategy = MatchStrategy.IDENTITY_WINDOW

    def __init__(self, window_days: int, tie_break: TieBreak = TieBreak.FIRST):
        """Initialize matcher.

        Args:
            window_days: Maximum gap in days between a record and a claim's
                anchor date.
            tie_break: Rule used when several claims qualify.
        """
        if window_days < 0:
            raise ValueError("window_days must not be negative")
        self.window_days = window_days
        self.tie_break = tie_break

    def match(self, record: DocumentRecord, registry: ClaimRegistry) -> MatchResult:
        """Match by exact identity key and anchor-date proximity."""
        try:
            identity = record.require_identity()
        except IdentityAbsent:
            return self._new_claim(record, registry, label_for_record(record), "identity absent")

        eligible = [
            claim
            for claim in registry.candidates(identity)
            if claim.matchable_by_identity
            and claim.days_from(record.event_date) <= self.window_days
        ]
        if not eligible:
            return self._new_claim(record, registry, label_for_record(record), "no claim within window")

        chosen = self._break_tie(eligible, record)
        if len(eligible) > 1:
            logger.info(
                f"{len(eligible)} claims qualify for {record.source_id}; "
                f"chose {chosen.label} ({self.tie_break.value})"
            )
        return MatchResult(claim=chosen, created=False, reason="identity within window")

    def _break_tie(self, eligible: list[Claim], record: DocumentRecord) -> Claim:
        if self.tie_break is TieBreak.CLOSEST:
            ranked = sorted(
                enumerate(eligible),
                key=lambda item: (item[1].days_from(record.event_date), item[1].anchor_date, item[0]),
            )
            return ranked[0][1]
        return eligible[0]


class CandidateLabelMatcher(ClaimMatcher):
    """Exact matching of the model-proposed label against the registry.

    A label the model invents is a new claim even if it is semantically a
    near-duplicate of an existing one.
    """

    strategy = MatchStrategy.CANDIDATE_LABEL

    def match(self, record: DocumentRecord, registry: ClaimRegistry) -> MatchResult:
        """Match by exact label."""
        suggested = (record.suggested_label or "").strip()
        if suggested:
            existing = registry.get(suggested)
            if existing is not None:
                return MatchResult(claim=existing, created=False, reason="model named existing label")

        # Without identity only an explicitly named existing label may merge
        if not record.has_identity:
            return self._new_claim(record, registry, label_for_record(record), "identity absent")

        label = sanitize_label(suggested) or label_for_record(record)
        return self._new_claim(record, registry, label, "model proposed new label")


def build_matcher(
    strategy: MatchStrategy,
    window_days: int,
    tie_break: TieBreak = TieBreak.FIRST,
) -> ClaimMatcher:
    """Create the matcher for a strategy."""
    if strategy is MatchStrategy.CANDIDATE_LABEL:
        return CandidateLabelMatcher()
    return IdentityWindowMatcher(window_days=window_days, tie_break=tie_break)
