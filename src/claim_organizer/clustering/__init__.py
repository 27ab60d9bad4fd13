"""Claim clustering: labels, registry and matching."""

from claim_organizer.clustering.labels import (
    build_claim_label,
    label_for_record,
    parse_legacy_label,
    sanitize_component,
    sanitize_label,
)
from claim_organizer.clustering.matcher import (
    CandidateLabelMatcher,
    ClaimMatcher,
    IdentityWindowMatcher,
    MatchResult,
    MatchStrategy,
    TieBreak,
    build_matcher,
)
from claim_organizer.clustering.registry import ClaimRegistry, RegistryStrategy

__all__ = [
    "CandidateLabelMatcher",
    "ClaimMatcher",
    "ClaimRegistry",
    "IdentityWindowMatcher",
    "MatchResult",
    "MatchStrategy",
    "RegistryStrategy",
    "TieBreak",
    "build_claim_label",
    "build_matcher",
    "label_for_record",
    "parse_legacy_label",
    "sanitize_component",
    "sanitize_label",
]
