"""Tests for claim label generation and parsing."""

from datetime import date

from claim_organizer.clustering.labels import (
    build_claim_label,
    disambiguate_label,
    label_for_record,
    parse_legacy_label,
    sanitize_component,
    sanitize_label,
    unassigned_token,
)
from claim_organizer.models.document import IdentitySource

from conftest import make_record


class TestSanitizeComponent:
    """Tests for sanitize_component."""

    def test_whitespace_becomes_dash(self):
        assert sanitize_component("Asha  Rao") == "Asha-Rao"

    def test_drops_unsafe_characters(self):
        assert sanitize_component("Dr. O'Brien / ENT") == "Dr-OBrien-ENT"

    def test_folds_accents(self):
        assert sanitize_component("José") == "Jose"

    def test_separator_is_dropped(self):
        """Underscores would break the three-component layout."""
        assert sanitize_component("a_b") == "ab"

    def test_empty(self):
        assert sanitize_component(None) == ""
        assert sanitize_component("  ") == ""


class TestBuildClaimLabel:
    """Tests for build_claim_label."""

    def test_three_components(self):
        label = build_claim_label("Asha Rao", "U1", date(2025, 1, 5))
        assert label == "Asha-Rao_U1_2025-01-05"

    def test_empty_components_become_unknown(self):
        label = build_claim_label(None, "", date(2025, 1, 5))
        assert label == "Unknown_Unknown_2025-01-05"


class TestLabelForRecord:
    """Tests for label_for_record."""

    def test_explicit_identity_in_label(self):
        record = make_record(identity_key="U1")
        assert label_for_record(record) == "Asha-Rao_U1_2025-01-05"

    def test_derived_identity_uses_condition(self):
        record = make_record(
            identity_key="asha rao|fever",
            identity_source=IdentitySource.DERIVED,
        )
        assert label_for_record(record) == "Asha-Rao_Fever_2025-01-05"

    def test_derived_without_condition(self):
        record = make_record(
            identity_key="asha rao",
            identity_source=IdentitySource.DERIVED,
            condition=None,
        )
        assert label_for_record(record) == "Asha-Rao_General_2025-01-05"

    def test_absent_identity_is_unique_per_document(self):
        first = make_record(source_id="file:///a.pdf", identity_key=None)
        second = make_record(source_id="file:///b.pdf", identity_key=None)

        assert label_for_record(first) != label_for_record(second)
        assert "_UNASSIGNED-" in label_for_record(first)

    def test_absent_identity_is_deterministic(self):
        record = make_record(source_id="file:///a.pdf", identity_key=None)
        assert label_for_record(record) == label_for_record(record)

    def test_absent_identity_keyed_by_content(self):
        """A reused file name with different content gets a different label."""
        first = make_record(source_id="file:///inbox/scan.txt", identity_key=None)
        second = make_record(source_id="file:///inbox/scan.txt", identity_key=None)
        first.content_digest = "a" * 40
        second.content_digest = "b" * 40

        assert label_for_record(first) != label_for_record(second)

    def test_unassigned_token_shape(self):
        token = unassigned_token("file:///a.pdf")
        assert token.startswith("UNASSIGNED-")
        assert len(token) == len("UNASSIGNED-") + 8


class TestSanitizeLabel:
    """Tests for sanitize_label."""

    def test_keeps_separators(self):
        assert sanitize_label("Asha Rao_Fever_2025-01-05") == "Asha-Rao_Fever_2025-01-05"

    def test_drops_empty_components(self):
        assert sanitize_label("Asha__2025-01-05") == "Asha_2025-01-05"

    def test_none(self):
        assert sanitize_label(None) == ""


class TestParseLegacyLabel:
    """Tests for parse_legacy_label."""

    def test_parses_generated_label(self):
        parsed = parse_legacy_label("Asha-Rao_U1_2025-01-05")
        assert parsed is not None
        assert parsed.patient == "Asha-Rao"
        assert parsed.identity_key == "U1"
        assert parsed.anchor_date == date(2025, 1, 5)

    def test_identity_is_uppercased(self):
        parsed = parse_legacy_label("Asha_abc123_2025-01-05")
        assert parsed.identity_key == "ABC123"

    def test_unassigned_has_no_identity(self):
        parsed = parse_legacy_label("Asha_UNASSIGNED-0a1b2c3d_2025-01-05")
        assert parsed is not None
        assert parsed.identity_key is None

    def test_rejects_wrong_component_count(self):
        assert parse_legacy_label("Asha_2025-01-05") is None
        assert parse_legacy_label("Asha_Rao_U1_2025-01-05") is None

    def test_rejects_bad_date(self):
        assert parse_legacy_label("Asha_U1_05-01-2025") is None

    def test_rejects_free_text(self):
        assert parse_legacy_label("Misc scans") is None

    def test_round_trip_of_generated_label(self):
        record = make_record(identity_key="U1", event_date=date(2025, 2, 1))
        parsed = parse_legacy_label(label_for_record(record))
        assert parsed.identity_key == "U1"
        assert parsed.anchor_date == date(2025, 2, 1)


class TestDisambiguateLabel:
    """Tests for disambiguate_label."""

    def test_numbers_identity_component(self):
        taken = {"Asha-Rao_U1_2025-01-05"}
        assert disambiguate_label("Asha-Rao_U1_2025-01-05", taken) == "Asha-Rao_U1-2_2025-01-05"

    def test_skips_taken_numbers(self):
        taken = {"Asha-Rao_U1_2025-01-05", "Asha-Rao_U1-2_2025-01-05"}
        assert disambiguate_label("Asha-Rao_U1_2025-01-05", taken) == "Asha-Rao_U1-3_2025-01-05"

    def test_numbered_label_keeps_date_parseable(self):
        parsed = parse_legacy_label(disambiguate_label("Asha_UNASSIGNED-0a1b2c3d_2025-01-05", set()))
        assert parsed.anchor_date == date(2025, 1, 5)
        assert parsed.identity_key is None

    def test_other_shapes_numbered_at_end(self):
        assert disambiguate_label("Misc scans", {"Misc scans"}) == "Misc scans-2"
