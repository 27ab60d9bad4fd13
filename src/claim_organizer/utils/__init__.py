"""Utility helpers."""

from claim_organizer.utils.dates import parse_date_strict, parse_event_date

__all__ = ["parse_date_strict", "parse_event_date"]
