"""Date parsing for extracted document dates."""

import logging
import re
from datetime import date, datetime

from claim_organizer.errors import DateParseFailure

logger = logging.getLogger(__name__)

# Day-first numeric formats win over month-first ones.
DATE_FORMATS = [
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%d-%m-%y",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%B-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%Y/%m/%d",
    "%Y%m%d",
]

# Trailing time tokens such as "10:30", "16:16 PM" or "T08:00:00"
_TIME_SUFFIX = re.compile(r"[T\s]+\d{1,2}:\d{2}(:\d{2})?(\.\d+)?\s*([AaPp][Mm])?\s*$")
_ORDINAL = re.compile(r"(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)


def parse_date_strict(value: str | None) -> date:
    """Parse a date string, raising DateParseFailure if it is unusable.

    Args:
        value: Date as written by the model (any of DATE_FORMATS, optionally
            followed by a time).

    Returns:
        The parsed calendar date.

    Raises:
        DateParseFailure: If the value is empty or matches no known format.
    """
    if value is None or not str(value).strip():
        raise DateParseFailure("Date field is missing")

    cleaned = str(value).strip()
    cleaned = _TIME_SUFFIX.sub("", cleaned)
    cleaned = _ORDINAL.sub(r"\1", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" ,")

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    raise DateParseFailure(f"Unrecognized date format: {value!r}")


def parse_event_date(value: str | None, today: date | None = None) -> date:
    """Parse a document date, substituting today's date when it is unusable.

    A document without a readable date is anchored on the day it is
    processed.
    """
    try:
        return parse_date_strict(value)
    except DateParseFailure as e:
        fallback = today or date.today()
        logger.warning(f"{e}; using {fallback.isoformat()}")
        return fallback
