"""Typed exceptions for the claim organizer.

Per-document failures (everything under ``ExtractionFailure``) are contained
by the pipeline at the document boundary. ``CollaboratorUnavailable`` is the
only error that ends a run.
"""


class ClaimOrganizerError(Exception):
    """Base exception for claim organizer errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ExtractionFailure(ClaimOrganizerError):
    """A document could not be turned into a structured record."""

    pass


class ExtractionTextAbsent(ExtractionFailure):
    """The document yielded too little text to be worth a model call."""

    def __init__(self, message: str, char_count: int = 0):
        super().__init__(message, {"char_count": char_count})
        self.char_count = char_count


class ModelCallFailure(ExtractionFailure):
    """Network or service error from the language-model call."""

    def __init__(self, message: str, payload: str | None = None):
        super().__init__(message, {"payload": payload})
        self.payload = payload


class ModelResponseUnparseable(ExtractionFailure):
    """The model response is not valid structured data after cleanup."""

    def __init__(self, message: str, raw_response: str | None = None):
        super().__init__(message, {"raw_response": raw_response})
        self.raw_response = raw_response


class DateParseFailure(ClaimOrganizerError):
    """Date field missing or malformed.

    Always recovered locally by substituting the current date.
    """

    pass


class IdentityAbsent(ClaimOrganizerError):
    """A record carries no identity signal and cannot be auto-merged."""

    pass


class TaskTimeout(ClaimOrganizerError):
    """A queued task exceeded its time bound."""

    def __init__(self, message: str, timeout_seconds: float):
        super().__init__(message, {"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class CollaboratorUnavailable(ClaimOrganizerError):
    """The document source or the destination store cannot be reached."""

    pass
