"""Error taxonomy for the pitch-count handlers.

Every error carries the HTTP status it surfaces as. Upstream failures keep the
response body from Google in ``details`` so it reaches the JSON envelope.
"""
from __future__ import annotations


class PitchCountError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, *, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigError(PitchCountError):
    """A required setting is missing or unusable."""


class AuthError(PitchCountError):
    """The token endpoint rejected the signed assertion."""


class MetadataError(PitchCountError):
    """Reading spreadsheet metadata (tab titles) failed."""


class ReadError(PitchCountError):
    """Reading a cell range failed."""


class WriteError(PitchCountError):
    """Writing, appending or creating a tab failed."""


class CapacityError(PitchCountError):
    """No free row was found inside the insertion scan window."""

    def __init__(self, tab_title: str, start_row: int, max_rows: int) -> None:
        self.tab_title = tab_title
        self.start_row = start_row
        self.max_rows = max_rows
        super().__init__(
            f"No free row in '{tab_title}' between rows {start_row} and "
            f"{start_row + max_rows - 1}."
        )


class NotFoundError(PitchCountError):
    """The identifier was not found in any candidate tab."""

    status_code = 404


class ValidationError(PitchCountError):
    """The request is missing required fields or is malformed."""

    status_code = 400


__all__ = [
    "PitchCountError",
    "ConfigError",
    "AuthError",
    "MetadataError",
    "ReadError",
    "WriteError",
    "CapacityError",
    "NotFoundError",
    "ValidationError",
]
