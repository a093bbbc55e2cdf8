"""
Error taxonomy for tracker operations.

Each error carries the HTTP status the REST layer answers with.
"""


class TrackerError(Exception):
    """Base exception for tracker operations."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    """Input failed a required-field or format check."""
    status_code = 400


class NotFoundError(TrackerError):
    status_code = 404


class ThemeInUseError(TrackerError):
    """A theme cannot be deleted while agreements reference it."""
    status_code = 400


class StoreError(TrackerError):
    """The storage backend failed."""
    status_code = 500


class DuplicateThemeError(ValidationError):
    """Theme names are unique (exact match after trimming)."""

    def __init__(self, message: str = "Theme already exists"):
        super().__init__(message)
