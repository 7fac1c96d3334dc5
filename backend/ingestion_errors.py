"""
Errors raised by the bulk ingestion core.
"""

from typing import Optional


class IngestionError(Exception):
    """Base class for bulk ingestion failures."""

    def __init__(self, message: str, record: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.record = record


class InvalidBatch(IngestionError):
    """The submitted envelope is not a non-empty list of movie records."""


class ValidationError(IngestionError):
    """A single movie record failed validation."""

    def __init__(self, field: str, message: str, record: Optional[str] = None):
        super().__init__(message, record)
        self.field = field

    def __str__(self):
        label = self.record or "unknown record"
        return f"{label}: {self.field}: {self.message}"


class StorageError(IngestionError):
    """Writing a validated movie record to storage failed."""

    def __str__(self):
        label = self.record or "unknown record"
        return f"{label}: {self.message}"
