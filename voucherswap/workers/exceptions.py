"""Custom exceptions for Celery workers.

These exceptions control retry behavior:
- RetryableError: retried with exponential backoff
- PermanentError: not retried
"""

from __future__ import annotations


class WorkerError(Exception):
    """Base exception for all worker errors."""


class RetryableError(WorkerError):
    """Transient failure: store unavailable or a lost serialization race."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(message)
        self.original_error = original_error


class PermanentError(WorkerError):
    """Failure a retry cannot fix, such as bad task arguments."""

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.error_code = error_code
