"""
Domain Exceptions

Every failure the repository or services report to callers is one of these.
Store-level failures live next to the store interface
(fintrack.services.storage.interface) and are wrapped with operation
context before they reach callers.

NotFoundError and ConflictError are expected outcomes that callers branch
on. Nothing here is retried automatically except inside the batch loader.
"""

from typing import Any, Optional


class FintrackError(Exception):
    """Base exception for all domain errors."""
    pass


class ValidationError(FintrackError, ValueError):
    """Bad input shape or values (zero amount, bad enum, malformed month)."""
    pass


class NotFoundError(FintrackError):
    """Record absent."""
    pass


class AlreadyExistsError(FintrackError):
    """Create-time primary key collision."""
    pass


class ConflictError(FintrackError):
    """Optimistic concurrency version mismatch. Re-fetch and resubmit."""

    def __init__(
        self,
        message: str = "Record was modified by another process, please retry",
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(message)


class BatchWriteFailedError(FintrackError):
    """
    A batch chunk still had unprocessed items after the last attempt.

    Chunks before `chunk_index` are committed and stay committed.
    """

    def __init__(
        self,
        chunk_index: int,
        unprocessed: list[dict[str, Any]],
        committed_count: int,
        message: Optional[str] = None,
    ):
        self.chunk_index = chunk_index
        self.unprocessed = unprocessed
        self.committed_count = committed_count
        super().__init__(
            message
            or f"Batch chunk {chunk_index} failed with {len(unprocessed)} "
               f"unprocessed items ({committed_count} items committed before it)"
        )


class DecodeError(FintrackError):
    """A stored item could not be mapped back to an entity."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Cannot decode field '{field}': {message}")
