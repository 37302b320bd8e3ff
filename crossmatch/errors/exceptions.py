"""Custom exception hierarchy for matching errors.

Absent inputs and "no match found" are not errors; they are represented by
empty results. Only persistence problems and refused admin actions raise.
"""
from typing import Any, Dict, Optional, Sequence


class MatchingError(Exception):
    """Base exception for all matching engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize error with message and optional structured details."""
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DatabaseError(MatchingError):
    """Raised when database operations fail."""
    pass


class GroupWriteError(DatabaseError):
    """Raised when a group assignment could not be committed.

    Attributes:
        group_id: Group identifier that was being written
        record_ids: Records targeted by the write
    """

    def __init__(
        self,
        message: str,
        group_id: str,
        record_ids: Sequence[int],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.group_id = group_id
        self.record_ids = list(record_ids)


class GroupConflictError(GroupWriteError):
    """Raised when a targeted record was grouped by another writer after it was read."""
    pass


class RecordNotFoundError(MatchingError):
    """Raised when an admin action references a product that does not exist."""
    pass


class LinkRejectedError(MatchingError):
    """Raised when a manual link would put two retailers' records in conflicting groups."""
    pass
