"""Error handling module."""
from crossmatch.errors.exceptions import (
    MatchingError,
    DatabaseError,
    GroupWriteError,
    GroupConflictError,
    RecordNotFoundError,
    LinkRejectedError,
)

__all__ = [
    "MatchingError",
    "DatabaseError",
    "GroupWriteError",
    "GroupConflictError",
    "RecordNotFoundError",
    "LinkRejectedError",
]
