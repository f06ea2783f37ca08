"""
Operation Results - Structured success/failure for engine operations.

Every mutating engine operation returns an OperationResult instead of
raising or returning None. A failed result means nothing was changed.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Failure taxonomy shared by the engine and the wire boundary."""
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    INACTIVE_SESSION = "INACTIVE_SESSION"
    ACTIVITY_CLOSED = "ACTIVITY_CLOSED"

    # Boundary-only
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"


@dataclass
class OperationResult:
    """
    Result of one engine operation.

    Contains:
    - Whether it succeeded
    - The produced value (activity, projection, count...)
    - Error text and code (if failed)
    """
    success: bool
    value: Any | None = None
    error: str | None = None
    error_code: ErrorCode | None = None

    @classmethod
    def ok(cls, value: Any = None) -> OperationResult:
        """Create a success result."""
        return cls(success=True, value=value)

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode) -> OperationResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        return self.success
