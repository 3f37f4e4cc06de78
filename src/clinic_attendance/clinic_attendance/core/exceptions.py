from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when the session lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced row does not exist in the tenant scope."""


class TokenCycleConflict(DomainError):
    """Another writer already inserted the token for this (clinic, branch, cycle)."""


class RecordConflict(DomainError):
    """Another writer already created the record for this (employee, clinic, day)."""


class VerifyError(DomainError):
    """A scan could not be turned into a check-in or check-out.

    `record` carries the current attendance record when one exists, so
    callers can show the existing state for benign errors.
    """

    code = "VerifyError"
    benign = False
    retryable = False

    def __init__(self, message: str, *, record: Optional[Any] = None, distance_meters: Optional[float] = None):
        super().__init__(message)
        self.message = message
        self.record = record
        self.distance_meters = distance_meters


class TokenNotFound(VerifyError):
    code = "TokenNotFound"


class TokenExpired(VerifyError):
    code = "TokenExpired"


class OutOfRange(VerifyError):
    code = "OutOfRange"


class InvalidSequence(VerifyError):
    code = "InvalidSequence"
    benign = True


class AlreadyCompleted(VerifyError):
    code = "AlreadyCompleted"
    benign = True


class ConcurrentUpdate(VerifyError):
    code = "ConcurrentUpdate"
    retryable = True
