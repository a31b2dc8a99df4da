"""
Typed errors of the settlement core.

Every error carries a machine-readable ``kind`` (what the UI switches on),
a human message and optional structured ``details`` (e.g. the maximum
amount a caller may retry with). Services catch these at their boundary
and turn them into ``Failure`` records; nothing here escapes to HTTP
except ``UnauthorizedError`` raised by the auth dependency.
"""

import enum
from decimal import Decimal
from typing import Any, Optional


class ErrorKind(str, enum.Enum):
    UNAUTHORIZED = "Unauthorized"

    VALIDATION = "ValidationError"
    AMOUNT_NOT_POSITIVE = "AmountNotPositive"
    INVALID_AMOUNT = "InvalidAmount"
    NO_PERIODS_REQUESTED = "NoPeriodsRequested"
    INVALID_PERIOD = "InvalidPeriod"
    INVALID_RATE = "InvalidRate"
    RATE_NOT_SET = "RateNotSet"

    NOT_FOUND = "NotFound"
    OBLIGATION_NOT_FOUND = "ObligationNotFound"
    SUBJECT_NOT_FOUND = "SubjectNotFound"

    ALREADY_SETTLED = "AlreadySettled"
    EXCEEDS_REMAINING = "ExceedsRemaining"
    OBLIGATION_CANCELLED = "ObligationCancelled"
    OBLIGATION_HAS_PAYMENTS = "ObligationHasPayments"
    DUPLICATE_PERIOD = "DuplicatePeriod"
    DUPLICATE_NAME = "DuplicateName"

    CONFLICT = "Conflict"
    STORAGE = "StorageError"


class FinanceError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# ----------------------------
# Access
# ----------------------------
class UnauthorizedError(FinanceError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Not authorized"


# ----------------------------
# Validation (rejected before any store access)
# ----------------------------
class ValidationFailed(FinanceError):
    kind = ErrorKind.VALIDATION


class AmountNotPositive(ValidationFailed):
    kind = ErrorKind.AMOUNT_NOT_POSITIVE
    default_message = "Amount must be greater than 0"


class InvalidAmount(ValidationFailed):
    kind = ErrorKind.INVALID_AMOUNT
    default_message = "Amount must be a number with at most 2 decimal places"


class NoPeriodsRequested(ValidationFailed):
    kind = ErrorKind.NO_PERIODS_REQUESTED
    default_message = "At least one period must be requested"


class InvalidPeriod(ValidationFailed):
    kind = ErrorKind.INVALID_PERIOD
    default_message = "Month must be between 1 and 12"


class InvalidRate(ValidationFailed):
    kind = ErrorKind.INVALID_RATE
    default_message = "Rate must be 0 or greater"


class RateNotSet(ValidationFailed):
    kind = ErrorKind.RATE_NOT_SET
    default_message = "No recurring rate is set for this subject"


# ----------------------------
# Not found (never tells apart "other tenant" from "missing")
# ----------------------------
class NotFoundError(FinanceError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class ObligationNotFound(NotFoundError):
    kind = ErrorKind.OBLIGATION_NOT_FOUND
    default_message = "Obligation not found"


class SubjectNotFound(NotFoundError):
    kind = ErrorKind.SUBJECT_NOT_FOUND
    default_message = "Subject not found"


# ----------------------------
# State
# ----------------------------
class StateError(FinanceError):
    pass


class AlreadySettled(StateError):
    kind = ErrorKind.ALREADY_SETTLED
    default_message = "Obligation is already fully paid"


class ExceedsRemaining(StateError):
    kind = ErrorKind.EXCEEDS_REMAINING

    def __init__(self, max_allowed: Decimal):
        super().__init__(
            f"Contribution exceeds the remaining amount. Maximum: {max_allowed}",
            max_allowed=max_allowed,
        )
        self.max_allowed = max_allowed


class ObligationCancelled(StateError):
    kind = ErrorKind.OBLIGATION_CANCELLED
    default_message = "Obligation is cancelled"


class ObligationHasPayments(StateError):
    kind = ErrorKind.OBLIGATION_HAS_PAYMENTS
    default_message = "Obligation with recorded payments cannot be deleted; cancel it instead"


class DuplicatePeriod(StateError):
    kind = ErrorKind.DUPLICATE_PERIOD
    default_message = "An obligation for this period already exists"


class DuplicateName(StateError):
    kind = ErrorKind.DUPLICATE_NAME
    default_message = "Name already exists"


# ----------------------------
# Infrastructure
# ----------------------------
class ConflictError(FinanceError):
    kind = ErrorKind.CONFLICT
    default_message = "Obligation was modified concurrently, please retry"


class StorageError(FinanceError):
    kind = ErrorKind.STORAGE
    default_message = "Unable to save changes due to database constraints"


HTTP_STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.AMOUNT_NOT_POSITIVE: 400,
    ErrorKind.INVALID_AMOUNT: 400,
    ErrorKind.NO_PERIODS_REQUESTED: 400,
    ErrorKind.INVALID_PERIOD: 400,
    ErrorKind.INVALID_RATE: 400,
    ErrorKind.RATE_NOT_SET: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.OBLIGATION_NOT_FOUND: 404,
    ErrorKind.SUBJECT_NOT_FOUND: 404,
    ErrorKind.ALREADY_SETTLED: 409,
    ErrorKind.EXCEEDS_REMAINING: 409,
    ErrorKind.OBLIGATION_CANCELLED: 409,
    ErrorKind.OBLIGATION_HAS_PAYMENTS: 409,
    ErrorKind.DUPLICATE_PERIOD: 409,
    ErrorKind.DUPLICATE_NAME: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORAGE: 500,
}
