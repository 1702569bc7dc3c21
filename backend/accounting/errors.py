# accounting/errors.py
"""
Typed failures raised by the ledger core.

Commands raise these inside their transaction so the database rolls back,
then hand them to the caller through CommandResult.fail(). Each error
carries a stable ``code`` for API clients and the HTTP status views use.
"""

from django.core.exceptions import PermissionDenied


class LedgerError(Exception):
    code = "ledger_error"
    http_status = 400

    def __init__(self, message: str = "", details=None):
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else []

    def __str__(self):
        return self.message

    def as_dict(self) -> dict:
        payload = {"detail": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError):
    """Malformed or unbalanced input. ``details`` lists every offending line."""

    code = "validation_error"


class PeriodClosedError(LedgerError):
    code = "period_closed"
    http_status = 409


class PeriodLockedError(PeriodClosedError):
    code = "period_locked"


class PeriodOverlapError(LedgerError):
    code = "period_overlap"
    http_status = 409


class PeriodNotEmptyError(LedgerError):
    code = "period_not_empty"
    http_status = 409


class NotFoundError(LedgerError):
    code = "not_found"
    http_status = 404


class ForbiddenError(LedgerError, PermissionDenied):
    code = "forbidden"
    http_status = 403


class LedgerIntegrityError(LedgerError):
    """Debits and credits no longer agree. Reports must refuse to answer."""

    code = "ledger_integrity"
    http_status = 500


class ConcurrencyConflictError(LedgerError):
    """Lock or retry budget exhausted. Safe to retry the whole operation."""

    code = "concurrency_conflict"
    http_status = 409
