# payadmin_api/services/ledger_errors.py
from payadmin_api.common.errors import APIError


class LedgerError(APIError):
    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message, payload=None):
        super().__init__(self.code, message, status_code=self.status_code, payload=payload)


class ValidationError(LedgerError):
    """Malformed period, category, field or value."""
    code = "VALIDATION_ERROR"
    status_code = 422


class UnknownFieldError(ValidationError):
    code = "UNKNOWN_FIELD"


class InvalidValueError(ValidationError):
    code = "INVALID_VALUE"


class DuplicateEntryError(LedgerError):
    code = "DUPLICATE_ENTRY"
    status_code = 409


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class LockedError(LedgerError):
    """Mutation attempted on a posted entry."""
    code = "LOCKED"
    status_code = 409


class AlreadyPostedError(LedgerError):
    code = "ALREADY_POSTED"
    status_code = 409
