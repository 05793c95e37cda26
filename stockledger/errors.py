"""Typed failures raised by the ledger core.

Routers never translate these by hand: ``main.py`` registers one handler for
``LedgerError`` that turns ``status_code`` and ``code`` into the JSON body.
"""


class LedgerError(Exception):
    """Base exception for catalog, ledger and workflow operations"""

    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LedgerError):
    """Referenced item, request or user does not exist"""

    status_code = 404
    code = "not_found"


class InsufficientStockError(LedgerError):
    """Raised when an exit asks for more than the available quantity"""

    status_code = 409
    code = "insufficient_stock"

    def __init__(self, item_id: str, item_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {item_name}. Available: {available}, requested: {requested}"
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class ValidationError(LedgerError, ValueError):
    """Missing or malformed input, caught before any transaction starts"""

    status_code = 422
    code = "validation_error"


class InvalidTransitionError(LedgerError):
    """Workflow transition attempted from a state that does not allow it"""

    status_code = 409
    code = "invalid_transition"


class StorageConflictError(LedgerError):
    """A concurrent transaction wrote the same rows first"""

    status_code = 409
    code = "storage_conflict"


class UploadFailureError(LedgerError):
    status_code = 502
    code = "upload_failure"


class PermissionDeniedError(LedgerError):
    status_code = 403
    code = "permission_denied"
