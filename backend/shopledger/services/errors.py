# Overview: Error taxonomy shared by the ledger services.

"""
Ledger error taxonomy.

Every failure a caller can act on has its own class with a stable `code`.
StoreConflict is the only retryable one: the request can be sent again
unchanged. Everything else needs new input (or a different record).
"""


class LedgerError(Exception):
    """Base class for ledger operation errors."""

    code = "LEDGER_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"


class ProductNotFound(LedgerError):
    code = "PRODUCT_NOT_FOUND"
    http_status = 404


class RecordNotFound(LedgerError):
    """A sale, bill, adjustment or payment id that does not exist."""

    code = "RECORD_NOT_FOUND"
    http_status = 404


class InvalidAdjustmentQuantity(LedgerError):
    code = "INVALID_ADJUSTMENT_QUANTITY"


class InvalidPaymentAmount(LedgerError):
    code = "INVALID_PAYMENT_AMOUNT"


class MissingReason(LedgerError):
    code = "MISSING_REASON"


class StoreConflict(LedgerError):
    """Optimistic-concurrency abort that outlived the retry budget."""

    code = "STORE_CONFLICT"
    http_status = 409
    retryable = True


class PartialWriteForbidden(LedgerError):
    """A unit of work would have committed changes staged outside of it."""

    code = "PARTIAL_WRITE_FORBIDDEN"
    http_status = 500


def require_reason(reason: str | None, action: str) -> str:
    """Destructive and corrective operations must carry a justification."""
    text = (reason or "").strip()
    if not text:
        raise MissingReason(f"A reason is required to {action}")
    return text
