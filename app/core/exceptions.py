"""
Ledger error taxonomy.

Every failure a caller can act on has its own class so that callers never
have to match on message text. The API layer renders any LedgerError as
``{"error": message, "code": <class name>}`` with ``status_code``.
"""


class LedgerError(Exception):
    """Base class for ledger failures surfaced to callers."""

    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidAmount(LedgerError):
    """Non-positive, negative or non-numeric money amount."""
    status_code = 400


class RepresentativeNotFound(LedgerError):
    status_code = 404

    def __init__(self, representative_id: str):
        super().__init__(f"Representative {representative_id} not found")
        self.representative_id = representative_id


class PaymentNotFound(LedgerError):
    status_code = 404

    def __init__(self, payment_id: str):
        super().__init__(f"Payment {payment_id} not found")
        self.payment_id = payment_id


class DuplicateRecord(LedgerError):
    """Unique key (representative code, invoice number) already taken."""
    status_code = 409


class ConcurrentAllocationInProgress(LedgerError):
    """The representative lock could not be acquired before the timeout."""
    status_code = 409
    retryable = True

    def __init__(self, representative_id: str):
        super().__init__(
            f"Another allocation or reconciliation is running for representative {representative_id}"
        )
        self.representative_id = representative_id


class PersistenceFailure(LedgerError):
    """Transaction aborted and rolled back. Safe to retry."""
    status_code = 503
    retryable = True
