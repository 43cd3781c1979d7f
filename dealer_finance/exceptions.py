"""Custom exception hierarchy for dealer-finance."""


class DealerFinanceError(Exception):
    """Base exception for all dealer-finance errors."""


class InvalidInputError(DealerFinanceError, ValueError):
    """Raised when loan terms or amounts are rejected before any computation."""


class InconsistentLedgerError(DealerFinanceError):
    """Raised when a ledger operation would leave a sale's payments inconsistent."""


class ConcurrencyConflictError(DealerFinanceError):
    """Raised when another writer changed the sale's ledger first.

    Callers should re-fetch the sale and retry the whole operation.
    """

    retryable = True

    def __init__(self, sale_id: str, expected_version: int, actual_version: int):
        self.sale_id = sale_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Sale {sale_id} ledger changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
