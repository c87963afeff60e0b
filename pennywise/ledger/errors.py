"""
Ledger Exceptions

Each exception carries the ErrorCode the orchestrator reports back to
the UI, so every rejection can be rendered with a specific message.
"""

from typing import Optional
from uuid import UUID

from pennywise.models.results import ErrorCode


class LedgerError(Exception):
    """Base exception for ledger operations."""

    error_code: ErrorCode = ErrorCode.INVALID_INPUT


class NotFoundInLedgerError(LedgerError):
    """Referenced entity does not exist in the user's ledger."""

    error_code = ErrorCode.NOT_FOUND
    entity = "Entity"

    def __init__(self, entity_id: UUID):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class DebtNotFoundError(NotFoundInLedgerError):
    entity = "Debt"


class TransactionNotFoundError(NotFoundInLedgerError):
    entity = "Transaction"


class CategoryNotFoundError(NotFoundInLedgerError):
    entity = "Category"


class DebtAlreadyPaidError(LedgerError):
    """Settling a debt that is already paid."""

    error_code = ErrorCode.ALREADY_PAID

    def __init__(self, debt_id: UUID):
        self.debt_id = debt_id
        super().__init__("Debt already paid.")


class CategoryExistsError(LedgerError):
    error_code = ErrorCode.CATEGORY_EXISTS

    def __init__(self, name: str, kind: str):
        super().__init__(f'Category "{name}" for {kind} already exists.')


class CategoryFixedError(LedgerError):
    error_code = ErrorCode.CATEGORY_FIXED

    def __init__(self, name: str):
        super().__init__(f'"{name}" is a default category and cannot be deleted.')


class CategoryInUseError(LedgerError):
    error_code = ErrorCode.CATEGORY_IN_USE

    def __init__(self, name: str):
        super().__init__(f'"{name}" is in use by one or more transactions.')


class InvalidAmountError(LedgerError):
    """Amount or limit outside its allowed range."""

    error_code = ErrorCode.INVALID_INPUT


class ReconciliationError(LedgerError):
    """
    A compound write failed AND its rollback failed.

    The ledger may now hold a broken debt link; the consistency check
    on the next load will report it.
    """

    error_code = ErrorCode.RECONCILIATION_FAILED

    def __init__(
        self,
        operation: str,
        cause: BaseException,
        rollback_errors: Optional[list[Exception]] = None,
    ):
        self.operation = operation
        self.cause = cause
        self.rollback_errors = rollback_errors or []
        details = "; ".join(str(e) for e in self.rollback_errors)
        super().__init__(
            f"{operation} failed ({cause}) and could not be rolled back: {details}"
        )
