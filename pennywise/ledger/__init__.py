"""
Ledger package.

Category rules, the debt reconciliation engine and the pure aggregate
functions used by the dashboard and the monthly report.
"""

from pennywise.ledger.categories import CategoryResolver
from pennywise.ledger.compensation import CompensationLog
from pennywise.ledger.debts import (
    DebtReconciliationEngine,
    TransactionDeletion,
    find_consistency_issues,
)
from pennywise.ledger.errors import (
    CategoryExistsError,
    CategoryFixedError,
    CategoryInUseError,
    CategoryNotFoundError,
    DebtAlreadyPaidError,
    DebtNotFoundError,
    InvalidAmountError,
    LedgerError,
    ReconciliationError,
    TransactionNotFoundError,
)
from pennywise.ledger.locks import UserLockRegistry

__all__ = [
    "CategoryResolver",
    "CompensationLog",
    "DebtReconciliationEngine",
    "TransactionDeletion",
    "find_consistency_issues",
    "UserLockRegistry",
    "LedgerError",
    "DebtNotFoundError",
    "TransactionNotFoundError",
    "CategoryNotFoundError",
    "DebtAlreadyPaidError",
    "CategoryExistsError",
    "CategoryFixedError",
    "CategoryInUseError",
    "InvalidAmountError",
    "ReconciliationError",
]
