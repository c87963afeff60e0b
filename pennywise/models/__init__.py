"""
Data Models Package

This package contains all Pydantic models used in Pennywise.
All data flowing through the system must conform to these schemas.
"""

from pennywise.models.ledger import (
    FIXED_CATEGORY_DEFINITIONS,
    LENDING_CATEGORY,
    REPAYMENT_CATEGORY,
    Category,
    ConsistencyIssue,
    Debt,
    DebtStatus,
    LedgerSnapshot,
    LedgerSummary,
    Transaction,
    TransactionKind,
    User,
    WeeklyTotal,
    category_key,
)
from pennywise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from pennywise.models.results import ActionResult, ErrorCode

__all__ = [
    # Ledger models
    "FIXED_CATEGORY_DEFINITIONS",
    "LENDING_CATEGORY",
    "REPAYMENT_CATEGORY",
    "Category",
    "ConsistencyIssue",
    "Debt",
    "DebtStatus",
    "LedgerSnapshot",
    "LedgerSummary",
    "Transaction",
    "TransactionKind",
    "User",
    "WeeklyTotal",
    "category_key",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Results
    "ActionResult",
    "ErrorCode",
]
