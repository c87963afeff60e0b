"""
Action Result Models

Every entry point the UI calls returns an ActionResult instead of
raising. The error_code tells the UI which message to render.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from pennywise.models.ledger import (
    Category,
    ConsistencyIssue,
    Debt,
    LedgerSnapshot,
    LedgerSummary,
    Transaction,
)


class ErrorCode(str, Enum):
    """Failure taxonomy surfaced to callers."""
    NOT_FOUND = "not_found"
    ALREADY_PAID = "already_paid"
    CATEGORY_EXISTS = "category_exists"
    CATEGORY_FIXED = "category_fixed"
    CATEGORY_IN_USE = "category_in_use"
    INVALID_INPUT = "invalid_input"
    STORAGE_ERROR = "storage_error"
    RECONCILIATION_FAILED = "reconciliation_failed"
    REPORT_FAILED = "report_failed"
    AUTH_FAILED = "auth_failed"
    USER_EXISTS = "user_exists"


class ActionResult(BaseModel):
    """
    Structured outcome of one user action.

    On success the affected entities are attached; on failure
    error_code and error describe what went wrong.
    """

    success: bool
    error_code: Optional[ErrorCode] = None
    error: Optional[str] = None

    # Entities touched by the action
    transaction: Optional[Transaction] = None
    category: Optional[Category] = None
    debt: Optional[Debt] = None
    deleted_debt_id: Optional[str] = None
    deleted_transaction_ids: list[str] = Field(default_factory=list)
    snapshot: Optional[LedgerSnapshot] = None
    summary: Optional[LedgerSummary] = None
    issues: list[ConsistencyIssue] = Field(default_factory=list)
    report: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, **kwargs) -> "ActionResult":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, error_code: ErrorCode, error: str) -> "ActionResult":
        return cls(success=False, error_code=error_code, error=error)
