"""
Audit Models for Pennywise

Every ledger mutation is logged for audit purposes.
This provides:
1. Traceability of automatic transactions created by the debt engine
2. Debugging information when a compound write is rolled back
3. A way to spot inconsistencies left behind by a crash

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"

    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_AUTO_CREATED = "category_auto_created"
    CATEGORY_DELETED = "category_deleted"
    FIXED_CATEGORIES_SEEDED = "fixed_categories_seeded"

    # Debts
    DEBT_CREATED = "debt_created"
    DEBT_SETTLED = "debt_settled"
    DEBT_REVERTED = "debt_reverted"
    DEBT_DELETED = "debt_deleted"

    # Consistency
    ROLLBACK_COMPLETED = "rollback_completed"
    ROLLBACK_FAILED = "rollback_failed"
    INCONSISTENCY_DETECTED = "inconsistency_detected"

    # Settings & users
    SPENDING_LIMIT_UPDATED = "spending_limit_updated"
    USER_REGISTERED = "user_registered"
    USER_LOGIN_FAILED = "user_login_failed"

    # Report
    REPORT_GENERATED = "report_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every ledger mutation creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Owner of the ledger the event belongs to
    user_id: Optional[str] = None

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debt', 'transaction', 'category')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.debt_created(user_id, debt_id, ...)
    """

    @staticmethod
    def transaction_added(
        user_id: str,
        transaction_id: UUID,
        kind: str,
        category: str,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{kind.capitalize()} added: {category} {amount}",
            details={"kind": kind, "category": category, "amount": str(amount)},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        user_id: str,
        transaction_id: UUID,
        cascade: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction deleted ({cascade})",
            details={"cascade": cascade},
            is_user_action=True,
        )

    @staticmethod
    def category_added(
        user_id: str,
        category_id: UUID,
        name: str,
        kind: str,
        automatic: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.CATEGORY_AUTO_CREATED
                if automatic
                else AuditEventType.CATEGORY_ADDED
            ),
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            description=f"Category added: {name} ({kind})",
            details={"name": name, "kind": kind, "automatic": automatic},
            is_user_action=not automatic,
        )

    @staticmethod
    def category_deleted(
        user_id: str,
        category_id: UUID,
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            description=f"Category deleted: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def fixed_categories_seeded(
        user_id: str,
        names: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_CATEGORIES_SEEDED,
            user_id=user_id,
            entity_type="category",
            description=f"Seeded {len(names)} fixed categories",
            details={"names": names},
        )

    @staticmethod
    def debt_created(
        user_id: str,
        debt_id: UUID,
        lending_transaction_id: UUID,
        debtor_name: str,
        amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            description=f"Debt recorded: {debtor_name} owes {amount}",
            details={
                "debtor_name": debtor_name,
                "amount": str(amount),
                "lending_transaction_id": str(lending_transaction_id),
            },
            is_user_action=True,
        )

    @staticmethod
    def debt_settled(
        user_id: str,
        debt_id: UUID,
        repayment_transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_SETTLED,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            description="Debt marked as paid",
            details={"repayment_transaction_id": str(repayment_transaction_id)},
            is_user_action=True,
        )

    @staticmethod
    def debt_reverted(
        user_id: str,
        debt_id: UUID,
        repayment_transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_REVERTED,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            description="Repayment removed, debt is unpaid again",
            details={"repayment_transaction_id": str(repayment_transaction_id)},
            is_user_action=True,
        )

    @staticmethod
    def debt_deleted(
        user_id: str,
        debt_id: UUID,
        transaction_ids: list[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_DELETED,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            description=f"Debt deleted with {len(transaction_ids)} linked transactions",
            details={"transaction_ids": [str(t) for t in transaction_ids]},
            is_user_action=True,
        )

    @staticmethod
    def rollback(
        user_id: str,
        operation: str,
        error_message: str,
        succeeded: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ROLLBACK_COMPLETED
                if succeeded
                else AuditEventType.ROLLBACK_FAILED
            ),
            severity=AuditSeverity.WARNING if succeeded else AuditSeverity.CRITICAL,
            user_id=user_id,
            description=(
                f"{operation} failed and was rolled back"
                if succeeded
                else f"{operation} failed and could not be rolled back"
            ),
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def inconsistency_detected(
        user_id: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCONSISTENCY_DETECTED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Ledger has {len(issues)} broken debt links",
            details={"issues": issues},
        )

    @staticmethod
    def spending_limit_updated(
        user_id: str,
        limit: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_LIMIT_UPDATED,
            user_id=user_id,
            entity_type="settings",
            description=f"Spending limit set to {limit}",
            details={"limit": str(limit)},
            is_user_action=True,
        )

    @staticmethod
    def user_registered(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            user_id=email,
            entity_type="user",
            description="User registered",
            is_user_action=True,
        )

    @staticmethod
    def user_login_failed(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=email,
            entity_type="user",
            description="Login rejected: incorrect email or password",
        )

    @staticmethod
    def report_generated(
        user_id: str,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            user_id=user_id,
            entity_type="report",
            description=f"Monthly report generated from {transaction_count} transactions",
            details={"transaction_count": transaction_count},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_code=error_code,
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
