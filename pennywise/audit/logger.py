"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Traceability of the transactions the debt engine writes on its own
2. A record of every rollback, successful or not
3. User can see history of their actions

The audit logger:
- Gracefully handles failures (doesn't break the ledger if logging fails)
- Always logs locally through structlog, optionally persists to storage
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from pennywise.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from pennywise.models.ledger import ConsistencyIssue
from pennywise.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_debt_created(
        self,
        user_id: str,
        debt_id: UUID,
        lending_transaction_id: UUID,
        debtor_name: str,
        amount: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.debt_created(
            user_id=user_id,
            debt_id=debt_id,
            lending_transaction_id=lending_transaction_id,
            debtor_name=debtor_name,
            amount=amount,
        ))

    async def log_debt_settled(
        self,
        user_id: str,
        debt_id: UUID,
        repayment_transaction_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.debt_settled(
            user_id=user_id,
            debt_id=debt_id,
            repayment_transaction_id=repayment_transaction_id,
        ))

    async def log_debt_reverted(
        self,
        user_id: str,
        debt_id: UUID,
        repayment_transaction_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.debt_reverted(
            user_id=user_id,
            debt_id=debt_id,
            repayment_transaction_id=repayment_transaction_id,
        ))

    async def log_debt_deleted(
        self,
        user_id: str,
        debt_id: UUID,
        transaction_ids: list[UUID],
    ) -> None:
        await self.log(AuditEventBuilder.debt_deleted(
            user_id=user_id,
            debt_id=debt_id,
            transaction_ids=transaction_ids,
        ))

    async def log_transaction_added(
        self,
        user_id: str,
        transaction_id: UUID,
        kind: str,
        category: str,
        amount: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_added(
            user_id=user_id,
            transaction_id=transaction_id,
            kind=kind,
            category=category,
            amount=amount,
        ))

    async def log_transaction_deleted(
        self,
        user_id: str,
        transaction_id: UUID,
        cascade: str,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
            cascade=cascade,
        ))

    async def log_rollback(
        self,
        user_id: str,
        operation: str,
        error_message: str,
        succeeded: bool,
    ) -> None:
        await self.log(AuditEventBuilder.rollback(
            user_id=user_id,
            operation=operation,
            error_message=error_message,
            succeeded=succeeded,
        ))

    async def log_inconsistencies(
        self,
        user_id: str,
        issues: list[ConsistencyIssue],
    ) -> None:
        """Log broken debt links found on load."""
        if not issues:
            return
        await self.log(AuditEventBuilder.inconsistency_detected(
            user_id=user_id,
            issues=[issue.model_dump(mode="json") for issue in issues],
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        user_id: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            user_id=user_id,
            error_code=error_code,
            details=details,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
        ))
