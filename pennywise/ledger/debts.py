"""
Debt Reconciliation Engine

The only code allowed to change a debt together with its transactions.

A debt owns two links:
- lending_transaction_id: the "Lending" expense written when money goes out
- repayment_transaction_id: the "Debt Repayment" income written on settle

DESIGN DECISION: Storage is a spreadsheet without transactions, so every
compound operation runs as a sequence of single-row calls recorded in a
CompensationLog. If a step fails the completed steps are undone in
reverse order. Writes are ordered so that a reference is always written
after its target and removed before it; a crash mid-way can leave an
unlinked transaction, which find_consistency_issues reports, but never
a debt pointing at nothing. Cancellation rolls back like any failure.

All operations for one user are serialised by a per-user asyncio.Lock.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Literal, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from pennywise.audit import AuditLogger
from pennywise.ledger.categories import CategoryResolver
from pennywise.ledger.compensation import CompensationLog
from pennywise.ledger.errors import (
    DebtAlreadyPaidError,
    DebtNotFoundError,
    InvalidAmountError,
    ReconciliationError,
    TransactionNotFoundError,
)
from pennywise.ledger.locks import UserLockRegistry
from pennywise.models.ledger import (
    LENDING_CATEGORY,
    REPAYMENT_CATEGORY,
    ConsistencyIssue,
    Debt,
    DebtStatus,
    LedgerSnapshot,
    Transaction,
    TransactionKind,
)
from pennywise.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class TransactionDeletion(BaseModel):
    """What delete_transaction actually did."""

    transaction_id: UUID
    cascade: Literal["plain", "lending", "repayment"]
    deleted_debt_id: Optional[UUID] = None
    reverted_debt: Optional[Debt] = None
    deleted_transaction_ids: list[UUID] = Field(default_factory=list)


class DebtReconciliationEngine:
    """
    Creates, settles and deletes debts, keeping both links valid.

    Usage:
        engine = DebtReconciliationEngine(storage, categories, audit_logger)
        debt, lending = await engine.create_debt(
            "me@example.com", "Alex", Decimal("50000"), "lunch money", date(2025, 1, 15)
        )
        debt, repayment = await engine.settle_debt("me@example.com", debt.id)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        categories: CategoryResolver,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[UserLockRegistry] = None,
        today: Callable[[], date] = date.today,
    ):
        self._storage = storage
        self._categories = categories
        self._audit_logger = audit_logger or AuditLogger()
        self._locks = locks or UserLockRegistry()
        self._today = today

    @property
    def locks(self) -> UserLockRegistry:
        return self._locks

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_debt(
        self,
        user_id: str,
        debtor_name: str,
        amount: Decimal,
        description: str,
        due_date: date,
    ) -> tuple[Debt, Transaction]:
        """
        Record money lent out.

        Writes a "Lending" expense dated today, then the unpaid debt
        that references it.

        Returns:
            (debt, lending_transaction)

        Raises:
            InvalidAmountError: amount is not positive
            StorageError: a write failed and was rolled back
            ReconciliationError: a write failed and rollback failed too
        """
        amount = positive_amount(amount)
        lending = Transaction(
            kind=TransactionKind.EXPENSE,
            category=LENDING_CATEGORY,
            amount=amount,
            transaction_date=self._today(),
        )
        debt = Debt(
            debtor_name=debtor_name,
            amount=amount,
            description=description,
            due_date=due_date,
            lending_transaction_id=lending.id,
        )

        async with self._locks.lock_for(user_id):
            await self._categories.ensure_category(
                user_id, LENDING_CATEGORY, TransactionKind.EXPENSE
            )

            log = CompensationLog("create_debt")
            try:
                await self._storage.append_transaction(user_id, lending)
                log.record(
                    "append lending transaction",
                    lambda: self._storage.delete_transaction(lending.id),
                )
                await self._storage.append_debt(user_id, debt)
            except BaseException as e:
                await self._abort(user_id, log, e)

        await self._audit_logger.log_debt_created(
            user_id=user_id,
            debt_id=debt.id,
            lending_transaction_id=lending.id,
            debtor_name=debt.debtor_name,
            amount=amount,
        )
        return debt, lending

    # =========================================================================
    # SETTLE
    # =========================================================================

    async def settle_debt(self, user_id: str, debt_id: UUID) -> tuple[Debt, Transaction]:
        """
        Mark a debt as repaid.

        Writes a "Debt Repayment" income for the debt's amount, then
        flips the debt to PAID with the new repayment link.

        Raises:
            DebtNotFoundError: No such debt for this user
            DebtAlreadyPaidError: The debt is already paid; nothing is written
        """
        async with self._locks.lock_for(user_id):
            debts = await self._storage.list_debts(user_id)
            debt = next((d for d in debts if d.id == debt_id), None)
            if debt is None:
                raise DebtNotFoundError(debt_id)
            if debt.is_paid:
                raise DebtAlreadyPaidError(debt_id)

            repayment = Transaction(
                kind=TransactionKind.INCOME,
                category=REPAYMENT_CATEGORY,
                amount=debt.amount,
                transaction_date=self._today(),
            )
            settled = _with_status(debt, DebtStatus.PAID, repayment.id)

            await self._categories.ensure_category(
                user_id, REPAYMENT_CATEGORY, TransactionKind.INCOME
            )

            log = CompensationLog("settle_debt")
            try:
                await self._storage.append_transaction(user_id, repayment)
                log.record(
                    "append repayment transaction",
                    lambda: self._storage.delete_transaction(repayment.id),
                )
                await self._storage.update_debt(user_id, settled)
            except BaseException as e:
                await self._abort(user_id, log, e)

        await self._audit_logger.log_debt_settled(
            user_id=user_id,
            debt_id=debt_id,
            repayment_transaction_id=repayment.id,
        )
        return settled, repayment

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_debt(self, user_id: str, debt_id: UUID) -> list[UUID]:
        """
        Delete a debt with its lending and repayment transactions.

        Returns:
            Ids of the transactions that were deleted

        Raises:
            DebtNotFoundError: No such debt for this user
        """
        async with self._locks.lock_for(user_id):
            debts = await self._storage.list_debts(user_id)
            debt = next((d for d in debts if d.id == debt_id), None)
            if debt is None:
                raise DebtNotFoundError(debt_id)

            transactions = await self._storage.list_transactions(user_id)
            deleted = await self._remove_debt(user_id, debt, transactions, "delete_debt")

        await self._audit_logger.log_debt_deleted(
            user_id=user_id,
            debt_id=debt_id,
            transaction_ids=deleted,
        )
        return deleted

    async def delete_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> TransactionDeletion:
        """
        Delete a transaction and reconcile any debt linked to it.

        - Lending transaction: the owning debt is deleted too, along
          with its repayment transaction if paid
        - Repayment transaction: the debt goes back to UNPAID
        - Anything else: plain delete

        Raises:
            TransactionNotFoundError: No such transaction for this user
        """
        async with self._locks.lock_for(user_id):
            transactions = await self._storage.list_transactions(user_id)
            transaction = next((t for t in transactions if t.id == transaction_id), None)
            if transaction is None:
                raise TransactionNotFoundError(transaction_id)

            debts = await self._storage.list_debts(user_id)
            snapshot = LedgerSnapshot(
                user_id=user_id, transactions=transactions, debts=debts
            )
            lending_debt = snapshot.debt_for_lending(transaction_id)
            repayment_debt = snapshot.debt_for_repayment(transaction_id)

            if lending_debt:
                deleted = await self._remove_debt(
                    user_id, lending_debt, transactions, "delete_lending_transaction"
                )
                result = TransactionDeletion(
                    transaction_id=transaction_id,
                    cascade="lending",
                    deleted_debt_id=lending_debt.id,
                    deleted_transaction_ids=deleted,
                )
            elif repayment_debt:
                reverted = await self._revert_debt(user_id, repayment_debt, transaction)
                result = TransactionDeletion(
                    transaction_id=transaction_id,
                    cascade="repayment",
                    reverted_debt=reverted,
                    deleted_transaction_ids=[transaction_id],
                )
            else:
                await self._storage.delete_transaction(transaction_id)
                result = TransactionDeletion(
                    transaction_id=transaction_id,
                    cascade="plain",
                    deleted_transaction_ids=[transaction_id],
                )

        await self._audit_logger.log_transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
            cascade=result.cascade,
        )
        if result.deleted_debt_id:
            await self._audit_logger.log_debt_deleted(
                user_id=user_id,
                debt_id=result.deleted_debt_id,
                transaction_ids=result.deleted_transaction_ids,
            )
        if result.reverted_debt:
            await self._audit_logger.log_debt_reverted(
                user_id=user_id,
                debt_id=result.reverted_debt.id,
                repayment_transaction_id=transaction_id,
            )
        return result

    async def _remove_debt(
        self,
        user_id: str,
        debt: Debt,
        transactions: list[Transaction],
        operation: str,
    ) -> list[UUID]:
        """Delete the debt, then its repayment, then its lending transaction."""
        by_id = {t.id: t for t in transactions}
        linked = [
            tx_id for tx_id in (debt.repayment_transaction_id, debt.lending_transaction_id)
            if tx_id is not None
        ]

        log = CompensationLog(operation)
        deleted: list[UUID] = []
        try:
            await self._storage.delete_debt(debt.id)
            log.record("delete debt", lambda: self._storage.append_debt(user_id, debt))

            for tx_id in linked:
                original = by_id.get(tx_id)
                if original is None:
                    logger.warning(
                        "linked_transaction_missing",
                        user_id=user_id,
                        debt_id=str(debt.id),
                        transaction_id=str(tx_id),
                    )
                    continue
                await self._storage.delete_transaction(tx_id)
                log.record(
                    f"delete transaction {tx_id}",
                    lambda tx=original: self._storage.append_transaction(user_id, tx),
                )
                deleted.append(tx_id)
        except BaseException as e:
            await self._abort(user_id, log, e)
        return deleted

    async def _revert_debt(
        self,
        user_id: str,
        debt: Debt,
        repayment: Transaction,
    ) -> Debt:
        """Unlink the repayment, then delete it."""
        reverted = _with_status(debt, DebtStatus.UNPAID, None)

        log = CompensationLog("delete_repayment_transaction")
        try:
            await self._storage.update_debt(user_id, reverted)
            log.record("revert debt", lambda: self._storage.update_debt(user_id, debt))
            await self._storage.delete_transaction(repayment.id)
        except BaseException as e:
            await self._abort(user_id, log, e)
        return reverted

    async def _abort(self, user_id: str, log: CompensationLog, error: BaseException) -> None:
        """
        Roll back a failed or cancelled compound write and re-raise.

        Raises the original error when the rollback succeeded,
        ReconciliationError when it did not.
        """
        failures = await log.rollback()
        await self._audit_logger.log_rollback(
            user_id=user_id,
            operation=log.operation,
            error_message=str(error) or type(error).__name__,
            succeeded=not failures,
        )
        if failures:
            raise ReconciliationError(log.operation, error, failures) from error
        raise error

    # =========================================================================
    # CONSISTENCY
    # =========================================================================

    def check_consistency(self, snapshot: LedgerSnapshot) -> list[ConsistencyIssue]:
        return find_consistency_issues(snapshot)


def find_consistency_issues(snapshot: LedgerSnapshot) -> list[ConsistencyIssue]:
    """
    Find every debt whose links don't hold.

    Checks that each lending link points at a "Lending" expense of the
    debt's amount, that each paid debt's repayment link points at a
    "Debt Repayment" income of the same amount, and that no transaction
    is linked from more than one place.

    Also reports "Lending" expenses and "Debt Repayment" incomes that no
    debt links to, which is what an interrupted create or settle leaves.
    """
    issues: list[ConsistencyIssue] = []
    link_owners: dict[UUID, UUID] = {}

    for debt in snapshot.debts:
        for tx_id in debt.linked_transaction_ids:
            owner = link_owners.setdefault(tx_id, debt.id)
            if owner != debt.id:
                issues.append(ConsistencyIssue(
                    debt_id=debt.id,
                    transaction_id=tx_id,
                    issue_type="double_link",
                    message=f"Transaction {tx_id} is linked to debts {owner} and {debt.id}",
                ))

        lending = snapshot.find_transaction(debt.lending_transaction_id)
        if lending is None:
            issues.append(ConsistencyIssue(
                debt_id=debt.id,
                transaction_id=debt.lending_transaction_id,
                issue_type="missing_lending",
                message=f"Debt {debt.id} points at a missing lending transaction",
            ))
        elif not _is_link_target(lending, debt, TransactionKind.EXPENSE, LENDING_CATEGORY):
            issues.append(ConsistencyIssue(
                debt_id=debt.id,
                transaction_id=lending.id,
                issue_type="lending_mismatch",
                message=f"Lending transaction {lending.id} does not match debt {debt.id}",
            ))

        if debt.repayment_transaction_id is None:
            continue
        repayment = snapshot.find_transaction(debt.repayment_transaction_id)
        if repayment is None:
            issues.append(ConsistencyIssue(
                debt_id=debt.id,
                transaction_id=debt.repayment_transaction_id,
                issue_type="missing_repayment",
                message=f"Paid debt {debt.id} points at a missing repayment transaction",
            ))
        elif not _is_link_target(repayment, debt, TransactionKind.INCOME, REPAYMENT_CATEGORY):
            issues.append(ConsistencyIssue(
                debt_id=debt.id,
                transaction_id=repayment.id,
                issue_type="repayment_mismatch",
                message=f"Repayment transaction {repayment.id} does not match debt {debt.id}",
            ))

    for transaction in snapshot.transactions:
        if transaction.id in link_owners:
            continue
        if _has_category(transaction, TransactionKind.EXPENSE, LENDING_CATEGORY):
            issues.append(ConsistencyIssue(
                transaction_id=transaction.id,
                issue_type="unlinked_lending",
                message=f"Lending transaction {transaction.id} has no debt",
            ))
        elif _has_category(transaction, TransactionKind.INCOME, REPAYMENT_CATEGORY):
            issues.append(ConsistencyIssue(
                transaction_id=transaction.id,
                issue_type="unlinked_repayment",
                message=f"Repayment transaction {transaction.id} has no paid debt",
            ))

    return issues


def _has_category(transaction: Transaction, kind: TransactionKind, category: str) -> bool:
    return (
        transaction.kind == kind
        and transaction.category.strip().lower() == category.lower()
    )


def _is_link_target(
    transaction: Transaction,
    debt: Debt,
    kind: TransactionKind,
    category: str,
) -> bool:
    return _has_category(transaction, kind, category) and transaction.amount == debt.amount


def _with_status(debt: Debt, status: DebtStatus, repayment_id: Optional[UUID]) -> Debt:
    # model_validate so the status/link rule is checked on the new copy
    return Debt.model_validate({
        **debt.model_dump(),
        "status": status,
        "repayment_transaction_id": repayment_id,
    })


def positive_amount(amount) -> Decimal:
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")
    return amount
