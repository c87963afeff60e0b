"""
Main Orchestrator for Pennywise

This module ties together all the components and defines the entry
points the UI calls:
1. Ledger (load → add/delete transactions, categories, debts → summary)
2. Monthly report (snapshot → figures → Gemini → HTML)
3. Accounts (register, login)

DESIGN DECISION: Every entry point returns an ActionResult and never
raises for an expected failure:
- Ledger rule violations carry their own ErrorCode
- Storage failures become STORAGE_ERROR with the underlying message
- Every mutation and every failure is audited

Cross-collection changes (anything touching a debt) go through the
DebtReconciliationEngine only.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Optional, Union
from uuid import UUID

import structlog

from pennywise.agents import (
    MonthlyReportAgent,
    ReportGenerationError,
    build_report_input,
)
from pennywise.audit import AuditLogger
from pennywise.auth import AuthError, AuthService, UserExistsError
from pennywise.config import get_settings, validate_all_settings
from pennywise.ledger import (
    CategoryResolver,
    DebtReconciliationEngine,
    InvalidAmountError,
    LedgerError,
    UserLockRegistry,
    aggregates,
)
from pennywise.ledger.debts import positive_amount
from pennywise.models.audit import AuditEventBuilder
from pennywise.models.ledger import (
    LedgerSnapshot,
    Transaction,
    TransactionKind,
)
from pennywise.models.results import ActionResult, ErrorCode
from pennywise.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsUserStorage,
    InMemoryLedgerStorage,
    InMemoryUserStorage,
    LedgerStorageInterface,
    StorageError,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates every ledger action for a signed-in user.

    The user id is the account email. Actions that check and then
    write hold the user's lock; debt actions take the same lock inside
    the engine.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        report_agent: Optional[MonthlyReportAgent] = None,
        locks: Optional[UserLockRegistry] = None,
        default_spending_limit: Optional[Decimal] = None,
        today: Callable[[], date] = date.today,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._report_agent = report_agent
        self._locks = locks or UserLockRegistry()
        self._today = today
        self._categories = CategoryResolver(storage, self._audit_logger)
        self._engine = DebtReconciliationEngine(
            storage,
            self._categories,
            audit_logger=self._audit_logger,
            locks=self._locks,
            today=today,
        )
        if default_spending_limit is None:
            default_spending_limit = get_settings().app.default_spending_limit
        self._default_spending_limit = default_spending_limit

    @property
    def engine(self) -> DebtReconciliationEngine:
        return self._engine

    async def _fail(
        self,
        user_id: str,
        operation: str,
        error: Exception,
    ) -> ActionResult:
        """Turn an expected failure into an ActionResult and audit it."""
        if isinstance(error, LedgerError):
            code = error.error_code
        elif isinstance(error, StorageError):
            code = ErrorCode.STORAGE_ERROR
        else:
            code = ErrorCode.INVALID_INPUT

        await self._audit_logger.log_error(
            error_type=type(error).__name__,
            error_message=str(error),
            user_id=user_id,
            error_code=code.value,
            details={"operation": operation},
        )
        return ActionResult.fail(code, str(error))

    # =========================================================================
    # LOAD
    # =========================================================================

    async def _read_snapshot(self, user_id: str) -> LedgerSnapshot:
        transactions = await self._storage.list_transactions(user_id)
        categories = await self._storage.list_categories(user_id)
        debts = await self._storage.list_debts(user_id)
        limit = await self._storage.get_spending_limit(user_id)
        if limit is None:
            limit = self._default_spending_limit

        return LedgerSnapshot(
            user_id=user_id,
            transactions=aggregates.sort_newest_first(transactions),
            categories=categories,
            debts=debts,
            spending_limit=limit,
        )

    async def load_user_data(self, user_id: str) -> ActionResult:
        """
        Load the user's full ledger.

        Seeds any missing fixed categories and checks every debt link;
        broken links are reported in `issues` and audited, not repaired.
        """
        try:
            async with self._locks.lock_for(user_id):
                await self._categories.seed_fixed_categories(user_id)
                snapshot = await self._read_snapshot(user_id)
        except (LedgerError, StorageError) as e:
            return await self._fail(user_id, "load_user_data", e)

        issues = self._engine.check_consistency(snapshot)
        await self._audit_logger.log_inconsistencies(user_id, issues)

        return ActionResult.ok(snapshot=snapshot, issues=issues)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(
        self,
        user_id: str,
        kind: Union[TransactionKind, str],
        category: str,
        amount: Decimal,
        transaction_date: Optional[date] = None,
    ) -> ActionResult:
        """
        Record an income or expense.

        The category is created first if the user doesn't have it yet.
        """
        try:
            transaction = Transaction(
                kind=TransactionKind(kind),
                category=category,
                amount=positive_amount(amount),
                transaction_date=transaction_date or self._today(),
            )
            async with self._locks.lock_for(user_id):
                resolved = await self._categories.ensure_category(
                    user_id, transaction.category, transaction.kind
                )
                # Store under the category's own spelling
                transaction = transaction.model_copy(update={"category": resolved.name})
                await self._storage.append_transaction(user_id, transaction)
        except (LedgerError, StorageError, ValueError) as e:
            return await self._fail(user_id, "add_transaction", e)

        await self._audit_logger.log_transaction_added(
            user_id=user_id,
            transaction_id=transaction.id,
            kind=transaction.kind.value,
            category=transaction.category,
            amount=transaction.amount,
        )
        return ActionResult.ok(transaction=transaction, category=resolved)

    async def delete_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
    ) -> ActionResult:
        """Delete a transaction; a linked debt is deleted or reverted with it."""
        try:
            deletion = await self._engine.delete_transaction(user_id, transaction_id)
        except (LedgerError, StorageError) as e:
            return await self._fail(user_id, "delete_transaction", e)

        messages = {
            "plain": "Transaction deleted.",
            "lending": "Transaction and its debt deleted.",
            "repayment": "Repayment deleted; the debt is unpaid again.",
        }
        return ActionResult.ok(
            debt=deletion.reverted_debt,
            deleted_debt_id=str(deletion.deleted_debt_id) if deletion.deleted_debt_id else None,
            deleted_transaction_ids=[str(i) for i in deletion.deleted_transaction_ids],
            message=messages[deletion.cascade],
        )

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def add_category(
        self,
        user_id: str,
        name: str,
        kind: Union[TransactionKind, str],
        icon: str = "Tag",
    ) -> ActionResult:
        try:
            async with self._locks.lock_for(user_id):
                category = await self._categories.add_category(
                    user_id, name, TransactionKind(kind), icon
                )
        except (LedgerError, StorageError, ValueError) as e:
            return await self._fail(user_id, "add_category", e)
        return ActionResult.ok(category=category)

    async def delete_category(self, user_id: str, category_id: UUID) -> ActionResult:
        try:
            async with self._locks.lock_for(user_id):
                category = await self._categories.delete_category(user_id, category_id)
        except (LedgerError, StorageError) as e:
            return await self._fail(user_id, "delete_category", e)
        return ActionResult.ok(category=category)

    # =========================================================================
    # SPENDING LIMIT
    # =========================================================================

    async def set_spending_limit(self, user_id: str, limit: Decimal) -> ActionResult:
        """Set the monthly spending limit; zero disables it."""
        try:
            limit = Decimal(str(limit))
            if not limit.is_finite() or limit < 0:
                raise InvalidAmountError(f"Spending limit cannot be negative, got {limit}")
            await self._storage.set_spending_limit(user_id, limit)
        except ArithmeticError:
            return await self._fail(
                user_id,
                "set_spending_limit",
                InvalidAmountError(f"Invalid spending limit: {limit!r}"),
            )
        except (LedgerError, StorageError) as e:
            return await self._fail(user_id, "set_spending_limit", e)

        await self._audit_logger.log(
            AuditEventBuilder.spending_limit_updated(user_id=user_id, limit=limit)
        )
        return ActionResult.ok(message="Spending limit updated.")

    # =========================================================================
    # DEBTS
    # =========================================================================

    async def create_debt(
        self,
        user_id: str,
        debtor_name: str,
        amount: Decimal,
        description: str,
        due_date: date,
    ) -> ActionResult:
        """Record money lent; also writes the "Lending" expense."""
        try:
            debt, lending = await self._engine.create_debt(
                user_id, debtor_name, amount, description, due_date
            )
        except (LedgerError, StorageError, ValueError) as e:
            return await self._fail(user_id, "create_debt", e)
        return ActionResult.ok(debt=debt, transaction=lending)

    async def settle_debt(self, user_id: str, debt_id: UUID) -> ActionResult:
        """Mark a debt paid; also writes the "Debt Repayment" income."""
        try:
            debt, repayment = await self._engine.settle_debt(user_id, debt_id)
        except (LedgerError, StorageError) as e:
            return await self._fail(user_id, "settle_debt", e)
        return ActionResult.ok(debt=debt, transaction=repayment)

    async def delete_debt(self, user_id: str, debt_id: UUID) -> ActionResult:
        """Delete a debt along with its lending and repayment transactions."""
        try:
            deleted = await self._engine.delete_debt(user_id, debt_id)
        except (LedgerError, StorageError) as e:
            return await self._fail(user_id, "delete_debt", e)
        return ActionResult.ok(
            deleted_debt_id=str(debt_id),
            deleted_transaction_ids=[str(i) for i in deleted],
        )

    # =========================================================================
    # SUMMARY & REPORT
    # =========================================================================

    async def get_summary(
        self,
        user_id: str,
        month: Optional[date] = None,
    ) -> ActionResult:
        """Dashboard figures, for one month when `month` is given."""
        try:
            snapshot = await self._read_snapshot(user_id)
        except StorageError as e:
            return await self._fail(user_id, "get_summary", e)

        transactions = None
        if month is not None:
            transactions = aggregates.transactions_in_month(snapshot.transactions, month)
        return ActionResult.ok(
            snapshot=snapshot,
            summary=aggregates.summarize(snapshot, transactions),
        )

    async def generate_report(
        self,
        user_id: str,
        month: Optional[date] = None,
    ) -> ActionResult:
        """Ask the report agent for this month's HTML report."""
        if self._report_agent is None:
            return ActionResult.fail(
                ErrorCode.REPORT_FAILED,
                "AI report is not configured. Set GEMINI_API_KEY.",
            )

        try:
            snapshot = await self._read_snapshot(user_id)
        except StorageError as e:
            return await self._fail(user_id, "generate_report", e)

        report_input = build_report_input(snapshot, month or self._today())
        try:
            report = await self._report_agent.generate_report(report_input)
        except ReportGenerationError as e:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e),
                user_id=user_id,
            )
            return ActionResult.fail(ErrorCode.REPORT_FAILED, str(e))

        await self._audit_logger.log(AuditEventBuilder.report_generated(
            user_id=user_id,
            transaction_count=report_input.transaction_count,
        ))
        return ActionResult.ok(report=report)


class AuthFlow:
    """Registration and login."""

    def __init__(self, auth_service: AuthService):
        self._auth = auth_service

    async def register(self, email: str, password: str) -> ActionResult:
        try:
            user = await self._auth.register(email, password)
        except UserExistsError as e:
            return ActionResult.fail(ErrorCode.USER_EXISTS, str(e))
        except AuthError as e:
            return ActionResult.fail(ErrorCode.INVALID_INPUT, str(e))
        except StorageError as e:
            return ActionResult.fail(ErrorCode.STORAGE_ERROR, str(e))
        return ActionResult.ok(message=f"Registered {user.email}.")

    async def login(self, email: str, password: str) -> ActionResult:
        try:
            valid = await self._auth.authenticate(email, password)
        except StorageError as e:
            return ActionResult.fail(ErrorCode.STORAGE_ERROR, str(e))
        if not valid:
            return ActionResult.fail(ErrorCode.AUTH_FAILED, "Incorrect email or password.")
        return ActionResult.ok(message="Login successful.")


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, AuthFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (ledger_flow, auth_flow, sheets_client)
    """
    sheets_client = None
    ledger_storage: LedgerStorageInterface = InMemoryLedgerStorage()
    user_storage: UserStorageInterface = InMemoryUserStorage()
    audit_logger = AuditLogger()  # Local-only logging

    config_status = validate_all_settings()

    if use_storage and not config_status["google_sheets"]:
        logger.warning(
            "storage_not_configured",
            error=config_status.get("google_sheets_error"),
        )
    elif use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            user_storage = GoogleSheetsUserStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Connection failed - continue in memory
            logger.warning("storage_unavailable", error=str(e))
            sheets_client = None

    report_agent = None
    if not config_status["gemini"]:
        logger.warning(
            "report_agent_not_configured",
            error=config_status.get("gemini_error"),
        )
    else:
        try:
            report_agent = MonthlyReportAgent()
        except Exception as e:
            logger.warning("report_agent_not_configured", error=str(e))

    ledger_flow = LedgerFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
        report_agent=report_agent,
    )
    auth_flow = AuthFlow(AuthService(user_storage, audit_logger))

    return ledger_flow, auth_flow, sheets_client
