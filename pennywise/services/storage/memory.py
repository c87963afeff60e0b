"""
In-Memory Storage Implementation

Used by the test suite and as a fallback when Google Sheets isn't
configured. Rows are kept in per-collection lists tagged with the
owning user, mirroring the one-row-per-entity layout of the sheets.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pennywise.models.audit import AuditEvent
from pennywise.models.ledger import Category, Debt, Transaction, User
from pennywise.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    UserStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage backed by Python lists."""

    def __init__(self):
        self._transactions: list[tuple[str, Transaction]] = []
        self._categories: list[tuple[str, Category]] = []
        self._debts: list[tuple[str, Debt]] = []
        self._limits: dict[str, Decimal] = {}

    @staticmethod
    def _owner(user_id: str) -> str:
        return user_id.strip().lower()

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        owner = self._owner(user_id)
        return [t.model_copy() for u, t in self._transactions if u == owner]

    async def append_transaction(self, user_id: str, transaction: Transaction) -> None:
        if any(t.id == transaction.id for _, t in self._transactions):
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions.append((self._owner(user_id), transaction.model_copy()))

    async def delete_transaction(self, transaction_id: UUID) -> None:
        for idx, (_, t) in enumerate(self._transactions):
            if t.id == transaction_id:
                del self._transactions[idx]
                return
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    async def list_debts(self, user_id: str) -> list[Debt]:
        owner = self._owner(user_id)
        return [d.model_copy() for u, d in self._debts if u == owner]

    async def append_debt(self, user_id: str, debt: Debt) -> None:
        if any(d.id == debt.id for _, d in self._debts):
            raise DuplicateError(f"Debt already exists: {debt.id}")
        self._debts.append((self._owner(user_id), debt.model_copy()))

    async def update_debt(self, user_id: str, debt: Debt) -> None:
        for idx, (owner, d) in enumerate(self._debts):
            if d.id == debt.id:
                self._debts[idx] = (owner, debt.model_copy())
                return
        raise NotFoundError(f"Debt not found: {debt.id}")

    async def delete_debt(self, debt_id: UUID) -> None:
        for idx, (_, d) in enumerate(self._debts):
            if d.id == debt_id:
                del self._debts[idx]
                return
        raise NotFoundError(f"Debt not found: {debt_id}")

    async def list_categories(self, user_id: str) -> list[Category]:
        owner = self._owner(user_id)
        return [c.model_copy() for u, c in self._categories if u == owner]

    async def append_category(self, user_id: str, category: Category) -> None:
        self._categories.append((self._owner(user_id), category.model_copy()))

    async def delete_category(self, category_id: UUID) -> None:
        for idx, (_, c) in enumerate(self._categories):
            if c.id == category_id:
                del self._categories[idx]
                return
        raise NotFoundError(f"Category not found: {category_id}")

    async def get_spending_limit(self, user_id: str) -> Optional[Decimal]:
        return self._limits.get(self._owner(user_id))

    async def set_spending_limit(self, user_id: str, limit: Decimal) -> None:
        self._limits[self._owner(user_id)] = limit


class InMemoryUserStorage(UserStorageInterface):
    """User registry backed by a dict keyed on lowercased email."""

    def __init__(self):
        self._users: dict[str, User] = {}

    async def find_user(self, email: str) -> Optional[User]:
        return self._users.get(email.strip().lower())

    async def append_user(self, user: User) -> None:
        if user.email in self._users:
            raise DuplicateError(f"User already exists: {user.email}")
        self._users[user.email] = user


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in memory."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if user_id is None or e.user_id == user_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
