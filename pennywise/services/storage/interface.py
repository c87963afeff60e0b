"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the reconciliation logic decoupled from storage implementation

The interface is intentionally simple - every operation is a single
row-level read or write. The store is NOT transactional; compound
operations are made safe by the debt engine's compensation log.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pennywise.models.audit import AuditEvent
from pennywise.models.ledger import Category, Debt, Transaction, User


class LedgerStorageInterface(ABC):
    """
    Abstract interface for one-user-at-a-time ledger storage.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods. Every call may fail with StorageError.
    """

    # -- transactions -----------------------------------------------------

    @abstractmethod
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """
        List all transactions owned by a user.

        Returns:
            Transactions in storage order
        """
        pass

    @abstractmethod
    async def append_transaction(self, user_id: str, transaction: Transaction) -> None:
        """
        Append a transaction to the user's ledger.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> None:
        """
        Delete a transaction by ID.

        Raises:
            NotFoundError: If no such transaction exists
            StorageError: If the delete fails
        """
        pass

    # -- debts ------------------------------------------------------------

    @abstractmethod
    async def list_debts(self, user_id: str) -> list[Debt]:
        """List all debts owned by a user."""
        pass

    @abstractmethod
    async def append_debt(self, user_id: str, debt: Debt) -> None:
        """Append a debt record."""
        pass

    @abstractmethod
    async def update_debt(self, user_id: str, debt: Debt) -> None:
        """
        Replace an existing debt record.

        Raises:
            NotFoundError: If the debt doesn't exist
        """
        pass

    @abstractmethod
    async def delete_debt(self, debt_id: UUID) -> None:
        """
        Delete a debt record by ID.

        Raises:
            NotFoundError: If the debt doesn't exist
        """
        pass

    # -- categories -------------------------------------------------------

    @abstractmethod
    async def list_categories(self, user_id: str) -> list[Category]:
        """List all categories owned by a user."""
        pass

    @abstractmethod
    async def append_category(self, user_id: str, category: Category) -> None:
        """Append a category."""
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> None:
        """
        Delete a category by ID.

        Raises:
            NotFoundError: If the category doesn't exist
        """
        pass

    # -- settings ---------------------------------------------------------

    @abstractmethod
    async def get_spending_limit(self, user_id: str) -> Optional[Decimal]:
        """
        Get the user's spending limit.

        Returns:
            The stored limit, or None if the user never set one
        """
        pass

    @abstractmethod
    async def set_spending_limit(self, user_id: str, limit: Decimal) -> None:
        """Create or replace the user's spending limit."""
        pass


class UserStorageInterface(ABC):
    """Abstract interface for the user registry."""

    @abstractmethod
    async def find_user(self, email: str) -> Optional[User]:
        """
        Find a user by email (case-insensitive).

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def append_user(self, user: User) -> None:
        """Register a new user row."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            limit: Maximum number of events to return
            user_id: Only return events for this user

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
