"""
Category Resolver

Owns every rule about categories:
- (name, kind) is unique, case-insensitively
- Fixed categories are seeded once per user and can never be deleted
- A category still referenced by a transaction can't be deleted
- Transactions may name a category that doesn't exist yet; it is
  created on the spot through ensure_category()

The resolver does not lock. Callers that combine a check with a write
hold the user's lock from UserLockRegistry.
"""

from typing import Optional
from uuid import UUID

from pennywise.audit import AuditLogger
from pennywise.models.audit import AuditEventBuilder
from pennywise.models.ledger import (
    FIXED_CATEGORY_DEFINITIONS,
    Category,
    TransactionKind,
    category_key,
)
from pennywise.ledger.errors import (
    CategoryExistsError,
    CategoryFixedError,
    CategoryInUseError,
    CategoryNotFoundError,
)
from pennywise.services.storage import LedgerStorageInterface


FIXED_CATEGORIES_BY_KEY = {
    category_key(name, kind): (name, kind, icon)
    for name, kind, icon in FIXED_CATEGORY_DEFINITIONS
}


def fixed_category(name: str, kind: TransactionKind) -> Optional[Category]:
    """Build a fresh fixed category if (name, kind) is a built-in one."""
    definition = FIXED_CATEGORIES_BY_KEY.get(category_key(name, kind))
    if definition is None:
        return None
    fixed_name, fixed_kind, icon = definition
    return Category(name=fixed_name, kind=fixed_kind, icon=icon, is_fixed=True)


def find_category(
    categories: list[Category],
    name: str,
    kind: TransactionKind,
) -> Optional[Category]:
    return next((c for c in categories if c.matches(name, kind)), None)


class CategoryResolver:
    """Creates, seeds and deletes a user's categories."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def ensure_category(
        self,
        user_id: str,
        name: str,
        kind: TransactionKind,
    ) -> Category:
        """
        Return the category for (name, kind), creating it if needed.

        Built-in names are created as their fixed category; anything
        else becomes a plain user category. Idempotent.
        """
        categories = await self._storage.list_categories(user_id)
        existing = find_category(categories, name, kind)
        if existing:
            return existing

        category = fixed_category(name, kind) or Category(name=name, kind=kind)
        await self._storage.append_category(user_id, category)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.category_added(
                user_id=user_id,
                category_id=category.id,
                name=category.name,
                kind=kind.value,
                automatic=True,
            ))
        return category

    async def add_category(
        self,
        user_id: str,
        name: str,
        kind: TransactionKind,
        icon: str = "Tag",
    ) -> Category:
        """
        Create a user category.

        Raises:
            CategoryExistsError: If (name, kind) is already taken
        """
        category = Category(name=name, kind=kind, icon=icon)
        categories = await self._storage.list_categories(user_id)
        if find_category(categories, category.name, kind):
            raise CategoryExistsError(category.name, kind.value)

        await self._storage.append_category(user_id, category)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.category_added(
                user_id=user_id,
                category_id=category.id,
                name=category.name,
                kind=kind.value,
            ))
        return category

    async def delete_category(self, user_id: str, category_id: UUID) -> Category:
        """
        Delete a user category.

        Raises:
            CategoryNotFoundError: No such category for this user
            CategoryFixedError: The category is built in
            CategoryInUseError: A transaction still references it
        """
        categories = await self._storage.list_categories(user_id)
        category = next((c for c in categories if c.id == category_id), None)
        if category is None:
            raise CategoryNotFoundError(category_id)
        if category.is_fixed:
            raise CategoryFixedError(category.name)

        transactions = await self._storage.list_transactions(user_id)
        if any(category.matches(t.category, t.kind) for t in transactions):
            raise CategoryInUseError(category.name)

        await self._storage.delete_category(category_id)

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.category_deleted(
                user_id=user_id,
                category_id=category_id,
                name=category.name,
            ))
        return category

    async def seed_fixed_categories(self, user_id: str) -> list[Category]:
        """
        Add the built-in categories the user doesn't have yet.

        Matching is by (name, kind), case-insensitive. Existing
        categories are never duplicated or removed, even when a user
        category already uses a built-in name.
        """
        categories = await self._storage.list_categories(user_id)
        existing = {c.key for c in categories}

        added = []
        for name, kind, icon in FIXED_CATEGORY_DEFINITIONS:
            if category_key(name, kind) in existing:
                continue
            category = Category(name=name, kind=kind, icon=icon, is_fixed=True)
            await self._storage.append_category(user_id, category)
            existing.add(category.key)
            added.append(category)

        if added and self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.fixed_categories_seeded(
                user_id=user_id,
                names=[c.name for c in added],
            ))
        return added
