"""
Shared fixtures.

Everything runs on in-memory storage; no Google Sheets or Gemini calls.
"""

import asyncio
from datetime import date
from types import SimpleNamespace
from typing import Optional

import pytest

from pennywise.audit import AuditLogger
from pennywise.ledger import CategoryResolver, DebtReconciliationEngine
from pennywise.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    InMemoryUserStorage,
    StorageError,
)


USER = "alex@example.com"
TODAY = date(2025, 1, 10)


class FlakyLedgerStorage(InMemoryLedgerStorage):
    """
    In-memory storage that fails chosen calls.

    Add a method name to `failing` and every call to it raises
    StorageError until it is removed again. A name in `stalled` makes
    the call hang until the caller is cancelled.
    """

    def __init__(self):
        super().__init__()
        self.failing: set[str] = set()
        self.stalled: set[str] = set()
        self.calls: list[str] = []

    async def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise StorageError(f"Simulated {name} failure")
        if name in self.stalled:
            await asyncio.Event().wait()

    async def append_transaction(self, user_id, transaction):
        await self._check("append_transaction")
        await super().append_transaction(user_id, transaction)

    async def delete_transaction(self, transaction_id):
        await self._check("delete_transaction")
        await super().delete_transaction(transaction_id)

    async def append_debt(self, user_id, debt):
        await self._check("append_debt")
        await super().append_debt(user_id, debt)

    async def update_debt(self, user_id, debt):
        await self._check("update_debt")
        await super().update_debt(user_id, debt)

    async def delete_debt(self, debt_id):
        await self._check("delete_debt")
        await super().delete_debt(debt_id)

    async def append_category(self, user_id, category):
        await self._check("append_category")
        await super().append_category(user_id, category)

    async def set_spending_limit(self, user_id, limit):
        await self._check("set_spending_limit")
        await super().set_spending_limit(user_id, limit)


class FakeGeminiModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text: Optional[str] = "<h1>Report</h1>", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    async def generate_content_async(self, prompt: str):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture
def storage():
    return FlakyLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def user_storage():
    return InMemoryUserStorage()


@pytest.fixture
def categories(storage, audit_logger):
    return CategoryResolver(storage, audit_logger)


@pytest.fixture
def engine(storage, categories, audit_logger):
    return DebtReconciliationEngine(
        storage,
        categories,
        audit_logger=audit_logger,
        today=lambda: TODAY,
    )


@pytest.fixture
def user_id():
    return USER


@pytest.fixture
def fake_model():
    return FakeGeminiModel()
