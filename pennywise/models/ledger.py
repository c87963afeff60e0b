"""
Core Data Models for Pennywise

These models define the strict schemas for everything stored in a
user's ledger. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep the debt/transaction link rules in one place

DESIGN DECISION: Transactions and debts are stored as independent
collections linked only by id fields. The link rules live on the Debt
model (status vs repayment link) and in the reconciliation engine
(cross-collection changes). Nothing else may rewrite the links.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of money flow. Categories carry the same kind."""
    INCOME = "income"
    EXPENSE = "expense"


class DebtStatus(str, Enum):
    """
    Debt repayment status.

    A paid debt is not terminal: deleting its repayment transaction
    returns it to UNPAID.
    """
    UNPAID = "unpaid"
    PAID = "paid"


# Categories the debt engine writes to
LENDING_CATEGORY = "Lending"
REPAYMENT_CATEGORY = "Debt Repayment"

# Built-in categories seeded for every user: (name, kind, icon)
FIXED_CATEGORY_DEFINITIONS: tuple[tuple[str, TransactionKind, str], ...] = (
    ("Salary", TransactionKind.INCOME, "Landmark"),
    (REPAYMENT_CATEGORY, TransactionKind.INCOME, "HandCoins"),
    (LENDING_CATEGORY, TransactionKind.EXPENSE, "HandHeart"),
    ("Breakfast", TransactionKind.EXPENSE, "Coffee"),
    ("Lunch", TransactionKind.EXPENSE, "Utensils"),
    ("Dinner", TransactionKind.EXPENSE, "UtensilsCrossed"),
    ("Snacking", TransactionKind.EXPENSE, "Cookie"),
    ("Hangout", TransactionKind.EXPENSE, "Users"),
    ("Monthly Shopping", TransactionKind.EXPENSE, "ShoppingBag"),
)


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    Created by the user directly, or by the debt engine as a
    "Lending" expense / "Debt Repayment" income.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    kind: TransactionKind
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Name of a category with the same kind"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount; direction comes from kind"
    )
    transaction_date: date = Field(
        ...,
        description="Calendar date of the transaction"
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with expenses negated."""
        if self.kind == TransactionKind.EXPENSE:
            return -self.amount
        return self.amount


class Category(BaseModel):
    """
    A transaction category.

    Uniqueness is on (lowercased name, kind). Fixed categories are
    built in and can never be deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    kind: TransactionKind
    icon: str = Field(
        default="Tag",
        description="Icon name shown next to the category"
    )
    is_fixed: bool = Field(
        default=False,
        description="Built-in category that cannot be deleted"
    )

    @property
    def key(self) -> tuple[str, TransactionKind]:
        """Case-insensitive identity used for uniqueness checks."""
        return category_key(self.name, self.kind)

    def matches(self, name: str, kind: TransactionKind) -> bool:
        return self.key == category_key(name, kind)


def category_key(name: str, kind: TransactionKind) -> tuple[str, TransactionKind]:
    return name.strip().lower(), kind


class Debt(BaseModel):
    """
    Money lent to someone.

    INVARIANTS:
    - UNPAID debts have no repayment transaction
    - PAID debts always have one
    - The lending transaction exists for the lifetime of the debt
      (enforced by the reconciliation engine, not here)
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    debtor_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Who owes the money"
    )
    amount: Decimal = Field(..., gt=0)
    description: str = Field(default="", max_length=1000)
    due_date: date
    status: DebtStatus = Field(default=DebtStatus.UNPAID)
    icon: str = Field(default="BookUser")

    lending_transaction_id: UUID = Field(
        ...,
        description="Expense transaction created when the money was lent"
    )
    repayment_transaction_id: Optional[UUID] = Field(
        default=None,
        description="Income transaction created when the debt was settled"
    )

    @model_validator(mode='after')
    def validate_repayment_link(self) -> 'Debt':
        """Status and repayment link must agree."""
        if self.status == DebtStatus.PAID and self.repayment_transaction_id is None:
            raise ValueError("Paid debt must reference a repayment transaction")
        if self.status == DebtStatus.UNPAID and self.repayment_transaction_id is not None:
            raise ValueError("Unpaid debt cannot reference a repayment transaction")
        if self.repayment_transaction_id == self.lending_transaction_id:
            raise ValueError("Lending and repayment transactions must differ")
        return self

    @property
    def is_paid(self) -> bool:
        return self.status == DebtStatus.PAID

    @property
    def linked_transaction_ids(self) -> list[UUID]:
        ids = [self.lending_transaction_id]
        if self.repayment_transaction_id:
            ids.append(self.repayment_transaction_id)
        return ids


class User(BaseModel):
    """A registered user. Email is the ledger owner key."""

    email: str = Field(..., min_length=3, max_length=254)
    password_hash: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError(f"Invalid email address: {v}")
        return v


# =============================================================================
# SNAPSHOTS & SUMMARIES
# =============================================================================

class LedgerSnapshot(BaseModel):
    """One user's full ledger as loaded from storage."""

    user_id: str
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    spending_limit: Decimal = Field(default=Decimal("0"), ge=0)

    def find_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def find_debt(self, debt_id: UUID) -> Optional[Debt]:
        return next((d for d in self.debts if d.id == debt_id), None)

    def debt_for_lending(self, transaction_id: UUID) -> Optional[Debt]:
        return next(
            (d for d in self.debts if d.lending_transaction_id == transaction_id),
            None,
        )

    def debt_for_repayment(self, transaction_id: UUID) -> Optional[Debt]:
        return next(
            (d for d in self.debts if d.repayment_transaction_id == transaction_id),
            None,
        )

    def categories_of_kind(self, kind: TransactionKind) -> list[Category]:
        """Categories of one kind, sorted by name (for pickers)."""
        return sorted(
            (c for c in self.categories if c.kind == kind),
            key=lambda c: c.name.lower(),
        )


class LedgerSummary(BaseModel):
    """Aggregate figures shown on the dashboard and fed to the report."""

    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    spending_by_category: dict[str, Decimal] = Field(default_factory=dict)
    total_unpaid_debt: Decimal = Decimal("0")
    spending_limit: Decimal = Decimal("0")
    spending_progress: float = Field(
        default=0.0,
        ge=0.0,
        description="Expenses as a percentage of the spending limit"
    )
    limit_exceeded: bool = False


class WeeklyTotal(BaseModel):
    """Income vs. expenses for one ISO week."""

    year: int
    week: int
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        return f"Week {self.week}"


class ConsistencyIssue(BaseModel):
    """A broken debt/transaction link found when checking a ledger."""

    debt_id: Optional[UUID] = None
    transaction_id: Optional[UUID] = None
    issue_type: str = Field(
        ...,
        pattern=(
            "^(missing_lending|lending_mismatch|missing_repayment|repayment_mismatch"
            "|double_link|unlinked_lending|unlinked_repayment)$"
        ),
    )
    message: str
