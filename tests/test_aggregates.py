"""Tests for ledger aggregates."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pennywise.ledger import aggregates
from pennywise.models.ledger import (
    Debt,
    DebtStatus,
    LedgerSnapshot,
    Transaction,
    TransactionKind,
)


def tx(kind, category, amount, day):
    return Transaction(
        kind=kind,
        category=category,
        amount=Decimal(amount),
        transaction_date=day,
    )


def debt(amount, due, paid=False):
    return Debt(
        debtor_name="Alex",
        amount=Decimal(amount),
        due_date=due,
        status=DebtStatus.PAID if paid else DebtStatus.UNPAID,
        lending_transaction_id=uuid4(),
        repayment_transaction_id=uuid4() if paid else None,
    )


@pytest.fixture
def transactions():
    return [
        tx(TransactionKind.INCOME, "Salary", "8000000", date(2025, 1, 1)),
        tx(TransactionKind.EXPENSE, "Lunch", "25000", date(2025, 1, 2)),
        tx(TransactionKind.EXPENSE, "lunch", "30000", date(2025, 1, 9)),
        tx(TransactionKind.EXPENSE, "Hangout", "150000", date(2025, 1, 10)),
        tx(TransactionKind.EXPENSE, "Lunch", "20000", date(2024, 12, 30)),
    ]


class TestTotals:
    """Tests for income, expense and balance totals."""

    def test_totals(self, transactions):
        assert aggregates.total_income(transactions) == Decimal("8000000")
        assert aggregates.total_expenses(transactions) == Decimal("225000")
        assert aggregates.balance(transactions) == Decimal("7775000")

    def test_empty(self):
        """Test totals of an empty ledger are zero."""
        assert aggregates.total_income([]) == Decimal("0")
        assert aggregates.balance([]) == Decimal("0")
        assert aggregates.spending_by_category([]) == {}

    def test_spending_by_category_groups_case_insensitively(self, transactions):
        """Test 'Lunch' and 'lunch' are one category, largest first."""
        spending = aggregates.spending_by_category(transactions)
        assert spending == {"Hangout": Decimal("150000"), "Lunch": Decimal("75000")}
        assert list(spending) == ["Hangout", "Lunch"]

    def test_total_unpaid_debt(self):
        """Test only unpaid debts count."""
        debts = [
            debt("50000", date(2025, 1, 15)),
            debt("20000", date(2025, 1, 20), paid=True),
            debt("10000", date(2025, 2, 1)),
        ]
        assert aggregates.total_unpaid_debt(debts) == Decimal("60000")


class TestSummary:
    """Tests for the dashboard summary."""

    def test_summarize(self, transactions):
        snapshot = LedgerSnapshot(
            user_id="alex@example.com",
            transactions=transactions,
            debts=[debt("50000", date(2025, 1, 15))],
            spending_limit=Decimal("450000"),
        )
        summary = aggregates.summarize(snapshot)

        assert summary.total_income == Decimal("8000000")
        assert summary.total_expenses == Decimal("225000")
        assert summary.balance == Decimal("7775000")
        assert summary.total_unpaid_debt == Decimal("50000")
        assert summary.spending_progress == pytest.approx(50.0)
        assert summary.limit_exceeded is False

    def test_limit_exceeded(self, transactions):
        snapshot = LedgerSnapshot(
            user_id="alex@example.com",
            transactions=transactions,
            spending_limit=Decimal("100000"),
        )
        summary = aggregates.summarize(snapshot)
        assert summary.limit_exceeded is True
        assert summary.spending_progress == pytest.approx(225.0)

    def test_zero_limit_means_no_limit(self, transactions):
        """Test a zero limit gives zero progress and is never exceeded."""
        snapshot = LedgerSnapshot(user_id="alex@example.com", transactions=transactions)
        summary = aggregates.summarize(snapshot)
        assert summary.spending_progress == 0.0
        assert summary.limit_exceeded is False

    def test_summary_for_subset(self, transactions):
        """Test money figures can be restricted to one month."""
        snapshot = LedgerSnapshot(user_id="alex@example.com", transactions=transactions)
        december = aggregates.transactions_in_month(transactions, date(2024, 12, 1))
        summary = aggregates.summarize(snapshot, december)
        assert summary.total_expenses == Decimal("20000")
        assert summary.total_income == Decimal("0")


class TestGrouping:
    """Tests for weekly, monthly and debt grouping."""

    def test_weekly_totals_use_iso_weeks(self, transactions):
        """Test 2024-12-30 falls in ISO week 1 of 2025."""
        weeks = aggregates.weekly_totals(transactions)

        assert [(w.year, w.week) for w in weeks] == [(2025, 1), (2025, 2)]
        first, second = weeks
        assert first.income == Decimal("8000000")
        assert first.expenses == Decimal("45000")
        assert second.expenses == Decimal("180000")

    def test_transactions_in_month_newest_first(self, transactions):
        january = aggregates.transactions_in_month(transactions, date(2025, 1, 20))
        assert [t.transaction_date.day for t in january] == [10, 9, 2, 1]

    def test_split_debts(self):
        """Test unpaid debts come soonest-due first."""
        late = debt("1", date(2025, 3, 1))
        soon = debt("1", date(2025, 1, 5))
        paid = debt("1", date(2025, 2, 1), paid=True)

        unpaid, settled = aggregates.split_debts([late, paid, soon])

        assert unpaid == [soon, late]
        assert settled == [paid]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
