"""
Ledger Aggregates

Pure functions over a LedgerSnapshot. No storage access, no side
effects; the dashboard figures and the monthly report are built here.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from pennywise.models.ledger import (
    Debt,
    LedgerSnapshot,
    LedgerSummary,
    Transaction,
    TransactionKind,
    WeeklyTotal,
)


ZERO = Decimal("0")


def total_income(transactions: Iterable[Transaction]) -> Decimal:
    return sum(
        (t.amount for t in transactions if t.kind == TransactionKind.INCOME),
        ZERO,
    )


def total_expenses(transactions: Iterable[Transaction]) -> Decimal:
    return sum(
        (t.amount for t in transactions if t.kind == TransactionKind.EXPENSE),
        ZERO,
    )


def balance(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.signed_amount for t in transactions), ZERO)


def spending_by_category(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """
    Sum expenses per category name.

    Names are grouped case-insensitively; the first spelling seen is
    the one reported. Largest spend first.
    """
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    display: dict[str, str] = {}
    for t in transactions:
        if t.kind != TransactionKind.EXPENSE:
            continue
        key = t.category.lower()
        display.setdefault(key, t.category)
        totals[key] += t.amount

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return {display[key]: amount for key, amount in ordered}


def total_unpaid_debt(debts: Iterable[Debt]) -> Decimal:
    return sum((d.amount for d in debts if not d.is_paid), ZERO)


def spending_progress(expenses: Decimal, limit: Decimal) -> float:
    """Expenses as a percentage of the limit; 0 when no limit is set."""
    if limit <= 0:
        return 0.0
    return float(expenses / limit * 100)


def summarize(
    snapshot: LedgerSnapshot,
    transactions: Optional[list[Transaction]] = None,
) -> LedgerSummary:
    """
    Build the dashboard summary.

    Args:
        snapshot: The user's ledger
        transactions: Restrict the money figures to these transactions
                     (e.g. one month); defaults to all of them
    """
    if transactions is None:
        transactions = snapshot.transactions

    income = total_income(transactions)
    expenses = total_expenses(transactions)
    limit = snapshot.spending_limit

    return LedgerSummary(
        total_income=income,
        total_expenses=expenses,
        balance=income - expenses,
        spending_by_category=spending_by_category(transactions),
        total_unpaid_debt=total_unpaid_debt(snapshot.debts),
        spending_limit=limit,
        spending_progress=spending_progress(expenses, limit),
        limit_exceeded=limit > 0 and expenses > limit,
    )


def weekly_totals(transactions: Iterable[Transaction]) -> list[WeeklyTotal]:
    """Income and expenses per ISO week, oldest week first."""
    weeks: dict[tuple[int, int], WeeklyTotal] = {}
    for t in transactions:
        year, week, _ = t.transaction_date.isocalendar()
        bucket = weeks.setdefault((year, week), WeeklyTotal(year=year, week=week))
        if t.kind == TransactionKind.INCOME:
            bucket.income += t.amount
        else:
            bucket.expenses += t.amount
    return [weeks[key] for key in sorted(weeks)]


def transactions_in_month(
    transactions: Iterable[Transaction],
    month: date,
) -> list[Transaction]:
    """Transactions in the calendar month of `month`, newest first."""
    return sort_newest_first(
        t for t in transactions
        if t.transaction_date.year == month.year
        and t.transaction_date.month == month.month
    )


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.transaction_date, reverse=True)


def split_debts(debts: Iterable[Debt]) -> tuple[list[Debt], list[Debt]]:
    """
    Split debts for display.

    Returns:
        (unpaid sorted by due date, paid sorted by due date, latest first)
    """
    debts = list(debts)
    unpaid = sorted((d for d in debts if not d.is_paid), key=lambda d: d.due_date)
    paid = sorted(
        (d for d in debts if d.is_paid),
        key=lambda d: d.due_date,
        reverse=True,
    )
    return unpaid, paid
