"""Tests for the monthly report agent."""

import pytest
from datetime import date
from decimal import Decimal

from pennywise.agents import (
    MonthlyReportAgent,
    ReportGenerationError,
    ReportInput,
    build_report_input,
    build_transaction_history,
    format_rupiah,
)
from pennywise.models.ledger import LedgerSnapshot, Transaction, TransactionKind


def tx(kind, category, amount, day):
    return Transaction(
        kind=kind,
        category=category,
        amount=Decimal(amount),
        transaction_date=day,
    )


class TestFormatRupiah:
    """Tests for Indonesian currency formatting."""

    @pytest.mark.parametrize("amount,expected", [
        (Decimal("1500000"), "Rp 1.500.000"),
        (Decimal("0"), "Rp 0"),
        (Decimal("999"), "Rp 999"),
        (Decimal("50000.6"), "Rp 50.001"),
        (Decimal("-25000"), "-Rp 25.000"),
    ])
    def test_full(self, amount, expected):
        assert format_rupiah(amount) == expected

    @pytest.mark.parametrize("amount,expected", [
        (Decimal("1500000"), "Rp1.5M"),
        (Decimal("12000"), "Rp12K"),
        (Decimal("2500000000"), "Rp2.5B"),
        (Decimal("500"), "Rp 500"),
    ])
    def test_short(self, amount, expected):
        assert format_rupiah(amount, short=True) == expected


class TestReportInput:
    """Tests for collecting the report figures."""

    @pytest.fixture
    def snapshot(self):
        return LedgerSnapshot(
            user_id="alex@example.com",
            transactions=[
                tx(TransactionKind.INCOME, "Salary", "1500000", date(2025, 1, 1)),
                tx(TransactionKind.EXPENSE, "Lunch", "50000", date(2025, 1, 15)),
                tx(TransactionKind.EXPENSE, "Lunch", "40000", date(2024, 12, 20)),
            ],
            spending_limit=Decimal("5000000"),
        )

    def test_history_lines(self):
        history = build_transaction_history([
            tx(TransactionKind.INCOME, "Salary", "1500000", date(2025, 1, 1)),
            tx(TransactionKind.EXPENSE, "Lunch", "50000", date(2025, 1, 15)),
        ])
        assert history.splitlines() == [
            "2025-01-01: +Rp 1.500.000 (Salary)",
            "2025-01-15: -Rp 50.000 (Lunch)",
        ]

    def test_month_filter(self, snapshot):
        """Test only the requested month is reported."""
        report_input = build_report_input(snapshot, date(2025, 1, 31))

        assert report_input.income == Decimal("1500000")
        assert report_input.expenses == Decimal("50000")
        assert report_input.spending_by_category == {"Lunch": Decimal("50000")}
        assert report_input.spending_limit == Decimal("5000000")
        assert report_input.transaction_count == 2
        assert report_input.transaction_history.splitlines()[0].startswith("2025-01-15")

    def test_all_transactions(self, snapshot):
        report_input = build_report_input(snapshot)
        assert report_input.transaction_count == 3
        assert report_input.expenses == Decimal("90000")


class TestMonthlyReportAgent:
    """Tests for the Gemini call, with a fake model."""

    @pytest.mark.asyncio
    async def test_generate_report(self, fake_model):
        agent = MonthlyReportAgent(model=fake_model)
        report_input = ReportInput(
            income=Decimal("1500000"),
            expenses=Decimal("50000"),
            spending_by_category={"Lunch": Decimal("50000")},
            spending_limit=Decimal("5000000"),
            transaction_history="2025-01-15: -Rp 50.000 (Lunch)",
        )

        report = await agent.generate_report(report_input)

        assert report == "<h1>Report</h1>"
        prompt = fake_model.prompts[0]
        assert "2025-01-15: -Rp 50.000 (Lunch)" in prompt
        assert '"Lunch": 50000.0' in prompt
        assert "HTML" in prompt

    @pytest.mark.asyncio
    async def test_code_fence_stripped(self, fake_model):
        """Test a ```html wrapper around the answer is removed."""
        fake_model.text = "```html\n<p>Hi</p>\n```"
        agent = MonthlyReportAgent(model=fake_model)

        assert await agent.generate_report(ReportInput()) == "<p>Hi</p>"

    @pytest.mark.asyncio
    async def test_model_error(self, fake_model):
        fake_model.error = RuntimeError("quota exceeded")
        agent = MonthlyReportAgent(model=fake_model)

        with pytest.raises(ReportGenerationError, match="quota exceeded"):
            await agent.generate_report(ReportInput())

    @pytest.mark.asyncio
    async def test_empty_answer(self, fake_model):
        fake_model.text = "   "
        agent = MonthlyReportAgent(model=fake_model)

        with pytest.raises(ReportGenerationError, match="no content"):
            await agent.generate_report(ReportInput())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
