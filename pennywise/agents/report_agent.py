"""
Monthly Report Agent

Turns one month of ledger figures into a friendly HTML report written
by Gemini.

BOUNDARIES:
- CAN: Comment on, summarise and advise on the figures it is given
- CANNOT: Read or write the ledger; it only sees ReportInput
- CANNOT: Invent figures; every number in the prompt comes from the
  aggregates module

The numbers are computed here, not by the model. The LLM only writes
prose around them.
"""

import json
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import google.generativeai as genai
from pydantic import BaseModel, Field

from pennywise.config import get_settings
from pennywise.config.settings import GeminiSettings
from pennywise.ledger import aggregates
from pennywise.models.ledger import LedgerSnapshot, Transaction, TransactionKind


class ReportGenerationError(Exception):
    """The model call failed or returned nothing usable."""


class ReportInput(BaseModel):
    """Everything the model is allowed to see."""

    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    spending_by_category: dict[str, Decimal] = Field(default_factory=dict)
    spending_limit: Decimal = Decimal("0")
    transaction_history: str = ""
    transaction_count: int = 0


# =============================================================================
# FORMATTING
# =============================================================================

def _round(amount: Decimal, places: str = "1") -> Decimal:
    return Decimal(amount).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def format_rupiah(amount: Decimal, short: bool = False) -> str:
    """
    Format an amount in Indonesian Rupiah.

    >>> format_rupiah(Decimal("1500000"))
    'Rp 1.500.000'
    >>> format_rupiah(Decimal("1500000"), short=True)
    'Rp1.5M'
    """
    amount = Decimal(amount)

    if short:
        magnitude = abs(amount)
        if magnitude >= 1_000_000_000:
            return f"Rp{_round(amount / 1_000_000_000, '0.1')}B"
        if magnitude >= 1_000_000:
            return f"Rp{_round(amount / 1_000_000, '0.1')}M"
        if magnitude >= 1_000:
            return f"Rp{_round(amount / 1_000)}K"

    whole = int(_round(abs(amount)))
    sign = "-" if amount < 0 and whole else ""
    return f"{sign}Rp {whole:,}".replace(",", ".")


def build_transaction_history(transactions: list[Transaction]) -> str:
    """One line per transaction: "2025-01-15: -Rp 50.000 (Lending)"."""
    lines = []
    for t in transactions:
        sign = "+" if t.kind == TransactionKind.INCOME else "-"
        lines.append(
            f"{t.transaction_date.isoformat()}: {sign}{format_rupiah(t.amount)} ({t.category})"
        )
    return "\n".join(lines)


def build_report_input(
    snapshot: LedgerSnapshot,
    month: Optional[date] = None,
) -> ReportInput:
    """
    Collect the figures for one month.

    Args:
        snapshot: The user's ledger
        month: Any date in the month to report on; all transactions
               when omitted
    """
    if month is None:
        transactions = aggregates.sort_newest_first(snapshot.transactions)
    else:
        transactions = aggregates.transactions_in_month(snapshot.transactions, month)

    return ReportInput(
        income=aggregates.total_income(transactions),
        expenses=aggregates.total_expenses(transactions),
        spending_by_category=aggregates.spending_by_category(transactions),
        spending_limit=snapshot.spending_limit,
        transaction_history=build_transaction_history(transactions),
        transaction_count=len(transactions),
    )


def build_report_prompt(report_input: ReportInput) -> str:
    spending = json.dumps(
        {name: float(amount) for name, amount in report_input.spending_by_category.items()}
    )
    history = report_input.transaction_history or "No transactions this month."

    return f"""You are a personal finance advisor. Create a comprehensive, friendly, and encouraging monthly financial report based on the following data. The currency is Indonesian Rupiah (Rp). The output must be a single block of HTML, without any markdown wrappers like ```html.

Data:
- Income: {report_input.income}
- Expenses: {report_input.expenses}
- Spending by Category: {spending}
- Spending Limit: {report_input.spending_limit}
- Transaction History:
{history}

Structure your HTML report as follows:
1. **Ringkasan Bulan Ini**: Start with a friendly opening. Summarize total income, expenses, and net savings (income - expenses). Mention if they are within their spending limit.
2. **Analisis Pengeluaran**: Analyze spending.
   - Show a breakdown of spending by category.
   - Identify the top 3 spending categories.
   - Provide specific, actionable insights based on their spending habits.
3. **Saran & Rekomendasi**: Offer encouraging advice and concrete suggestions for next month.
   - Suggest realistic budget adjustments.
   - Give tips to increase savings or reduce specific expenses.
4. **Closing**: End with a motivational and positive closing statement.

Formatting Rules:
- Use <h1>, <h2>, <h3> for titles, <p> for paragraphs, <ul> and <li> for lists, and <strong> for emphasis.
- Format all currency values with the 'Rp' prefix and Indonesian number formatting (e.g., Rp 1.500.000).
- Only use the figures given above. Do not invent transactions.
- Keep the tone encouraging, not judgmental."""


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


# =============================================================================
# AGENT
# =============================================================================

class MonthlyReportAgent:
    """
    Generates the monthly HTML report.

    Usage:
        agent = MonthlyReportAgent()
        html = await agent.generate_report(build_report_input(snapshot, date.today()))
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
    ):
        """
        Args:
            model: Anything with an async generate_content_async(prompt);
                   a Gemini model is configured from settings when omitted
            settings: Gemini settings; defaults to get_settings().gemini
        """
        if model is None:
            model = self._configure_genai(settings or get_settings().gemini)
        self._model = model

    @staticmethod
    def _configure_genai(settings: GeminiSettings):
        """Configure Google Generative AI."""
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    async def generate_report(self, report_input: ReportInput) -> str:
        """
        Ask the model for the report.

        Raises:
            ReportGenerationError: The call failed or the answer was empty
        """
        prompt = build_report_prompt(report_input)
        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text
        except Exception as e:
            raise ReportGenerationError(f"Failed to generate AI report. {e}") from e

        report = _strip_code_fence(text or "")
        if not report:
            raise ReportGenerationError("Failed to generate AI report. The model returned no content.")
        return report
