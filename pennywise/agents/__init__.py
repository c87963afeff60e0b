"""AI agents package."""

from pennywise.agents.report_agent import (
    MonthlyReportAgent,
    ReportGenerationError,
    ReportInput,
    build_report_input,
    build_transaction_history,
    format_rupiah,
)

__all__ = [
    "MonthlyReportAgent",
    "ReportGenerationError",
    "ReportInput",
    "build_report_input",
    "build_transaction_history",
    "format_rupiah",
]
