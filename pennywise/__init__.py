"""
Pennywise - Source Package

Personal finance ledger: income/expense transactions, categories,
informal debts (money lent to others), a monthly spending limit and an
AI-written monthly report. Data lives in a Google Sheets spreadsheet.

DESIGN PRINCIPLES:
1. A debt and its transactions are always changed together
2. Fail early, fail visibly - every failure has a specific error code
3. No partial writes are left behind silently
4. Every ledger mutation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Pennywise Team"
