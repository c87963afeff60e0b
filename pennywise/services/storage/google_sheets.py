"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The user can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the debt engine compensates failed compound writes)
- Limited query capabilities (we filter in Python)

Layout: one worksheet per collection, one row per entity, the owning
user's email in column A. Rows are matched on the lower-cased email.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from pennywise.config import get_settings
from pennywise.models.audit import AuditEvent, AuditEventType, AuditSeverity
from pennywise.models.ledger import (
    Category,
    Debt,
    DebtStatus,
    Transaction,
    TransactionKind,
    User,
)
from pennywise.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)


logger = structlog.get_logger(__name__)

# Column layouts (header row of each worksheet)
USER_COLUMNS = ["email", "password"]
TRANSACTION_COLUMNS = ["email", "id", "type", "category", "amount", "date"]
CATEGORY_COLUMNS = ["email", "id", "name", "icon", "type", "isFixed"]
DEBT_COLUMNS = [
    "email",
    "id",
    "debtorName",
    "amount",
    "description",
    "dueDate",
    "status",
    "icon",
    "lendingTransactionId",
    "repaymentTransactionId",
]
SETTINGS_COLUMNS = ["email", "spendingLimit"]
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Numbers come back as numbers, dates we wrote stay ISO strings
READ_OPTIONS = {
    "value_render_option": "UNFORMATTED_VALUE",
    "date_time_render_option": "FORMATTED_STRING",
}


def _cell(row: list, index: int, default: Any = "") -> Any:
    """Read a cell, treating missing trailing cells as empty."""
    try:
        value = row[index]
    except IndexError:
        return default
    return default if value is None or value == "" else value


def _text(row: list, index: int) -> str:
    return str(_cell(row, index)).strip()


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a number: {value!r}") from e


def _date(value: Any) -> date:
    return date.fromisoformat(str(value).strip()[:10])


def _same_user(row: list, user_id: str) -> bool:
    return _text(row, 0).lower() == user_id.strip().lower()


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation; retries the
    initial connection only.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    def users_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.users_sheet_name, USER_COLUMNS)

    def transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS
        )

    def debts_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.debts_sheet_name, DEBT_COLUMNS)

    def settings_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.settings_sheet_name, SETTINGS_COLUMNS
        )

    def audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Every entity is one row; the id lives in column B.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- row conversion ---------------------------------------------------

    @staticmethod
    def _transaction_to_row(user_id: str, transaction: Transaction) -> list:
        return [
            user_id.strip().lower(),
            str(transaction.id),
            transaction.kind.value,
            transaction.category,
            str(transaction.amount),
            transaction.transaction_date.isoformat(),
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        return Transaction(
            id=UUID(_text(row, 1)),
            kind=TransactionKind(_text(row, 2).lower()),
            category=_text(row, 3),
            amount=_decimal(_cell(row, 4)),
            transaction_date=_date(_cell(row, 5)),
        )

    @staticmethod
    def _category_to_row(user_id: str, category: Category) -> list:
        return [
            user_id.strip().lower(),
            str(category.id),
            category.name,
            category.icon,
            category.kind.value,
            "TRUE" if category.is_fixed else "FALSE",
        ]

    @staticmethod
    def _row_to_category(row: list) -> Category:
        return Category(
            id=UUID(_text(row, 1)),
            name=_text(row, 2),
            icon=_text(row, 3) or "Tag",
            kind=TransactionKind(_text(row, 4).lower()),
            is_fixed=_text(row, 5).upper() == "TRUE",
        )

    @staticmethod
    def _debt_to_row(user_id: str, debt: Debt) -> list:
        return [
            user_id.strip().lower(),
            str(debt.id),
            debt.debtor_name,
            str(debt.amount),
            debt.description,
            debt.due_date.isoformat(),
            debt.status.value,
            debt.icon,
            str(debt.lending_transaction_id),
            str(debt.repayment_transaction_id) if debt.repayment_transaction_id else "",
        ]

    @staticmethod
    def _row_to_debt(row: list) -> Debt:
        repayment_id = _text(row, 9)
        return Debt(
            id=UUID(_text(row, 1)),
            debtor_name=_text(row, 2),
            amount=_decimal(_cell(row, 3)),
            description=_text(row, 4),
            due_date=_date(_cell(row, 5)),
            status=DebtStatus(_text(row, 6).lower()),
            icon=_text(row, 7) or "BookUser",
            lending_transaction_id=UUID(_text(row, 8)),
            repayment_transaction_id=UUID(repayment_id) if repayment_id else None,
        )

    # -- generic row helpers ----------------------------------------------

    def _list_rows(
        self,
        sheet: gspread.Worksheet,
        user_id: str,
        convert: Callable[[list], Any],
    ) -> list:
        """Read all of a user's rows, skipping ones that fail to parse."""
        items = []
        for idx, row in enumerate(sheet.get_all_values(**READ_OPTIONS)[1:], start=2):
            if not row or not _same_user(row, user_id):
                continue
            try:
                items.append(convert(row))
            except ValueError as e:
                logger.warning(
                    "sheet_row_skipped",
                    sheet=sheet.title,
                    row=idx,
                    error=str(e),
                )
        return items

    @staticmethod
    def _find_row_index(sheet: gspread.Worksheet, entity_id: UUID) -> Optional[int]:
        """1-based row index of the entity, header included."""
        target = str(entity_id)
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if _text(row, 1) == target:
                return idx
        return None

    def _delete_by_id(
        self,
        get_sheet: Callable[[], gspread.Worksheet],
        entity_id: UUID,
        label: str,
    ) -> None:
        try:
            sheet = get_sheet()
            idx = self._find_row_index(sheet, entity_id)
            if idx is None:
                raise NotFoundError(f"{label} not found: {entity_id}")
            sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {label.lower()}: {e}")

    # -- transactions -----------------------------------------------------

    async def list_transactions(self, user_id: str) -> list[Transaction]:
        try:
            sheet = self._client.transactions_sheet()
            return self._list_rows(sheet, user_id, self._row_to_transaction)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def append_transaction(self, user_id: str, transaction: Transaction) -> None:
        try:
            sheet = self._client.transactions_sheet()
            sheet.append_row(
                self._transaction_to_row(user_id, transaction),
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def delete_transaction(self, transaction_id: UUID) -> None:
        self._delete_by_id(
            self._client.transactions_sheet, transaction_id, "Transaction"
        )

    # -- debts ------------------------------------------------------------

    async def list_debts(self, user_id: str) -> list[Debt]:
        try:
            sheet = self._client.debts_sheet()
            return self._list_rows(sheet, user_id, self._row_to_debt)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list debts: {e}")

    async def append_debt(self, user_id: str, debt: Debt) -> None:
        try:
            sheet = self._client.debts_sheet()
            sheet.append_row(self._debt_to_row(user_id, debt), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save debt: {e}")

    async def update_debt(self, user_id: str, debt: Debt) -> None:
        try:
            sheet = self._client.debts_sheet()
            idx = self._find_row_index(sheet, debt.id)
            if idx is None:
                raise NotFoundError(f"Debt not found: {debt.id}")
            sheet.update(
                range_name=f"A{idx}",
                values=[self._debt_to_row(user_id, debt)],
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update debt: {e}")

    async def delete_debt(self, debt_id: UUID) -> None:
        self._delete_by_id(self._client.debts_sheet, debt_id, "Debt")

    # -- categories -------------------------------------------------------

    async def list_categories(self, user_id: str) -> list[Category]:
        try:
            sheet = self._client.categories_sheet()
            return self._list_rows(sheet, user_id, self._row_to_category)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    async def append_category(self, user_id: str, category: Category) -> None:
        try:
            sheet = self._client.categories_sheet()
            sheet.append_row(
                self._category_to_row(user_id, category),
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def delete_category(self, category_id: UUID) -> None:
        self._delete_by_id(self._client.categories_sheet, category_id, "Category")

    # -- settings ---------------------------------------------------------

    async def get_spending_limit(self, user_id: str) -> Optional[Decimal]:
        try:
            sheet = self._client.settings_sheet()
            for row in sheet.get_all_values(**READ_OPTIONS)[1:]:
                if row and _same_user(row, user_id):
                    limit = _decimal(_cell(row, 1, "0"))
                    if not limit.is_finite() or limit < 0:
                        raise ValueError(f"Spending limit must be non-negative, got {limit}")
                    return limit
            return None
        except Exception as e:
            raise StorageError(f"Failed to read spending limit: {e}")

    async def set_spending_limit(self, user_id: str, limit: Decimal) -> None:
        owner = user_id.strip().lower()
        try:
            sheet = self._client.settings_sheet()
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and _same_user(row, owner):
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[[owner, str(limit)]],
                        value_input_option="RAW",
                    )
                    return
            sheet.append_row([owner, str(limit)], value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save spending limit: {e}")


class GoogleSheetsUserStorage(UserStorageInterface):
    """Users sheet: one row per registered email."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def find_user(self, email: str) -> Optional[User]:
        try:
            sheet = self._client.users_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and _same_user(row, email):
                    return User(email=_text(row, 0), password_hash=_text(row, 1))
            return None
        except Exception as e:
            raise StorageError(f"Failed to look up user: {e}")

    async def append_user(self, user: User) -> None:
        try:
            sheet = self._client.users_sheet()
            sheet.append_row([user.email, user.password_hash], value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to register user: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        entity_id = _text(row, 6)
        details = _text(row, 8)
        return AuditEvent(
            event_id=UUID(_text(row, 0)),
            timestamp=datetime.fromisoformat(_text(row, 1)),
            event_type=AuditEventType(_text(row, 2)),
            severity=AuditSeverity(_text(row, 3)),
            user_id=_text(row, 4) or None,
            entity_type=_text(row, 5) or None,
            entity_id=UUID(entity_id) if entity_id else None,
            description=_text(row, 7),
            details=json.loads(details) if details else {},
            error_message=_text(row, 9) or None,
            is_user_action=_text(row, 10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Never raises."""
        try:
            sheet = self._client.audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e))
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.audit_sheet()
            events = []
            for row in sheet.get_all_values()[1:]:
                if not row or not row[0]:
                    continue
                if user_id and _text(row, 4) != user_id:
                    continue
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
