"""
Tests for the Google Sheets storage.

The gspread client is replaced with a mock returning in-memory
worksheets; no network access.
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

from pennywise.models.audit import AuditEventBuilder
from pennywise.models.ledger import (
    Category,
    Debt,
    DebtStatus,
    Transaction,
    TransactionKind,
    User,
)
from pennywise.models.results import ErrorCode
from pennywise.orchestrator import LedgerFlow
from pennywise.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    GoogleSheetsUserStorage,
    NotFoundError,
    StorageError,
)
from pennywise.services.storage.google_sheets import (
    CATEGORY_COLUMNS,
    DEBT_COLUMNS,
    SETTINGS_COLUMNS,
    TRANSACTION_COLUMNS,
    USER_COLUMNS,
)


class FakeWorksheet:
    """The slice of gspread.Worksheet the storage uses."""

    def __init__(self, title: str, header: list):
        self.title = title
        self.rows = [list(header)]

    def get_all_values(self, **kwargs):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def delete_rows(self, index):
        del self.rows[index - 1]

    def update(self, range_name, values, value_input_option=None):
        index = int(range_name[1:])
        self.rows[index - 1] = list(values[0])


@pytest.fixture
def sheets():
    return {
        "transactions": FakeWorksheet("Transactions", TRANSACTION_COLUMNS),
        "categories": FakeWorksheet("Categories", CATEGORY_COLUMNS),
        "debts": FakeWorksheet("Debts", DEBT_COLUMNS),
        "settings": FakeWorksheet("Settings", SETTINGS_COLUMNS),
        "users": FakeWorksheet("Users", USER_COLUMNS),
        "audit": FakeWorksheet("AuditLog", ["event_id"]),
    }


@pytest.fixture
def client(sheets):
    client = MagicMock()
    client.transactions_sheet.return_value = sheets["transactions"]
    client.categories_sheet.return_value = sheets["categories"]
    client.debts_sheet.return_value = sheets["debts"]
    client.settings_sheet.return_value = sheets["settings"]
    client.users_sheet.return_value = sheets["users"]
    client.audit_sheet.return_value = sheets["audit"]
    return client


@pytest.fixture
def ledger(client):
    return GoogleSheetsLedgerStorage(client)


def lunch(amount="25000"):
    return Transaction(
        kind=TransactionKind.EXPENSE,
        category="Lunch",
        amount=Decimal(amount),
        transaction_date=date(2025, 1, 10),
    )


class TestTransactionsSheet:
    """Tests for the Transactions worksheet."""

    @pytest.mark.asyncio
    async def test_append_writes_original_layout(self, ledger, sheets):
        """Test the row is (email, id, type, category, amount, date)."""
        tx = lunch()
        await ledger.append_transaction("Alex@Example.com", tx)

        assert sheets["transactions"].rows[1] == [
            "alex@example.com", str(tx.id), "expense", "Lunch", "25000", "2025-01-10",
        ]
        assert await ledger.list_transactions("alex@example.com") == [tx]

    @pytest.mark.asyncio
    async def test_list_reads_numeric_cells(self, ledger, sheets):
        """Test UNFORMATTED_VALUE numbers are parsed as Decimal."""
        tx_id = uuid4()
        sheets["transactions"].rows.append(
            ["alex@example.com", str(tx_id), "income", "Salary", 8000000, "2025-01-01"]
        )

        (tx,) = await ledger.list_transactions("ALEX@example.com")

        assert tx.id == tx_id
        assert tx.amount == Decimal("8000000")
        assert tx.kind == TransactionKind.INCOME

    @pytest.mark.asyncio
    async def test_list_filters_user_and_skips_bad_rows(self, ledger, sheets):
        """Test other users' rows and unparsable rows are ignored."""
        mine = lunch()
        await ledger.append_transaction("alex@example.com", mine)
        await ledger.append_transaction("sam@example.com", lunch())
        sheets["transactions"].rows.append(
            ["alex@example.com", "not-a-uuid", "expense", "Lunch", "1", "2025-01-01"]
        )
        sheets["transactions"].rows.append([])

        assert await ledger.list_transactions("alex@example.com") == [mine]

    @pytest.mark.asyncio
    async def test_delete(self, ledger, sheets):
        first, second = lunch("1"), lunch("2")
        await ledger.append_transaction("alex@example.com", first)
        await ledger.append_transaction("alex@example.com", second)

        await ledger.delete_transaction(first.id)

        assert await ledger.list_transactions("alex@example.com") == [second]

    @pytest.mark.asyncio
    async def test_delete_missing(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.delete_transaction(uuid4())

    @pytest.mark.asyncio
    async def test_gspread_errors_wrapped(self, ledger, client):
        """Test API failures surface as StorageError."""
        client.transactions_sheet.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(StorageError, match="quota exceeded"):
            await ledger.append_transaction("alex@example.com", lunch())
        with pytest.raises(StorageError, match="quota exceeded"):
            await ledger.delete_transaction(uuid4())


class TestDebtsSheet:
    """Tests for the Debts worksheet."""

    @pytest.mark.asyncio
    async def test_update_rewrites_row(self, ledger, sheets):
        """Test settling rewrites the debt's own row in place."""
        lending_id, repayment_id = uuid4(), uuid4()
        debt = Debt(
            debtor_name="Alex",
            amount=Decimal("50000"),
            description="lunch money",
            due_date=date(2025, 1, 15),
            lending_transaction_id=lending_id,
        )
        other = Debt(
            debtor_name="Sam",
            amount=Decimal("1000"),
            due_date=date(2025, 2, 1),
            lending_transaction_id=uuid4(),
        )
        await ledger.append_debt("alex@example.com", other)
        await ledger.append_debt("alex@example.com", debt)

        paid = debt.model_copy(update={
            "status": DebtStatus.PAID,
            "repayment_transaction_id": repayment_id,
        })
        await ledger.update_debt("alex@example.com", paid)

        row = sheets["debts"].rows[2]
        assert row[6] == "paid"
        assert row[9] == str(repayment_id)
        debts = await ledger.list_debts("alex@example.com")
        assert debts == [other, paid]

    @pytest.mark.asyncio
    async def test_unpaid_debt_has_empty_repayment_cell(self, ledger, sheets):
        debt = Debt(
            debtor_name="Alex",
            amount=Decimal("50000"),
            due_date=date(2025, 1, 15),
            lending_transaction_id=uuid4(),
        )
        await ledger.append_debt("alex@example.com", debt)

        assert sheets["debts"].rows[1][9] == ""
        assert (await ledger.list_debts("alex@example.com"))[0].repayment_transaction_id is None

    @pytest.mark.asyncio
    async def test_update_missing(self, ledger):
        debt = Debt(
            debtor_name="Alex",
            amount=Decimal("1"),
            due_date=date(2025, 1, 15),
            lending_transaction_id=uuid4(),
        )
        with pytest.raises(NotFoundError):
            await ledger.update_debt("alex@example.com", debt)


class TestCategoriesAndSettings:
    """Tests for the Categories and Settings worksheets."""

    @pytest.mark.asyncio
    async def test_category_round_trip(self, ledger, sheets):
        category = Category(
            name="Lending", kind=TransactionKind.EXPENSE, icon="HandHeart", is_fixed=True
        )
        await ledger.append_category("alex@example.com", category)

        assert sheets["categories"].rows[1][5] == "TRUE"
        assert await ledger.list_categories("alex@example.com") == [category]

    @pytest.mark.asyncio
    async def test_spending_limit_upsert(self, ledger, sheets):
        """Test the limit row is added once and then updated in place."""
        assert await ledger.get_spending_limit("alex@example.com") is None

        await ledger.set_spending_limit("alex@example.com", Decimal("2000000"))
        await ledger.set_spending_limit("Alex@example.com", Decimal("3000000"))

        assert len(sheets["settings"].rows) == 2
        assert await ledger.get_spending_limit("alex@example.com") == Decimal("3000000")

    @pytest.mark.asyncio
    async def test_settings_sheet_layout(self, ledger, sheets):
        """Test the Settings sheet keeps the (email, spendingLimit) columns."""
        await ledger.set_spending_limit("Alex@example.com", Decimal("2000000"))

        assert sheets["settings"].rows == [
            ["email", "spendingLimit"],
            ["alex@example.com", "2000000"],
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cell", ["-5000", "NaN"])
    async def test_bad_stored_limit_rejected(self, ledger, sheets, cell):
        """Test a hand-edited limit that isn't a valid amount is a storage error."""
        sheets["settings"].rows.append(["alex@example.com", cell])

        with pytest.raises(StorageError, match="spending limit"):
            await ledger.get_spending_limit("alex@example.com")

    @pytest.mark.asyncio
    async def test_bad_stored_limit_fails_load_cleanly(self, ledger, sheets):
        """Test loading a ledger with a negative limit returns an error result."""
        sheets["settings"].rows.append(["alex@example.com", "-5000"])
        flow = LedgerFlow(ledger, default_spending_limit=Decimal("0"))

        result = await flow.load_user_data("alex@example.com")

        assert result.success is False
        assert result.error_code == ErrorCode.STORAGE_ERROR


class TestUsersAndAudit:
    """Tests for the Users and AuditLog worksheets."""

    @pytest.mark.asyncio
    async def test_find_user_case_insensitive(self, client):
        users = GoogleSheetsUserStorage(client)
        await users.append_user(User(email="alex@example.com", password_hash="$argon2id$x"))

        user = await users.find_user("ALEX@example.com")

        assert user.email == "alex@example.com"
        assert await users.find_user("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_audit_round_trip(self, client):
        audit = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.debt_settled(
            user_id="alex@example.com",
            debt_id=uuid4(),
            repayment_transaction_id=uuid4(),
        )

        assert await audit.append_event(event) is True

        (loaded,) = await audit.get_recent_events(user_id="alex@example.com")
        assert loaded.event_id == event.event_id
        assert loaded.details == event.details

    @pytest.mark.asyncio
    async def test_audit_write_failure_does_not_raise(self, client):
        client.audit_sheet.side_effect = RuntimeError("sheet gone")
        audit = GoogleSheetsAuditStorage(client)

        event = AuditEventBuilder.user_registered("alex@example.com")
        assert await audit.append_event(event) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
