"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view and export their expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions and no server-side filtering (we filter in Python)

gspread is synchronous, so every call is pushed onto a worker thread to keep
the event loop (and the dashboard refresh timer) responsive.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.expense import ExpenseRecord, TimeWindow
from expense_tracker.services.storage.interface import (
    DEFAULT_QUERY_LIMIT,
    DuplicateError,
    ExpenseStorageInterface,
    PersistenceError,
    StorageConnectionError,
)


logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "owner_id",
    "created_at",
    "date",
    "amount",
    "currency",
    "category",
    "subcategory",
    "vendor",
    "description",
    "ai_confidence",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for establishing
    the connection. Individual reads and writes are not retried.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.expenses_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.expenses_sheet_name,
                rows=1000,
                cols=len(EXPENSE_COLUMNS),
            )
            sheet.append_row(EXPENSE_COLUMNS)
        return sheet


def record_to_row(record: ExpenseRecord) -> list:
    """Convert an ExpenseRecord to a spreadsheet row."""
    return [
        str(record.id),
        record.owner_id,
        record.created_at.isoformat(),
        record.date.isoformat(),
        str(record.amount),
        record.currency,
        record.category or "",
        record.subcategory or "",
        record.vendor or "",
        record.description or "",
        "" if record.ai_confidence is None else str(record.ai_confidence),
    ]


def row_to_record(row: list) -> ExpenseRecord:
    """Convert a spreadsheet row to an ExpenseRecord."""
    # Handle missing trailing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    return ExpenseRecord(
        id=UUID(safe_get(0)),
        owner_id=safe_get(1),
        created_at=datetime.fromisoformat(safe_get(2)),
        date=date.fromisoformat(safe_get(3)),
        amount=Decimal(safe_get(4, "0")),
        currency=safe_get(5, "INR"),
        category=safe_get(6) or None,
        subcategory=safe_get(7) or None,
        vendor=safe_get(8) or None,
        description=safe_get(9) or None,
        ai_confidence=float(safe_get(10)) if safe_get(10) else None,
    )


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    Expenses are stored as rows in a worksheet with one expense per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _all_rows(self) -> list[list]:
        sheet = self._client.get_expenses_sheet()
        return sheet.get_all_values()[1:]  # Skip header

    def _append(self, record: ExpenseRecord) -> None:
        sheet = self._client.get_expenses_sheet()
        existing_ids = sheet.col_values(1)[1:]
        if str(record.id) in existing_ids:
            raise DuplicateError(f"Expense already exists: {record.id}")
        sheet.append_row(record_to_row(record), value_input_option="RAW")

    def _select(
        self,
        owner_id: str,
        start: Optional[date],
        limit: int,
    ) -> list[ExpenseRecord]:
        records = []
        for row in self._all_rows():
            if not row or not row[0]:  # Skip empty rows
                continue
            if len(row) < 2 or row[1] != owner_id:
                continue
            try:
                record = row_to_record(row)
            except (ValueError, ArithmeticError) as e:
                logger.warning("malformed_expense_row", row_id=row[0], error=str(e))
                continue
            if start is not None and record.date < start:
                continue
            records.append(record)

        # Sort by date descending (newest first), sheet order breaks ties
        records.sort(key=lambda r: r.date, reverse=True)
        return records[:limit]

    def _remove(self, expense_id: UUID, owner_id: str) -> bool:
        sheet = self._client.get_expenses_sheet()
        all_rows = sheet.get_all_values()

        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == str(expense_id) and len(row) > 1 and row[1] == owner_id:
                sheet.delete_rows(idx)
                return True
        return False

    async def save_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        """Append a row for the expense."""
        try:
            await asyncio.to_thread(self._append, record)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to save expense: {e}")
        return record

    async def list_expenses(
        self,
        owner_id: str,
        window: TimeWindow = TimeWindow.ALL,
        today: Optional[date] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[ExpenseRecord]:
        """List expenses, filtering in Python."""
        start = window.start_date(today or date.today())
        try:
            return await asyncio.to_thread(self._select, owner_id, start, limit)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to list expenses: {e}")

    async def delete_expense(self, expense_id: UUID, owner_id: str) -> bool:
        """Delete the row for an expense if present."""
        try:
            return await asyncio.to_thread(self._remove, expense_id, owner_id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to delete expense: {e}")
