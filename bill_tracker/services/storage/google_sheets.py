"""
Google Sheets Remote Store

The household's bills live in one worksheet: a header row, then one row
per bill occurrence keyed by the id in column A. Anyone in the household
can open the sheet and see or fix the same rows the app shows.

There are no transactions; concurrent writers follow last-write-wins,
the same rule as the sync model. The app only ever reads the whole table.

gspread is synchronous, so every sheet call runs in a worker thread.
"""

import asyncio
import threading
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from bill_tracker.audit import get_logger
from bill_tracker.config import GoogleSheetsSettings, get_settings
from bill_tracker.models.bill import Bill, BillStatus
from bill_tracker.services.storage.interface import (
    ConnectionError,
    RemoteBillStore,
    StorageError,
)


logger = get_logger(__name__)


# Column mappings for the bills worksheet
BILL_COLUMNS = [
    "id",
    "series_id",
    "month_ref",
    "name",
    "amount",
    "group",
    "is_installment",
    "installment_index",
    "installment_count",
    "is_fixed",
    "status",
    "notes",
    "category",
    "due_day",
]


class GoogleSheetsClient:
    """
    Opens the configured spreadsheet with a service account.

    Only authentication is retried; sheet operations fail fast.
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
        """Authorize once and reuse the gspread client."""
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
        """The spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID."""
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

    def get_bills_sheet(self) -> gspread.Worksheet:
        """Get or create the bills worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.bills_sheet_name)
        except gspread.WorksheetNotFound:
            # First run: create it with the header row
            sheet = spreadsheet.add_worksheet(
                title=self._settings.bills_sheet_name,
                rows=1000,
                cols=len(BILL_COLUMNS),
            )
            sheet.append_row(BILL_COLUMNS)
        return sheet


def bill_to_row(bill: Bill) -> list[str]:
    """Convert a Bill to a spreadsheet row."""
    return [
        str(bill.id),
        str(bill.series_id),
        bill.month_ref,
        bill.name,
        str(bill.amount),
        bill.group,
        str(bill.is_installment),
        str(bill.installment_index) if bill.installment_index is not None else "",
        str(bill.installment_count) if bill.installment_count is not None else "",
        str(bill.is_fixed),
        bill.status.value,
        bill.notes or "",
        bill.category or "",
        str(bill.due_day) if bill.due_day is not None else "",
    ]


def row_to_bill(row: list[str]) -> Bill:
    """Convert a spreadsheet row to a Bill."""
    # Handle missing trailing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    def optional_int(index: int) -> Optional[int]:
        value = safe_get(index)
        return int(value) if value else None

    return Bill(
        id=UUID(safe_get(0)),
        series_id=UUID(safe_get(1)) if safe_get(1) else None,
        month_ref=safe_get(2),
        name=safe_get(3),
        amount=Decimal(safe_get(4, "0")),
        group=safe_get(5),
        is_installment=safe_get(6).lower() == "true",
        installment_index=optional_int(7),
        installment_count=optional_int(8),
        is_fixed=safe_get(9).lower() == "true",
        status=BillStatus(safe_get(10, BillStatus.PENDING.value)),
        notes=safe_get(11) or None,
        category=safe_get(12) or None,
        due_day=optional_int(13),
    )


class GoogleSheetsBillStore(RemoteBillStore):
    """
    Google Sheets implementation of the remote bills table.

    Bills are stored as rows in a worksheet with one bill per row,
    below a header row.

    Rows are addressed by position, so every operation holds one lock
    from reading row numbers to its last write.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = threading.Lock()

    def _row_numbers_by_id(self, sheet: gspread.Worksheet) -> dict[str, int]:
        """Map bill id -> 1-based sheet row number (row 1 is the header)."""
        ids = sheet.col_values(1)[1:]
        return {
            bill_id: idx
            for idx, bill_id in enumerate(ids, start=2)
            if bill_id
        }

    def _select_all(self) -> list[Bill]:
        with self._lock:
            rows = self._client.get_bills_sheet().get_all_values()[1:]
        bills = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                bills.append(row_to_bill(row))
            except (ValueError, ArithmeticError) as e:
                # Skip malformed rows
                logger.warning("skipping_malformed_row", bill_id=row[0], error=str(e))
        return bills

    def _insert(self, bills: list[Bill]) -> None:
        with self._lock:
            sheet = self._client.get_bills_sheet()
            sheet.append_rows(
                [bill_to_row(bill) for bill in bills],
                value_input_option="RAW",
            )

    def _upsert(self, bills: list[Bill]) -> None:
        with self._lock:
            sheet = self._client.get_bills_sheet()
            row_numbers = self._row_numbers_by_id(sheet)

            updates = []
            new_rows = []
            for bill in bills:
                row = bill_to_row(bill)
                row_number = row_numbers.get(str(bill.id))
                if row_number is None:
                    new_rows.append(row)
                    continue
                start = rowcol_to_a1(row_number, 1)
                end = rowcol_to_a1(row_number, len(BILL_COLUMNS))
                updates.append({"range": f"{start}:{end}", "values": [row]})

            if updates:
                sheet.batch_update(updates)
            if new_rows:
                sheet.append_rows(new_rows, value_input_option="RAW")

    def _delete(self, bill_ids: list[UUID]) -> None:
        with self._lock:
            sheet = self._client.get_bills_sheet()
            row_numbers = self._row_numbers_by_id(sheet)
            targets = sorted(
                (row_numbers[str(bill_id)] for bill_id in bill_ids if str(bill_id) in row_numbers),
                reverse=True,
            )
            if not targets:
                return
            # One request; bottom-up so earlier deletions don't shift later rows
            sheet.spreadsheet.batch_update({
                "requests": [
                    {
                        "deleteDimension": {
                            "range": {
                                "sheetId": sheet.id,
                                "dimension": "ROWS",
                                "startIndex": row_number - 1,
                                "endIndex": row_number,
                            }
                        }
                    }
                    for row_number in targets
                ]
            })

    async def select_all(self) -> list[Bill]:
        """Read every bill row from the sheet."""
        try:
            return await asyncio.to_thread(self._select_all)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read bills: {e}")

    async def insert(self, bills: list[Bill]) -> None:
        """Append bill rows to the sheet."""
        if not bills:
            return
        try:
            await asyncio.to_thread(self._insert, bills)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert bills: {e}")

    async def upsert(self, bills: list[Bill]) -> None:
        """Rewrite rows whose id exists, append the rest."""
        if not bills:
            return
        try:
            await asyncio.to_thread(self._upsert, bills)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to upsert bills: {e}")

    async def delete_by_id(self, bill_id: UUID) -> None:
        """Delete the row of one bill."""
        await self.delete_by_ids([bill_id])

    async def delete_by_ids(self, bill_ids: list[UUID]) -> None:
        """Delete the rows of several bills."""
        if not bill_ids:
            return
        try:
            await asyncio.to_thread(self._delete, bill_ids)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete bills: {e}")
