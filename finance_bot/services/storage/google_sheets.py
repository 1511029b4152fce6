"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. Each subscriber gets a spreadsheet they can open and chart themselves
2. The admin manages the directory by looking at a plain table
3. No database setup required

TRADEOFFS:
- No transactions: a row is located by a full read, then rewritten
  (concurrent writers can race; acceptable for this scale)
- Rate-limited API: every call is a network round trip
- gspread is synchronous: each operation runs in a worker thread so a
  slow call only stalls the conversation that issued it

Data operations are NOT retried. A failure surfaces to the caller as a
StorageError and the user sees it immediately. Only the authentication
handshake is retried.
"""

import asyncio
from itertools import zip_longest
from typing import Any, Callable, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_bot.config import GoogleSheetsSettings, get_settings
from finance_bot.models.audit import AUDIT_COLUMNS, AuditEvent
from finance_bot.models.ledger import (
    DEFAULT_CATEGORIES,
    ProvisionedLedger,
    Subscriber,
    Transaction,
    TransactionKind,
)
from finance_bot.services.storage.interface import (
    SUBSCRIBER_FIELDS,
    AuditStorageInterface,
    ConnectionError,
    DirectoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    ProvisioningError,
    StorageError,
)
from finance_bot.validation.normalizers import PhoneNormalizer


logger = structlog.get_logger(__name__)


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# Column order used when the directory sheet has to be created
DIRECTORY_COLUMNS = list(SUBSCRIBER_FIELDS)

# Older directories were set up with Spanish headers
DIRECTORY_HEADER_ALIASES = {
    "telefono": "phone",
    "teléfono": "phone",
    "autorizado": "authorized",
    "sheet_id": "ledger_id",
    "sheet_url": "ledger_url",
    "nombre": "display_name",
    "observacion": "note",
    "observación": "note",
}

# Column mappings for the Movements sheet
MOVEMENT_COLUMNS = ["id", "date", "kind", "category", "amount", "detail"]

# Categories sheet: one column per kind
CATEGORY_COLUMNS = {
    TransactionKind.EXPENSE: 1,
    TransactionKind.INCOME: 2,
}


def parse_sheet_bool(value: Any) -> bool:
    """Directory cells encode booleans as text ("TRUE"/"FALSE")."""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().upper() in {"TRUE", "1", "YES", "SI", "SÍ"}


def format_sheet_bool(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def _cell_value(value: Any) -> str:
    if isinstance(value, bool):
        return format_sheet_bool(value)
    if value is None:
        return ""
    return str(value)


async def _in_thread(func: Callable, *args, **kwargs):
    return await asyncio.to_thread(func, *args, **kwargs)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and opening spreadsheets/worksheets.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._directory: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

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
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def open(self, spreadsheet_id: str) -> gspread.Spreadsheet:
        """Open any spreadsheet the service account can see."""
        try:
            return self.connect().open_by_key(spreadsheet_id)
        except gspread.SpreadsheetNotFound:
            raise NotFoundError(f"Spreadsheet not found: {spreadsheet_id}")

    def get_directory_spreadsheet(self) -> gspread.Spreadsheet:
        if self._directory is None:
            self._directory = self.open(self._settings.directory_spreadsheet_id)
        return self._directory

    def get_or_create_sheet(
        self,
        spreadsheet: gspread.Spreadsheet,
        title: str,
        header: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(header))
            sheet.append_row(header)
            logger.info("worksheet_created", title=title, spreadsheet_id=spreadsheet.id)
            return sheet

    def get_directory_sheet(self) -> gspread.Worksheet:
        """Get or create the directory worksheet."""
        return self.get_or_create_sheet(
            self.get_directory_spreadsheet(),
            self._settings.directory_sheet_name,
            DIRECTORY_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the audit worksheet."""
        return self.get_or_create_sheet(
            self.get_directory_spreadsheet(),
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )

    def copy(self, template_id: str, title: str) -> gspread.Spreadsheet:
        return self.connect().copy(template_id, title=title, copy_permissions=False)


class GoogleSheetsDirectoryStorage(DirectoryStorageInterface):
    """
    Google Sheets implementation of the subscriber directory.

    Columns are addressed by header name, so the admin may reorder
    them or add extra columns freely.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        normalizer: Optional[Callable[[str], str]] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._normalize = normalizer or PhoneNormalizer()

    def _read_table(self) -> tuple[gspread.Worksheet, list[str], list[list]]:
        sheet = self._client.get_directory_sheet()
        rows = sheet.get_all_values()
        if not rows:
            raise StorageError("Directory sheet has no header row")

        headers = []
        for raw in rows[0]:
            name = str(raw).strip().lower()
            headers.append(DIRECTORY_HEADER_ALIASES.get(name, name))

        if "phone" not in headers or "authorized" not in headers:
            raise StorageError('Directory sheet is missing the "phone" or "authorized" column')

        return sheet, headers, rows[1:]

    def _row_to_subscriber(self, headers: list[str], row: list) -> Subscriber:
        def safe_get(field: str) -> str:
            try:
                return str(row[headers.index(field)]).strip()
            except (ValueError, IndexError):
                return ""

        return Subscriber(
            phone=self._normalize(safe_get("phone")),
            email=safe_get("email") or None,
            authorized=parse_sheet_bool(safe_get("authorized")),
            ledger_id=safe_get("ledger_id") or None,
            ledger_url=safe_get("ledger_url") or None,
            display_name=safe_get("display_name")[:60] or None,
            note=safe_get("note") or None,
        )

    def _locate(self, phone: str):
        """Return (sheet, headers, sheet_row_number, row) or None."""
        target = self._normalize(phone)
        if not target:
            return None
        sheet, headers, rows = self._read_table()
        phone_idx = headers.index("phone")

        # Sheet rows are 1-based and row 1 is the header
        for row_number, row in enumerate(rows, start=2):
            cell = row[phone_idx] if phone_idx < len(row) else ""
            if cell and self._normalize(cell) == target:
                return sheet, headers, row_number, row
        return None

    def _find_sync(self, phone: str) -> Optional[Subscriber]:
        located = self._locate(phone)
        if located is None:
            return None
        _, headers, _, row = located
        return self._row_to_subscriber(headers, row)

    def _set_fields_sync(self, phone: str, fields: dict[str, Any]) -> None:
        located = self._locate(phone)
        if located is None:
            raise NotFoundError(f"Phone not found in directory: {phone}")
        sheet, headers, row_number, _ = located

        updates = []
        for field, value in fields.items():
            if field not in SUBSCRIBER_FIELDS:
                raise StorageError(f"Unknown subscriber field: {field}")
            if field not in headers:
                raise StorageError(f'Directory sheet is missing the "{field}" column')
            col = headers.index(field) + 1
            updates.append({
                "range": rowcol_to_a1(row_number, col),
                "values": [[_cell_value(value)]],
            })

        if updates:
            sheet.batch_update(updates, value_input_option="RAW")

    def _append_sync(self, phone: str) -> Subscriber:
        sheet, headers, _ = self._read_table()
        subscriber = Subscriber(phone=self._normalize(phone), authorized=True)
        values = {
            "phone": subscriber.phone,
            "authorized": format_sheet_bool(True),
        }
        sheet.append_row(
            [values.get(header, "") for header in headers],
            value_input_option="RAW",
        )
        return subscriber

    async def find_by_phone(self, phone: str) -> Optional[Subscriber]:
        """Look up a subscriber by normalized phone."""
        try:
            return await _in_thread(self._find_sync, phone)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read directory: {e}")

    async def set_fields(self, phone: str, fields: dict[str, Any]) -> None:
        """Rewrite the given cells of the subscriber's row in one batch."""
        try:
            await _in_thread(self._set_fields_sync, phone, fields)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update subscriber: {e}")

    async def set_authorized(self, phone: str, value: bool) -> None:
        await self.set_fields(phone, {"authorized": value})

    async def append(self, phone: str) -> Subscriber:
        try:
            return await _in_thread(self._append_sync, phone)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append subscriber: {e}")


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of per-user ledgers.

    Each ledger is a copy of the template spreadsheet with:
    - a movements sheet (one transaction per row)
    - a categories sheet (Expense column, Income column)
    - a dashboard sheet (summary formulas)
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def _settings(self) -> GoogleSheetsSettings:
        return self._client.settings

    def _movements_sheet(self, ledger_id: str) -> gspread.Worksheet:
        return self._client.get_or_create_sheet(
            self._client.open(ledger_id),
            self._settings.movements_sheet_name,
            MOVEMENT_COLUMNS,
            rows=1000,
        )

    def _categories_sheet(self, ledger_id: str) -> gspread.Worksheet:
        """Get the categories sheet, seeding it with defaults if absent."""
        spreadsheet = self._client.open(ledger_id)
        try:
            return spreadsheet.worksheet(self._settings.categories_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.categories_sheet_name,
                rows=100,
                cols=len(CATEGORY_COLUMNS),
            )
            expenses = DEFAULT_CATEGORIES[TransactionKind.EXPENSE]
            incomes = DEFAULT_CATEGORIES[TransactionKind.INCOME]
            values = [[TransactionKind.EXPENSE.label, TransactionKind.INCOME.label]]
            values += [[e, i] for e, i in zip_longest(expenses, incomes, fillvalue="")]
            sheet.update(range_name="A1", values=values, value_input_option="RAW")
            logger.info("categories_sheet_seeded", ledger_id=ledger_id)
            return sheet

    def _append_sync(self, ledger_id: str, transaction: Transaction) -> None:
        self._movements_sheet(ledger_id).append_row(
            transaction.to_sheets_row(),
            value_input_option="RAW",
            insert_data_option="INSERT_ROWS",
        )

    def _recent_sync(self, ledger_id: str, limit: int) -> list[Transaction]:
        rows = self._movements_sheet(ledger_id).get_all_values(
            value_render_option="UNFORMATTED_VALUE",
            date_time_render_option="FORMATTED_STRING",
        )[1:]  # Skip header

        transactions = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                transactions.append(Transaction.from_sheets_row(row))
            except Exception:
                logger.debug("movement_row_skipped", ledger_id=ledger_id, row=row)
                continue

        return list(reversed(transactions[-limit:]))

    def _categories_sync(self, ledger_id: str, kind: TransactionKind) -> list[str]:
        column = self._categories_sheet(ledger_id).col_values(CATEGORY_COLUMNS[kind])
        return [str(name).strip() for name in column[1:] if str(name).strip()]

    def _add_category_sync(self, ledger_id: str, kind: TransactionKind, name: str) -> bool:
        sheet = self._categories_sheet(ledger_id)
        col = CATEGORY_COLUMNS[kind]
        column = sheet.col_values(col)
        names = [str(existing).strip() for existing in column[1:] if str(existing).strip()]

        if not names:
            # The user was shown the defaults, keep them alongside the new one
            names = list(DEFAULT_CATEGORIES[kind])
            if any(existing.lower() == name.strip().lower() for existing in names):
                return False
            values = [[kind.label]] + [[existing] for existing in names + [name.strip()]]
            sheet.update(
                range_name=f"{rowcol_to_a1(1, col)}:{rowcol_to_a1(len(values), col)}",
                values=values,
                value_input_option="RAW",
            )
            logger.info("categories_column_seeded", ledger_id=ledger_id, kind=kind.value)
            return True

        if any(existing.lower() == name.strip().lower() for existing in names):
            return False

        # col_values stops at the last non-empty cell
        sheet.update_cell(len(column) + 1, col, name.strip())
        return True

    def _provision_sync(self, template_id: str, display_name: str) -> ProvisionedLedger:
        title = f"{self._settings.ledger_title_prefix} - {display_name}"
        spreadsheet = self._client.copy(template_id, title=title)
        return ProvisionedLedger.for_id(spreadsheet.id)

    def _share_sync(self, ledger_id: str, email: str) -> None:
        self._client.open(ledger_id).share(
            email,
            perm_type="user",
            role="reader",
            notify=False,
        )

    def _dashboard_sync(self, ledger_id: str) -> None:
        spreadsheet = self._client.open(ledger_id)
        title = self._settings.dashboard_sheet_name
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=20, cols=2)

        movements = self._settings.movements_sheet_name.replace("'", "''")
        kind_col = f"'{movements}'!C:C"
        amount_col = f"'{movements}'!E:E"
        sheet.update(
            range_name="A1:B4",
            values=[
                ["Summary", ""],
                ["Total income", f'=SUMIF({kind_col},"{TransactionKind.INCOME.value}",{amount_col})'],
                ["Total expenses", f'=SUMIF({kind_col},"{TransactionKind.EXPENSE.value}",{amount_col})'],
                ["Balance", "=B2+B3"],
            ],
            value_input_option="USER_ENTERED",
        )

    async def append_transaction(self, ledger_id: str, transaction: Transaction) -> None:
        try:
            await _in_thread(self._append_sync, ledger_id, transaction)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append transaction: {e}")

    async def list_recent_transactions(
        self,
        ledger_id: str,
        limit: int = 5,
    ) -> list[Transaction]:
        try:
            return await _in_thread(self._recent_sync, ledger_id, limit)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read movements: {e}")

    async def list_categories(self, ledger_id: str, kind: TransactionKind) -> list[str]:
        """Categories from the sheet, or the defaults if it can't be read."""
        try:
            categories = await _in_thread(self._categories_sync, ledger_id, kind)
        except Exception as e:
            logger.warning(
                "categories_read_failed",
                ledger_id=ledger_id,
                kind=kind.value,
                error=str(e),
            )
            return list(DEFAULT_CATEGORIES[kind])
        return categories or list(DEFAULT_CATEGORIES[kind])

    async def add_category(self, ledger_id: str, kind: TransactionKind, name: str) -> bool:
        try:
            return await _in_thread(self._add_category_sync, ledger_id, kind, name)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to add category: {e}")

    async def provision_ledger(self, template_id: str, display_name: str) -> ProvisionedLedger:
        try:
            return await _in_thread(self._provision_sync, template_id, display_name)
        except Exception as e:
            raise ProvisioningError(f"Failed to copy ledger template: {e}")

    async def share_ledger(self, ledger_id: str, email: str) -> None:
        try:
            await _in_thread(self._share_sync, ledger_id, email)
        except Exception as e:
            raise StorageError(f"Failed to share ledger: {e}")

    async def initialize_dashboard(self, ledger_id: str) -> None:
        try:
            await _in_thread(self._dashboard_sync, ledger_id)
        except Exception as e:
            raise StorageError(f"Failed to initialize dashboard: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _append_sync(self, event: AuditEvent) -> None:
        self._client.get_audit_sheet().append_row(
            event.to_sheets_row(),
            value_input_option="RAW",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await _in_thread(self._append_sync, event)
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_sheet_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False
