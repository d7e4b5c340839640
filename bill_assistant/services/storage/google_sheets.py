"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Non-technical users can view their bills directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: every insert is a single append_row call, so a row is
  either fully written or not at all
- Ids are max(existing id) + 1. Writes to a table are serialized within
  this process, but two processes writing one sheet can still collide
- Limited query capabilities (we filter in Python)

Each table lives in its own worksheet, created with a header row on first use.
"""

import json
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from bill_assistant.config import get_settings
from bill_assistant.models.audit import AuditEvent, AuditEventType, AuditSeverity
from bill_assistant.models.bill import (
    Bill,
    Category,
    CurrencyCode,
    TransactionType,
)
from bill_assistant.models.files import UploadedFile
from bill_assistant.services.storage.interface import (
    AuditStorageInterface,
    BillStorageInterface,
    CategoryStorageInterface,
    ConnectionError,
    DuplicateError,
    FileStorageInterface,
    NotFoundError,
    StorageError,
)

logger = structlog.get_logger(__name__)


FILE_COLUMNS = [
    "id",
    "owner_id",
    "original_name",
    "storage_key",
    "storage_url",
    "mime_type",
    "size_bytes",
    "created_at",
    "deleted",
]

BILL_COLUMNS = [
    "id",
    "owner_id",
    "created_at",
    "updated_at",
    "name",
    "direction",
    "invoice_number",
    "counterparty_name",
    "category_label",
    "category_id",
    "total_amount",
    "tax_amount",
    "net_amount",
    "currency_code",
    "issue_date",
    "notes",
    "source_file_id",
    "deleted",
]

CATEGORY_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "code",
    "description",
    "sort_order",
    "enabled",
    "is_system",
    "deleted",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "owner_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _opt(value) -> str:
    return "" if value is None else str(value)


def _opt_int(value: str) -> Optional[int]:
    return int(value) if value else None


def _opt_decimal(value: str) -> Optional[Decimal]:
    return Decimal(value) if value else None


def _flag(value: str) -> bool:
    return value.lower() == "true"


class _Row:
    """Index-safe access to a worksheet row (trailing empty cells are dropped by the API)."""

    def __init__(self, row: list):
        self._row = row

    def __getitem__(self, index: int) -> str:
        try:
            return self._row[index] or ""
        except IndexError:
            return ""


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
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

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_files_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.files_sheet_name, FILE_COLUMNS)

    def get_bills_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.bills_sheet_name, BILL_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class _SheetTable(ABC):
    """
    Shared row plumbing for the id-keyed tables.

    Ids are allocated by reading the sheet and appending max + 1, so every
    write to a table runs under that table's `_write_lock`. The lock is a
    class attribute: all instances of a table in this process share it.
    """

    _write_lock: threading.Lock

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @abstractmethod
    def _sheet(self) -> gspread.Worksheet:
        """The worksheet holding this table."""
        pass

    def _data_rows(self) -> list[list]:
        # Skip header
        return self._sheet().get_all_values()[1:]

    def _next_id(self, rows: list[list]) -> int:
        ids = [int(row[0]) for row in rows if row and row[0].isdigit()]
        return max(ids, default=0) + 1

    def _find(self, rows: list[list], entity_id: int) -> Optional[tuple[int, list]]:
        """Return (sheet row number, row) for an id."""
        for idx, row in enumerate(rows, start=2):  # row 1 is the header
            if row and row[0] == str(entity_id):
                return idx, row
        return None

    def _append(self, row: list) -> None:
        self._sheet().append_row(row, value_input_option="RAW")

    def _replace(self, row_number: int, row: list) -> None:
        self._sheet().batch_update(
            [{"range": f"A{row_number}", "values": [row]}],
            value_input_option="RAW",
        )


class GoogleSheetsFileStorage(_SheetTable, FileStorageInterface):
    """File records, one per row."""

    _write_lock = threading.Lock()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_files_sheet()

    @staticmethod
    def _to_row(record: UploadedFile) -> list:
        return [
            str(record.id),
            str(record.owner_id),
            record.original_name,
            record.storage_key,
            record.storage_url,
            record.mime_type,
            str(record.size_bytes),
            record.created_at.isoformat(),
            str(record.deleted),
        ]

    @staticmethod
    def _from_row(raw: list) -> UploadedFile:
        row = _Row(raw)
        return UploadedFile(
            id=int(row[0]),
            owner_id=int(row[1]),
            original_name=row[2],
            storage_key=row[3],
            storage_url=row[4],
            mime_type=row[5],
            size_bytes=int(row[6] or 0),
            created_at=datetime.fromisoformat(row[7]),
            deleted=_flag(row[8]),
        )

    async def insert_file(self, record: UploadedFile) -> UploadedFile:
        try:
            with self._write_lock:
                stored = record.model_copy(update={"id": self._next_id(self._data_rows())})
                self._append(self._to_row(stored))
            return stored
        except Exception as e:
            raise StorageError(f"Failed to insert file record: {e}")

    async def get_file(self, file_id: int) -> Optional[UploadedFile]:
        try:
            found = self._find(self._data_rows(), file_id)
        except Exception as e:
            raise StorageError(f"Failed to get file record: {e}")
        if found is None:
            return None
        record = self._from_row(found[1])
        return None if record.deleted else record

    async def soft_delete_file(self, file_id: int) -> bool:
        try:
            with self._write_lock:
                found = self._find(self._data_rows(), file_id)
                if found is None or _flag(_Row(found[1])[8]):
                    return False
                self._sheet().update_cell(found[0], FILE_COLUMNS.index("deleted") + 1, "True")
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete file record: {e}")


class GoogleSheetsBillStorage(_SheetTable, BillStorageInterface):
    """
    Google Sheets implementation of bill storage.

    Bills are stored as rows in a worksheet with one bill per row.
    """

    _write_lock = threading.Lock()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_bills_sheet()

    @staticmethod
    def _to_row(bill: Bill) -> list:
        return [
            str(bill.id),
            str(bill.owner_id),
            bill.created_at.isoformat(),
            bill.updated_at.isoformat(),
            bill.name,
            bill.direction.value,
            _opt(bill.invoice_number),
            _opt(bill.counterparty_name),
            _opt(bill.category_label),
            _opt(bill.category_id),
            str(bill.total_amount),
            _opt(bill.tax_amount),
            _opt(bill.net_amount),
            bill.currency_code.value,
            bill.issue_date.isoformat(),
            _opt(bill.notes),
            _opt(bill.source_file_id),
            str(bill.deleted),
        ]

    @staticmethod
    def _from_row(raw: list) -> Bill:
        row = _Row(raw)
        return Bill(
            id=int(row[0]),
            owner_id=int(row[1]),
            created_at=datetime.fromisoformat(row[2]),
            updated_at=datetime.fromisoformat(row[3]),
            name=row[4],
            direction=TransactionType(row[5]),
            invoice_number=row[6] or None,
            counterparty_name=row[7] or None,
            category_label=row[8] or None,
            category_id=_opt_int(row[9]),
            total_amount=Decimal(row[10]),
            tax_amount=_opt_decimal(row[11]),
            net_amount=_opt_decimal(row[12]),
            currency_code=CurrencyCode(row[13]),
            issue_date=date.fromisoformat(row[14]),
            notes=row[15] or None,
            source_file_id=_opt_int(row[16]),
            deleted=_flag(row[17]),
        )

    def _live_bills(self, rows: Optional[list[list]] = None) -> list[Bill]:
        bills = []
        for raw in self._data_rows() if rows is None else rows:
            if not raw or not raw[0]:
                continue
            try:
                bill = self._from_row(raw)
            except (ValueError, ArithmeticError) as e:
                logger.warning("malformed_bill_row", row_id=raw[0], error=str(e))
                continue
            if not bill.deleted:
                bills.append(bill)
        return bills

    async def insert_bill(self, bill: Bill) -> Bill:
        # Enforced within this process only: the sheet has no unique index
        try:
            with self._write_lock:
                rows = self._data_rows()
                if bill.source_file_id is not None and any(
                    b.owner_id == bill.owner_id and b.source_file_id == bill.source_file_id
                    for b in self._live_bills(rows)
                ):
                    raise DuplicateError(f"Bill already filed from file {bill.source_file_id}")
                stored = bill.model_copy(update={"id": self._next_id(rows)})
                self._append(self._to_row(stored))
            return stored
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save bill: {e}")

    async def get_bill_by_id(self, bill_id: int) -> Optional[Bill]:
        try:
            found = self._find(self._data_rows(), bill_id)
        except Exception as e:
            raise StorageError(f"Failed to get bill: {e}")
        if found is None:
            return None
        bill = self._from_row(found[1])
        return None if bill.deleted else bill

    async def list_bills(self, owner_id: int) -> list[Bill]:
        try:
            bills = [b for b in self._live_bills() if b.owner_id == owner_id]
        except Exception as e:
            raise StorageError(f"Failed to list bills: {e}")
        # Newest first
        bills.sort(key=lambda b: (b.issue_date, b.id), reverse=True)
        return bills

    async def bill_exists_for_file(self, owner_id: int, source_file_id: int) -> bool:
        try:
            return any(
                b.owner_id == owner_id and b.source_file_id == source_file_id
                for b in self._live_bills()
            )
        except Exception as e:
            raise StorageError(f"Failed to check bills: {e}")


class GoogleSheetsCategoryStorage(_SheetTable, CategoryStorageInterface):
    """Categories worksheet. System categories have an empty owner_id."""

    _write_lock = threading.Lock()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_categories_sheet()

    @staticmethod
    def _to_row(category: Category) -> list:
        return [
            str(category.id),
            _opt(category.owner_id),
            category.name,
            _opt(category.code),
            _opt(category.description),
            str(category.sort_order),
            str(category.enabled),
            str(category.is_system),
            str(category.deleted),
            category.created_at.isoformat(),
            category.updated_at.isoformat(),
        ]

    @staticmethod
    def _from_row(raw: list) -> Category:
        row = _Row(raw)
        return Category(
            id=int(row[0]),
            owner_id=_opt_int(row[1]),
            name=row[2],
            code=row[3] or None,
            description=row[4] or None,
            sort_order=int(row[5] or 0),
            enabled=_flag(row[6]),
            is_system=_flag(row[7]),
            deleted=_flag(row[8]),
            created_at=datetime.fromisoformat(row[9]),
            updated_at=datetime.fromisoformat(row[10]),
        )

    def _all(self) -> list[Category]:
        return [self._from_row(raw) for raw in self._data_rows() if raw and raw[0]]

    async def insert_category(self, category: Category) -> Category:
        try:
            with self._write_lock:
                stored = category.model_copy(update={"id": self._next_id(self._data_rows())})
                self._append(self._to_row(stored))
            return stored
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def get_category(self, category_id: int) -> Optional[Category]:
        try:
            found = self._find(self._data_rows(), category_id)
        except Exception as e:
            raise StorageError(f"Failed to get category: {e}")
        if found is None:
            return None
        category = self._from_row(found[1])
        return None if category.deleted else category

    async def update_category(self, category: Category) -> bool:
        try:
            with self._write_lock:
                found = self._find(self._data_rows(), category.id)
                if found is None:
                    raise NotFoundError(f"Category not found: {category.id}")
                updated = category.model_copy(update={"updated_at": datetime.utcnow()})
                self._replace(found[0], self._to_row(updated))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def list_categories(
        self,
        owner_id: Optional[int],
        include_disabled: bool = False,
    ) -> list[Category]:
        try:
            categories = [
                c for c in self._all()
                if c.is_visible_to(owner_id) and (include_disabled or c.enabled)
            ]
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")
        categories.sort(key=lambda c: (c.sort_order, c.id))
        return categories

    async def category_value_taken(
        self,
        field: str,
        value: str,
        owner_id: int,
        exclude_id: Optional[int] = None,
    ) -> bool:
        try:
            return any(
                c.owner_id == owner_id
                and not c.deleted
                and c.id != exclude_id
                and getattr(c, field) == value
                for c in self._all()
            )
        except Exception as e:
            raise StorageError(f"Failed to check categories: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, raw: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        row = _Row(raw)
        return AuditEvent(
            event_id=UUID(row[0]),
            timestamp=datetime.fromisoformat(row[1]),
            event_type=AuditEventType(row[2]),
            severity=AuditSeverity(row[3]),
            entity_type=row[4] or None,
            entity_id=row[5] or None,
            owner_id=_opt_int(row[6]),
            correlation_id=UUID(row[7]) if row[7] else None,
            description=row[8],
            details=json.loads(row[9]) if row[9] else {},
            error_message=row[10] or None,
            is_user_action=_flag(row[11]),
        )

    def _events(self) -> list[AuditEvent]:
        events = []
        for raw in self._client.get_audit_sheet().get_all_values()[1:]:
            if not raw or not raw[0]:
                continue
            try:
                events.append(self._row_to_event(raw))
            except ValueError as e:
                logger.warning("malformed_audit_row", row_id=raw[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
