"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the remote store for shared groups because:
1. Every member can look at the group's data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a group of friends)
- No transactions (we write splits after their expense, in order)
- Limited query capabilities (we filter in Python)

Each table is one worksheet. The header row holds the model's field
names, so a row maps to a model by name, not by position.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finledger.config import GoogleSheetsSettings, get_settings
from finledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    StorageError,
)
from finledger.services.storage.tables import (
    GROUP_TABLES,
    Record,
    TableBackedGroupStorage,
)


logger = structlog.get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# Column order of the audit sheet (matches AuditEvent.to_sheets_row)
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Retries for individual API calls: rate limits and 5xx come back as APIError
api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and caching.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
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

    @api_retry
    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row on first use."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("creating_worksheet", title=title, columns=len(columns))
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns, value_input_option="RAW")

        self._worksheets[title] = sheet
        return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


def _cell(value: Any) -> str:
    """Render one JSON-mode model value as sheet text."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def model_to_row(record: BaseModel) -> list[str]:
    """Convert a model to a row, in field-declaration order."""
    data = record.model_dump(mode="json")
    return [_cell(data[name]) for name in type(record).model_fields]


def row_to_model(model: type[Record], header: list[str], row: list[str]) -> Record:
    """
    Convert a row to a model using the header for column names.

    Empty cells of optional fields fall back to the field default.
    """
    fields = model.model_fields
    data: dict[str, Any] = {}
    for name, value in zip(header, row):
        if name not in fields:
            continue
        if value == "" and not fields[name].is_required():
            continue
        data[name] = value
    return model.model_validate(data)


class GoogleSheetsGroupStorage(TableBackedGroupStorage):
    """
    Google Sheets implementation of the group store.

    One worksheet per table; rows are located by the id in column A.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self, table: str) -> gspread.Worksheet:
        return self._client.get_worksheet(table, list(GROUP_TABLES[table].model_fields))

    def _row_index(self, sheet: gspread.Worksheet, record_id: UUID) -> Optional[int]:
        """1-based sheet row number of the record, or None."""
        for idx, value in enumerate(sheet.col_values(1)[1:], start=2):
            if value == str(record_id):
                return idx
        return None

    @api_retry
    def _insert(self, table: str, record: BaseModel) -> None:
        try:
            self._sheet(table).append_row(model_to_row(record), value_input_option="RAW")
        except gspread.exceptions.APIError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {table}: {e}")

    @api_retry
    def _replace(self, table: str, record: BaseModel) -> bool:
        try:
            sheet = self._sheet(table)
            idx = self._row_index(sheet, record.id)
            if idx is None:
                return False
            sheet.update(
                range_name=f"A{idx}",
                values=[model_to_row(record)],
                value_input_option="RAW",
            )
            return True
        except gspread.exceptions.APIError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {table}: {e}")

    @api_retry
    def _delete(self, table: str, record_id: UUID) -> bool:
        try:
            sheet = self._sheet(table)
            idx = self._row_index(sheet, record_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except gspread.exceptions.APIError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete from {table}: {e}")

    @api_retry
    def _rows(self, table: str, model: type[Record]) -> list[Record]:
        try:
            values = self._sheet(table).get_all_values()
        except gspread.exceptions.APIError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {table}: {e}")

        if not values:
            return []

        header, records = values[0], []
        for row in values[1:]:
            if not row or not row[0]:
                continue
            try:
                records.append(row_to_model(model, header, row))
            except ValueError as e:
                logger.warning("skipping_malformed_row", table=table, row_id=row[0], error=str(e))
        return records


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            description=safe_get(6),
            details=json.loads(safe_get(7)) if safe_get(7) else {},
            error_message=safe_get(8) or None,
            is_user_action=safe_get(9).lower() == "true",
        )

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Failures are logged, never raised."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    @api_retry
    def _append_row(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
