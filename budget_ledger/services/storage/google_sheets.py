"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend because:
1. Operators already read and hand-correct the sheet directly
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions. A multi-row change (cascade, batch) is a sequence of
  single-row writes; the engine decides what to do when one fails.
- No locking between operators. Last write wins per row.
- Limited query capabilities (we filter in Python)

One worksheet per collection, one row per record, header in row 1.
List-valued fields (photo URLs) are JSON-serialized into a single cell.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import NAMESPACE_URL, UUID, uuid5

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from budget_ledger.config import get_settings
from budget_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from budget_ledger.models.records import (
    AwardBreakdown,
    Case,
    CaseStatus,
    Payment,
    ProjectCategoryRecord,
    SettingsRegistry,
    StaffEntry,
)
from budget_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    ProjectKey,
    RecordStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Column mappings for each worksheet
PROJECT_COLUMNS = [
    "name",
    "content",
    "location",
    "suggest_by",
    "staff",
    "amount",
    "category",
    "case_link",
    "created_at",
    "photo_urls_json",
]

CASE_COLUMNS = [
    "name",
    "proposed_budget",
    "awarded_total",
    "status",
    "vendor",
    "award_date",
    "duration",
    "updated_at",
    "construction_cost",
    "pollution_cost",
    "management_cost",
    "misc_cost",
]

PAYMENT_COLUMNS = [
    "case_link",
    "stage",
    "amount",
    "paid_on",
    "invoice",
    "created_at",
    "id",
]

# One row per registry entry: kind is category | suggester | staff
SETTINGS_COLUMNS = [
    "kind",
    "key",
    "value",
    "id",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

# Google Sheets rejects any cell longer than this
CELL_CHARACTER_LIMIT = 50000


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Cell value, tolerating short rows (Sheets trims trailing blanks)."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _to_decimal(value: str) -> Decimal:
    """Parse an amount cell; blanks are zero, thousands separators allowed."""
    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return Decimal("0")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Not an amount: {value!r}")


def _to_date(value: str) -> Optional[date]:
    # Accepts both '2024-05-01' and '2024-05-01T00:00:00.000Z'
    return date.fromisoformat(value[:10]) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
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

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
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


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    Data rows of each sheet are cached after the first read and dropped on
    every write to that sheet, so a run of writes inside one engine
    operation does not re-download the sheet for every lookup. Edits by
    other operators are only picked up after `sync_barrier()`.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._cache: dict[str, list[list[str]]] = {}

    # ---- plumbing -------------------------------------------------------

    def _sheet(self, kind: str) -> gspread.Worksheet:
        cfg = self._client.settings
        title, columns = {
            "projects": (cfg.projects_sheet_name, PROJECT_COLUMNS),
            "cases": (cfg.cases_sheet_name, CASE_COLUMNS),
            "payments": (cfg.payments_sheet_name, PAYMENT_COLUMNS),
            "settings": (cfg.settings_sheet_name, SETTINGS_COLUMNS),
        }[kind]
        return self._client.get_sheet(title, columns)

    def _rows(self, kind: str) -> list[list[str]]:
        """Data rows (header excluded), cached per sheet."""
        if kind not in self._cache:
            self._cache[kind] = self._sheet(kind).get_all_values()[1:]
        return self._cache[kind]

    def _find_row(self, kind: str, predicate) -> Optional[int]:
        """1-based sheet row number of the first matching data row."""
        for idx, row in enumerate(self._rows(kind), start=2):  # row 1 is header
            if row and predicate(row):
                return idx
        return None

    def _write(self, kind: str, row_number: Optional[int], values: list) -> bool:
        for column, value in enumerate(values, start=1):
            if len(str(value)) > CELL_CHARACTER_LIMIT:
                raise StorageError(
                    f"Column {column} of the {kind} row is {len(str(value))} characters; "
                    f"Google Sheets cells hold at most {CELL_CHARACTER_LIMIT}"
                )
        sheet = self._sheet(kind)
        self._cache.pop(kind, None)
        if row_number is None:
            sheet.append_row(values, value_input_option="RAW")
            return False
        span = f"{rowcol_to_a1(row_number, 1)}:{rowcol_to_a1(row_number, len(values))}"
        sheet.update(range_name=span, values=[values])
        return True

    def _delete(self, kind: str, row_number: int) -> None:
        self._cache.pop(kind, None)
        self._sheet(kind).delete_rows(row_number)

    def _parse_all(self, kind: str, parser) -> list:
        parsed = []
        for row in self._rows(kind):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                parsed.append(parser(row))
            except Exception as e:
                # Hand-edited rows that no longer parse are skipped, not fatal
                logger.warning("sheet_row_skipped", sheet=kind, row=row, error=str(e))
        return parsed

    async def sync_barrier(self) -> None:
        self._cache.clear()

    # ---- row conversion -------------------------------------------------

    def _project_to_row(self, record: ProjectCategoryRecord) -> list:
        return [
            record.name,
            record.content,
            record.location,
            record.proposed_by,
            record.assigned_staff,
            str(record.amount),
            record.category,
            record.case_link,
            record.created_at.isoformat(),
            json.dumps(record.photo_urls),
        ]

    def _row_to_project(self, row: list) -> ProjectCategoryRecord:
        photos_json = _safe_get(row, 9)
        created = _safe_get(row, 8)
        return ProjectCategoryRecord(
            name=_safe_get(row, 0),
            content=_safe_get(row, 1),
            location=_safe_get(row, 2),
            proposed_by=_safe_get(row, 3),
            assigned_staff=_safe_get(row, 4),
            amount=_to_decimal(_safe_get(row, 5)),
            category=_safe_get(row, 6),
            case_link=_safe_get(row, 7),
            created_at=datetime.fromisoformat(created) if created else datetime.utcnow(),
            photo_urls=json.loads(photos_json) if photos_json else [],
        )

    def _case_to_row(self, case: Case) -> list:
        breakdown = case.breakdown
        return [
            case.name,
            str(case.proposed_budget),
            str(case.awarded_total),
            case.status.value,
            case.vendor,
            case.award_date.isoformat() if case.award_date else "",
            case.duration,
            case.updated_at.isoformat(),
            str(breakdown.construction_cost) if breakdown else "",
            str(breakdown.pollution_cost) if breakdown else "",
            str(breakdown.management_cost) if breakdown else "",
            str(breakdown.misc_cost) if breakdown else "",
        ]

    def _row_to_case(self, row: list) -> Case:
        cost_cells = [_safe_get(row, i) for i in range(8, 12)]
        breakdown = None
        if any(cost_cells):
            breakdown = AwardBreakdown(
                construction_cost=_to_decimal(cost_cells[0]),
                pollution_cost=_to_decimal(cost_cells[1]),
                management_cost=_to_decimal(cost_cells[2]),
                misc_cost=_to_decimal(cost_cells[3]),
            )
        updated = _safe_get(row, 7)
        return Case(
            name=_safe_get(row, 0),
            proposed_budget=_to_decimal(_safe_get(row, 1)),
            # A breakdown always wins over a hand-edited total cell
            awarded_total=breakdown.total if breakdown else _to_decimal(_safe_get(row, 2)),
            status=CaseStatus(_safe_get(row, 3, CaseStatus.BIDDING.value)),
            vendor=_safe_get(row, 4),
            award_date=_to_date(_safe_get(row, 5)),
            duration=_safe_get(row, 6),
            updated_at=datetime.fromisoformat(updated) if updated else datetime.utcnow(),
            breakdown=breakdown,
        )

    def _payment_to_row(self, payment: Payment) -> list:
        return [
            payment.case_link,
            payment.stage,
            str(payment.amount),
            payment.paid_on.isoformat(),
            payment.invoice,
            payment.created_at.isoformat(),
            payment.id,
        ]

    def _row_to_payment(self, row: list) -> Payment:
        created = _safe_get(row, 5)
        return Payment(
            case_link=_safe_get(row, 0),
            stage=_safe_get(row, 1),
            amount=_to_decimal(_safe_get(row, 2)),
            paid_on=_to_date(_safe_get(row, 3)),
            invoice=_safe_get(row, 4),
            created_at=datetime.fromisoformat(created) if created else datetime.utcnow(),
            id=_safe_get(row, 6),
        )

    def _registry_to_rows(self, registry: SettingsRegistry) -> list[list]:
        rows = []
        for name, ceiling in registry.categories.items():
            rows.append(["category", name, str(ceiling), ""])
        for name, quota in registry.suggesters.items():
            rows.append(["suggester", name, str(quota), ""])
        for entry in registry.staff:
            rows.append(["staff", entry.name, "", entry.id])
        return rows

    def _rows_to_registry(self, rows: list[list[str]]) -> SettingsRegistry:
        categories: dict[str, Decimal] = {}
        suggesters: dict[str, Decimal] = {}
        staff: list[StaffEntry] = []
        for row in rows:
            kind, key = _safe_get(row, 0), _safe_get(row, 1)
            if not key:
                continue
            if kind == "category":
                categories[key] = _to_decimal(_safe_get(row, 2))
            elif kind == "suggester":
                suggesters[key] = _to_decimal(_safe_get(row, 2))
            elif kind == "staff":
                # Rows typed in by hand have no id; derive one that stays the
                # same across loads until the next save writes it back.
                entry_id = _safe_get(row, 3) or uuid5(NAMESPACE_URL, f"staff/{len(staff)}/{key}").hex
                staff.append(StaffEntry(id=entry_id, name=key))
        return SettingsRegistry(categories=categories, suggesters=suggesters, staff=staff)

    # ---- projects -------------------------------------------------------

    async def list_projects(self) -> list[ProjectCategoryRecord]:
        try:
            return self._parse_all("projects", self._row_to_project)
        except Exception as e:
            raise StorageError(f"Failed to list projects: {e}")

    async def upsert_project(
        self,
        record: ProjectCategoryRecord,
        key: Optional[ProjectKey] = None,
    ) -> bool:
        name, category = key or record.key
        try:
            row_number = self._find_row(
                "projects",
                lambda row: _safe_get(row, 0) == name and _safe_get(row, 6) == category,
            )
            return self._write("projects", row_number, self._project_to_row(record))
        except Exception as e:
            raise StorageError(f"Failed to save project line {name}/{category}: {e}")

    async def delete_project(self, name: str, category: str) -> bool:
        try:
            row_number = self._find_row(
                "projects",
                lambda row: _safe_get(row, 0) == name and _safe_get(row, 6) == category,
            )
            if row_number is None:
                return False
            self._delete("projects", row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete project line {name}/{category}: {e}")

    # ---- cases ----------------------------------------------------------

    async def list_cases(self) -> list[Case]:
        try:
            return self._parse_all("cases", self._row_to_case)
        except Exception as e:
            raise StorageError(f"Failed to list cases: {e}")

    async def upsert_case(self, case: Case, key: Optional[str] = None) -> bool:
        key = key or case.name
        try:
            row_number = self._find_row("cases", lambda row: _safe_get(row, 0) == key)
            return self._write("cases", row_number, self._case_to_row(case))
        except Exception as e:
            raise StorageError(f"Failed to save case {key}: {e}")

    async def delete_case(self, name: str) -> bool:
        try:
            row_number = self._find_row("cases", lambda row: _safe_get(row, 0) == name)
            if row_number is None:
                return False
            self._delete("cases", row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete case {name}: {e}")

    # ---- payments -------------------------------------------------------

    async def list_payments(self) -> list[Payment]:
        try:
            return self._parse_all("payments", self._row_to_payment)
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}")

    async def upsert_payment(self, payment: Payment) -> bool:
        try:
            row_number = self._find_row("payments", lambda row: _safe_get(row, 6) == payment.id)
            return self._write("payments", row_number, self._payment_to_row(payment))
        except Exception as e:
            raise StorageError(f"Failed to save payment {payment.id}: {e}")

    async def delete_payment(self, payment_id: str) -> bool:
        try:
            row_number = self._find_row("payments", lambda row: _safe_get(row, 6) == payment_id)
            if row_number is None:
                return False
            self._delete("payments", row_number)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete payment {payment_id}: {e}")

    # ---- settings -------------------------------------------------------

    async def load_settings(self) -> SettingsRegistry:
        try:
            return self._rows_to_registry(self._rows("settings"))
        except Exception as e:
            raise StorageError(f"Failed to load settings: {e}")

    async def save_settings(self, registry: SettingsRegistry) -> bool:
        try:
            sheet = self._sheet("settings")
            self._cache.pop("settings", None)
            sheet.clear()
            sheet.append_rows(
                [SETTINGS_COLUMNS] + self._registry_to_rows(registry),
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_sheet(
            self._client.settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._sheet().get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception as e:
                    logger.warning("audit_row_skipped", row=row, error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event.

        Failures are retried, then raised; AuditLogger decides that a lost
        audit write does not fail the business operation.
        """
        self._sheet().append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
