"""
In-Memory Storage Implementation

Used for tests and for running the engine without a spreadsheet.
Collections are plain lists so stored order behaves exactly like rows in
a sheet: appends go to the end, overwrites keep their position.

Reads return copies; mutating a returned record never changes the store.
"""

from typing import Optional
from uuid import UUID

from budget_ledger.models.audit import AuditEvent
from budget_ledger.models.records import (
    Case,
    Payment,
    ProjectCategoryRecord,
    SettingsRegistry,
)
from budget_ledger.services.storage.interface import (
    AuditStorageInterface,
    ProjectKey,
    RecordStoreInterface,
)


class InMemoryRecordStore(RecordStoreInterface):
    """List-backed record store."""

    def __init__(
        self,
        projects: Optional[list[ProjectCategoryRecord]] = None,
        cases: Optional[list[Case]] = None,
        payments: Optional[list[Payment]] = None,
        settings: Optional[SettingsRegistry] = None,
    ):
        self._projects: list[ProjectCategoryRecord] = list(projects or [])
        self._cases: list[Case] = list(cases or [])
        self._payments: list[Payment] = list(payments or [])
        self._settings = settings or SettingsRegistry()

    @staticmethod
    def _replace_or_append(rows: list, index: Optional[int], item) -> bool:
        if index is None:
            rows.append(item)
            return False
        rows[index] = item
        return True

    @staticmethod
    def _find(rows: list, predicate) -> Optional[int]:
        for idx, row in enumerate(rows):
            if predicate(row):
                return idx
        return None

    async def list_projects(self) -> list[ProjectCategoryRecord]:
        return [r.model_copy(deep=True) for r in self._projects]

    async def upsert_project(
        self,
        record: ProjectCategoryRecord,
        key: Optional[ProjectKey] = None,
    ) -> bool:
        key = key or record.key
        idx = self._find(self._projects, lambda r: r.key == key)
        return self._replace_or_append(self._projects, idx, record.model_copy(deep=True))

    async def delete_project(self, name: str, category: str) -> bool:
        idx = self._find(self._projects, lambda r: r.key == (name, category))
        if idx is None:
            return False
        del self._projects[idx]
        return True

    async def list_cases(self) -> list[Case]:
        return [c.model_copy(deep=True) for c in self._cases]

    async def upsert_case(self, case: Case, key: Optional[str] = None) -> bool:
        key = key or case.name
        idx = self._find(self._cases, lambda c: c.name == key)
        return self._replace_or_append(self._cases, idx, case.model_copy(deep=True))

    async def delete_case(self, name: str) -> bool:
        idx = self._find(self._cases, lambda c: c.name == name)
        if idx is None:
            return False
        del self._cases[idx]
        return True

    async def list_payments(self) -> list[Payment]:
        return [p.model_copy(deep=True) for p in self._payments]

    async def upsert_payment(self, payment: Payment) -> bool:
        idx = self._find(self._payments, lambda p: p.id == payment.id)
        return self._replace_or_append(self._payments, idx, payment.model_copy(deep=True))

    async def delete_payment(self, payment_id: str) -> bool:
        idx = self._find(self._payments, lambda p: p.id == payment_id)
        if idx is None:
            return False
        del self._payments[idx]
        return True

    async def load_settings(self) -> SettingsRegistry:
        return self._settings.model_copy(deep=True)

    async def save_settings(self, registry: SettingsRegistry) -> bool:
        self._settings = registry.model_copy(deep=True)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
