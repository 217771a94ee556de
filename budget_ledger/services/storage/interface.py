"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Keep Google Sheets as the shared backend operators already look at
2. Use in-memory storage for testing
3. Keep every cross-collection rule in the engine, not in the store

The store is deliberately dumb: three flat collections plus a settings
object, keyed single-record writes, and nothing else. It never cascades.
Renames and deletes that must ripple across collections are the
reconciliation engine's job.

KEYS:
- project lines: (name, category)
- cases: name
- payments: id
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from budget_ledger.models.records import (
    Case,
    Payment,
    ProjectCategoryRecord,
    SettingsRegistry,
)
from budget_ledger.models.audit import AuditEvent


ProjectKey = tuple[str, str]


class RecordStoreInterface(ABC):
    """
    Abstract interface for the record store.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods.

    Guarantee: a single-record write that returned is visible to the
    next read *through the same store object*. Writes made by other
    operators against a shared remote backend only become visible after
    `sync_barrier()`.
    """

    async def sync_barrier(self) -> None:
        """
        Read-after-write boundary for remote backends.

        Drops anything cached so the next read reflects every write that
        reached the backend, including other sessions' writes. Backends
        that never cache need not override this.
        """
        return None

    # ---- projects -------------------------------------------------------

    @abstractmethod
    async def list_projects(self) -> list[ProjectCategoryRecord]:
        """
        List all project-category lines in stored order.

        Returns:
            Every line, in insertion order
        """
        pass

    @abstractmethod
    async def upsert_project(
        self,
        record: ProjectCategoryRecord,
        key: Optional[ProjectKey] = None,
    ) -> bool:
        """
        Write a project line.

        Args:
            record: The line to write
            key: The existing key to overwrite, when the write changes the
                 record's own key (rename / recategorize). Defaults to
                 record.key. The record keeps the overwritten line's
                 position.

        Returns:
            True if an existing line was overwritten, False if appended

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_project(self, name: str, category: str) -> bool:
        """
        Delete one project line.

        Returns:
            True if a line was deleted, False if none matched
        """
        pass

    # ---- cases ----------------------------------------------------------

    @abstractmethod
    async def list_cases(self) -> list[Case]:
        """List all cases in stored order."""
        pass

    @abstractmethod
    async def upsert_case(self, case: Case, key: Optional[str] = None) -> bool:
        """
        Write a case.

        Args:
            case: The case to write
            key: Existing case name to overwrite (for renames).
                 Defaults to case.name.

        Returns:
            True if an existing case was overwritten, False if appended
        """
        pass

    @abstractmethod
    async def delete_case(self, name: str) -> bool:
        """
        Delete a case row. Does NOT touch linked lines or payments.

        Returns:
            True if a case was deleted
        """
        pass

    # ---- payments -------------------------------------------------------

    @abstractmethod
    async def list_payments(self) -> list[Payment]:
        """List all payments in stored order."""
        pass

    @abstractmethod
    async def upsert_payment(self, payment: Payment) -> bool:
        """
        Write a payment keyed by its id.

        Returns:
            True if an existing payment was overwritten, False if appended
        """
        pass

    @abstractmethod
    async def delete_payment(self, payment_id: str) -> bool:
        """
        Delete a payment by id.

        Returns:
            True if a payment was deleted
        """
        pass

    # ---- settings -------------------------------------------------------

    @abstractmethod
    async def load_settings(self) -> SettingsRegistry:
        """Load the settings registry (empty registry if none saved)."""
        pass

    @abstractmethod
    async def save_settings(self, registry: SettingsRegistry) -> bool:
        """
        Replace the settings registry wholesale.

        There is no partial merge: the last save wins.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one engine operation.

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
