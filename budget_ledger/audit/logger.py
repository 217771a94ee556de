"""
Audit Logger

DESIGN DECISION: Every engine mutation is logged.
This provides:
1. Traceability across operators sharing one spreadsheet
2. A trail to reconstruct what a failed cascade or batch left behind
3. A visible record of over-disbursement

The audit logger:
- Is async to match the engine
- Gracefully handles failures (a failing audit write never fails the
  business operation)
- Tags every event with the operation's correlation ID
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from budget_ledger.models.audit import AuditEvent, AuditEventBuilder
from budget_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence and operator visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("budget_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_project_submitted(
        self,
        name: str,
        categories: list[str],
        auto_case: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_submitted(
            name=name,
            categories=categories,
            auto_case=auto_case,
            correlation_id=correlation_id,
        ))

    async def log_project_updated(
        self,
        old_key: tuple[str, str],
        new_key: tuple[str, str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_updated(
            old_key=old_key,
            new_key=new_key,
            correlation_id=correlation_id,
        ))

    async def log_project_deleted(self, name: str, removed: int, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.project_deleted(
            name=name,
            removed=removed,
            correlation_id=correlation_id,
        ))

    async def log_project_assigned(
        self,
        name: str,
        case_name: str,
        changed: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.project_assigned(
            name=name,
            case_name=case_name,
            changed=changed,
            correlation_id=correlation_id,
        ))

    async def log_batch_rolled_back(
        self,
        name: str,
        written: list[str],
        rolled_back: list[str],
        torn: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.batch_rolled_back(
            name=name,
            written=written,
            rolled_back=rolled_back,
            torn=torn,
            correlation_id=correlation_id,
        ))

    async def log_case_saved(
        self,
        name: str,
        awarded_total: str,
        created: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.case_saved(
            name=name,
            awarded_total=awarded_total,
            created=created,
            correlation_id=correlation_id,
        ))

    async def log_case_renamed(
        self,
        old_name: str,
        new_name: str,
        relinked_projects: int,
        relinked_payments: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.case_renamed(
            old_name=old_name,
            new_name=new_name,
            relinked_projects=relinked_projects,
            relinked_payments=relinked_payments,
            correlation_id=correlation_id,
        ))

    async def log_case_deleted(
        self,
        name: str,
        unlinked_projects: int,
        deleted_payments: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.case_deleted(
            name=name,
            unlinked_projects=unlinked_projects,
            deleted_payments=deleted_payments,
            correlation_id=correlation_id,
        ))

    async def log_payment_saved(
        self,
        payment_id: str,
        case_name: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payment_saved(
            payment_id=payment_id,
            case_name=case_name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_payment_deleted(self, payment_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.payment_deleted(
            payment_id=payment_id,
            correlation_id=correlation_id,
        ))

    async def log_over_disbursement(
        self,
        case_name: str,
        paid: str,
        awarded_total: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.over_disbursement(
            case_name=case_name,
            paid=paid,
            awarded_total=awarded_total,
            correlation_id=correlation_id,
        ))

    async def log_settings_saved(
        self,
        categories: int,
        suggesters: int,
        staff: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.settings_saved(
            categories=categories,
            suggesters=suggesters,
            staff=staff,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_operation_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.operation_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for one engine operation.

    Pass it through every write and audit event of that operation.
    """
    return uuid4()
