"""
Audit Models for the Construction Budget Ledger

Every mutation the reconciliation engine performs is logged for audit
purposes. This provides:
1. Traceability of who-changed-what across operators sharing one sheet
2. Debugging information when a cascade or batch goes wrong
3. A record of over-budget / over-disbursement states when they arise

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Project lines
    PROJECT_SUBMITTED = "project_submitted"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    PROJECT_ASSIGNED = "project_assigned"
    BATCH_ROLLED_BACK = "batch_rolled_back"

    # Cases
    CASE_SAVED = "case_saved"
    CASE_RENAMED = "case_renamed"
    CASE_DELETED = "case_deleted"

    # Payments
    PAYMENT_SAVED = "payment_saved"
    PAYMENT_DELETED = "payment_deleted"
    OVER_DISBURSEMENT = "over_disbursement"

    # Settings
    SETTINGS_SAVED = "settings_saved"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    OPERATION_FAILED = "operation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Entities are identified by their natural key (project name, case name,
    payment id), so `entity_id` is a string.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('project', 'case', 'payment', 'settings')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Natural key of the entity this event relates to"
    )

    # Correlation - one engine operation
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one engine operation"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, ensure_ascii=False, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.project_submitted("Road Repair", ["Construction"], cid)
        event = AuditEventBuilder.case_deleted("Road Repair", 2, 1, cid)
    """

    @staticmethod
    def project_submitted(
        name: str,
        categories: list[str],
        auto_case: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_SUBMITTED,
            entity_type="project",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"Project submitted: {name} ({len(categories)} lines)",
            details={
                "categories": categories,
                "auto_case": auto_case,
            },
        )

    @staticmethod
    def project_updated(
        old_key: tuple[str, str],
        new_key: tuple[str, str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_UPDATED,
            entity_type="project",
            entity_id=new_key[0],
            correlation_id=correlation_id,
            description=f"Project line updated: {old_key[0]}/{old_key[1]}",
            details={
                "old_key": list(old_key),
                "new_key": list(new_key),
            },
        )

    @staticmethod
    def project_deleted(
        name: str,
        removed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_DELETED,
            entity_type="project",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"Project deleted: {name} ({removed} lines)",
            details={"removed": removed},
        )

    @staticmethod
    def project_assigned(
        name: str,
        case_name: str,
        changed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_ASSIGNED,
            entity_type="project",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"Project {name} linked to {case_name}",
            details={
                "case": case_name,
                "changed_lines": changed,
            },
        )

    @staticmethod
    def batch_rolled_back(
        name: str,
        written: list[str],
        rolled_back: list[str],
        torn: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_ROLLED_BACK,
            severity=AuditSeverity.CRITICAL if torn else AuditSeverity.ERROR,
            entity_type="project",
            entity_id=name,
            correlation_id=correlation_id,
            description=(
                f"Batch submission of {name} failed part-way"
                + (" and left a torn group" if torn else "; rolled back")
            ),
            details={
                "written": written,
                "rolled_back": rolled_back,
                "torn": torn,
            },
        )

    @staticmethod
    def case_saved(
        name: str,
        awarded_total: str,
        created: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASE_SAVED,
            entity_type="case",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"Case {'created' if created else 'updated'}: {name}",
            details={
                "awarded_total": awarded_total,
                "created": created,
            },
        )

    @staticmethod
    def case_renamed(
        old_name: str,
        new_name: str,
        relinked_projects: int,
        relinked_payments: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASE_RENAMED,
            entity_type="case",
            entity_id=new_name,
            correlation_id=correlation_id,
            description=f"Case renamed: {old_name} -> {new_name}",
            details={
                "old_name": old_name,
                "relinked_projects": relinked_projects,
                "relinked_payments": relinked_payments,
            },
        )

    @staticmethod
    def case_deleted(
        name: str,
        unlinked_projects: int,
        deleted_payments: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASE_DELETED,
            entity_type="case",
            entity_id=name,
            correlation_id=correlation_id,
            description=f"Case deleted: {name}",
            details={
                "unlinked_projects": unlinked_projects,
                "deleted_payments": deleted_payments,
            },
        )

    @staticmethod
    def payment_saved(
        payment_id: str,
        case_name: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_SAVED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment saved: {case_name} - {amount}",
            details={
                "case": case_name,
                "amount": amount,
            },
        )

    @staticmethod
    def payment_deleted(
        payment_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_DELETED,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=f"Payment deleted: {payment_id}",
        )

    @staticmethod
    def over_disbursement(
        case_name: str,
        paid: str,
        awarded_total: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVER_DISBURSEMENT,
            severity=AuditSeverity.WARNING,
            entity_type="case",
            entity_id=case_name,
            correlation_id=correlation_id,
            description=f"Payments for {case_name} exceed the awarded total",
            details={
                "paid": paid,
                "awarded_total": awarded_total,
            },
        )

    @staticmethod
    def settings_saved(
        categories: int,
        suggesters: int,
        staff: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTINGS_SAVED,
            entity_type="settings",
            correlation_id=correlation_id,
            description="Settings registry replaced",
            details={
                "categories": categories,
                "suggesters": suggesters,
                "staff": staff,
            },
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
        )

    @staticmethod
    def operation_failed(
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
