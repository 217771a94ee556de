"""
Data Models Package

This package contains all Pydantic models used by the budget ledger.
All data flowing between the store, the engine and callers conforms to
these schemas.
"""

from budget_ledger.models.records import (
    UNASSIGNED,
    AnalysisSummary,
    AwardBreakdown,
    BudgetUsage,
    Case,
    CaseDraft,
    CaseOverview,
    CaseStatus,
    CategoryItem,
    CategoryLine,
    LedgerSnapshot,
    Payment,
    PaymentDraft,
    PaymentProgress,
    PhotoAttachment,
    ProjectCategoryRecord,
    ProjectGroup,
    ProjectSubmission,
    ProjectUpdate,
    SettingsRegistry,
    StaffEntry,
    ValidationIssue,
    ValidationResult,
)
from budget_ledger.models.actions import (
    AddAction,
    AssignProjectAction,
    DeleteCaseAction,
    DeletePaymentAction,
    DeleteProjectAction,
    LedgerAction,
    ReadAllAction,
    SavePaymentAction,
    SaveSettingsAction,
    UpdateFullCaseAction,
    UpdateProjectAction,
)
from budget_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "UNASSIGNED",
    "AwardBreakdown",
    "Case",
    "CaseStatus",
    "Payment",
    "ProjectCategoryRecord",
    "SettingsRegistry",
    "StaffEntry",
    # Derived views
    "AnalysisSummary",
    "BudgetUsage",
    "CaseOverview",
    "CategoryItem",
    "LedgerSnapshot",
    "PaymentProgress",
    "ProjectGroup",
    # Write inputs
    "CaseDraft",
    "CategoryLine",
    "PaymentDraft",
    "PhotoAttachment",
    "ProjectSubmission",
    "ProjectUpdate",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Tagged actions
    "AddAction",
    "AssignProjectAction",
    "DeleteCaseAction",
    "DeletePaymentAction",
    "DeleteProjectAction",
    "LedgerAction",
    "ReadAllAction",
    "SavePaymentAction",
    "SaveSettingsAction",
    "UpdateFullCaseAction",
    "UpdateProjectAction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
