"""Aggregation package: derived views over the flat record collections."""

from budget_ledger.aggregation.aggregator import (
    DivergentGroupError,
    case_overview,
    compute_analysis,
    group_projects,
    linked_projects,
    payment_progress,
    payments_for_case,
    unassigned_projects,
)

__all__ = [
    "DivergentGroupError",
    "case_overview",
    "compute_analysis",
    "group_projects",
    "linked_projects",
    "payment_progress",
    "payments_for_case",
    "unassigned_projects",
]
