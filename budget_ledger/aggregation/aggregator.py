"""
Aggregation of Flat Records into Views

DESIGN DECISION: Every view is DERIVED, never stored.
Project groups, budget usage and payment progress are recomputed from the
flat collections on every read. There is no cached total that can drift
away from the lines it summarises.

All functions here are pure: records in, views out, no store access.

GUARANTEES:
- Stable order: groups come out in the order their first line was stored
- A group's total is exactly the sum of its line amounts
- Over-budget and over-disbursed states are reported as-is, never clamped
  (only PaymentProgress.display_percent is clamped, for progress bars)
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from budget_ledger.models.records import (
    UNASSIGNED,
    AnalysisSummary,
    BudgetUsage,
    Case,
    CaseOverview,
    CategoryItem,
    Payment,
    PaymentProgress,
    ProjectCategoryRecord,
    ProjectGroup,
    SettingsRegistry,
)


# Fields every line of a group is expected to share.
# Photos are excluded: only the first line of a submission carries them.
SHARED_FIELDS = ("content", "location", "proposed_by", "assigned_staff", "case_link")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class DivergentGroupError(ValueError):
    """Lines sharing a project name disagree on a shared field (strict mode)."""

    def __init__(self, name: str, field: str, first: str, other: str):
        self.name = name
        self.field = field
        super().__init__(
            f"Project '{name}' has conflicting {field}: {first!r} vs {other!r}"
        )


def group_projects(
    records: Iterable[ProjectCategoryRecord],
    strict: bool = False,
) -> dict[str, ProjectGroup]:
    """
    Collapse project lines into one group per project name.

    Single pass, insertion-ordered. The first line seen for a name
    supplies the shared fields; every line contributes one item and adds
    to the running total.

    Args:
        records: Flat project lines, in stored order
        strict: Raise DivergentGroupError when a later line disagrees with
                the first on a shared field, instead of letting the first
                line win silently

    Returns:
        Mapping of project name -> ProjectGroup
    """
    groups: dict[str, ProjectGroup] = {}
    firsts: dict[str, ProjectCategoryRecord] = {}

    for index, record in enumerate(records):
        group = groups.get(record.name)
        if group is None:
            firsts[record.name] = record
            group = ProjectGroup(
                name=record.name,
                content=record.content,
                location=record.location,
                proposed_by=record.proposed_by,
                assigned_staff=record.assigned_staff,
                status=record.case_link,
                photo_urls=list(record.photo_urls),
                first_index=index,
            )
            groups[record.name] = group
        elif strict:
            first = firsts[record.name]
            for field in SHARED_FIELDS:
                if getattr(record, field) != getattr(first, field):
                    raise DivergentGroupError(
                        record.name, field, getattr(first, field), getattr(record, field)
                    )

        group.items.append(CategoryItem(category=record.category, amount=record.amount))
        group.total += record.amount

    return groups


def linked_projects(
    case_name: str,
    records: Iterable[ProjectCategoryRecord],
) -> list[ProjectCategoryRecord]:
    """Lines whose case link equals `case_name` exactly (no fuzzy matching)."""
    return [r for r in records if r.case_link == case_name]


def unassigned_projects(
    records: Iterable[ProjectCategoryRecord],
) -> list[ProjectCategoryRecord]:
    """Lines not linked to any case - the candidates for assignment."""
    return linked_projects(UNASSIGNED, records)


def compute_analysis(
    records: Iterable[ProjectCategoryRecord],
    settings: SettingsRegistry,
) -> AnalysisSummary:
    """
    Budget utilization per category and per proposer.

    Every key configured in settings appears in the summary, with used=0
    when no line matches. Keys that only appear on lines (a category or
    proposer removed from settings after lines were filed) are reported
    separately in the orphan maps instead of being dropped on the floor.
    """
    used_by_category: dict[str, Decimal] = {}
    used_by_suggester: dict[str, Decimal] = {}

    for record in records:
        used_by_category[record.category] = (
            used_by_category.get(record.category, ZERO) + record.amount
        )
        if record.proposed_by:
            used_by_suggester[record.proposed_by] = (
                used_by_suggester.get(record.proposed_by, ZERO) + record.amount
            )

    return AnalysisSummary(
        categories={
            name: BudgetUsage(total=ceiling, used=used_by_category.get(name, ZERO))
            for name, ceiling in settings.categories.items()
        },
        suggesters={
            name: BudgetUsage(total=quota, used=used_by_suggester.get(name, ZERO))
            for name, quota in settings.suggesters.items()
        },
        orphan_categories={
            name: used
            for name, used in used_by_category.items()
            if name not in settings.categories
        },
        orphan_suggesters={
            name: used
            for name, used in used_by_suggester.items()
            if name not in settings.suggesters
        },
    )


def payments_for_case(case_name: str, payments: Iterable[Payment]) -> list[Payment]:
    """Payment history of a case, in stored order."""
    return [p for p in payments if p.case_link == case_name]


def payment_progress(
    case_name: str,
    payments: Iterable[Payment],
    case: Optional[Case],
) -> PaymentProgress:
    """
    Disbursement progress of one case.

    paid      = sum of the case's payments
    remaining = awarded total - paid (negative when over-disbursed)
    percent   = paid / awarded total * 100, or 0 when nothing is awarded

    A missing case is treated as awarded total 0.
    """
    awarded = case.awarded_total if case is not None else ZERO
    paid = sum((p.amount for p in payments_for_case(case_name, payments)), ZERO)
    percent = paid / awarded * HUNDRED if awarded > 0 else ZERO
    display = min(max(percent, ZERO), HUNDRED).quantize(
        Decimal("0.1"), rounding=ROUND_HALF_UP
    )
    return PaymentProgress(
        case_name=case_name,
        awarded_total=awarded,
        paid=paid,
        remaining=awarded - paid,
        percent=percent,
        display_percent=display,
        over_disbursed=paid > awarded,
    )


def case_overview(
    cases: Iterable[Case],
    records: Iterable[ProjectCategoryRecord],
    payments: Iterable[Payment],
) -> list[CaseOverview]:
    """One overview per case, in stored case order."""
    records = list(records)
    payments = list(payments)
    overviews = []
    for case in cases:
        linked = linked_projects(case.name, records)
        overviews.append(
            CaseOverview(
                case=case,
                linked=linked,
                linked_total=sum((r.amount for r in linked), ZERO),
                progress=payment_progress(case.name, payments, case),
            )
        )
    return overviews
