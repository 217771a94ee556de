"""
Core Data Models for the Construction Budget Ledger

These models define the schemas for everything the reconciliation engine
reads and writes:
1. Flat stored records (project-category lines, cases, payments)
2. The settings registry (category ceilings, proposer quotas, staff roster)
3. Derived views (project groups, budget usage, payment progress)
4. Write inputs handed to the engine by the UI/API layer

DESIGN DECISION: Stored records are deliberately flat and denormalized,
mirroring the spreadsheet rows they live in. A "project" is never stored
as one object - it is the set of ProjectCategoryRecords sharing a name.
Grouping happens on every read (see budget_ledger.aggregation).

Amounts are Decimal throughout so that sums compare exactly against
awarded totals and ceilings.
"""

import base64
import binascii
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# Status value of a project line that is not linked to any case.
UNASSIGNED = "未分派"


# =============================================================================
# ENUMS
# =============================================================================

class CaseStatus(str, Enum):
    """
    Lifecycle of a procurement case (tender).

    Values are the labels stored in the spreadsheet, so they stay in
    the operators' language.
    """
    BIDDING = "招標中"
    IN_PROGRESS = "執行中"
    CLOSED = "已結案"


def _new_id() -> str:
    return uuid4().hex


class LedgerModel(BaseModel):
    """Base model: strips whitespace and speaks camelCase on the wire."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# =============================================================================
# STORED RECORDS
# =============================================================================

class ProjectCategoryRecord(LedgerModel):
    """
    One (project name x budget category) line.

    A project split across three categories is three of these records,
    sharing name/content/location/proposer/staff.

    The store key is (name, category), not name alone.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Project name (shared across the project's lines)"
    )
    content: str = Field(default="", description="Work description")
    location: str = Field(default="", description="Work site")
    proposed_by: str = Field(default="", description="Proposer (suggester) name")
    assigned_staff: str = Field(default="", description="Staff member in charge")
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount allocated to this category"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Budget category (key of the settings categories mapping)"
    )
    case_link: str = Field(
        default=UNASSIGNED,
        description="Name of the linked case, or the unassigned sentinel"
    )
    photo_urls: list[str] = Field(
        default_factory=list,
        description="Retrievable URLs of attached photos"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('case_link')
    @classmethod
    def blank_link_is_unassigned(cls, v: str) -> str:
        return v or UNASSIGNED

    @property
    def key(self) -> tuple[str, str]:
        """Store key: (name, category)."""
        return (self.name, self.category)

    @property
    def is_assigned(self) -> bool:
        return self.case_link != UNASSIGNED


class AwardBreakdown(LedgerModel):
    """Awarded-cost components of a case."""

    construction_cost: Decimal = Field(default=Decimal("0"), ge=0)
    pollution_cost: Decimal = Field(default=Decimal("0"), ge=0)
    management_cost: Decimal = Field(default=Decimal("0"), ge=0)
    misc_cost: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def total(self) -> Decimal:
        return (
            self.construction_cost
            + self.pollution_cost
            + self.management_cost
            + self.misc_cost
        )


class Case(LedgerModel):
    """
    A procurement package (tender) that project lines are linked into.

    Project lines reference a case by name (ProjectCategoryRecord.case_link),
    payments reference it the same way (Payment.case_link). There is no
    foreign-key enforcement in the store - the engine cascades renames and
    deletes itself.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Unique case name"
    )
    proposed_budget: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Budget proposed for the tender"
    )
    awarded_total: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Total awarded amount"
    )
    status: CaseStatus = Field(default=CaseStatus.BIDDING)
    vendor: str = Field(default="", description="Awarded contractor")
    award_date: Optional[date] = None
    duration: str = Field(default="", description="Contract duration, free text")
    breakdown: Optional[AwardBreakdown] = Field(
        default=None,
        description="Awarded-cost breakdown, if known"
    )
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('name')
    @classmethod
    def name_is_not_sentinel(cls, v: str) -> str:
        if v == UNASSIGNED:
            raise ValueError(f"Case name cannot be the unassigned label '{UNASSIGNED}'")
        return v

    @model_validator(mode='after')
    def validate_award_total(self) -> 'Case':
        """When a breakdown is present, its sum is the awarded total."""
        if self.breakdown is not None and self.breakdown.total != self.awarded_total:
            raise ValueError(
                "Awarded total must equal the sum of the award breakdown "
                f"({self.breakdown.total} != {self.awarded_total})"
            )
        return self


class Payment(LedgerModel):
    """
    One disbursement against a case.

    Payments are never capped by the awarded total: over-payment is a
    state to surface, not to reject.
    """

    id: str = Field(default_factory=_new_id, description="Unique payment ID")
    case_link: str = Field(
        ...,
        min_length=1,
        description="Name of the case this payment is drawn against"
    )
    stage: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Payment stage label (e.g. 'first instalment')"
    )
    amount: Decimal = Field(..., ge=0)
    paid_on: date = Field(..., description="Disbursement date")
    invoice: str = Field(default="", description="Invoice number or memo")
    created_at: datetime = Field(default_factory=datetime.utcnow)


# =============================================================================
# SETTINGS REGISTRY
# =============================================================================

class StaffEntry(LedgerModel):
    """A roster entry with a stable surrogate ID (names may repeat)."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1, max_length=100)


class SettingsRegistry(LedgerModel):
    """
    Mapping-based configuration consumed by the aggregator.

    Loaded wholesale, edited wholesale, saved wholesale (last write wins).
    Mapping order is display order and is preserved.
    """

    categories: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Category name -> budget ceiling"
    )
    suggesters: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Proposer name -> quota"
    )
    staff: list[StaffEntry] = Field(
        default_factory=list,
        description="Staff roster in display order"
    )

    @field_validator('staff', mode='before')
    @classmethod
    def coerce_staff_names(cls, v):
        """Accept bare names (legacy roster format) as well as entries."""
        if isinstance(v, list):
            return [{"name": item} if isinstance(item, str) else item for item in v]
        return v

    @property
    def staff_names(self) -> list[str]:
        return [entry.name for entry in self.staff]


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class CategoryItem(LedgerModel):
    """One line of a project group."""
    category: str
    amount: Decimal


class ProjectGroup(LedgerModel):
    """
    All ProjectCategoryRecords sharing a name, collapsed into one project.

    Shared fields come from the first record encountered. `status` is that
    record's case link; divergent links inside a group are not reconciled.
    """

    name: str
    content: str = ""
    location: str = ""
    proposed_by: str = ""
    assigned_staff: str = ""
    status: str = UNASSIGNED
    photo_urls: list[str] = Field(default_factory=list)
    items: list[CategoryItem] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    first_index: int = Field(
        default=0,
        description="Position of the first record in the flat collection"
    )


class BudgetUsage(LedgerModel):
    """Configured ceiling vs. amount used. `used` may exceed `total`."""

    total: Decimal = Decimal("0")
    used: Decimal = Decimal("0")

    @property
    def remaining(self) -> Decimal:
        return self.total - self.used

    @property
    def over_budget(self) -> bool:
        return self.used > self.total

    @property
    def percent(self) -> Decimal:
        if self.total > 0:
            return self.used / self.total * 100
        return Decimal("0")


class AnalysisSummary(LedgerModel):
    """Budget utilization per category and per proposer."""

    categories: dict[str, BudgetUsage] = Field(default_factory=dict)
    suggesters: dict[str, BudgetUsage] = Field(default_factory=dict)
    # Keys found on records but missing from settings (used amount only)
    orphan_categories: dict[str, Decimal] = Field(default_factory=dict)
    orphan_suggesters: dict[str, Decimal] = Field(default_factory=dict)


class PaymentProgress(LedgerModel):
    """
    Disbursement progress of one case.

    `percent` is raw and may exceed 100; `display_percent` is clamped to
    [0, 100] for progress bars.
    """

    case_name: str
    awarded_total: Decimal
    paid: Decimal
    remaining: Decimal
    percent: Decimal
    display_percent: Decimal
    over_disbursed: bool


class CaseOverview(LedgerModel):
    """A case with its linked lines and disbursement progress."""

    case: Case
    linked: list[ProjectCategoryRecord] = Field(default_factory=list)
    linked_total: Decimal = Decimal("0")
    progress: PaymentProgress


# =============================================================================
# WRITE INPUTS
# =============================================================================

class PhotoAttachment(LedgerModel):
    """
    A photo as uploaded by the client: base64 data plus MIME type.

    `data` may be raw base64 or a full data URI (what browsers produce).
    """

    data: str
    type: str = "image/jpeg"

    @property
    def base64_payload(self) -> str:
        if self.data.startswith("data:") and "," in self.data:
            return self.data.split(",", 1)[1]
        return self.data

    def as_data_uri(self) -> str:
        return f"data:{self.type};base64,{self.base64_payload}"

    def decoded(self) -> bytes:
        """Raw bytes; raises ValueError on malformed base64."""
        try:
            return base64.b64decode(self.base64_payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Photo data is not valid base64: {e}")


class CategoryLine(LedgerModel):
    """A selected category with its amount (None = left blank)."""
    category: str
    amount: Optional[Decimal] = None

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ProjectSubmission(LedgerModel):
    """
    A "propose" request: one project identity, N category lines.

    Fields are lenient on purpose; BatchValidator reports what is missing.
    """

    name: str = ""
    content: str = ""
    location: str = ""
    proposed_by: str = ""
    assigned_staff: str = ""
    lines: list[CategoryLine] = Field(default_factory=list)
    photos: list[PhotoAttachment] = Field(default_factory=list)
    auto_case: bool = False

    @property
    def filled_lines(self) -> list[CategoryLine]:
        """Lines that carry an amount; blank lines are skipped."""
        return [line for line in self.lines if line.amount is not None]


class ProjectUpdate(LedgerModel):
    """New field values for a single project line."""

    name: str = ""
    content: str = ""
    location: str = ""
    proposed_by: str = ""
    assigned_staff: str = ""
    amount: Optional[Decimal] = None
    category: str = ""


class CaseDraft(LedgerModel):
    """
    Create-or-update request for a case.

    An empty `old_name` creates a new case; otherwise the case stored under
    `old_name` is updated and, if `new_name` differs, renamed.
    """

    old_name: str = ""
    new_name: str = ""
    status: CaseStatus = CaseStatus.BIDDING
    proposed_budget: Decimal = Decimal("0")
    vendor: str = ""
    award_date: Optional[date] = None
    duration: str = ""
    breakdown: Optional[AwardBreakdown] = None
    # Used only when no breakdown is given
    total: Optional[Decimal] = None


class PaymentDraft(LedgerModel):
    """A payment to record (new when `id` is empty)."""

    id: str = ""
    case_name: str = ""
    stage: str = ""
    amount: Optional[Decimal] = None
    paid_on: Optional[date] = None
    invoice: str = ""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'unknown_key', 'negative')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )


class ValidationResult(BaseModel):
    """Outcome of validating one write request."""

    operation: str
    validated_at: datetime = Field(default_factory=datetime.utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(LedgerModel):
    """Everything a full re-sync returns: the three collections, settings, analysis."""

    projects: list[ProjectCategoryRecord] = Field(default_factory=list)
    cases: list[Case] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    settings: SettingsRegistry = Field(default_factory=SettingsRegistry)
    analysis: AnalysisSummary = Field(default_factory=AnalysisSummary)
