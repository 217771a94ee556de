"""
Tagged-Action Payloads

The remote channel carries one JSON object per call, tagged by its
"action" field. These models parse those payloads (wire names are the
camelCase keys the web form sends) and convert them into the engine's
write inputs.

DESIGN DECISION: Wire payloads are lenient. A blank form field arrives as
"" and is read as "not given"; deciding whether "not given" is an error is
left to the validator, so a bad form produces issues instead of a parse
failure wherever possible.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from budget_ledger.models.records import (
    UNASSIGNED,
    AwardBreakdown,
    CaseDraft,
    CaseStatus,
    CategoryLine,
    PaymentDraft,
    PhotoAttachment,
    ProjectSubmission,
    ProjectUpdate,
    SettingsRegistry,
)


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class ActionPayload(BaseModel):
    """Base of every tagged action. Unknown keys are ignored."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )


class ReadAllAction(ActionPayload):
    action: Literal["readAll"] = "readAll"


class AddAction(ActionPayload):
    """
    Propose a project.

    The web form sends one call per selected category (single `category`
    and `amount`); `lines` carries several categories in one call.
    """

    action: Literal["add"] = "add"
    name: str = ""
    content: str = ""
    location: str = ""
    suggest_by: str = Field(default="", alias="suggestBy")
    staff: str = ""
    category: str = ""
    amount: Optional[Decimal] = None
    lines: list[CategoryLine] = Field(default_factory=list)
    file_data_list: list[PhotoAttachment] = Field(default_factory=list, alias="fileDataList")
    is_auto_case: bool = Field(default=False, alias="isAutoCase")

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_none(cls, v):
        return _blank_to_none(v)

    def to_submission(self) -> ProjectSubmission:
        lines = list(self.lines)
        if self.category:
            lines.insert(0, CategoryLine(category=self.category, amount=self.amount))
        return ProjectSubmission(
            name=self.name,
            content=self.content,
            location=self.location,
            proposed_by=self.suggest_by,
            assigned_staff=self.staff,
            lines=lines,
            photos=self.file_data_list,
            auto_case=self.is_auto_case,
        )


class UpdateProjectAction(ActionPayload):
    action: Literal["updateProject"] = "updateProject"
    old_name: str = Field(..., alias="oldName")
    old_cat: str = Field(..., alias="oldCat")
    name: str = ""
    content: str = ""
    location: str = ""
    suggest_by: str = Field(default="", alias="suggestBy")
    staff: str = ""
    category: str = ""
    amount: Optional[Decimal] = None

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_none(cls, v):
        return _blank_to_none(v)

    def to_update(self) -> ProjectUpdate:
        return ProjectUpdate(
            name=self.name,
            content=self.content,
            location=self.location,
            proposed_by=self.suggest_by,
            assigned_staff=self.staff,
            amount=self.amount,
            category=self.category,
        )


class DeleteProjectAction(ActionPayload):
    action: Literal["deleteProject"] = "deleteProject"
    name: str


class UpdateFullCaseAction(ActionPayload):
    """
    Create or update a case.

    The four cost fields form the award breakdown. If none of them is
    given, `total` (when given) is taken as the awarded total as-is.
    """

    action: Literal["updateFullCase"] = "updateFullCase"
    old_name: str = Field(default="", alias="oldName")
    new_name: str = Field(default="", alias="newName")
    status: CaseStatus = CaseStatus.BIDDING
    budget: Decimal = Decimal("0")
    vendor: str = ""
    const_cost: Optional[Decimal] = Field(default=None, alias="constCost")
    pollution_cost: Optional[Decimal] = Field(default=None, alias="pollutionCost")
    mgmt_cost: Optional[Decimal] = Field(default=None, alias="mgmtCost")
    custom_cost: Optional[Decimal] = Field(default=None, alias="customCost")
    total: Optional[Decimal] = None
    award_date: Optional[date] = Field(default=None, alias="awardDate")
    duration: str = ""

    @field_validator(
        'const_cost', 'pollution_cost', 'mgmt_cost', 'custom_cost', 'total', 'award_date',
        mode='before',
    )
    @classmethod
    def blank_numbers_are_none(cls, v):
        return _blank_to_none(v)

    @field_validator('budget', mode='before')
    @classmethod
    def blank_budget_is_zero(cls, v):
        return _blank_to_none(v) or Decimal("0")

    @field_validator('status', mode='before')
    @classmethod
    def blank_status_is_bidding(cls, v):
        return _blank_to_none(v) or CaseStatus.BIDDING

    def to_draft(self) -> CaseDraft:
        costs = (self.const_cost, self.pollution_cost, self.mgmt_cost, self.custom_cost)
        breakdown = None
        if any(c is not None for c in costs):
            breakdown = AwardBreakdown(
                construction_cost=self.const_cost or Decimal("0"),
                pollution_cost=self.pollution_cost or Decimal("0"),
                management_cost=self.mgmt_cost or Decimal("0"),
                misc_cost=self.custom_cost or Decimal("0"),
            )
        return CaseDraft(
            old_name=self.old_name,
            new_name=self.new_name,
            status=self.status,
            proposed_budget=self.budget,
            vendor=self.vendor,
            award_date=self.award_date,
            duration=self.duration,
            breakdown=breakdown,
            total=self.total,
        )


class AssignProjectAction(ActionPayload):
    """Assign one project (`projectName`) or several (`projectNames`) to a case."""

    action: Literal["assignProject"] = "assignProject"
    project_name: str = Field(default="", alias="projectName")
    project_names: list[str] = Field(default_factory=list, alias="projectNames")
    tender_name: str = Field(default=UNASSIGNED, alias="tenderName")

    @field_validator('tender_name', mode='before')
    @classmethod
    def blank_tender_is_unassigned(cls, v):
        return _blank_to_none(v) or UNASSIGNED

    @property
    def names(self) -> list[str]:
        names = list(self.project_names)
        if self.project_name:
            names.insert(0, self.project_name)
        return names


class DeleteCaseAction(ActionPayload):
    action: Literal["deleteCase"] = "deleteCase"
    name: str


class SaveSettingsAction(ActionPayload):
    action: Literal["saveSettings"] = "saveSettings"
    config: SettingsRegistry


class SavePaymentAction(ActionPayload):
    action: Literal["savePayment"] = "savePayment"
    id: str = ""
    tender_name: str = Field(default="", alias="tenderName")
    stage: str = ""
    amount: Optional[Decimal] = None
    paid_on: Optional[date] = Field(default=None, alias="date")
    invoice: str = ""

    @field_validator('amount', 'paid_on', mode='before')
    @classmethod
    def blank_fields_are_none(cls, v):
        return _blank_to_none(v)

    def to_draft(self) -> PaymentDraft:
        return PaymentDraft(
            id=self.id,
            case_name=self.tender_name,
            stage=self.stage,
            amount=self.amount,
            paid_on=self.paid_on,
            invoice=self.invoice,
        )


class DeletePaymentAction(ActionPayload):
    action: Literal["deletePayment"] = "deletePayment"
    id: str


LedgerAction = Annotated[
    Union[
        ReadAllAction,
        AddAction,
        UpdateProjectAction,
        DeleteProjectAction,
        UpdateFullCaseAction,
        AssignProjectAction,
        DeleteCaseAction,
        SaveSettingsAction,
        SavePaymentAction,
        DeletePaymentAction,
    ],
    Field(discriminator="action"),
]
