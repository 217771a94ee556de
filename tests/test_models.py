"""
Tests for the Construction Budget Ledger

Test strategy:
1. Unit tests for individual components (models, aggregator, validator)
2. Engine tests against the in-memory store
3. No real API calls in tests (fake worksheets, mock HTTP transports)
"""

import base64
import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from budget_ledger.models.records import (
    UNASSIGNED,
    AwardBreakdown,
    Case,
    CaseStatus,
    CategoryLine,
    Payment,
    PhotoAttachment,
    ProjectCategoryRecord,
    ProjectSubmission,
    SettingsRegistry,
    ValidationIssue,
    ValidationResult,
)
from budget_ledger.models.actions import (
    AddAction,
    AssignProjectAction,
    SavePaymentAction,
    UpdateFullCaseAction,
)
from budget_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestRecordModels:
    """Tests for the stored record models."""

    def test_project_record_defaults_to_unassigned(self):
        """Test that a new line is not linked to any case."""
        record = ProjectCategoryRecord(name="Road Repair", category="Construction", amount=5000)
        assert record.case_link == UNASSIGNED
        assert not record.is_assigned
        assert record.key == ("Road Repair", "Construction")

    def test_project_record_blank_link_is_unassigned(self):
        """Test that a blank case link reads as unassigned."""
        record = ProjectCategoryRecord(
            name="Road Repair", category="Construction", amount=5000, case_link="  "
        )
        assert record.case_link == UNASSIGNED

    def test_project_record_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        record = ProjectCategoryRecord(name="  Road Repair ", category="Safety", amount=1)
        assert record.name == "Road Repair"

    def test_project_record_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ProjectCategoryRecord(name="Road Repair", category="Safety", amount=-1)

    def test_project_record_accepts_camel_case(self):
        """Test that wire (camelCase) names populate the record."""
        record = ProjectCategoryRecord.model_validate({
            "name": "Bridge",
            "category": "Construction",
            "amount": "1200",
            "proposedBy": "Lin",
            "caseLink": "Spring Tender",
        })
        assert record.proposed_by == "Lin"
        assert record.case_link == "Spring Tender"
        assert record.amount == Decimal("1200")

    def test_case_rejects_unassigned_name(self):
        """Test that a case cannot take the unassigned label as its name."""
        with pytest.raises(ValueError):
            Case(name=UNASSIGNED)

    def test_case_defaults(self):
        """Test that a quickly created case is bidding with nothing awarded."""
        case = Case(name="Road Repair")
        assert case.status == CaseStatus.BIDDING
        assert case.awarded_total == Decimal("0")

    def test_case_breakdown_must_match_total(self):
        """Test that the awarded total must equal the breakdown sum."""
        breakdown = AwardBreakdown(
            construction_cost=Decimal("8000"),
            pollution_cost=Decimal("500"),
            management_cost=Decimal("1000"),
            misc_cost=Decimal("500"),
        )
        case = Case(name="Road Repair", awarded_total=Decimal("10000"), breakdown=breakdown)
        assert case.breakdown.total == Decimal("10000")

        with pytest.raises(ValueError, match="sum of the award breakdown"):
            Case(name="Road Repair", awarded_total=Decimal("9000"), breakdown=breakdown)

    def test_payment_gets_an_id(self):
        """Test that payments get distinct generated IDs."""
        first = Payment(case_link="Road Repair", stage="1st", amount=3000, paid_on=date(2024, 3, 1))
        second = Payment(case_link="Road Repair", stage="2nd", amount=4000, paid_on=date(2024, 4, 1))
        assert first.id and second.id
        assert first.id != second.id


class TestSettingsRegistry:
    """Tests for the settings registry model."""

    def test_staff_accepts_plain_names(self):
        """Test that a legacy roster of bare names is accepted."""
        registry = SettingsRegistry(staff=["Chen", {"id": "s2", "name": "Wang"}])
        assert registry.staff_names == ["Chen", "Wang"]
        assert registry.staff[1].id == "s2"
        assert registry.staff[0].id

    def test_mapping_order_is_preserved(self):
        """Test that category order survives a JSON round trip."""
        registry = SettingsRegistry(categories={"Roads": 1, "Drainage": 2, "Lighting": 3})
        restored = SettingsRegistry.model_validate_json(registry.model_dump_json())
        assert list(restored.categories) == ["Roads", "Drainage", "Lighting"]


class TestInputModels:
    """Tests for write inputs."""

    def test_blank_lines_are_skipped(self):
        """Test that lines without an amount are not filled."""
        submission = ProjectSubmission(
            name="Road Repair",
            lines=[
                CategoryLine(category="Construction", amount=Decimal("5000")),
                CategoryLine(category="Safety", amount=""),
                CategoryLine(category="Drainage"),
            ],
        )
        assert [line.category for line in submission.filled_lines] == ["Construction"]

    def test_photo_attachment_strips_data_uri(self):
        """Test that a browser data URI is reduced to its payload."""
        payload = base64.b64encode(b"jpeg-bytes").decode()
        photo = PhotoAttachment(data=f"data:image/png;base64,{payload}", type="image/png")
        assert photo.base64_payload == payload
        assert photo.decoded() == b"jpeg-bytes"
        assert photo.as_data_uri() == f"data:image/png;base64,{payload}"

    def test_photo_attachment_rejects_bad_base64(self):
        """Test that malformed base64 raises ValueError."""
        with pytest.raises(ValueError, match="not valid base64"):
            PhotoAttachment(data="***").decoded()


class TestActionPayloads:
    """Tests for tagged-action payload parsing."""

    def test_add_action_single_category(self):
        """Test that the form's one-category call becomes one line."""
        action = AddAction.model_validate({
            "action": "add",
            "name": "Road Repair",
            "category": "Construction",
            "amount": "5000",
            "suggestBy": "Lin",
            "staff": "Chen",
            "isAutoCase": True,
        })
        submission = action.to_submission()
        assert submission.proposed_by == "Lin"
        assert submission.assigned_staff == "Chen"
        assert submission.auto_case is True
        assert submission.filled_lines[0].amount == Decimal("5000")

    def test_add_action_blank_amount(self):
        """Test that a blank amount is read as not given."""
        action = AddAction.model_validate({"name": "X", "category": "Safety", "amount": ""})
        assert action.to_submission().filled_lines == []

    def test_update_full_case_breakdown(self):
        """Test that any cost field turns the costs into a breakdown."""
        action = UpdateFullCaseAction.model_validate({
            "newName": "Road Repair",
            "constCost": "8000",
            "mgmtCost": "2000",
            "pollutionCost": "",
            "total": "1",
        })
        draft = action.to_draft()
        assert draft.breakdown.total == Decimal("10000")
        assert draft.breakdown.pollution_cost == Decimal("0")

    def test_update_full_case_total_only(self):
        """Test that without costs the explicit total is kept."""
        draft = UpdateFullCaseAction.model_validate(
            {"newName": "Road Repair", "total": "7500", "status": ""}
        ).to_draft()
        assert draft.breakdown is None
        assert draft.total == Decimal("7500")
        assert draft.status == CaseStatus.BIDDING

    def test_assign_blank_tender_is_unassigned(self):
        """Test that a blank tender name unassigns."""
        action = AssignProjectAction.model_validate({"projectName": "Road Repair", "tenderName": ""})
        assert action.tender_name == UNASSIGNED
        assert action.names == ["Road Repair"]

    def test_save_payment_maps_wire_names(self):
        """Test that tenderName/date map onto the payment draft."""
        draft = SavePaymentAction.model_validate({
            "tenderName": "Road Repair",
            "stage": "1st",
            "amount": "3000",
            "date": "2024-03-01",
        }).to_draft()
        assert draft.case_name == "Road Repair"
        assert draft.paid_on == date(2024, 3, 1)
        assert draft.amount == Decimal("3000")


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.CASE_SAVED,
            description="Case saved",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Google Sheets row."""
        cid = uuid4()
        event = AuditEventBuilder.case_deleted("Road Repair", 2, 1, cid)
        row = event.to_sheets_row()
        assert len(row) == 10
        assert row[2] == "case_deleted"
        assert row[5] == "Road Repair"
        assert row[6] == str(cid)
        assert json.loads(row[8]) == {"unlinked_projects": 2, "deleted_payments": 1}

    def test_torn_batch_is_critical(self):
        """Test that a torn batch is logged at critical severity."""
        torn = AuditEventBuilder.batch_rolled_back("P", ["A"], [], True, uuid4())
        clean = AuditEventBuilder.batch_rolled_back("P", ["A"], ["A"], False, uuid4())
        assert torn.severity == AuditSeverity.CRITICAL
        assert clean.severity == AuditSeverity.ERROR

    def test_over_disbursement_is_warning(self):
        """Test that over-disbursement is a warning, not an error."""
        event = AuditEventBuilder.over_disbursement("Road Repair", "12000", "10000", uuid4())
        assert event.severity == AuditSeverity.WARNING
        assert event.event_type == AuditEventType.OVER_DISBURSEMENT


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            operation="submit_project",
            issues=[
                ValidationIssue(field="name", issue_type="missing", message="Required"),
            ],
        )
        assert result.has_errors
        assert not result.is_valid
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings alone do not invalidate."""
        result = ValidationResult(
            operation="submit_project",
            issues=[
                ValidationIssue(
                    field="proposed_by",
                    issue_type="unknown_key",
                    message="Not on roster",
                    severity="warning",
                ),
            ],
        )
        assert result.is_valid
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
