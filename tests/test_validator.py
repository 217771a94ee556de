"""Tests for write-time validation."""

from datetime import date
from decimal import Decimal

import pytest

from budget_ledger.models.records import (
    UNASSIGNED,
    CaseDraft,
    CategoryLine,
    PaymentDraft,
    ProjectSubmission,
    ProjectUpdate,
    SettingsRegistry,
)
from budget_ledger.validation import ValidationFailedError, WriteValidator


@pytest.fixture
def validator():
    return WriteValidator()


@pytest.fixture
def settings():
    return SettingsRegistry(
        categories={"Construction": Decimal("100000"), "Safety": Decimal("20000")},
        suggesters={"Lin": Decimal("50000")},
        staff=["Chen"],
    )


def submission(**overrides):
    fields = dict(
        name="Road Repair",
        proposed_by="Lin",
        assigned_staff="Chen",
        lines=[
            CategoryLine(category="Construction", amount=Decimal("5000")),
            CategoryLine(category="Safety", amount=Decimal("2000")),
        ],
    )
    fields.update(overrides)
    return ProjectSubmission(**fields)


def issue_types(result):
    return {(i.field, i.issue_type) for i in result.issues}


class TestSubmissionValidation:
    """Tests for project submissions."""

    def test_valid_submission(self, validator, settings):
        """Test that a well-formed submission passes."""
        result = validator.validate_submission(submission(), settings)
        assert result.is_valid
        assert result.issues == []

    def test_missing_name(self, validator, settings):
        """Test that a project name is required."""
        result = validator.validate_submission(submission(name=""), settings)
        assert ("name", "missing") in issue_types(result)

    def test_no_filled_line(self, validator, settings):
        """Test that at least one category with an amount is required."""
        result = validator.validate_submission(
            submission(lines=[CategoryLine(category="Safety")]), settings
        )
        assert ("lines", "missing") in issue_types(result)

    def test_duplicate_category(self, validator, settings):
        """Test that the same category twice is rejected."""
        lines = [
            CategoryLine(category="Safety", amount=Decimal("1")),
            CategoryLine(category="Safety", amount=Decimal("2")),
        ]
        result = validator.validate_submission(submission(lines=lines), settings)
        assert ("category", "duplicate") in issue_types(result)

    def test_negative_amount(self, validator, settings):
        """Test that negative amounts are rejected."""
        lines = [CategoryLine(category="Safety", amount=Decimal("-1"))]
        result = validator.validate_submission(submission(lines=lines), settings)
        assert ("amount", "negative") in issue_types(result)

    def test_unknown_category_is_error(self, validator, settings):
        """Test that an unconfigured category is an error."""
        lines = [CategoryLine(category="Landscaping", amount=Decimal("1"))]
        result = validator.validate_submission(submission(lines=lines), settings)
        assert result.has_errors
        assert ("category", "unknown_key") in issue_types(result)

    def test_unknown_people_are_warnings(self, validator, settings):
        """Test that an unknown proposer or staff member only warns."""
        result = validator.validate_submission(
            submission(proposed_by="Wu", assigned_staff="Huang"), settings
        )
        assert result.is_valid
        assert {i.severity for i in result.issues} == {"warning"}
        assert len(result.issues) == 2

    def test_without_settings_only_shape_is_checked(self, validator):
        """Test that registry checks are skipped without a registry."""
        lines = [CategoryLine(category="Anything", amount=Decimal("1"))]
        assert validator.validate_submission(submission(lines=lines)).is_valid


class TestOtherValidation:
    """Tests for updates, cases, payments and settings."""

    def test_project_update_requires_amount(self, validator, settings):
        """Test that an update must carry an amount."""
        update = ProjectUpdate(name="Road Repair", category="Safety")
        result = validator.validate_project_update(update, settings)
        assert ("amount", "missing") in issue_types(result)

    def test_case_name_cannot_be_unassigned(self, validator):
        """Test that the unassigned label is reserved."""
        result = validator.validate_case(CaseDraft(new_name=UNASSIGNED))
        assert ("name", "reserved") in issue_types(result)

    def test_case_name_required(self, validator):
        """Test that a case name is required."""
        assert not validator.validate_case(CaseDraft()).is_valid

    def test_payment_fields(self, validator):
        """Test that a payment needs case, stage, amount and date."""
        result = validator.validate_payment(PaymentDraft())
        assert {field for field, _ in issue_types(result)} == {
            "case_name", "stage", "amount", "paid_on",
        }

    def test_valid_payment(self, validator):
        """Test that a complete payment passes."""
        draft = PaymentDraft(
            case_name="Road Repair", stage="1st", amount=Decimal("3000"), paid_on=date(2024, 3, 1)
        )
        assert validator.validate_payment(draft).is_valid

    def test_settings_negative_ceiling(self, validator):
        """Test that negative ceilings are rejected."""
        registry = SettingsRegistry(categories={"Roads": Decimal("-1")})
        assert validator.validate_settings(registry).has_errors


class TestRequireValid:
    """Tests for raising on errors."""

    def test_require_valid_raises_with_result(self, validator):
        """Test that the error carries the full result."""
        result = validator.validate_case(CaseDraft())
        with pytest.raises(ValidationFailedError) as excinfo:
            validator.require_valid(result)
        assert excinfo.value.result is result
        assert "save_case rejected" in str(excinfo.value)

    def test_summary_lists_errors_first(self, validator, settings):
        """Test the user-facing summary."""
        result = validator.validate_submission(
            submission(name="", proposed_by="Wu"), settings
        )
        summary = validator.get_user_friendly_summary(result).splitlines()
        assert summary[0].startswith("[x] name")
        assert summary[-1].startswith("[!] proposed_by")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
