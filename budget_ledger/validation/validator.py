"""
Write-Time Validation

DESIGN DECISION: Every write request is validated BEFORE the engine
touches the store. A request that fails validation never produces a
partial write; it is rejected whole with a list of issues.

Validation is split by what it needs:

STAGE 1 - SHAPE (request only):
- Required fields present (project name, at least one filled category)
- Amounts non-negative
- Names not colliding with the unassigned label

STAGE 2 - REGISTRY (request + settings registry):
- Categories exist in the registry (error)
- Proposer / staff exist in the registry (warning only: operators may
  type a name that is not on the roster yet)

Cross-collection checks that need the stored records (duplicate keys,
missing cases) belong to the engine, which holds the snapshot.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the caller to show.
"""

from typing import Optional

from budget_ledger.models.records import (
    UNASSIGNED,
    CaseDraft,
    PaymentDraft,
    ProjectSubmission,
    ProjectUpdate,
    SettingsRegistry,
    ValidationIssue,
    ValidationResult,
)


class ValidationFailedError(ValueError):
    """A write request was rejected before reaching the store."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"{result.operation} rejected: {messages}")


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="warning")


class WriteValidator:
    """Validates engine write requests against their shape and the registry."""

    def _registry_checks(
        self,
        settings: Optional[SettingsRegistry],
        categories: list[str],
        proposed_by: str,
        assigned_staff: str,
    ) -> list[ValidationIssue]:
        issues = []
        if settings is None:
            return issues

        for category in categories:
            if category and category not in settings.categories:
                issues.append(_error(
                    "category",
                    "unknown_key",
                    f"Category '{category}' is not configured",
                ))

        if proposed_by and proposed_by not in settings.suggesters:
            issues.append(_warning(
                "proposed_by",
                "unknown_key",
                f"Proposer '{proposed_by}' has no configured quota",
            ))

        if assigned_staff and assigned_staff not in settings.staff_names:
            issues.append(_warning(
                "assigned_staff",
                "unknown_key",
                f"Staff member '{assigned_staff}' is not on the roster",
            ))

        return issues

    def validate_submission(
        self,
        submission: ProjectSubmission,
        settings: Optional[SettingsRegistry] = None,
    ) -> ValidationResult:
        """
        Validate a multi-category project submission.

        Blank lines (no amount) are skipped, as the entry form does; a
        submission with no filled line at all is an error.
        """
        issues = []

        if not submission.name:
            issues.append(_error("name", "missing", "Project name is required"))

        filled = submission.filled_lines
        if not filled:
            issues.append(_error(
                "lines",
                "missing",
                "Select at least one category and enter its amount",
            ))

        seen = set()
        for line in filled:
            if not line.category:
                issues.append(_error("category", "missing", "A line has no category"))
            elif line.category in seen:
                issues.append(_error(
                    "category",
                    "duplicate",
                    f"Category '{line.category}' is selected twice",
                ))
            seen.add(line.category)
            if line.amount < 0:
                issues.append(_error(
                    "amount",
                    "negative",
                    f"Amount for '{line.category}' cannot be negative",
                ))

        issues.extend(self._registry_checks(
            settings,
            [line.category for line in filled],
            submission.proposed_by,
            submission.assigned_staff,
        ))

        return ValidationResult(operation="submit_project", issues=issues)

    def validate_project_update(
        self,
        update: ProjectUpdate,
        settings: Optional[SettingsRegistry] = None,
    ) -> ValidationResult:
        issues = []

        if not update.name:
            issues.append(_error("name", "missing", "Project name is required"))
        if not update.category:
            issues.append(_error("category", "missing", "Category is required"))
        if update.amount is None:
            issues.append(_error("amount", "missing", "Amount is required"))
        elif update.amount < 0:
            issues.append(_error("amount", "negative", "Amount cannot be negative"))

        issues.extend(self._registry_checks(
            settings,
            [update.category],
            update.proposed_by,
            update.assigned_staff,
        ))

        return ValidationResult(operation="update_project", issues=issues)

    def validate_case(self, draft: CaseDraft) -> ValidationResult:
        issues = []

        if not draft.new_name:
            issues.append(_error("name", "missing", "Case name is required"))
        elif draft.new_name == UNASSIGNED:
            issues.append(_error(
                "name",
                "reserved",
                f"'{UNASSIGNED}' is reserved for unassigned projects",
            ))
        if draft.proposed_budget < 0:
            issues.append(_error("proposed_budget", "negative", "Budget cannot be negative"))
        if draft.breakdown is None and draft.total is not None and draft.total < 0:
            issues.append(_error("total", "negative", "Awarded total cannot be negative"))

        return ValidationResult(operation="save_case", issues=issues)

    def validate_payment(self, draft: PaymentDraft) -> ValidationResult:
        issues = []

        if not draft.case_name or draft.case_name == UNASSIGNED:
            issues.append(_error("case_name", "missing", "A payment must name its case"))
        if not draft.stage:
            issues.append(_error("stage", "missing", "Payment stage is required"))
        if draft.amount is None:
            issues.append(_error("amount", "missing", "Payment amount is required"))
        elif draft.amount < 0:
            issues.append(_error("amount", "negative", "Payment amount cannot be negative"))
        if draft.paid_on is None:
            issues.append(_error("paid_on", "missing", "Payment date is required"))

        return ValidationResult(operation="save_payment", issues=issues)

    def validate_settings(self, registry: SettingsRegistry) -> ValidationResult:
        """Check the registry itself; existing records are not re-checked."""
        issues = []

        for kind, mapping in (("categories", registry.categories), ("suggesters", registry.suggesters)):
            for name, value in mapping.items():
                if not name.strip():
                    issues.append(_error(kind, "missing", f"Blank name in {kind}"))
                if value < 0:
                    issues.append(_error(kind, "negative", f"{name}: amount cannot be negative"))

        return ValidationResult(operation="save_settings", issues=issues)

    def require_valid(self, result: ValidationResult) -> ValidationResult:
        """Raise ValidationFailedError if the result has errors."""
        if result.has_errors:
            raise ValidationFailedError(result)
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per issue, errors first."""
        if not result.issues:
            return "All checks passed."

        lines = []
        for severity, marker in (("error", "x"), ("warning", "!")):
            for issue in result.issues:
                if issue.severity == severity:
                    lines.append(f"[{marker}] {issue.field}: {issue.message}")
        return "\n".join(lines)
