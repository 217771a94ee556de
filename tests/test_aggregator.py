"""Tests for the aggregation views."""

from datetime import date
from decimal import Decimal

import pytest

from budget_ledger.aggregation import (
    DivergentGroupError,
    case_overview,
    compute_analysis,
    group_projects,
    linked_projects,
    payment_progress,
    payments_for_case,
    unassigned_projects,
)
from budget_ledger.models.records import (
    UNASSIGNED,
    Case,
    Payment,
    ProjectCategoryRecord,
    SettingsRegistry,
)


def line(name, category, amount, **kwargs):
    return ProjectCategoryRecord(name=name, category=category, amount=Decimal(amount), **kwargs)


def pay(case_name, amount, stage="stage"):
    return Payment(case_link=case_name, stage=stage, amount=Decimal(amount), paid_on=date(2024, 5, 1))


class TestGroupProjects:
    """Tests for collapsing lines into project groups."""

    def test_group_total_and_item_count(self):
        """Test that a group's total is the sum of its lines, one item per line."""
        records = [
            line("Road Repair", "Construction", "5000", location="North"),
            line("Bridge", "Construction", "9000"),
            line("Road Repair", "Safety", "2000", location="North"),
        ]
        groups = group_projects(records)

        assert list(groups) == ["Road Repair", "Bridge"]
        road = groups["Road Repair"]
        assert road.total == Decimal("7000")
        assert [(i.category, i.amount) for i in road.items] == [
            ("Construction", Decimal("5000")),
            ("Safety", Decimal("2000")),
        ]
        assert road.first_index == 0
        assert groups["Bridge"].first_index == 1

    def test_first_record_wins_shared_fields(self):
        """Test that the first line supplies shared fields by default."""
        records = [
            line("Road Repair", "Construction", "5000", location="North", photo_urls=["u1"]),
            line("Road Repair", "Safety", "2000", location="South"),
        ]
        group = group_projects(records)["Road Repair"]
        assert group.location == "North"
        assert group.photo_urls == ["u1"]
        assert group.status == UNASSIGNED

    def test_strict_mode_rejects_divergent_fields(self):
        """Test that strict mode raises on disagreeing shared fields."""
        records = [
            line("Road Repair", "Construction", "5000", location="North"),
            line("Road Repair", "Safety", "2000", location="South"),
        ]
        with pytest.raises(DivergentGroupError, match="location"):
            group_projects(records, strict=True)

    def test_strict_mode_ignores_photos(self):
        """Test that photos on the first line only are not a divergence."""
        records = [
            line("Road Repair", "Construction", "5000", photo_urls=["u1"]),
            line("Road Repair", "Safety", "2000"),
        ]
        assert group_projects(records, strict=True)["Road Repair"].total == Decimal("7000")

    def test_empty_input(self):
        """Test that no records give no groups."""
        assert group_projects([]) == {}


class TestLinking:
    """Tests for case-link filters."""

    def test_linked_projects_exact_match(self):
        """Test that linking is exact, not fuzzy."""
        records = [
            line("A", "Roads", "1", case_link="Tender 1"),
            line("B", "Roads", "1", case_link="Tender 10"),
            line("C", "Roads", "1"),
        ]
        assert [r.name for r in linked_projects("Tender 1", records)] == ["A"]
        assert [r.name for r in unassigned_projects(records)] == ["C"]


class TestComputeAnalysis:
    """Tests for budget utilization."""

    def test_over_budget_is_not_clamped(self):
        """Test that used may exceed the ceiling."""
        settings = SettingsRegistry(categories={"C": Decimal("100000")})
        records = [line("A", "C", "70000"), line("B", "C", "50000")]

        usage = compute_analysis(records, settings).categories["C"]
        assert usage.used == Decimal("120000")
        assert usage.total == Decimal("100000")
        assert usage.over_budget
        assert usage.remaining == Decimal("-20000")
        assert usage.percent == Decimal("120")

    def test_unused_keys_report_zero(self):
        """Test that configured keys with no lines report used = 0."""
        settings = SettingsRegistry(
            categories={"Roads": Decimal("10")},
            suggesters={"Lin": Decimal("5")},
        )
        summary = compute_analysis([], settings)
        assert summary.categories["Roads"].used == Decimal("0")
        assert summary.suggesters["Lin"].used == Decimal("0")

    def test_orphans_are_reported_separately(self):
        """Test that keys missing from settings land in the orphan maps."""
        settings = SettingsRegistry(
            categories={"Roads": Decimal("100")},
            suggesters={"Lin": Decimal("100")},
        )
        records = [
            line("A", "Roads", "10", proposed_by="Lin"),
            line("B", "Retired", "20", proposed_by="Wu"),
            line("C", "Roads", "5"),
        ]
        summary = compute_analysis(records, settings)

        assert set(summary.categories) == {"Roads"}
        assert summary.categories["Roads"].used == Decimal("15")
        assert summary.suggesters["Lin"].used == Decimal("10")
        assert summary.orphan_categories == {"Retired": Decimal("20")}
        assert summary.orphan_suggesters == {"Wu": Decimal("20")}


class TestPaymentProgress:
    """Tests for disbursement progress."""

    def test_progress_of_two_payments(self):
        """Test 3000 + 4000 against an award of 10000."""
        case = Case(name="Road Repair", awarded_total=Decimal("10000"))
        payments = [pay("Road Repair", "3000"), pay("Other", "999"), pay("Road Repair", "4000")]

        progress = payment_progress("Road Repair", payments, case)
        assert progress.paid == Decimal("7000")
        assert progress.remaining == Decimal("3000")
        assert progress.percent == Decimal("70")
        assert progress.display_percent == Decimal("70.0")
        assert not progress.over_disbursed

    def test_over_disbursement_keeps_raw_percent(self):
        """Test that raw percent passes 100 while the display is clamped."""
        case = Case(name="Road Repair", awarded_total=Decimal("10000"))
        progress = payment_progress("Road Repair", [pay("Road Repair", "12500")], case)
        assert progress.percent == Decimal("125")
        assert progress.display_percent == Decimal("100.0")
        assert progress.remaining == Decimal("-2500")
        assert progress.over_disbursed

    def test_nothing_awarded(self):
        """Test that percent is 0 when the awarded total is 0."""
        progress = payment_progress("Road Repair", [pay("Road Repair", "100")], Case(name="Road Repair"))
        assert progress.percent == Decimal("0")
        assert progress.over_disbursed

    def test_missing_case(self):
        """Test that a missing case counts as nothing awarded."""
        progress = payment_progress("Ghost", [], None)
        assert progress.awarded_total == Decimal("0")
        assert progress.paid == Decimal("0")
        assert not progress.over_disbursed

    def test_display_percent_rounds_to_one_decimal(self):
        """Test rounding of the display percent."""
        case = Case(name="R", awarded_total=Decimal("3"))
        progress = payment_progress("R", [pay("R", "1")], case)
        assert progress.display_percent == Decimal("33.3")


class TestCaseOverview:
    """Tests for the per-case overview."""

    def test_overview(self):
        """Test linked lines, their total and progress per case."""
        cases = [
            Case(name="T1", awarded_total=Decimal("1000")),
            Case(name="T2"),
        ]
        records = [
            line("A", "Roads", "300", case_link="T1"),
            line("A", "Safety", "200", case_link="T1"),
            line("B", "Roads", "50"),
        ]
        payments = [pay("T1", "250")]

        overview = case_overview(cases, records, payments)
        assert [o.case.name for o in overview] == ["T1", "T2"]
        assert overview[0].linked_total == Decimal("500")
        assert len(overview[0].linked) == 2
        assert overview[0].progress.percent == Decimal("25")
        assert overview[1].linked == []

    def test_payments_for_case_keeps_order(self):
        """Test that payment history is in stored order."""
        payments = [pay("T1", "1", "first"), pay("T2", "2"), pay("T1", "3", "second")]
        assert [p.stage for p in payments_for_case("T1", payments)] == ["first", "second"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
