"""
Tests for Expense Tracker models

Test strategy:
1. Unit tests for individual components (models, validators, engine)
2. Integration tests for flows (with in-memory storage)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseStatusFilter,
    ValidationIssue,
)
from expense_tracker.models.reimbursement import (
    MarkReimbursedResult,
    MatchLimits,
    MatchSearchResult,
    ReimbursementMatch,
    ReimbursementRequest,
    ReimbursementSearchOutcome,
    SearchStatus,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


def make_expense(expense_id, amount, day=1, reimbursed=False):
    return Expense(
        id=str(expense_id),
        description=f"Expense {expense_id}",
        amount=Decimal(str(amount)),
        date=date(2025, 1, day),
        reimbursed=reimbursed,
        user_id="user-1",
    )


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_expense_creation(self):
        """Test Expense model creation with defaults."""
        expense = Expense(
            id="e1",
            description="Team lunch",
            amount=Decimal("42.50"),
            date=date(2025, 3, 4),
        )
        assert expense.amount == Decimal("42.50")
        assert expense.category == ExpenseCategory.OTHER
        assert expense.reimbursed is False
        assert isinstance(expense.created_at, datetime)

    def test_expense_strips_whitespace(self):
        """Test that whitespace is stripped from descriptions."""
        expense = Expense(
            id="e1",
            description="  Taxi  ",
            amount=Decimal("5"),
            date=date(2025, 1, 1),
        )
        assert expense.description == "Taxi"

    def test_expense_requires_id(self):
        """Test that an empty id is rejected."""
        with pytest.raises(ValueError):
            Expense(id="", amount=Decimal("5"), date=date(2025, 1, 1))

    def test_expense_accepts_negative_and_zero_amounts(self):
        """Refunds and zero-value entries are valid expenses."""
        refund = make_expense("r", "-12.00")
        zero = make_expense("z", "0")
        assert refund.amount == Decimal("-12.00")
        assert zero.amount == Decimal("0")

    def test_expense_draft_rejects_non_positive_amount(self):
        """Test that a new expense needs a positive amount."""
        with pytest.raises(ValueError):
            ExpenseDraft(description="Test", amount=Decimal("0"), date=date(2025, 1, 1))
        with pytest.raises(ValueError):
            ExpenseDraft(description="Test", amount=Decimal("-5"), date=date(2025, 1, 1))

    def test_expense_draft_rejects_fractional_cents(self):
        """Test that amounts are limited to two decimal places."""
        with pytest.raises(ValueError):
            ExpenseDraft(description="Test", amount=Decimal("1.005"), date=date(2025, 1, 1))

    def test_expense_draft_requires_description(self):
        """Test that a blank description is rejected."""
        with pytest.raises(ValueError):
            ExpenseDraft(description="   ", amount=Decimal("5"), date=date(2025, 1, 1))

    def test_validation_issue_severity(self):
        """Test that severity is restricted to known levels."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")

    def test_status_filter_maps_to_storage_filter(self):
        """Test each status filter maps to the storage reimbursed flag."""
        assert ExpenseStatusFilter.ALL.reimbursed_filter is None
        assert ExpenseStatusFilter.PENDING.reimbursed_filter is False
        assert ExpenseStatusFilter.REIMBURSED.reimbursed_filter is True


class TestReimbursementModels:
    """Tests for reimbursement matching models."""

    def test_match_rejects_repeated_expense(self):
        """A match can never use the same expense twice."""
        expense = make_expense(1, 10)
        with pytest.raises(ValueError):
            ReimbursementMatch(
                expenses=[expense, expense],
                total=Decimal("20"),
                exact_match=True,
            )

    def test_match_requires_expenses(self):
        """Test that an empty match is rejected."""
        with pytest.raises(ValueError):
            ReimbursementMatch(expenses=[], total=Decimal("0"), exact_match=True)

    def test_match_id_key_ignores_order(self):
        """Test that match identity is the set of expense ids."""
        a, b = make_expense(1, 10), make_expense(2, 20)
        first = ReimbursementMatch(expenses=[a, b], total=Decimal("30"), exact_match=True)
        second = ReimbursementMatch(expenses=[b, a], total=Decimal("30"), exact_match=True)
        assert first.id_key == second.id_key
        assert first.expense_ids == ["1", "2"]

    def test_match_difference_is_signed(self):
        """Test difference_from keeps the sign."""
        match = ReimbursementMatch(
            expenses=[make_expense(1, "25.49")],
            total=Decimal("25.49"),
            exact_match=False,
        )
        assert match.difference_from(Decimal("25.50")) == Decimal("-0.01")

    def test_search_result_helpers(self):
        """Test has_matches and exact_matches."""
        exact = ReimbursementMatch(expenses=[make_expense(1, 10)], total=Decimal("10"), exact_match=True)
        close = ReimbursementMatch(expenses=[make_expense(2, "10.01")], total=Decimal("10.01"), exact_match=False)
        result = MatchSearchResult(
            matches=[exact, close],
            target_amount=Decimal("10"),
            tolerance=Decimal("0.01"),
        )
        assert result.has_matches
        assert result.exact_matches == [exact]
        assert result.limit_reached is False

        empty = MatchSearchResult(target_amount=Decimal("10"), tolerance=Decimal("0.01"))
        assert not empty.has_matches

    def test_request_rejects_non_positive_target(self):
        """Test that requests need a positive target."""
        with pytest.raises(ValueError):
            ReimbursementRequest(target_amount=Decimal("0"))
        with pytest.raises(ValueError):
            ReimbursementRequest(target_amount=Decimal("10"), tolerance=Decimal("-1"))

    def test_limits_are_frozen(self):
        """Test that MatchLimits cannot be changed after creation."""
        limits = MatchLimits()
        assert limits.max_total_matches == 100
        assert limits.max_combinations_per_amount == 20
        assert limits.max_combination_size == 10
        with pytest.raises(ValueError):
            limits.max_total_matches = 5

    def test_outcome_matches_without_result(self):
        """Test that an invalid outcome exposes no matches."""
        outcome = ReimbursementSearchOutcome(
            status=SearchStatus.INVALID_TARGET,
            message="bad",
        )
        assert outcome.matches == []

    def test_mark_result_states(self):
        """Test all/partial success flags."""
        ok = MarkReimbursedResult(succeeded_ids=["1", "2"])
        assert ok.all_succeeded
        assert not ok.partially_succeeded

        partial = MarkReimbursedResult(succeeded_ids=["1"], failed={"2": "boom"})
        assert not partial.all_succeeded
        assert partial.partially_succeeded
        assert partial.failed_ids == ["2"]

        failed = MarkReimbursedResult(failed={"1": "boom"})
        assert not failed.partially_succeeded


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            description="Test event",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.MATCH_SEARCH_COMPLETED,
            entity_type="search",
            correlation_id=correlation_id,
            description="Test",
            details={"match_count": 3},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "match_search_completed"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert log_dict["details"] == {"match_count": 3}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to a Google Sheets row."""
        event = AuditEventBuilder.expense_marked_reimbursed("e1", uuid4())
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "expense_marked_reimbursed"
        assert row[5] == "e1"
        assert row[10] == "False"

    def test_builder_target_rejected(self):
        """Test the rejected-amount builder."""
        event = AuditEventBuilder.target_amount_rejected("abc", ["not a number"], uuid4())
        assert event.event_type == AuditEventType.TARGET_AMOUNT_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.is_user_action
        assert event.details["reasons"] == ["not a number"]

    def test_builder_search_completed(self):
        """Test the search-completed builder keeps amounts as strings."""
        event = AuditEventBuilder.match_search_completed(
            target_amount=Decimal("41.25"),
            tolerance=Decimal("0.01"),
            candidate_count=3,
            match_count=1,
            exact_count=1,
            limit_reached=False,
            correlation_id=uuid4(),
        )
        assert event.details["target_amount"] == "41.25"
        assert event.details["limit_reached"] is False

    def test_builder_mark_failed_is_error(self):
        """Test failed marks are logged as errors."""
        event = AuditEventBuilder.mark_reimbursed_failed("e1", "timeout", uuid4())
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "timeout"
        assert event.entity_id == "e1"

    def test_builder_expense_updated_lists_changed_fields(self):
        """Test the edit builder names each changed field."""
        changes = {"amount": {"from": "10", "to": "12.50"}, "category": {"from": "Other", "to": "Travel"}}
        event = AuditEventBuilder.expense_updated("e1", changes, uuid4())
        assert event.event_type == AuditEventType.EXPENSE_UPDATED
        assert event.description == "Expense e1 edited: amount, category"
        assert event.details["changes"]["amount"]["to"] == "12.50"

    def test_builder_expense_duplicated(self):
        """Test the copy builder points at the new expense."""
        event = AuditEventBuilder.expense_duplicated("e1", "e2", uuid4())
        assert event.entity_id == "e2"
        assert event.details["source_id"] == "e1"


class TestExpenseCategories:
    """Tests for expense categories."""

    def test_all_categories_have_values(self):
        """Test all categories have string values."""
        for category in ExpenseCategory:
            assert isinstance(category.value, str)
            assert len(category.value) > 0

    def test_other_category_exists(self):
        """Test that OTHER category exists for edge cases."""
        assert ExpenseCategory.OTHER.value == "Other"
