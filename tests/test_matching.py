"""
Tests for the reimbursement matching engine.

The engine is pure, so these run without storage or mocks.
"""

import time
from datetime import date
from decimal import Decimal

import pytest

from expense_tracker.matching import (
    find_reimbursement_matches,
    search_reimbursement_matches,
)
from expense_tracker.matching.engine import (
    expand_pattern,
    find_amount_combinations,
    group_by_amount,
    prepare_pending_expenses,
    to_decimal,
)
from expense_tracker.models.expense import Expense
from expense_tracker.models.reimbursement import MatchLimits


def make_expense(expense_id, amount, day=1, reimbursed=False):
    return Expense(
        id=str(expense_id),
        description=f"Expense {expense_id}",
        amount=Decimal(str(amount)),
        date=date(2025, 1, day),
        reimbursed=reimbursed,
        user_id="user-1",
    )


def assert_well_formed(matches, target, tolerance):
    """Properties every search result must satisfy."""
    target = Decimal(str(target))
    tolerance = Decimal(str(tolerance))

    seen_sets = set()
    for match in matches:
        difference = abs(match.total - target)
        assert difference <= tolerance
        assert match.exact_match == (difference < Decimal("0.001"))
        assert len(set(match.expense_ids)) == len(match.expense_ids)
        assert all(not expense.reimbursed for expense in match.expenses)
        assert match.total == sum(e.amount for e in match.expenses)
        seen_sets.add(match.id_key)
    assert len(seen_sets) == len(matches)

    keys = [(not m.exact_match, abs(m.total - target)) for m in matches]
    assert keys == sorted(keys)


class TestConcreteScenarios:
    """Worked examples of the search."""

    def test_single_exact_match(self):
        """Target equal to one expense returns only that expense."""
        expenses = [make_expense(1, "25.50"), make_expense(2, "15.75"), make_expense(3, "50.00")]

        matches = find_reimbursement_matches(expenses, Decimal("25.50"))

        assert len(matches) == 1
        assert matches[0].expense_ids == ["1"]
        assert matches[0].exact_match is True

    def test_two_expense_exact_match(self):
        """Target equal to a pair's sum returns that pair."""
        expenses = [make_expense(1, "25.50"), make_expense(2, "15.75"), make_expense(3, "50.00")]

        matches = find_reimbursement_matches(expenses, Decimal("41.25"))

        pair = [m for m in matches if m.id_key == frozenset({"1", "2"})]
        assert len(pair) == 1
        assert pair[0].total == Decimal("41.25")
        assert pair[0].exact_match is True

    def test_close_match_within_tolerance(self):
        """A near miss within tolerance is returned as a close match."""
        expenses = [make_expense(1, "25.49"), make_expense(2, "15.75")]

        matches = find_reimbursement_matches(expenses, Decimal("25.50"), Decimal("0.02"))

        assert len(matches) == 1
        assert matches[0].expense_ids == ["1"]
        assert matches[0].exact_match is False

    def test_reimbursed_expenses_never_match(self):
        """Reimbursed expenses are ignored even when passed in."""
        expenses = [
            make_expense(1, "25.50", reimbursed=True),
            make_expense(2, "25.50"),
        ]

        matches = find_reimbursement_matches(expenses, Decimal("25.50"))

        assert [m.expense_ids for m in matches] == [["2"]]

    def test_repeated_amounts_yield_distinct_pairs(self):
        """Four equal expenses give every distinct pair once."""
        expenses = [make_expense(i, "10.00", day=i) for i in range(1, 5)]

        matches = find_reimbursement_matches(expenses, Decimal("20.00"))

        assert len(matches) == 6
        assert all(len(m.expenses) == 2 for m in matches)
        assert all(m.exact_match for m in matches)
        assert len({m.id_key for m in matches}) == 6
        assert_well_formed(matches, "20.00", "0.01")

    def test_many_identical_amounts_stay_bounded(self):
        """Fifty equal expenses finish quickly with a capped result."""
        expenses = [make_expense(i, "25.00", day=(i % 28) + 1) for i in range(50)]

        started = time.perf_counter()
        result = search_reimbursement_matches(expenses, Decimal("100.00"))
        elapsed = time.perf_counter() - started

        assert elapsed < 1.0
        assert 0 < len(result.matches) <= 20
        assert result.limit_reached is True
        assert_well_formed(result.matches, "100.00", "0.01")


class TestSearchProperties:
    """General guarantees of the search."""

    def test_empty_input(self):
        """No pending expenses gives an empty result, not an error."""
        result = search_reimbursement_matches([], Decimal("10"))
        assert result.matches == []
        assert result.candidate_count == 0
        assert result.limit_reached is False

    def test_unreachable_target(self):
        """A target far above every sum gives no matches."""
        expenses = [make_expense(1, 10), make_expense(2, 20)]
        assert find_reimbursement_matches(expenses, Decimal("1000")) == []

    def test_exact_matches_rank_first(self):
        """Exact matches precede close ones; ties prefer older expenses."""
        expenses = [
            make_expense("a", "25.00"),
            make_expense("b", "25.01"),
            make_expense("c", "10.00"),
            make_expense("d", "15.00"),
        ]

        matches = find_reimbursement_matches(expenses, Decimal("25"), Decimal("0.02"))

        assert [m.expense_ids for m in matches] == [["a"], ["c", "d"], ["b"]]
        assert_well_formed(matches, "25", "0.02")

    def test_full_set_match_is_found(self):
        """When the target is the total of everything pending, that set is returned."""
        expenses = [make_expense(1, 10), make_expense(2, 20), make_expense(3, 30)]

        matches = find_reimbursement_matches(expenses, Decimal("60"))

        assert matches[0].id_key == frozenset({"1", "2", "3"})
        assert matches[0].exact_match

    def test_older_expenses_preferred(self):
        """Equal candidates are ordered oldest first."""
        expenses = [
            make_expense("newest", 10, day=3),
            make_expense("oldest", 10, day=1),
            make_expense("middle", 10, day=2),
        ]

        matches = find_reimbursement_matches(expenses, Decimal("10"))

        assert [m.expense_ids for m in matches] == [["oldest"], ["middle"], ["newest"]]

    def test_match_expenses_listed_oldest_first(self):
        """Expenses inside a match are in date order."""
        expenses = [make_expense("late", 15, day=9), make_expense("early", 10, day=2)]

        matches = find_reimbursement_matches(expenses, Decimal("25"))

        assert matches[0].expense_ids == ["early", "late"]

    def test_deterministic(self):
        """The same input always gives the same output."""
        expenses = [make_expense(i, amount) for i, amount in enumerate([5, 10, 15, 20, 25, 5, 10])]

        first = find_reimbursement_matches(expenses, Decimal("30"))
        second = find_reimbursement_matches(expenses, Decimal("30"))

        assert [m.expense_ids for m in first] == [m.expense_ids for m in second]
        assert_well_formed(first, "30", "0.01")

    def test_negative_amounts_participate(self):
        """Refund-like negative amounts are summed like any other."""
        expenses = [make_expense("big", 30), make_expense("refund", -5), make_expense("small", 10)]

        matches = find_reimbursement_matches(expenses, Decimal("25"))

        assert [m.id_key for m in matches] == [frozenset({"big", "refund"})]

    def test_zero_amounts_participate(self):
        """A zero-value expense can ride along with an exact match."""
        expenses = [make_expense("zero", 0), make_expense("lunch", 25)]

        matches = find_reimbursement_matches(expenses, Decimal("25"))

        assert {m.id_key for m in matches} == {
            frozenset({"lunch"}),
            frozenset({"zero", "lunch"}),
        }
        assert all(m.exact_match for m in matches)

    def test_duplicate_ids_in_input_used_once(self):
        """An id passed twice cannot be paired with itself."""
        expenses = [make_expense(1, 10), make_expense(1, 10)]

        assert find_reimbursement_matches(expenses, Decimal("20")) == []
        assert len(find_reimbursement_matches(expenses, Decimal("10"))) == 1

    def test_accepts_float_and_string_amounts(self):
        """Targets given as float or str are converted without float noise."""
        expenses = [make_expense(1, "0.10"), make_expense(2, "0.20")]

        assert len(find_reimbursement_matches(expenses, 0.3)) == 1
        assert len(find_reimbursement_matches(expenses, "0.30")) == 1

    def test_zero_tolerance_requires_exact_total(self):
        """With no tolerance only exact totals are returned."""
        expenses = [make_expense(1, "25.49"), make_expense(2, "25.50")]

        matches = find_reimbursement_matches(expenses, Decimal("25.50"), Decimal("0"))

        assert [m.expense_ids for m in matches] == [["2"]]

    def test_rounded_amount_outside_tolerance_dropped(self):
        """A pick that only fits after rounding to cents is not returned."""
        expenses = [make_expense(1, "10.004")]

        result = search_reimbursement_matches(expenses, Decimal("10.00"), Decimal("0"))

        assert result.matches == []
        assert result.limit_reached is False

    def test_rounded_amount_inside_tolerance_kept(self):
        """Exact totals are used for pricing, so a sub-cent gap can still match."""
        expenses = [make_expense(1, "10.004")]

        matches = find_reimbursement_matches(expenses, Decimal("10.00"), Decimal("0.01"))

        assert len(matches) == 1
        assert matches[0].total == Decimal("10.004")
        assert matches[0].exact_match is False


class TestSearchLimits:
    """Tests for the search bounds."""

    def test_total_match_cap_sets_limit_reached(self):
        """Hitting max_total_matches truncates and flags the result."""
        expenses = [make_expense(i, "10.00", day=i) for i in range(1, 5)]
        limits = MatchLimits(max_total_matches=3)

        result = search_reimbursement_matches(expenses, Decimal("20"), limits=limits)

        assert len(result.matches) == 3
        assert result.limit_reached is True

    def test_no_limit_reached_for_small_inputs(self):
        """Ordinary searches are not flagged."""
        expenses = [make_expense(1, "25.50"), make_expense(2, "15.75")]

        result = search_reimbursement_matches(expenses, Decimal("41.25"))

        assert result.limit_reached is False
        assert result.candidate_count == 2

    def test_combination_size_cap(self):
        """Matches larger than max_combination_size are not produced."""
        expenses = [make_expense(i, 10) for i in range(3)]

        limited = search_reimbursement_matches(
            expenses, Decimal("30"), limits=MatchLimits(max_combination_size=2)
        )
        unlimited = search_reimbursement_matches(expenses, Decimal("30"))

        assert limited.matches == []
        assert len(unlimited.matches) == 1

    def test_per_amount_cap(self):
        """Each amount pattern expands to at most max_combinations_per_amount picks."""
        expenses = [make_expense(i, 5, day=i) for i in range(1, 9)]
        limits = MatchLimits(max_combinations_per_amount=4)

        result = search_reimbursement_matches(expenses, Decimal("10"), limits=limits)

        assert len(result.matches) == 4
        assert result.limit_reached is True
        # Oldest expenses are used first
        assert result.matches[0].expense_ids == ["1", "2"]


class TestEngineHelpers:
    """Tests for the engine building blocks."""

    def test_prepare_sorts_by_date_and_filters(self):
        """Pending expenses are sorted oldest first without reimbursed ones."""
        expenses = [
            make_expense("b", 1, day=5),
            make_expense("x", 1, day=1, reimbursed=True),
            make_expense("a", 1, day=2),
            make_expense("c", 1, day=5),
        ]

        assert [e.id for e in prepare_pending_expenses(expenses)] == ["a", "b", "c"]

    def test_group_by_amount_rounds_to_cents(self):
        """Amounts are grouped by their value rounded half up."""
        groups = group_by_amount([make_expense(1, "10.005"), make_expense(2, "10.01")])
        assert list(groups) == [Decimal("10.01")]
        assert [e.id for e in groups[Decimal("10.01")]] == ["1", "2"]

    def test_find_amount_combinations_records_each_pattern_once(self):
        """Every amount pattern appears a single time."""
        amounts = [Decimal("5"), Decimal("10"), Decimal("15")]
        patterns, capped = find_amount_combinations(
            amounts=amounts,
            group_sizes=[2, 1, 1],
            target=Decimal("15"),
            tolerance=Decimal("0"),
            max_size=10,
            max_patterns=100,
        )

        assert capped is False
        assert sorted(patterns) == sorted([
            [(Decimal("5"), 1), (Decimal("10"), 1)],
            [(Decimal("15"), 1)],
        ])

    def test_find_amount_combinations_uses_group_counts(self):
        """A group can contribute several expenses to one pattern."""
        patterns, _ = find_amount_combinations(
            amounts=[Decimal("10")],
            group_sizes=[3],
            target=Decimal("30"),
            tolerance=Decimal("0"),
            max_size=10,
            max_patterns=100,
        )
        assert patterns == [[(Decimal("10"), 3)]]

    def test_expand_pattern_respects_budget(self):
        """Expansion stops at the remaining budget."""
        group = [make_expense(i, 10) for i in range(4)]
        picks, truncated = expand_pattern(
            [(Decimal("10.00"), 2)],
            {Decimal("10.00"): group},
            max_per_pattern=20,
            budget=2,
        )

        assert len(picks) == 2
        assert truncated is True
        assert [e.id for e in picks[0]] == ["0", "1"]

    @pytest.mark.parametrize("value,expected", [
        (0.1, Decimal("0.1")),
        ("25.50", Decimal("25.50")),
        (7, Decimal("7")),
        (Decimal("1.23"), Decimal("1.23")),
    ])
    def test_to_decimal(self, value, expected):
        """Numeric inputs convert to exact Decimals."""
        assert to_decimal(value) == expected
