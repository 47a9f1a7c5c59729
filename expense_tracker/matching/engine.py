"""
Reimbursement Matching Engine

Given the pending expenses and a reimbursement total (a bank deposit,
a payroll line), find the combinations of expenses that add up to it.

This is subset-sum, so the search is bounded rather than exhaustive:

1. Expenses sharing an amount (ten $10 coffees) are grouped, and the
   backtracking runs over the distinct amounts. Choosing "two $10 coffees"
   is one branch instead of forty-five.
2. Each amount pattern that lands within tolerance is expanded into
   concrete expenses, oldest first, a bounded number of times.
3. Hard caps on combination size, expansions per pattern and total matches
   (see MatchLimits) keep latency flat on pathological inputs.

The engine is a pure function over in-memory data: no I/O, no shared state,
no exceptions for well-formed input. Validating the target amount is the
caller's job.
"""

import itertools
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

import structlog

from expense_tracker.matching.ranking import rank_matches
from expense_tracker.models.expense import Expense
from expense_tracker.models.reimbursement import (
    MatchLimits,
    MatchSearchResult,
    ReimbursementMatch,
)


DEFAULT_TOLERANCE = Decimal("0.01")
CENT = Decimal("0.01")

Amount = Union[Decimal, int, float, str]
AmountPattern = list[tuple[Decimal, int]]

logger = structlog.get_logger(__name__)


def to_decimal(value: Amount) -> Decimal:
    """Convert a numeric input to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_amount(amount: Decimal) -> Decimal:
    """Round to cents, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def prepare_pending_expenses(expenses: Iterable[Expense]) -> list[Expense]:
    """
    Pending expenses, oldest first.

    Reimbursed expenses are dropped even if the caller already filtered.
    An id seen twice is kept once (first occurrence). The date sort is
    stable, so same-day expenses keep their input order.
    """
    seen: set[str] = set()
    pending = []

    for expense in expenses:
        if expense.reimbursed:
            continue
        if expense.id in seen:
            logger.warning("duplicate_expense_id_ignored", expense_id=expense.id)
            continue
        seen.add(expense.id)
        pending.append(expense)

    pending.sort(key=lambda expense: expense.date)
    return pending


def group_by_amount(expenses: Iterable[Expense]) -> dict[Decimal, list[Expense]]:
    """Group expenses by rounded amount. Each group keeps input order."""
    groups: dict[Decimal, list[Expense]] = {}
    for expense in expenses:
        groups.setdefault(round_amount(expense.amount), []).append(expense)
    return groups


def find_amount_combinations(
    amounts: list[Decimal],
    group_sizes: list[int],
    target: Decimal,
    tolerance: Decimal,
    max_size: int,
    max_patterns: int,
) -> tuple[list[AmountPattern], bool]:
    """
    Bounded backtracking over distinct amounts.

    Args:
        amounts: Distinct amounts, ascending
        group_sizes: How many expenses exist at each amount
        target: Reimbursement total
        tolerance: Allowed absolute difference
        max_size: Maximum number of expenses in one combination
        max_patterns: Stop after this many hits

    Returns:
        (patterns, capped) where each pattern is a list of
        (amount, count) pairs, and capped tells whether the search
        stopped early because max_patterns was reached.
    """
    patterns: list[AmountPattern] = []
    pattern: AmountPattern = []
    upper_bound = target + tolerance
    capped = False

    def backtrack(start: int, running_sum: Decimal, remaining: int) -> None:
        nonlocal capped

        for index in range(start, len(amounts)):
            amount = amounts[index]
            # Amounts ascend, so every later amount overshoots as well.
            # This stays sound with negative amounts: they sort first.
            if running_sum + amount > upper_bound:
                break

            for count in range(1, min(group_sizes[index], remaining) + 1):
                new_sum = running_sum + amount * count
                if new_sum > upper_bound:
                    break
                if len(patterns) >= max_patterns:
                    capped = True
                    return

                pattern.append((amount, count))
                if abs(new_sum - target) <= tolerance:
                    patterns.append(list(pattern))
                if count < remaining:
                    backtrack(index + 1, new_sum, remaining - count)
                pattern.pop()

    backtrack(0, Decimal("0"), max_size)
    return patterns, capped


def expand_pattern(
    pattern: AmountPattern,
    groups: dict[Decimal, list[Expense]],
    max_per_pattern: int,
    budget: int,
) -> tuple[list[list[Expense]], bool]:
    """
    Turn an amount pattern into concrete expense picks.

    For each (amount, count) pair, combinations of `count` expenses are
    taken from the amount's group in pool order, so older expenses are
    used first. At most `max_per_pattern` selections are tried per group
    and at most min(max_per_pattern, budget) picks are produced.

    Returns:
        (picks, truncated) where truncated tells whether more picks
        existed beyond the bounds.
    """
    picks: list[list[Expense]] = []
    cap = min(max_per_pattern, budget)
    truncated = False

    def expand(position: int, chosen: list[Expense]) -> None:
        nonlocal truncated

        if position == len(pattern):
            picks.append(chosen)
            return

        amount, count = pattern[position]
        selections = itertools.combinations(groups[amount], count)
        for generated, selection in enumerate(selections):
            if len(picks) >= cap or generated >= max_per_pattern:
                truncated = True
                return
            expand(position + 1, chosen + list(selection))

    expand(0, [])
    return picks, truncated


def _build_match(
    pick: list[Expense],
    positions: dict[str, int],
    target: Decimal,
    tolerance: Decimal,
    exact_match_epsilon: Decimal,
) -> Optional[ReimbursementMatch]:
    """Price a concrete pick. None if rounding pushed it out of tolerance."""
    total = sum((expense.amount for expense in pick), Decimal("0"))
    difference = abs(total - target)
    if difference > tolerance:
        return None

    return ReimbursementMatch(
        expenses=sorted(pick, key=lambda expense: positions[expense.id]),
        total=total,
        exact_match=difference < exact_match_epsilon,
    )


def search_reimbursement_matches(
    pending_expenses: Iterable[Expense],
    target_amount: Amount,
    tolerance: Amount = DEFAULT_TOLERANCE,
    limits: Optional[MatchLimits] = None,
) -> MatchSearchResult:
    """
    Find combinations of pending expenses whose total is near a target.

    Args:
        pending_expenses: Expenses to choose from. Reimbursed ones are ignored.
        target_amount: Reimbursement total; assumed to be > 0
        tolerance: Maximum allowed |total - target|
        limits: Search bounds; defaults to MatchLimits()

    Returns:
        MatchSearchResult with deduplicated, ranked matches. Every match is
        within tolerance, uses each expense at most once, and contains no
        reimbursed expense. limit_reached is set when a bound cut the
        search short.
    """
    limits = limits or MatchLimits()
    target = to_decimal(target_amount)
    tolerance = to_decimal(tolerance)

    expenses = prepare_pending_expenses(pending_expenses)
    if not expenses:
        return MatchSearchResult(target_amount=target, tolerance=tolerance)

    positions = {expense.id: index for index, expense in enumerate(expenses)}
    groups = group_by_amount(expenses)
    amounts = sorted(groups)

    patterns, limit_reached = find_amount_combinations(
        amounts=amounts,
        group_sizes=[len(groups[amount]) for amount in amounts],
        target=target,
        tolerance=tolerance,
        max_size=min(limits.max_combination_size, len(expenses)),
        max_patterns=limits.max_total_matches,
    )

    candidates: list[ReimbursementMatch] = []
    for pattern in patterns:
        budget = limits.max_total_matches - len(candidates)
        if budget <= 0:
            limit_reached = True
            break

        picks, truncated = expand_pattern(
            pattern,
            groups,
            max_per_pattern=limits.max_combinations_per_amount,
            budget=budget,
        )
        limit_reached = limit_reached or truncated

        for pick in picks:
            match = _build_match(
                pick, positions, target, tolerance, limits.exact_match_epsilon
            )
            if match is not None:
                candidates.append(match)

    matches = rank_matches(candidates, target, positions)

    logger.debug(
        "match_search_finished",
        candidate_count=len(expenses),
        distinct_amounts=len(amounts),
        pattern_count=len(patterns),
        match_count=len(matches),
        limit_reached=limit_reached,
    )

    return MatchSearchResult(
        matches=matches,
        target_amount=target,
        tolerance=tolerance,
        candidate_count=len(expenses),
        limit_reached=limit_reached,
    )


def find_reimbursement_matches(
    pending_expenses: Iterable[Expense],
    target_amount: Amount,
    tolerance: Amount = DEFAULT_TOLERANCE,
    limits: Optional[MatchLimits] = None,
) -> list[ReimbursementMatch]:
    """Ranked matches only. See search_reimbursement_matches."""
    return search_reimbursement_matches(
        pending_expenses, target_amount, tolerance, limits
    ).matches
