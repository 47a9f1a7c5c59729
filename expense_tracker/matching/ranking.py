"""
Match Ranking & Deduplication

Turns raw candidate matches into the list the user picks from:
- no two matches cover the same set of expenses
- exact matches come first
- then the smallest difference from the target
- then the combination built from the oldest expenses

Nothing here mutates its input.
"""

from decimal import Decimal
from typing import Iterable, Optional

from expense_tracker.models.reimbursement import ReimbursementMatch
from expense_tracker.summaries.monthly import format_currency


def deduplicate_matches(
    matches: Iterable[ReimbursementMatch],
) -> list[ReimbursementMatch]:
    """
    Drop matches covering the same expenses as an earlier one.

    Two matches are duplicates when their expense-id sets are equal,
    regardless of order. The first occurrence wins.
    """
    seen: set[frozenset[str]] = set()
    unique = []

    for match in matches:
        key = match.id_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(match)

    return unique


def _age_key(
    match: ReimbursementMatch,
    positions: Optional[dict[str, int]],
) -> tuple:
    """Sort key preferring combinations drawn from older expenses."""
    if positions is not None:
        fallback = len(positions)
        return tuple(sorted(positions.get(expense.id, fallback) for expense in match.expenses))
    return tuple(sorted(expense.date for expense in match.expenses))


def rank_matches(
    matches: Iterable[ReimbursementMatch],
    target_amount: Decimal,
    positions: Optional[dict[str, int]] = None,
) -> list[ReimbursementMatch]:
    """
    Deduplicate and order matches for presentation.

    Args:
        matches: Candidate matches, in discovery order
        target_amount: The reimbursement total being matched
        positions: Optional expense id -> index in the oldest-first pool.
                   Without it, ties are broken on expense dates.

    Returns:
        A new list: exact matches first, then ascending distance from
        the target, then oldest combinations first.
    """
    target = Decimal(target_amount)

    return sorted(
        deduplicate_matches(matches),
        key=lambda match: (
            not match.exact_match,
            abs(match.total - target),
            _age_key(match, positions),
        ),
    )


def format_match_summary(match: ReimbursementMatch) -> str:
    """Short label such as '1 expense (exact match)' or '3 expenses (close match)'."""
    count = len(match.expenses)
    noun = "expense" if count == 1 else "expenses"
    kind = "exact match" if match.exact_match else "close match"
    return f"{count} {noun} ({kind})"


def format_match_difference(
    match: ReimbursementMatch,
    target_amount: Decimal,
    currency_symbol: str = "$",
) -> str:
    """Signed difference between a match and the target, e.g. '+$0.01'."""
    difference = match.difference_from(Decimal(target_amount))
    formatted = format_currency(difference, currency_symbol)
    if difference > 0:
        return f"+{formatted}"
    return formatted
