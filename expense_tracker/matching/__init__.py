"""Reimbursement matching package."""

from expense_tracker.matching.engine import (
    DEFAULT_TOLERANCE,
    find_reimbursement_matches,
    search_reimbursement_matches,
)
from expense_tracker.matching.ranking import (
    deduplicate_matches,
    format_match_difference,
    format_match_summary,
    rank_matches,
)

__all__ = [
    "DEFAULT_TOLERANCE",
    "deduplicate_matches",
    "find_reimbursement_matches",
    "format_match_difference",
    "format_match_summary",
    "rank_matches",
    "search_reimbursement_matches",
]
