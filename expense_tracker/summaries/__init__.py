"""Expense summaries package."""

from expense_tracker.summaries.monthly import (
    calculate_totals,
    format_currency,
    format_date,
    get_expense_categories,
    group_expenses_by_month,
)

__all__ = [
    "calculate_totals",
    "format_currency",
    "format_date",
    "get_expense_categories",
    "group_expenses_by_month",
]
