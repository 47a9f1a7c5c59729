"""
Monthly Expense Summaries

Deterministic aggregation over expense records for the summary cards and
the month-by-month listing. Amounts stay Decimal all the way through;
formatting to strings happens only at the edge.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseTotals,
    MonthlyGroup,
)


def calculate_totals(expenses: Iterable[Expense]) -> ExpenseTotals:
    """Total, reimbursed and still-pending amounts."""
    total = Decimal("0")
    reimbursed = Decimal("0")

    for expense in expenses:
        total += expense.amount
        if expense.reimbursed:
            reimbursed += expense.amount

    return ExpenseTotals(
        total=total,
        reimbursed=reimbursed,
        pending=total - reimbursed,
    )


def group_expenses_by_month(expenses: Iterable[Expense]) -> list[MonthlyGroup]:
    """
    Group expenses by the month they were incurred in.

    Groups appear in the order their month is first seen, so a list that is
    already sorted newest-first yields newest-first months.
    """
    groups: dict[str, list[Expense]] = {}

    for expense in expenses:
        month_year = expense.date.strftime("%B %Y")
        groups.setdefault(month_year, []).append(expense)

    result = []
    for month_year, month_expenses in groups.items():
        totals = calculate_totals(month_expenses)
        result.append(MonthlyGroup(
            month_year=month_year,
            expenses=month_expenses,
            total=totals.total,
            reimbursed=totals.reimbursed,
            pending=totals.pending,
        ))

    return result


def format_currency(amount: Decimal, symbol: str = "$") -> str:
    """Format an amount like '$1,234.56' or '-$5.00'."""
    rounded = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def format_date(value: date) -> str:
    """Format a date like 'Jan 5, 2025'."""
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def get_expense_categories() -> list[str]:
    """Category labels in display order."""
    return [category.value for category in ExpenseCategory]
