"""
Expense Tracker - Source Package

A personal expense tracker that helps reconcile reimbursements:
given the amount someone paid back, it finds which pending expenses
add up to it.

DESIGN PRINCIPLES:
1. System suggests → Human chooses → System records
2. Fail early, fail visibly
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
