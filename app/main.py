"""
Streamlit Frontend for Expense Tracker

This is the user interface for tracking expenses and reconciling
reimbursements.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit choice before anything is marked reimbursed
3. Clear error messages in simple language
4. Visual feedback for all operations

The UI enforces the human-in-the-loop principle:
- User sees every candidate match and how far it is from the amount
- User picks one match
- Nothing is marked reimbursed without an explicit button press
"""

import asyncio
from datetime import date

import streamlit as st
from pydantic import ValidationError

from expense_tracker.audit import create_correlation_id
from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.matching import format_match_difference, format_match_summary
from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseStatusFilter,
)
from expense_tracker.models.reimbursement import SearchStatus
from expense_tracker.orchestrator import (
    ExpenseLedgerFlow,
    ReimbursementFlow,
    create_app_components,
    describe_mark_result,
)
from expense_tracker.summaries import format_currency, format_date


# Page configuration
st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    reimbursement_flow, ledger_flow, sheets_client = get_components()
    app_settings = get_settings().app
    user_id = app_settings.default_user_id
    symbol = app_settings.currency_symbol

    # Sidebar navigation
    st.sidebar.title("💰 Expense Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🔍 Find Reimbursement", "➕ Add Expense", "📊 Monthly Summary", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    if sheets_client is None:
        st.sidebar.warning("Google Sheets not configured - data is kept in memory only.")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Add each expense as you pay it
        2. When money comes back, enter the amount
        3. Pick the match and mark it reimbursed
        """
    )

    if page == "🔍 Find Reimbursement":
        render_reimbursement_page(reimbursement_flow, user_id, symbol)
    elif page == "➕ Add Expense":
        render_add_expense_page(ledger_flow, user_id, symbol)
    elif page == "📊 Monthly Summary":
        render_summary_page(ledger_flow, user_id, symbol)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_reimbursement_page(flow: ReimbursementFlow, user_id: str, symbol: str):
    """Render the reimbursement matching page."""
    st.title("🔍 Find Reimbursement")
    st.markdown("Enter the amount you were paid back to see which expenses it covers.")

    if "search_outcome" not in st.session_state:
        st.session_state.search_outcome = None
        st.session_state.correlation_id = None

    col1, col2 = st.columns([3, 1])
    with col1:
        raw_target = st.text_input(
            "Reimbursement amount",
            placeholder="e.g. 520.21",
        )
    with col2:
        raw_tolerance = st.text_input(
            "Tolerance",
            value=str(get_settings().matching.default_tolerance),
            help="How far a match's total may be from the amount",
        )

    if st.button("🔍 Find Matches", type="primary"):
        st.session_state.correlation_id = create_correlation_id()
        with st.spinner("Searching your pending expenses..."):
            try:
                st.session_state.search_outcome = run_async(
                    flow.find_matches(
                        user_id=user_id,
                        raw_target=raw_target,
                        raw_tolerance=raw_tolerance,
                        correlation_id=st.session_state.correlation_id,
                    )
                )
            except Exception as e:
                st.session_state.search_outcome = None
                st.error(f"Could not load your expenses: {e}")

    outcome = st.session_state.search_outcome
    if outcome is None:
        return

    if outcome.status == SearchStatus.INVALID_TARGET:
        st.error(outcome.message)
        return

    if outcome.status == SearchStatus.NO_MATCH:
        st.markdown(f"""
        <div class="info-box">
            <h4>📋 {outcome.message}</h4>
            <p>Try a larger tolerance, or check that the expenses were added.</p>
        </div>
        """, unsafe_allow_html=True)
        return

    target = outcome.result.target_amount
    st.success(outcome.message)
    if outcome.result.limit_reached:
        st.warning("Showing the best matches found before the search limit was reached.")

    labels = [
        f"{format_match_summary(match)} · {format_currency(match.total, symbol)} "
        f"({format_match_difference(match, target, symbol)})"
        for match in outcome.matches
    ]
    choice = st.radio(
        "Possible matches",
        options=range(len(outcome.matches)),
        format_func=lambda i: labels[i],
    )
    match = outcome.matches[choice]

    st.markdown("### Selected match")
    st.table([
        {
            "Date": format_date(expense.date),
            "Description": expense.description,
            "Category": expense.category.value,
            "Amount": format_currency(expense.amount, symbol),
        }
        for expense in match.expenses
    ])
    st.markdown(f"**Total:** {format_currency(match.total, symbol)}")

    if st.button("✅ Mark as Reimbursed", type="primary"):
        result = run_async(
            flow.mark_match_reimbursed(
                match,
                correlation_id=st.session_state.correlation_id,
            )
        )
        message = describe_mark_result(result)
        if result.all_succeeded:
            st.session_state.search_outcome = None
            st.success(message)
        else:
            st.error(message)


def render_add_expense_page(flow: ExpenseLedgerFlow, user_id: str, symbol: str):
    """Render the add expense page."""
    st.title("➕ Add Expense")

    with st.form("add_expense", clear_on_submit=True):
        description = st.text_input("Description")
        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input("Amount", min_value=0.01, step=0.01, format="%.2f")
        with col2:
            expense_date = st.date_input("Date", value=date.today())
        category = st.selectbox(
            "Category",
            options=list(ExpenseCategory),
            format_func=lambda c: c.value,
        )
        reimbursed = st.checkbox("Already reimbursed")
        submitted = st.form_submit_button("💾 Save Expense")

    if submitted:
        try:
            draft = ExpenseDraft(
                description=description,
                amount=str(round(amount, 2)),
                date=expense_date,
                category=category,
                reimbursed=reimbursed,
            )
        except ValidationError as e:
            st.error(f"Please check the expense details: {e.errors()[0]['msg']}")
            return

        try:
            expense = run_async(flow.add_expense(user_id, draft))
        except Exception as e:
            st.error(f"Could not save the expense: {e}")
            return

        st.markdown(f"""
        <div class="success-box">
            <h3>✅ Expense Saved</h3>
            <p><strong>Description:</strong> {expense.description}</p>
            <p><strong>Amount:</strong> {format_currency(expense.amount, symbol)}</p>
            <p><strong>Date:</strong> {format_date(expense.date)}</p>
        </div>
        """, unsafe_allow_html=True)


def render_summary_page(flow: ExpenseLedgerFlow, user_id: str, symbol: str):
    """Render the monthly summary page."""
    st.title("📊 Monthly Summary")

    status = st.selectbox(
        "Show",
        options=list(ExpenseStatusFilter),
        format_func=lambda s: s.value.title(),
    )

    try:
        totals = run_async(flow.totals(user_id))
        groups = run_async(flow.monthly_summary(user_id, status))
    except Exception as e:
        st.error(f"Could not load your expenses: {e}")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Total", format_currency(totals.total, symbol))
    col2.metric("Reimbursed", format_currency(totals.reimbursed, symbol))
    col3.metric("Pending", format_currency(totals.pending, symbol))

    st.markdown("---")

    if not groups:
        st.info("📋 No expenses to show. Add one on the 'Add Expense' page.")
        return

    for group in groups:
        with st.expander(
            f"{group.month_year} - {format_currency(group.total, symbol)} "
            f"({format_currency(group.pending, symbol)} pending)"
        ):
            for expense in group.expenses:
                render_expense_row(flow, expense, symbol)


def render_expense_row(flow: ExpenseLedgerFlow, expense: Expense, symbol: str):
    """One expense with its reimbursed toggle and edit / copy / delete actions."""
    col1, col2, col3, col4 = st.columns([2, 4, 2, 2])
    col1.write(format_date(expense.date))
    col2.write(f"{expense.description} · {expense.category.value}")
    col3.write(format_currency(expense.amount, symbol))
    toggled = col4.checkbox(
        "Reimbursed",
        value=expense.reimbursed,
        key=f"reimbursed-{expense.id}",
    )
    if toggled != expense.reimbursed:
        run_storage_action(flow.set_reimbursed(expense.id, toggled), "update the expense")

    col1, col2, col3 = st.columns(3)
    if col1.button("✏️ Edit", key=f"edit-{expense.id}"):
        st.session_state.editing_expense_id = expense.id
    if col2.button("📄 Duplicate", key=f"duplicate-{expense.id}"):
        run_storage_action(flow.duplicate_expense(expense.id), "copy the expense")
    if col3.button("🗑️ Delete", key=f"delete-{expense.id}"):
        run_storage_action(flow.delete_expense(expense.id), "delete the expense")

    if st.session_state.get("editing_expense_id") == expense.id:
        render_edit_form(flow, expense)


def render_edit_form(flow: ExpenseLedgerFlow, expense: Expense):
    """Inline form for changing an existing expense."""
    with st.form(f"edit-form-{expense.id}"):
        description = st.text_input("Description", value=expense.description)
        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input(
                "Amount",
                min_value=0.01,
                value=max(float(expense.amount), 0.01),
                step=0.01,
                format="%.2f",
            )
        with col2:
            expense_date = st.date_input("Date", value=expense.date)
        categories = list(ExpenseCategory)
        category = st.selectbox(
            "Category",
            options=categories,
            index=categories.index(expense.category),
            format_func=lambda c: c.value,
        )
        reimbursed = st.checkbox("Reimbursed", value=expense.reimbursed)
        col1, col2 = st.columns(2)
        saved = col1.form_submit_button("💾 Save Changes")
        cancelled = col2.form_submit_button("Cancel")

    if cancelled:
        st.session_state.editing_expense_id = None
        st.rerun()

    if saved:
        try:
            draft = ExpenseDraft(
                description=description,
                amount=str(round(amount, 2)),
                date=expense_date,
                category=category,
                reimbursed=reimbursed,
            )
        except ValidationError as e:
            st.error(f"Please check the expense details: {e.errors()[0]['msg']}")
            return

        st.session_state.editing_expense_id = None
        run_storage_action(flow.update_expense(expense.id, draft), "save your changes")


def run_storage_action(coro, action: str):
    """Run a ledger write; show an error instead of crashing if storage fails."""
    try:
        run_async(coro)
    except Exception as e:
        st.error(f"Could not {action}: {e}")
        return
    st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    sections = [
        ("Matching limits", "matching"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("matching", False):
        matching = get_settings().matching
        st.markdown("### Matching")
        st.markdown(
            f"- Max matches shown: **{matching.max_total_matches}**\n"
            f"- Max expenses per match: **{matching.max_combination_size}**\n"
            f"- Max picks per repeated amount: **{matching.max_combinations_per_amount}**\n"
            f"- Default tolerance: **{matching.default_tolerance}**"
        )

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
