"""Streamlit page for the rolling budget.

Run with::

    streamlit run rolling_budget/dashboard.py

The page only reads through :class:`~rolling_budget.ledger.BudgetLedger` and
writes expenses through it; it never touches day rows directly.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import streamlit as st

# Add project root to path when launched as a script
project_root = Path(__file__).parent.parent.resolve()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from rolling_budget import config  # noqa: E402
from rolling_budget.db import SQLiteLedgerStore  # noqa: E402
from rolling_budget.errors import LedgerError, NoConfig  # noqa: E402
from rolling_budget.formatting import escape_dollar_for_markdown, format_currency  # noqa: E402
from rolling_budget.ledger import BudgetLedger  # noqa: E402
from rolling_budget.models import CarryOverMode  # noqa: E402
from rolling_budget.visualization import create_cumulative_balance_chart, create_cycle_chart  # noqa: E402

STATUS_LABELS = {
    'onTrack': '🟢 On track',
    'warning': '🟡 Running low',
    'overspent': '🔴 Overspent',
}


@st.cache_resource
def _get_ledger() -> BudgetLedger:
    return BudgetLedger(SQLiteLedgerStore())


def _render_setup(ledger: BudgetLedger, account_id: str) -> None:
    st.info("No budget configured for this account yet.")
    with st.form('budget_setup'):
        daily_base = st.number_input("Daily budget", min_value=0.01, value=50.0, step=5.0)
        mode = st.selectbox("Carry-over", [m.value for m in CarryOverMode], index=1)
        length = st.number_input("Cycle length (days)", min_value=1, value=config.DEFAULT_CYCLE_LENGTH_DAYS, step=1)
        if st.form_submit_button("Save"):
            ledger.upsert_config(account_id, daily_base, mode, int(length))
            st.rerun()


def _render_today(ledger: BudgetLedger, account_id: str) -> None:
    today = ledger.get_today_budget(account_id)
    st.subheader(f"Today · {today.date.isoformat()}")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Available", format_currency(today.available))
    col2.metric("Allocated", format_currency(today.allocated), delta=format_currency(today.adjustment))
    col3.metric("Spent", format_currency(today.spent))
    col4.metric("Days left", today.remaining_days)
    st.caption(
        f"{STATUS_LABELS.get(today.status.value, today.status.value)} · "
        f"cycle {today.cycle_start.isoformat()} – {today.cycle_end.isoformat()} · "
        f"balance to date {escape_dollar_for_markdown(today.accumulated_to_date)}"
    )


def _render_expense_form(ledger: BudgetLedger, account_id: str) -> None:
    with st.form('add_expense', clear_on_submit=True):
        amount = st.number_input("Amount", min_value=0.0, step=1.0)
        spent_on = st.date_input("Date", value=ledger.clock())
        category = st.text_input("Category", value=config.DEFAULT_CATEGORY)
        description = st.text_input("Description")
        if st.form_submit_button("Add expense"):
            try:
                ledger.add_expense(account_id, amount, spent_on, category, description or None)
            except LedgerError as exc:
                st.error(str(exc))
            else:
                st.success("Expense added")


def _render_week(ledger: BudgetLedger, account_id: str) -> None:
    summary = ledger.get_week_summary(account_id)
    st.subheader("This cycle")
    col1, col2, col3 = st.columns(3)
    col1.metric("Budget", format_currency(summary.total_allocated))
    col2.metric("Spent", format_currency(summary.total_spent))
    col3.metric("Avg / day", format_currency(summary.average_daily_spent))
    st.plotly_chart(create_cycle_chart(summary.frame), use_container_width=True)
    st.plotly_chart(create_cumulative_balance_chart(summary.frame), use_container_width=True)


def main() -> None:
    config.configure_logging()
    st.set_page_config(page_title="Rolling Budget", page_icon="💸", layout="wide")
    st.title("💸 Rolling Budget")

    account_id = st.sidebar.text_input("Account", value=os.getenv("ROLLBUDGET_ACCOUNT", "household"))
    ledger = _get_ledger()
    try:
        _render_today(ledger, account_id)
    except NoConfig:
        _render_setup(ledger, account_id)
        return
    _render_expense_form(ledger, account_id)
    _render_week(ledger, account_id)


if __name__ == "__main__":
    main()
