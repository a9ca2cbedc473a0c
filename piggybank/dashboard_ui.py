"""Streamlit UI components for the piggybank dashboard.

:class:`DashboardUI` renders the sidebar, the first-run setup sheet and
the content of each tab.  Components receive already-loaded data and
write back through :mod:`piggybank.db` (database mode) or
:mod:`piggybank.sheet_client` (sheet mode).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import streamlit as st
from streamlit.errors import StreamlitAPIException

try:
    from . import db, notifications, sheet_client
    from .aggregation import (
        EXPENSE,
        PARSED_DATE,
        SORT_OPTIONS,
        TRANSACTION_TYPES,
        Balance,
        SpendingSummary,
        filter_to_window,
        sort_transactions,
    )
    from .date_ranges import RANGE_LABELS, RANGES, DateWindow, current_time
    from .entries import EntryValidationError, validate_entry
    from .formatting import escape_dollar_for_markdown, format_currency, format_timestamp
    from .insights import InsightsError, format_financial_data, get_spending_insights
    from .persistent_cache import SOURCE_MODES, SOURCE_SHEET
    from .reports import REPORT_PERIODS, category_report, report_window
    from .visualization import (
        budget_performance,
        create_budget_vs_actual_chart,
        create_category_pie_chart,
        create_report_bar_chart,
    )
except ImportError:  # pragma: no cover - fallback for direct execution
    import db
    import notifications
    import sheet_client
    from aggregation import (
        EXPENSE,
        PARSED_DATE,
        SORT_OPTIONS,
        TRANSACTION_TYPES,
        Balance,
        SpendingSummary,
        filter_to_window,
        sort_transactions,
    )
    from date_ranges import RANGE_LABELS, RANGES, DateWindow, current_time
    from entries import EntryValidationError, validate_entry
    from formatting import escape_dollar_for_markdown, format_currency, format_timestamp
    from insights import InsightsError, format_financial_data, get_spending_insights
    from persistent_cache import SOURCE_MODES, SOURCE_SHEET
    from reports import REPORT_PERIODS, category_report, report_window
    from visualization import (
        budget_performance,
        create_budget_vs_actual_chart,
        create_category_pie_chart,
        create_report_bar_chart,
    )

logger = logging.getLogger(__name__)

PAGE_SIZE = 10


def _option_index(options: List[str], value: Any) -> int:
    return options.index(value) if value in options else 0


def entry_form_defaults() -> Tuple[date, time]:
    """Date and minute for a new entry, in the configured time zone."""
    now = current_time()
    return now.date(), now.time().replace(second=0, microsecond=0)


class DashboardUI:
    """UI components for the piggybank dashboard."""
    _PAGE_CONFIGURED = False

    def setup_page_config(self) -> None:
        if DashboardUI._PAGE_CONFIGURED:
            return
        try:
            st.set_page_config(
                page_title="piggybank",
                page_icon="🐷",
                layout="wide",
                initial_sidebar_state="expanded",
            )
        except StreamlitAPIException:
            pass
        finally:
            DashboardUI._PAGE_CONFIGURED = True

    # ------------------------------------------------------------------
    # Sidebar and setup
    # ------------------------------------------------------------------

    def render_sidebar(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Render the sidebar controls and return the current selections."""
        st.sidebar.header("🐷 piggybank")

        user_id = st.sidebar.text_input(
            "User ID",
            value=defaults.get("user_id", ""),
            help="Transactions, budgets and devices are stored under this id.",
        ).strip()

        modes = list(SOURCE_MODES)
        source_mode = st.sidebar.radio(
            "Data source",
            options=modes,
            index=_option_index(modes, defaults.get("source_mode")),
        )
        sheet_url = defaults.get("sheet_url", "")
        if source_mode == SOURCE_SHEET:
            sheet_url = st.sidebar.text_input(
                "Apps Script URL",
                value=sheet_url,
                help="Web-app URL of the Google Apps Script attached to your sheet.",
            ).strip()
            if st.sidebar.button("🔄 Refresh sheet data"):
                sheet_client.clear_cache(sheet_url or None)
                st.rerun()

        st.sidebar.subheader("📅 Date Range")
        ranges = list(RANGES)
        date_range = st.sidebar.selectbox(
            "Range",
            options=ranges,
            index=_option_index(ranges, defaults.get("date_range")),
            format_func=lambda key: RANGE_LABELS[key],
        )

        sort_keys = list(SORT_OPTIONS)
        sort_option = st.sidebar.selectbox(
            "Sort transactions by",
            options=sort_keys,
            index=_option_index(sort_keys, defaults.get("sort_option")),
            format_func=lambda key: SORT_OPTIONS[key],
        )

        return {
            "user_id": user_id,
            "source_mode": source_mode,
            "sheet_url": sheet_url,
            "date_range": date_range,
            "sort_option": sort_option,
        }

    def render_setup_sheet(self, user_id: str) -> None:
        """First-run form: creates the profile with the default categories."""
        st.title("Welcome to piggybank")
        st.markdown("Let's get you set up. Tell us your name to create your profile.")
        with st.form("setup_profile"):
            name = st.text_input("Your Name", placeholder="e.g., David")
            submitted = st.form_submit_button("Get Started")
        if submitted:
            if not name.strip():
                st.error("Please enter your name.")
                return
            db.create_profile(user_id, name)
            st.success("Profile created.")
            st.rerun()

    def render_header(self, profile: Dict[str, Any], description: str) -> None:
        col1, col2 = st.columns([3, 1])
        with col1:
            st.title(f"Hi, {profile.get('name') or 'there'} 👋")
        with col2:
            st.caption(description)

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    def render_balance_card(self, status: Balance, range_key: str) -> None:
        st.subheader("Balance")
        st.caption(f"Your spending vs. budget for {RANGE_LABELS[range_key].lower()}.")
        col1, col2 = st.columns([2, 1])
        with col1:
            st.markdown(f"## {escape_dollar_for_markdown(status.remaining)}")
        with col2:
            st.markdown(f"of {escape_dollar_for_markdown(status.budget)}")
        st.progress(min(max(status.percent_spent, 0.0), 100.0) / 100.0)
        if status.percent_spent > 100:
            st.error(f"Spent {format_currency(status.spent)} ({status.percent_spent:.0f}% of budget)")
        else:
            st.caption(f"Spent {format_currency(status.spent)}")

    def render_spending_chart(self, summary: SpendingSummary) -> None:
        st.subheader("Spending by Category")
        if summary.breakdown.empty:
            st.info("No expenses in this period.")
            return
        col1, col2 = st.columns([2, 1])
        with col1:
            st.plotly_chart(create_category_pie_chart(summary.breakdown), width="stretch")
        with col2:
            st.metric("Total spent", format_currency(summary.total))
            for category, amount in summary.breakdown.items():
                st.markdown(f"• **{category}**: {escape_dollar_for_markdown(amount)}")

    def render_transactions_table(
        self,
        transactions: pd.DataFrame,
        user_id: str,
        sort_option: str,
        allow_delete: bool,
    ) -> None:
        """Paged transaction list; rows can be deleted in database mode."""
        st.subheader("Transactions")
        if transactions.empty:
            st.info("No transactions in this period.")
            return

        ordered = sort_transactions(transactions, sort_option).reset_index(drop=True)
        pages = max(1, -(-len(ordered) // PAGE_SIZE))
        page = st.session_state.get("transactions_page", 0)
        page = min(page, pages - 1)
        chunk = ordered.iloc[page * PAGE_SIZE:(page + 1) * PAGE_SIZE]

        for _, row in chunk.iterrows():
            day_label, time_label = format_timestamp(row[PARSED_DATE])
            sign = -1 if row["Type"].lower() == EXPENSE.lower() else 1
            cols = st.columns([2, 3, 2, 2, 1])
            cols[0].markdown(f"{day_label}  \n{time_label}")
            cols[1].markdown(row["Notes"] or "-")
            cols[2].markdown(row["Category"])
            cols[3].markdown(escape_dollar_for_markdown(sign * row["Amount"]))
            if allow_delete and cols[4].button("🗑️", key=f"delete_{row['id']}", help="Delete transaction"):
                st.session_state["pending_delete"] = row["id"]

        pending = st.session_state.get("pending_delete")
        if pending is not None:
            st.warning("Delete this transaction? This cannot be undone.")
            confirm, cancel = st.columns(2)
            if confirm.button("Delete", key="confirm_delete"):
                if db.delete_transaction(user_id, pending):
                    logger.info("Deleted transaction %s for user %s", pending, user_id)
                    st.success("Transaction deleted.")
                else:
                    st.error("Transaction not found.")
                st.session_state["pending_delete"] = None
                st.rerun()
            if cancel.button("Cancel", key="cancel_delete"):
                st.session_state["pending_delete"] = None
                st.rerun()

        if pages > 1:
            prev_col, label_col, next_col = st.columns([1, 2, 1])
            if prev_col.button("← Previous", disabled=page == 0):
                st.session_state["transactions_page"] = page - 1
                st.rerun()
            label_col.caption(f"Page {page + 1} of {pages}")
            if next_col.button("Next →", disabled=page >= pages - 1):
                st.session_state["transactions_page"] = page + 1
                st.rerun()

    # ------------------------------------------------------------------
    # Add transaction
    # ------------------------------------------------------------------

    def render_add_transaction_form(self, selections: Dict[str, Any], categories: List[str]) -> None:
        st.subheader("➕ Add Transaction")
        if not categories:
            st.info("Add a category on the Budget tab first.")
            return
        with st.form("add_transaction", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
                notes = st.text_input("Notes", placeholder="e.g., Coffee")
                category = st.selectbox("Category", options=categories)
            with col2:
                txn_type = st.selectbox("Type", options=list(TRANSACTION_TYPES))
                default_day, default_time = entry_form_defaults()
                day = st.date_input("Date", value=default_day)
                entry_time = st.time_input("Time", value=default_time)
            submitted = st.form_submit_button("Save")

        if not submitted:
            return
        try:
            entry = validate_entry({
                "Amount": amount,
                "Notes": notes,
                "Category": category,
                "Type": txn_type,
                "Date": datetime.combine(day, entry_time),
            })
        except EntryValidationError as exc:
            st.error(str(exc))
            return

        if selections["source_mode"] == SOURCE_SHEET:
            try:
                sheet_client.append_entry(selections["sheet_url"], selections["user_id"], {"data": entry})
            except sheet_client.SheetError as exc:
                st.error(exc.message)
                if exc.details:
                    st.caption(exc.details)
                return
        else:
            db.add_transaction(selections["user_id"], entry)
            notifications.notify_new_transaction(selections["user_id"], entry)
        st.success("New transaction added.")

    # ------------------------------------------------------------------
    # Budget
    # ------------------------------------------------------------------

    def render_budget_page(
        self,
        user_id: str,
        profile: Dict[str, Any],
        budgets: pd.DataFrame,
        summary: SpendingSummary,
        scale: float,
        editable: bool,
    ) -> None:
        st.subheader("📋 Budget")
        performance = budget_performance(summary.breakdown, budgets, scale)
        st.plotly_chart(create_budget_vs_actual_chart(performance), width="stretch")
        if not performance.empty:
            st.dataframe(
                performance.style.format({"Budget": "${:,.2f}", "Actual": "${:,.2f}"}),
                width="stretch",
                hide_index=True,
            )

        if not editable:
            st.info("Budgets are read from your Google Sheet in this mode.")
            return

        with st.form("income_savings"):
            col1, col2 = st.columns(2)
            income = col1.number_input("Monthly income", min_value=0.0, value=float(profile["income"]), step=50.0)
            savings = col2.number_input("Monthly savings goal", min_value=0.0, value=float(profile["savings"]), step=50.0)
            st.caption(f"Available to spend: {format_currency(income - savings)}")
            if st.form_submit_button("Save income"):
                db.update_profile(user_id, income=income, savings=savings)
                st.success("Income updated.")

        st.markdown("**Monthly budget per category**")
        current = dict(zip(budgets["Category"], budgets["MonthlyBudget"])) if not budgets.empty else {}
        with st.form("category_budgets"):
            values = {
                category: st.number_input(
                    category,
                    min_value=0.0,
                    value=float(current.get(category, 0.0)),
                    step=10.0,
                    key=f"budget_{category}",
                )
                for category in profile["categories"]
            }
            if st.form_submit_button("Save budgets"):
                for category, amount in values.items():
                    db.upsert_budget(user_id, category, amount)
                st.success("Budgets saved.")
                st.rerun()

        col1, col2 = st.columns(2)
        with col1:
            new_category = st.text_input("New category", placeholder="New Category Name")
            if st.button("Add category"):
                if db.add_category(user_id, new_category):
                    st.rerun()
                else:
                    st.warning("Category is empty or already exists.")
        with col2:
            if profile["categories"]:
                doomed = st.selectbox("Remove category", options=profile["categories"])
                if st.button("Remove category"):
                    db.remove_category(user_id, doomed)
                    st.rerun()

    # ------------------------------------------------------------------
    # Reports and AI analysis
    # ------------------------------------------------------------------

    def render_reports(self, transactions: pd.DataFrame, categories: Optional[List[str]]) -> None:
        st.subheader("📈 Reports")
        periods = list(REPORT_PERIODS)
        period = st.selectbox("Period", options=periods, format_func=lambda key: REPORT_PERIODS[key])
        start = end = None
        if period == "custom":
            col1, col2 = st.columns(2)
            start = col1.date_input("From", key="report_start")
            end = col2.date_input("To", key="report_end")
        window = report_window(period, start=start, end=end)
        report = category_report(transactions, window, categories)
        if report.empty:
            st.info("No expenses in this period.")
            return
        st.plotly_chart(create_report_bar_chart(report), width="stretch")
        st.dataframe(
            report.style.format({"Amount": "${:,.2f}"}),
            width="stretch",
            hide_index=True,
        )
        st.metric("Total", format_currency(float(report["Amount"].sum())))

    def render_ai_analysis(self, transactions: pd.DataFrame, window: DateWindow) -> None:
        st.subheader("🤖 AI Analysis")
        st.caption("Insights and savings recommendations for the selected range.")
        in_window = filter_to_window(transactions, window)
        if in_window.empty:
            st.info("No transactions to analyse in this period.")
            return
        if not st.button("Generate insights"):
            return
        with st.spinner("Analysing your spending..."):
            try:
                result = get_spending_insights(format_financial_data(in_window))
            except InsightsError as exc:
                st.error(str(exc))
                return
        st.markdown("**Insights**")
        for line in result.insights:
            st.markdown(f"- {line}")
        st.markdown("**Recommendations**")
        for line in result.recommendations:
            st.markdown(f"- {line}")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def render_settings(self, user_id: str, profile: Dict[str, Any]) -> None:
        st.subheader("⚙️ Settings")
        with st.form("profile_settings"):
            name = st.text_input("Your Name", value=profile.get("name") or "", placeholder="e.g., David")
            notify_key = st.text_input(
                "Notification key",
                value=profile.get("notify_key") or "",
                help="Topic on the key-based push service that receives new-transaction alerts.",
            )
            if st.form_submit_button("Save settings"):
                if not name.strip():
                    st.error("Please enter your name.")
                else:
                    db.update_profile(user_id, name=name.strip(), notify_key=notify_key.strip() or None)
                    st.success("Settings saved.")

        st.markdown("**Devices**")
        tokens = db.fetch_device_tokens(user_id)
        st.caption(f"{len(tokens)} registered device(s).")
        token = st.text_input("FCM registration token")
        if st.button("Register device"):
            if token.strip():
                db.save_device_token(user_id, token.strip())
                st.success("Device registered.")
            else:
                st.warning("Paste a registration token first.")

        if st.button("Send test notification"):
            result = notifications.send_push_notification(user_id, "Test notification from piggybank")
            if result.success_count:
                st.success(f"Sent to {result.success_count} destination(s).")
            for error in result.errors:
                st.warning(error)
