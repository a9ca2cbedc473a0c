"""Streamlit app for piggybank.

Ties the sidebar selections to the data source (the local database or
the user's Google Sheet), resolves the selected date range and renders
the dashboard tabs.  To run it::

    streamlit run piggybank/dashboard.py
"""

from __future__ import annotations

import os
import sys
from typing import Any, Dict, Tuple

import pandas as pd
import streamlit as st

# Support both ``streamlit run piggybank/dashboard.py`` and package imports.
if __package__:
    from . import db
    from . import sheet_client
    from .aggregation import filter_to_window, scale_budget, summarize_spending, to_frame, total_monthly_budget
    from .aggregation import balance as compute_balance
    from .config import ensure_data_directories
    from .dashboard_ui import DashboardUI
    from .date_ranges import describe_window, resolve_range
    from .logger import setup_logger
    from .persistent_cache import SOURCE_SHEET, load_cache, save_cache
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from piggybank import db  # type: ignore
    from piggybank import sheet_client  # type: ignore
    from piggybank.aggregation import filter_to_window, scale_budget, summarize_spending, to_frame, total_monthly_budget  # type: ignore
    from piggybank.aggregation import balance as compute_balance  # type: ignore
    from piggybank.config import ensure_data_directories  # type: ignore
    from piggybank.dashboard_ui import DashboardUI  # type: ignore
    from piggybank.date_ranges import describe_window, resolve_range  # type: ignore
    from piggybank.logger import setup_logger  # type: ignore
    from piggybank.persistent_cache import SOURCE_SHEET, load_cache, save_cache  # type: ignore

logger = setup_logger(__name__)


def load_records(selections: Dict[str, Any]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Transactions and budgets for the current selections.

    Raises :class:`sheet_client.SheetError` when the sheet cannot be read.
    """
    if selections["source_mode"] == SOURCE_SHEET:
        data = sheet_client.fetch_sheet_data(selections["sheet_url"])
        budgets = pd.DataFrame(data.budgets, columns=["Category", "MonthlyBudget"])
        return to_frame(data.transactions), budgets
    user_id = selections["user_id"]
    return to_frame(db.fetch_transactions(user_id)), db.fetch_budgets(user_id)


def main() -> None:
    ui = DashboardUI()
    ui.setup_page_config()
    ensure_data_directories()
    db.init_db()

    cache = load_cache()
    selections = ui.render_sidebar(cache)
    if selections != {k: cache.get(k) for k in selections}:
        save_cache(selections)

    user_id = selections["user_id"]
    if not user_id:
        st.title("🐷 piggybank")
        st.info("Enter your user ID in the sidebar to get started.")
        return

    profile = db.get_profile(user_id)
    if profile is None:
        ui.render_setup_sheet(user_id)
        return

    sheet_mode = selections["source_mode"] == SOURCE_SHEET
    if sheet_mode and not selections["sheet_url"]:
        st.warning("Enter the Apps Script URL in the sidebar to load your sheet.")
        return

    try:
        transactions, budgets = load_records(selections)
    except sheet_client.SheetError as exc:
        st.error(exc.message)
        if exc.details:
            st.caption(exc.details)
        return
    logger.debug("Loaded %d transactions for user %s", len(transactions), user_id)

    range_key = selections["date_range"]
    window = resolve_range(range_key)
    in_window = filter_to_window(transactions, window)
    summary = summarize_spending(transactions, window)
    monthly_budget = total_monthly_budget(budgets)
    scaled_budget = scale_budget(monthly_budget, range_key, transactions)
    status = compute_balance(scaled_budget, summary.total)
    # per-category budgets on the Budget tab use the same factor as the total
    scale = scale_budget(1.0, range_key, transactions)

    ui.render_header(profile, describe_window(range_key, window, transactions["Date"]))
    overview, add, budget, reports, analysis, settings = st.tabs(
        ["📊 Overview", "➕ Add Transaction", "📋 Budget", "📈 Reports", "🤖 AI Analysis", "⚙️ Settings"]
    )
    with overview:
        ui.render_balance_card(status, range_key)
        ui.render_spending_chart(summary)
        ui.render_transactions_table(in_window, user_id, selections["sort_option"], allow_delete=not sheet_mode)
    with add:
        ui.render_add_transaction_form(selections, profile["categories"])
    with budget:
        ui.render_budget_page(user_id, profile, budgets, summary, scale, editable=not sheet_mode)
    with reports:
        ui.render_reports(transactions, None if sheet_mode else profile["categories"])
    with analysis:
        ui.render_ai_analysis(transactions, window)
    with settings:
        ui.render_settings(user_id, profile)


if __name__ == "__main__":  # pragma: no cover
    main()
