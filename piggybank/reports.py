"""Spending reports over fixed or custom periods."""

from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

import pandas as pd

try:
    from .aggregation import Records, expense_rows, filter_to_window
    from .date_ranges import DateWindow, current_time
except ImportError:  # pragma: no cover - fallback for direct execution
    from aggregation import Records, expense_rows, filter_to_window
    from date_ranges import DateWindow, current_time

REPORT_PERIODS = {
    "last7": "Last 7 days",
    "last30": "Last 30 days",
    "custom": "Custom range",
}


def report_window(
    period: str,
    now: Optional[pd.Timestamp] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> DateWindow:
    """Resolve a report period; ``custom`` takes inclusive calendar dates."""
    if period == "custom":
        if start is None or end is None:
            raise ValueError("A custom report needs both a start and an end date.")
        first = pd.Timestamp(start).normalize()
        last = pd.Timestamp(end).normalize()
        if last < first:
            first, last = last, first
        return DateWindow(first, last + pd.Timedelta(days=1))

    days = {"last7": 7, "last30": 30}.get(period)
    if days is None:
        raise ValueError(f"Unknown report period '{period}'.")
    now = pd.Timestamp(now) if now is not None else current_time()
    tomorrow = now.normalize() + pd.Timedelta(days=1)
    return DateWindow(tomorrow - pd.Timedelta(days=days), tomorrow)


def category_report(
    transactions: Records,
    window: DateWindow,
    categories: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Expense amount and count per category inside ``window``.

    Only ``categories`` are reported when given (the profile's list);
    categories without transactions are dropped.  Rows are sorted by
    amount, largest first.
    """
    expenses = expense_rows(filter_to_window(transactions, window))
    grouped = expenses.groupby("Category")["Amount"].agg(["sum", "count"])
    report = grouped.rename(columns={"sum": "Amount", "count": "Count"}).reset_index()

    if categories is not None:
        report = report[report["Category"].isin(list(categories))]
    report = report[report["Count"] > 0]
    report = report.sort_values("Amount", ascending=False, kind="mergesort").reset_index(drop=True)
    report["Amount"] = report["Amount"].astype(float)
    report["Count"] = report["Count"].astype(int)
    return report[["Category", "Amount", "Count"]]
