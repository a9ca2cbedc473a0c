"""Transaction aggregation and budget scaling.

The functions in this module are pure: they take transaction records
(a DataFrame or a list of dicts using the ``id``/``Date``/``Amount``/
``Type``/``Category``/``Notes`` columns) and a resolved
:class:`~piggybank.date_ranges.DateWindow` and return new objects
without touching any store.  They back both the dashboard and the
``/api/summary`` route.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Union

import pandas as pd

try:
    from .config import MONTH_WINDOW_DAYS
    from .date_ranges import RANGES, DateWindow, parse_dates
except ImportError:  # pragma: no cover - fallback for direct execution
    from config import MONTH_WINDOW_DAYS
    from date_ranges import RANGES, DateWindow, parse_dates

TRANSACTION_COLUMNS = ["id", "Date", "Amount", "Type", "Category", "Notes"]
PARSED_DATE = "Parsed Date"
EXPENSE = "Expense"
INCOME = "Income"
TRANSACTION_TYPES = (EXPENSE, INCOME)

SORT_OPTIONS = {
    "latest": "Latest",
    "highest": "Highest amount",
    "category": "Category",
}

Records = Union[pd.DataFrame, Iterable[Dict[str, Any]], None]


@dataclass
class SpendingSummary:
    total: float
    breakdown: pd.Series
    count: int = 0

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {"category": str(category), "amount": float(amount)}
            for category, amount in self.breakdown.items()
        ]


@dataclass
class Balance:
    budget: float
    spent: float
    remaining: float
    percent_spent: float


def to_frame(records: Records) -> pd.DataFrame:
    """Normalise transaction records into the canonical DataFrame layout.

    Adds a ``Parsed Date`` column (``NaT`` for unparseable dates), coerces
    ``Amount`` to float and fills missing text columns.
    """
    if isinstance(records, pd.DataFrame):
        frame = records.copy()
    else:
        frame = pd.DataFrame(list(records or []))

    for column in TRANSACTION_COLUMNS:
        if column not in frame.columns:
            frame[column] = None

    frame["Amount"] = pd.to_numeric(frame["Amount"], errors="coerce").fillna(0.0).astype(float)
    frame["Type"] = frame["Type"].fillna("").astype(str).str.strip()
    frame["Category"] = frame["Category"].fillna("Uncategorized").astype(str)
    frame["Notes"] = frame["Notes"].fillna("").astype(str)
    frame[PARSED_DATE] = parse_dates(frame["Date"])
    return frame


def filter_to_window(records: Records, window: DateWindow) -> pd.DataFrame:
    """Return the transactions inside ``window``.

    An unbounded window keeps every row, including rows whose date
    could not be parsed.
    """
    frame = records if isinstance(records, pd.DataFrame) and PARSED_DATE in records.columns else to_frame(records)
    return frame[window.contains(frame[PARSED_DATE])]


def expense_rows(frame: pd.DataFrame) -> pd.DataFrame:
    return frame[frame["Type"].str.lower() == EXPENSE.lower()]


def summarize_spending(records: Records, window: DateWindow) -> SpendingSummary:
    """Total spend and per-category breakdown of Expense rows inside ``window``.

    The breakdown is sorted by amount, largest first; ties keep
    alphabetical order.  ``total`` is computed from the breakdown so the
    two always agree.
    """
    expenses = expense_rows(filter_to_window(records, window))
    breakdown = (
        expenses.groupby("Category")["Amount"].sum()
        .sort_values(ascending=False, kind="mergesort")
        .astype(float)
    )
    breakdown.name = "Amount"
    breakdown.index.name = "Category"
    return SpendingSummary(total=float(breakdown.sum()), breakdown=breakdown, count=len(expenses))


def total_monthly_budget(budgets: Records) -> float:
    """Sum of per-category monthly budgets."""
    if isinstance(budgets, pd.DataFrame):
        frame = budgets
    else:
        frame = pd.DataFrame(list(budgets or []))
    if frame.empty or "MonthlyBudget" not in frame.columns:
        return 0.0
    return float(pd.to_numeric(frame["MonthlyBudget"], errors="coerce").fillna(0.0).sum())


def months_spanned(earliest: pd.Timestamp, latest: pd.Timestamp) -> int:
    """Number of calendar months touched by ``[earliest, latest]``, inclusive."""
    return (latest.year - earliest.year) * 12 + (latest.month - earliest.month) + 1


def scale_budget(
    monthly_budget: float,
    range_key: str,
    transactions: Records = None,
    month_window_days: int = MONTH_WINDOW_DAYS,
) -> float:
    """Scale a monthly budget figure to the length of ``range_key``.

    ``all`` multiplies by the number of calendar months spanned by the
    earliest and latest valid transaction dates and falls back to the
    raw monthly figure when there are none.
    """
    if range_key not in RANGES:
        raise ValueError(f"Unknown date range '{range_key}'.")
    monthly_budget = float(monthly_budget or 0.0)

    if range_key == "daily":
        return monthly_budget / month_window_days
    if range_key == "week":
        return monthly_budget * 7 / month_window_days
    if range_key == "month":
        return monthly_budget
    if range_key == "yearly":
        return monthly_budget * 12

    if transactions is None:
        return monthly_budget
    dates = to_frame(transactions)[PARSED_DATE].dropna()
    if dates.empty:
        return monthly_budget
    return monthly_budget * months_spanned(dates.min(), dates.max())


def balance(budget: float, spent: float) -> Balance:
    percent = (spent / budget * 100.0) if budget > 0 else 0.0
    return Balance(budget=budget, spent=spent, remaining=budget - spent, percent_spent=percent)


def sort_transactions(frame: pd.DataFrame, option: str = "latest") -> pd.DataFrame:
    """Order transactions for the table: newest, largest or by category."""
    if frame.empty:
        return frame
    if option == "highest":
        return frame.sort_values("Amount", ascending=False, kind="mergesort")
    if option == "category":
        return frame.sort_values("Category", key=lambda s: s.str.lower(), kind="mergesort")
    if PARSED_DATE not in frame.columns:
        frame = to_frame(frame)
    return frame.sort_values(PARSED_DATE, ascending=False, na_position="last", kind="mergesort")
