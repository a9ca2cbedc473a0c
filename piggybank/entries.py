"""Validation of new transaction entries (form and HTTP)."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional

import pandas as pd

try:
    from .aggregation import TRANSACTION_TYPES
    from .date_ranges import to_utc_iso
except ImportError:  # pragma: no cover - fallback for direct execution
    from aggregation import TRANSACTION_TYPES
    from date_ranges import to_utc_iso

REQUIRED_FIELDS = ("Amount", "Category", "Notes", "Type")


class EntryValidationError(ValueError):
    """Raised with a user-facing message when an entry is rejected."""


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return value == 0


def validate_entry(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Check a new entry and return it normalised.

    The returned dict has a float ``Amount``, stripped text fields and
    ``Date`` as a UTC ISO string (now when the entry carries no date).
    """
    data = data or {}
    if any(_is_blank(data.get(field)) for field in REQUIRED_FIELDS):
        raise EntryValidationError(
            "Incomplete transaction data provided. Required fields: Amount, Category, Notes, Type."
        )

    category = data["Category"]
    if not isinstance(category, str):
        raise EntryValidationError("Category must be a string.")

    raw_amount = data["Amount"]
    if isinstance(raw_amount, bool):
        raise EntryValidationError("Amount must be a valid number.")
    try:
        amount = float(raw_amount)
    except (TypeError, ValueError):
        raise EntryValidationError("Amount must be a valid number.")
    if math.isnan(amount) or math.isinf(amount):
        raise EntryValidationError("Amount must be a valid number.")
    if amount <= 0:
        raise EntryValidationError("Amount must be positive.")

    txn_type = str(data["Type"]).strip()
    if txn_type not in TRANSACTION_TYPES:
        raise EntryValidationError("Type must be either Expense or Income.")

    raw_date = data.get("Date")
    if _is_blank(raw_date):
        date_iso = pd.Timestamp.now(tz="UTC").isoformat()
    else:
        date_iso = to_utc_iso(raw_date)
        if date_iso is None:
            raise EntryValidationError("Date must be a valid date.")

    return {
        "Date": date_iso,
        "Amount": amount,
        "Type": txn_type,
        "Category": category.strip(),
        "Notes": str(data["Notes"]).strip(),
    }
