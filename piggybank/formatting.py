"""Formatting utilities for currency and text display."""

from __future__ import annotations

from typing import Any, Union

import pandas as pd


def escape_dollar_for_markdown(amount: float) -> str:
    """Format a dollar amount and escape the dollar sign for markdown rendering.

    Streamlit markdown treats ``$`` as a LaTeX delimiter, so the sign is
    escaped.

    Example:
        >>> escape_dollar_for_markdown(1234.56)
        '\\$1,234.56'
    """
    return format_currency(amount).replace("$", "\\$")


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount.

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(-5, include_sign=False)
        '-5.00'
    """
    formatted = f"{abs(amount):,.2f}"
    prefix = "-" if amount < 0 else ""
    return f"{prefix}${formatted}" if include_sign else f"{prefix}{formatted}"


def format_timestamp(value: Any) -> tuple[str, str]:
    """Split a transaction date into ``(date, time)`` labels for the table."""
    if value is None or pd.isna(value):
        return "Invalid", "Date"
    ts = pd.Timestamp(value)
    return f"{ts.day} {ts.strftime('%b %Y')}", ts.strftime("%H:%M")
