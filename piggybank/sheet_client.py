"""Client for the Google Apps Script endpoint that fronts the user's sheet.

The script answers ``GET`` with ``{"transactions": [...], "budgets": [...]}``
(or only the budget rows when called with ``?budget=1``) and appends a
row on ``POST``.  Fetched data is kept in a small in-memory cache per URL
for ``SHEET_CACHE_TTL`` seconds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
import requests

try:
    from .config import HTTP_TIMEOUT, SHEET_CACHE_TTL
    from .date_ranges import to_utc_iso
except ImportError:  # pragma: no cover - fallback for direct execution
    from config import HTTP_TIMEOUT, SHEET_CACHE_TTL
    from date_ranges import to_utc_iso

logger = logging.getLogger(__name__)


class SheetError(RuntimeError):
    """Apps Script request failed; ``details`` carries the diagnostic text."""

    def __init__(self, message: str, details: Optional[str] = None, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.details = details
        self.status_code = status_code


@dataclass
class SheetData:
    transactions: List[Dict[str, Any]] = field(default_factory=list)
    budgets: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"transactions": self.transactions, "budgets": self.budgets}


_CACHE: Dict[str, Tuple[float, SheetData]] = {}


def clear_cache(url: Optional[str] = None) -> None:
    if url is None:
        _CACHE.clear()
    else:
        _CACHE.pop(url, None)


def _parse_amount(value: Any) -> float:
    """Convert sheet amount cells (numbers, ``"$1,234.50"``, blanks) into floats."""
    if not isinstance(value, (int, float, str)) or (isinstance(value, str) and not value.strip()):
        return 0.0
    if isinstance(value, str):
        value = value.strip().replace("$", "").replace(",", "")
    number = pd.to_numeric([value], errors="coerce")[0]
    if pd.isna(number):
        return 0.0
    return float(number)


def _text(value: Any, default: str = "") -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return default
    text = str(value)
    return text if text else default


def normalize_transaction_row(row: Mapping[str, Any], index: int) -> Dict[str, Any]:
    date_iso = to_utc_iso(row.get("Date"))
    return {
        "id": f"tx-{index}-{date_iso if date_iso is not None else 'null'}-{row.get('Amount')}",
        "Date": date_iso,
        "Amount": _parse_amount(row.get("Amount")),
        "Type": _text(row.get("Type")),
        "Category": _text(row.get("Category"), "Uncategorized"),
        "Notes": _text(row.get("Notes")),
    }


def normalize_budget_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "Category": _text(row.get("Category")),
        "MonthlyBudget": _parse_amount(row.get("Budget")),
    }


def _get_json(url: str, params: Optional[Dict[str, str]] = None) -> Any:
    try:
        response = requests.get(
            url,
            params=params,
            headers={"Cache-Control": "no-store"},
            timeout=HTTP_TIMEOUT,
        )
    except requests.RequestException as exc:
        logger.error("Google Apps Script request failed: %s", exc)
        raise SheetError("Failed to fetch data from Google Sheet.", str(exc)) from exc

    if not response.ok:
        logger.error("Google Apps Script Error: %s", response.text)
        raise SheetError(
            "Failed to fetch data from Google Sheet.",
            f"Failed to fetch sheet data: {response.reason} - {response.text}",
        )
    try:
        return response.json()
    except ValueError as exc:
        logger.error("Google Apps Script returned non-JSON data")
        raise SheetError(
            "Failed to fetch data from Google Sheet.",
            "The Google Apps Script did not return a valid JSON response.",
        ) from exc


def fetch_sheet_data(url: str, use_cache: bool = True) -> SheetData:
    """Fetch and normalise transactions and budgets from the sheet."""
    if use_cache:
        cached = _CACHE.get(url)
        if cached is not None and time.monotonic() - cached[0] < SHEET_CACHE_TTL:
            return cached[1]

    payload = _get_json(url)
    transactions = payload.get("transactions") if isinstance(payload, dict) else None
    budgets = payload.get("budgets") if isinstance(payload, dict) else None
    if not isinstance(transactions, list) or not isinstance(budgets, list):
        logger.error("Invalid data structure from Google Sheet")
        raise SheetError("Failed to fetch data from Google Sheet.", "Invalid data structure from Google Sheet.")

    data = SheetData(
        transactions=[normalize_transaction_row(row, i) for i, row in enumerate(transactions) if isinstance(row, dict)],
        budgets=[normalize_budget_row(row) for row in budgets if isinstance(row, dict)],
    )
    now = time.monotonic()
    for stale in [key for key, (stored_at, _) in _CACHE.items() if now - stored_at >= SHEET_CACHE_TTL]:
        del _CACHE[stale]
    _CACHE[url] = (now, data)
    logger.info("Fetched %d transactions and %d budgets from sheet", len(data.transactions), len(data.budgets))
    return data


def fetch_budget_data(url: str) -> List[Dict[str, Any]]:
    """Fetch only the budget rows (``?budget=1``)."""
    payload = _get_json(url, params={"budget": "1"})
    if not isinstance(payload, list):
        raise SheetError("Failed to fetch budget data", "Budget data is not in the expected array format.")
    return [normalize_budget_row(row) for row in payload if isinstance(row, dict)]


def append_entry(url: str, user_id: Optional[str], entry: Mapping[str, Any]) -> Any:
    """Forward a new entry to the script, tagging its data with ``userId``.

    Redirects are not followed: the script answers a redirect when the
    deployment is not accessible, which is reported as a failure.
    """
    body = {key: value for key, value in entry.items() if key != "data"}
    data = entry.get("data")
    body["data"] = {**(data if isinstance(data, dict) else {}), "userId": user_id}

    try:
        response = requests.post(url, json=body, allow_redirects=False, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        logger.error("Failed to add entry via Google Sheet: %s", exc)
        raise SheetError("Failed to add entry to Google Sheet.", str(exc)) from exc

    if response.is_redirect or response.status_code >= 300:
        details = (
            f"Request to Google Apps Script failed with status: {response.status_code}. "
            "This might be due to an incorrect URL or an issue with the script itself."
        )
        body_text = response.text or ""
        if body_text.strip().lower().startswith("<!doctype html>"):
            details += (
                " The script returned an HTML page instead of JSON, which usually indicates "
                "a login or permission issue on the Google side."
            )
        elif body_text:
            details += f" Response: {body_text}"
        logger.error("Google Apps Script Error: %s", details)
        raise SheetError("Google Apps Script failed.", details, status_code=502)

    if "application/json" not in response.headers.get("content-type", ""):
        details = "The Google Apps Script did not return a valid JSON response."
        logger.error("Google Apps Script Error: %s", details)
        raise SheetError("Invalid response from Google Apps Script.", details, status_code=502)

    try:
        result = response.json()
    except ValueError as exc:
        raise SheetError(
            "Invalid response from Google Apps Script.",
            "The Google Apps Script did not return a valid JSON response.",
            status_code=502,
        ) from exc

    clear_cache(url)
    return result
