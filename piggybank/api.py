"""HTTP API for piggybank.

Serves the Apps Script proxy routes used by the dashboard, the
``/api/transactions`` endpoint used by external clients (shortcuts,
scripts) and push subscription management.  Run it with::

    python -m piggybank.api
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple

import pandas as pd
import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

try:
    from . import db, notifications, sheet_client
    from .aggregation import Records, balance, filter_to_window, scale_budget, summarize_spending, to_frame, total_monthly_budget
    from .config import API_HOST, API_PORT
    from .date_ranges import RANGE_LABELS, RANGES, describe_window, resolve_range
    from .entries import EntryValidationError, validate_entry
    from .insights import InsightsError, format_financial_data, get_spending_insights
    from .logger import setup_logger
    from .push_subscriptions import normalize_subscription_payload
except ImportError:  # pragma: no cover - fallback for direct execution
    import db
    import notifications
    import sheet_client
    from aggregation import Records, balance, filter_to_window, scale_budget, summarize_spending, to_frame, total_monthly_budget
    from config import API_HOST, API_PORT
    from date_ranges import RANGE_LABELS, RANGES, describe_window, resolve_range
    from entries import EntryValidationError, validate_entry
    from insights import InsightsError, format_financial_data, get_spending_insights
    from logger import setup_logger
    from push_subscriptions import normalize_subscription_payload

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logger()
    db.init_db()
    yield


app = FastAPI(title="piggybank API", version="0.1.0", lifespan=lifespan)


class AddEntryRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    googleSheetUrl: Optional[str] = None
    userId: Optional[str] = None


class TransactionRequest(BaseModel):
    userId: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class PushSubscriptionRequest(BaseModel):
    userId: Optional[str] = None
    subscription: Optional[Any] = None
    oldEndpoint: Optional[str] = None


class RemoveSubscriptionRequest(BaseModel):
    userId: Optional[str] = None
    endpoint: Optional[str] = None


class DeviceTokenRequest(BaseModel):
    userId: Optional[str] = None
    token: Optional[str] = None


class PushNotificationRequest(BaseModel):
    userId: Optional[str] = None
    message: Optional[str] = None


class InsightsRequest(BaseModel):
    userId: Optional[str] = None
    range: str = "month"
    url: Optional[str] = None


def _error(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    body: Dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def _blank(value: Optional[str]) -> bool:
    return not isinstance(value, str) or not value.strip()


def _load_records(user_id: str, url: Optional[str]) -> Tuple[Records, Records]:
    """Transactions and budgets from the sheet when ``url`` is given, else the store."""
    if url:
        data = sheet_client.fetch_sheet_data(url)
        return data.transactions, data.budgets
    return db.fetch_transactions(user_id), db.fetch_budgets(user_id)


def _iso(value: Optional[pd.Timestamp]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/sheet")
def get_sheet(url: Optional[str] = Query(None)):
    if not url:
        return _error(400, "Google Sheet URL is required.")
    try:
        data = sheet_client.fetch_sheet_data(url)
    except sheet_client.SheetError as exc:
        return _error(exc.status_code, exc.message, exc.details)
    return data.to_dict()


@app.get("/api/budgets")
def get_budgets(url: Optional[str] = Query(None)):
    if not url:
        return _error(400, "Google Sheet URL is required.")
    try:
        budgets = sheet_client.fetch_budget_data(url)
    except sheet_client.SheetError as exc:
        return _error(exc.status_code, exc.message, exc.details)
    return {"budgets": budgets}


@app.post("/api/add-entry")
def add_entry(req: AddEntryRequest):
    if _blank(req.googleSheetUrl):
        return _error(400, "Google Sheet URL is not configured.")
    entry = req.model_dump(exclude={"googleSheetUrl", "userId"})
    try:
        result = sheet_client.append_entry(req.googleSheetUrl, req.userId, entry)
    except sheet_client.SheetError as exc:
        return _error(exc.status_code, exc.message, exc.details)
    return {"success": True, "data": result}


@app.post("/api/transactions")
def create_transaction(req: TransactionRequest):
    if _blank(req.userId):
        return _error(400, "User ID is required.")
    try:
        entry = validate_entry(req.data)
    except EntryValidationError as exc:
        return _error(400, str(exc))

    try:
        transaction_id = db.add_transaction(req.userId, entry, source="api")
    except sqlite3.Error as exc:
        logger.error("Failed to add transaction: %s", exc)
        return _error(500, "Failed to add transaction.", str(exc))

    logger.info("Stored transaction %s for user %s", transaction_id, req.userId)
    notifications.notify_new_transaction(req.userId, entry)
    return {"success": True, "id": transaction_id}


@app.delete("/api/transactions/{transaction_id}")
def remove_transaction(transaction_id: str, userId: Optional[str] = Query(None)):
    if _blank(userId):
        return _error(400, "User ID is required.")
    if not db.delete_transaction(userId, transaction_id):
        return _error(404, "Transaction not found.")
    return {"success": True}


@app.post("/api/push-subscriptions")
def save_subscription(req: PushSubscriptionRequest):
    if _blank(req.userId):
        return _error(400, "User ID is required.")
    record = normalize_subscription_payload(req.subscription)
    if record is None:
        return _error(400, "Invalid subscription payload.")
    try:
        db.save_push_subscription(req.userId, record, old_endpoint=req.oldEndpoint)
    except sqlite3.Error as exc:
        logger.error("Failed to persist push subscription: %s", exc)
        return _error(500, "Failed to persist push subscription.", str(exc))
    return {"success": True}


@app.delete("/api/push-subscriptions")
def remove_subscription(req: RemoveSubscriptionRequest):
    if _blank(req.userId):
        return _error(400, "User ID is required.")
    if _blank(req.endpoint):
        return _error(400, "Subscription endpoint is required.")
    removed = db.delete_push_subscription(req.userId, req.endpoint)
    return {"success": True, "removed": removed}


@app.post("/api/device-tokens")
def register_device_token(req: DeviceTokenRequest):
    if _blank(req.userId):
        return _error(400, "User ID is required.")
    if _blank(req.token):
        return _error(400, "Device token is required.")
    db.save_device_token(req.userId, req.token.strip())
    return {"success": True}


@app.post("/api/send-push-notification")
def send_push_notification(req: PushNotificationRequest):
    if _blank(req.userId) or _blank(req.message):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "userId and message are required."},
        )
    try:
        result = notifications.send_push_notification(req.userId, req.message)
    except sqlite3.Error as exc:
        logger.error("Error in send-push-notification route: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    return {"success": True, "result": result.to_dict()}


@app.get("/api/summary")
def get_summary(
    userId: Optional[str] = Query(None),
    range_key: str = Query("month", alias="range"),
    url: Optional[str] = Query(None),
):
    if _blank(userId):
        return _error(400, "User ID is required.")
    if range_key not in RANGES:
        return _error(400, f"Unknown range '{range_key}'.", f"Expected one of: {', '.join(RANGES)}.")
    try:
        transactions, budgets = _load_records(userId, url)
    except sheet_client.SheetError as exc:
        return _error(exc.status_code, exc.message, exc.details)

    frame = to_frame(transactions)
    window = resolve_range(range_key)
    summary = summarize_spending(frame, window)
    monthly_budget = total_monthly_budget(budgets)
    scaled = scale_budget(monthly_budget, range_key, frame)
    status = balance(scaled, summary.total)

    return {
        "range": range_key,
        "label": RANGE_LABELS[range_key],
        "description": describe_window(range_key, window, frame["Date"]),
        "window": {"start": _iso(window.start), "end": _iso(window.end)},
        "totalSpent": summary.total,
        "count": summary.count,
        "breakdown": summary.to_records(),
        "monthlyBudget": monthly_budget,
        "budget": scaled,
        "remaining": status.remaining,
        "percentSpent": status.percent_spent,
    }


@app.post("/api/insights")
def create_insights(req: InsightsRequest):
    if _blank(req.userId):
        return _error(400, "User ID is required.")
    if req.range not in RANGES:
        return _error(400, f"Unknown range '{req.range}'.", f"Expected one of: {', '.join(RANGES)}.")
    try:
        transactions, _ = _load_records(req.userId, req.url)
    except sheet_client.SheetError as exc:
        return _error(exc.status_code, exc.message, exc.details)

    in_window = filter_to_window(transactions, resolve_range(req.range))
    if in_window.empty:
        return _error(400, "There are no transactions in the selected range.")
    try:
        result = get_spending_insights(format_financial_data(in_window))
    except InsightsError as exc:
        return _error(502, "Failed to generate spending insights.", str(exc))
    return result.to_dict()


def main() -> None:
    setup_logger()
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
