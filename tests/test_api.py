import pandas as pd
import pytest
from fastapi.testclient import TestClient

from piggybank import api, notifications, sheet_client
from piggybank.date_ranges import NO_DATA_LABEL, current_time
from piggybank.insights import InsightsError, SpendingInsights
from piggybank.notifications import PushResult
from piggybank.sheet_client import SheetData, SheetError

SUBSCRIPTION = {"endpoint": "https://push.example/1", "keys": {"auth": "a", "p256dh": "p"}}


@pytest.fixture
def client(temp_db, monkeypatch):
    monkeypatch.setattr(notifications, "notify_new_transaction", lambda user_id, entry: None)
    return TestClient(api.app)


def _recent(hours):
    return (pd.Timestamp.now(tz="UTC") - pd.Timedelta(hours=hours)).isoformat()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_sheet_requires_url(client):
    response = client.get("/api/sheet")
    assert response.status_code == 400
    assert response.json() == {"error": "Google Sheet URL is required."}


def test_sheet_success_and_failure(client, monkeypatch):
    monkeypatch.setattr(
        sheet_client,
        "fetch_sheet_data",
        lambda url: SheetData(transactions=[{"id": "tx-0"}], budgets=[{"Category": "F&B", "MonthlyBudget": 1.0}]),
    )
    response = client.get("/api/sheet", params={"url": "https://script.example"})
    assert response.status_code == 200
    assert response.json()["transactions"] == [{"id": "tx-0"}]

    def failing(url):
        raise SheetError("Failed to fetch data from Google Sheet.", "timeout")

    monkeypatch.setattr(sheet_client, "fetch_sheet_data", failing)
    response = client.get("/api/sheet", params={"url": "https://script.example"})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch data from Google Sheet.", "details": "timeout"}


def test_budgets_route(client, monkeypatch):
    monkeypatch.setattr(sheet_client, "fetch_budget_data", lambda url: [{"Category": "F&B", "MonthlyBudget": 50.0}])
    response = client.get("/api/budgets", params={"url": "https://script.example"})
    assert response.json() == {"budgets": [{"Category": "F&B", "MonthlyBudget": 50.0}]}
    assert client.get("/api/budgets").status_code == 400


def test_add_entry(client, monkeypatch):
    assert client.post("/api/add-entry", json={"userId": "u1"}).status_code == 400

    captured = {}

    def fake_append(url, user_id, entry):
        captured.update(url=url, user_id=user_id, entry=entry)
        return {"result": "success"}

    monkeypatch.setattr(sheet_client, "append_entry", fake_append)
    response = client.post(
        "/api/add-entry",
        json={"googleSheetUrl": "https://script.example", "userId": "u1", "action": "add", "data": {"Amount": 5}},
    )
    assert response.json() == {"success": True, "data": {"result": "success"}}
    assert captured == {
        "url": "https://script.example",
        "user_id": "u1",
        "entry": {"action": "add", "data": {"Amount": 5}},
    }


def test_add_entry_script_failure(client, monkeypatch):
    def fake_append(url, user_id, entry):
        raise SheetError("Google Apps Script failed.", "status 302", status_code=502)

    monkeypatch.setattr(sheet_client, "append_entry", fake_append)
    response = client.post("/api/add-entry", json={"googleSheetUrl": "https://script.example"})
    assert response.status_code == 502
    assert response.json()["error"] == "Google Apps Script failed."


def test_create_transaction(client, temp_db, monkeypatch):
    notified = []
    monkeypatch.setattr(notifications, "notify_new_transaction", lambda user_id, entry: notified.append(entry))

    response = client.post(
        "/api/transactions",
        json={"userId": "u1", "data": {"Amount": "4.50", "Category": "F&B", "Notes": "Coffee", "Type": "Expense"}},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True

    stored = temp_db.fetch_transactions("u1")
    assert stored["id"].tolist() == [body["id"]]
    assert stored.loc[0, "Amount"] == 4.5
    assert notified[0]["Notes"] == "Coffee"


def test_create_transaction_validation(client):
    response = client.post("/api/transactions", json={"data": {"Amount": 1}})
    assert response.status_code == 400
    assert response.json() == {"error": "User ID is required."}

    response = client.post("/api/transactions", json={"userId": "u1", "data": {"Amount": 1}})
    assert response.status_code == 400
    assert response.json()["error"].startswith("Incomplete transaction data provided.")

    response = client.post(
        "/api/transactions",
        json={"userId": "u1", "data": {"Amount": "lots", "Category": "F&B", "Notes": "x", "Type": "Expense"}},
    )
    assert response.json() == {"error": "Amount must be a valid number."}


def test_delete_transaction(client, temp_db):
    transaction_id = temp_db.add_transaction(
        "u1", {"Date": _recent(1), "Amount": 3.0, "Type": "Expense", "Category": "F&B", "Notes": "Tea"}
    )
    assert client.delete(f"/api/transactions/{transaction_id}").status_code == 400
    assert client.delete(f"/api/transactions/{transaction_id}", params={"userId": "u2"}).status_code == 404
    response = client.delete(f"/api/transactions/{transaction_id}", params={"userId": "u1"})
    assert response.json() == {"success": True}
    assert len(temp_db.fetch_transactions("u1")) == 0


def test_push_subscriptions(client, temp_db):
    response = client.post("/api/push-subscriptions", json={"subscription": SUBSCRIPTION})
    assert response.json() == {"error": "User ID is required."}

    response = client.post("/api/push-subscriptions", json={"userId": "u1", "subscription": {"endpoint": "x"}})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid subscription payload."}

    assert client.post("/api/push-subscriptions", json={"userId": "u1", "subscription": SUBSCRIPTION}).json() == {
        "success": True
    }
    rotated = {"endpoint": "https://push.example/2", "keys": {"auth": "b", "p256dh": "q"}}
    client.post(
        "/api/push-subscriptions",
        json={"userId": "u1", "subscription": rotated, "oldEndpoint": SUBSCRIPTION["endpoint"]},
    )
    assert [s["endpoint"] for s in temp_db.fetch_push_subscriptions("u1")] == [rotated["endpoint"]]

    response = client.request(
        "DELETE", "/api/push-subscriptions", json={"userId": "u1", "endpoint": rotated["endpoint"]}
    )
    assert response.json() == {"success": True, "removed": True}


def test_device_tokens(client, temp_db):
    assert client.post("/api/device-tokens", json={"userId": "u1"}).status_code == 400
    assert client.post("/api/device-tokens", json={"userId": "u1", "token": "tok"}).json() == {"success": True}
    assert temp_db.fetch_device_tokens("u1") == ["tok"]


def test_send_push_notification(client, monkeypatch):
    response = client.post("/api/send-push-notification", json={"userId": "u1"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "userId and message are required."}

    monkeypatch.setattr(
        notifications,
        "send_push_notification",
        lambda user_id, message: PushResult(success_count=1, failure_count=0, errors=[]),
    )
    response = client.post("/api/send-push-notification", json={"userId": "u1", "message": "hi"})
    assert response.json() == {
        "success": True,
        "result": {"successCount": 1, "failureCount": 0, "errors": []},
    }


def test_summary(client, temp_db):
    temp_db.create_profile("u1", "Dana")
    temp_db.upsert_budget("u1", "F&B", 200)
    temp_db.upsert_budget("u1", "Shopping", 100)
    for hours, amount, category, txn_type in [
        (1, 10.0, "F&B", "Expense"),
        (2, 30.0, "Shopping", "Expense"),
        (3, 5.0, "F&B", "Expense"),
        (4, 900.0, "Salary", "Income"),
        (24 * 60, 70.0, "F&B", "Expense"),
    ]:
        temp_db.add_transaction(
            "u1",
            {"Date": _recent(hours), "Amount": amount, "Type": txn_type, "Category": category, "Notes": "x"},
        )

    body = client.get("/api/summary", params={"userId": "u1", "range": "month"}).json()
    assert body["totalSpent"] == pytest.approx(45.0)
    assert body["breakdown"] == [
        {"category": "Shopping", "amount": 30.0},
        {"category": "F&B", "amount": 15.0},
    ]
    assert body["monthlyBudget"] == pytest.approx(300.0)
    assert body["budget"] == pytest.approx(300.0)
    assert body["remaining"] == pytest.approx(255.0)
    assert body["percentSpent"] == pytest.approx(15.0)

    yearly = client.get("/api/summary", params={"userId": "u1", "range": "yearly"}).json()
    assert yearly["totalSpent"] == pytest.approx(115.0)
    assert yearly["budget"] == pytest.approx(3600.0)


def test_summary_description_when_range_is_empty(client, temp_db):
    temp_db.add_transaction(
        "u1", {"Date": "2020-01-01T12:00:00+00:00", "Amount": 8.0, "Type": "Expense", "Category": "F&B", "Notes": "Old"}
    )
    body = client.get("/api/summary", params={"userId": "u1", "range": "daily"}).json()
    today = current_time()
    assert body["count"] == 0
    assert body["description"] == f"{today.day} {today.strftime('%b %Y')}"

    empty = client.get("/api/summary", params={"userId": "u2", "range": "daily"}).json()
    assert empty["description"] == NO_DATA_LABEL


def test_summary_validation(client):
    assert client.get("/api/summary", params={"range": "month"}).status_code == 400
    assert client.get("/api/summary", params={"userId": "u1", "range": "decade"}).status_code == 400


def test_insights_route(client, temp_db, monkeypatch):
    response = client.post("/api/insights", json={"userId": "u1", "range": "month"})
    assert response.status_code == 400

    temp_db.add_transaction(
        "u1", {"Date": _recent(1), "Amount": 3.0, "Type": "Expense", "Category": "F&B", "Notes": "Tea"}
    )
    seen = {}

    def fake_insights(financial_data):
        seen["data"] = financial_data
        return SpendingInsights(insights=["Tea adds up."], recommendations=["Buy in bulk."])

    monkeypatch.setattr(api, "get_spending_insights", fake_insights)
    response = client.post("/api/insights", json={"userId": "u1", "range": "month"})
    assert response.json() == {"insights": ["Tea adds up."], "recommendations": ["Buy in bulk."]}
    assert "Tea (F&B) - $3.00" in seen["data"]

    def failing(financial_data):
        raise InsightsError("GEMINI_API_KEY is not configured.")

    monkeypatch.setattr(api, "get_spending_insights", failing)
    response = client.post("/api/insights", json={"userId": "u1", "range": "month"})
    assert response.status_code == 502
    assert response.json()["details"] == "GEMINI_API_KEY is not configured."
