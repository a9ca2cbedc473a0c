import types

import requests

from piggybank import notifications
from piggybank.notifications import NO_TOKENS_ERROR


def _send_result(*outcomes):
    responses = [types.SimpleNamespace(success=exc is None, exception=exc) for exc in outcomes]
    return types.SimpleNamespace(
        responses=responses,
        success_count=sum(1 for r in responses if r.success),
        failure_count=sum(1 for r in responses if not r.success),
    )


def _no_firebase(monkeypatch):
    monkeypatch.setattr(notifications, "init_firebase_app", lambda: None)


def test_transaction_message():
    entry = {"Notes": "Coffee", "Amount": 3.5}
    assert notifications.transaction_message(entry) == "New transaction added: Coffee for $3.50"


def test_no_tokens_reports_error(temp_db):
    result = notifications.send_push_notification("u1", "hello")
    assert result.to_dict() == {"successCount": 0, "failureCount": 0, "errors": [NO_TOKENS_ERROR]}


def test_sends_to_every_device(temp_db, monkeypatch):
    _no_firebase(monkeypatch)
    temp_db.save_device_token("u1", "tok-1")
    temp_db.save_device_token("u1", "tok-2")
    sent = {}

    def fake_send(message):
        sent["tokens"] = list(message.tokens)
        sent["body"] = message.notification.body
        return _send_result(None, None)

    monkeypatch.setattr(notifications.messaging, "send_each_for_multicast", fake_send)
    result = notifications.send_push_notification("u1", "hello")

    assert sorted(sent["tokens"]) == ["tok-1", "tok-2"]
    assert sent["body"] == "hello"
    assert (result.success_count, result.failure_count, result.errors) == (2, 0, [])


def test_unregistered_tokens_are_removed(temp_db, monkeypatch):
    _no_firebase(monkeypatch)
    temp_db.save_device_token("u1", "stale")
    gone = notifications.messaging.UnregisteredError("Requested entity was not found.")
    monkeypatch.setattr(notifications.messaging, "send_each_for_multicast", lambda message: _send_result(gone))

    result = notifications.send_push_notification("u1", "hello")
    assert result.failure_count == 1
    assert result.errors[0].startswith("Token 0:")
    assert temp_db.fetch_device_tokens("u1") == []


def test_firebase_failure_is_reported(temp_db, monkeypatch):
    temp_db.save_device_token("u1", "tok-1")

    def broken_init():
        raise ValueError("no credentials")

    monkeypatch.setattr(notifications, "init_firebase_app", broken_init)
    result = notifications.send_push_notification("u1", "hello")
    assert (result.success_count, result.failure_count) == (0, 1)
    assert result.errors == ["no credentials"]


def test_notification_key_provider(temp_db, monkeypatch, fake_response):
    temp_db.create_profile("u1", "Dana")
    temp_db.update_profile("u1", notify_key="dana-topic")
    posted = {}

    def fake_post(url, data=None, headers=None, timeout=None):
        posted.update(url=url, data=data, headers=headers)
        return fake_response({})

    monkeypatch.setattr(notifications.requests, "post", fake_post)
    result = notifications.send_push_notification("u1", "hello")

    assert posted["url"].endswith("/dana-topic")
    assert posted["data"] == b"hello"
    assert posted["headers"]["Title"] == notifications.NOTIFICATION_TITLE
    assert result.success_count == 1
    assert result.errors == [NO_TOKENS_ERROR]


def test_notification_key_failure_is_collected(temp_db, monkeypatch):
    temp_db.create_profile("u1", "Dana")
    temp_db.update_profile("u1", notify_key="dana-topic")

    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(notifications.requests, "post", fake_post)
    result = notifications.send_push_notification("u1", "hello")
    assert result.failure_count == 1
    assert result.errors[-1] == "Key provider: offline"


def test_notify_new_transaction_never_raises(monkeypatch):
    def explode(user_id, message):
        raise RuntimeError("database is gone")

    monkeypatch.setattr(notifications, "send_push_notification", explode)
    notifications.notify_new_transaction("u1", {"Notes": "Coffee", "Amount": 3})
