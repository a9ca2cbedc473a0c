from piggybank.push_subscriptions import build_subscription_id, normalize_subscription_payload


def test_build_subscription_id_replaces_slashes():
    assert build_subscription_id("https://fcm.googleapis.com/fcm/send/abc") == "https:__fcm.googleapis.com_fcm_send_abc"


def test_normalize_valid_payload():
    record = normalize_subscription_payload(
        {"endpoint": "https://push.example/1", "keys": {"auth": "a", "p256dh": "p"}, "expirationTime": None}
    )
    assert record is not None
    assert record.id == "https:__push.example_1"
    assert record.to_dict() == {"endpoint": "https://push.example/1", "keys": {"auth": "a", "p256dh": "p"}}


def test_normalize_rejects_malformed_payloads():
    bad_payloads = [
        None,
        "https://push.example/1",
        {"keys": {"auth": "a", "p256dh": "p"}},
        {"endpoint": "", "keys": {"auth": "a", "p256dh": "p"}},
        {"endpoint": "https://push.example/1"},
        {"endpoint": "https://push.example/1", "keys": {"auth": "a"}},
        {"endpoint": "https://push.example/1", "keys": {"auth": 1, "p256dh": "p"}},
    ]
    for payload in bad_payloads:
        assert normalize_subscription_payload(payload) is None
