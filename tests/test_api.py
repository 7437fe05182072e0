import pytest
from fastapi.testclient import TestClient

from device_guard.api.modules.devices.services.limits import InMemoryDeviceRecordStore
from device_guard.application import get_production_app
from device_guard.settings import APIConfig, Config, DeviceGuardConfig

EMAILS = ("alice@example.com", "bob@example.com", "carol@example.com")


def _config(api_key: str | None = None, **devices) -> Config:
    return Config(
        env="prod",
        api=APIConfig(api_key=api_key),
        devices=DeviceGuardConfig(storage_backend="memory", **devices),
    )


@pytest.fixture
def client():
    with TestClient(get_production_app(_config())) as client:
        yield client


@pytest.fixture
def fingerprint(client, full_report) -> dict:
    response = client.post("/devices/fingerprint", json=full_report)
    assert response.status_code == 200
    body = response.json()
    return {"compositeHash": body["compositeHash"], "signals": body["signals"]}


def _signup(client, email: str, fingerprint: dict | None):
    payload = {"email": email}
    if fingerprint is not None:
        payload["deviceFingerprint"] = fingerprint
    return client.post("/devices/signup-check", json=payload)


def test_collector_script_is_public(client):
    response = client.get("/devices/collector.js")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/javascript")
    assert "global.DeviceGuard" in response.text
    assert "mmmmmmmmmmlli" in response.text


def test_fingerprint_is_stable(client, full_report):
    first = client.post("/devices/fingerprint", json=full_report).json()
    second = client.post("/devices/fingerprint", json=full_report).json()

    assert len(first["compositeHash"]) == 64
    assert first["compositeHash"] == second["compositeHash"]
    assert first["error"] is None
    assert first["signals"]["fonts"] == "Arial,Helvetica"
    assert "collectedAt" in first


def test_fingerprint_rejects_unknown_fields(client, full_report):
    full_report["unexpected"] = True

    assert client.post("/devices/fingerprint", json=full_report).status_code == 422


def test_signup_limit(client, fingerprint):
    for count, email in enumerate(EMAILS, start=1):
        response = _signup(client, email, fingerprint)
        assert response.status_code == 200
        assert response.json()["accountCount"] == count

    response = _signup(client, "dave@example.com", fingerprint)
    body = response.json()

    assert response.status_code == 403
    assert body["error"] == "Account creation limit reached"
    assert "maximum limit of 3 accounts per device" in body["message"]
    assert body["accountCount"] == 3
    assert body["accountLimit"] == 3
    assert body["existingEmails"] == [
        "al***@example.com",
        "bo*@example.com",
        "ca***@example.com",
    ]
    assert body["canSignIn"] is True


def test_resignup_is_allowed_at_limit(client, fingerprint):
    for email in EMAILS:
        _signup(client, email, fingerprint)

    response = _signup(client, "Bob@Example.com", fingerprint)

    assert response.status_code == 200
    assert response.json()["reason"] == "already_registered"


def test_missing_fingerprint_fails_open(client):
    for email in (*EMAILS, "dave@example.com"):
        response = _signup(client, email, None)
        assert response.status_code == 200
        assert response.json()["state"] == "bypassed"


def test_submitted_hash_is_recomputed(client, fingerprint):
    for email in EMAILS:
        _signup(client, email, fingerprint)

    forged = {**fingerprint, "compositeHash": "0123456789abcdef"}
    response = _signup(client, "dave@example.com", forged)

    assert response.status_code == 403


def test_invalid_email_is_rejected(client):
    assert _signup(client, "not-an-email", None).status_code == 422


def test_login_with_other_session_must_sign_out(client):
    response = client.post(
        "/devices/login-check",
        json={"email": "bob@example.com", "sessionEmail": "alice@example.com"},
    )
    body = response.json()

    assert response.status_code == 403
    assert body["error"] == "Already signed in"
    assert "alice@example.com" in body["message"]
    assert body["canSignOut"] is True
    assert body["canSignIn"] is False


def test_login_with_same_session(client):
    response = client.post(
        "/devices/login-check",
        json={"email": "alice@example.com", "sessionEmail": "Alice@example.com"},
    )

    assert response.status_code == 200
    assert response.json()["reason"] == "already_signed_in"


def test_login_is_not_limited_by_default(client, fingerprint):
    for email in EMAILS:
        _signup(client, email, fingerprint)

    response = client.post(
        "/devices/login-check",
        json={"email": "dave@example.com", "deviceFingerprint": fingerprint},
    )

    assert response.status_code == 200
    assert response.json()["allowed"] is True


def test_login_limit_when_enforced(full_report):
    app = get_production_app(_config(enforce_on_login=True))
    with TestClient(app) as client:
        body = client.post("/devices/fingerprint", json=full_report).json()
        fingerprint = {"compositeHash": body["compositeHash"], "signals": body["signals"]}
        for email in EMAILS:
            _signup(client, email, fingerprint)

        outsider = client.post(
            "/devices/login-check",
            json={"email": "dave@example.com", "deviceFingerprint": fingerprint},
        )
        member = client.post(
            "/devices/login-check",
            json={"email": "alice@example.com", "deviceFingerprint": fingerprint},
        )
        records = client.get("/devices/records").json()

    assert outsider.status_code == 403
    assert member.status_code == 200
    assert records["items"][0]["account_count"] == 3


def test_records_and_stats(client, fingerprint):
    for email in EMAILS:
        _signup(client, email, fingerprint)
    _signup(client, "alice@example.com", {"compositeHash": "f" * 64})

    records = client.get("/devices/records", params={"page_size": 1}).json()
    busy = client.get("/devices/records", params={"min_accounts": 3}).json()
    stats = client.get("/devices/stats").json()

    assert records["total"] == 2
    assert records["total_pages"] == 2
    assert records["has_next"] is True
    assert busy["total"] == 1
    assert busy["items"][0]["account_emails"] == list(EMAILS)
    assert stats["total_devices"] == 2
    assert stats["unique_accounts"] == 3
    assert stats["total_registrations"] == 4
    assert stats["accounts_per_device"] == 2.0
    assert len(stats["potential_violations"]) == 1
    violation = stats["potential_violations"][0]
    assert violation["fingerprint_hash"] == fingerprint["compositeHash"][:12] + "..."
    assert violation["account_count"] == 3
    assert violation["days_between"] in (0, 1)


def test_api_key_guards_private_routes(full_report):
    app = get_production_app(_config(api_key="secret"))
    with TestClient(app) as client:
        assert client.get("/devices/stats").status_code == 401
        assert client.get("/devices/stats", headers={"X-API-Key": "secret"}).status_code == 200
        assert client.get("/devices/collector.js").status_code == 200
        assert client.post("/devices/fingerprint", json=full_report).status_code == 200


def test_empty_hash_fails_open(client):
    response = _signup(client, "alice@example.com", {"compositeHash": ""})

    assert response.status_code == 200
    assert response.json()["state"] == "bypassed"


@pytest.mark.parametrize("broken", ["garbage", {"compositeHash": 42}, []])
def test_malformed_fingerprint_fails_open(client, broken):
    response = _signup(client, "alice@example.com", broken)

    assert response.status_code == 200
    assert response.json()["state"] == "bypassed"


def test_malformed_signals_keep_submitted_hash(client, fingerprint):
    signals = {key: value for key, value in fingerprint["signals"].items() if key != "audio"}
    signals["unexpected"] = 1
    broken = {"compositeHash": fingerprint["compositeHash"], "signals": signals}

    for email in EMAILS:
        assert _signup(client, email, broken).status_code == 200
    response = _signup(client, "dave@example.com", fingerprint)

    assert response.status_code == 403
    assert response.json()["accountCount"] == 3


def test_store_failure_fails_open(client, fingerprint, monkeypatch):
    def unavailable(self, *args, **kwargs):
        raise ConnectionError("store is down")

    monkeypatch.setattr(InMemoryDeviceRecordStore, "exclusive", unavailable)
    response = _signup(client, "alice@example.com", fingerprint)
    body = response.json()

    assert response.status_code == 200
    assert body["allowed"] is True
    assert body["state"] == "bypassed"
    assert body["reason"] == "store_unavailable"


def test_store_failure_on_login_fails_open(full_report, monkeypatch):
    def unavailable(self, *args, **kwargs):
        raise ConnectionError("store is down")

    app = get_production_app(_config(enforce_on_login=True))
    with TestClient(app) as client:
        body = client.post("/devices/fingerprint", json=full_report).json()
        monkeypatch.setattr(InMemoryDeviceRecordStore, "get", unavailable)
        response = client.post(
            "/devices/login-check",
            json={
                "email": "alice@example.com",
                "deviceFingerprint": {"compositeHash": body["compositeHash"]},
            },
        )

    assert response.status_code == 200
    assert response.json()["reason"] == "store_unavailable"


def test_out_of_range_section_falls_back_to_sentinel(client, full_report):
    full_report["navigator"]["hardware_concurrency"] = 2048

    response = client.post("/devices/fingerprint", json=full_report)
    body = response.json()

    assert response.status_code == 200
    assert len(body["compositeHash"]) == 64
    assert body["signals"]["hardware_concurrency"] == "navigator-error"
    assert body["signals"]["platform"] == "navigator-error"
    assert body["signals"]["screen"] == "1920x1080x24"
