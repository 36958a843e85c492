import pytest
from fastapi.testclient import TestClient

from tastetracker.app import create_app
from tastetracker.config import Settings
from tastetracker.errors import RemoteApiError

PASSPORT_URL = "/apps/alfie-tracker/passport-data"
ALLOWED_ORIGIN = "https://alfiecoffee.co.uk"


def stored_entries(client, customer_id, roast_handle):
    return client.app.state.store.find_passport(customer_id)[roast_handle]["entries"]


def test_health_reports_connected_store(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")


def test_health_reports_unconnected_store(settings, legacy):
    response = TestClient(create_app(settings, legacy=legacy)).get("/")

    assert response.status_code == 503
    assert response.headers["content-type"].startswith("text/plain")


def test_passport_data_requires_customer_id(client):
    response = client.get(PASSPORT_URL)

    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_passport_data_migrates_legacy_passport(client, legacy):
    legacy.passports["42"] = {"kenya-aa": {"entries": []}}

    response = client.get(PASSPORT_URL, params={"customer_id": "42"})

    assert response.status_code == 200
    assert response.json() == {"kenya-aa": {"entries": []}}
    assert client.app.state.store.find_passport("42") == {"kenya-aa": {"entries": []}}


def test_passport_data_unknown_customer_is_empty(client):
    response = client.get(PASSPORT_URL, params={"customer_id": "99"})

    assert response.status_code == 200
    assert response.json() == {}


def test_passport_data_failure_returns_500(client, mocker):
    service = client.app.state.passport_service
    mocker.patch.object(service.store, "find_passport", side_effect=RuntimeError("database is locked"))

    response = client.get(PASSPORT_URL, params={"customer_id": "1"})

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "database is locked"}


def test_save_creates_then_updates_entry(client):
    created = client.post(
        "/save",
        json={"customer_id": 42, "roast_handle": "kenya-aa", "rating": 4, "notes": "blackcurrant"},
    )

    assert created.status_code == 200
    body = created.json()
    assert body["ok"] is True
    entry_id = body["entry_id"]

    [entry] = stored_entries(client, "42", "kenya-aa")
    assert entry["id"] == entry_id
    assert entry["created_at"] == entry["updated_at"]
    assert entry["rating"] == 4

    updated = client.post(
        "/save",
        json={
            "customer_id": "42",
            "roast_handle": "kenya-aa",
            "entry_id": entry_id,
            "grinding_from_whole_bean": True,
            "notes": "blackcurrant, tomato",
        },
    )

    assert updated.json() == {"ok": True, "entry_id": entry_id}
    [after] = stored_entries(client, "42", "kenya-aa")
    assert after["id"] == entry_id
    assert after["created_at"] == entry["created_at"]
    assert after["updated_at"] > entry["updated_at"]
    assert after["grinding_from_whole_bean"] is True
    assert after["rating"] == 0


def test_save_reset_removes_entry(client):
    entry_id = client.post("/save", json={"customer_id": "7", "roast_handle": "brazil"}).json()["entry_id"]
    client.post("/save", json={"customer_id": "7", "roast_handle": "brazil", "notes": "keep"})

    response = client.post(
        "/save", json={"customer_id": "7", "roast_handle": "brazil", "entry_id": entry_id, "action": "reset"}
    )

    assert response.json() == {"ok": True, "reset": True}
    entries = stored_entries(client, "7", "brazil")
    assert len(entries) == 1
    assert entries[0]["notes"] == "keep"


def test_save_reset_unknown_entry_succeeds(client):
    client.post("/save", json={"customer_id": "7", "roast_handle": "brazil"})

    response = client.post(
        "/save", json={"customer_id": "7", "roast_handle": "brazil", "entry_id": "missing", "action": "reset"}
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "reset": True}
    assert len(stored_entries(client, "7", "brazil")) == 1


def test_save_requires_customer_and_roast(client):
    for payload in ({"roast_handle": "brazil"}, {"customer_id": "7"}, {"customer_id": " ", "roast_handle": "x"}):
        response = client.post("/save", json=payload)
        assert response.status_code == 400
        assert response.json()["ok"] is False


def test_save_does_not_migrate_or_write_on_remote_error(client, legacy):
    legacy.error = RemoteApiError("Access denied")

    response = client.post("/save", json={"customer_id": "5", "roast_handle": "brazil"})

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Access denied"}
    assert client.app.state.store.find_passport("5") is None


def test_save_rejected_while_store_not_ready(settings, legacy):
    response = TestClient(create_app(settings, legacy=legacy)).post(
        "/save", json={"customer_id": "5", "roast_handle": "brazil"}
    )

    assert response.status_code == 503
    assert response.json()["ok"] is False


def test_cors_echoes_allowed_origin(client):
    response = client.get("/", headers={"Origin": ALLOWED_ORIGIN})

    assert response.headers["access-control-allow-origin"] == ALLOWED_ORIGIN
    assert response.headers["access-control-allow-methods"] == "GET,POST,OPTIONS"
    assert response.headers["access-control-allow-credentials"] == "false"


def test_cors_ignores_unknown_origin(client):
    response = client.get("/", headers={"Origin": "https://evil.example"})

    assert "access-control-allow-origin" not in response.headers
    assert response.headers["access-control-allow-headers"] == "Content-Type"


def test_options_preflight_returns_204(client):
    response = client.options("/save", headers={"Origin": "https://alfiecoffee.myshopify.com"})

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "https://alfiecoffee.myshopify.com"


def test_startup_fails_when_store_cannot_connect(tmp_path, legacy):
    settings = Settings(
        shop_domain="alfie-test.myshopify.com",
        admin_token="shpat_test",
        database_url=f"sqlite:///{tmp_path / 'missing' / 'passports.db'}",
    )

    with pytest.raises(Exception):
        with TestClient(create_app(settings, legacy=legacy)):
            pass
