"""HTTP tests for the admin code and log endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from redeemer.app.core.config import settings
from redeemer.app.core.redis import set_redis
from redeemer.app.main import app
from redeemer.app.middleware.auth import get_admin_token
from redeemer.app.services.redemption import GENERATION_ALPHABET, CodeRecord

ADMIN_TOKEN = "admin-secret"
AUTH = {"Authorization": f"Bearer {ADMIN_TOKEN}"}


def _clear_admin_token_cache() -> None:
    if hasattr(get_admin_token, "_cached_token"):
        delattr(get_admin_token, "_cached_token")


@pytest.fixture
def client(fake_redis, monkeypatch):
    _clear_admin_token_cache()
    monkeypatch.setenv("ADMIN_TOKEN", ADMIN_TOKEN)
    set_redis(fake_redis)
    yield TestClient(app)
    _clear_admin_token_cache()


def seed(fake_redis, code, created_at="2026-01-01T00:00:00.000Z", **fields):
    fake_redis.strings[f"code:{code}"] = CodeRecord(created_at=created_at, **fields).to_json()


def log_types(fake_redis):
    return [json.loads(item)["type"] for item in fake_redis.lists.get("logs", [])]


class TestAuth:

    def test_missing_credential_is_401(self, client):
        resp = client.get("/api/admin/codes")

        assert resp.status_code == 401
        assert resp.json()["success"] is False
        assert resp.headers["WWW-Authenticate"].startswith("Bearer")

    def test_wrong_token_is_401(self, client):
        resp = client.get("/api/admin/codes", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_admin_password_header_is_accepted(self, client):
        resp = client.get("/api/admin/codes", headers={"X-Admin-Password": ADMIN_TOKEN})
        assert resp.status_code == 200

    def test_unconfigured_token_is_500(self, fake_redis, monkeypatch):
        _clear_admin_token_cache()
        monkeypatch.delenv("ADMIN_TOKEN", raising=False)
        set_redis(fake_redis)

        resp = TestClient(app).get("/api/admin/codes", headers=AUTH)

        assert resp.status_code == 500
        assert resp.json()["error"] == "Misconfigured"
        _clear_admin_token_cache()


class TestCreateCodes:

    def test_create_explicit_codes(self, client, fake_redis):
        resp = client.post("/api/admin/codes", json={"codes": ["SPRING01", "SPRING02"]}, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "codes": ["SPRING01", "SPRING02"]}
        assert json.loads(fake_redis.strings["code:SPRING01"])["used"] is False
        entry = json.loads(fake_redis.lists["logs"][0])
        assert entry["type"] == "code_create"
        assert entry["count"] == 2
        assert entry["codes"] == "SPRING01,SPRING02"

    def test_create_single_code_field(self, client, fake_redis):
        resp = client.post("/api/admin/codes", json={"code": "  SOLO99  "}, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json()["codes"] == ["SOLO99"]
        assert "code:SOLO99" in fake_redis.strings

    def test_partial_conflict_reports_exact_partition(self, client, fake_redis):
        seed(fake_redis, "TAKEN", used=True, used_by="a@example.com")

        resp = client.post("/api/admin/codes", json={"codes": ["NEW1", "TAKEN", "NEW2"]}, headers=AUTH)

        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "PartialConflict"
        assert body["created"] == ["NEW1", "NEW2"]
        assert body["skipped"] == ["TAKEN"]
        # Existing record untouched
        assert json.loads(fake_redis.strings["code:TAKEN"])["usedBy"] == "a@example.com"
        assert log_types(fake_redis) == ["code_create"]

    def test_all_existing_is_conflict_without_log(self, client, fake_redis):
        seed(fake_redis, "TAKEN")

        resp = client.post("/api/admin/codes", json={"codes": ["TAKEN"]}, headers=AUTH)

        assert resp.status_code == 409
        assert resp.json()["created"] == []
        assert log_types(fake_redis) == []

    def test_invalid_code_rejects_whole_request(self, client, fake_redis):
        resp = client.post("/api/admin/codes", json={"codes": ["GOOD1", "bad code"]}, headers=AUTH)

        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"
        assert "code:GOOD1" not in fake_redis.strings

    def test_generate_defaults_to_one_code(self, client, fake_redis):
        resp = client.post("/api/admin/codes", json={}, headers=AUTH)

        assert resp.status_code == 200
        codes = resp.json()["codes"]
        assert len(codes) == 1
        assert len(codes[0]) == settings.code_default_length

    def test_blank_code_falls_back_to_generation(self, client):
        resp = client.post("/api/admin/codes", json={"code": "   ", "count": 3}, headers=AUTH)

        assert resp.status_code == 200
        assert len(resp.json()["codes"]) == 3

    @pytest.mark.parametrize(("count", "length", "expected_count", "expected_length"), [
        (5, 8, 5, 8),
        (500, 2, 200, 6),
        (-3, 99, 1, 32),
    ])
    def test_generate_clamps_count_and_length(
        self, client, fake_redis, count, length, expected_count, expected_length
    ):
        resp = client.post("/api/admin/codes", json={"count": count, "length": length}, headers=AUTH)

        assert resp.status_code == 200
        codes = resp.json()["codes"]
        assert len(codes) == expected_count
        for code in codes:
            assert len(code) == expected_length
            assert set(code) <= set(GENERATION_ALPHABET)
        entry = json.loads(fake_redis.lists["logs"][0])
        assert entry["count"] == expected_count

    def test_generation_exhaustion_reports_partial(self, client, fake_redis, monkeypatch):
        seed(fake_redis, "SAMECODE")
        monkeypatch.setattr(
            "redeemer.app.services.redemption.registry.generate_code",
            lambda length: "SAMECODE",
        )

        resp = client.post("/api/admin/codes", json={"count": 2}, headers=AUTH)

        assert resp.status_code == 500
        assert resp.json()["error"] == "GenerationFailed"
        assert resp.json()["codes"] == []


class TestListAndDelete:

    def test_list_newest_first(self, client, fake_redis):
        seed(fake_redis, "OLDER", created_at="2025-01-01T00:00:00.000Z")
        seed(fake_redis, "NEWER", created_at="2026-01-01T00:00:00.000Z", used=True, used_by="u@example.com")

        resp = client.get("/api/admin/codes", headers=AUTH)

        assert resp.status_code == 200
        codes = resp.json()["codes"]
        assert [c["code"] for c in codes] == ["NEWER", "OLDER"]
        assert codes[0]["used"] is True
        assert codes[0]["usedBy"] == "u@example.com"

    def test_delete_code(self, client, fake_redis):
        seed(fake_redis, "GONE01")

        resp = client.delete("/api/admin/codes/GONE01", headers=AUTH)

        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        assert "code:GONE01" not in fake_redis.strings
        entry = json.loads(fake_redis.lists["logs"][0])
        assert entry["type"] == "code_delete"
        assert entry["code"] == "GONE01"

    def test_delete_missing_code_is_404(self, client, fake_redis):
        resp = client.delete("/api/admin/codes/MISSING", headers=AUTH)

        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"
        assert log_types(fake_redis) == []

    def test_store_unconfigured_is_500(self, client, monkeypatch):
        monkeypatch.setattr(settings, "redis_url", "")
        set_redis(None)

        resp = client.get("/api/admin/codes", headers=AUTH)

        assert resp.status_code == 500
        assert resp.json()["error"] == "StoreUnavailable"

    def test_store_error_is_500(self, client, fake_redis):
        fake_redis.fail_on.add("scan")

        resp = client.get("/api/admin/codes", headers=AUTH)

        assert resp.status_code == 500
        assert resp.json()["error"] == "StoreUnavailable"


class TestLogs:

    def test_logs_newest_first_with_limit(self, client, fake_redis):
        for code in ("A11111", "B22222", "C33333"):
            client.post("/api/admin/codes", json={"code": code}, headers=AUTH)

        resp = client.get("/api/admin/logs", params={"limit": 2}, headers=AUTH)

        assert resp.status_code == 200
        logs = resp.json()["logs"]
        assert [entry["codes"] for entry in logs] == ["C33333", "B22222"]

    def test_logs_rejects_non_positive_limit(self, client):
        resp = client.get("/api/admin/logs", params={"limit": 0}, headers=AUTH)
        assert resp.status_code == 400
