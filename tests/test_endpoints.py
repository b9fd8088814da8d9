"""Tests for the stand-in cloud's API endpoints."""

import pytest
from fastapi.testclient import TestClient

from cloud_server.config import ServerConfig
from cloud_server.logging_config import scrub_secrets
from cloud_server.main import create_app

V1_CREDENTIALS = {"X-Auth-User": "demo", "X-Auth-Key": "secret"}
V2_CREDENTIALS = {
    "auth": {
        "passwordCredentials": {"username": "demo", "password": "secret"},
        "tenantName": "demo-project",
    }
}


@pytest.fixture
def client():
    """Create a test client on a fresh app."""
    config = ServerConfig(regions="DFW,ORD", log_level="WARNING", log_format="console")
    with TestClient(create_app(config)) as test_client:
        yield test_client


@pytest.fixture
def token(client):
    response = client.get("/v1.0", headers=V1_CREDENTIALS)
    return response.headers["X-Auth-Token"]


def auth(token):
    return {"X-Auth-Token": token}


class TestHealthEndpoint:
    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert data["uptime_seconds"] >= 0


class TestIdentityV1:
    """Test the header handshake."""

    def test_success_returns_token_and_urls(self, client):
        response = client.get("/v1.0", headers=V1_CREDENTIALS)

        assert response.status_code == 204
        assert response.headers["X-Auth-Token"]
        assert response.headers["X-Server-Management-Url"] == "http://testserver/compute/dfw"
        assert response.headers["X-Storage-Url"] == "http://testserver/storage/dfw"

    def test_trailing_slash(self, client):
        response = client.get("/v1.0/", headers=V1_CREDENTIALS)
        assert response.status_code == 204

    def test_bad_credentials(self, client):
        response = client.get("/v1.0", headers={"X-Auth-User": "demo", "X-Auth-Key": "nope"})

        assert response.status_code == 401
        assert "X-Auth-Token" not in response.headers


class TestIdentityV2:
    """Test the JSON token API."""

    def test_password_credentials(self, client):
        response = client.post("/v2.0/tokens", json=V2_CREDENTIALS)

        assert response.status_code == 200
        access = response.json()["access"]
        assert access["token"]["id"]

        catalog = {entry["type"]: entry for entry in access["serviceCatalog"]}
        compute = catalog["compute"]
        assert compute["name"] == "cloudServersOpenStack"
        assert [ep["region"] for ep in compute["endpoints"]] == ["DFW", "ORD"]
        assert compute["endpoints"][1]["publicURL"] == "http://testserver/compute/ord"
        assert catalog["object-store"]["endpoints"][0]["publicURL"] == (
            "http://testserver/storage/dfw"
        )

    def test_api_key_credentials(self, client):
        payload = {
            "auth": {"RAX-KSKEY:apiKeyCredentials": {"username": "demo", "apiKey": "secret"}}
        }
        response = client.post("/v2.0/tokens", json=payload)
        assert response.status_code == 200

    def test_wrong_tenant_rejected(self, client):
        payload = {
            "auth": {
                "passwordCredentials": {"username": "demo", "password": "secret"},
                "tenantName": "someone-else",
            }
        }
        response = client.post("/v2.0/tokens", json=payload)

        assert response.status_code == 401
        assert "unauthorized" in response.json()

    def test_unknown_credential_type(self, client):
        response = client.post("/v2.0/tokens", json={"auth": {"token": {"id": "x"}}})

        assert response.status_code == 400
        assert response.json()["badRequest"]["code"] == 400


class TestCompute:
    """Test the server collection."""

    def test_requires_token(self, client):
        response = client.get("/compute/dfw/servers")

        assert response.status_code == 401
        assert response.json()["unauthorized"]["code"] == 401

    def test_expired_token_rejected(self, client, token):
        client.post("/fail/expire-tokens")

        response = client.get("/compute/dfw/servers", headers=auth(token))
        assert response.status_code == 401

    def test_unknown_region(self, client, token):
        response = client.get("/compute/syd/servers", headers=auth(token))

        assert response.status_code == 404
        assert "itemNotFound" in response.json()

    def test_create_get_and_list(self, client, token):
        created = client.post(
            "/compute/ord/servers", json={"server": {"name": "web-1"}}, headers=auth(token)
        )
        assert created.status_code == 202
        server = created.json()["server"]
        assert server["name"] == "web-1"

        fetched = client.get(f"/compute/ord/servers/{server['id']}", headers=auth(token))
        assert fetched.json()["server"] == server

        listed = client.get("/compute/ord/servers", headers=auth(token)).json()
        assert listed["region"] == "ord"
        assert listed["servers"] == [server]

    def test_create_without_name(self, client, token):
        response = client.post("/compute/dfw/servers", json={"server": {}}, headers=auth(token))

        assert response.status_code == 400
        assert response.json()["badRequest"]["message"] == "Server name is not defined"

    def test_missing_server(self, client, token):
        response = client.get("/compute/dfw/servers/nope", headers=auth(token))

        assert response.status_code == 404
        assert "itemNotFound" in response.json()

    def test_delete_building_server_conflicts(self, client, token):
        server = client.post(
            "/compute/dfw/servers", json={"server": {"name": "db"}}, headers=auth(token)
        ).json()["server"]

        conflict = client.delete(f"/compute/dfw/servers/{server['id']}", headers=auth(token))
        assert conflict.status_code == 409
        assert conflict.headers["content-type"].startswith("text/plain")

        forced = client.delete(
            f"/compute/dfw/servers/{server['id']}?force=true", headers=auth(token)
        )
        assert forced.status_code == 204


class TestStorage:
    """Test the object store."""

    def test_storage_token_accepted(self, client, token):
        response = client.put(
            "/storage/dfw/photos/cat.jpg",
            content=b"meow",
            headers={"X-Storage-Token": token},
        )

        assert response.status_code == 201
        assert response.json() == {"name": "cat.jpg", "bytes": 4}

    def test_chunked_upload_and_download(self, client, token):
        payload = b"z" * 150_000

        def chunks():
            for start in range(0, len(payload), 65535):
                yield payload[start:start + 65535]

        stored = client.put("/storage/dfw/c/big.bin", content=chunks(), headers=auth(token))
        assert stored.json()["bytes"] == len(payload)

        fetched = client.get("/storage/dfw/c/big.bin", headers=auth(token))
        assert fetched.content == payload

        listed = client.get("/storage/dfw/c", headers=auth(token))
        assert listed.json() == [{"name": "big.bin"}]

    def test_head_missing_object_is_bare_404(self, client, token):
        response = client.head("/storage/dfw/c/missing", headers=auth(token))

        assert response.status_code == 404
        assert response.content == b""

    def test_head_existing_object(self, client, token):
        client.put("/storage/dfw/c/a.txt", content=b"hello", headers=auth(token))

        response = client.head("/storage/dfw/c/a.txt", headers=auth(token))

        assert response.status_code == 200
        assert response.headers["X-Object-Bytes"] == "5"

    def test_missing_container(self, client, token):
        response = client.get("/storage/dfw/nothing", headers=auth(token))
        assert response.status_code == 404


class TestFailureEndpoints:
    """Test failure injection endpoints."""

    def test_injected_fault(self, client, token):
        response = client.post("/fail/status/413/2")
        assert response.status_code == 200
        assert response.json()["count"] == 2

        for _ in range(2):
            failed = client.get("/compute/dfw/servers", headers=auth(token))
            assert failed.status_code == 413
            assert failed.json()["overLimit"]["message"] == "Injected failure"

        assert client.get("/compute/dfw/servers", headers=auth(token)).status_code == 200

    def test_injected_plain_text(self, client, token):
        client.post("/fail/status/404/1?plain=true")

        response = client.get("/compute/dfw/servers", headers=auth(token))

        assert response.status_code == 404
        assert response.text.startswith("404 Injected failure")

    def test_unauthorized_requests_do_not_consume_failures(self, client, token):
        client.post("/fail/status/503/1")

        assert client.get("/compute/dfw/servers").status_code == 401
        assert client.get("/compute/dfw/servers", headers=auth(token)).status_code == 503

    def test_status_and_reset(self, client, token):
        client.post("/fail/status/500/4")

        status = client.get("/fail/status").json()
        assert status["status_code"] == 500
        assert status["remaining"] == 4
        assert status["tokens_issued"] == 1

        client.post("/fail/reset")
        assert client.get("/fail/status").json()["remaining"] == 0

    def test_invalid_status_code(self, client):
        assert client.post("/fail/status/200/1").status_code == 422

    def test_expire_tokens_counts(self, client, token):
        response = client.post("/fail/expire-tokens")
        assert response.json()["expired"] == 1


class TestMiddleware:
    def test_correlation_id_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Correlation-ID"]

    def test_correlation_id_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "trace-42"})
        assert response.headers["X-Correlation-ID"] == "trace-42"


class TestLogScrubbing:
    def test_secrets_truncated(self):
        event = scrub_secrets(None, "info", {"event": "login", "api_key": "supersecret"})
        assert event["api_key"] == "supe..."

    def test_other_keys_untouched(self):
        event = scrub_secrets(None, "info", {"event": "login", "user": "demo", "token": None})
        assert event == {"event": "login", "user": "demo", "token": None}
