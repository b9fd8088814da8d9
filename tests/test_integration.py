"""
Integration tests running the client against the stand-in cloud.

The cloud runs under uvicorn in a background thread, so every request goes
over a real socket with real keep-alive and chunked encoding.
"""

import io

import httpx
import pytest

from openstack_client import (
    APIConnectionError,
    AuthenticationError,
    ConnectionConfig,
    ItemNotFoundError,
    OverLimitError,
    ResourceStateConflictError,
    create_connection,
)
from openstack_client.connection import Connection

pytestmark = pytest.mark.usefixtures("reset_server_state")


def client_config(live_server, version="v1.0", **overrides):
    options = {
        "username": "demo",
        "api_key": "secret",
        "auth_url": f"{live_server}/{version}",
        "tenant": "demo-project",
    }
    options.update(overrides)
    return ConnectionConfig(**options)


class TestAuthentication:
    def test_v1_handshake(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            assert conn.authenticated
            assert conn.service_host == "127.0.0.1"
            assert conn.service_path == "/compute/dfw"

            response = conn.get("/servers")

            assert response.json()["region"] == "dfw"

    def test_v2_region_selection(self, live_server):
        config = client_config(live_server, "v2.0/", region="ord")

        with create_connection(config) as conn:
            assert conn.service_path == "/compute/ord"
            assert conn.get("/servers").json()["region"] == "ord"

    def test_v2_api_key_object_store(self, live_server):
        config = client_config(
            live_server, "v2.0", auth_method="rax-kskey", service_type="object-store"
        )

        with create_connection(config) as conn:
            assert conn.service_path == "/storage/dfw"

    def test_bad_credentials(self, live_server):
        config = client_config(live_server, "v2.0", api_key="wrong")

        with pytest.raises(AuthenticationError) as exc_info:
            with create_connection(config):
                pass
        assert exc_info.value.status_code == 401


class TestRequests:
    """Test requests, faults and recovery against the live cloud."""

    def test_create_and_fetch_server(self, live_server):
        with create_connection(client_config(live_server, "v2.0", region="DFW")) as conn:
            created = conn.post("/servers", data='{"server": {"name": "web-1"}}')
            server_id = created.json()["server"]["id"]

            fetched = conn.get(f"/servers/{server_id}")

            assert fetched.json()["server"]["name"] == "web-1"

    def test_missing_server_is_item_not_found(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            with pytest.raises(ItemNotFoundError) as exc_info:
                conn.get("/servers/does-not-exist")
            assert exc_info.value.status_code == 404

    def test_plain_text_conflict(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            server_id = conn.post(
                "/servers", data='{"server": {"name": "db"}}'
            ).json()["server"]["id"]

            with pytest.raises(ResourceStateConflictError):
                conn.delete(f"/servers/{server_id}")

            assert conn.delete(f"/servers/{server_id}?force=true").status_code == 204

    def test_injected_fault(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            httpx.post(f"{live_server}/fail/status/413/1")

            with pytest.raises(OverLimitError, match="Injected failure"):
                conn.get("/servers")

            assert conn.get("/servers").status_code == 200

    def test_injected_plain_not_found(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            httpx.post(f"{live_server}/fail/status/404/1?plain=true")

            with pytest.raises(ItemNotFoundError):
                conn.get("/servers")

    def test_expired_token_reauthenticates(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            old_token = conn.auth_token
            httpx.post(f"{live_server}/fail/expire-tokens")

            response = conn.get("/servers")

            assert response.status_code == 200
            assert conn.auth_token != old_token

    def test_keep_alive_connection_reused(self, live_server):
        with create_connection(client_config(live_server)) as conn:
            conn.get("/servers")
            client = conn.transport.connection_for(
                conn.service_host, conn.service_port, conn.service_scheme
            )
            conn.get("/servers")

            assert conn.transport.connection_for(
                conn.service_host, conn.service_port, conn.service_scheme
            ) is client


class TestObjectStore:
    def test_chunked_upload_and_streamed_download(self, live_server):
        config = client_config(live_server, service_type="object-store")
        payload = b"0123456789abcdef" * 20_000

        with create_connection(config) as conn:
            stored = conn.put_object("/backups/blob.bin", io.BytesIO(payload))
            assert stored.json()["bytes"] == len(payload)

            received = []
            conn.get("/backups/blob.bin", chunk_handler=received.append)

            assert b"".join(received) == payload

    def test_head_missing_object(self, live_server):
        config = client_config(live_server, service_type="object-store")

        with create_connection(config) as conn:
            with pytest.raises(ItemNotFoundError, match="could not be found"):
                conn.head("/backups/missing.bin")


class TestConnectionFailures:
    def test_unreachable_auth_host(self):
        config = ConnectionConfig(
            username="demo", api_key="secret", auth_url="http://127.0.0.1:1/v1.0"
        )
        conn = Connection(config)

        with pytest.raises(APIConnectionError, match="Unable to connect"):
            conn.authenticate()
