#!/usr/bin/env python3
"""
Demonstration of the OpenStack client library.

This script walks through authentication, service faults, token expiry and
object uploads against the stand-in cloud. Run the cloud first with:

    python -m cloud_server.main serve

Then run this demo:

    python examples/client_demo.py
"""

import io
import logging
import sys

import httpx

from openstack_client import (
    APIConnectionError,
    AuthenticationError,
    ConnectionConfig,
    ItemNotFoundError,
    OpenStackError,
    ResourceStateConflictError,
    create_connection,
)

BASE_URL = "http://localhost:8000"

# Setup logging to see client behavior
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)


def demo_config(**overrides) -> ConnectionConfig:
    options = {
        "username": "demo",
        "api_key": "secret",
        "auth_url": f"{BASE_URL}/v2.0/",
        "tenant": "demo-project",
        "region": "ORD",
    }
    options.update(overrides)
    return ConnectionConfig(**options)


def demo_authentication():
    """Log in with both protocols."""
    print("\n=== Authentication ===")

    with create_connection(demo_config(auth_url=f"{BASE_URL}/v1.0")) as conn:
        print(f"✅ V1 endpoint: {conn.service_host}:{conn.service_port}{conn.service_path}")

    with create_connection(demo_config()) as conn:
        print(f"✅ V2 endpoint (ORD): {conn.service_path}")

    try:
        with create_connection(demo_config(api_key="wrong")):
            pass
    except AuthenticationError as e:
        print(f"✅ Bad credentials rejected: {e}")


def demo_servers():
    """Create, fetch and delete a server, hitting a plain-text conflict on the way."""
    print("\n=== Compute ===")

    with create_connection(demo_config()) as conn:
        created = conn.post("/servers", data='{"server": {"name": "demo-web"}}')
        server = created.json()["server"]
        print(f"✅ Created server {server['id']} ({server['status']})")

        try:
            conn.delete(f"/servers/{server['id']}")
        except ResourceStateConflictError as e:
            print(f"✅ Conflict mapped from a plain-text 409: {e}")

        conn.delete(f"/servers/{server['id']}?force=true")
        try:
            conn.get(f"/servers/{server['id']}")
        except ItemNotFoundError as e:
            print(f"✅ Deleted server is gone: {e}")


def demo_token_expiry():
    """Expire every token on the server and watch the client log in again."""
    print("\n=== Token Expiry ===")

    with create_connection(demo_config()) as conn:
        old_token = conn.auth_token
        httpx.post(f"{BASE_URL}/fail/expire-tokens")

        conn.get("/servers")
        if conn.auth_token != old_token:
            print("✅ Re-authenticated transparently after a 401")
        else:
            print("❌ Token was not refreshed")


def demo_faults():
    """Map injected service faults onto typed errors."""
    print("\n=== Service Faults ===")

    scenarios = [
        ("overLimit fault", "/fail/status/413/1"),
        ("serviceUnavailable fault", "/fail/status/503/1"),
        ("plain-text 404", "/fail/status/404/1?plain=true"),
    ]
    with create_connection(demo_config()) as conn:
        for description, setup_path in scenarios:
            httpx.post(f"{BASE_URL}{setup_path}")
            try:
                conn.get("/servers")
                print(f"❌ {description}: request unexpectedly succeeded")
            except OpenStackError as e:
                print(f"✅ {description}: {type(e).__name__}: {e}")
        reset_server()


def demo_object_store():
    """Stream an upload with chunked encoding and stream the download back."""
    print("\n=== Object Store ===")

    payload = b"demo-bytes-" * 50_000
    with create_connection(demo_config(service_type="object-store")) as conn:
        stored = conn.put_object("/demo/blob.bin", io.BytesIO(payload))
        print(f"✅ Uploaded {stored.json()['bytes']} bytes")

        received = []
        conn.get("/demo/blob.bin", chunk_handler=received.append)
        print(f"✅ Downloaded {sum(len(c) for c in received)} bytes in {len(received)} chunks")


def reset_server():
    """Helper to reset server state."""
    httpx.post(f"{BASE_URL}/fail/reset")


def check_server_health():
    """Check if the stand-in cloud is running."""
    try:
        response = httpx.get(f"{BASE_URL}/health", timeout=2.0)
    except httpx.HTTPError:
        return False
    return response.status_code == 200


def main():
    """Run all demonstrations."""
    print("🚀 OpenStack Client Library Demo")
    print("================================")

    if not check_server_health():
        print("❌ Stand-in cloud is not running!")
        print("\nPlease start it first:")
        print("    python -m cloud_server.main serve")
        return

    print("✅ Stand-in cloud is running")
    reset_server()

    try:
        demo_authentication()
        demo_servers()
        demo_token_expiry()
        demo_faults()
        demo_object_store()
    except APIConnectionError as e:
        print(f"💥 Connection error: {e}")

    print("\n🎉 Demo completed!")


if __name__ == "__main__":
    main()
