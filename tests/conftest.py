"""Shared fixtures for the client and stand-in cloud tests."""

import socket
import threading
import time

import httpx
import pytest
import uvicorn

from cloud_server.config import ServerConfig
from cloud_server.main import create_app
from openstack_client.config import ConnectionConfig


def make_config(**overrides) -> ConnectionConfig:
    """Connection config with valid credentials and a V1 auth URL."""
    options = {
        "username": "demo",
        "api_key": "secret",
        "auth_url": "http://identity.local:5000/v1.0",
    }
    options.update(overrides)
    return ConnectionConfig(**options)


class RecordingHandler:
    """
    MockTransport handler that replays a script of responses and errors.

    Each entry is an ``httpx.Response``, an exception instance to raise, or a
    callable taking the request. The last entry repeats once the script runs out.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.script) - 1)
        step = self.script[index]
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(request)
        return step

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def config():
    return make_config()


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture(scope="session")
def server_config():
    return ServerConfig(
        username="demo",
        api_key="secret",
        tenant="demo-project",
        regions="DFW,ORD",
        log_level="WARNING",
        log_format="console",
    )


@pytest.fixture(scope="session")
def live_server(server_config):
    """Run the stand-in cloud on a free local port for the whole session."""
    port = _free_port()
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(server_config),
            host="127.0.0.1",
            port=port,
            log_level="warning",
            access_log=False,
        )
    )
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.time() + 10
    while not server.started:
        if time.time() > deadline or not thread.is_alive():
            pytest.skip("Stand-in cloud did not start")
        time.sleep(0.05)

    yield f"http://127.0.0.1:{port}"

    server.should_exit = True
    thread.join(timeout=5)


@pytest.fixture
def reset_server_state(live_server):
    """Reset injected failures before and after each test."""
    httpx.post(f"{live_server}/fail/reset")
    yield
    httpx.post(f"{live_server}/fail/reset")
