"""
Authenticated connection to a compute or object-store service.

This module contains the Connection class that ties the pieces together:
credentials and auth state, the negotiated service endpoint, the per-host
Transport, and the request operation every service call goes through.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from enum import Enum
from typing import Any, Optional

import httpx

from . import auth
from .config import OBJECT_STORE, VERSION, ConnectionConfig
from .exceptions import APIConnectionError, AuthenticationError
from .faults import raise_for_response
from .transport import Body, ChunkHandler, Transport, is_stream, rewind_point

DEFAULT_USER_AGENT = f"OpenStack Python API {VERSION}"


class SendOutcome(Enum):
    """Result of one pass through the send loop."""

    DONE = "done"
    AUTH_EXPIRED = "auth_expired"


class Connection:
    """
    A synchronous, authenticated client for one set of credentials.

    Features:
    - V1 or V2 login, chosen from the auth URL
    - One persistent connection per host, reopened after transport failures
    - Transparent re-authentication when a token expires (401)
    - Typed service faults for every non-2xx response

    A Connection handles one logical request at a time. Share it between
    threads only behind a lock, or give each worker its own.

    **Usage Example:**
    ```python
    config = ConnectionConfig(
        username="demo", api_key="secret",
        auth_url="https://identity.example.com/v2.0/", region="ORD",
    )
    with create_connection(config) as conn:
        servers = conn.get("/servers/detail").json()
    ```
    """

    def __init__(
        self,
        config: ConnectionConfig,
        http_transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config
        self.auth_token: Optional[str] = None
        self.authenticated = False
        self.service_host: Optional[str] = None
        self.service_port: Optional[int] = None
        self.service_scheme: Optional[str] = None
        self.service_path = ""

        # Setup logging
        self.logger = logging.getLogger(config.logging.logger_name)
        level = "DEBUG" if config.is_debug else config.logging.level
        self.logger.setLevel(getattr(logging, level.upper()))

        self.transport = Transport(config, http_transport, self.logger)

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close every persistent connection."""
        self.transport.close()

    # ---------------- auth state ----------------

    def authenticate(self) -> None:
        """Log in, replacing the token and service endpoint in place."""
        auth.authenticate(self)
        self.logger.info(
            f"Authenticated; service endpoint is "
            f"{self.service_scheme}://{self.service_host}:{self.service_port}"
            f"{self.service_path}"
        )

    def set_authenticated(self, token: str, endpoint: httpx.URL) -> None:
        self.auth_token = token
        self.service_host = endpoint.host
        self.service_port = auth.endpoint_port(endpoint)
        self.service_scheme = endpoint.scheme
        self.service_path = endpoint.path.rstrip("/")
        self.authenticated = True

    def invalidate(self) -> None:
        """Forget the current token."""
        self.auth_token = None
        self.authenticated = False

    # ---------------- requests ----------------

    def prepare_headers(
        self, headers: Optional[dict[str, str]] = None
    ) -> httpx.Headers:
        """
        Build request headers.

        Caller headers may add to, but never replace, the mandatory ones.
        Without caller headers the request is sent as JSON.
        """
        prepared = httpx.Headers(
            headers if headers is not None else {"Content-Type": "application/json"}
        )
        if self.authenticated and self.auth_token:
            prepared["X-Auth-Token"] = self.auth_token
            if self.config.service_type == OBJECT_STORE:
                prepared["X-Storage-Token"] = self.auth_token
        prepared["Connection"] = "Keep-Alive"
        prepared["User-Agent"] = self.config.user_agent or DEFAULT_USER_AGENT
        prepared["Accept"] = "application/json"
        return prepared

    def send(
        self,
        method: str,
        host: str,
        path: str,
        port: int,
        scheme: str,
        headers: Optional[dict[str, str]] = None,
        data: Body = None,
        attempts: int = 0,
        chunk_handler: Optional[ChunkHandler] = None,
    ) -> httpx.Response:
        """
        Send a request, re-authenticating and resending while the token is expired.

        Transport failures are retried by the Transport. A 401 leads to a new
        login and a resend with regenerated headers; any other response is
        returned as-is, whatever its status.

        Raises:
            APIConnectionError: Transport gave up, or the token expired with
                ``retry_auth`` disabled
            AuthenticationError: Re-authentication failed or hit
                ``max_reauth_attempts``
        """
        start = rewind_point(data)
        reauth_count = 0
        while True:
            if start is not None:
                data.seek(start)  # type: ignore[union-attr]
            response = self.transport.send(
                host,
                method,
                path,
                port,
                scheme,
                self.prepare_headers(headers),
                data,
                attempts=attempts,
                chunk_handler=chunk_handler,
            )
            outcome = (
                SendOutcome.AUTH_EXPIRED
                if response.status_code == 401
                else SendOutcome.DONE
            )
            if outcome is SendOutcome.DONE:
                return response

            if not self.config.retry_auth:
                raise APIConnectionError(
                    "Authentication token expired and you have requested not to retry",
                    host=host,
                    response=response,
                )
            limit = self.config.max_reauth_attempts
            if limit is not None and reauth_count >= limit:
                raise AuthenticationError(
                    f"Token still rejected after {reauth_count} re-authentications",
                    status_code=401,
                    response=response,
                )

            reauth_count += 1
            self.logger.info(
                f"Token rejected by {host} for {method} {path}; re-authenticating"
            )
            self.invalidate()
            self.authenticate()

    def request(
        self,
        method: str,
        path: str,
        server: Optional[str] = None,
        port: Optional[int] = None,
        scheme: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        data: Body = None,
        attempts: int = 0,
        chunk_handler: Optional[ChunkHandler] = None,
    ) -> httpx.Response:
        """
        Make a request against the service endpoint.

        ``path`` is relative to the negotiated service path. The target host,
        port and scheme default to the negotiated endpoint; when none has been
        negotiated yet the connection authenticates first.

        Args:
            method: HTTP method
            path: Path below the service path, e.g. ``/servers/detail``
            server: Host override
            port: Port override
            scheme: Scheme override
            headers: Extra headers (default ``Content-Type: application/json``)
            data: Request body, bytes/str or a readable stream
            attempts: Reconnects already spent
            chunk_handler: Receives a successful response body chunk by chunk

        Returns:
            The 2xx HTTP response

        Raises:
            APIStatusError: Subclass matching the service fault for non-2xx
        """
        if server is None and self.service_host is None:
            self.authenticate()

        response = self.send(
            method.upper(),
            server or self.service_host,  # type: ignore[arg-type]
            self.service_path + path,
            port or self.service_port,  # type: ignore[arg-type]
            scheme or self.service_scheme,  # type: ignore[arg-type]
            headers=headers,
            data=data,
            attempts=attempts,
            chunk_handler=chunk_handler,
        )
        raise_for_response(response)
        return response

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", path, **kwargs)

    def head(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("HEAD", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", path, **kwargs)

    def put_object(
        self,
        path: str,
        data: Body,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Upload an object body with PUT.

        A readable stream is sent with chunked transfer encoding so large
        uploads are never buffered; an in-memory payload gets a
        ``Content-Length``.
        """
        upload_headers = dict(headers or {})
        if not is_stream(data):
            payload = data.encode("utf-8") if isinstance(data, str) else (data or b"")
            upload_headers["Content-Length"] = str(len(payload))
            data = payload
        return self.request("PUT", path, headers=upload_headers, data=data, **kwargs)


@contextmanager
def create_connection(
    config: ConnectionConfig,
    http_transport: Optional[httpx.BaseTransport] = None,
) -> Generator[Connection, None, None]:
    """
    Context manager that authenticates a new Connection and closes it on exit.

    Args:
        config: Connection configuration

    Yields:
        Authenticated Connection instance
    """
    connection = Connection(config, http_transport)
    try:
        connection.authenticate()
        yield connection
    finally:
        connection.close()
