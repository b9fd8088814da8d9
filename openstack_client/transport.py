"""
Per-host persistent connections and the reconnecting send.

Each host key maps to one long-lived ``httpx.Client`` limited to a single
keep-alive connection. A transport failure never repairs a connection: the
client is closed, dropped from the map, and the next attempt opens a new one.
"""

import logging
from collections.abc import Iterator
from typing import Any, Callable, Optional, Union

import httpx

from .config import ConnectionConfig
from .exceptions import APIConnectionError
from .faults import is_success
from .retry_policies import RetryPolicy, TransientTransportError

CHUNK_SIZE = 65535

Body = Union[bytes, str, Any, None]
ChunkHandler = Callable[[bytes], None]

# Failures that mean the host cannot be reached at all; these are not retried
UNREACHABLE_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ProxyError,
    httpx.UnsupportedProtocol,
)


def is_stream(body: Body) -> bool:
    return body is not None and hasattr(body, "read")


def rewind_point(body: Body) -> Optional[int]:
    """
    Position a stream body must be rewound to before a resend.

    Returns None for in-memory bodies and for streams that cannot seek
    (pipes, sockets, stdin); those are resent from wherever they stand.
    """
    if not is_stream(body) or not hasattr(body, "seek"):
        return None
    seekable = getattr(body, "seekable", None)
    if seekable is not None and not seekable():
        return None
    try:
        return body.tell()
    except (OSError, AttributeError):
        return None


def iter_chunks(stream: Any, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Read a file-like object in fixed-size chunks for chunked transfer encoding."""
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


class Transport:
    """
    Owns the per-host connection map of one Connection.

    Not safe for concurrent use: one logical request at a time.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        http_transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self._http_transport = http_transport
        self._connections: dict[str, httpx.Client] = {}
        self._retry_policy = RetryPolicy(config.retry)
        self.logger = logger or logging.getLogger(config.logging.logger_name)

    def open_client(self, host: str, port: int, scheme: str) -> httpx.Client:
        """Create a client bound to one host, honouring proxy, TLS and timeouts."""
        kwargs: dict[str, Any] = {
            "base_url": f"{scheme}://{host}:{port}",
            "timeout": self.config.timeout.to_httpx_timeout(),
            "verify": self.config.verify,
            "limits": httpx.Limits(max_connections=1, max_keepalive_connections=1),
        }
        if self._http_transport is not None:
            kwargs["transport"] = self._http_transport
        elif self.config.proxy_url:
            kwargs["proxy"] = self.config.proxy_url
        return httpx.Client(**kwargs)

    def connection_for(self, host: str, port: int, scheme: str) -> httpx.Client:
        """Return the open connection for ``host``, opening it on first use."""
        client = self._connections.get(host)
        if client is None:
            self.logger.debug(f"Opening connection to {scheme}://{host}:{port}")
            client = self.open_client(host, port, scheme)
            self._connections[host] = client
        return client

    def has_connection(self, host: str) -> bool:
        return host in self._connections

    def discard(self, host: str) -> None:
        """Close and forget the connection for ``host``."""
        client = self._connections.pop(host, None)
        if client is not None:
            try:
                client.close()
            except httpx.HTTPError as e:
                self.logger.debug(f"Ignoring error closing connection to {host}: {e}")

    def close(self) -> None:
        """Close every open connection."""
        for host in list(self._connections):
            self.discard(host)

    def send(
        self,
        host: str,
        method: str,
        path: str,
        port: int,
        scheme: str,
        headers: Union[httpx.Headers, dict[str, str]],
        body: Body = None,
        attempts: int = 0,
        chunk_handler: Optional[ChunkHandler] = None,
    ) -> httpx.Response:
        """
        Send one request, reconnecting on transport failures.

        Any HTTP response, whatever its status, is returned unchanged.

        Args:
            host: Host key of the persistent connection
            method: HTTP method
            path: Absolute request path (query string allowed)
            port: Port used when the connection has to be opened
            scheme: ``http`` or ``https``
            headers: Complete request headers
            body: bytes/str payload, or a readable stream sent chunked
            attempts: Reconnects already spent by the caller
            chunk_handler: Receives the body of a successful response chunk by chunk.
                Once a chunk has been delivered the send is never retried, so
                the handler sees each byte at most once.

        Raises:
            APIConnectionError: Host unreachable, reconnect budget exhausted, or
                connection lost part way through a streamed response
        """
        start = rewind_point(body)

        def send_once() -> httpx.Response:
            if start is not None:
                body.seek(start)
            return self._send_once(
                host, method, path, port, scheme, headers, body, chunk_handler
            )

        return self._retry_policy.call(send_once, host, attempts)

    def _send_once(
        self,
        host: str,
        method: str,
        path: str,
        port: int,
        scheme: str,
        headers: Union[httpx.Headers, dict[str, str]],
        body: Body,
        chunk_handler: Optional[ChunkHandler],
    ) -> httpx.Response:
        client = self.connection_for(host, port, scheme)
        content = iter_chunks(body) if is_stream(body) else body
        try:
            if chunk_handler is None:
                response = client.request(method, path, headers=headers, content=content)
            else:
                response = self._stream(
                    client, host, method, path, headers, content, chunk_handler
                )
        except UNREACHABLE_ERRORS as e:
            self.discard(host)
            raise APIConnectionError(f"Unable to connect to {host}", host=host) from e
        except httpx.TransportError as e:
            self.discard(host)
            raise TransientTransportError(host, e) from e

        if self.config.is_debug:
            try:
                self._trace(method, path, body, response, streamed=chunk_handler is not None)
            except Exception:
                self.logger.warning("Debug trace failed", exc_info=True)
        return response

    def _stream(
        self,
        client: httpx.Client,
        host: str,
        method: str,
        path: str,
        headers: Union[httpx.Headers, dict[str, str]],
        content: Any,
        chunk_handler: ChunkHandler,
    ) -> httpx.Response:
        with client.stream(method, path, headers=headers, content=content) as response:
            if not is_success(response.status_code):
                # Error bodies are kept for the fault mapper
                response.read()
                return response

            delivered = 0
            try:
                for chunk in response.iter_bytes():
                    chunk_handler(chunk)
                    delivered += len(chunk)
            except httpx.TransportError as e:
                if not delivered:
                    raise
                # A resend would hand the same bytes to the handler again
                self.discard(host)
                raise APIConnectionError(
                    f"Connection to {host} lost after streaming {delivered} bytes",
                    host=host,
                ) from e
        return response

    def _trace(
        self,
        method: str,
        path: str,
        body: Body,
        response: httpx.Response,
        streamed: bool,
    ) -> None:
        self.logger.debug(f"REQUEST: {method} => {path}")
        if is_stream(body):
            self.logger.debug("<streamed request body>")
        elif body:
            self.logger.debug(body if isinstance(body, str) else repr(body))
        if streamed and is_success(response.status_code):
            self.logger.debug(f"RESPONSE: {response.status_code} <streamed>")
        else:
            self.logger.debug(f"RESPONSE: {response.status_code} {response.text}")
        self.logger.debug("-" * 40)
