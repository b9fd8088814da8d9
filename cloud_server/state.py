"""Thread-safe state for tokens, failure injection and stored resources."""

import asyncio
import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

logger = structlog.get_logger()


class TokenStore:
    """Issues and validates auth tokens."""

    def __init__(self):
        self._tokens: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self.issued_count = 0

    async def issue(self) -> str:
        async with self._lock:
            token = secrets.token_hex(16)
            self._tokens[token] = time.time()
            self.issued_count += 1
            logger.debug("Token issued", issued_count=self.issued_count)
            return token

    async def is_valid(self, token: Optional[str]) -> bool:
        async with self._lock:
            return token is not None and token in self._tokens

    async def expire_all(self) -> int:
        """Invalidate every issued token, returning how many were dropped."""
        async with self._lock:
            count = len(self._tokens)
            self._tokens.clear()
            logger.info("All tokens expired", expired=count)
            return count


@dataclass
class FailureConfig:
    """Configuration for failure injection."""

    status_code: int = 500
    remaining: int = 0
    plain_body: bool = False


class FailureStateManager:
    """Count-based injection of error responses on service endpoints."""

    def __init__(self):
        self._config = FailureConfig()
        self._lock = asyncio.Lock()

    async def next_failure(self) -> Optional[FailureConfig]:
        """
        Consume one injected failure.

        Returns:
            A snapshot of the failure to serve, or None when none is pending
        """
        async with self._lock:
            if self._config.remaining <= 0:
                return None
            self._config.remaining -= 1
            logger.debug(
                "Serving injected failure",
                status_code=self._config.status_code,
                remaining=self._config.remaining,
            )
            return FailureConfig(
                status_code=self._config.status_code,
                remaining=self._config.remaining,
                plain_body=self._config.plain_body,
            )

    async def set_failures(
        self, status_code: int, count: int, plain_body: bool = False
    ) -> None:
        async with self._lock:
            self._config = FailureConfig(
                status_code=status_code, remaining=max(0, count), plain_body=plain_body
            )
            logger.info(
                "Failure mode activated",
                status_code=status_code,
                count=self._config.remaining,
                plain_body=plain_body,
            )

    async def reset_failures(self) -> None:
        async with self._lock:
            self._config = FailureConfig()
            logger.info("All failure modes reset")

    async def get_status(self) -> dict:
        async with self._lock:
            return {
                "status_code": self._config.status_code,
                "remaining": self._config.remaining,
                "plain_body": self._config.plain_body,
            }


@dataclass
class CloudStore:
    """In-memory servers and objects, keyed by region."""

    servers: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    objects: dict[str, dict[str, dict[str, bytes]]] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def create_server(self, region: str, name: str) -> dict[str, Any]:
        async with self.lock:
            server = {"id": str(uuid.uuid4()), "name": name, "status": "BUILD"}
            self.servers.setdefault(region, {})[server["id"]] = server
            return server

    async def list_servers(self, region: str) -> list[dict[str, Any]]:
        async with self.lock:
            return list(self.servers.get(region, {}).values())

    async def get_server(self, region: str, server_id: str) -> Optional[dict[str, Any]]:
        async with self.lock:
            return self.servers.get(region, {}).get(server_id)

    async def delete_server(self, region: str, server_id: str) -> None:
        async with self.lock:
            self.servers.get(region, {}).pop(server_id, None)

    async def put_object(self, region: str, container: str, name: str, data: bytes) -> None:
        async with self.lock:
            self.objects.setdefault(region, {}).setdefault(container, {})[name] = data

    async def get_object(self, region: str, container: str, name: str) -> Optional[bytes]:
        async with self.lock:
            return self.objects.get(region, {}).get(container, {}).get(name)

    async def list_objects(self, region: str, container: str) -> Optional[list[str]]:
        async with self.lock:
            container_objects = self.objects.get(region, {}).get(container)
            return None if container_objects is None else sorted(container_objects)


class ServerState:
    """Global state container for the stand-in cloud."""

    def __init__(self):
        self.tokens = TokenStore()
        self.failure_manager = FailureStateManager()
        self.store = CloudStore()
        self._startup_time = time.time()

    def get_uptime_seconds(self) -> float:
        """Get server uptime in seconds."""
        return time.time() - self._startup_time
