"""
Configuration system for the OpenStack client library.

Provides Pydantic-based configuration for credentials, transport timeouts,
reconnect behavior and logging, plus environment-driven settings loading.
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from .exceptions import InvalidArgumentError, MissingArgumentError

VERSION = "1.0.0"

PASSWORD_AUTH = "password"
API_KEY_AUTH = "rax-kskey"

COMPUTE = "compute"
OBJECT_STORE = "object-store"

_DEFAULT_PORTS = {"http": 80, "https": 443}


def default_port(scheme: str) -> int:
    return _DEFAULT_PORTS.get(scheme, 80)


class TimeoutConfig(BaseModel):
    """HTTP timeout configuration."""

    connect: float = Field(default=60.0, description="Connection timeout in seconds")
    read: float = Field(default=60.0, description="Read timeout in seconds")
    write: float = Field(default=60.0, description="Write timeout in seconds")
    pool: float = Field(default=5.0, description="Pool timeout in seconds")

    def to_httpx_timeout(self) -> httpx.Timeout:
        """Convert to httpx.Timeout object."""
        return httpx.Timeout(
            connect=self.connect, read=self.read, write=self.write, pool=self.pool
        )


class RetryConfig(BaseModel):
    """
    Reconnect configuration for transport-level failures.

    The defaults reconnect immediately, up to five times after the first send.
    """

    max_attempts: int = Field(
        default=5, ge=0, description="Reconnect attempts after the first send"
    )
    min_wait_seconds: float = Field(
        default=0.0, ge=0, description="Minimum wait time between reconnects"
    )
    max_wait_seconds: float = Field(
        default=0.0, ge=0, description="Maximum wait time between reconnects"
    )
    multiplier: float = Field(default=1.0, description="Exponential backoff multiplier")
    jitter: bool = Field(default=False, description="Add random jitter to wait times")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)"
    )
    logger_name: str = Field(default="openstack_client", description="Logger name")


class ConnectionConfig(BaseModel):
    """
    Credentials and connection options for one logical client.

    The record is immutable once built. ``username``, ``api_key`` and
    ``auth_url`` are mandatory; leaving any of them out raises
    ``MissingArgumentError`` before anything touches the network.

    **Choosing the auth protocol:**

    The auth URL path decides the protocol. A path ending in ``v2.0`` (with or
    without a trailing slash) uses the JSON token API, anything else uses the
    header based V1 handshake:

    ```python
    config = ConnectionConfig(
        username="demo",
        api_key="secret",
        auth_url="https://identity.example.com:35357/v2.0/",
        tenant="demo-project",
        region="ORD",
    )
    ```

    **TLS verification:**

    ``verify_ssl`` defaults to ``False``: connections use TLS but do not verify
    the peer certificate. Set it to ``True`` (or pass a CA bundle path through
    ``ca_bundle``) wherever the endpoints carry valid certificates.

    Attributes:
        username: Account user name
        api_key: Password or API key, depending on ``auth_method``
        auth_url: Identity endpoint URL
        tenant: Tenant/project name (defaults to the username)
        auth_method: ``"password"`` or ``"rax-kskey"`` (V2 only)
        service_type: Catalog service type, ``"compute"`` or ``"object-store"``
        service_name: Optional catalog service name (V2 only)
        region: Optional endpoint region (V2 only, case-insensitive)
        retry_auth: Re-authenticate and resend when a request gets a 401
        max_reauth_attempts: Optional cap on re-authentications per request
        proxy_host: HTTP proxy host
        proxy_port: HTTP proxy port
        is_debug: Trace every request/response pair through the logger
    """

    username: str = Field(description="Account user name")
    api_key: str = Field(description="Password or API key")
    auth_url: str = Field(description="Identity endpoint URL")
    tenant: Optional[str] = Field(default=None, description="Tenant/project name")
    auth_method: str = Field(default=PASSWORD_AUTH, description="V2 credential type")
    service_type: str = Field(default=COMPUTE, description="Catalog service type")
    service_name: Optional[str] = Field(default=None, description="Catalog service name")
    region: Optional[str] = Field(default=None, description="Endpoint region")
    retry_auth: bool = Field(default=True, description="Re-authenticate on 401")
    max_reauth_attempts: Optional[int] = Field(
        default=None, ge=1, description="Cap on re-authentications per request"
    )
    proxy_host: Optional[str] = Field(default=None, description="HTTP proxy host")
    proxy_port: Optional[int] = Field(default=None, description="HTTP proxy port")
    is_debug: bool = Field(default=False, description="Trace requests and responses")
    verify_ssl: bool = Field(default=False, description="Verify TLS certificates")
    ca_bundle: Optional[str] = Field(default=None, description="CA bundle path")
    user_agent: Optional[str] = Field(default=None, description="Custom User-Agent")

    timeout: TimeoutConfig = Field(default_factory=TimeoutConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def check_required(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for name in ("username", "api_key", "auth_url"):
                if not data.get(name):
                    raise MissingArgumentError(f"Must supply a {name}")
        return data

    @field_validator("auth_url")
    @classmethod
    def check_auth_url(cls, v: str) -> str:
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise InvalidArgumentError(f"Invalid auth_url parameter: {e}") from e
        if not url.host or url.scheme not in _DEFAULT_PORTS:
            raise InvalidArgumentError(f"Invalid auth_url parameter: {v}")
        return v

    @property
    def auth_uri(self) -> httpx.URL:
        return httpx.URL(self.auth_url)

    @property
    def auth_host(self) -> str:
        return self.auth_uri.host

    @property
    def auth_scheme(self) -> str:
        return self.auth_uri.scheme

    @property
    def auth_port(self) -> int:
        return self.auth_uri.port or default_port(self.auth_scheme)

    @property
    def auth_path(self) -> str:
        return self.auth_uri.path

    @property
    def tenant_name(self) -> str:
        return self.tenant or self.username

    @property
    def proxy_url(self) -> Optional[str]:
        """Proxy URL for httpx, or None when no proxy host is configured."""
        if not self.proxy_host:
            return None
        if self.proxy_port:
            return f"http://{self.proxy_host}:{self.proxy_port}"
        return f"http://{self.proxy_host}"

    @property
    def verify(self) -> Any:
        """Value for httpx's ``verify`` argument."""
        if self.verify_ssl and self.ca_bundle:
            return self.ca_bundle
        return self.verify_ssl


class ConnectionSettings(BaseSettings):
    """
    Connection options read from ``OS_*`` environment variables.

    ```bash
    export OS_USERNAME=demo
    export OS_API_KEY=secret
    export OS_AUTH_URL=https://identity.example.com/v2.0/
    export OS_REGION=ORD
    ```

    ``to_config()`` validates the result the same way ``ConnectionConfig``
    does, so a missing username still fails before any network call.
    """

    username: Optional[str] = None
    api_key: Optional[str] = None
    auth_url: Optional[str] = None
    tenant: Optional[str] = None
    auth_method: Optional[str] = None
    service_type: Optional[str] = None
    service_name: Optional[str] = None
    region: Optional[str] = None
    retry_auth: Optional[bool] = None
    proxy_host: Optional[str] = None
    proxy_port: Optional[int] = None
    is_debug: Optional[bool] = None
    verify_ssl: Optional[bool] = None

    model_config = {
        "env_prefix": "OS_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def to_config(self, **overrides: Any) -> ConnectionConfig:
        """Build a ConnectionConfig, explicit overrides winning over the environment."""
        values = self.model_dump(exclude_none=True)
        values.update(overrides)
        return ConnectionConfig(**values)
