"""
Exception hierarchy for the OpenStack client library.

Errors fall into four families, and each family has a different recovery
story for the caller:

```
OpenStackError (base exception)
├── ConfigurationError (bad options - raised before any network activity)
│   ├── MissingArgumentError
│   └── InvalidArgumentError
├── APIConnectionError (transport gave up, or auth retry disabled)
├── AuthenticationError (login handshake rejected / no usable endpoint)
└── APIStatusError (service fault from a completed HTTP exchange)
    ├── ComputeFaultError
    ├── ServiceUnavailableError
    ├── UnauthorizedError
    ├── BadRequestError
    ├── OverLimitError
    ├── BadMediaTypeError
    ├── BadMethodError
    ├── ItemNotFoundError
    ├── BuildInProgressError
    ├── ServerCapacityUnavailableError
    ├── BackupOrResizeInProgressError
    ├── ResizeNotAllowedError
    ├── NotImplementedFaultError
    ├── ResourceStateConflictError
    └── OtherError
```

**Exception Handling Strategy:**

```python
try:
    response = conn.request("GET", "/servers/detail")
except ItemNotFoundError:
    log.info("Server is gone")
except APIStatusError as e:
    log.error(f"Service fault {e.status_code}: {e.body}")
    raise
except APIConnectionError as e:
    # Transport already reconnected e.attempts times
    log.warning(f"Giving up on {e.host}")
    raise
```

Transport failures and expired tokens (401) are the only conditions the
client recovers from on its own. Everything else reaches the caller.
"""

from typing import Any, Optional, Union


class OpenStackError(Exception):
    """
    Base exception for all library errors.

    Attributes:
        message: Human-readable error description
        response: HTTP response object (if available)
        request: HTTP request object (if available)
    """

    def __init__(
        self,
        message: str = "",
        response: Optional[Any] = None,
        request: Optional[Any] = None,
    ):
        self.message = message
        self.response = response
        self.request = request
        super().__init__(message)


class ConfigurationError(OpenStackError):
    """
    A required option is missing or an option is invalid.

    Raised synchronously while building the configuration or right before
    authentication starts. Never retried.
    """

    pass


class MissingArgumentError(ConfigurationError):
    """A mandatory option (username, api_key, auth_url) was not supplied."""

    pass


class InvalidArgumentError(ConfigurationError):
    """An option was supplied but cannot be used (bad URL, unknown auth method)."""

    pass


class APIConnectionError(OpenStackError):
    """
    The client could not open or keep a connection to a host.

    **When This Occurs:**
    - The host refused the TCP connection or could not be resolved
    - The reconnect budget was exhausted after repeated resets/timeouts
    - The token expired and ``retry_auth`` was disabled

    Attributes:
        host: Host the client was talking to (if known)
        attempts: Reconnect attempts made before giving up (if any)
    """

    def __init__(
        self,
        message: str = "",
        host: Optional[str] = None,
        attempts: Optional[int] = None,
        response: Optional[Any] = None,
        request: Optional[Any] = None,
    ):
        self.host = host
        self.attempts = attempts
        super().__init__(message, response=response, request=request)


class AuthenticationError(OpenStackError):
    """
    The auth endpoint rejected the credentials or returned no usable endpoint.

    Attributes:
        status_code: Status of the auth response, when one was received
    """

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        response: Optional[Any] = None,
    ):
        self.status_code = status_code
        super().__init__(message, response=response)


class APIStatusError(OpenStackError):
    """
    Base for service faults returned by a completed HTTP exchange.

    Every subclass corresponds to one fault kind reported by the service in
    its JSON error body (``{"itemNotFound": {"message": ..., "code": 404}}``).

    Attributes:
        status_code: HTTP status of the response
        body: Raw response body, kept for diagnostics
    """

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        body: Union[str, bytes, None] = None,
        response: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, response=response)


class ComputeFaultError(APIStatusError):
    """Generic compute service fault."""


class ServiceUnavailableError(APIStatusError):
    """The service is temporarily unable to handle the request."""


class UnauthorizedError(APIStatusError):
    """The service refused the request for the current credentials."""


class BadRequestError(APIStatusError):
    """The request was malformed."""


class OverLimitError(APIStatusError):
    """A rate or absolute limit was exceeded."""


class BadMediaTypeError(APIStatusError):
    pass


class BadMethodError(APIStatusError):
    pass


class ItemNotFoundError(APIStatusError):
    """The requested resource does not exist."""


class BuildInProgressError(APIStatusError):
    """The server is still building."""


class ServerCapacityUnavailableError(APIStatusError):
    pass


class BackupOrResizeInProgressError(APIStatusError):
    pass


class ResizeNotAllowedError(APIStatusError):
    pass


class NotImplementedFaultError(APIStatusError):
    """The service does not implement the requested operation."""


class ResourceStateConflictError(APIStatusError):
    """The resource is in a state that conflicts with the request."""


class OtherError(APIStatusError):
    """A fault that could not be classified."""
