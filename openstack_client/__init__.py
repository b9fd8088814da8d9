"""
OpenStack Python Client Core

Authenticated HTTP client for compute and object-storage services: V1/V2
login, per-host persistent connections with reconnects, transparent
re-authentication on expired tokens, and typed service faults.
"""

from .auth import AuthV1, AuthV2, authenticate, select_authenticator
from .config import (
    VERSION,
    ConnectionConfig,
    ConnectionSettings,
    LoggingConfig,
    RetryConfig,
    TimeoutConfig,
)
from .connection import Connection, create_connection
from .exceptions import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    BackupOrResizeInProgressError,
    BadMediaTypeError,
    BadMethodError,
    BadRequestError,
    BuildInProgressError,
    ComputeFaultError,
    ConfigurationError,
    InvalidArgumentError,
    ItemNotFoundError,
    MissingArgumentError,
    NotImplementedFaultError,
    OpenStackError,
    OtherError,
    OverLimitError,
    ResizeNotAllowedError,
    ResourceStateConflictError,
    ServerCapacityUnavailableError,
    ServiceUnavailableError,
    UnauthorizedError,
)
from .faults import FaultKind, error_from_response, raise_for_response

__all__ = [
    "Connection",
    "create_connection",
    "authenticate",
    "select_authenticator",
    "AuthV1",
    "AuthV2",
    "ConnectionConfig",
    "ConnectionSettings",
    "TimeoutConfig",
    "RetryConfig",
    "LoggingConfig",
    "FaultKind",
    "error_from_response",
    "raise_for_response",
    "OpenStackError",
    "ConfigurationError",
    "MissingArgumentError",
    "InvalidArgumentError",
    "APIConnectionError",
    "AuthenticationError",
    "APIStatusError",
    "ComputeFaultError",
    "ServiceUnavailableError",
    "UnauthorizedError",
    "BadRequestError",
    "OverLimitError",
    "BadMediaTypeError",
    "BadMethodError",
    "ItemNotFoundError",
    "BuildInProgressError",
    "ServerCapacityUnavailableError",
    "BackupOrResizeInProgressError",
    "ResizeNotAllowedError",
    "NotImplementedFaultError",
    "ResourceStateConflictError",
    "OtherError",
]

__version__ = VERSION
