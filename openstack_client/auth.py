"""
Login handshakes against the identity endpoint.

Two incompatible protocols exist. ``select_authenticator`` picks one from the
auth URL path alone: a path ending in ``v2.0`` speaks the JSON token API
(``AuthV2``), anything else the header based handshake (``AuthV1``). Both
populate the connection's token and service endpoint in place, or raise.
"""

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Optional, Protocol

import httpx

from .config import API_KEY_AUTH, COMPUTE, OBJECT_STORE, PASSWORD_AUTH, default_port
from .exceptions import APIConnectionError, AuthenticationError, InvalidArgumentError
from .faults import is_success
from .transport import UNREACHABLE_ERRORS

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)

_V2_PATH = re.compile(r".*v2\.0/?$")

# V1 response header carrying the endpoint, per service type
V1_ENDPOINT_HEADERS = {
    COMPUTE: "X-Server-Management-Url",
    OBJECT_STORE: "X-Storage-Url",
}


class Authenticator(Protocol):
    def authenticate(self, connection: "Connection") -> None: ...


def parse_endpoint(url: Optional[str]) -> Optional[httpx.URL]:
    """Parse an endpoint URL, returning None when it has no host."""
    if not url:
        return None
    try:
        uri = httpx.URL(url)
    except httpx.InvalidURL:
        return None
    return uri if uri.host else None


def _auth_request(
    connection: "Connection", method: str, path: str, **kwargs: Any
) -> httpx.Response:
    """Run one request on a dedicated auth connection that is always closed."""
    config = connection.config
    host = config.auth_host
    with connection.transport.open_client(
        host, config.auth_port, config.auth_scheme
    ) as client:
        try:
            return client.request(method, path, **kwargs)
        except UNREACHABLE_ERRORS as e:
            raise APIConnectionError(f"Unable to connect to {host}", host=host) from e
        except httpx.TransportError as e:
            raise APIConnectionError(
                f"Connection to {host} failed during authentication: {e}", host=host
            ) from e


class AuthV1:
    """Header based handshake: credentials in, token and endpoint URL out."""

    def authenticate(self, connection: "Connection") -> None:
        config = connection.config
        endpoint_header = V1_ENDPOINT_HEADERS.get(config.service_type)
        if endpoint_header is None:
            raise InvalidArgumentError(
                f"Invalid service_type parameter: {config.service_type}"
            )

        response = _auth_request(
            connection,
            "GET",
            config.auth_path,
            headers={"X-Auth-User": config.username, "X-Auth-Key": config.api_key},
        )
        if not is_success(response.status_code):
            connection.invalidate()
            raise AuthenticationError(
                f"Authentication failed with response code {response.status_code}",
                status_code=response.status_code,
                response=response,
            )

        uri = parse_endpoint(response.headers.get(endpoint_header))
        if uri is None:
            raise AuthenticationError(
                f"Unexpected response from {config.auth_host} - couldn't get "
                f"service URLs: \"x-server-management-url\" is: "
                f"{response.headers.get('X-Server-Management-Url')} and "
                f"\"x-storage-url\" is: {response.headers.get('X-Storage-Url')}",
                status_code=response.status_code,
                response=response,
            )
        token = response.headers.get("X-Auth-Token")
        if not token:
            raise AuthenticationError(
                f"Unexpected response from {config.auth_host} - no X-Auth-Token",
                status_code=response.status_code,
                response=response,
            )
        connection.set_authenticated(token, uri)


class AuthV2:
    """JSON token API: credentials posted to ``<auth path>/tokens``, catalog back."""

    def credentials(self, connection: "Connection") -> dict[str, Any]:
        config = connection.config
        if config.auth_method == PASSWORD_AUTH:
            return {
                "auth": {
                    "passwordCredentials": {
                        "username": config.username,
                        "password": config.api_key,
                    },
                    "tenantName": config.tenant_name,
                }
            }
        if config.auth_method == API_KEY_AUTH:
            return {
                "auth": {
                    "RAX-KSKEY:apiKeyCredentials": {
                        "username": config.username,
                        "apiKey": config.api_key,
                    }
                }
            }
        raise InvalidArgumentError(f"Unrecognized auth method {config.auth_method}")

    def authenticate(self, connection: "Connection") -> None:
        config = connection.config
        payload = self.credentials(connection)

        response = _auth_request(
            connection,
            "POST",
            config.auth_path.rstrip("/") + "/tokens",
            content=json.dumps(payload),
            headers={"Content-Type": "application/json"},
        )
        if not is_success(response.status_code):
            connection.invalidate()
            raise AuthenticationError(
                f"Authentication failed with response code {response.status_code}",
                status_code=response.status_code,
                response=response,
            )

        try:
            access = response.json()["access"]
            token = access["token"]["id"]
            public_url = self.select_endpoint(
                access["serviceCatalog"],
                config.service_type,
                config.service_name,
                config.region,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AuthenticationError(
                f"Unexpected response from {config.auth_host}: {e}",
                status_code=response.status_code,
                response=response,
            ) from e
        uri = parse_endpoint(public_url)
        if uri is None:
            if config.region:
                message = f"No API endpoint for region {config.region}"
            else:
                message = f"No API endpoint for service type {config.service_type}"
            raise AuthenticationError(
                message, status_code=response.status_code, response=response
            )
        connection.set_authenticated(token, uri)

    @staticmethod
    def select_endpoint(
        catalog: list[dict[str, Any]],
        service_type: str,
        service_name: Optional[str] = None,
        region: Optional[str] = None,
    ) -> Optional[str]:
        """
        Pick the public URL of the first matching catalog endpoint.

        The first service entry whose ``type`` (and ``name``, when given)
        matches wins. Within it, the first endpoint whose region matches
        case-insensitively is used, or the first endpoint when no region is
        requested. Entries and endpoints that are not JSON objects, and
        regions that are not strings, never match.

        Returns:
            The endpoint's ``publicURL``, or None if nothing matches

        Raises:
            TypeError: If the catalog itself is not a list
        """
        if not isinstance(catalog, list):
            raise TypeError(f"serviceCatalog is {type(catalog).__name__}, not a list")
        for service in catalog:
            if not isinstance(service, dict) or service.get("type") != service_type:
                continue
            if service_name and service.get("name") != service_name:
                continue
            endpoints = service.get("endpoints")
            if not isinstance(endpoints, list):
                endpoints = []
            endpoints = [ep for ep in endpoints if isinstance(ep, dict)]
            if region:
                endpoints = [
                    ep
                    for ep in endpoints
                    if isinstance(ep.get("region"), str)
                    and ep["region"].upper() == region.upper()
                ]
            if not endpoints:
                return None
            public_url = endpoints[0].get("publicURL")
            return public_url if isinstance(public_url, str) else None
        return None


def select_authenticator(auth_path: str) -> Authenticator:
    """Choose the protocol from the auth URL path."""
    if _V2_PATH.match(auth_path or ""):
        return AuthV2()
    return AuthV1()


def authenticate(connection: "Connection") -> None:
    """
    Log in and update the connection's token and service endpoint in place.

    Raises:
        InvalidArgumentError: Options the chosen protocol cannot use
        AuthenticationError: Credentials rejected or no usable endpoint
        APIConnectionError: The auth host could not be reached
    """
    authenticator = select_authenticator(connection.config.auth_path)
    logger.info(
        f"Authenticating {connection.config.username} against "
        f"{connection.config.auth_host} with {type(authenticator).__name__}"
    )
    authenticator.authenticate(connection)


def endpoint_port(uri: httpx.URL) -> int:
    return uri.port or default_port(uri.scheme)
