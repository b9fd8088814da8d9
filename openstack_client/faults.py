"""
Translation of non-success responses into typed service faults.

Services report failures as a JSON object with exactly one top-level key
naming the fault kind::

    {"itemNotFound": {"message": "Instance could not be found", "code": 404}}

The key selects an ``APIStatusError`` subclass through ``FAULT_ERRORS``. When
the body is not JSON at all (proxies, HEAD requests, plain-text 404 pages),
the status code alone decides. The mapper is pure: it never retries and
never touches connection state.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

import httpx

from .exceptions import (
    APIStatusError,
    BackupOrResizeInProgressError,
    BadMediaTypeError,
    BadMethodError,
    BadRequestError,
    BuildInProgressError,
    ComputeFaultError,
    ItemNotFoundError,
    NotImplementedFaultError,
    OtherError,
    OverLimitError,
    ResizeNotAllowedError,
    ResourceStateConflictError,
    ServerCapacityUnavailableError,
    ServiceUnavailableError,
    UnauthorizedError,
)

_SUCCESS = re.compile(r"^20\d$")


class FaultKind(str, Enum):
    """Fault names a service may report, in their capitalised form."""

    COMPUTE_FAULT = "ComputeFault"
    SERVICE_UNAVAILABLE = "ServiceUnavailable"
    UNAUTHORIZED = "Unauthorized"
    BAD_REQUEST = "BadRequest"
    OVER_LIMIT = "OverLimit"
    BAD_MEDIA_TYPE = "BadMediaType"
    BAD_METHOD = "BadMethod"
    ITEM_NOT_FOUND = "ItemNotFound"
    BUILD_IN_PROGRESS = "BuildInProgress"
    SERVER_CAPACITY_UNAVAILABLE = "ServerCapacityUnavailable"
    BACKUP_OR_RESIZE_IN_PROGRESS = "BackupOrResizeInProgress"
    RESIZE_NOT_ALLOWED = "ResizeNotAllowed"
    NOT_IMPLEMENTED = "NotImplemented"
    RESOURCE_STATE_CONFLICT = "ResourceStateConflict"
    OTHER = "Other"

    @classmethod
    def lookup(cls, name: str) -> "FaultKind":
        """
        Resolve a fault key from a response body.

        Only the first letter is case-normalised, so ``itemNotFound`` and
        ``ItemNotFound`` both resolve while ``itemnotfound`` does not.

        Raises:
            ValueError: If the name is not a known fault kind
        """
        return cls(name[:1].upper() + name[1:])


FAULT_ERRORS: dict[FaultKind, type[APIStatusError]] = {
    FaultKind.COMPUTE_FAULT: ComputeFaultError,
    FaultKind.SERVICE_UNAVAILABLE: ServiceUnavailableError,
    FaultKind.UNAUTHORIZED: UnauthorizedError,
    FaultKind.BAD_REQUEST: BadRequestError,
    FaultKind.OVER_LIMIT: OverLimitError,
    FaultKind.BAD_MEDIA_TYPE: BadMediaTypeError,
    FaultKind.BAD_METHOD: BadMethodError,
    FaultKind.ITEM_NOT_FOUND: ItemNotFoundError,
    FaultKind.BUILD_IN_PROGRESS: BuildInProgressError,
    FaultKind.SERVER_CAPACITY_UNAVAILABLE: ServerCapacityUnavailableError,
    FaultKind.BACKUP_OR_RESIZE_IN_PROGRESS: BackupOrResizeInProgressError,
    FaultKind.RESIZE_NOT_ALLOWED: ResizeNotAllowedError,
    FaultKind.NOT_IMPLEMENTED: NotImplementedFaultError,
    FaultKind.RESOURCE_STATE_CONFLICT: ResourceStateConflictError,
    FaultKind.OTHER: OtherError,
}

NOT_FOUND_MESSAGE = "The resource could not be found"
CONFLICT_MESSAGE = "There was a conflict with the state of the resource"


@dataclass(frozen=True)
class FaultInfo:
    """Fault name and message extracted from an error body."""

    name: str
    message: str


class FaultParseError(ValueError):
    """The error body is not a fault document."""


def is_success(status_code: int) -> bool:
    """True for the 200-209 range the services use for success."""
    return bool(_SUCCESS.match(str(status_code)))


def parse_fault(body: Union[str, bytes]) -> FaultInfo:
    """
    Extract the fault name and message from an error body.

    Raises:
        FaultParseError: If the body is not JSON or has no single fault object
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FaultParseError(str(e)) from e

    if not isinstance(data, dict) or len(data) != 1:
        raise FaultParseError("expected exactly one top-level fault key")
    name, info = next(iter(data.items()))
    if not isinstance(info, dict) or "message" not in info:
        raise FaultParseError(f"fault {name!r} carries no message")
    return FaultInfo(name=name, message=str(info["message"]))


def _fallback_error(response: httpx.Response, detail: str) -> APIStatusError:
    status = response.status_code
    if status == 404:
        return ItemNotFoundError(NOT_FOUND_MESSAGE, status, response.text, response)
    if status == 409:
        return ResourceStateConflictError(
            CONFLICT_MESSAGE, status, response.text, response
        )
    return OtherError(
        f"Oops - not sure what happened: {detail}", status, response.text, response
    )


def error_from_response(response: httpx.Response) -> APIStatusError:
    """
    Build the typed error for a non-success response.

    The response must have been read (``response.content`` available).

    Args:
        response: Completed non-2xx HTTP response

    Returns:
        The APIStatusError subclass matching the fault in the body
    """
    status = response.status_code
    body = response.content

    if not body and status == 404:
        # HEAD requests come back without a body
        return ItemNotFoundError(NOT_FOUND_MESSAGE, status, "", response)

    try:
        fault = parse_fault(body)
    except FaultParseError as e:
        if isinstance(e.__cause__, (json.JSONDecodeError, UnicodeDecodeError)):
            return _fallback_error(response, str(e))
        return OtherError(
            f"The server returned status {status}", status, response.text, response
        )

    try:
        kind = FaultKind.lookup(fault.name)
    except ValueError:
        return OtherError(
            f"The server returned status {status}", status, response.text, response
        )
    return FAULT_ERRORS[kind](fault.message, status, response.text, response)


def raise_for_response(response: httpx.Response) -> None:
    """Raise the mapped APIStatusError unless the response is a success."""
    if is_success(response.status_code):
        return
    raise error_from_response(response)
