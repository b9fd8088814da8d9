"""Fault bodies in the services' JSON error format, and token checks."""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from cloud_server.state import ServerState

# Fault key served for each status code by injected failures
STATUS_FAULTS = {
    400: "badRequest",
    401: "unauthorized",
    404: "itemNotFound",
    405: "badMethod",
    409: "resourceStateConflict",
    413: "overLimit",
    415: "badMediaType",
    501: "notImplemented",
    503: "serviceUnavailable",
}


class FaultException(Exception):
    """Raised by endpoints to return a fault body."""

    def __init__(self, status_code: int, fault: str, message: str):
        self.status_code = status_code
        self.fault = fault
        self.message = message
        super().__init__(message)


def fault_response(status_code: int, fault: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={fault: {"message": message, "code": status_code}},
    )


def injected_response(status_code: int, plain_body: bool) -> Response:
    """Build the response for an injected failure."""
    if plain_body:
        return PlainTextResponse(
            f"{status_code} Injected failure\n\nThe server could not comply.\n\n   ",
            status_code=status_code,
        )
    fault = STATUS_FAULTS.get(status_code, "computeFault")
    return fault_response(status_code, fault, "Injected failure")


def get_server_state(request: Request) -> ServerState:
    """Dependency to get server state from app state."""
    return request.app.state.server_state


async def require_token(request: Request, token: Optional[str]) -> None:
    """
    Reject requests without a currently valid token, then serve any injected failure.

    Raises:
        FaultException: 401 for a missing/expired token
    """
    state = get_server_state(request)
    if not await state.tokens.is_valid(token):
        raise FaultException(401, "unauthorized", "This server could not verify that you are authorized")

    failure = await state.failure_manager.next_failure()
    if failure is not None:
        raise InjectedFailure(failure.status_code, failure.plain_body)


class InjectedFailure(Exception):
    """Raised to short-circuit a request with an injected failure response."""

    def __init__(self, status_code: int, plain_body: bool):
        self.status_code = status_code
        self.plain_body = plain_body
        super().__init__(f"Injected failure {status_code}")
