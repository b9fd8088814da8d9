"""Failure injection endpoints for exercising client recovery paths."""

import structlog
from fastapi import APIRouter, Depends, Path, Query

from cloud_server.faults import get_server_state
from cloud_server.state import ServerState

logger = structlog.get_logger()
router = APIRouter(prefix="/fail", tags=["failure-injection"])


@router.post("/expire-tokens")
async def expire_tokens(state: ServerState = Depends(get_server_state)):
    """
    Invalidate every issued token.

    The next service request from any client gets a 401 and has to log in again.
    """
    expired = await state.tokens.expire_all()
    return {"message": f"Expired {expired} tokens", "expired": expired}


@router.post("/status/{status_code}/{count}")
async def set_failure_status(
    status_code: int = Path(..., description="Status code to serve", ge=400, le=599),
    count: int = Path(..., description="Number of requests that should fail", ge=0, le=1000),
    plain: bool = Query(False, description="Serve a plain-text body instead of a fault"),
    state: ServerState = Depends(get_server_state),
):
    """Make the next ``count`` authorized service requests fail with ``status_code``."""
    await state.failure_manager.set_failures(status_code, count, plain_body=plain)
    logger.info(
        "Failure injection configured",
        status_code=status_code,
        count=count,
        plain_body=plain,
        endpoint="/fail/status",
    )
    return {
        "message": f"Server will answer the next {count} requests with {status_code}",
        "status_code": status_code,
        "count": count,
    }


@router.post("/reset")
async def reset_failures(state: ServerState = Depends(get_server_state)):
    """Reset all failure injection."""
    await state.failure_manager.reset_failures()
    return {"message": "All failure modes have been reset"}


@router.get("/status")
async def get_failure_status(state: ServerState = Depends(get_server_state)):
    """Current failure injection state, for debugging."""
    status = await state.failure_manager.get_status()
    status["tokens_issued"] = state.tokens.issued_count
    return status
