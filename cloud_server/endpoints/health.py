"""Health check endpoint implementation."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from cloud_server.faults import get_server_state
from cloud_server.state import ServerState

logger = structlog.get_logger()
router = APIRouter()


@router.get("/health")
async def health_check(
    state: ServerState = Depends(get_server_state),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Not subject to token checks or failure injection.
    """
    uptime = state.get_uptime_seconds()
    logger.debug("Health check requested", uptime_seconds=round(uptime, 2))
    return {"status": "ok", "uptime_seconds": round(uptime, 2)}
