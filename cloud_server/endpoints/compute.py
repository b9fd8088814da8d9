"""Compute endpoints: a minimal server collection per region."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Header, Request, Response
from fastapi.responses import PlainTextResponse

from cloud_server.faults import FaultException, get_server_state, require_token
from cloud_server.state import ServerState

logger = structlog.get_logger()
router = APIRouter(prefix="/compute/{region}", tags=["compute"])


async def authorized(
    request: Request,
    region: str,
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> str:
    """Dependency validating the token and the region; returns the region."""
    await require_token(request, x_auth_token)
    known = [r.lower() for r in request.app.state.config.region_list]
    if region not in known:
        raise FaultException(404, "itemNotFound", f"Unknown region {region}")
    return region


@router.get("/servers")
async def list_servers(
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    servers = await state.store.list_servers(region)
    return {"region": region, "servers": servers}


@router.post("/servers", status_code=202)
async def create_server(
    payload: dict[str, Any] = Body(...),
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    """Create a server; it stays in BUILD until deleted."""
    name = (payload.get("server") or {}).get("name")
    if not name:
        raise FaultException(400, "badRequest", "Server name is not defined")
    server = await state.store.create_server(region, name)
    logger.info("Server created", region=region, server_id=server["id"])
    return {"server": server}


@router.get("/servers/{server_id}")
async def get_server(
    server_id: str,
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    server = await state.store.get_server(region, server_id)
    if server is None:
        raise FaultException(404, "itemNotFound", "The resource could not be found.")
    return {"server": server}


@router.delete("/servers/{server_id}")
async def delete_server(
    server_id: str,
    force: bool = False,
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    """
    Delete a server.

    Servers still in BUILD answer 409 with a plain-text body unless ``force``
    is set, mimicking a proxy page in front of the service.
    """
    server = await state.store.get_server(region, server_id)
    if server is None:
        raise FaultException(404, "itemNotFound", "The resource could not be found.")
    if server["status"] == "BUILD" and not force:
        return PlainTextResponse("409 Conflict\n\nServer is building.\n", status_code=409)
    await state.store.delete_server(region, server_id)
    return Response(status_code=204)
