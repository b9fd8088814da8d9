"""Object-store endpoints: containers of opaque objects per region."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request, Response

from cloud_server.faults import FaultException, get_server_state, require_token
from cloud_server.state import ServerState

logger = structlog.get_logger()
router = APIRouter(prefix="/storage/{region}", tags=["object-store"])


async def authorized(
    request: Request,
    region: str,
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
    x_storage_token: Optional[str] = Header(None, alias="X-Storage-Token"),
) -> str:
    """Dependency accepting either token header; returns the region."""
    await require_token(request, x_storage_token or x_auth_token)
    return region


@router.get("/{container}")
async def list_objects(
    container: str,
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    names = await state.store.list_objects(region, container)
    if names is None:
        raise FaultException(404, "itemNotFound", f"Container {container} not found")
    return [{"name": name} for name in names]


@router.put("/{container}/{name}", status_code=201)
async def put_object(
    container: str,
    name: str,
    request: Request,
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    """Store an object; chunked request bodies are read as they arrive."""
    chunks = []
    async for chunk in request.stream():
        chunks.append(chunk)
    data = b"".join(chunks)
    await state.store.put_object(region, container, name, data)
    logger.info(
        "Object stored",
        region=region,
        container=container,
        name=name,
        size=len(data),
        chunked=request.headers.get("Transfer-Encoding") == "chunked",
    )
    return {"name": name, "bytes": len(data)}


@router.get("/{container}/{name}")
async def get_object(
    container: str,
    name: str,
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    data = await state.store.get_object(region, container, name)
    if data is None:
        raise FaultException(404, "itemNotFound", f"Object {name} not found")
    return Response(content=data, media_type="application/octet-stream")


@router.head("/{container}/{name}")
async def head_object(
    container: str,
    name: str,
    region: str = Depends(authorized),
    state: ServerState = Depends(get_server_state),
):
    """Object metadata; a missing object is a bare 404 without a body."""
    data = await state.store.get_object(region, container, name)
    if data is None:
        return Response(status_code=404)
    return Response(status_code=200, headers={"X-Object-Bytes": str(len(data))})
