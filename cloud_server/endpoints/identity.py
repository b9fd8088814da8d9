"""Identity endpoints: the V1 header handshake and the V2 token API."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Header, Request, Response

from cloud_server.config import ServerConfig
from cloud_server.faults import FaultException, get_server_state
from cloud_server.state import ServerState

logger = structlog.get_logger()
router = APIRouter(tags=["identity"])


def get_server_config(request: Request) -> ServerConfig:
    """Dependency to get the server configuration from app state."""
    return request.app.state.config


def base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def service_catalog(request: Request, config: ServerConfig) -> list[dict[str, Any]]:
    """Compute and object-store entries with one endpoint per configured region."""
    root = base_url(request)
    return [
        {
            "name": "cloudServersOpenStack",
            "type": "compute",
            "endpoints": [
                {"region": region, "publicURL": f"{root}/compute/{region.lower()}"}
                for region in config.region_list
            ],
        },
        {
            "name": "cloudFiles",
            "type": "object-store",
            "endpoints": [
                {"region": region, "publicURL": f"{root}/storage/{region.lower()}"}
                for region in config.region_list
            ],
        },
    ]


@router.get("/v1.0")
@router.get("/v1.0/", include_in_schema=False)
async def authenticate_v1(
    request: Request,
    x_auth_user: Optional[str] = Header(None, alias="X-Auth-User"),
    x_auth_key: Optional[str] = Header(None, alias="X-Auth-Key"),
    state: ServerState = Depends(get_server_state),
    config: ServerConfig = Depends(get_server_config),
):
    """
    V1 handshake.

    Credentials travel in ``X-Auth-User``/``X-Auth-Key``; the token and the
    endpoints of the first region come back as response headers.
    """
    if x_auth_user != config.username or x_auth_key != config.api_key:
        logger.info("V1 authentication rejected", user=x_auth_user)
        return Response(status_code=401)

    token = await state.tokens.issue()
    region = config.region_list[0].lower()
    root = base_url(request)
    logger.info("V1 authentication accepted", user=x_auth_user)
    return Response(
        status_code=204,
        headers={
            "X-Auth-Token": token,
            "X-Server-Management-Url": f"{root}/compute/{region}",
            "X-Storage-Url": f"{root}/storage/{region}",
        },
    )


def _credentials(payload: dict[str, Any], config: ServerConfig) -> bool:
    auth = payload.get("auth") or {}
    password = auth.get("passwordCredentials")
    if password is not None:
        return (
            password.get("username") == config.username
            and password.get("password") == config.api_key
            and auth.get("tenantName") == config.tenant
        )
    api_key = auth.get("RAX-KSKEY:apiKeyCredentials")
    if api_key is not None:
        return (
            api_key.get("username") == config.username
            and api_key.get("apiKey") == config.api_key
        )
    raise FaultException(400, "badRequest", "Unsupported credential type")


@router.post("/v2.0/tokens")
async def authenticate_v2(
    request: Request,
    payload: dict[str, Any] = Body(...),
    state: ServerState = Depends(get_server_state),
    config: ServerConfig = Depends(get_server_config),
):
    """V2 token API: JSON credentials in, token plus service catalog out."""
    if not _credentials(payload, config):
        logger.info("V2 authentication rejected")
        raise FaultException(401, "unauthorized", "Username or api key is invalid")

    token = await state.tokens.issue()
    logger.info("V2 authentication accepted", catalog_regions=config.region_list)
    return {
        "access": {
            "token": {"id": token, "tenant": {"id": config.tenant, "name": config.tenant}},
            "user": {"name": config.username},
            "serviceCatalog": service_catalog(request, config),
        }
    }
