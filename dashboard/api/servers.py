"""Server management routes. Every user manages the servers assigned to them.

GET  /manage-servers/{page}                Paginated, searchable list
POST /manage-servers/create                Create a server assigned to the caller
POST /manage-servers/delete                Delete a server
POST /manage-servers/{server_id}/edit      Partial update
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from pydantic import BaseModel, Field, HttpUrl

from dashboard.api.deps import (
    client_ip,
    client_user_agent,
    get_audit_service,
    get_current_user,
    get_servers_repository,
    get_session,
)
from dashboard.auth.sessions import SessionData
from dashboard.db.models import AuditAction, Server, User
from dashboard.repositories.servers import (
    FindServersOptions,
    ServerData,
    ServerPatch,
    ServersRepository,
)
from dashboard.services.audit import AuditEntry, AuditService

router = APIRouter()

SERVERS_PER_PAGE = 20


# ── Schemas ───────────────────────────────────


class ServerItem(BaseModel):
    public_id: str
    name: str
    base_url: str


class ServersListResponse(BaseModel):
    servers: list[ServerItem]
    current_page: int


class ServerCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    base_url: HttpUrl
    api_key: str = Field(min_length=1, max_length=255)


class ServerEditRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    base_url: Optional[HttpUrl] = None
    api_key: Optional[str] = Field(default=None, min_length=1, max_length=255)


class ServerDeleteRequest(BaseModel):
    server_id: str


# ── Helpers ───────────────────────────────────


def server_item(server: Server) -> ServerItem:
    """Never expose the API key."""
    return ServerItem(public_id=server.public_id, name=server.name, base_url=server.base_url)


def _require_own_servers(session: SessionData = Depends(get_session)) -> SessionData:
    """Managed users only use the servers an admin assigns them."""
    if session.role.has_managed_servers:
        raise HTTPException(status_code=403, detail="Managed users cannot manage servers")
    return session


def _base_url(url: HttpUrl) -> str:
    return str(url).rstrip("/")


async def _audit(
    audit: AuditService, request: Request, action: AuditAction, actor: User,
    server: Optional[Server], resource_id: str,
) -> None:
    await audit.log(
        AuditEntry(
            action=action,
            resource_type="server",
            resource_id=resource_id,
            ip_address=client_ip(request),
            user_agent=client_user_agent(request),
            user=actor,
            server=server,
        )
    )


# ── Routes ────────────────────────────────────


@router.get("/{page}", response_model=ServersListResponse)
async def list_servers(
    page: int = Path(ge=1),
    search_term: Optional[str] = None,
    session: SessionData = Depends(get_session),
    servers: ServersRepository = Depends(get_servers_repository),
):
    found = await servers.find_by_user_id(
        session.public_id,
        FindServersOptions(
            limit=SERVERS_PER_PAGE,
            offset=(page - 1) * SERVERS_PER_PAGE,
            search_term=search_term,
        ),
    )
    return ServersListResponse(servers=[server_item(s) for s in found], current_page=page)


@router.post(
    "/create",
    response_model=ServerItem,
    status_code=201,
    dependencies=[Depends(_require_own_servers)],
)
async def create_server(
    body: ServerCreateRequest,
    request: Request,
    actor: User = Depends(get_current_user),
    servers: ServersRepository = Depends(get_servers_repository),
    audit: AuditService = Depends(get_audit_service),
):
    server = await servers.create_server(
        actor.public_id,
        ServerData(name=body.name, base_url=_base_url(body.base_url), api_key=body.api_key),
    )
    await _audit(audit, request, AuditAction.CREATE_SERVER, actor, server, server.public_id)
    return server_item(server)


@router.post("/delete", status_code=204, dependencies=[Depends(_require_own_servers)])
async def delete_server(
    body: ServerDeleteRequest,
    request: Request,
    actor: User = Depends(get_current_user),
    servers: ServersRepository = Depends(get_servers_repository),
    audit: AuditService = Depends(get_audit_service),
):
    if not await servers.delete_server(body.server_id, actor.public_id):
        raise HTTPException(status_code=404, detail=f"Server {body.server_id} not found")
    await _audit(audit, request, AuditAction.DELETE_SERVER, actor, None, body.server_id)


@router.post(
    "/{server_id}/edit",
    response_model=ServerItem,
    dependencies=[Depends(_require_own_servers)],
)
async def edit_server(
    server_id: str,
    body: ServerEditRequest,
    request: Request,
    actor: User = Depends(get_current_user),
    servers: ServersRepository = Depends(get_servers_repository),
    audit: AuditService = Depends(get_audit_service),
):
    patch = ServerPatch(
        name=body.name,
        base_url=_base_url(body.base_url) if body.base_url else None,
        api_key=body.api_key,
    )
    server = await servers.update_server(server_id, actor.public_id, patch)
    if server is None:
        raise HTTPException(status_code=404, detail=f"Server {server_id} not found")
    await _audit(audit, request, AuditAction.EDIT_SERVER, actor, server, server.public_id)
    return server_item(server)
