"""Shared FastAPI dependencies for the routers."""

from typing import Optional

import httpx
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.auth.sessions import SessionData
from dashboard.config import Settings, get_settings
from dashboard.db.engine import get_db
from dashboard.db.models import Role, Server, User
from dashboard.repositories.servers import ServersRepository
from dashboard.repositories.users import UsersRepository
from dashboard.services.audit import AuditService
from dashboard.services.users import UsersService


def get_session(request: Request) -> SessionData:
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return session


def require_admin(session: SessionData = Depends(get_session)) -> SessionData:
    if session.role != Role.ADMIN:
        raise HTTPException(status_code=403, detail="Admin role required")
    return session


def require_local_user_management(settings: Settings = Depends(get_settings)) -> None:
    """Send users home when OIDC is the only way to sign in."""
    if not settings.can_manage_local_users():
        raise HTTPException(status_code=302, headers={"Location": "/"})


def get_http_client(request: Request) -> Optional[httpx.AsyncClient]:
    """Outbound HTTP client shared by the app, if one was configured."""
    return getattr(request.app.state, "http_client", None)


def get_users_service(db: AsyncSession = Depends(get_db)) -> UsersService:
    return UsersService(UsersRepository(db))


def get_servers_repository(db: AsyncSession = Depends(get_db)) -> ServersRepository:
    return ServersRepository(db)


def get_audit_service(db: AsyncSession = Depends(get_db)) -> AuditService:
    return AuditService(db)


async def get_current_user(
    session: SessionData = Depends(get_session),
    users: UsersService = Depends(get_users_service),
) -> User:
    user = await users.users.find_by_public_id(session.public_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Session user no longer exists")
    return user


async def get_user_server(
    server_id: str,
    session: SessionData = Depends(get_session),
    servers: ServersRepository = Depends(get_servers_repository),
) -> Server:
    """The server from the path, if the logged-in user may act on it."""
    server = await servers.find_by_public_id_and_user_id(server_id, session.public_id)
    if server is None:
        raise HTTPException(status_code=404, detail=f"Server {server_id} not found")
    return server


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def client_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")
