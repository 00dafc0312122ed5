"""User management routes (admins only).

Every route redirects to / when OIDC is the only sign-in method, since there
are no local users to manage then.

GET  /manage-users/{page}                      Paginated, searchable list
POST /manage-users/create                      Create user, returns its temp password ONCE
POST /manage-users/delete                      Delete user
POST /manage-users/{user_id}/edit              Edit display name and role
GET  /manage-users/{user_id}/servers           Servers assigned to a managed user
POST /manage-users/{user_id}/servers           Replace them
POST /manage-users/{user_id}/reset-password    New temp password, returned ONCE
"""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from pydantic import BaseModel

from dashboard.api.deps import (
    client_ip,
    client_user_agent,
    get_audit_service,
    get_current_user,
    get_servers_repository,
    get_users_service,
    require_admin,
    require_local_user_management,
)
from dashboard.api.servers import ServerItem, server_item
from dashboard.auth.sessions import SessionData
from dashboard.db.models import AuditAction, User
from dashboard.repositories.servers import FindServersOptions, ServersRepository
from dashboard.repositories.users import OrderBy
from dashboard.services.audit import AuditEntry, AuditService
from dashboard.services.users import UsersService

router = APIRouter(
    dependencies=[Depends(require_local_user_management), Depends(require_admin)],
)


# ── Schemas ───────────────────────────────────


class UserItem(BaseModel):
    public_id: str
    username: str
    display_name: Optional[str]
    role: str
    temp_password: bool
    created_at: datetime


class UsersListResponse(BaseModel):
    users: list[UserItem]
    total_users: int
    total_pages: int
    current_page: int


class UserCreateRequest(BaseModel):
    username: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[str] = None


class UserWithPasswordResponse(BaseModel):
    user: UserItem
    plain_text_password: str


class UserDeleteRequest(BaseModel):
    user_id: str


class UserEditRequest(BaseModel):
    display_name: Optional[str] = None
    role: Optional[str] = None


class UserServersRequest(BaseModel):
    servers: list[str]


# ── Helpers ───────────────────────────────────


def user_item(user: User) -> UserItem:
    return UserItem(
        public_id=user.public_id,
        username=user.username,
        display_name=user.display_name,
        role=user.role.value,
        temp_password=user.temp_password,
        created_at=user.created_at,
    )


async def _audit(
    audit: AuditService, request: Request, action: AuditAction, actor: User, resource_id: str,
    details: Optional[dict] = None,
) -> None:
    await audit.log(
        AuditEntry(
            action=action,
            resource_type="user",
            resource_id=resource_id,
            details=details,
            ip_address=client_ip(request),
            user_agent=client_user_agent(request),
            user=actor,
        )
    )


# ── Routes ────────────────────────────────────


@router.get("/{page}", response_model=UsersListResponse)
async def list_users(
    page: int = Path(ge=1),
    search_term: Optional[str] = None,
    order_by: Optional[str] = None,
    dir: Literal["ASC", "DESC"] = "ASC",
    users: UsersService = Depends(get_users_service),
):
    """List users, 20 per page. ``order_by`` names a user field."""
    order = OrderBy(field=order_by, dir=dir) if order_by else None
    result = await users.list_users(page=page, search_term=search_term, order_by=order)
    return UsersListResponse(
        users=[user_item(u) for u in result.users],
        total_users=result.total_users,
        total_pages=result.total_pages,
        current_page=page,
    )


@router.post("/create", response_model=UserWithPasswordResponse, status_code=201)
async def create_user(
    body: UserCreateRequest,
    request: Request,
    actor: User = Depends(get_current_user),
    users: UsersService = Depends(get_users_service),
    audit: AuditService = Depends(get_audit_service),
):
    """Create a user. The temporary password is returned ONCE."""
    user, plain_password = await users.create_user(body.model_dump(exclude_none=True))
    await _audit(
        audit, request, AuditAction.CREATE_USER, actor, user.public_id,
        {"username": user.username, "role": user.role.value},
    )
    return UserWithPasswordResponse(user=user_item(user), plain_text_password=plain_password)


@router.post("/delete", status_code=204)
async def delete_user(
    body: UserDeleteRequest,
    request: Request,
    session: SessionData = Depends(require_admin),
    actor: User = Depends(get_current_user),
    users: UsersService = Depends(get_users_service),
    audit: AuditService = Depends(get_audit_service),
):
    if body.user_id == session.public_id:
        raise HTTPException(status_code=400, detail="You cannot delete yourself")
    await users.delete_user(body.user_id)
    await _audit(audit, request, AuditAction.DELETE_USER, actor, body.user_id)


@router.post("/{user_id}/edit", response_model=UserItem)
async def edit_user(
    user_id: str,
    body: UserEditRequest,
    request: Request,
    actor: User = Depends(get_current_user),
    users: UsersService = Depends(get_users_service),
    audit: AuditService = Depends(get_audit_service),
):
    changes = body.model_dump(exclude_unset=True)
    user = await users.edit_user(user_id, changes)
    await _audit(
        audit, request, AuditAction.EDIT_USER, actor, user.public_id,
        {"fields": sorted(changes)},
    )
    return user_item(user)


@router.get("/{user_id}/servers", response_model=list[ServerItem])
async def get_user_servers(
    user_id: str,
    users: UsersService = Depends(get_users_service),
    servers: ServersRepository = Depends(get_servers_repository),
):
    user = await users.get_user_by_id(user_id)
    found = await servers.find_by_user_id(user.public_id, FindServersOptions())
    return [server_item(s) for s in found]


@router.post("/{user_id}/servers", response_model=list[ServerItem])
async def set_user_servers(
    user_id: str,
    body: UserServersRequest,
    request: Request,
    actor: User = Depends(get_current_user),
    servers: ServersRepository = Depends(get_servers_repository),
    audit: AuditService = Depends(get_audit_service),
):
    """Replace the servers a managed user can access."""
    await servers.set_servers_for_user(user_id, body.servers)
    await _audit(
        audit, request, AuditAction.EDIT_USER, actor, user_id,
        {"servers": body.servers},
    )
    return [server_item(s) for s in await servers.find_by_user_id(user_id)]


@router.post("/{user_id}/reset-password", response_model=UserWithPasswordResponse)
async def reset_password(
    user_id: str,
    request: Request,
    actor: User = Depends(get_current_user),
    users: UsersService = Depends(get_users_service),
    audit: AuditService = Depends(get_audit_service),
):
    """Generate a new temporary password. It is returned ONCE."""
    user, plain_password = await users.reset_user_password(user_id)
    await _audit(
        audit, request, AuditAction.EDIT_USER, actor, user.public_id,
        {"password_reset": True},
    )
    return UserWithPasswordResponse(user=user_item(user), plain_text_password=plain_password)
