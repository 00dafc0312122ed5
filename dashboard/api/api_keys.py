"""Registry of API keys the logged-in user tracks for one server.

GET    /server/{server_id}/api-keys                     List, optionally by service
POST   /server/{server_id}/api-keys                     Register a key
GET    /server/{server_id}/api-keys/services            Suggested service names
GET    /server/{server_id}/api-keys/expiring            Active keys expiring soon
GET    /server/{server_id}/api-keys/{key_id}            One key
PATCH  /server/{server_id}/api-keys/{key_id}            Partial update
DELETE /server/{server_id}/api-keys/{key_id}            Unregister
POST   /server/{server_id}/api-keys/{key_id}/usage      Record a use
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.api.deps import get_session, get_user_server
from dashboard.auth.sessions import SessionData
from dashboard.db.engine import get_db
from dashboard.db.models import ApiKeyRegistry, Server
from dashboard.services.api_keys import (
    COMMON_SERVICES,
    ApiKeyRegistryService,
    CreateApiKeyInput,
    UpdateApiKeyInput,
)

router = APIRouter()


class ApiKeyItem(BaseModel):
    id: int
    name: str
    description: Optional[str]
    key_hint: str
    service: str
    tags: list[str]
    expires_at: Optional[datetime]
    last_used_at: Optional[datetime]
    usage_count: int
    is_active: bool
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime


def api_key_item(k: ApiKeyRegistry) -> ApiKeyItem:
    return ApiKeyItem(
        id=k.id,
        name=k.name,
        description=k.description,
        key_hint=k.key_hint,
        service=k.service,
        tags=k.tags or [],
        expires_at=k.expires_at,
        last_used_at=k.last_used_at,
        usage_count=k.usage_count,
        is_active=k.is_active,
        notes=k.notes,
        created_at=k.created_at,
        updated_at=k.updated_at,
    )


def get_api_keys_service(db: AsyncSession = Depends(get_db)) -> ApiKeyRegistryService:
    return ApiKeyRegistryService(db)


@router.get("", response_model=list[ApiKeyItem])
async def list_api_keys(
    service: Optional[str] = None,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    if service:
        found = await keys.get_by_service(session.public_id, server.public_id, service)
    else:
        found = await keys.get_api_keys(session.public_id, server.public_id)
    return [api_key_item(k) for k in found]


@router.post("", response_model=ApiKeyItem, status_code=201)
async def register_api_key(
    body: CreateApiKeyInput,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    return api_key_item(await keys.create_api_key(session.public_id, server.public_id, body))


@router.get("/services", response_model=list[str], dependencies=[Depends(get_user_server)])
async def common_services():
    return list(COMMON_SERVICES)


@router.get("/expiring", response_model=list[ApiKeyItem])
async def expiring_api_keys(
    days: int = Query(default=30, ge=1, le=3650),
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    found = await keys.get_expiring_soon(session.public_id, server.public_id, days)
    return [api_key_item(k) for k in found]


@router.get("/{key_id}", response_model=ApiKeyItem)
async def get_api_key(
    key_id: int,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    api_key = await keys.get_api_key(key_id, session.public_id, server.public_id)
    if api_key is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return api_key_item(api_key)


@router.patch("/{key_id}", response_model=ApiKeyItem)
async def update_api_key(
    key_id: int,
    body: UpdateApiKeyInput,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    api_key = await keys.update_api_key(key_id, session.public_id, server.public_id, body)
    if api_key is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return api_key_item(api_key)


@router.delete("/{key_id}", status_code=204)
async def delete_api_key(
    key_id: int,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    if not await keys.delete_api_key(key_id, session.public_id, server.public_id):
        raise HTTPException(status_code=404, detail="API key not found")


@router.post("/{key_id}/usage", status_code=204)
async def record_usage(
    key_id: int,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    keys: ApiKeyRegistryService = Depends(get_api_keys_service),
):
    if not await keys.record_usage(key_id, session.public_id, server.public_id):
        raise HTTPException(status_code=404, detail="API key not found")
