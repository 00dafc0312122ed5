"""API keys living on the Shlink server itself.

GET    /server/{server_id}/shlink-api-keys          List keys, with a short hint each
POST   /server/{server_id}/shlink-api-keys          Create, optionally registering it
DELETE /server/{server_id}/shlink-api-keys/{key}    Delete
"""

from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.api.api_keys import ApiKeyItem, api_key_item
from dashboard.api.deps import get_http_client, get_session, get_user_server
from dashboard.auth.sessions import SessionData
from dashboard.db.engine import get_db
from dashboard.db.models import Server
from dashboard.services.api_keys import ApiKeyRegistryService, CreateApiKeyInput
from dashboard.services.shlink import (
    CreateShlinkApiKeyInput,
    CreateShlinkApiKeyRole,
    ShlinkClient,
)

router = APIRouter()

KEY_HINT_LENGTH = 4


class ShlinkApiKeyItem(BaseModel):
    name: Optional[str]
    expiration_date: Optional[str]
    roles: list[dict[str, Any]]
    key_hint: str


class ShlinkApiKeyCreateRequest(BaseModel):
    name: Optional[str] = None
    expiration_date: Optional[datetime] = None
    roles: Optional[list[CreateShlinkApiKeyRole]] = None
    register_in_dashboard: bool = False
    service: str = "dashboard"
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


class ShlinkApiKeyCreateResponse(BaseModel):
    # Full key, shown only once
    key: str
    name: Optional[str]
    expiration_date: Optional[str]
    roles: list[dict[str, Any]]
    registry_entry: Optional[ApiKeyItem] = None


@router.get("", response_model=list[ShlinkApiKeyItem])
async def list_shlink_api_keys(
    server: Server = Depends(get_user_server),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    keys = await ShlinkClient(server, http_client).list_api_keys()
    return [
        ShlinkApiKeyItem(
            name=k.name,
            expiration_date=k.expiration_date,
            roles=[r.model_dump() for r in k.roles],
            key_hint=k.key[-KEY_HINT_LENGTH:],
        )
        for k in keys
    ]


@router.post("", response_model=ShlinkApiKeyCreateResponse, status_code=201)
async def create_shlink_api_key(
    body: ShlinkApiKeyCreateRequest,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    db: AsyncSession = Depends(get_db),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    """Create the key in Shlink. The full key is returned ONCE."""
    created = await ShlinkClient(server, http_client).create_api_key(
        CreateShlinkApiKeyInput(
            name=body.name,
            expiration_date=body.expiration_date.isoformat() if body.expiration_date else None,
            roles=body.roles,
        )
    )

    registry_entry = None
    if body.register_in_dashboard:
        entry = await ApiKeyRegistryService(db).create_api_key(
            session.public_id,
            server.public_id,
            CreateApiKeyInput(
                name=body.name or f"Generated {datetime.now(timezone.utc).isoformat()}",
                description="Generated via dashboard",
                key_hint=created.key[-KEY_HINT_LENGTH:],
                service=body.service,
                tags=body.tags,
                expires_at=body.expiration_date,
                notes=body.notes,
            ),
        )
        registry_entry = api_key_item(entry)

    return ShlinkApiKeyCreateResponse(
        key=created.key,
        name=created.name,
        expiration_date=created.expiration_date,
        roles=[r.model_dump() for r in created.roles],
        registry_entry=registry_entry,
    )


@router.delete("/{api_key}", status_code=204)
async def delete_shlink_api_key(
    api_key: str,
    server: Server = Depends(get_user_server),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    if not await ShlinkClient(server, http_client).delete_api_key(api_key):
        raise HTTPException(status_code=404, detail="API key not found")
