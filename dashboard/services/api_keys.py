"""Registry of API keys issued on Shlink servers.

Only metadata is stored: a short hint of the key, what service uses it and
when it expires. The key itself never reaches the database.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import ApiKeyRegistry, Server, User, utcnow
from dashboard.repositories.base import BaseRepository
from dashboard.services.lookup import get_user_and_server

COMMON_SERVICES = (
    "dashboard",
    "n8n",
    "zapier",
    "home-assistant",
    "api-client",
    "monitoring",
    "backup",
    "custom",
)


class CreateApiKeyInput(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    key_hint: str = Field(min_length=1, max_length=10)
    service: str = Field(min_length=1, max_length=50)
    tags: list[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None


class UpdateApiKeyInput(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    service: Optional[str] = Field(default=None, min_length=1, max_length=50)
    tags: Optional[list[str]] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class ApiKeyRegistryService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.keys = BaseRepository(ApiKeyRegistry, db)

    @staticmethod
    def _scope(user_id: str, server_id: str) -> list:
        return [
            ApiKeyRegistry.user.has(User.public_id == user_id),
            ApiKeyRegistry.server.has(Server.public_id == server_id),
        ]

    async def get_api_keys(self, user_id: str, server_id: str) -> list[ApiKeyRegistry]:
        return await self.keys.find(
            *self._scope(user_id, server_id),
            order_by=[ApiKeyRegistry.created_at.desc(), ApiKeyRegistry.id.desc()],
        )

    async def get_api_key(
        self, key_id: int, user_id: str, server_id: str
    ) -> Optional[ApiKeyRegistry]:
        return await self.keys.find_one(
            ApiKeyRegistry.id == key_id,
            *self._scope(user_id, server_id),
        )

    async def create_api_key(
        self, user_id: str, server_id: str, data: CreateApiKeyInput
    ) -> ApiKeyRegistry:
        """Register a key.

        Raises:
            NotFoundError: The user or the server does not exist.
        """
        user, server = await get_user_and_server(self.db, user_id, server_id)
        now = utcnow()
        api_key = self.keys.create(
            name=data.name,
            description=data.description,
            key_hint=data.key_hint,
            service=data.service,
            tags=list(data.tags),
            expires_at=data.expires_at,
            notes=data.notes,
            is_active=True,
            usage_count=0,
            last_used_at=None,
            user=user,
            server=server,
            created_at=now,
            updated_at=now,
        )
        self.keys.persist(api_key)
        await self.keys.commit()
        return api_key

    async def update_api_key(
        self, key_id: int, user_id: str, server_id: str, data: UpdateApiKeyInput
    ) -> Optional[ApiKeyRegistry]:
        api_key = await self.get_api_key(key_id, user_id, server_id)
        if api_key is None:
            return None

        provided = data.model_fields_set
        if data.name is not None:
            api_key.name = data.name
        if "description" in provided:
            api_key.description = data.description or None
        if data.service is not None:
            api_key.service = data.service
        if data.tags is not None:
            api_key.tags = list(data.tags)
        if "expires_at" in provided:
            # An explicit null removes the expiration
            api_key.expires_at = data.expires_at
        if data.is_active is not None:
            api_key.is_active = data.is_active
        if "notes" in provided:
            api_key.notes = data.notes or None

        api_key.updated_at = utcnow()
        await self.keys.commit()
        return api_key

    async def delete_api_key(self, key_id: int, user_id: str, server_id: str) -> bool:
        api_key = await self.get_api_key(key_id, user_id, server_id)
        if api_key is None:
            return False
        await self.keys.delete(api_key)
        return True

    async def record_usage(self, key_id: int, user_id: str, server_id: str) -> bool:
        api_key = await self.get_api_key(key_id, user_id, server_id)
        if api_key is None:
            return False

        now = utcnow()
        api_key.last_used_at = now
        api_key.usage_count += 1
        api_key.updated_at = now
        await self.keys.commit()
        return True

    async def get_expiring_soon(
        self, user_id: str, server_id: str, days_ahead: int = 30
    ) -> list[ApiKeyRegistry]:
        """Active keys expiring after now and within ``days_ahead`` days, soonest first."""
        now = utcnow()
        until = now + timedelta(days=days_ahead)
        return await self.keys.find(
            *self._scope(user_id, server_id),
            ApiKeyRegistry.is_active.is_(True),
            ApiKeyRegistry.expires_at.is_not(None),
            ApiKeyRegistry.expires_at > now,
            ApiKeyRegistry.expires_at <= until,
            order_by=[ApiKeyRegistry.expires_at.asc()],
        )

    async def get_by_service(
        self, user_id: str, server_id: str, service: str
    ) -> list[ApiKeyRegistry]:
        return await self.keys.find(
            *self._scope(user_id, server_id),
            ApiKeyRegistry.service == service,
            order_by=[ApiKeyRegistry.created_at.desc(), ApiKeyRegistry.id.desc()],
        )
