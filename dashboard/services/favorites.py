"""Per-user, per-server favorite short URLs."""

from typing import Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import Favorite, Server, User, utcnow
from dashboard.repositories.base import BaseRepository
from dashboard.services.lookup import get_user_and_server


class CreateFavoriteInput(BaseModel):
    short_url_id: str
    short_code: str
    long_url: str
    title: Optional[str] = None
    notes: Optional[str] = None


class FavoritesService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.favorites = BaseRepository(Favorite, db)

    @staticmethod
    def _scope(user_id: str, server_id: str) -> list:
        return [
            Favorite.user.has(User.public_id == user_id),
            Favorite.server.has(Server.public_id == server_id),
        ]

    async def _find(self, user_id: str, server_id: str, short_url_id: str) -> Optional[Favorite]:
        return await self.favorites.find_one(
            *self._scope(user_id, server_id),
            Favorite.short_url_id == short_url_id,
        )

    async def get_favorites(self, user_id: str, server_id: str) -> list[Favorite]:
        return await self.favorites.find(
            *self._scope(user_id, server_id),
            order_by=[Favorite.created_at.desc(), Favorite.id.desc()],
        )

    async def add_favorite(
        self, user_id: str, server_id: str, data: CreateFavoriteInput
    ) -> Favorite:
        """Favorite a short URL. Adding it twice returns the existing favorite,
        with its notes replaced when new ones are given.

        Raises:
            NotFoundError: The user or the server does not exist.
        """
        user, server = await get_user_and_server(self.db, user_id, server_id)

        existing = await self._find(user_id, server_id, data.short_url_id)
        if existing is not None:
            if "notes" in data.model_fields_set:
                existing.notes = data.notes
                await self.favorites.commit()
            return existing

        favorite = self.favorites.create(
            short_url_id=data.short_url_id,
            short_code=data.short_code,
            long_url=data.long_url,
            title=data.title,
            notes=data.notes,
            user=user,
            server=server,
            created_at=utcnow(),
        )
        self.favorites.persist(favorite)
        await self.favorites.commit()
        return favorite

    async def remove_favorite(self, user_id: str, server_id: str, short_url_id: str) -> bool:
        favorite = await self._find(user_id, server_id, short_url_id)
        if favorite is None:
            return False
        await self.favorites.delete(favorite)
        return True

    async def is_favorite(self, user_id: str, server_id: str, short_url_id: str) -> bool:
        count = await self.favorites.count(
            *self._scope(user_id, server_id),
            Favorite.short_url_id == short_url_id,
        )
        return count > 0

    async def update_favorite_notes(
        self, user_id: str, server_id: str, short_url_id: str, notes: Optional[str]
    ) -> Optional[Favorite]:
        favorite = await self._find(user_id, server_id, short_url_id)
        if favorite is None:
            return None
        favorite.notes = notes
        await self.favorites.commit()
        return favorite
