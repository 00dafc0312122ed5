"""Per-user, per-server folders grouping short URLs."""

from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dashboard.db.models import Folder, FolderItem, Server, User, utcnow
from dashboard.exceptions import DuplicatedEntryError
from dashboard.repositories.base import BaseRepository
from dashboard.services.lookup import get_user_and_server


class CreateFolderInput(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    color: Optional[str] = Field(default=None, max_length=7)


class UpdateFolderInput(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    color: Optional[str] = Field(default=None, max_length=7)


class AddToFolderInput(BaseModel):
    short_url_id: str
    short_code: str


class FoldersService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.folders = BaseRepository(Folder, db)
        self.items = BaseRepository(FolderItem, db)

    @staticmethod
    def _scope(user_id: str, server_id: str) -> list:
        return [
            Folder.user.has(User.public_id == user_id),
            Folder.server.has(Server.public_id == server_id),
        ]

    async def get_folders(self, user_id: str, server_id: str) -> list[Folder]:
        return await self.folders.find(
            *self._scope(user_id, server_id),
            order_by=[Folder.name.asc()],
            options=[selectinload(Folder.items)],
        )

    async def get_folder(self, folder_id: int, user_id: str, server_id: str) -> Optional[Folder]:
        return await self.folders.find_one(
            Folder.id == folder_id,
            *self._scope(user_id, server_id),
            options=[selectinload(Folder.items)],
        )

    async def create_folder(
        self, user_id: str, server_id: str, data: CreateFolderInput
    ) -> Folder:
        """Create an empty folder.

        Raises:
            NotFoundError: The user or the server does not exist.
            DuplicatedEntryError: The user already has a folder with that name here.
        """
        user, server = await get_user_and_server(self.db, user_id, server_id)

        existing = await self.folders.count(
            *self._scope(user_id, server_id),
            Folder.name == data.name,
        )
        if existing:
            raise DuplicatedEntryError("name", "A folder with this name already exists")

        folder = self.folders.create(
            name=data.name,
            color=data.color or None,
            user=user,
            server=server,
            created_at=utcnow(),
            items=[],
        )
        self.folders.persist(folder)
        await self.folders.commit()
        return folder

    async def update_folder(
        self, folder_id: int, user_id: str, server_id: str, data: UpdateFolderInput
    ) -> Optional[Folder]:
        folder = await self.get_folder(folder_id, user_id, server_id)
        if folder is None:
            return None

        if data.name is not None and data.name != folder.name:
            taken = await self.folders.count(
                *self._scope(user_id, server_id),
                Folder.name == data.name,
            )
            if taken:
                raise DuplicatedEntryError("name", "A folder with this name already exists")
            folder.name = data.name
        if "color" in data.model_fields_set:
            # An empty color clears it
            folder.color = data.color or None

        await self.folders.commit()
        return folder

    async def delete_folder(self, folder_id: int, user_id: str, server_id: str) -> bool:
        folder = await self.get_folder(folder_id, user_id, server_id)
        if folder is None:
            return False
        await self.folders.delete(folder)
        return True

    async def add_to_folder(
        self, folder_id: int, user_id: str, server_id: str, data: AddToFolderInput
    ) -> Optional[FolderItem]:
        """Put a short URL in a folder. Adding it twice returns the existing item."""
        folder = await self.get_folder(folder_id, user_id, server_id)
        if folder is None:
            return None

        existing = await self.items.find_one(
            FolderItem.folder_id == folder.id,
            FolderItem.short_url_id == data.short_url_id,
        )
        if existing is not None:
            return existing

        item = self.items.create(
            short_url_id=data.short_url_id,
            short_code=data.short_code,
            added_at=utcnow(),
        )
        folder.items.append(item)
        await self.folders.commit()
        return item

    async def remove_from_folder(
        self, folder_id: int, user_id: str, server_id: str, short_url_id: str
    ) -> bool:
        folder = await self.get_folder(folder_id, user_id, server_id)
        if folder is None:
            return False

        item = next((i for i in folder.items if i.short_url_id == short_url_id), None)
        if item is None:
            return False

        folder.items.remove(item)
        await self.folders.commit()
        return True

    async def get_folders_for_short_url(
        self, user_id: str, server_id: str, short_url_id: str
    ) -> list[Folder]:
        """Folders of the user on this server that contain the short URL."""
        return await self.folders.find(
            *self._scope(user_id, server_id),
            Folder.items.any(FolderItem.short_url_id == short_url_id),
            order_by=[Folder.name.asc()],
        )
