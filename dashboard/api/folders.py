"""Folders of the logged-in user on one server.

GET    /server/{server_id}/folders                                List with items
POST   /server/{server_id}/folders                                Create
GET    /server/{server_id}/folders/by-short-url/{short_url_id}    Folders holding a short URL
GET    /server/{server_id}/folders/{folder_id}                    One folder
PATCH  /server/{server_id}/folders/{folder_id}                    Rename / recolor
DELETE /server/{server_id}/folders/{folder_id}                    Delete with its items
POST   /server/{server_id}/folders/{folder_id}/items              Add short URL (idempotent)
DELETE /server/{server_id}/folders/{folder_id}/items/{short_url_id}  Remove short URL
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.api.deps import get_session, get_user_server
from dashboard.auth.sessions import SessionData
from dashboard.db.engine import get_db
from dashboard.db.models import Folder, FolderItem, Server
from dashboard.services.folders import (
    AddToFolderInput,
    CreateFolderInput,
    FoldersService,
    UpdateFolderInput,
)

router = APIRouter()


class FolderItemResponse(BaseModel):
    short_url_id: str
    short_code: str
    added_at: datetime


class FolderResponse(BaseModel):
    id: int
    name: str
    color: Optional[str]
    created_at: datetime
    items: Optional[list[FolderItemResponse]] = None


def _item(item: FolderItem) -> FolderItemResponse:
    return FolderItemResponse(
        short_url_id=item.short_url_id, short_code=item.short_code, added_at=item.added_at
    )


def _folder(folder: Folder, with_items: bool = True) -> FolderResponse:
    return FolderResponse(
        id=folder.id,
        name=folder.name,
        color=folder.color,
        created_at=folder.created_at,
        items=[_item(i) for i in folder.items] if with_items else None,
    )


def get_folders_service(db: AsyncSession = Depends(get_db)) -> FoldersService:
    return FoldersService(db)


@router.get("", response_model=list[FolderResponse])
async def list_folders(
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    return [_folder(f) for f in await folders.get_folders(session.public_id, server.public_id)]


@router.post("", response_model=FolderResponse, status_code=201)
async def create_folder(
    body: CreateFolderInput,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    return _folder(await folders.create_folder(session.public_id, server.public_id, body))


@router.get("/by-short-url/{short_url_id}", response_model=list[FolderResponse])
async def folders_for_short_url(
    short_url_id: str,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    found = await folders.get_folders_for_short_url(
        session.public_id, server.public_id, short_url_id
    )
    return [_folder(f, with_items=False) for f in found]


@router.get("/{folder_id}", response_model=FolderResponse)
async def get_folder(
    folder_id: int,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    folder = await folders.get_folder(folder_id, session.public_id, server.public_id)
    if folder is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    return _folder(folder)


@router.patch("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: int,
    body: UpdateFolderInput,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    folder = await folders.update_folder(folder_id, session.public_id, server.public_id, body)
    if folder is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    return _folder(folder)


@router.delete("/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: int,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    if not await folders.delete_folder(folder_id, session.public_id, server.public_id):
        raise HTTPException(status_code=404, detail="Folder not found")


@router.post("/{folder_id}/items", response_model=FolderItemResponse, status_code=201)
async def add_to_folder(
    folder_id: int,
    body: AddToFolderInput,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    item = await folders.add_to_folder(folder_id, session.public_id, server.public_id, body)
    if item is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    return _item(item)


@router.delete("/{folder_id}/items/{short_url_id}", status_code=204)
async def remove_from_folder(
    folder_id: int,
    short_url_id: str,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    folders: FoldersService = Depends(get_folders_service),
):
    removed = await folders.remove_from_folder(
        folder_id, session.public_id, server.public_id, short_url_id
    )
    if not removed:
        raise HTTPException(status_code=404, detail="Folder item not found")
