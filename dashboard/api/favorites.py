"""Favorite short URLs of the logged-in user on one server.

GET    /server/{server_id}/favorites                   List, newest first
POST   /server/{server_id}/favorites                   Add (idempotent)
GET    /server/{server_id}/favorites/{short_url_id}    Whether it is a favorite
PATCH  /server/{server_id}/favorites/{short_url_id}    Update notes
DELETE /server/{server_id}/favorites/{short_url_id}    Remove
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.api.deps import get_session, get_user_server
from dashboard.auth.sessions import SessionData
from dashboard.db.engine import get_db
from dashboard.db.models import Favorite, Server
from dashboard.services.favorites import CreateFavoriteInput, FavoritesService

router = APIRouter()


class FavoriteItem(BaseModel):
    id: int
    short_url_id: str
    short_code: str
    long_url: str
    title: Optional[str]
    notes: Optional[str]
    created_at: datetime


class IsFavoriteResponse(BaseModel):
    is_favorite: bool


class NotesRequest(BaseModel):
    notes: Optional[str] = None


def _item(f: Favorite) -> FavoriteItem:
    return FavoriteItem(
        id=f.id,
        short_url_id=f.short_url_id,
        short_code=f.short_code,
        long_url=f.long_url,
        title=f.title,
        notes=f.notes,
        created_at=f.created_at,
    )


def get_favorites_service(db: AsyncSession = Depends(get_db)) -> FavoritesService:
    return FavoritesService(db)


@router.get("", response_model=list[FavoriteItem])
async def list_favorites(
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return [_item(f) for f in await favorites.get_favorites(session.public_id, server.public_id)]


@router.post("", response_model=FavoriteItem, status_code=201)
async def add_favorite(
    body: CreateFavoriteInput,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    favorite = await favorites.add_favorite(session.public_id, server.public_id, body)
    return _item(favorite)


@router.get("/{short_url_id}", response_model=IsFavoriteResponse)
async def is_favorite(
    short_url_id: str,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    return IsFavoriteResponse(
        is_favorite=await favorites.is_favorite(session.public_id, server.public_id, short_url_id)
    )


@router.patch("/{short_url_id}", response_model=FavoriteItem)
async def update_notes(
    short_url_id: str,
    body: NotesRequest,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    favorite = await favorites.update_favorite_notes(
        session.public_id, server.public_id, short_url_id, body.notes
    )
    if favorite is None:
        raise HTTPException(status_code=404, detail="Favorite not found")
    return _item(favorite)


@router.delete("/{short_url_id}", status_code=204)
async def remove_favorite(
    short_url_id: str,
    server: Server = Depends(get_user_server),
    session: SessionData = Depends(get_session),
    favorites: FavoritesService = Depends(get_favorites_service),
):
    if not await favorites.remove_favorite(session.public_id, server.public_id, short_url_id):
        raise HTTPException(status_code=404, detail="Favorite not found")
