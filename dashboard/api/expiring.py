"""Short URLs about to expire on one server.

GET /server/{server_id}/expiring    Expiring within ``days`` (default 30), soonest first
"""

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from dashboard.api.deps import get_http_client, get_user_server
from dashboard.db.models import Server
from dashboard.services.shlink import ExpiringShortUrl, ShlinkClient, find_expiring_short_urls

router = APIRouter()


class ExpiringResponse(BaseModel):
    server_id: str
    server_name: str
    expiring_urls: list[ExpiringShortUrl]


@router.get("", response_model=ExpiringResponse)
async def expiring_short_urls(
    days: int = Query(default=30, ge=1, le=365),
    server: Server = Depends(get_user_server),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    expiring = await find_expiring_short_urls(ShlinkClient(server, http_client), days)
    return ExpiringResponse(
        server_id=server.public_id,
        server_name=server.name,
        expiring_urls=expiring,
    )
