"""Async client for the REST API v3 of a Shlink server."""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from dashboard.db.models import Server
from dashboard.exceptions import ShlinkApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ShlinkApiKeyRole(BaseModel):
    role: str
    meta: dict[str, Any] = Field(default_factory=dict)


class ShlinkApiKey(BaseModel):
    key: str
    name: Optional[str] = None
    expiration_date: Optional[str] = Field(default=None, alias="expirationDate")
    roles: list[ShlinkApiKeyRole] = Field(default_factory=list)


class CreateShlinkApiKeyRole(BaseModel):
    role: Literal["AUTHORED_SHORT_URLS", "DOMAIN_SPECIFIC"]
    meta: Optional[dict[str, str]] = None


class CreateShlinkApiKeyInput(BaseModel):
    name: Optional[str] = None
    # ISO 8601 date
    expiration_date: Optional[str] = Field(default=None, serialization_alias="expirationDate")
    roles: Optional[list[CreateShlinkApiKeyRole]] = None


class ShlinkClient:
    """Talks to one Shlink server, authenticating with its API key.

    An ``httpx.AsyncClient`` can be injected; otherwise a short-lived one is
    opened per request.
    """

    def __init__(self, server: Server, http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = server.base_url.rstrip("/")
        self.api_key = server.api_key
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key, "Accept": "application/json"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}/rest/v3{path}"
        try:
            if self._http_client is not None:
                return await self._http_client.request(
                    method, url, headers=self._headers(), **kwargs
                )
            async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
                return await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(
                "Error contacting Shlink server",
                extra={"url": url, "error": str(e)},
            )
            raise ShlinkApiError(f"Could not reach Shlink server: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        logger.error(
            "Shlink request failed",
            extra={"action": action, "status": response.status_code, "error": response.text},
        )
        raise ShlinkApiError(
            f"Failed to {action}: {response.status_code}",
            upstream_status=response.status_code,
        )

    async def list_api_keys(self) -> list[ShlinkApiKey]:
        response = await self._request("GET", "/api-keys")
        self._raise_for_status(response, "list API keys")
        data = response.json()
        return [ShlinkApiKey.model_validate(item) for item in data["apiKeys"]["data"]]

    async def create_api_key(
        self, data: Optional[CreateShlinkApiKeyInput] = None
    ) -> ShlinkApiKey:
        payload = (data or CreateShlinkApiKeyInput()).model_dump(
            by_alias=True, exclude_none=True
        )
        response = await self._request("POST", "/api-keys", json=payload)
        self._raise_for_status(response, "create API key")
        logger.info(
            "Created new API key in Shlink",
            extra={
                "key_name": payload.get("name", "unnamed"),
                "has_expiration": "expirationDate" in payload,
            },
        )
        return ShlinkApiKey.model_validate(response.json())

    async def delete_api_key(self, api_key: str) -> bool:
        """Delete a key. Returns False when Shlink does not know it."""
        response = await self._request("DELETE", f"/api-keys/{quote(api_key, safe='')}")
        if response.status_code == 404:
            return False
        self._raise_for_status(response, "delete API key")
        logger.info("Deleted API key from Shlink")
        return True

    async def list_short_urls(self, **params: Any) -> dict[str, Any]:
        """Return the raw ``shortUrls`` payload (``data`` plus ``pagination``)."""
        response = await self._request("GET", "/short-urls", params=params)
        self._raise_for_status(response, "list short URLs")
        return response.json()["shortUrls"]


class ExpiringShortUrl(BaseModel):
    short_code: str
    short_url: str
    long_url: str
    title: Optional[str] = None
    valid_until: datetime
    days_until_expiration: int


async def find_expiring_short_urls(
    client: ShlinkClient, days_ahead: int = 30, now: Optional[datetime] = None
) -> list[ExpiringShortUrl]:
    """Recent short URLs whose ``validUntil`` falls within the next ``days_ahead`` days.

    Only the 100 most recently created short URLs are inspected.
    """
    now = now or datetime.now(timezone.utc)
    until = now + timedelta(days=days_ahead)
    payload = await client.list_short_urls(itemsPerPage=100, orderBy="dateCreated-DESC")

    expiring = []
    for short_url in payload.get("data", []):
        raw_valid_until = (short_url.get("meta") or {}).get("validUntil")
        if not raw_valid_until:
            continue
        valid_until = datetime.fromisoformat(raw_valid_until)
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        if not now < valid_until <= until:
            continue
        expiring.append(
            ExpiringShortUrl(
                short_code=short_url["shortCode"],
                short_url=short_url["shortUrl"],
                long_url=short_url["longUrl"],
                title=short_url.get("title"),
                valid_until=valid_until,
                days_until_expiration=math.ceil((valid_until - now) / timedelta(days=1)),
            )
        )

    expiring.sort(key=lambda u: u.valid_until)
    return expiring
