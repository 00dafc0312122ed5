"""Favorites, folders, API keys and expiring short URLs under /server/{server_id}."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from dashboard.db.models import Role


@pytest.fixture
async def server_path(client: AsyncClient, make_user, make_server, authenticate) -> str:
    user = await make_user(role=Role.ADVANCED_USER)
    authenticate(user)
    server = await make_server(user, base_url="https://s.example.com", api_key="shlink-key")
    return f"/server/{server.public_id}"


async def test_favorites(client: AsyncClient, server_path: str) -> None:
    favorite = {"short_url_id": "abc", "short_code": "abc", "long_url": "https://example.com"}

    created = await client.post(f"{server_path}/favorites", json=favorite)
    assert created.status_code == 201
    again = await client.post(f"{server_path}/favorites", json=favorite)
    assert again.json()["id"] == created.json()["id"]

    assert (await client.get(f"{server_path}/favorites/abc")).json() == {"is_favorite": True}

    notes = await client.patch(f"{server_path}/favorites/abc", json={"notes": "check weekly"})
    assert notes.json()["notes"] == "check weekly"

    listed = await client.get(f"{server_path}/favorites")
    assert [f["short_code"] for f in listed.json()] == ["abc"]

    assert (await client.delete(f"{server_path}/favorites/abc")).status_code == 204
    assert (await client.delete(f"{server_path}/favorites/abc")).status_code == 404


async def test_folders(client: AsyncClient, server_path: str) -> None:
    created = await client.post(f"{server_path}/folders", json={"name": "Work", "color": "#00ff00"})
    assert created.status_code == 201
    folder_id = created.json()["id"]

    duplicated = await client.post(f"{server_path}/folders", json={"name": "Work"})
    assert duplicated.status_code == 409

    item = await client.post(
        f"{server_path}/folders/{folder_id}/items", json={"short_url_id": "abc", "short_code": "abc"}
    )
    assert item.status_code == 201

    folder = await client.get(f"{server_path}/folders/{folder_id}")
    assert [i["short_code"] for i in folder.json()["items"]] == ["abc"]

    containing = await client.get(f"{server_path}/folders/by-short-url/abc")
    assert [f["name"] for f in containing.json()] == ["Work"]

    renamed = await client.patch(f"{server_path}/folders/{folder_id}", json={"name": "Job"})
    assert renamed.json()["name"] == "Job"
    assert renamed.json()["color"] == "#00ff00"

    removed = await client.delete(f"{server_path}/folders/{folder_id}/items/abc")
    assert removed.status_code == 204

    assert (await client.delete(f"{server_path}/folders/{folder_id}")).status_code == 204
    assert (await client.get(f"{server_path}/folders/{folder_id}")).status_code == 404


async def test_api_key_registry(client: AsyncClient, server_path: str) -> None:
    expires_at = (datetime.now(timezone.utc) + timedelta(days=5)).isoformat()

    created = await client.post(
        f"{server_path}/api-keys",
        json={"name": "n8n", "key_hint": "...9f3a", "service": "n8n", "expires_at": expires_at},
    )
    assert created.status_code == 201
    key_id = created.json()["id"]

    services = await client.get(f"{server_path}/api-keys/services")
    assert "n8n" in services.json()

    expiring = await client.get(f"{server_path}/api-keys/expiring", params={"days": 7})
    assert [k["id"] for k in expiring.json()] == [key_id]

    by_service = await client.get(f"{server_path}/api-keys", params={"service": "zapier"})
    assert by_service.json() == []

    assert (await client.post(f"{server_path}/api-keys/{key_id}/usage")).status_code == 204
    fetched = await client.get(f"{server_path}/api-keys/{key_id}")
    assert fetched.json()["usage_count"] == 1

    updated = await client.patch(f"{server_path}/api-keys/{key_id}", json={"is_active": False})
    assert updated.json()["is_active"] is False

    assert (await client.delete(f"{server_path}/api-keys/{key_id}")).status_code == 204
    assert (await client.get(f"{server_path}/api-keys/{key_id}")).status_code == 404


async def test_shlink_api_keys(client: AsyncClient, server_path: str, upstream) -> None:
    upstream.add(
        "GET",
        "/rest/v3/api-keys",
        json={"apiKeys": {"data": [{"key": "0123456789abcdef", "name": "ci", "roles": []}]}},
    )
    upstream.add(
        "POST",
        "/rest/v3/api-keys",
        json={"key": "fedcba9876543210", "name": "bot", "expirationDate": None, "roles": []},
    )

    listed = await client.get(f"{server_path}/shlink-api-keys")
    assert listed.json() == [
        {"name": "ci", "expiration_date": None, "roles": [], "key_hint": "cdef"}
    ]

    created = await client.post(
        f"{server_path}/shlink-api-keys",
        json={"name": "bot", "register_in_dashboard": True, "service": "n8n"},
    )
    assert created.status_code == 201
    assert created.json()["key"] == "fedcba9876543210"
    assert created.json()["registry_entry"]["key_hint"] == "3210"

    registered = await client.get(f"{server_path}/api-keys")
    assert [k["name"] for k in registered.json()] == ["bot"]

    missing = await client.delete(f"{server_path}/shlink-api-keys/unknown")
    assert missing.status_code == 404


async def test_shlink_errors_map_to_bad_gateway(
    client: AsyncClient, server_path: str, upstream
) -> None:
    upstream.add("GET", "/rest/v3/api-keys", status_code=500, json={"title": "boom"})

    response = await client.get(f"{server_path}/shlink-api-keys")

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "shlink_api_error"


async def test_expiring_short_urls(client: AsyncClient, server_path: str, upstream) -> None:
    valid_until = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
    upstream.add(
        "GET",
        "/rest/v3/short-urls",
        json={"shortUrls": {"data": [{
            "shortCode": "abc",
            "shortUrl": "https://s.example.com/abc",
            "longUrl": "https://example.com",
            "title": "Launch",
            "meta": {"validUntil": valid_until},
        }]}},
    )

    response = await client.get(f"{server_path}/expiring", params={"days": 7})

    assert response.status_code == 200
    urls = response.json()["expiring_urls"]
    assert [u["short_code"] for u in urls] == ["abc"]
    assert urls[0]["days_until_expiration"] == 3
