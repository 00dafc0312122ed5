from httpx import AsyncClient

from dashboard.db.models import Role


async def test_audit_log_lists_actions_newest_first(
    client: AsyncClient, make_user, authenticate
) -> None:
    admin = await make_user(username="root", role=Role.ADMIN)
    authenticate(admin)
    await client.post("/manage-users/create", json={"username": "bob", "role": "managed-user"})
    await client.post(
        "/manage-servers/create",
        json={"name": "Main", "base_url": "https://s.example.com", "api_key": "secret"},
    )

    response = await client.get("/admin/audit-log")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["total_pages"] == 1
    assert [log["action"] for log in data["logs"]] == ["create_server", "create_user"]
    assert data["logs"][0]["server_name"] == "Main"
    assert data["logs"][1]["username"] == "root"
    assert data["logs"][1]["details"] == {"username": "bob", "role": "managed-user"}


async def test_audit_log_filters_by_action(client: AsyncClient, make_user, authenticate) -> None:
    authenticate(await make_user(role=Role.ADMIN))
    await client.post("/manage-users/create", json={"username": "bob", "role": "managed-user"})
    await client.post("/manage-users/create", json={"username": "eve", "role": "managed-user"})

    created = await client.get("/admin/audit-log", params={"action": "create_user"})
    deleted = await client.get("/admin/audit-log", params={"action": "delete_user"})

    assert created.json()["total"] == 2
    assert deleted.json()["total"] == 0
    assert deleted.json()["total_pages"] == 0


async def test_audit_log_requires_admin(client: AsyncClient, make_user, authenticate) -> None:
    authenticate(await make_user(role=Role.ADVANCED_USER))

    response = await client.get("/admin/audit-log")

    assert response.status_code == 403
