import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import Role
from dashboard.exceptions import NotFoundError, ValidationError
from dashboard.repositories.servers import (
    FindServersOptions,
    ServerData,
    ServerPatch,
    ServersRepository,
)


async def test_find_by_public_id_and_user_id_is_ownership_scoped(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    stranger = await make_user()
    server = await make_server(owner)
    repo = ServersRepository(db_session)

    found = await repo.find_by_public_id_and_user_id(server.public_id, owner.public_id)
    assert found is not None and found.id == server.id

    assert await repo.find_by_public_id_and_user_id(server.public_id, stranger.public_id) is None
    assert await repo.find_by_public_id_and_user_id("missing", owner.public_id) is None


async def test_find_by_user_id_orders_by_name(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    await make_server(owner, name="Zeta")
    await make_server(owner, name="Alpha")
    await make_server(await make_user(), name="Other user's")

    servers = await ServersRepository(db_session).find_by_user_id(owner.public_id)

    assert [s.name for s in servers] == ["Alpha", "Zeta"]


async def test_find_by_user_id_search_matches_name_or_url(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    await make_server(owner, name="Testing", base_url="https://a.example.com")
    await make_server(owner, name="Prod", base_url="https://test.example.com")
    await make_server(owner, name="Staging", base_url="https://b.example.com")

    servers = await ServersRepository(db_session).find_by_user_id(
        owner.public_id, FindServersOptions(search_term="test")
    )

    assert {s.name for s in servers} == {"Testing", "Prod"}


async def test_find_by_user_id_search_without_matches(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    await make_server(owner, name="Prod")

    servers = await ServersRepository(db_session).find_by_user_id(
        owner.public_id, FindServersOptions(search_term="test")
    )

    assert servers == []


async def test_find_by_user_id_paginates_and_populates_users(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    other = await make_user()
    for name in ("A", "B", "C"):
        await make_server(owner, other, name=name)

    servers = await ServersRepository(db_session).find_by_user_id(
        owner.public_id, FindServersOptions(limit=1, offset=1, populate_users=True)
    )

    assert [s.name for s in servers] == ["B"]
    assert {u.public_id for u in servers[0].users} == {owner.public_id, other.public_id}


async def test_create_server_assigns_it_to_the_user(db_session: AsyncSession, make_user) -> None:
    owner = await make_user()
    repo = ServersRepository(db_session)

    server = await repo.create_server(
        owner.public_id,
        ServerData(name="New Server", base_url="https://example.com", api_key="key"),
    )

    assert server.name == "New Server"
    assert server.base_url == "https://example.com"
    assert server.api_key == "key"
    assert server.public_id
    assert [u.public_id for u in server.users] == [owner.public_id]
    assert await repo.find_by_public_id_and_user_id(server.public_id, owner.public_id)


async def test_create_server_for_missing_user_fails(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await ServersRepository(db_session).create_server(
            "missing", ServerData(name="S", base_url="https://example.com", api_key="key")
        )


async def test_update_server_keeps_fields_absent_from_patch(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    server = await make_server(owner, name="Old", base_url="https://old.example.com", api_key="k1")

    updated = await ServersRepository(db_session).update_server(
        server.public_id, owner.public_id, ServerPatch(name="New")
    )

    assert updated.name == "New"
    assert updated.base_url == "https://old.example.com"
    assert updated.api_key == "k1"


async def test_update_server_for_other_user_returns_none(
    db_session: AsyncSession, make_user, make_server
) -> None:
    owner = await make_user()
    stranger = await make_user()
    server = await make_server(owner, name="Mine")
    repo = ServersRepository(db_session)

    assert await repo.update_server(server.public_id, stranger.public_id, ServerPatch(name="X")) is None
    assert await repo.update_server("missing", owner.public_id, ServerPatch(name="X")) is None


async def test_set_servers_for_user_replaces_assignments(
    db_session: AsyncSession, make_user, make_server
) -> None:
    admin = await make_user(role=Role.ADMIN)
    managed = await make_user(role=Role.MANAGED_USER)
    first = await make_server(admin, managed, name="First")
    second = await make_server(admin, name="Second")
    third = await make_server(admin, name="Third")
    repo = ServersRepository(db_session)

    await repo.set_servers_for_user(managed.public_id, [second.public_id, third.public_id])

    servers = await repo.find_by_user_id(managed.public_id)
    assert [s.name for s in servers] == ["Second", "Third"]
    assert await repo.find_by_public_id_and_user_id(first.public_id, managed.public_id) is None


async def test_set_servers_for_user_with_empty_list_clears_without_lookup(
    db_session: AsyncSession, make_user, make_server, monkeypatch
) -> None:
    admin = await make_user(role=Role.ADMIN)
    managed = await make_user(role=Role.MANAGED_USER)
    await make_server(admin, managed)
    repo = ServersRepository(db_session)

    async def _no_lookup(*args, **kwargs):
        raise AssertionError("servers should not be looked up")

    monkeypatch.setattr(repo, "find", _no_lookup)
    await repo.set_servers_for_user(managed.public_id, [])
    monkeypatch.undo()

    assert await repo.find_by_user_id(managed.public_id) == []


@pytest.mark.parametrize("servers", [[], ["any-server"]])
async def test_set_servers_for_admin_is_rejected(
    db_session: AsyncSession, make_user, make_server, servers
) -> None:
    admin = await make_user(role=Role.ADMIN)
    server = await make_server(admin)

    with pytest.raises(ValidationError):
        await ServersRepository(db_session).set_servers_for_user(admin.public_id, servers)

    assert await ServersRepository(db_session).find_by_public_id_and_user_id(
        server.public_id, admin.public_id
    )


async def test_set_servers_for_missing_user_raises_not_found(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await ServersRepository(db_session).set_servers_for_user("missing", ["a"])


async def test_delete_server(db_session: AsyncSession, make_user, make_server) -> None:
    owner = await make_user()
    stranger = await make_user()
    server = await make_server(owner)
    repo = ServersRepository(db_session)

    assert await repo.delete_server(server.public_id, stranger.public_id) is False
    assert await repo.delete_server(server.public_id, owner.public_id) is True
    assert await repo.find_by_public_id_and_user_id(server.public_id, owner.public_id) is None
