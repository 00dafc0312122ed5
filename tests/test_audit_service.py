from datetime import timedelta

import pydantic
import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import AuditAction, AuditLog, User, utcnow
from dashboard.repositories.users import UsersRepository
from dashboard.services.audit import AuditEntry, AuditLogFilter, AuditService


async def test_log_persists_entry(db_session: AsyncSession, make_user, make_server) -> None:
    user = await make_user()
    server = await make_server(user)
    actor = await db_session.get(User, user.id)

    await AuditService(db_session).log(
        AuditEntry(
            action=AuditAction.CREATE_SERVER,
            resource_type="server",
            resource_id=server.public_id,
            details={"name": server.name},
            ip_address="10.0.0.1",
            user_agent="pytest",
            user=actor,
        )
    )

    logs, total = await AuditService(db_session).get_audit_logs()
    assert total == 1
    assert logs[0].action is AuditAction.CREATE_SERVER
    assert logs[0].details == {"name": "Main server"}
    assert logs[0].user.public_id == user.public_id


async def test_log_swallows_storage_errors(db_session: AsyncSession, monkeypatch) -> None:
    service = AuditService(db_session)

    async def _failing_commit() -> None:
        raise SQLAlchemyError("database is gone")

    monkeypatch.setattr(service.logs, "commit", _failing_commit)

    await service.log(AuditEntry(action=AuditAction.LOGIN))


async def test_get_audit_logs_filters_and_orders(db_session: AsyncSession, make_user) -> None:
    alice = await db_session.get(User, (await make_user(username="alice")).id)
    bob = await db_session.get(User, (await make_user(username="bob")).id)
    now = utcnow()
    db_session.add_all([
        AuditLog(action=AuditAction.LOGIN, user=alice, created_at=now - timedelta(days=2)),
        AuditLog(action=AuditAction.LOGOUT, user=alice, created_at=now - timedelta(days=1)),
        AuditLog(action=AuditAction.LOGIN, user=bob, created_at=now),
    ])
    await db_session.commit()
    service = AuditService(db_session)

    logs, total = await service.get_audit_logs()
    assert total == 3
    assert [log.user.username for log in logs] == ["bob", "alice", "alice"]

    logs, total = await service.get_audit_logs(AuditLogFilter(user_id=alice.public_id))
    assert total == 2

    logs, total = await service.get_audit_logs(AuditLogFilter(action=AuditAction.LOGIN))
    assert {log.user.username for log in logs} == {"alice", "bob"}

    logs, total = await service.get_audit_logs(
        AuditLogFilter(start_date=now - timedelta(hours=36), end_date=now - timedelta(hours=1))
    )
    assert [log.action for log in logs] == [AuditAction.LOGOUT]

    logs, total = await service.get_audit_logs(AuditLogFilter(page=2, items_per_page=2))
    assert total == 3
    assert len(logs) == 1


async def test_logs_survive_user_deletion(db_session: AsyncSession, make_user) -> None:
    user = await make_user()
    actor = await db_session.get(User, user.id)
    await AuditService(db_session).log(AuditEntry(action=AuditAction.LOGIN, user=actor))

    await UsersRepository(db_session).delete_by_public_id(user.public_id)
    db_session.expire_all()

    log = (await db_session.execute(select(AuditLog))).scalar_one()
    assert log.user_id is None


@pytest.mark.parametrize("field", ["page", "items_per_page"])
def test_audit_log_filter_rejects_non_positive_paging(field: str) -> None:
    with pytest.raises(pydantic.ValidationError):
        AuditLogFilter(**{field: 0})
