"""Test fixtures for the Shlink dashboard backend.

Sets up an in-memory SQLite database, overrides the async engine and
session factory, and provides a FastAPI app and AsyncClient for tests.
Outbound HTTP (Shlink servers, OIDC provider) goes through a mock transport.
"""

import os
import uuid as _uuid
from collections.abc import AsyncGenerator
from typing import Any, Callable, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Ensure tests use an in-memory database and cheap password hashes
os.environ["SHLINK_DASHBOARD_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SHLINK_DASHBOARD_ENVIRONMENT"] = "test"
os.environ["SHLINK_DASHBOARD_SESSION_SECRETS"] = "test-secret-one,test-secret-two"
os.environ["SHLINK_DASHBOARD_PASSWORD_HASH_ROUNDS"] = "4"
os.environ["SHLINK_DASHBOARD_OIDC_ENABLED"] = "false"
os.environ["SHLINK_DASHBOARD_LOCAL_AUTH_ENABLED"] = "true"

from dashboard.auth.passwords import hash_password  # noqa: E402
from dashboard.auth.sessions import SessionData, encode_session  # noqa: E402
from dashboard.config import get_settings  # noqa: E402
from dashboard.db import engine as db_engine  # noqa: E402
from dashboard.db.engine import build_engine  # noqa: E402
from dashboard.db.models import Base, Role, Server, User, new_public_id, utcnow  # noqa: E402
from dashboard.main import create_app  # noqa: E402

DEFAULT_PASSWORD = "Sup3r-secret"


class MockUpstream:
    """Routes outbound requests by (method, path) to canned responses."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json: Any = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        self.routes[(method, path)] = handler or (
            lambda request: httpx.Response(status_code, json=json)
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"detail": "Not found"})
        return route(request)


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite engine with all tables created."""
    test_engine = build_engine("sqlite+aiosqlite://")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
def override_db_engine(
    engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    """Override global engine and async_session_factory used by app code."""
    db_engine.engine = engine
    db_engine.async_session_factory = session_factory


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def upstream() -> MockUpstream:
    return MockUpstream()


@pytest.fixture
async def http_client(upstream: MockUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def app(http_client: httpx.AsyncClient) -> Any:
    """FastAPI application whose outbound calls hit the mock upstream."""
    app = create_app()
    app.state.http_client = http_client
    return app


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def make_user(session_factory: async_sessionmaker[AsyncSession]):
    """Insert a user directly. Returns an async factory."""

    async def _make_user(
        username: Optional[str] = None,
        role: Role = Role.ADMIN,
        password: str = DEFAULT_PASSWORD,
        temp_password: bool = False,
        display_name: Optional[str] = None,
        oidc_subject: Optional[str] = None,
    ) -> User:
        async with session_factory() as session:
            user = User(
                public_id=new_public_id(),
                username=username or f"user-{_uuid.uuid4().hex[:8]}",
                display_name=display_name,
                role=role,
                password=hash_password(password),
                temp_password=temp_password,
                oidc_subject=oidc_subject,
                created_at=utcnow(),
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_server(session_factory: async_sessionmaker[AsyncSession]):
    """Insert a server assigned to the given users. Returns an async factory."""

    async def _make_server(
        *owners: User,
        name: str = "Main server",
        base_url: str = "https://s.example.com",
        api_key: str = "shlink-api-key",
    ) -> Server:
        async with session_factory() as session:
            users = [await session.get(User, owner.id) for owner in owners]
            server = Server(
                public_id=new_public_id(),
                name=name,
                base_url=base_url,
                api_key=api_key,
                users=users,
            )
            session.add(server)
            await session.commit()
            return server

    return _make_server


@pytest.fixture
def authenticate(client: AsyncClient):
    """Put a valid session cookie for ``user`` in the client's cookie jar."""

    def _authenticate(user: User) -> None:
        settings = get_settings()
        client.cookies.set(
            settings.session_cookie_name,
            encode_session(SessionData.from_user(user), settings),
        )

    return _authenticate
