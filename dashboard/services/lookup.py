"""Entity lookups shared by the per-server services."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import Server, User
from dashboard.exceptions import NotFoundError


async def get_user_and_server(
    db: AsyncSession, user_id: str, server_id: str
) -> tuple[User, Server]:
    """Resolve a user and a server by public id.

    Raises:
        NotFoundError: Either of them does not exist.
    """
    user = await db.scalar(select(User).where(User.public_id == user_id))
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    server = await db.scalar(select(Server).where(Server.public_id == server_id))
    if server is None:
        raise NotFoundError(f"Server {server_id} not found")
    return user, server
