"""Data access for Shlink servers and their user assignments."""

from typing import Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dashboard.db.models import Server, User, new_public_id
from dashboard.exceptions import NotFoundError, ValidationError
from dashboard.repositories.base import BaseRepository, search_condition


class FindServersOptions(BaseModel):
    limit: Optional[int] = None
    offset: Optional[int] = None
    search_term: Optional[str] = None
    populate_users: bool = False


class ServerData(BaseModel):
    name: str
    base_url: str
    api_key: str


class ServerPatch(BaseModel):
    name: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None


class ServersRepository(BaseRepository[Server]):
    """Servers, always looked up through the users they are assigned to.

    Lookups scoped to a user return None both when the server does not exist
    and when it is not assigned to that user.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Server, session)

    @staticmethod
    def _assigned_to(user_id: str):
        return Server.users.any(User.public_id == user_id)

    async def find_by_public_id_and_user_id(
        self, server_id: str, user_id: str
    ) -> Optional[Server]:
        return await self.find_one(
            Server.public_id == server_id,
            self._assigned_to(user_id),
        )

    async def find_by_user_id(
        self, user_id: str, options: Optional[FindServersOptions] = None
    ) -> list[Server]:
        options = options or FindServersOptions()
        where = [self._assigned_to(user_id)]
        if options.search_term:
            where.append(
                search_condition(options.search_term, Server.name, Server.base_url)
            )

        return await self.find(
            *where,
            order_by=[Server.name.asc(), Server.id],
            limit=options.limit,
            offset=options.offset,
            options=[selectinload(Server.users)] if options.populate_users else [],
        )

    async def create_server(self, user_id: str, data: ServerData) -> Server:
        """Create a server and assign it to its creator.

        Raises:
            NotFoundError: No user exists with ``user_id``.
        """
        user = await self.session.scalar(
            select(User).where(User.public_id == user_id)
        )
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        server = self.create(
            public_id=new_public_id(),
            name=data.name,
            base_url=data.base_url,
            api_key=data.api_key,
            users=[user],
        )
        self.persist(server)
        await self.commit()
        return server

    async def update_server(
        self, server_id: str, user_id: str, patch: ServerPatch
    ) -> Optional[Server]:
        server = await self.find_by_public_id_and_user_id(server_id, user_id)
        if server is None:
            return None

        for field, value in patch.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(server, field, value)
        await self.commit()
        return server

    async def set_servers_for_user(self, user_id: str, servers: list[str]) -> None:
        """Replace the whole server set of a managed user.

        Raises:
            NotFoundError: No user exists with ``user_id``.
            ValidationError: The user's role does not use managed servers.
        """
        result = await self.session.execute(
            select(User)
            .where(User.public_id == user_id)
            .options(selectinload(User.servers))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if not user.role.has_managed_servers:
            raise ValidationError(
                f"Servers can only be assigned to managed users, user {user_id} is {user.role.value}",
                invalid_fields={"servers": "User does not use managed servers"},
            )

        user.servers.clear()
        if servers:
            user.servers.extend(await self.find(Server.public_id.in_(servers)))
        await self.commit()

    async def delete_server(self, server_id: str, user_id: str) -> bool:
        server = await self.find_by_public_id_and_user_id(server_id, user_id)
        if server is None:
            return False
        await self.delete(server)
        return True
