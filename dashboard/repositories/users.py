"""Data access for dashboard user accounts."""

from typing import Literal, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.db.models import Role, User, new_public_id, utcnow
from dashboard.exceptions import ValidationError
from dashboard.repositories.base import BaseRepository, search_condition

ORDERABLE_USER_FIELDS = ("username", "display_name", "role", "created_at")


class OrderBy(BaseModel):
    field: str
    dir: Literal["ASC", "DESC"] = "ASC"


class FindUsersOptions(BaseModel):
    limit: Optional[int] = None
    offset: Optional[int] = None
    search_term: Optional[str] = None
    order_by: Optional[OrderBy] = None


class CreateUserData(BaseModel):
    username: str
    display_name: Optional[str] = None
    role: Role
    # bcrypt hash of the temporary password
    password: str


class CreateOidcUserData(BaseModel):
    username: str
    display_name: Optional[str]
    role: Role
    oidc_subject: str
    password: str


class UsersRepository(BaseRepository[User]):
    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def find_and_count_users(
        self, options: FindUsersOptions
    ) -> tuple[list[User], int]:
        """Return one page of users plus the total matching the search.

        Ordering defaults to newest first.

        Raises:
            ValidationError: ``order_by.field`` is not an orderable column.
        """
        where = []
        if options.search_term:
            where.append(
                search_condition(options.search_term, User.username, User.display_name)
            )

        if options.order_by is None:
            order_by = User.created_at.desc()
        else:
            order_by = self._order_clause(options.order_by)

        return await self.find_and_count(
            *where,
            order_by=[order_by, User.id],
            limit=options.limit,
            offset=options.offset,
        )

    @staticmethod
    def _order_clause(order: OrderBy):
        if order.field not in ORDERABLE_USER_FIELDS:
            raise ValidationError(
                f"Users cannot be ordered by {order.field}",
                invalid_fields={"order_by": f"Unknown field {order.field}"},
            )
        column = getattr(User, order.field)
        return column.asc() if order.dir == "ASC" else column.desc()

    async def create_user(self, data: CreateUserData) -> User:
        """Create a local account whose password must be changed on first login."""
        user = self.create(
            public_id=new_public_id(),
            username=data.username,
            display_name=data.display_name,
            role=data.role,
            password=data.password,
            temp_password=True,
            created_at=utcnow(),
        )
        self.persist(user)
        await self.commit()
        return user

    async def create_oidc_user(self, data: CreateOidcUserData) -> User:
        """Create an account provisioned from an OIDC identity."""
        user = self.create(
            public_id=new_public_id(),
            username=data.username,
            display_name=data.display_name,
            role=data.role,
            password=data.password,
            temp_password=False,
            oidc_subject=data.oidc_subject,
            created_at=utcnow(),
        )
        self.persist(user)
        await self.commit()
        return user

    async def find_by_public_id(self, public_id: str) -> Optional[User]:
        return await self.find_one(User.public_id == public_id)

    async def find_by_username(self, username: str) -> Optional[User]:
        return await self.find_one(User.username == username)

    async def find_by_oidc_subject(self, subject: str) -> Optional[User]:
        return await self.find_one(User.oidc_subject == subject)

    async def delete_by_public_id(self, public_id: str) -> bool:
        return await self.delete_where(User.public_id == public_id) > 0
