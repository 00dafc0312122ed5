"""User account management: credentials, listing, editing and OIDC provisioning."""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError

from dashboard.auth.oidc import OidcClaims, map_groups_to_role
from dashboard.auth.passwords import generate_password, hash_password, verify_password
from dashboard.config import OidcConfig
from dashboard.db.models import Role, User
from dashboard.exceptions import (
    DuplicatedEntryError,
    IncorrectPasswordError,
    NoTempPasswordError,
    NotFoundError,
    PasswordMismatchError,
)
from dashboard.repositories.users import (
    CreateOidcUserData,
    CreateUserData,
    FindUsersOptions,
    OrderBy,
    UsersRepository,
)
from dashboard.validation import validate_input

logger = logging.getLogger(__name__)

USERS_PER_PAGE = 20
MIN_PASSWORD_LENGTH = 8

EditableUserField = Literal["display_name", "role"]


def _check_password_strength(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not (
        re.search(r"[a-z]", value)
        and re.search(r"[A-Z]", value)
        and re.search(r"\d", value)
        and re.search(r"[^A-Za-z0-9]", value)
    ):
        raise ValueError(
            "Password must contain upper and lower case letters, a number and a special character"
        )
    return value


class CreateUserInput(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    role: Role

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username cannot be empty")
        return v


class EditUserInput(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[Role] = None


class NewPasswordInput(BaseModel):
    new_password: str
    repeat_password: str

    strong_password = field_validator("new_password")(_check_password_strength)


class EditPasswordInput(NewPasswordInput):
    current_password: str = Field(min_length=1)


@dataclass
class UsersList:
    users: list[User]
    total_users: int
    total_pages: int


class UsersService:
    def __init__(self, users: UsersRepository):
        self.users = users

    async def get_user_by_credentials(self, username: str, password: str) -> User:
        """
        Raises:
            NotFoundError: No user has that username.
            IncorrectPasswordError: The password does not match.
        """
        user = await self.users.find_by_username(username)
        if user is None:
            raise NotFoundError(f"User not found with username {username}")
        if not verify_password(password, user.password):
            raise IncorrectPasswordError(username)
        return user

    async def get_user_by_id(self, public_id: str) -> User:
        user = await self.users.find_by_public_id(public_id)
        if user is None:
            raise NotFoundError(f"User not found with public id {public_id}")
        return user

    async def list_users(
        self,
        page: int = 1,
        search_term: Optional[str] = None,
        order_by: Optional[OrderBy] = None,
    ) -> UsersList:
        users, total = await self.users.find_and_count_users(
            FindUsersOptions(
                limit=USERS_PER_PAGE,
                offset=(page - 1) * USERS_PER_PAGE,
                search_term=search_term,
                order_by=order_by,
            )
        )
        return UsersList(
            users=users,
            total_users=total,
            total_pages=math.ceil(total / USERS_PER_PAGE),
        )

    async def create_user(self, data: Mapping[str, Any]) -> tuple[User, str]:
        """Create a local user with a random temporary password.

        Returns:
            The user and the plain text password, to hand over to its owner.

        Raises:
            ValidationError: Invalid data.
            DuplicatedEntryError: The username is taken.
        """
        user_input = validate_input(CreateUserInput, data)
        plain_password = generate_password()

        try:
            user = await self.users.create_user(
                CreateUserData(
                    username=user_input.username,
                    display_name=user_input.display_name,
                    role=user_input.role,
                    password=hash_password(plain_password),
                )
            )
        except IntegrityError as e:
            await self.users.session.rollback()
            raise DuplicatedEntryError("username") from e

        logger.info("User created", extra={"user_id": user.public_id, "role": user.role.value})
        return user, plain_password

    async def delete_user(self, public_id: str) -> None:
        await self.users.delete_by_public_id(public_id)

    async def edit_user(
        self,
        public_id: str,
        data: Mapping[str, Any],
        allow_list: Optional[Iterable[EditableUserField]] = None,
    ) -> User:
        """Update display name and role. An empty or missing allow list allows both."""
        user_input = validate_input(EditUserInput, data)
        allowed = set(allow_list or ())
        user = await self.get_user_by_id(public_id)

        for field in user_input.model_fields_set:
            if allowed and field not in allowed:
                continue
            value = getattr(user_input, field)
            if field == "role" and value is None:
                continue
            setattr(user, field, value)

        await self.users.commit()
        return user

    async def reset_user_password(self, public_id: str) -> tuple[User, str]:
        """Replace the password with a new temporary one."""
        user = await self.get_user_by_id(public_id)
        plain_password = generate_password()
        user.password = hash_password(plain_password)
        user.temp_password = True
        await self.users.commit()
        return user, plain_password

    async def edit_user_password(self, public_id: str, data: Mapping[str, Any]) -> User:
        """
        Raises:
            ValidationError: Missing fields or a weak new password.
            PasswordMismatchError: New password and its repetition differ.
            IncorrectPasswordError: Current password is wrong.
        """
        passwords = validate_input(EditPasswordInput, data)
        if passwords.new_password != passwords.repeat_password:
            raise PasswordMismatchError()

        user = await self.get_user_by_id(public_id)
        if not verify_password(passwords.current_password, user.password):
            raise IncorrectPasswordError()

        user.password = hash_password(passwords.new_password)
        await self.users.commit()
        return user

    async def edit_user_temp_password(self, public_id: str, data: Mapping[str, Any]) -> User:
        """Set the definitive password of a user still on a temporary one."""
        passwords = validate_input(NewPasswordInput, data)
        if passwords.new_password != passwords.repeat_password:
            raise PasswordMismatchError()

        user = await self.get_user_by_id(public_id)
        if not user.temp_password:
            raise NoTempPasswordError()

        user.password = hash_password(passwords.new_password)
        user.temp_password = False
        await self.users.commit()
        return user

    async def find_by_oidc_subject(self, subject: str) -> Optional[User]:
        return await self.users.find_by_oidc_subject(subject)

    async def find_or_create_from_oidc_claims(
        self, claims: OidcClaims, config: Optional[OidcConfig] = None
    ) -> User:
        """Return the user behind an OIDC identity, creating it on first login.

        The role always follows the current group membership.
        """
        role = map_groups_to_role(claims.groups, config)

        user = await self.find_by_oidc_subject(claims.sub)
        if user is not None:
            if user.role != role:
                logger.info(
                    "Updating role of OIDC user",
                    extra={"user_id": user.public_id, "old_role": user.role.value, "new_role": role.value},
                )
                user.role = role
                await self.users.commit()
            return user

        username = claims.preferred_username or claims.email or claims.sub
        # OIDC users never log in with a local password
        password = hash_password(generate_password(32))
        data = CreateOidcUserData(
            username=username,
            display_name=claims.name,
            role=role,
            oidc_subject=claims.sub,
            password=password,
        )
        try:
            return await self.users.create_oidc_user(data)
        except IntegrityError:
            await self.users.session.rollback()
            logger.info(
                "OIDC username already taken, retrying with suffix",
                extra={"username": username},
            )

        data.username = f"{username}_{claims.sub[:8]}"
        return await self.users.create_oidc_user(data)
