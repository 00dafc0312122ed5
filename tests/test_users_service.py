import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard.auth.oidc import OidcClaims
from dashboard.auth.passwords import verify_password
from dashboard.config import OidcConfig
from dashboard.db.models import Role
from dashboard.exceptions import (
    DuplicatedEntryError,
    IncorrectPasswordError,
    NoTempPasswordError,
    NotFoundError,
    PasswordMismatchError,
    ValidationError,
)
from dashboard.repositories.users import OrderBy, UsersRepository
from dashboard.services.users import UsersService
from tests.conftest import DEFAULT_PASSWORD

NEW_PASSWORD = "N3w-passw0rd"


@pytest.fixture
def service(db_session: AsyncSession) -> UsersService:
    return UsersService(UsersRepository(db_session))


def _oidc_config(**overrides) -> OidcConfig:
    values = dict(
        issuer_url="https://idp.example.com",
        client_id="dashboard",
        client_secret="secret",
        redirect_uri="https://dash.example.com/auth/callback",
        scopes=["openid"],
        admin_group="shlink-admins",
        advanced_group="shlink-advanced",
    )
    values.update(overrides)
    return OidcConfig(**values)


async def test_get_user_by_credentials(service: UsersService, make_user) -> None:
    user = await make_user(username="alice")

    found = await service.get_user_by_credentials("alice", DEFAULT_PASSWORD)
    assert found.public_id == user.public_id

    with pytest.raises(IncorrectPasswordError):
        await service.get_user_by_credentials("alice", "wrong")
    with pytest.raises(NotFoundError):
        await service.get_user_by_credentials("nobody", DEFAULT_PASSWORD)


async def test_create_user_returns_temporary_password(service: UsersService) -> None:
    user, plain_password = await service.create_user(
        {"username": "  bob  ", "display_name": "Bob", "role": "managed-user"}
    )

    assert user.username == "bob"
    assert user.role is Role.MANAGED_USER
    assert user.temp_password is True
    assert verify_password(plain_password, user.password)


async def test_create_user_validates_input(service: UsersService) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await service.create_user({"username": "carol", "role": "superuser"})

    assert "role" in exc_info.value.invalid_fields


async def test_create_user_with_taken_username(service: UsersService, make_user) -> None:
    await make_user(username="dave")

    with pytest.raises(DuplicatedEntryError):
        await service.create_user({"username": "dave", "role": "admin"})


async def test_list_users_paginates(service: UsersService, make_user) -> None:
    for i in range(25):
        await make_user(username=f"user{i:02d}")

    first = await service.list_users(page=1, order_by=OrderBy(field="username"))
    second = await service.list_users(page=2, order_by=OrderBy(field="username"))

    assert first.total_users == 25
    assert first.total_pages == 2
    assert len(first.users) == 20
    assert [u.username for u in second.users] == [f"user{i}" for i in range(20, 25)]


async def test_edit_user_only_changes_given_fields(service: UsersService, make_user) -> None:
    user = await make_user(display_name="Before", role=Role.MANAGED_USER)

    edited = await service.edit_user(user.public_id, {"role": "advanced-user"})

    assert edited.role is Role.ADVANCED_USER
    assert edited.display_name == "Before"


async def test_edit_user_honours_allow_list(service: UsersService, make_user) -> None:
    user = await make_user(display_name="Before", role=Role.MANAGED_USER)

    edited = await service.edit_user(
        user.public_id, {"display_name": "After", "role": "admin"}, allow_list=["display_name"]
    )

    assert edited.display_name == "After"
    assert edited.role is Role.MANAGED_USER


async def test_reset_user_password(service: UsersService, make_user) -> None:
    user = await make_user()

    reset, plain_password = await service.reset_user_password(user.public_id)

    assert reset.temp_password is True
    assert verify_password(plain_password, reset.password)
    assert not verify_password(DEFAULT_PASSWORD, reset.password)


async def test_edit_user_password(service: UsersService, make_user) -> None:
    user = await make_user()

    await service.edit_user_password(
        user.public_id,
        {
            "current_password": DEFAULT_PASSWORD,
            "new_password": NEW_PASSWORD,
            "repeat_password": NEW_PASSWORD,
        },
    )

    assert await service.get_user_by_credentials(user.username, NEW_PASSWORD)


async def test_edit_user_password_errors(service: UsersService, make_user) -> None:
    user = await make_user()

    with pytest.raises(PasswordMismatchError):
        await service.edit_user_password(
            user.public_id,
            {"current_password": DEFAULT_PASSWORD, "new_password": NEW_PASSWORD,
             "repeat_password": "Other-passw0rd"},
        )
    with pytest.raises(IncorrectPasswordError):
        await service.edit_user_password(
            user.public_id,
            {"current_password": "wrong", "new_password": NEW_PASSWORD,
             "repeat_password": NEW_PASSWORD},
        )
    with pytest.raises(ValidationError) as exc_info:
        await service.edit_user_password(
            user.public_id,
            {"current_password": DEFAULT_PASSWORD, "new_password": "weak",
             "repeat_password": "weak"},
        )
    assert "new_password" in exc_info.value.invalid_fields


async def test_edit_user_temp_password(service: UsersService, make_user) -> None:
    user = await make_user(temp_password=True)
    passwords = {"new_password": NEW_PASSWORD, "repeat_password": NEW_PASSWORD}

    edited = await service.edit_user_temp_password(user.public_id, passwords)
    assert edited.temp_password is False

    with pytest.raises(NoTempPasswordError):
        await service.edit_user_temp_password(user.public_id, passwords)


async def test_oidc_claims_create_user_on_first_login(service: UsersService) -> None:
    claims = OidcClaims(
        sub="sub-1", preferred_username="erin", name="Erin", groups=["shlink-advanced"]
    )

    user = await service.find_or_create_from_oidc_claims(claims, _oidc_config())

    assert user.username == "erin"
    assert user.display_name == "Erin"
    assert user.oidc_subject == "sub-1"
    assert user.role is Role.ADVANCED_USER
    assert user.temp_password is False


async def test_oidc_claims_update_role_of_existing_user(service: UsersService, make_user) -> None:
    existing = await make_user(role=Role.MANAGED_USER, oidc_subject="sub-2")

    user = await service.find_or_create_from_oidc_claims(
        OidcClaims(sub="sub-2", groups=["shlink-admins"]), _oidc_config()
    )

    assert user.public_id == existing.public_id
    assert user.role is Role.ADMIN


async def test_oidc_username_collision_gets_suffix(service: UsersService, make_user) -> None:
    await make_user(username="frank@example.com")

    user = await service.find_or_create_from_oidc_claims(
        OidcClaims(sub="abcdefgh-1234", email="frank@example.com"),
        _oidc_config(default_role=Role.MANAGED_USER),
    )

    assert user.username == "frank@example.com_abcdefgh"
    assert user.role is Role.MANAGED_USER
