"""Repository layer.

Repositories wrap an injected AsyncSession and expose the queries the
services and routers need.
"""

from dashboard.repositories.base import BaseRepository, search_condition
from dashboard.repositories.servers import (
    FindServersOptions,
    ServerData,
    ServerPatch,
    ServersRepository,
)
from dashboard.repositories.users import (
    CreateOidcUserData,
    CreateUserData,
    FindUsersOptions,
    OrderBy,
    UsersRepository,
)

__all__ = [
    # Base classes
    "BaseRepository",
    "search_condition",

    # Concrete repositories
    "ServersRepository",
    "UsersRepository",

    # Option and payload models
    "CreateOidcUserData",
    "CreateUserData",
    "FindServersOptions",
    "FindUsersOptions",
    "OrderBy",
    "ServerData",
    "ServerPatch",
]
