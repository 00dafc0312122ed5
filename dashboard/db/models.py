"""SQLAlchemy 2.0 ORM models for the Shlink dashboard.

Defines the complete database schema: users, servers and their
assignments, audit logs, favorites, folders and the API key registry.
The alembic revisions under ``alembic/versions`` build the same schema.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_public_id() -> str:
    """Return a fresh external identifier."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# ──────────────────────────────────────────
# ENUMS
# ──────────────────────────────────────────

class Role(str, enum.Enum):
    ADMIN = "admin"
    ADVANCED_USER = "advanced-user"
    MANAGED_USER = "managed-user"

    @property
    def has_managed_servers(self) -> bool:
        """Whether an admin decides which servers this role can use."""
        if self is Role.MANAGED_USER:
            return True
        if self is Role.ADMIN or self is Role.ADVANCED_USER:
            return False
        raise ValueError(f"Unhandled role {self!r}")


class AuditAction(str, enum.Enum):
    LOGIN = "login"
    LOGIN_OIDC = "login_oidc"
    LOGOUT = "logout"
    CREATE_SHORT_URL = "create_short_url"
    EDIT_SHORT_URL = "edit_short_url"
    DELETE_SHORT_URL = "delete_short_url"
    CREATE_USER = "create_user"
    EDIT_USER = "edit_user"
    DELETE_USER = "delete_user"
    CREATE_SERVER = "create_server"
    EDIT_SERVER = "edit_server"
    DELETE_SERVER = "delete_server"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# ──────────────────────────────────────────
# USERS ↔ SERVERS (assignment junction)
# ──────────────────────────────────────────

user_servers = Table(
    "user_servers",
    Base.metadata,
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", name="fk_user_servers_user", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "server_id",
        Integer,
        ForeignKey("servers.id", name="fk_user_servers_server", ondelete="CASCADE"),
        primary_key=True,
    ),
)


# ──────────────────────────────────────────
# USERS
# ──────────────────────────────────────────

class User(Base):
    """A dashboard account, local or provisioned through OIDC."""
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_oidc_subject", "oidc_subject", unique=True),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_id: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=new_public_id
    )
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        SAEnum(
            Role,
            name="user_role",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=Role.MANAGED_USER,
    )
    temp_password: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    oidc_subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    servers: Mapped[list["Server"]] = relationship(
        secondary=user_servers, back_populates="users"
    )


# ──────────────────────────────────────────
# SERVERS (remote Shlink instances)
# ──────────────────────────────────────────

class Server(Base):
    """A remote Shlink instance reachable with an API key."""
    __tablename__ = "servers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    public_id: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=new_public_id
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    api_key: Mapped[str] = mapped_column(String(255), nullable=False)

    users: Mapped[list["User"]] = relationship(
        secondary=user_servers, back_populates="servers"
    )


# ──────────────────────────────────────────
# AUDIT LOG (append-only history)
# ──────────────────────────────────────────

class AuditLog(Base):
    """Append-only audit trail. Survives deletion of its user or server."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_created_at", "created_at"),
        Index("idx_audit_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(
            AuditAction,
            name="audit_action",
            native_enum=False,
            length=50,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    resource_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_audit_user", ondelete="SET NULL"),
        nullable=True,
    )
    server_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("servers.id", name="fk_audit_server", ondelete="SET NULL"),
        nullable=True,
    )

    user: Mapped[Optional["User"]] = relationship()
    server: Mapped[Optional["Server"]] = relationship()


# ──────────────────────────────────────────
# FAVORITES
# ──────────────────────────────────────────

class Favorite(Base):
    """A short URL bookmarked by a user on one server."""
    __tablename__ = "favorites"
    __table_args__ = (
        Index(
            "idx_favorite_user_server_shorturl",
            "user_id",
            "server_id",
            "short_url_id",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    short_url_id: Mapped[str] = mapped_column(String(255), nullable=False)
    short_code: Mapped[str] = mapped_column(String(255), nullable=False)
    long_url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_favorite_user", ondelete="CASCADE"),
        nullable=False,
    )
    server_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("servers.id", name="fk_favorite_server", ondelete="CASCADE"),
        nullable=False,
    )

    user: Mapped["User"] = relationship()
    server: Mapped["Server"] = relationship()


# ──────────────────────────────────────────
# FOLDERS
# ──────────────────────────────────────────

class Folder(Base):
    """Named grouping of short URLs for a user on one server."""
    __tablename__ = "folders"
    __table_args__ = (
        Index(
            "idx_folder_user_server_name",
            "user_id",
            "server_id",
            "name",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_folder_user", ondelete="CASCADE"),
        nullable=False,
    )
    server_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("servers.id", name="fk_folder_server", ondelete="CASCADE"),
        nullable=False,
    )

    user: Mapped["User"] = relationship()
    server: Mapped["Server"] = relationship()
    items: Mapped[list["FolderItem"]] = relationship(
        back_populates="folder",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="FolderItem.added_at",
    )


class FolderItem(Base):
    """Reference to a short URL stored inside a folder."""
    __tablename__ = "folder_items"
    __table_args__ = (
        Index(
            "idx_folder_item_folder_shorturl",
            "folder_id",
            "short_url_id",
            unique=True,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    short_url_id: Mapped[str] = mapped_column(String(255), nullable=False)
    short_code: Mapped[str] = mapped_column(String(255), nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    folder_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("folders.id", name="fk_folder_item_folder", ondelete="CASCADE"),
        nullable=False,
    )

    folder: Mapped["Folder"] = relationship(back_populates="items")


# ──────────────────────────────────────────
# API KEY REGISTRY (metadata only, never the key)
# ──────────────────────────────────────────

class ApiKeyRegistry(Base):
    """Tracked metadata about an API key issued on a Shlink server."""
    __tablename__ = "api_key_registry"
    __table_args__ = (
        Index("idx_apikey_user_server", "user_id", "server_id"),
        Index("idx_apikey_service", "service"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Last characters of the key, for identification
    key_hint: Mapped[str] = mapped_column(String(10), nullable=False)
    service: Mapped[str] = mapped_column(String(50), nullable=False)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", name="fk_apikey_user", ondelete="CASCADE"),
        nullable=False,
    )
    server_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("servers.id", name="fk_apikey_server", ondelete="CASCADE"),
        nullable=False,
    )

    user: Mapped["User"] = relationship()
    server: Mapped["Server"] = relationship()
