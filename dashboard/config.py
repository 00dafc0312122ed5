"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and .env file support.
Every variable is prefixed with ``SHLINK_DASHBOARD_``.
Access the singleton via get_settings().
"""

import json
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dashboard.db.models import Role
from dashboard.exceptions import ConfigurationError

_DRIVER_SCHEMES = {
    "postgres": "postgresql+asyncpg",
    "mysql": "mysql+aiomysql",
    "mariadb": "mysql+aiomysql",
    "mssql": "mssql+aioodbc",
}

_DEFAULT_PORTS = {
    "postgres": 5432,
    "mysql": 3306,
    "mariadb": 3306,
    "mssql": 1433,
}


class OidcConfig(BaseModel):
    """Resolved OIDC client configuration."""

    issuer_url: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: list[str]
    admin_group: Optional[str] = None
    advanced_group: Optional[str] = None
    default_role: Role = Role.MANAGED_USER
    provider_name: str = "SSO"


class Settings(BaseSettings):
    """Central configuration for the Shlink dashboard backend."""

    model_config = SettingsConfigDict(
        env_prefix="SHLINK_DASHBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["production", "development", "test"] = "production"
    debug: bool = False
    log_level: str = "INFO"

    # Database. Either a full URL, or discrete fields combined by the validator.
    database_url: Optional[str] = None
    db_driver: Literal["sqlite", "postgres", "mysql", "mariadb", "mssql"] = "sqlite"
    db_host: Optional[str] = None
    db_port: Optional[int] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_name: str = "shlink_dashboard"

    @model_validator(mode="after")
    def _normalize_database_url(self) -> "Settings":
        """Resolve database_url and ensure it uses an async driver.

        PaaS providers set DATABASE_URL as ``postgres://...`` which SQLAlchemy
        maps to psycopg2.
        """
        url = self.database_url
        if not url:
            self.database_url = self._build_database_url()
            return self
        if url.startswith("postgres://"):
            self.database_url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://") and "+asyncpg" not in url:
            self.database_url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite://") and "+aiosqlite" not in url:
            self.database_url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return self

    def _build_database_url(self) -> str:
        if self.db_driver == "sqlite":
            return f"sqlite+aiosqlite:///./data/{self.db_name}.sqlite"
        scheme = _DRIVER_SCHEMES[self.db_driver]
        host = self.db_host or "localhost"
        port = self.db_port or _DEFAULT_PORTS[self.db_driver]
        credentials = ""
        if self.db_user:
            credentials = self.db_user
            if self.db_password:
                credentials += f":{self.db_password}"
            credentials += "@"
        return f"{scheme}://{credentials}{host}:{port}/{self.db_name}"

    # Sessions
    # Stored as str so pydantic-settings doesn't JSON-decode plain comma values.
    # The first secret signs new cookies, any of them verifies.
    session_secrets: str = ""
    session_max_age_seconds: int = 60 * 60 * 24
    session_cookie_name: str = "shlink_dashboard_session"
    password_hash_rounds: int = 12

    def get_session_secrets(self) -> list[str]:
        """Parse session secrets from string: JSON array or comma-separated."""
        v = self.session_secrets.strip()
        if not v:
            return []
        if v.startswith("["):
            try:
                items = json.loads(v)
                return [x.strip() for x in items if isinstance(x, str) and x.strip()]
            except json.JSONDecodeError:
                pass
        return [x.strip() for x in v.split(",") if x.strip()]

    # OIDC
    oidc_enabled: bool = False
    oidc_issuer_url: Optional[str] = None
    oidc_client_id: Optional[str] = None
    oidc_client_secret: Optional[str] = None
    oidc_redirect_uri: Optional[str] = None
    oidc_scopes: str = "openid profile email groups"
    oidc_admin_group: Optional[str] = None
    oidc_advanced_group: Optional[str] = None
    oidc_default_role: Role = Role.MANAGED_USER
    oidc_provider_name: str = "SSO"
    local_auth_enabled: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def is_prod(self) -> bool:
        return self.environment == "production"

    def is_oidc_enabled(self) -> bool:
        return self.oidc_enabled

    def is_local_auth_enabled(self) -> bool:
        return self.local_auth_enabled

    def can_manage_local_users(self) -> bool:
        """Local users can be managed unless OIDC is the only way to sign in."""
        return not (self.is_oidc_enabled() and not self.is_local_auth_enabled())

    def get_oidc_config(self) -> Optional[OidcConfig]:
        """Return the OIDC client configuration, or None when OIDC is disabled.

        Raises:
            ConfigurationError: OIDC is enabled but a required value is missing.
        """
        if not self.is_oidc_enabled():
            return None

        required = {
            "oidc_issuer_url": self.oidc_issuer_url,
            "oidc_client_id": self.oidc_client_id,
            "oidc_client_secret": self.oidc_client_secret,
            "oidc_redirect_uri": self.oidc_redirect_uri,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            env_names = ", ".join(f"SHLINK_DASHBOARD_{name.upper()}" for name in missing)
            raise ConfigurationError(
                f"OIDC is enabled but the following settings are missing: {env_names}"
            )

        return OidcConfig(
            issuer_url=self.oidc_issuer_url.rstrip("/"),
            client_id=self.oidc_client_id,
            client_secret=self.oidc_client_secret,
            redirect_uri=self.oidc_redirect_uri,
            scopes=self.oidc_scopes.split(),
            admin_group=self.oidc_admin_group or None,
            advanced_group=self.oidc_advanced_group or None,
            default_role=self.oidc_default_role,
            provider_name=self.oidc_provider_name,
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings singleton."""
    return Settings()


def reset_settings() -> None:
    """Clear the settings cache. Used in tests."""
    get_settings.cache_clear()
