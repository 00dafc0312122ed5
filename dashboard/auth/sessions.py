"""Signed session cookies.

The session payload is a short JWT (HS256). New cookies are signed with the
first configured secret; any configured secret is accepted when verifying,
so secrets can be rotated without logging everyone out.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
from pydantic import BaseModel

from dashboard.auth.oidc import OidcState
from dashboard.config import Settings
from dashboard.db.models import Role, User
from dashboard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
OIDC_STATE_MAX_AGE_SECONDS = 600


class SessionData(BaseModel):
    public_id: str
    username: str
    display_name: Optional[str] = None
    role: Role
    temp_password: bool = False
    # Kept to build the provider logout URL
    id_token: Optional[str] = None

    @classmethod
    def from_user(cls, user: User, id_token: Optional[str] = None) -> "SessionData":
        return cls(
            public_id=user.public_id,
            username=user.username,
            display_name=user.display_name,
            role=user.role,
            temp_password=user.temp_password,
            id_token=id_token,
        )


def _secrets(settings: Settings) -> list[str]:
    secrets = settings.get_session_secrets()
    if not secrets:
        raise ConfigurationError("SHLINK_DASHBOARD_SESSION_SECRETS must be set")
    return secrets


def _sign(kind: str, payload: dict[str, Any], settings: Settings, max_age_seconds: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **payload,
        "typ": kind,
        "iat": now,
        "exp": now + timedelta(seconds=max_age_seconds),
    }
    return jwt.encode(payload, _secrets(settings)[0], algorithm=ALGORITHM)


def _verify(kind: str, token: str, settings: Settings) -> Optional[dict[str, Any]]:
    for secret in _secrets(settings):
        try:
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
            return payload if payload.get("typ") == kind else None
        except jwt.InvalidSignatureError:
            continue
        except jwt.PyJWTError as e:
            logger.info("Rejected signed cookie: %s", e)
            return None
    logger.info("Rejected cookie signed with an unknown secret")
    return None


def encode_session(session: SessionData, settings: Settings) -> str:
    return _sign(
        "session",
        session.model_dump(mode="json", exclude_none=True),
        settings,
        settings.session_max_age_seconds,
    )


def decode_session(token: str, settings: Settings) -> Optional[SessionData]:
    """Return the session carried by ``token``, or None if it is not valid."""
    payload = _verify("session", token, settings)
    if payload is None:
        return None
    return SessionData.model_validate(payload)


def encode_oidc_state(
    oidc_state: OidcState, settings: Settings, redirect_to: Optional[str] = None
) -> str:
    """Sign the pending OIDC flow state so it can travel in a cookie."""
    payload = oidc_state.model_dump()
    if redirect_to:
        payload["redirect_to"] = redirect_to
    return _sign("oidc_state", payload, settings, OIDC_STATE_MAX_AGE_SECONDS)


def decode_oidc_state(
    token: str, settings: Settings
) -> Optional[tuple[OidcState, Optional[str]]]:
    """Return the OIDC state and the post-login redirect, or None if invalid."""
    payload = _verify("oidc_state", token, settings)
    if payload is None:
        return None
    return OidcState.model_validate(payload), payload.get("redirect_to")
