"""Authentication routes.

GET  /auth/login                  Which sign-in methods are available
POST /auth/login                  Local username + password login
GET  /auth/oidc                   Start the OIDC flow, redirect to the provider
GET  /auth/callback               OIDC redirect target, logs the user in
POST /auth/logout                 Destroy the session (and the provider one)
POST /auth/change-temp-password   Replace a temporary password
"""

import logging
from typing import Optional
from urllib.parse import quote, urlsplit

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from dashboard.api.deps import (
    client_ip,
    client_user_agent,
    get_audit_service,
    get_http_client,
    get_session,
    get_users_service,
)
from dashboard.auth import oidc
from dashboard.auth.sessions import (
    SessionData,
    decode_oidc_state,
    encode_oidc_state,
    encode_session,
)
from dashboard.config import Settings, get_settings
from dashboard.db.models import AuditAction, User
from dashboard.exceptions import DashboardException, IncorrectPasswordError, NotFoundError
from dashboard.services.audit import AuditEntry, AuditService
from dashboard.services.users import UsersService

logger = logging.getLogger(__name__)

router = APIRouter()

OIDC_STATE_COOKIE = "oidc_state"
# Generic message so the login page never reveals why the flow failed
GENERIC_AUTH_ERROR = "Authentication failed. Please try again."


# ── Schemas ───────────────────────────────────


class LoginRequest(BaseModel):
    username: str
    password: str


class SessionResponse(BaseModel):
    public_id: str
    username: str
    display_name: Optional[str]
    role: str
    temp_password: bool


class AuthOptionsResponse(BaseModel):
    authenticated: bool
    local_auth_enabled: bool
    oidc_enabled: bool
    oidc_provider_name: Optional[str]


class TempPasswordRequest(BaseModel):
    new_password: str
    repeat_password: str


# ── Helpers ───────────────────────────────────


def _session_response(session: SessionData) -> SessionResponse:
    return SessionResponse(
        public_id=session.public_id,
        username=session.username,
        display_name=session.display_name,
        role=session.role.value,
        temp_password=session.temp_password,
    )


def _set_session_cookie(response: Response, session: SessionData, settings: Settings) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        encode_session(session, settings),
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.is_prod(),
        samesite="lax",
    )


def _safe_redirect(target: Optional[str]) -> str:
    """Only same-site relative paths are followed after login."""
    if not target or not target.startswith("/"):
        return "/"
    # browsers read a backslash as a slash
    parts = urlsplit(target.replace("\\", "/"))
    if parts.scheme or parts.netloc or target[1:2] in ("/", "\\"):
        return "/"
    return target


def _login_error_redirect() -> RedirectResponse:
    response = RedirectResponse(f"/login?error={quote(GENERIC_AUTH_ERROR)}", status_code=302)
    response.delete_cookie(OIDC_STATE_COOKIE)
    return response


async def _audit(
    audit: AuditService, request: Request, action: AuditAction, user: Optional[User]
) -> None:
    await audit.log(
        AuditEntry(
            action=action,
            resource_type="user",
            resource_id=user.public_id if user else None,
            ip_address=client_ip(request),
            user_agent=client_user_agent(request),
            user=user,
        )
    )


# ── Routes ────────────────────────────────────


@router.get("/login", response_model=AuthOptionsResponse)
async def login_options(request: Request, settings: Settings = Depends(get_settings)):
    """Sign-in methods offered to the login page."""
    return AuthOptionsResponse(
        authenticated=request.state.session is not None,
        local_auth_enabled=settings.is_local_auth_enabled(),
        oidc_enabled=settings.is_oidc_enabled(),
        oidc_provider_name=settings.oidc_provider_name if settings.is_oidc_enabled() else None,
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    users: UsersService = Depends(get_users_service),
    audit: AuditService = Depends(get_audit_service),
):
    """Log in with local credentials and set the session cookie."""
    if not settings.is_local_auth_enabled():
        raise HTTPException(status_code=403, detail="Local authentication is disabled")

    try:
        user = await users.get_user_by_credentials(body.username, body.password)
    except (NotFoundError, IncorrectPasswordError):
        logger.info("Failed login attempt", extra={"username": body.username})
        raise HTTPException(status_code=401, detail="Username or password are incorrect")

    session = SessionData.from_user(user)
    _set_session_cookie(response, session, settings)
    await _audit(audit, request, AuditAction.LOGIN, user)
    return _session_response(session)


@router.get("/oidc")
async def start_oidc(
    redirect_to: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    """Redirect to the provider, remembering the flow state in a signed cookie."""
    config = settings.get_oidc_config()
    if config is None:
        raise HTTPException(status_code=404, detail="OIDC is not enabled")

    oidc_state = oidc.generate_oidc_state()
    authorization_url = await oidc.build_authorization_url(config, oidc_state, http_client)

    response = RedirectResponse(authorization_url, status_code=302)
    response.set_cookie(
        OIDC_STATE_COOKIE,
        encode_oidc_state(oidc_state, settings, _safe_redirect(redirect_to)),
        max_age=600,
        httponly=True,
        secure=settings.is_prod(),
        samesite="lax",
    )
    return response


@router.get("/callback")
async def oidc_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    users: UsersService = Depends(get_users_service),
    audit: AuditService = Depends(get_audit_service),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    """Finish the OIDC flow. Every failure ends on the login page with a generic error."""
    config = settings.get_oidc_config()
    if config is None:
        return RedirectResponse("/login", status_code=302)

    if error:
        logger.error(
            "OIDC provider returned an error",
            extra={"error": error, "error_description": error_description},
        )
        return _login_error_redirect()

    if not code or not state:
        logger.error("OIDC callback missing code or state")
        return _login_error_redirect()

    state_cookie = request.cookies.get(OIDC_STATE_COOKIE)
    decoded = decode_oidc_state(state_cookie, settings) if state_cookie else None
    if decoded is None:
        logger.error("OIDC state cookie missing or invalid")
        return _login_error_redirect()
    oidc_state, redirect_to = decoded

    try:
        claims, id_token = await oidc.exchange_code_for_tokens(
            config,
            code,
            state,
            oidc_state.state,
            oidc_state.nonce,
            oidc_state.code_verifier,
            http_client,
        )
        user = await users.find_or_create_from_oidc_claims(claims, config)
    except DashboardException:
        logger.exception("OIDC callback failed")
        return _login_error_redirect()

    await _audit(audit, request, AuditAction.LOGIN_OIDC, user)

    response = RedirectResponse(_safe_redirect(redirect_to), status_code=302)
    _set_session_cookie(response, SessionData.from_user(user, id_token), settings)
    response.delete_cookie(OIDC_STATE_COOKIE)
    return response


@router.post("/logout")
async def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    audit: AuditService = Depends(get_audit_service),
    users: UsersService = Depends(get_users_service),
    http_client: Optional[httpx.AsyncClient] = Depends(get_http_client),
):
    """Destroy the local session, then the provider one when OIDC is enabled."""
    session: Optional[SessionData] = request.state.session
    if session is not None:
        user = await users.users.find_by_public_id(session.public_id)
        await _audit(audit, request, AuditAction.LOGOUT, user)

    target = "/login"
    config = settings.get_oidc_config()
    if config is not None:
        id_token = session.id_token if session else None
        target = await oidc.get_logout_url(config, id_token, http_client) or target

    response = RedirectResponse(target, status_code=302)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.post("/change-temp-password", response_model=SessionResponse)
async def change_temp_password(
    body: TempPasswordRequest,
    response: Response,
    session: SessionData = Depends(get_session),
    settings: Settings = Depends(get_settings),
    users: UsersService = Depends(get_users_service),
):
    """Set a definitive password and refresh the session flag."""
    user = await users.edit_user_temp_password(session.public_id, body.model_dump())
    new_session = SessionData.from_user(user, session.id_token)
    _set_session_cookie(response, new_session, settings)
    return _session_response(new_session)
