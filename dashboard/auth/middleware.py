"""Session middleware.

Rules:
1. The session cookie, when valid, is decoded into ``request.state.session``
2. Public paths skip the authentication check: /health, login, OIDC, logout, docs
3. Any other path without a valid session gets a 401
4. Users on a temporary password can only change it or log out
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from dashboard.auth.sessions import decode_session
from dashboard.config import get_settings
from dashboard.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PUBLIC_PATH_PREFIXES = (
    "/health",
    "/auth/login",
    "/auth/oidc",
    "/auth/callback",
    "/auth/logout",
    "/docs",
    "/openapi.json",
    "/redoc",
)

TEMP_PASSWORD_PATHS = (
    "/auth/change-temp-password",
    "/auth/logout",
)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authenticate requests through the signed session cookie."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        settings = get_settings()
        token = request.cookies.get(settings.session_cookie_name)
        session = None
        if token:
            try:
                session = decode_session(token, settings)
            except ConfigurationError:
                logger.warning("Session cookie ignored, no session secrets configured")
        request.state.session = session

        path = request.url.path
        if any(path.startswith(p) for p in PUBLIC_PATH_PREFIXES):
            return await call_next(request)

        if session is None:
            return JSONResponse(
                {"error": {"code": "auth_required", "message": "Authentication required"}},
                status_code=401,
            )

        if session.temp_password and not any(path.startswith(p) for p in TEMP_PASSWORD_PATHS):
            return JSONResponse(
                {
                    "error": {
                        "code": "temp_password",
                        "message": "Temporary password must be changed first",
                    }
                },
                status_code=403,
            )

        return await call_next(request)
