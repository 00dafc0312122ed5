"""OpenID Connect authorization code flow with PKCE.

Provider metadata comes from the issuer's discovery document and is cached
per issuer. ID tokens are verified against the provider JWKS with PyJWT.
"""

import base64
import hashlib
import logging
import secrets
from typing import Any, Optional
from urllib.parse import urlencode, urlsplit

import httpx
import jwt
from pydantic import BaseModel, Field

from dashboard.config import OidcConfig
from dashboard.db.models import Role
from dashboard.exceptions import OidcError

logger = logging.getLogger(__name__)

CLOCK_SKEW_SECONDS = 60
HTTP_TIMEOUT = 10.0
ALLOWED_ALGORITHMS = ["RS256", "RS384", "RS512", "ES256", "ES384", "ES512", "PS256"]

# issuer URL → discovery document
_metadata_cache: dict[str, dict[str, Any]] = {}


class OidcState(BaseModel):
    state: str
    nonce: str
    code_verifier: str


class OidcClaims(BaseModel):
    sub: str
    email: Optional[str] = None
    preferred_username: Optional[str] = None
    name: Optional[str] = None
    groups: list[str] = Field(default_factory=list)


def reset_metadata_cache() -> None:
    """Forget cached discovery documents. Used in tests."""
    _metadata_cache.clear()


def generate_oidc_state() -> OidcState:
    return OidcState(
        state=secrets.token_urlsafe(32),
        nonce=secrets.token_urlsafe(32),
        code_verifier=secrets.token_urlsafe(64),
    )


def pkce_challenge(code_verifier: str) -> str:
    """S256 code challenge for a PKCE verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode a provider response that must be a JSON object."""
    try:
        payload = response.json()
    except ValueError as e:
        logger.error(
            "OIDC provider answered with a non-JSON body",
            extra={"url": str(response.request.url), "error": str(e)},
        )
        raise OidcError("OIDC provider answered with a non-JSON body") from e
    if not isinstance(payload, dict):
        raise OidcError("OIDC provider answered with an unexpected JSON payload")
    return payload


async def _get_json(
    url: str, http_client: Optional[httpx.AsyncClient], **kwargs: Any
) -> dict[str, Any]:
    try:
        if http_client is not None:
            response = await http_client.get(url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                response = await client.get(url, **kwargs)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("OIDC provider request failed", extra={"url": url, "error": str(e)})
        raise OidcError(f"OIDC provider request failed: {e}") from e
    return _json_object(response)


async def get_provider_metadata(
    config: OidcConfig, http_client: Optional[httpx.AsyncClient] = None
) -> dict[str, Any]:
    cached = _metadata_cache.get(config.issuer_url)
    if cached is not None:
        return cached

    url = f"{config.issuer_url}/.well-known/openid-configuration"
    metadata = await _get_json(url, http_client)
    for field in ("issuer", "authorization_endpoint", "token_endpoint", "jwks_uri"):
        if field not in metadata:
            raise OidcError(f"OIDC discovery document lacks {field}")

    _metadata_cache[config.issuer_url] = metadata
    logger.info("OIDC provider discovered: %s", config.issuer_url)
    return metadata


async def build_authorization_url(
    config: OidcConfig,
    oidc_state: OidcState,
    http_client: Optional[httpx.AsyncClient] = None,
) -> str:
    metadata = await get_provider_metadata(config, http_client)
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": " ".join(config.scopes),
        "state": oidc_state.state,
        "nonce": oidc_state.nonce,
        "code_challenge": pkce_challenge(oidc_state.code_verifier),
        "code_challenge_method": "S256",
    }
    endpoint = metadata["authorization_endpoint"]
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode(params)}"


async def _verify_id_token(
    id_token: str,
    config: OidcConfig,
    metadata: dict[str, Any],
    http_client: Optional[httpx.AsyncClient],
) -> dict[str, Any]:
    try:
        header = jwt.get_unverified_header(id_token)
    except jwt.PyJWTError as e:
        raise OidcError(f"Malformed ID token: {e}") from e

    algorithm = header.get("alg")
    if algorithm not in ALLOWED_ALGORITHMS:
        raise OidcError(f"Unsupported ID token algorithm {algorithm}")

    jwks = await _get_json(metadata["jwks_uri"], http_client)
    try:
        key_set = jwt.PyJWKSet.from_dict(jwks)
    except jwt.PyJWTError as e:
        raise OidcError(f"Invalid provider JWKS: {e}") from e

    kid = header.get("kid")
    candidates = [k for k in key_set.keys if kid is None or k.key_id == kid]
    if not candidates:
        raise OidcError("No provider key matches the ID token")

    try:
        return jwt.decode(
            id_token,
            candidates[0].key,
            algorithms=[algorithm],
            audience=config.client_id,
            issuer=metadata["issuer"],
            leeway=CLOCK_SKEW_SECONDS,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.PyJWTError as e:
        logger.warning("ID token verification failed: %s", e)
        raise OidcError(f"Invalid ID token: {e}") from e


async def exchange_code_for_tokens(
    config: OidcConfig,
    code: str,
    state: str,
    expected_state: str,
    nonce: str,
    code_verifier: str,
    http_client: Optional[httpx.AsyncClient] = None,
) -> tuple[OidcClaims, str]:
    """Redeem an authorization code and return the verified claims and ID token.

    Raises:
        OidcError: State mismatch, provider error or invalid ID token.
    """
    if not secrets.compare_digest(state, expected_state):
        raise OidcError("Invalid state parameter")

    metadata = await get_provider_metadata(config, http_client)
    form = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": config.redirect_uri,
        "code_verifier": code_verifier,
    }
    auth = (config.client_id, config.client_secret)
    try:
        if http_client is not None:
            response = await http_client.post(metadata["token_endpoint"], data=form, auth=auth)
        else:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
                response = await client.post(metadata["token_endpoint"], data=form, auth=auth)
    except httpx.HTTPError as e:
        logger.error("OIDC token request failed", extra={"error": str(e)})
        raise OidcError(f"OIDC token request failed: {e}") from e

    if not response.is_success:
        logger.error(
            "OIDC token endpoint rejected the code",
            extra={"status": response.status_code, "error": response.text},
        )
        raise OidcError(f"Token endpoint answered {response.status_code}")

    id_token = _json_object(response).get("id_token")
    if not id_token:
        raise OidcError("No ID token in token response")

    claims = await _verify_id_token(id_token, config, metadata, http_client)
    if claims.get("nonce") != nonce:
        raise OidcError("ID token nonce mismatch")

    groups = claims.get("groups")
    return (
        OidcClaims(
            sub=claims["sub"],
            email=claims.get("email"),
            preferred_username=claims.get("preferred_username"),
            name=claims.get("name"),
            groups=[g for g in groups if isinstance(g, str)] if isinstance(groups, list) else [],
        ),
        id_token,
    )


def map_groups_to_role(groups: list[str], config: Optional[OidcConfig]) -> Role:
    """Admin group wins over advanced group; otherwise the default role."""
    if config is None:
        return Role.MANAGED_USER
    if config.admin_group and config.admin_group in groups:
        return Role.ADMIN
    if config.advanced_group and config.advanced_group in groups:
        return Role.ADVANCED_USER
    return config.default_role


async def get_logout_url(
    config: OidcConfig,
    id_token_hint: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Optional[str]:
    """RP-initiated logout URL, or None when the provider does not offer one."""
    try:
        metadata = await get_provider_metadata(config, http_client)
    except OidcError:
        return None

    endpoint = metadata.get("end_session_endpoint")
    if not endpoint:
        return None

    redirect = urlsplit(config.redirect_uri)
    params = {"post_logout_redirect_uri": f"{redirect.scheme}://{redirect.netloc}/login"}
    if id_token_hint:
        params["id_token_hint"] = id_token_hint
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{urlencode(params)}"
