"""Principal resolution dependencies for API routes."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import PrincipalConfig, get_principal_config
from services.errors import Unauthorized
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None
    is_default_principal: bool = False


def _decode_credentials(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[AuthContext]:
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    try:
        payload = decode_session_token(credentials.credentials)
    except ValueError:
        return None
    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
    )


def resolve_principal(
    credentials: Optional[HTTPAuthorizationCredentials],
    principal_config: Optional[PrincipalConfig] = None,
) -> Optional[AuthContext]:
    """Return the token principal, else the configured default principal if allowed."""
    context = _decode_credentials(credentials)
    if context is not None:
        return context
    if principal_config is not None and principal_config.allow_default_principal:
        return AuthContext(user_id=principal_config.default_principal_id, is_default_principal=True)
    return None


async def get_optional_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> Optional[AuthContext]:
    """Resolve the principal when present; never rejects the request."""
    return resolve_principal(credentials)


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Require an authenticated principal from a Bearer session token."""
    context = resolve_principal(credentials)
    if context is None:
        raise Unauthorized()
    return context


async def get_auth_context_or_default(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    principal_config: PrincipalConfig = Depends(get_principal_config),
) -> AuthContext:
    """Like get_auth_context, but falls back to the configured default principal."""
    context = resolve_principal(credentials, principal_config)
    if context is None:
        raise Unauthorized()
    return context
