from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fileshare.core.errors import Unauthorized
from fileshare.core.security import Identity, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Identity]:
    """Anonymous when no bearer token is sent; a bad token is still rejected."""
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)


async def require_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise Unauthorized("Invalid or missing authentication token")
    return identity


async def require_admin_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    if credentials is None:
        raise Unauthorized("Admin token required")
    if not request.app.state.admin_tokens.verify(credentials.credentials):
        raise Unauthorized("Invalid or expired admin token")
