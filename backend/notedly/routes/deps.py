"""
Notedly Backend — Route Dependencies
======================================

What:  Resolves the calling user from the `Authorization: Bearer <token>`
       header.
How:   The token is hashed (SHA3-256) and matched against users.token_hash
       by IdentityService.authenticate(). Shares the request's session with
       the route, since FastAPI caches get_db_session per request.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from notedly.database import get_db_session
from notedly.exceptions import AuthenticationError
from notedly.models.user import User
from notedly.services.identity_service import identity_service


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an Authorization header value, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    token = bearer_token(authorization)
    if token is None:
        raise AuthenticationError()
    return await identity_service.authenticate(db, token)
