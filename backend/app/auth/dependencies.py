"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.auth.jwt import decode_token
from app.scheduling.types import Actor, Role

# Strict bearer — raises 403 automatically if no token provided
_bearer_scheme = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> Actor:
    """Extract and validate the Bearer token, then return the calling actor.

    Identity and role come from the token claims; the booking engine never
    looks up credentials itself.

    Raises:
        HTTPException 401: If the token is invalid, expired, wrong type, or
            carries an unusable subject or role.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise credentials_exception from None

    # Only accept access tokens
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub: str | None = payload.get("sub")
    if sub is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(sub)
        role = Role(payload.get("role", Role.USER.value))
    except ValueError:
        raise credentials_exception from None

    return Actor(id=user_id, role=role)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Return the actor only if they are an administrator.

    Raises:
        HTTPException 403: For non-admin actors.
    """
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can perform this action",
        )
    return actor
