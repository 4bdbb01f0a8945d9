"""
FastAPI dependencies for authentication.

Dependencies are reusable functions that FastAPI injects into route handlers.
Every protected endpoint declares `get_current_user`; if the bearer token is
missing, expired, tampered with, or points at an unknown or deactivated user,
the request is rejected with 401 before the route handler runs.

Authorization (is this user an owner of that account?) is NOT decided here:
it depends on the account in the path, so the service layer checks it.
"""

import uuid

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.database import get_db
from jointbank.exceptions import AuthenticationError
from jointbank.models.user import User
from jointbank.security import decode_access_token


# Reads the "Authorization: Bearer <token>" header. tokenUrl only feeds
# Swagger UI's "Authorize" button.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Args:
        token: JWT from the Authorization header (injected by OAuth2PasswordBearer).
        db: Database session (injected by get_db).

    Returns:
        The authenticated User instance.

    Raises:
        AuthenticationError: If the token is invalid or the user doesn't exist.
    """
    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise AuthenticationError()
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise AuthenticationError()

    user = await db.get(User, user_id)

    if user is None or not user.is_active:
        raise AuthenticationError()

    return user
