"""
User service — profile and password management for the logged-in user.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.exceptions import InvalidCredentialsError, InvalidRequestError
from jointbank.models.user import User
from jointbank.security import hash_password, verify_password

logger = logging.getLogger(__name__)

UPDATABLE_PROFILE_FIELDS = ("first_name", "last_name", "phone")


async def update_profile(db: AsyncSession, user: User, updates: dict) -> User:
    """
    Apply a partial profile update.

    Only keys present in `updates` are touched (PATCH semantics). Email and
    password are not changeable here.
    """
    for field, value in updates.items():
        if field not in UPDATABLE_PROFILE_FIELDS:
            raise InvalidRequestError(f"Field {field} cannot be updated")
        if value is None and field != "phone":
            raise InvalidRequestError(f"Field {field} cannot be empty")
        setattr(user, field, value)

    await db.flush()
    return user


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    """
    Replace the user's password after re-checking the current one.

    Raises:
        InvalidCredentialsError: If current_password is wrong.
        InvalidRequestError: If the new password equals the current one.
    """
    if not verify_password(current_password, user.hashed_password):
        raise InvalidCredentialsError()
    if current_password == new_password:
        raise InvalidRequestError("New password must differ from the current password")

    user.hashed_password = hash_password(new_password)
    await db.flush()

    logger.info("password_changed", extra={"user_id": str(user.id)})
