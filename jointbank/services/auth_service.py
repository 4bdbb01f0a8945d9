"""
Authentication service — registration, login and one-time passwords.

This module contains the core auth logic, separated from HTTP concerns. The
router calls these functions and translates the results into HTTP responses.

Register flow:
  1. Check if email is already registered
  2. Hash the password with Argon2id
  3. Create the User
  4. Return a JWT so the user is immediately logged in

Login flow (single factor):
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT

OTP flow (second factor / passwordless login):
  1. issue_otp() stores a fresh numeric code with an expiry on the user row
     and hands it to the notification service for delivery
  2. verify_otp() checks code and expiry, clears the code, returns a JWT
  3. After OTP_MAX_ATTEMPTS wrong codes the pending code is discarded and a
     new one must be requested

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration
  - An expired code is cleared as soon as it is presented
  - Failed attempts are counted with an atomic UPDATE, so parallel guesses
    cannot exceed the limit
  - Codes, passwords and tokens are never logged
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.config import settings
from jointbank.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidOTPError,
    UserNotFoundError,
)
from jointbank.models.user import User
from jointbank.security import (
    create_access_token,
    generate_otp,
    hash_password,
    otp_matches,
    verify_password,
)
from jointbank.services import notification_service

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back; all stored timestamps are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def register(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone: str | None = None,
) -> tuple[User, str]:
    """
    Register a new user.

    Args:
        db: Database session.
        email: User's email (must be unique, stored lower-cased).
        password: Plaintext password (hashed before storage).
        first_name: Given name.
        last_name: Family name.
        phone: Optional phone number.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    email = email.lower()
    if await get_user_by_email(db, email) is not None:
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
    )
    db.add(user)
    await db.flush()

    logger.info("user_registered", extra={"user_id": str(user.id)})

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user with email and password and return a JWT.

    Raises:
        InvalidCredentialsError: If email doesn't exist, password is wrong,
                                 or the user is deactivated.
    """
    user = await get_user_by_email(db, email)

    # Same error for every case, so emails cannot be enumerated
    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def issue_otp(db: AsyncSession, email: str) -> datetime:
    """
    Generate a one-time password for the user and dispatch it.

    Any previously issued code is replaced.

    Returns:
        The expiry timestamp of the new code.

    Raises:
        UserNotFoundError: If no active user has this email.
    """
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        raise UserNotFoundError()

    code = generate_otp()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)

    user.otp_code = code
    user.otp_expires_at = expires_at
    user.otp_attempts = 0
    await db.flush()

    await notification_service.send_otp(user.email, code, expires_at)
    return expires_at


async def verify_otp(db: AsyncSession, email: str, otp: str) -> tuple[User, str]:
    """
    Check a one-time password and, if valid, log the user in.

    The code is single-use: it is cleared on success, when found expired,
    and once too many wrong codes have been tried against it.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        UserNotFoundError: If no active user has this email.
        InvalidOTPError: If no code is pending, the code expired, it
                         doesn't match, or the attempt limit was reached.
    """
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        raise UserNotFoundError()

    if not user.otp_code or not user.otp_expires_at:
        raise InvalidOTPError("No valid OTP found. Please request a new one.")

    if datetime.now(timezone.utc) > _as_utc(user.otp_expires_at):
        user.otp_code = None
        user.otp_expires_at = None
        await db.flush()
        # Commit the cleared code even though the request fails
        await db.commit()
        raise InvalidOTPError("OTP has expired. Please request a new one.")

    if not otp_matches(otp, user.otp_code):
        exhausted = await _record_failed_otp(db, user)
        # Commit the attempt even though the request fails
        await db.commit()
        if exhausted:
            raise InvalidOTPError("Too many invalid attempts. Please request a new one.")
        raise InvalidOTPError("Invalid OTP code")

    user.otp_code = None
    user.otp_expires_at = None
    user.otp_attempts = 0
    await db.flush()

    logger.info("otp_verified", extra={"user_id": str(user.id)})

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def _record_failed_otp(db: AsyncSession, user: User) -> bool:
    """Count a wrong code. Returns True if the code was discarded at the limit."""
    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(otp_attempts=User.otp_attempts + 1)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(user, attribute_names=["otp_attempts"])

    exhausted = user.otp_attempts >= settings.OTP_MAX_ATTEMPTS
    if exhausted:
        user.otp_code = None
        user.otp_expires_at = None
        await db.flush()
        logger.info("otp_locked", extra={"user_id": str(user.id)})
    return exhausted
