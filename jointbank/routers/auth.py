"""
Authentication router — registration, login and OTP endpoints.

Public (unauthenticated) endpoints:
  POST /auth/register    — Register a new user and get a token
  POST /auth/login       — Authenticate with email + password
  POST /auth/otp/send    — Issue a one-time password to the user's e-mail
  POST /auth/otp/verify  — Exchange a valid one-time password for a token

Authenticated endpoints:
  GET  /auth/me          — The current user's profile
  POST /auth/logout      — Acknowledge logout (tokens are discarded client-side)

Security audit notes:
  - Plaintext passwords and OTP codes exist only in memory during request
    processing; they are never logged.
  - RequestIDMiddleware logs method, path and status only, never bodies.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.database import get_db
from jointbank.dependencies import get_current_user
from jointbank.models.user import User
from jointbank.schemas.auth import (
    AuthResponse,
    LoginRequest,
    OTPSendRequest,
    OTPSentResponse,
    OTPVerifyRequest,
    RegisterRequest,
)
from jointbank.schemas.common import ApiResponse, MessageResponse, envelope
from jointbank.schemas.user import UserResponse
from jointbank.services import auth_service

router = APIRouter()


@router.post(
    "/register",
    response_model=ApiResponse[AuthResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Register a new user and log them in.

    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    - **firstName** / **lastName**: Required, 1-100 characters
    - **phone**: Optional
    """
    user, token = await auth_service.register(
        db=db,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )
    return envelope({"user": user, "token": token})


@router.post(
    "/login",
    response_model=ApiResponse[AuthResponse],
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Authenticate with email and password.

    Returns a JWT bearer token that must be included in the Authorization
    header for all subsequent requests:

        Authorization: Bearer <token>
    """
    user, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return envelope({"user": user, "token": token})


@router.post(
    "/otp/send",
    response_model=ApiResponse[OTPSentResponse],
    summary="Send a one-time password",
)
async def send_otp(
    request: OTPSendRequest,
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """Issue a fresh one-time password; any earlier code stops working."""
    expires_at = await auth_service.issue_otp(db, request.email)
    return envelope(
        {"message": "OTP sent successfully to your email", "expires_at": expires_at}
    )


@router.post(
    "/otp/verify",
    response_model=ApiResponse[AuthResponse],
    summary="Verify a one-time password",
)
async def verify_otp(
    request: OTPVerifyRequest,
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """Exchange a valid, unexpired one-time password for a bearer token."""
    user, token = await auth_service.verify_otp(db, request.email, request.otp)
    return envelope({"user": user, "token": token})


@router.get(
    "/me",
    response_model=ApiResponse[UserResponse],
    summary="Get the current user",
)
async def me(user: User = Depends(get_current_user)):
    return envelope(user)


@router.post(
    "/logout",
    response_model=ApiResponse[MessageResponse],
    summary="Log out",
)
async def logout(user: User = Depends(get_current_user)):
    """
    JWTs are stateless, so logout is the client discarding its token. The
    endpoint exists so clients have a uniform call to make.
    """
    return envelope({"message": "Logged out successfully"})
