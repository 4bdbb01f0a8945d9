"""
Pydantic schemas for authentication endpoints.

Pydantic validates incoming data automatically; if a required field is
missing or the wrong type, FastAPI rejects the request before our code runs.
"""

from datetime import datetime

from pydantic import EmailStr, Field

from jointbank.schemas.common import CamelModel
from jointbank.schemas.user import UserResponse


class RegisterRequest(CamelModel):
    """Request body for POST /auth/register."""
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=20)


class LoginRequest(CamelModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class OTPSendRequest(CamelModel):
    email: EmailStr


class OTPVerifyRequest(CamelModel):
    email: EmailStr
    otp: str = Field(min_length=4, max_length=12, pattern=r"^\d+$")


class AuthResponse(CamelModel):
    """Returned by register, login and OTP verification."""
    user: UserResponse
    token: str
    token_type: str = "bearer"


class OTPSentResponse(CamelModel):
    message: str
    expires_at: datetime
