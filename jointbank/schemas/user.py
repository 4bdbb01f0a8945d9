"""
Pydantic schemas for User-related requests and responses.

hashed_password and the OTP fields are NEVER included in any response
schema; this is a security boundary.
"""

import uuid
from datetime import datetime

from pydantic import Field

from jointbank.schemas.common import CamelModel


class UserResponse(CamelModel):
    """Public representation of a User."""
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone: str | None
    created_at: datetime


class UserSummary(CamelModel):
    """Minimal user info embedded in account ownership listings."""
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str


class ProfileUpdateRequest(CamelModel):
    """Request body for PATCH /users/me (all fields optional)."""
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=20)


class PasswordChangeRequest(CamelModel):
    """Request body for PUT /users/me/password."""
    current_password: str
    new_password: str = Field(min_length=8)
