"""
User model — the authentication identity and personal profile.

A User logs in with email + password and, optionally, a one-time password
(OTP) sent out-of-band as a second factor. Users own joint accounts through
JointOwner rows; a user never owns an account directly.

The password is stored as an Argon2id hash, never in plaintext. The OTP code
and its expiry live on the user row; both are cleared once the code is used
or found to be expired, so at most one code is valid per user at a time.

Users are never hard-deleted: `is_active=False` blocks login and token use
while preserving ownership history.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jointbank.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Email is the login identifier: unique and indexed
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Pending second-factor code; NULL when none has been issued
    otp_code: Mapped[str | None] = mapped_column(
        String(12),
        nullable=True,
    )
    otp_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Wrong guesses against the pending code; reset whenever a code is issued
    otp_attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    ownerships: Mapped[list["JointOwner"]] = relationship(
        back_populates="user",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
