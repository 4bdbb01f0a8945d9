"""
JointAccount and JointOwner models — balance holders and their owners.

A JointAccount is a named balance holder with one or more owning users. The
many-to-many link is the JointOwner row, which carries the owner's role and
permission set. Authorization is purely existential: if a JointOwner row
exists for (account, user), the user may read and transact on the account.

Balance management:
  `balance_cents` stores the current balance as integer cents. It is only
  ever changed by a single conditional UPDATE issued from the transaction
  service (see transaction_service.apply_balance_change), in the same
  database transaction as the Transaction row that records the change.
  `version` is bumped by that same statement, so any stale copy of the row
  is detectable.

  A CHECK constraint at the database level enforces that the balance can
  never go negative, even if a bug bypasses the service-level guard.

Account identifiers:
  - account_number: random 10-digit string, unique
  - iban: German-format IBAN built from BANK_CODE + account_number, used as
    the recipient identifier in transfers
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jointbank.database import Base


class AccountType(str, enum.Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    BUSINESS = "BUSINESS"


class AccountStatus(str, enum.Enum):
    """
    Lifecycle state of a joint account.

    Only ACTIVE accounts accept new transactions. FROZEN and CLOSED accounts
    stay readable so owners can still see their history.
    """
    ACTIVE = "ACTIVE"
    FROZEN = "FROZEN"
    CLOSED = "CLOSED"


class OwnerRole(str, enum.Enum):
    PRIMARY = "PRIMARY"     # The user who opened the account
    CO_OWNER = "CO_OWNER"   # Invited later by an existing owner


class JointAccount(Base):
    __tablename__ = "joint_accounts"

    # Database-level constraint: balance can never be negative
    __table_args__ = (
        CheckConstraint(
            "balance_cents >= 0",
            name="ck_joint_accounts_non_negative_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="Joint Account",
    )

    account_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
    )

    iban: Mapped[str] = mapped_column(
        String(34),
        unique=True,
        nullable=False,
        index=True,
    )

    account_type: Mapped[AccountType] = mapped_column(
        Enum(AccountType),
        nullable=False,
        default=AccountType.CHECKING,
    )

    # ISO 4217 currency code
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="EUR",
    )

    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )

    # Incremented with every balance change
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
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
    owners: Mapped[list["JointOwner"]] = relationship(
        back_populates="joint_account",
        lazy="selectin",
        order_by="JointOwner.created_at",
    )


class JointOwner(Base):
    __tablename__ = "joint_owners"

    # One membership row per (account, user) pair
    __table_args__ = (
        UniqueConstraint(
            "joint_account_id",
            "user_id",
            name="uq_joint_owners_account_user",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    joint_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("joint_accounts.id"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    role: Mapped[OwnerRole] = mapped_column(
        Enum(OwnerRole),
        nullable=False,
        default=OwnerRole.CO_OWNER,
    )

    # Free-form permission tags, e.g. ["FULL_ACCESS"] or ["VIEW", "TRANSACT"]
    permissions: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: ["FULL_ACCESS"],
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    joint_account: Mapped["JointAccount"] = relationship(
        back_populates="owners",
    )
    user: Mapped["User"] = relationship(
        back_populates="ownerships",
        lazy="selectin",
    )
