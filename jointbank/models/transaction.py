"""
Transaction model — an immutable record of one balance-affecting event.

A Transaction row is written in the same database transaction as the balance
change it describes, and carries the resulting balance (`balance_after_cents`).
There is no update or delete path for transactions anywhere in the code base.

Types:
  - DEPOSIT: money into the account
  - WITHDRAWAL: money out of the account
  - TRANSFER: money out of the account to a recipient IBAN
  - TRANSFER_IN: money into the account from another joint account in this
    bank; written automatically as the second leg of an internal TRANSFER

The two legs of an internal transfer share a `transfer_pair_id` and point at
each other's account through `counterparty_account_id`.

Why amount_cents is always positive:
  The direction is carried by `type`. A CHECK constraint rejects zero and
  negative amounts at the database level.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jointbank.database import Base


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    TRANSFER_IN = "TRANSFER_IN"

    @property
    def is_debit(self) -> bool:
        return self in (TransactionType.WITHDRAWAL, TransactionType.TRANSFER)


class TransactionStatus(str, enum.Enum):
    # Transactions are settled synchronously, so COMPLETED is the only state
    # a persisted row can be in.
    COMPLETED = "COMPLETED"


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
        CheckConstraint(
            "balance_after_cents >= 0",
            name="ck_transactions_non_negative_balance_after",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("joint_accounts.id"),
        nullable=False,
        index=True,
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    balance_after_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    recipient_iban: Mapped[str | None] = mapped_column(
        String(34),
        nullable=True,
    )
    recipient_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Other joint account involved in an internal transfer
    counterparty_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("joint_accounts.id"),
        nullable=True,
    )

    # Links the two legs of an internal transfer
    transfer_pair_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )

    # Human-readable reference shown on statements, e.g. "TX-3F2A9C1B7D40"
    reference: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
    )

    # User who initiated the transaction
    processed_by: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    # Indexed for newest-first listing
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
