"""
Pydantic schemas for transaction endpoints.

Clients send `amount` in major units (e.g. 250 or 12.34); it is converted to
integer cents before it reaches the service layer.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field, computed_field

from jointbank.models.transaction import TransactionStatus, TransactionType
from jointbank.schemas.common import CamelModel, from_cents, to_cents


class TransactionCreateRequest(CamelModel):
    """Request body for POST /accounts/{id}/transactions."""
    type: Literal["DEPOSIT", "WITHDRAWAL", "TRANSFER"]
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: str = Field(min_length=1, max_length=255)
    recipient_iban: str | None = Field(None, max_length=42)
    recipient_name: str | None = Field(None, max_length=100)

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


class TransactionResponse(CamelModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    account_id: uuid.UUID
    type: TransactionType
    amount_cents: int
    balance_after_cents: int
    description: str | None
    recipient_iban: str | None
    recipient_name: str | None
    counterparty_account_id: uuid.UUID | None
    transfer_pair_id: uuid.UUID | None
    status: TransactionStatus
    reference: str
    processed_by: uuid.UUID
    created_at: datetime

    @computed_field
    @property
    def amount(self) -> float:
        return from_cents(self.amount_cents)

    @computed_field(alias="balanceAfter")
    @property
    def balance_after(self) -> float:
        return from_cents(self.balance_after_cents)
