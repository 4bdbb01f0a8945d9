"""
Pydantic schemas for joint account endpoints.

Balances are exposed both as integer cents (`balanceCents`) and in major
units (`balance`).
"""

import uuid
from datetime import datetime

from pydantic import Field, computed_field, field_validator

from jointbank.config import settings
from jointbank.models.joint_account import AccountStatus, AccountType, OwnerRole
from jointbank.schemas.common import CamelModel, from_cents
from jointbank.schemas.user import UserSummary


class AccountCreateRequest(CamelModel):
    """Request body for POST /accounts."""
    name: str = Field(default="Joint Account", min_length=1, max_length=100)
    currency: str = Field(default=settings.DEFAULT_CURRENCY, min_length=3, max_length=3)
    account_type: AccountType = AccountType.CHECKING

    @field_validator("currency")
    @classmethod
    def currency_is_iso_code(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("Currency must be a 3-letter ISO 4217 code")
        return value.upper()


class InviteRequest(CamelModel):
    """Request body for POST /accounts/{id}/invite."""
    user_id: uuid.UUID
    permissions: list[str] = Field(default_factory=lambda: ["FULL_ACCESS"], min_length=1)


class OwnerResponse(CamelModel):
    """One JointOwner row, with the owning user's summary."""
    id: uuid.UUID
    joint_account_id: uuid.UUID
    user_id: uuid.UUID
    role: OwnerRole
    permissions: list[str]
    created_at: datetime
    user: UserSummary


class AccountResponse(CamelModel):
    """Public representation of a joint account."""
    id: uuid.UUID
    name: str
    account_number: str
    iban: str
    account_type: AccountType
    currency: str
    balance_cents: int
    status: AccountStatus
    version: int
    created_at: datetime
    updated_at: datetime
    owners: list[OwnerResponse]

    @computed_field
    @property
    def balance(self) -> float:
        return from_cents(self.balance_cents)


class BalanceResponse(CamelModel):
    """
    Balance check response — includes both cached and computed values.

    `match` tells whether the stored balance agrees with the balance
    recomputed from the account's transactions. A mismatch would indicate a
    data integrity issue.
    """
    account_id: uuid.UUID
    cached_balance_cents: int
    computed_balance_cents: int
    match: bool
    currency: str

    @computed_field
    @property
    def balance(self) -> float:
        return from_cents(self.cached_balance_cents)
