"""
Shared pydantic building blocks.

Every API payload uses camelCase keys on the wire (e.g. `balanceAfter`,
`recipientIban`) while Python code keeps snake_case attribute names. Request
bodies accept either spelling.

Monetary amounts travel in two forms:
  - major units (`amount`, `balance`) for display, at most 2 decimal places
  - integer cents (`amountCents`, `balanceCents`) for exact arithmetic

Internally everything is integer cents.
"""

from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model with camelCase aliases and ORM attribute loading."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Success half of the {success, data | error} envelope."""
    success: bool = True
    data: T


class MessageResponse(CamelModel):
    message: str


def envelope(data: Any) -> dict:
    """
    Wrap a payload for an ApiResponse[...] response_model.

    ORM instances may be passed as-is; FastAPI validates them against the
    declared response model with from_attributes enabled.
    """
    return {"success": True, "data": data}


def to_cents(amount: Decimal) -> int:
    """Convert a major-unit amount (max 2 decimal places) to integer cents."""
    return int((amount * 100).to_integral_value())


def from_cents(cents: int) -> float:
    return cents / 100
