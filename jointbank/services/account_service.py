"""
Account service — business logic for joint account operations.

This module handles:
  - Account creation (unique account number + IBAN, PRIMARY owner)
  - Inviting co-owners
  - Account retrieval (single or list, scoped to the acting user)
  - Balance verification (stored vs. recomputed from transactions)

Ownership enforcement:
  Every function takes the acting user's ID, resolved from the bearer token
  by the dependency layer. Access is granted if and only if a JointOwner row
  exists for (account, user). Ownership is checked BEFORE existence, so a
  caller probing random account IDs gets 403 whether or not the account
  exists.
"""

import logging
import random
import string
import uuid

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jointbank.config import settings
from jointbank.exceptions import (
    AccountNotFoundError,
    AlreadyOwnerError,
    UnauthorizedAccessError,
    UserNotFoundError,
)
from jointbank.iban import build_iban
from jointbank.models.joint_account import AccountType, JointAccount, JointOwner, OwnerRole
from jointbank.models.transaction import Transaction, TransactionType
from jointbank.models.user import User

logger = logging.getLogger(__name__)


def _generate_account_number() -> str:
    """Generate a random 10-digit account number."""
    return "".join(random.choices(string.digits, k=10))


async def load_account(db: AsyncSession, account_id: uuid.UUID) -> JointAccount | None:
    """
    Load an account with its owners (and each owner's user) eagerly.

    populate_existing refreshes an instance that is already in the session,
    so callers always see the committed balance rather than a stale copy.
    """
    result = await db.execute(
        select(JointAccount)
        .where(JointAccount.id == account_id)
        .options(selectinload(JointAccount.owners).selectinload(JointOwner.user))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_ownership(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> JointOwner | None:
    result = await db.execute(
        select(JointOwner)
        .where(JointOwner.joint_account_id == account_id)
        .where(JointOwner.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def require_ownership(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
    detail: str = "You do not have access to this account",
) -> JointOwner:
    """
    Return the caller's JointOwner row for the account.

    Raises:
        UnauthorizedAccessError: If the user is not an owner of the account.
    """
    ownership = await get_ownership(db, account_id, user_id)
    if ownership is None:
        raise UnauthorizedAccessError(detail)
    return ownership


async def create_account(
    db: AsyncSession,
    user_id: uuid.UUID,
    name: str = "Joint Account",
    currency: str | None = None,
    account_type: AccountType = AccountType.CHECKING,
) -> JointAccount:
    """
    Open a new joint account with the acting user as PRIMARY owner.

    The account starts with a zero balance. A unique 10-digit account number
    is generated and the IBAN is derived from it.

    Args:
        db: Database session.
        user_id: The acting user, who becomes the first owner.
        name: Display name of the account.
        currency: ISO 4217 code; defaults to settings.DEFAULT_CURRENCY.
        account_type: CHECKING, SAVINGS or BUSINESS.

    Returns:
        The newly created JointAccount, owners loaded.
    """
    # Retry on the (extremely unlikely) collision of random account numbers
    for _ in range(10):
        account_number = _generate_account_number()
        existing = await db.execute(
            select(JointAccount.id).where(JointAccount.account_number == account_number)
        )
        if existing.scalar_one_or_none() is None:
            break
    else:
        raise RuntimeError("Failed to generate a unique account number")

    account = JointAccount(
        name=name or "Joint Account",
        account_number=account_number,
        iban=build_iban(settings.BANK_CODE, account_number),
        account_type=account_type,
        currency=(currency or settings.DEFAULT_CURRENCY).upper(),
        balance_cents=0,
    )
    db.add(account)
    await db.flush()

    db.add(
        JointOwner(
            joint_account_id=account.id,
            user_id=user_id,
            role=OwnerRole.PRIMARY,
            permissions=["FULL_ACCESS"],
        )
    )
    await db.flush()

    logger.info(
        "account_created",
        extra={"account_id": str(account.id), "user_id": str(user_id)},
    )
    return await load_account(db, account.id)


async def invite_to_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    invited_user_id: uuid.UUID,
    inviting_user_id: uuid.UUID,
    permissions: list[str] | None = None,
) -> JointOwner:
    """
    Add another user as CO_OWNER of a joint account.

    Raises:
        UnauthorizedAccessError: If the inviting user is not an owner.
        AccountNotFoundError: If the account does not exist.
        UserNotFoundError: If the invited user does not exist.
        AlreadyOwnerError: If the invited user already has access.
    """
    await require_ownership(
        db,
        account_id,
        inviting_user_id,
        detail="You do not have permission to invite users to this account",
    )

    account = await db.get(JointAccount, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)

    invited_user = await db.get(User, invited_user_id)
    if invited_user is None or not invited_user.is_active:
        raise UserNotFoundError(f"User {invited_user_id} not found")

    if await get_ownership(db, account_id, invited_user_id) is not None:
        raise AlreadyOwnerError()

    ownership = JointOwner(
        joint_account_id=account_id,
        user=invited_user,
        role=OwnerRole.CO_OWNER,
        permissions=permissions or ["FULL_ACCESS"],
    )
    db.add(ownership)
    await db.flush()

    logger.info(
        "owner_invited",
        extra={
            "account_id": str(account_id),
            "invited_user_id": str(invited_user_id),
            "inviting_user_id": str(inviting_user_id),
        },
    )
    return ownership


async def get_user_accounts(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> list[JointAccount]:
    """List every joint account the user is an owner of, oldest first."""
    result = await db.execute(
        select(JointAccount)
        .join(JointOwner, JointOwner.joint_account_id == JointAccount.id)
        .where(JointOwner.user_id == user_id)
        .options(selectinload(JointAccount.owners).selectinload(JointOwner.user))
        .order_by(JointAccount.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> JointAccount:
    """
    Get a single account, verifying ownership.

    Raises:
        UnauthorizedAccessError: If the user is not an owner.
        AccountNotFoundError: If the account doesn't exist.
    """
    await require_ownership(db, account_id, user_id)

    account = await load_account(db, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def get_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> dict:
    """
    Get the stored balance alongside the balance recomputed from history.

    Returns:
        Dict with account_id, cached_balance_cents, computed_balance_cents,
        match, currency.
    """
    account = await get_account(db, account_id, user_id)
    computed_balance_cents = await compute_balance_from_transactions(db, account_id)

    return {
        "account_id": account.id,
        "cached_balance_cents": account.balance_cents,
        "computed_balance_cents": computed_balance_cents,
        "match": account.balance_cents == computed_balance_cents,
        "currency": account.currency,
    }


async def compute_balance_from_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
) -> int:
    """
    Sum the signed amounts of all transactions on an account.

    DEPOSIT and TRANSFER_IN count positive, WITHDRAWAL and TRANSFER negative.
    """
    debit_types = [t for t in TransactionType if t.is_debit]
    signed_amount = case(
        (Transaction.type.in_(debit_types), -Transaction.amount_cents),
        else_=Transaction.amount_cents,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed_amount), 0))
        .where(Transaction.account_id == account_id)
    )
    return int(result.scalar())
