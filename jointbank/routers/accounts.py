"""
Accounts router — joint account management endpoints.

All endpoints require a bearer JWT and are scoped to accounts the caller is
an owner of:

    POST   /accounts                        — Open a new joint account
    GET    /accounts                        — List own accounts
    GET    /accounts/{account_id}           — Get account details and owners
    GET    /accounts/{account_id}/balance   — Stored vs. recomputed balance
    POST   /accounts/{account_id}/invite    — Add a co-owner

Non-owners receive 403 regardless of whether the account exists.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.database import get_db
from jointbank.dependencies import get_current_user
from jointbank.models.user import User
from jointbank.schemas.account import (
    AccountCreateRequest,
    AccountResponse,
    BalanceResponse,
    InviteRequest,
    OwnerResponse,
)
from jointbank.schemas.common import ApiResponse, envelope
from jointbank.services import account_service

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[AccountResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Open a new joint account",
)
async def create_account(
    request: AccountCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Open a joint account with a zero balance.

    The authenticated user becomes its PRIMARY owner. The account gets a
    random 10-digit account number and a matching IBAN.
    """
    account = await account_service.create_account(
        db=db,
        user_id=user.id,
        name=request.name,
        currency=request.currency,
        account_type=request.account_type,
    )
    return envelope(account)


@router.get(
    "",
    response_model=ApiResponse[list[AccountResponse]],
    summary="List your accounts",
)
async def list_accounts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """List every joint account the authenticated user is an owner of."""
    return envelope(await account_service.get_user_accounts(db, user.id))


@router.get(
    "/{account_id}",
    response_model=ApiResponse[AccountResponse],
    summary="Get account details",
)
async def get_account(
    account_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return envelope(await account_service.get_account(db, account_id, user.id))


@router.get(
    "/{account_id}/balance",
    response_model=ApiResponse[BalanceResponse],
    summary="Check account balance",
)
async def get_balance(
    account_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Get the stored balance and the balance recomputed from transactions.

    `match` is false only if the two have drifted apart, which would signal
    a data integrity problem.
    """
    return envelope(await account_service.get_balance(db, account_id, user.id))


@router.post(
    "/{account_id}/invite",
    response_model=ApiResponse[OwnerResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Invite a co-owner",
)
async def invite_to_account(
    account_id: uuid.UUID,
    request: InviteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Grant another registered user access to this account.

    Any existing owner may invite. The invitee joins as CO_OWNER.
    """
    ownership = await account_service.invite_to_account(
        db=db,
        account_id=account_id,
        invited_user_id=request.user_id,
        inviting_user_id=user.id,
        permissions=request.permissions,
    )
    return envelope(ownership)
