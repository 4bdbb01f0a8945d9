"""
Transactions router — create and list transactions for a joint account.

Endpoints (mounted under /accounts, caller must be an owner):
  POST /accounts/{account_id}/transactions       — DEPOSIT, WITHDRAWAL or TRANSFER
  GET  /accounts/{account_id}/transactions       — List transactions (newest first)
  GET  /accounts/{account_id}/transactions/{id}  — Get a single transaction
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.database import get_db
from jointbank.dependencies import get_current_user
from jointbank.models.transaction import TransactionType
from jointbank.models.user import User
from jointbank.schemas.common import ApiResponse, envelope
from jointbank.schemas.transaction import TransactionCreateRequest, TransactionResponse
from jointbank.services import transaction_service

router = APIRouter()


@router.post(
    "/{account_id}/transactions",
    response_model=ApiResponse[TransactionResponse],
    status_code=201,
    summary="Create a transaction",
)
async def create_transaction(
    account_id: uuid.UUID,
    request: TransactionCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """
    Post a transaction to a joint account.

    - **DEPOSIT**: adds `amount` to the balance
    - **WITHDRAWAL**: removes `amount` from the balance
    - **TRANSFER**: removes `amount` and sends it to `recipientIban`; if that
      IBAN belongs to another account in this bank it is credited at once

    Withdrawals and transfers larger than the balance are rejected with
    "Insufficient funds" and leave the balance untouched.
    """
    txn = await transaction_service.create_transaction(
        db=db,
        account_id=account_id,
        user_id=user.id,
        txn_type=request.type,
        amount_cents=request.amount_cents,
        description=request.description,
        recipient_iban=request.recipient_iban,
        recipient_name=request.recipient_name,
    )
    return envelope(txn)


@router.get(
    "/{account_id}/transactions",
    response_model=ApiResponse[list[TransactionResponse]],
    summary="List transactions for an account",
)
async def list_transactions(
    account_id: uuid.UUID,
    type: TransactionType | None = Query(None, description="Filter by transaction type"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """List transactions for a specific account, newest first."""
    return envelope(
        await transaction_service.get_transactions(
            db=db,
            account_id=account_id,
            user_id=user.id,
            type_filter=type,
            limit=limit,
            offset=offset,
        )
    )


@router.get(
    "/{account_id}/transactions/{transaction_id}",
    response_model=ApiResponse[TransactionResponse],
    summary="Get a single transaction",
)
async def get_transaction(
    account_id: uuid.UUID,
    transaction_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """Get details for a specific transaction."""
    return envelope(
        await transaction_service.get_transaction(
            db=db,
            account_id=account_id,
            transaction_id=transaction_id,
            user_id=user.id,
        )
    )
