"""
Transaction service — the core financial business logic.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - DEPOSIT / WITHDRAWAL / TRANSFER transactions on a joint account
  - Internal transfers, when the recipient IBAN belongs to another joint
    account in this bank
  - Balance enforcement (no negative balances)
  - Transaction history queries

Validation order (every operation follows it):
  1. ownership   — caller must have a JointOwner row   (403)
  2. existence   — the account must exist              (404)
  3. status      — the account must be ACTIVE          (400)
  4. payload     — e.g. TRANSFER needs a valid IBAN    (400)
  5. funds       — debits need amount <= balance       (400)

Atomicity and concurrency:
  Balances are never computed in Python and written back. Each change is one
  conditional UPDATE evaluated by the database:

      UPDATE joint_accounts
         SET balance_cents = balance_cents - :amount, version = version + 1
       WHERE id = :id AND balance_cents >= :amount

  Two concurrent deposits therefore both land (no lost update), and two
  concurrent withdrawals can never overdraw the account: the second one
  simply matches no row. The UPDATE and the Transaction INSERT share the
  request's database transaction (see database.get_db), so they commit or
  roll back together.

Deadlock prevention:
  An internal transfer touches two accounts. The source is read without a
  lock until the recipient is resolved, then both rows are locked in sorted
  UUID order. Those are the first row locks the transfer takes, so
  opposite-direction transfers between the same pair cannot deadlock.

SQLite note:
  SQLite has no SELECT ... FOR UPDATE; with_for_update() is a no-op there.
  The first UPDATE takes SQLite's database-wide write lock, which gives the
  same guarantee for single-node deployments.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jointbank.exceptions import (
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidRequestError,
    TransactionNotFoundError,
)
from jointbank.iban import is_valid_iban, normalize_iban
from jointbank.models.joint_account import AccountStatus, JointAccount
from jointbank.models.transaction import Transaction, TransactionStatus, TransactionType
from jointbank.services.account_service import get_account, require_ownership

logger = logging.getLogger(__name__)


def _generate_reference() -> str:
    return f"TX-{uuid.uuid4().hex[:12].upper()}"


async def _load_account(
    db: AsyncSession, account_id: uuid.UUID, lock: bool = True
) -> JointAccount | None:
    stmt = select(JointAccount).where(JointAccount.id == account_id)
    if lock:
        stmt = stmt.with_for_update()  # No-op on SQLite, locks row on PostgreSQL
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def apply_balance_change(
    db: AsyncSession,
    account: JointAccount,
    delta_cents: int,
) -> int:
    """
    Atomically add `delta_cents` (negative for debits) to an account balance.

    Debits only match the row while the balance covers them, so the check
    and the write are one indivisible step.

    Returns:
        The balance after the change.

    Raises:
        InsufficientFundsError: If a debit exceeds the current balance.
    """
    stmt = (
        update(JointAccount)
        .where(JointAccount.id == account.id)
        .values(
            balance_cents=JointAccount.balance_cents + delta_cents,
            version=JointAccount.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if delta_cents < 0:
        stmt = stmt.where(JointAccount.balance_cents >= -delta_cents)

    result = await db.execute(stmt)
    if result.rowcount == 0:
        current = await db.execute(
            select(JointAccount.balance_cents).where(JointAccount.id == account.id)
        )
        available = current.scalar_one_or_none()
        if available is None:
            raise AccountNotFoundError(account.id)
        raise InsufficientFundsError(
            account_id=account.id,
            requested_cents=-delta_cents,
            available_cents=available,
        )

    await db.refresh(account, attribute_names=["balance_cents", "version", "updated_at"])
    return account.balance_cents


async def _find_internal_account(db: AsyncSession, iban: str) -> JointAccount | None:
    result = await db.execute(select(JointAccount).where(JointAccount.iban == iban))
    return result.scalar_one_or_none()


async def create_transaction(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
    txn_type: TransactionType | str,
    amount_cents: int,
    description: str | None = None,
    recipient_iban: str | None = None,
    recipient_name: str | None = None,
) -> Transaction:
    """
    Apply a DEPOSIT, WITHDRAWAL or TRANSFER to a joint account.

    DEPOSIT adds `amount_cents` to the balance; WITHDRAWAL and TRANSFER
    subtract it. A TRANSFER whose recipient IBAN belongs to another joint
    account in this bank also credits that account, writing a TRANSFER_IN
    row linked by a shared transfer_pair_id.

    Args:
        db: Database session.
        account_id: The account to operate on.
        user_id: The acting user (ownership is verified).
        txn_type: DEPOSIT, WITHDRAWAL or TRANSFER.
        amount_cents: Positive integer amount in cents.
        description: Memo shown in the transaction history.
        recipient_iban: Required for TRANSFER.
        recipient_name: Optional display name of the recipient.

    Returns:
        The Transaction row for `account_id`, with balance_after_cents set.

    Raises:
        UnauthorizedAccessError: If the user is not an owner of the account.
        AccountNotFoundError: If the account doesn't exist.
        InvalidRequestError: Inactive account, bad amount/type/IBAN.
        InsufficientFundsError: If a debit exceeds the balance.
    """
    try:
        txn_type = TransactionType(txn_type)
    except ValueError:
        raise InvalidRequestError("Invalid transaction type")
    if txn_type == TransactionType.TRANSFER_IN:
        raise InvalidRequestError("TRANSFER_IN is recorded automatically and cannot be posted")
    if amount_cents <= 0:
        raise InvalidRequestError("Amount must be greater than 0")

    await require_ownership(
        db,
        account_id,
        user_id,
        detail="You do not have permission to create transactions on this account",
    )

    # A transfer takes its row locks only once the recipient is known, in id order
    account = await _load_account(db, account_id, lock=txn_type != TransactionType.TRANSFER)
    if account is None:
        raise AccountNotFoundError(account_id)
    if account.status != AccountStatus.ACTIVE:
        raise InvalidRequestError(f"Account is {account.status.value.lower()}")

    if txn_type == TransactionType.TRANSFER:
        return await _create_transfer(
            db,
            source=account,
            user_id=user_id,
            amount_cents=amount_cents,
            description=description,
            recipient_iban=recipient_iban,
            recipient_name=recipient_name,
        )

    delta = -amount_cents if txn_type.is_debit else amount_cents
    try:
        balance_after = await apply_balance_change(db, account, delta)
    except InsufficientFundsError as exc:
        logger.info(
            "transaction_rejected",
            extra={
                "account_id": str(account_id),
                "type": txn_type.value,
                "amount_cents": amount_cents,
                "available_cents": exc.available_cents,
            },
        )
        raise

    txn = Transaction(
        account_id=account_id,
        type=txn_type,
        amount_cents=amount_cents,
        balance_after_cents=balance_after,
        description=description,
        status=TransactionStatus.COMPLETED,
        reference=_generate_reference(),
        processed_by=user_id,
    )
    db.add(txn)
    await db.flush()

    logger.info(
        "transaction_completed",
        extra={
            "transaction_id": str(txn.id),
            "account_id": str(account_id),
            "type": txn_type.value,
            "amount_cents": amount_cents,
            "balance_after_cents": balance_after,
        },
    )
    return txn


async def _create_transfer(
    db: AsyncSession,
    source: JointAccount,
    user_id: uuid.UUID,
    amount_cents: int,
    description: str | None,
    recipient_iban: str | None,
    recipient_name: str | None,
) -> Transaction:
    """
    Debit `source` and, for an internal recipient, credit the destination.

    Both balance changes and both Transaction rows are written in the
    caller's database transaction.
    """
    if not recipient_iban:
        raise InvalidRequestError("recipientIban is required for transfers")
    iban = normalize_iban(recipient_iban)
    if not is_valid_iban(iban):
        raise InvalidRequestError("Invalid recipient IBAN")
    if iban == source.iban:
        raise InvalidRequestError("Cannot transfer to the same account")

    destination = await _find_internal_account(db, iban)
    transfer_pair_id = None

    if destination is None:
        await _load_account(db, source.id)
    else:
        # Lock both rows in consistent order to prevent deadlocks
        for locked_id in sorted([source.id, destination.id]):
            await _load_account(db, locked_id)

        if destination.status != AccountStatus.ACTIVE:
            raise InvalidRequestError("Recipient account cannot receive transfers")
        if destination.currency != source.currency:
            raise InvalidRequestError("Recipient account uses a different currency")
        transfer_pair_id = uuid.uuid4()

    # Locked reads refresh the rows, so re-check what may have changed meanwhile
    if source.status != AccountStatus.ACTIVE:
        raise InvalidRequestError(f"Account is {source.status.value.lower()}")

    try:
        source_balance_after = await apply_balance_change(db, source, -amount_cents)
    except InsufficientFundsError as exc:
        logger.info(
            "transaction_rejected",
            extra={
                "account_id": str(source.id),
                "type": TransactionType.TRANSFER.value,
                "amount_cents": amount_cents,
                "available_cents": exc.available_cents,
            },
        )
        raise

    debit_txn = Transaction(
        account_id=source.id,
        type=TransactionType.TRANSFER,
        amount_cents=amount_cents,
        balance_after_cents=source_balance_after,
        description=description,
        recipient_iban=iban,
        recipient_name=recipient_name,
        counterparty_account_id=destination.id if destination else None,
        transfer_pair_id=transfer_pair_id,
        status=TransactionStatus.COMPLETED,
        reference=_generate_reference(),
        processed_by=user_id,
    )
    db.add(debit_txn)

    if destination is not None:
        dest_balance_after = await apply_balance_change(db, destination, amount_cents)
        db.add(
            Transaction(
                account_id=destination.id,
                type=TransactionType.TRANSFER_IN,
                amount_cents=amount_cents,
                balance_after_cents=dest_balance_after,
                description=description,
                recipient_iban=iban,
                recipient_name=recipient_name,
                counterparty_account_id=source.id,
                transfer_pair_id=transfer_pair_id,
                status=TransactionStatus.COMPLETED,
                reference=_generate_reference(),
                processed_by=user_id,
            )
        )

    await db.flush()

    logger.info(
        "transaction_completed",
        extra={
            "transaction_id": str(debit_txn.id),
            "account_id": str(source.id),
            "type": TransactionType.TRANSFER.value,
            "amount_cents": amount_cents,
            "balance_after_cents": source_balance_after,
            "internal": destination is not None,
        },
    )
    return debit_txn


async def get_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
    type_filter: TransactionType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """
    List transactions for an account, newest first.

    Args:
        db: Database session.
        account_id: The account to query transactions for.
        user_id: For ownership verification.
        type_filter: Optional filter by transaction type.
        limit: Max number of results (default 50).
        offset: Number of results to skip (for pagination).
    """
    await get_account(db, account_id, user_id)

    query = (
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if type_filter:
        query = query.where(Transaction.type == type_filter)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_transaction(
    db: AsyncSession,
    account_id: uuid.UUID,
    transaction_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Transaction:
    """
    Get a single transaction by ID, verifying account ownership.

    Raises:
        UnauthorizedAccessError: If the user is not an owner of the account.
        AccountNotFoundError: If the account doesn't exist.
        TransactionNotFoundError: If the transaction doesn't exist or doesn't
                                  belong to this account.
    """
    await get_account(db, account_id, user_id)

    result = await db.execute(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.account_id == account_id)
    )
    txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(transaction_id)

    return txn
