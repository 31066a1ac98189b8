"""
Transaction service — creating, editing and deleting ledger entries.

Every mutation follows the same sequence inside the request's single
database transaction:

    validate -> lock account -> mutate row -> recompute balances -> re-read

so the balance invariant (see services/ledger.py) holds whenever the
transaction commits, and a failure anywhere rolls back the whole mutation.

There is no "only the latest entry can change" rule and no ban on
back-dated entries: the full recompute makes every edit safe, wherever in
the ledger it lands.

Access checks:
  - create: EDITOR membership or admin (checked here)
  - update/delete: admin only (enforced by the router dependency)
  - list/get: any membership or admin (checked here)
"""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.exceptions import InvalidInputError, TransactionNotFoundError
from ledgerbook.models.transaction import Transaction
from ledgerbook.services import ledger
from ledgerbook.services.account_service import get_account
from ledgerbook.services.membership_service import Principal, require_editor, require_member
from ledgerbook.timestamps import resolve_transaction_time

logger = logging.getLogger(__name__)

# The only columns a PATCH may touch
MUTABLE_FIELDS = ("title", "description", "amount_cents", "transaction_date_time")


async def _get_owned_transaction(
    db: AsyncSession,
    account_id: int,
    transaction_id: int,
) -> Transaction:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.account_id == account_id)
    )
    txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(account_id, transaction_id)

    return txn


async def create_transaction(
    db: AsyncSession,
    principal: Principal,
    account_id: int,
    title: str,
    amount_cents: int,
    description: str | None = None,
    transaction_date_time: datetime | None = None,
) -> Transaction:
    """
    Record a new entry and bring the account's balances up to date.

    The row is inserted with a placeholder balance of 0 and gets its real
    balance from the recompute. If it is back-dated, every later entry's
    balance moves by its amount too.

    Args:
        db: Database session.
        principal: The caller; must be an EDITOR of the account or an admin.
        account_id: The ledger to record into.
        title: 3-120 characters (validated by the request schema).
        amount_cents: Signed, non-zero amount in cents.
        description: Optional free text.
        transaction_date_time: When it happened. Naive values are read at
            the configured default offset; None means now.

    Returns:
        The new Transaction with its recomputed balance.

    Raises:
        PermissionDeniedError: If the caller may not write to the account.
        AccountNotFoundError: If the account doesn't exist.
        InvalidInputError: If amount_cents is zero.
    """
    await require_editor(db, principal, account_id)
    if amount_cents == 0:
        raise InvalidInputError("Amount must be a non-zero number")

    occurred_at = resolve_transaction_time(transaction_date_time)

    async with ledger.account_write_lock(account_id):
        await ledger.lock_account(db, account_id)

        txn = Transaction(
            account_id=account_id,
            created_by=principal.id,
            title=title,
            description=description,
            amount_cents=amount_cents,
            balance_cents=0,
            transaction_date_time=occurred_at,
        )
        db.add(txn)
        await db.flush()

        await ledger.recompute(db, account_id)
        await db.refresh(txn)

    logger.info(
        "Transaction %s created in account %s by %s (amount_cents=%d)",
        txn.id, account_id, principal.id, amount_cents,
    )
    return txn


async def update_transaction(
    db: AsyncSession,
    account_id: int,
    transaction_id: int,
    changes: dict,
) -> Transaction:
    """
    Apply a partial edit to an entry, then recompute the account.

    `changes` holds only the fields the caller sent, keyed by column name
    (title, description, amount_cents, transaction_date_time). A description
    mapped to None clears it; a missing key leaves the field unchanged.

    Raises:
        InvalidInputError: If no mutable field is being changed, or
            amount_cents is zero.
        AccountNotFoundError: If the account doesn't exist.
        TransactionNotFoundError: If the entry doesn't belong to the account.
    """
    changes = {field: value for field, value in changes.items() if field in MUTABLE_FIELDS}
    if not changes:
        raise InvalidInputError("No changes provided")
    if changes.get("amount_cents") == 0:
        raise InvalidInputError("Amount must be a non-zero number")
    if "transaction_date_time" in changes:
        changes["transaction_date_time"] = resolve_transaction_time(
            changes["transaction_date_time"]
        )

    async with ledger.account_write_lock(account_id):
        await ledger.lock_account(db, account_id)
        txn = await _get_owned_transaction(db, account_id, transaction_id)

        for field, value in changes.items():
            setattr(txn, field, value)
        await db.flush()

        await ledger.recompute(db, account_id)
        await db.refresh(txn)

    logger.info(
        "Transaction %s in account %s updated (%s)",
        transaction_id, account_id, ", ".join(sorted(changes)),
    )
    return txn


async def delete_transaction(
    db: AsyncSession,
    account_id: int,
    transaction_id: int,
) -> None:
    """
    Remove an entry, then recompute the account.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        TransactionNotFoundError: If the entry doesn't belong to the account.
    """
    async with ledger.account_write_lock(account_id):
        await ledger.lock_account(db, account_id)
        await _get_owned_transaction(db, account_id, transaction_id)

        await db.execute(
            delete(Transaction)
            .where(Transaction.id == transaction_id)
            .where(Transaction.account_id == account_id)
        )
        await ledger.recompute(db, account_id)

    logger.info("Transaction %s deleted from account %s", transaction_id, account_id)


async def recompute_account(db: AsyncSession, account_id: int) -> int:
    """[ADMIN ONLY] Force a full recompute of one account's balances."""
    async with ledger.account_write_lock(account_id):
        await ledger.lock_account(db, account_id)
        rows = await ledger.recompute(db, account_id)

    logger.info("Account %s recomputed on request (%d rows)", account_id, rows)
    return rows


async def list_transactions(
    db: AsyncSession,
    principal: Principal,
    account_id: int,
    page: int,
    per_page: int,
) -> tuple[list[Transaction], int]:
    """
    One page of an account's entries, newest first, plus the total count.

    Raises:
        PermissionDeniedError: If a non-admin is not a member.
        AccountNotFoundError: If the account doesn't exist.
    """
    await require_member(db, principal, account_id)
    await get_account(db, account_id)

    total = (
        await db.execute(
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.account_id == account_id)
        )
    ).scalar_one()

    result = await db.execute(
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.transaction_date_time.desc(), Transaction.id.desc())
        .limit(per_page)
        .offset((page - 1) * per_page)
    )
    return list(result.scalars().all()), total


async def get_transaction(
    db: AsyncSession,
    principal: Principal,
    account_id: int,
    transaction_id: int,
) -> Transaction:
    """
    A single entry of an account.

    Raises:
        PermissionDeniedError: If a non-admin is not a member.
        TransactionNotFoundError: If the entry doesn't belong to the account.
    """
    await require_member(db, principal, account_id)
    return await _get_owned_transaction(db, account_id, transaction_id)

