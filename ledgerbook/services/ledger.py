"""
Balance recomputation engine — keeps every running balance correct.

THIS IS THE CORE OF THE PROJECT. The invariant it protects:

    For one account, order its transactions by (transaction_date_time, id).
    Each row's balance_cents equals the sum of amount_cents over that row
    and every row before it.

Full recompute:
  Instead of deriving a new row's balance from "the previous transaction"
  (which goes wrong as soon as something is back-dated, edited or deleted),
  every mutation ends with recompute(), which rewrites the balance of EVERY
  row of the account from a windowed running sum:

      SUM(amount_cents) OVER (
          ORDER BY transaction_date_time, id
          ROWS BETWEEN UNBOUNDED PRECEDING AND CURRENT ROW
      )

  The database evaluates the window once, as a derived table joined into a
  single UPDATE ... FROM, over integer cents, so the result is exact.
  Running it twice yields the same balances. The rewrite leaves
  updated_at untouched.

Atomicity:
  recompute() never commits. It runs inside the request's transaction
  (see database.get_db), after the mutation that triggered it. If it
  fails, the mutation is rolled back with it. A mutated ledger with stale
  balances is never committed.

Serialisation:
  Mutations of the same account must not interleave, or one request's
  recompute can miss the other's row. The guarantee comes from the
  database, which holds a writer until its transaction commits:
    - lock_account() takes SELECT ... FOR UPDATE on the account row. On
      PostgreSQL this blocks other writers of the same account until commit.
    - SQLite ignores FOR UPDATE; its database write lock serialises writers.
  account_write_lock() only queues coroutines of this process around the
  mutate+recompute section. It is released when the service returns, before
  get_db commits, so it does not cover the commit itself.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.exceptions import AccountNotFoundError
from ledgerbook.models.account import Account
from ledgerbook.models.transaction import Transaction

logger = logging.getLogger(__name__)

# Ledger order: oldest first, insertion id breaks timestamp ties
LEDGER_ORDER = (Transaction.transaction_date_time.asc(), Transaction.id.asc())

# Entries disappear once no coroutine holds or awaits the lock
_account_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


@asynccontextmanager
async def account_write_lock(account_id: int):
    """
    Queue mutations of one account within this process.

    Released before the request commits; cross-request ordering relies on
    lock_account() and the database's own write locking.
    """
    lock = _account_locks.get(account_id)
    if lock is None:
        lock = _account_locks[account_id] = asyncio.Lock()
    async with lock:
        yield


async def lock_account(db: AsyncSession, account_id: int) -> Account:
    """
    Load the account row with a write lock for the rest of the transaction.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()  # No-op on SQLite, locks row on PostgreSQL
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def recompute(db: AsyncSession, account_id: int) -> int:
    """
    Rewrite balance_cents for every transaction of one account.

    Args:
        db: Database session. The caller owns the transaction.
        account_id: The account whose ledger is rewritten.

    Returns:
        The number of transaction rows rewritten.
    """
    running = (
        select(
            Transaction.id.label("id"),
            func.sum(Transaction.amount_cents)
            .over(order_by=LEDGER_ORDER, rows=(None, 0))
            .label("running"),
        )
        .where(Transaction.account_id == account_id)
        .subquery("running")
    )

    # UPDATE ... FROM (window) running WHERE transactions.id = running.id
    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == running.c.id)
        .values(
            balance_cents=running.c.running,
            updated_at=Transaction.updated_at,
        )
        .execution_options(synchronize_session=False)
    )
    logger.debug("Recomputed %d balances for account %s", result.rowcount, account_id)
    return result.rowcount


async def verify(db: AsyncSession, account_id: int) -> list[int]:
    """
    Check stored balances against a running sum computed here.

    Returns:
        Ids of transactions whose stored balance is wrong (empty when the
        ledger is consistent).
    """
    result = await db.execute(
        select(Transaction.id, Transaction.amount_cents, Transaction.balance_cents)
        .where(Transaction.account_id == account_id)
        .order_by(*LEDGER_ORDER)
    )

    mismatched = []
    running = 0
    for transaction_id, amount_cents, balance_cents in result.all():
        running += amount_cents
        if balance_cents != running:
            mismatched.append(transaction_id)
    return mismatched


async def current_balance(db: AsyncSession, account_id: int) -> int:
    """Balance after the chronologically last transaction (0 for an empty ledger)."""
    result = await db.execute(
        select(Transaction.balance_cents)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.transaction_date_time.desc(), Transaction.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none() or 0


async def total_amount(db: AsyncSession, account_id: int) -> int:
    """Plain sum of all amounts, which current_balance() must equal."""
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount_cents), 0))
        .where(Transaction.account_id == account_id)
    )
    return result.scalar()
