"""
Account service — business logic for ledger books.

This module handles:
  - Account creation with initial editor/viewer lists (admin only)
  - Account listing, scoped to the caller's memberships unless admin
  - Account detail, update and delete
  - Balance verification (stored running balance vs. sum of amounts)

Scoping:
  List and read functions take the resolved Principal. Admins see every
  account; everyone else sees only accounts they hold a membership on.
  Mutating functions assume the router has already required an admin.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import asc, delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.exceptions import AccountNotFoundError, ConflictError, InvalidInputError
from ledgerbook.models.account import Account
from ledgerbook.models.membership import Membership, MembershipType
from ledgerbook.models.transaction import Transaction
from ledgerbook.services import ledger
from ledgerbook.services.membership_service import (
    Principal,
    check_exclusive,
    get_member_ids,
    replace_members,
    require_member,
)

logger = logging.getLogger(__name__)

# Columns GET /accounts may sort by
SORTABLE_COLUMNS = {
    "id": Account.id,
    "title": Account.title,
    "created_at": Account.created_at,
}


@dataclass
class AccountDetail:
    account: Account
    editors: list[uuid.UUID]
    viewers: list[uuid.UUID]


async def create_account(
    db: AsyncSession,
    created_by: uuid.UUID,
    title: str,
    description: str | None = None,
    editors: list[uuid.UUID] | None = None,
    viewers: list[uuid.UUID] | None = None,
) -> AccountDetail:
    """
    Create a ledger book and its initial memberships.

    Member lists are validated before the account row is written, so an
    editor/viewer overlap leaves nothing behind.
    """
    editors = editors or []
    viewers = viewers or []
    check_exclusive(editors, viewers)

    account = Account(title=title, description=description, created_by=created_by)
    db.add(account)
    await db.flush()

    if editors or viewers:
        await replace_members(db, account.id, editors, viewers)

    logger.info(
        "Account %s created by %s (%d editors, %d viewers)",
        account.id, created_by, len(editors), len(viewers),
    )
    return AccountDetail(account=account, editors=editors, viewers=viewers)


async def list_accounts(
    db: AsyncSession,
    principal: Principal,
    page: int,
    per_page: int,
    sort: str = "title",
    order: str = "asc",
) -> tuple[list[Account], int]:
    """
    One page of accounts visible to the caller, plus the total count.

    Non-admins with no memberships get an empty page, not an error.

    Raises:
        InvalidInputError: If sort names a column that can't be sorted on.
    """
    column = SORTABLE_COLUMNS.get(sort)
    if column is None:
        raise InvalidInputError(
            f"Cannot sort by '{sort}'; use one of: {', '.join(SORTABLE_COLUMNS)}"
        )
    direction = desc if order == "desc" else asc

    query = select(Account)
    count_query = select(func.count()).select_from(Account)
    if not principal.is_admin:
        member_of = select(Membership.account_id).where(Membership.uid == principal.id)
        query = query.where(Account.id.in_(member_of))
        count_query = count_query.where(Account.id.in_(member_of))

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        query
        # id keeps pages stable when the sort column has duplicates
        .order_by(direction(column), direction(Account.id))
        .limit(per_page)
        .offset((page - 1) * per_page)
    )
    return list(result.scalars().all()), total


async def get_account(db: AsyncSession, account_id: int) -> Account:
    """
    Fetch an account by id, without any access check.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    result = await db.execute(select(Account).where(Account.id == account_id))
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def get_account_detail(
    db: AsyncSession,
    principal: Principal,
    account_id: int,
) -> AccountDetail:
    """
    An account with its member lists, for admins and members of it.

    Raises:
        PermissionDeniedError: If a non-admin is not a member.
        AccountNotFoundError: If the account doesn't exist.
    """
    await require_member(db, principal, account_id)
    account = await get_account(db, account_id)
    members = await get_member_ids(db, account_id)
    return AccountDetail(
        account=account,
        editors=members[MembershipType.EDITOR],
        viewers=members[MembershipType.VIEWER],
    )


async def update_account(
    db: AsyncSession,
    account_id: int,
    changes: dict,
) -> AccountDetail:
    """
    Apply a partial update to an account.

    `changes` holds only the keys the caller sent. "description" may map to
    None (clear it). When "editors" and/or "viewers" is present the account's
    memberships are replaced wholesale; a list that was not sent keeps its
    current members.

    Raises:
        InvalidInputError: If changes is empty or the member lists overlap.
        AccountNotFoundError: If the account doesn't exist.
    """
    if not changes:
        raise InvalidInputError("No changes provided")

    account = await get_account(db, account_id)

    members = await get_member_ids(db, account_id)
    editors = changes.get("editors", members[MembershipType.EDITOR])
    viewers = changes.get("viewers", members[MembershipType.VIEWER])
    check_exclusive(editors, viewers)

    if "title" in changes:
        account.title = changes["title"]
    if "description" in changes:
        account.description = changes["description"]
    if "editors" in changes or "viewers" in changes:
        await replace_members(db, account_id, editors, viewers)

    await db.flush()
    logger.info("Account %s updated (%s)", account_id, ", ".join(sorted(changes)))
    return AccountDetail(account=account, editors=editors, viewers=viewers)


async def delete_account(db: AsyncSession, account_id: int) -> None:
    """
    Delete an account and its memberships.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        ConflictError: If the account still has transactions.
    """
    await ledger.lock_account(db, account_id)

    has_transactions = await db.execute(
        select(Transaction.id).where(Transaction.account_id == account_id).limit(1)
    )
    if has_transactions.scalar_one_or_none() is not None:
        raise ConflictError("Cannot delete account with related records")

    await db.execute(delete(Membership).where(Membership.account_id == account_id))
    await db.execute(delete(Account).where(Account.id == account_id))
    logger.info("Account %s deleted", account_id)


async def get_balance(
    db: AsyncSession,
    principal: Principal,
    account_id: int,
) -> dict:
    """
    The account's running balance, checked against the sum of its amounts.

    `match` is False only if the stored balances have drifted from the
    ledger, which a successful mutation never leaves behind.
    `stale_transaction_ids` lists the rows whose stored balance is wrong.
    """
    await require_member(db, principal, account_id)
    await get_account(db, account_id)

    balance_cents = await ledger.current_balance(db, account_id)
    computed_balance_cents = await ledger.total_amount(db, account_id)
    stale_ids = await ledger.verify(db, account_id)

    return {
        "account_id": account_id,
        "balance_cents": balance_cents,
        "computed_balance_cents": computed_balance_cents,
        "match": balance_cents == computed_balance_cents and not stale_ids,
        "stale_transaction_ids": stale_ids,
    }
