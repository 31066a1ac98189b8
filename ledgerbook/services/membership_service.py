"""
Membership service: account-scoped authorization and member list changes.

Authorization rules for one account:
  - admins pass every check, membership or not
  - read access needs any membership (EDITOR or VIEWER)
  - recording transactions needs an EDITOR membership

Checks run on every request against the current rows; nothing is cached,
so a membership change takes effect on the very next request.
"""

import uuid
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.exceptions import InvalidInputError, PermissionDeniedError
from ledgerbook.models.membership import Membership, MembershipType
from ledgerbook.models.user import User


@dataclass(frozen=True)
class Principal:
    """The caller of a request, as resolved from its bearer token."""
    id: uuid.UUID
    email: str
    is_admin: bool


async def get_membership_type(
    db: AsyncSession,
    account_id: int,
    uid: uuid.UUID,
) -> MembershipType | None:
    result = await db.execute(
        select(Membership.type)
        .where(Membership.account_id == account_id)
        .where(Membership.uid == uid)
    )
    return result.scalar_one_or_none()


async def require_member(db: AsyncSession, principal: Principal, account_id: int) -> None:
    """
    Allow admins and any member of the account.

    Raises:
        PermissionDeniedError: If the caller has no membership on the account.
    """
    if principal.is_admin:
        return
    if await get_membership_type(db, account_id, principal.id) is None:
        raise PermissionDeniedError()


async def require_editor(db: AsyncSession, principal: Principal, account_id: int) -> None:
    """
    Allow admins and EDITOR members of the account.

    Raises:
        PermissionDeniedError: If the caller is a viewer or not a member.
    """
    if principal.is_admin:
        return
    if await get_membership_type(db, account_id, principal.id) != MembershipType.EDITOR:
        raise PermissionDeniedError()


async def get_member_ids(db: AsyncSession, account_id: int) -> dict[MembershipType, list[uuid.UUID]]:
    """Members of an account grouped by type."""
    result = await db.execute(
        select(Membership.uid, Membership.type)
        .where(Membership.account_id == account_id)
        .order_by(Membership.type, Membership.uid)
    )
    members: dict[MembershipType, list[uuid.UUID]] = {
        MembershipType.EDITOR: [],
        MembershipType.VIEWER: [],
    }
    for uid, membership_type in result.all():
        members[membership_type].append(uid)
    return members


def check_exclusive(editors: list[uuid.UUID], viewers: list[uuid.UUID]) -> None:
    """
    A user can be an editor or a viewer of an account, not both.

    Raises:
        InvalidInputError: If any user id appears in both lists.
    """
    if set(editors) & set(viewers):
        raise InvalidInputError("A user cannot be both EDITOR and VIEWER")


async def _check_users_exist(db: AsyncSession, uids: set[uuid.UUID]) -> None:
    if not uids:
        return
    result = await db.execute(select(User.id).where(User.id.in_(uids)))
    missing = uids - set(result.scalars().all())
    if missing:
        listed = ", ".join(sorted(str(uid) for uid in missing))
        raise InvalidInputError(f"Unknown user id(s): {listed}")


async def replace_members(
    db: AsyncSession,
    account_id: int,
    editors: list[uuid.UUID],
    viewers: list[uuid.UUID],
) -> None:
    """
    Replace the account's memberships with exactly the given lists.

    Validation happens before any row is touched, so a rejected request
    leaves the existing memberships as they were.
    """
    check_exclusive(editors, viewers)
    await _check_users_exist(db, set(editors) | set(viewers))

    await db.execute(delete(Membership).where(Membership.account_id == account_id))
    db.add_all(
        [Membership(account_id=account_id, uid=uid, type=MembershipType.EDITOR) for uid in editors]
        + [Membership(account_id=account_id, uid=uid, type=MembershipType.VIEWER) for uid in viewers]
    )
    await db.flush()
