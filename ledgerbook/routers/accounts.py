"""
Accounts router — ledger book management endpoints.

  Any authenticated user:
    GET    /accounts                        — List visible accounts (paged)

  Members of the account (or admins):
    GET    /accounts/{account_id}           — Account details with members
    GET    /accounts/{account_id}/balance   — Running balance and a check sum

  Admins only:
    POST   /accounts                        — Create an account
    PATCH  /accounts/{account_id}           — Edit title/description/members
    DELETE /accounts/{account_id}           — Delete an empty account
    POST   /accounts/{account_id}/recompute — Rewrite every running balance

A non-member asking about an account gets 403 whether or not the account
exists, so ids of other people's accounts can't be probed.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.database import get_db
from ledgerbook.dependencies import AccountId, require_admin, require_auth
from ledgerbook.money import from_cents
from ledgerbook.schemas.account import (
    AccountCreateRequest,
    AccountDetailResponse,
    AccountResponse,
    AccountUpdateRequest,
    BalanceResponse,
    RecomputeResponse,
)
from ledgerbook.schemas.common import DataResponse, DeletedResponse, PageResponse
from ledgerbook.services import account_service, transaction_service
from ledgerbook.services.membership_service import Principal

router = APIRouter()


@router.get(
    "",
    response_model=PageResponse[AccountResponse],
    summary="List accounts",
)
async def list_accounts(
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100, alias="perPage"),
    sort: str = Query("title", description="id, title or created_at"),
    order: Literal["asc", "desc"] = Query("asc"),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """
    Admins see every account. Everyone else sees the accounts they are an
    EDITOR or VIEWER of, which may be none.
    """
    accounts, total = await account_service.list_accounts(
        db, principal, page=page, per_page=per_page, sort=sort, order=order,
    )
    return PageResponse(
        data=[AccountResponse.model_validate(account) for account in accounts],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "",
    response_model=DataResponse[AccountDetailResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def create_account(
    request: AccountCreateRequest,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    detail = await account_service.create_account(
        db,
        created_by=admin.id,
        title=request.title,
        description=request.description,
        editors=request.editors,
        viewers=request.viewers,
    )
    return DataResponse(data=AccountDetailResponse.from_detail(detail))


@router.get(
    "/{account_id}",
    response_model=DataResponse[AccountDetailResponse],
    summary="Get account details",
)
async def get_account(
    account_id: AccountId,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    detail = await account_service.get_account_detail(db, principal, account_id)
    return DataResponse(data=AccountDetailResponse.from_detail(detail))


@router.patch(
    "/{account_id}",
    response_model=DataResponse[AccountDetailResponse],
    summary="Update an account",
)
async def update_account(
    account_id: AccountId,
    request: AccountUpdateRequest,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Partial update. Sending `editors` and/or `viewers` replaces that
    account's memberships; an omitted list keeps its current members.
    """
    detail = await account_service.update_account(db, account_id, request.changes())
    return DataResponse(data=AccountDetailResponse.from_detail(detail))


@router.delete(
    "/{account_id}",
    response_model=DataResponse[DeletedResponse],
    summary="Delete an account",
)
async def delete_account(
    account_id: AccountId,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Only accounts without transactions can be deleted (409 otherwise)."""
    await account_service.delete_account(db, account_id)
    return DataResponse(data=DeletedResponse(id=account_id))


@router.get(
    "/{account_id}/balance",
    response_model=DataResponse[BalanceResponse],
    summary="Check account balance",
)
async def get_balance(
    account_id: AccountId,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """
    The latest entry's running balance next to the plain sum of all
    amounts. `match` is False only when stored balances have drifted.
    """
    result = await account_service.get_balance(db, principal, account_id)
    return DataResponse(
        data=BalanceResponse(
            account_id=result["account_id"],
            balance=from_cents(result["balance_cents"]),
            computed_balance=from_cents(result["computed_balance_cents"]),
            match=result["match"],
            stale_transaction_ids=result["stale_transaction_ids"],
        )
    )


@router.post(
    "/{account_id}/recompute",
    response_model=DataResponse[RecomputeResponse],
    summary="[ADMIN] Recompute running balances",
)
async def recompute(
    account_id: AccountId,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await transaction_service.recompute_account(db, account_id)
    return DataResponse(data=RecomputeResponse(account_id=account_id, rows_updated=rows))
