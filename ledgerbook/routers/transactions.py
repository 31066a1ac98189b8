"""
Transactions router — the entries of one ledger book.

  Members of the account (or admins):
    GET    /accounts/{account_id}/transactions          — List, newest first
    GET    /accounts/{account_id}/transactions/{tx_id}  — A single entry

  EDITORs of the account (or admins):
    POST   /accounts/{account_id}/transactions          — Record an entry

  Admins only:
    PATCH  /accounts/{account_id}/transactions/{tx_id}  — Edit an entry
    DELETE /accounts/{account_id}/transactions/{tx_id}  — Remove an entry

Every write recomputes the account's running balances before it commits,
so the balances returned here are always current.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.database import get_db
from ledgerbook.dependencies import AccountId, TransactionId, require_admin, require_auth
from ledgerbook.schemas.common import DataResponse, DeletedResponse, PageResponse
from ledgerbook.schemas.transaction import (
    TransactionCreateRequest,
    TransactionResponse,
    TransactionUpdateRequest,
)
from ledgerbook.services import transaction_service
from ledgerbook.services.membership_service import Principal

router = APIRouter()


@router.get(
    "/{account_id}/transactions",
    response_model=PageResponse[TransactionResponse],
    summary="List an account's transactions",
)
async def list_transactions(
    account_id: AccountId,
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100, alias="perPage"),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Ordered by transaction_date_time, newest first; ties broken by id."""
    transactions, total = await transaction_service.list_transactions(
        db, principal, account_id, page=page, per_page=per_page,
    )
    return PageResponse(
        data=[TransactionResponse.from_model(txn) for txn in transactions],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "/{account_id}/transactions",
    response_model=DataResponse[TransactionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
)
async def create_transaction(
    account_id: AccountId,
    request: TransactionCreateRequest,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """
    Record money in (positive amount) or out (negative amount).

    - **amount**: Non-zero decimal with at most two fractional digits,
      e.g. `"12.50"` or `-3`
    - **transaction_date_time**: Optional ISO 8601 timestamp. Without an
      offset it is read in the configured default zone. May lie anywhere
      in the past; later entries' balances are moved accordingly.
    """
    txn = await transaction_service.create_transaction(
        db,
        principal,
        account_id,
        title=request.title,
        amount_cents=request.amount_cents,
        description=request.description,
        transaction_date_time=request.transaction_date_time,
    )
    return DataResponse(data=TransactionResponse.from_model(txn))


@router.get(
    "/{account_id}/transactions/{transaction_id}",
    response_model=DataResponse[TransactionResponse],
    summary="Get a transaction",
)
async def get_transaction(
    account_id: AccountId,
    transaction_id: TransactionId,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    txn = await transaction_service.get_transaction(db, principal, account_id, transaction_id)
    return DataResponse(data=TransactionResponse.from_model(txn))


@router.patch(
    "/{account_id}/transactions/{transaction_id}",
    response_model=DataResponse[TransactionResponse],
    summary="[ADMIN] Edit a transaction",
)
async def update_transaction(
    account_id: AccountId,
    transaction_id: TransactionId,
    request: TransactionUpdateRequest,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    txn = await transaction_service.update_transaction(
        db, account_id, transaction_id, request.changes(),
    )
    return DataResponse(data=TransactionResponse.from_model(txn))


@router.delete(
    "/{account_id}/transactions/{transaction_id}",
    response_model=DataResponse[DeletedResponse],
    summary="[ADMIN] Delete a transaction",
)
async def delete_transaction(
    account_id: AccountId,
    transaction_id: TransactionId,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await transaction_service.delete_transaction(db, account_id, transaction_id)
    return DataResponse(data=DeletedResponse(id=transaction_id))
