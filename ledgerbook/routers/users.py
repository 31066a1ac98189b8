"""
Users router — the member picker.

    GET /users — every active user as {id, email}
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.database import get_db
from ledgerbook.dependencies import require_auth
from ledgerbook.schemas.common import DataResponse
from ledgerbook.schemas.user import UserSummary
from ledgerbook.services import auth_service
from ledgerbook.services.membership_service import Principal

router = APIRouter()


@router.get(
    "",
    response_model=DataResponse[list[UserSummary]],
    summary="List users",
)
async def list_users(
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    users = await auth_service.list_users(db)
    return DataResponse(data=[UserSummary.model_validate(user) for user in users])
