"""
Authentication router — signup, login and "who am I".

Signup and login are the only public endpoints besides /health.
Everything else requires a valid bearer token.

Endpoints:
  POST /auth/signup  — Register a new user and get a token
  POST /auth/login   — Authenticate and get a token
  GET  /auth/me      — The caller's id, email and admin flag

Plaintext passwords exist only in memory during request processing; they
are hashed before any database operation and never logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.database import get_db
from ledgerbook.dependencies import require_auth
from ledgerbook.schemas.auth import (
    PrincipalResponse,
    TokenResponse,
    UserLoginRequest,
    UserSignupRequest,
)
from ledgerbook.schemas.common import DataResponse
from ledgerbook.security import is_admin_email
from ledgerbook.services import auth_service
from ledgerbook.services.membership_service import Principal

router = APIRouter()


def _token_response(user, token: str) -> DataResponse[TokenResponse]:
    return DataResponse(
        data=TokenResponse(
            user_id=user.id,
            email=user.email,
            is_admin=is_admin_email(user.email),
            token=token,
        )
    )


@router.post(
    "/signup",
    response_model=DataResponse[TokenResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user. The returned token logs them in straight away.

    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    """
    user, token = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
    )
    return _token_response(user, token)


@router.post(
    "/login",
    response_model=DataResponse[TokenResponse],
    summary="Authenticate and get a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Send the token on every other request:

        Authorization: Bearer <token>
    """
    user, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return _token_response(user, token)


@router.get(
    "/me",
    response_model=DataResponse[PrincipalResponse],
    summary="Who am I",
)
async def me(principal: Principal = Depends(require_auth)):
    return DataResponse(
        data=PrincipalResponse(
            id=principal.id,
            email=principal.email,
            is_admin=principal.is_admin,
        )
    )
