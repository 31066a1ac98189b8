"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a short chain:

  require_auth (bearer token -> Principal)
      └── require_admin (Principal -> Principal)   [admin allow-list]

Both run before the route handler touches any ledger data, so an
unauthenticated request (401) or a non-admin calling an admin route (403)
never reaches the store.

Account-scoped checks (is the caller an EDITOR/member of account N?) need
the account id and live in services/membership_service.py. They are
evaluated on every request; nothing about a caller is cached between
requests.
"""

from typing import Annotated

from fastapi import Depends, Path
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.database import get_db
from ledgerbook.exceptions import PermissionDeniedError
from ledgerbook.security import is_admin_email
from ledgerbook.services import auth_service
from ledgerbook.services.membership_service import Principal


# Reads "Authorization: Bearer <token>". auto_error=False so that a missing
# header goes through the same fail-closed path as a bad token.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

# Path ids are positive 64-bit integers
AccountId = Annotated[int, Path(gt=0, le=2**63 - 1, description="Account id")]
TransactionId = Annotated[int, Path(gt=0, le=2**63 - 1, description="Transaction id")]


async def require_auth(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Resolve the bearer token to the calling user.

    Raises:
        AuthenticationError (401): If the token is missing or invalid, or
            the user no longer exists or is deactivated.
    """
    user = await auth_service.resolve_identity(db, token)
    return Principal(
        id=user.id,
        email=user.email,
        is_admin=is_admin_email(user.email),
    )


async def require_admin(
    principal: Principal = Depends(require_auth),
) -> Principal:
    """
    Require the caller's email to be on the admin allow-list.

    Raises:
        PermissionDeniedError (403): If the caller is not an admin.
    """
    if not principal.is_admin:
        raise PermissionDeniedError("Admin access required")
    return principal
