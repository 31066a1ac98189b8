"""
Authentication service — the built-in identity provider.

The ledger only needs three things from an identity provider: issue a
bearer token, turn a bearer token back into {id, email}, and list the
known users so admins can pick members. This module provides them on top
of the local users table.

Emails are compared lower-cased and trimmed, so "Ann@X.com" and
"ann@x.com" are one account. Signup returns a token straight away; there
is no separate confirmation step.

Token resolution fails closed. A missing, malformed, expired or tampered
token, or one for an unknown or deactivated user, resolves to
AuthenticationError and nothing else.
"""

import logging
import uuid

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgerbook.exceptions import AuthenticationError, DuplicateEmailError, InvalidCredentialsError
from ledgerbook.models.user import User
from ledgerbook.security import create_access_token, decode_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Create a user and sign a token for them.

    Raises:
        DuplicateEmailError: If the (normalised) email is taken.
    """
    email = _normalize_email(email)

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        hashed_password=hash_password(password),
    )
    db.add(user)
    await db.flush()

    logger.info("User %s signed up", user.id)

    # "sub" (subject) is the standard claim for user identity
    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Check an email/password pair and sign a token for its user.

    Raises:
        InvalidCredentialsError: For an unknown email, a wrong password or
            a deactivated user alike.
    """
    result = await db.execute(select(User).where(User.email == _normalize_email(email)))
    user = result.scalar_one_or_none()

    # Same error for every case, so emails can't be enumerated
    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def resolve_identity(db: AsyncSession, token: str | None) -> User:
    """
    Turn a bearer token into the active User it was issued to.

    Raises:
        AuthenticationError: For any token that doesn't identify an active user.
    """
    if not token:
        raise AuthenticationError()

    try:
        payload = decode_access_token(token)
        user_id = uuid.UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise AuthenticationError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise AuthenticationError()

    return user


async def list_users(db: AsyncSession) -> list[User]:
    """All active users, by email. Used to pick account members."""
    result = await db.execute(
        select(User).where(User.is_active.is_(True)).order_by(User.email)
    )
    return list(result.scalars().all())
