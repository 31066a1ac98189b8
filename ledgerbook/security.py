"""
Credentials and identity helpers: password hashes, bearer tokens, admins.

Passwords:
  Stored only as Argon2id hashes produced by passlib. `deprecated="auto"`
  lets a future scheme change re-hash on the next successful login.

Bearer tokens:
  HS256-signed JWTs carrying the user id in "sub" and an "exp" claim.
  Nothing about a token is stored server-side; revoking access means
  deactivating the user (see services/auth_service.resolve_identity).

Admins:
  A caller is an admin when their email is in settings.ADMIN_EMAILS.
  The allow-list is parsed once, when settings load.
"""

from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from ledgerbook.config import settings

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """True if the password matches the stored hash (constant-time)."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Sign a bearer token for the given claims.

    Args:
        data: Claims to embed; callers pass {"sub": "<user id>"}.
        expires_delta: Lifetime of the token. Defaults to
            ACCESS_TOKEN_EXPIRE_MINUTES. A negative value yields a token
            that is already expired.
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Verify a bearer token's signature and expiry and return its claims.

    Raises:
        JWTError: For an expired, tampered or malformed token.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def is_admin_email(email: str | None) -> bool:
    """Case-insensitive test against the configured admin emails."""
    return bool(email) and email.strip().lower() in settings.admin_emails
