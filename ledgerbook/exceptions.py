"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The service layer raises domain-specific errors (like
  TransactionNotFoundError) without importing HTTP concepts. The handlers
  registered here translate them into HTTP responses with one consistent
  body shape:

      {"error": "<message>", "error_type": "<slug>"}

Exception hierarchy:
    LedgerAPIError (base)
    ├── InvalidInputError          400 — malformed ids, bad titles, empty patches
    ├── AuthenticationError        401 — missing or invalid bearer token
    │   └── InvalidCredentialsError
    ├── PermissionDeniedError      403 — authenticated, but lacking role/membership
    ├── NotFoundError              404
    │   ├── AccountNotFoundError
    │   └── TransactionNotFoundError
    └── ConflictError              409 — e.g. deleting an account with transactions
        └── DuplicateEmailError
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ledgerbook.config import settings

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerAPIError(Exception):
    """Base exception for all Ledger API domain errors."""

    status_code = 400
    error_type = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InvalidInputError(LedgerAPIError):
    """Raised when request input fails validation. Never retried."""

    status_code = 400
    error_type = "invalid_input"


class AuthenticationError(LedgerAPIError):
    """Raised when the caller could not be identified."""

    status_code = 401
    error_type = "unauthenticated"

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(detail)


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are incorrect."""

    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


class PermissionDeniedError(LedgerAPIError):
    """Raised when an authenticated user lacks the role or membership required."""

    status_code = 403
    error_type = "forbidden"

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(detail)


class NotFoundError(LedgerAPIError):
    status_code = 404
    error_type = "not_found"


class AccountNotFoundError(NotFoundError):
    """Raised when a requested account does not exist."""

    error_type = "account_not_found"

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction does not exist or belongs to another account."""

    error_type = "transaction_not_found"

    def __init__(self, account_id: int, transaction_id: int):
        self.account_id = account_id
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found in account {account_id}"
        )


class ConflictError(LedgerAPIError):
    status_code = 409
    error_type = "conflict"


class DuplicateEmailError(ConflictError):
    """Raised when attempting to register with an email that's already in use."""

    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_response(status_code: int, message: str, error_type: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "error_type": error_type},
        headers={**NO_STORE, **(headers or {})},
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    """Flatten pydantic's error list into a single readable message."""
    messages = []
    for error in exc.errors():
        location = ".".join(
            str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")
        )
        message = error.get("msg", "Invalid value")
        # "Value error, X" -> "X" for errors raised from our own validators
        message = message.removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every error is rendered as
    {"error": ..., "error_type": ...} with caching disabled.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(LedgerAPIError)
    async def ledger_error_handler(
        request: Request, exc: LedgerAPIError
    ) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(exc.status_code, exc.detail, exc.error_type, headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Input errors are 400 across the API, not FastAPI's default 422
        return _error_response(400, _describe_validation_error(exc), "invalid_input")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error_response(
            exc.status_code, str(exc.detail), "http_error", getattr(exc, "headers", None)
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        logger.exception("Store failure on %s %s", request.method, request.url.path)
        message = str(exc) if settings.EXPOSE_INTERNAL_ERRORS else "Internal server error"
        return _error_response(500, message, "store_error")
