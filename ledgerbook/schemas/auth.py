"""
Pydantic schemas for authentication endpoints (signup, login, me).

Pydantic validates incoming data automatically — a missing field or a
malformed email is rejected with a 400 before our code even runs.
"""

import uuid

from pydantic import BaseModel, EmailStr, Field


class UserSignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr                                # Validates email format
    password: str = Field(min_length=8)            # Minimum 8 characters


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Successful login or signup: the bearer token and who it identifies."""
    user_id: uuid.UUID
    email: str
    is_admin: bool
    token: str
    token_type: str = "bearer"


class PrincipalResponse(BaseModel):
    """Response body for GET /auth/me."""
    id: uuid.UUID
    email: str
    is_admin: bool
