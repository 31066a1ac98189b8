"""
Pydantic schemas for User-related responses.

Notice that hashed_password is NEVER included in any response schema —
this is a critical security boundary.
"""

import uuid

from pydantic import BaseModel


class UserSummary(BaseModel):
    """A user as shown in member pickers: id and email only."""
    id: uuid.UUID
    email: str

    model_config = {"from_attributes": True}
