"""
Response envelopes shared by every endpoint.

Success bodies are always wrapped:

    {"data": ...}
    {"data": [...], "total": 42, "page": 1, "perPage": 25}
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """A single object or value."""
    data: T


class PageResponse(BaseModel, Generic[T]):
    """One page of a list, with the count of the whole list."""
    data: list[T]
    total: int
    page: int
    per_page: int = Field(alias="perPage")

    model_config = ConfigDict(populate_by_name=True)


class DeletedResponse(BaseModel):
    id: int
    deleted: bool = True
