"""
Pydantic schemas for Account endpoints.

Member lists are user ids. The same id may not appear as both an editor
and a viewer; such a request is rejected before anything is written.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, StringConstraints, field_validator, model_validator

from ledgerbook.timestamps import as_utc

AccountTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=80)]


def _dedupe(ids: list[uuid.UUID] | None) -> list[uuid.UUID] | None:
    if ids is None:
        return None
    return list(dict.fromkeys(ids))


def _check_overlap(editors: list[uuid.UUID] | None, viewers: list[uuid.UUID] | None) -> None:
    if editors and viewers and set(editors) & set(viewers):
        raise ValueError("A user cannot be both EDITOR and VIEWER")


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    title: AccountTitle
    description: str | None = None
    editors: list[uuid.UUID] = []
    viewers: list[uuid.UUID] = []

    @field_validator("editors", "viewers")
    @classmethod
    def dedupe_members(cls, ids):
        return _dedupe(ids)

    @model_validator(mode="after")
    def members_are_exclusive(self):
        _check_overlap(self.editors, self.viewers)
        return self


class AccountUpdateRequest(BaseModel):
    """
    Request body for PATCH /accounts/{id}.

    Omitted fields are left alone. "description": null clears the
    description. Sending "editors" and/or "viewers" replaces the account's
    memberships; a list that is omitted keeps its current members.
    """
    title: AccountTitle | None = None
    description: str | None = None
    editors: list[uuid.UUID] | None = None
    viewers: list[uuid.UUID] | None = None

    @field_validator("editors", "viewers")
    @classmethod
    def dedupe_members(cls, ids):
        return _dedupe(ids)

    @model_validator(mode="after")
    def has_changes(self):
        if not self.changes():
            raise ValueError("No changes provided")
        _check_overlap(self.editors, self.viewers)
        return self

    def changes(self) -> dict:
        """The fields to apply, keyed by name. None values mean "clear"."""
        changes = {}
        if self.title is not None:
            changes["title"] = self.title
        if "description" in self.model_fields_set:
            changes["description"] = self.description
        if self.editors is not None:
            changes["editors"] = self.editors
        if self.viewers is not None:
            changes["viewers"] = self.viewers
        return changes


class AccountResponse(BaseModel):
    """Public representation of a ledger book."""
    id: int
    title: str
    description: str | None
    created_by: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AccountDetailResponse(AccountResponse):
    """An account together with its members."""
    editors: list[uuid.UUID]
    viewers: list[uuid.UUID]

    @classmethod
    def from_detail(cls, detail) -> "AccountDetailResponse":
        account = detail.account
        return cls(
            id=account.id,
            title=account.title,
            description=account.description,
            created_by=account.created_by,
            created_at=account.created_at,
            editors=detail.editors,
            viewers=detail.viewers,
        )


class BalanceResponse(BaseModel):
    """
    Balance check response: the stored running balance and an independent sum.

    `match` is True when the latest entry's balance equals the sum of all
    amounts and every stored balance agrees with the running sum.
    """
    account_id: int
    balance: Decimal
    computed_balance: Decimal
    match: bool
    stale_transaction_ids: list[int]


class RecomputeResponse(BaseModel):
    account_id: int
    rows_updated: int
