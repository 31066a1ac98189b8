"""
Pydantic schemas for Transaction endpoints.

Amounts travel as decimals with at most two fractional digits. They may be
sent as JSON numbers or strings ("12.50") and are always returned as
strings so that no client parses them through a float. Positive amounts
are money in, negative amounts money out; zero is rejected.

transaction_date_time accepts ISO 8601 with or without an offset. Naive
values are read at the configured default offset (see ledgerbook.timestamps).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, field_validator, model_validator

from ledgerbook.money import from_cents, to_cents
from ledgerbook.timestamps import as_utc

TransactionTitle = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=120)]

# 15 integer digits keeps every cent value inside a signed 64-bit column
Amount = Annotated[Decimal, Field(max_digits=17, decimal_places=2)]


def _non_zero(amount: Decimal | None) -> Decimal | None:
    if amount is not None and amount == 0:
        raise ValueError("Amount must be a non-zero number")
    return amount


class TransactionCreateRequest(BaseModel):
    """Request body for POST /accounts/{id}/transactions."""
    title: TransactionTitle
    description: str | None = None
    amount: Amount
    transaction_date_time: datetime | None = Field(
        None, description="When it happened; defaults to now"
    )

    @field_validator("amount")
    @classmethod
    def amount_non_zero(cls, amount):
        return _non_zero(amount)

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)


class TransactionUpdateRequest(BaseModel):
    """
    Request body for PATCH /accounts/{id}/transactions/{txId}.

    Only title, description, amount and transaction_date_time can change.
    An omitted (or null) field is left alone, except description, where an
    explicit null clears it. A body that changes nothing is rejected.
    """
    title: TransactionTitle | None = None
    description: str | None = None
    amount: Amount | None = None
    transaction_date_time: datetime | None = None

    @field_validator("amount")
    @classmethod
    def amount_non_zero(cls, amount):
        return _non_zero(amount)

    @model_validator(mode="after")
    def has_changes(self):
        if not self.changes():
            raise ValueError("No changes provided")
        return self

    def changes(self) -> dict:
        """The columns to update, keyed by column name."""
        changes = {}
        if self.title is not None:
            changes["title"] = self.title
        if "description" in self.model_fields_set:
            changes["description"] = self.description
        if self.amount is not None:
            changes["amount_cents"] = to_cents(self.amount)
        if self.transaction_date_time is not None:
            changes["transaction_date_time"] = self.transaction_date_time
        return changes


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: int
    account_id: int
    created_by: uuid.UUID
    title: str
    description: str | None
    amount: Decimal
    balance: Decimal
    transaction_date_time: datetime
    created_at: datetime

    @field_validator("transaction_date_time", "created_at")
    @classmethod
    def stored_as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_model(cls, txn) -> "TransactionResponse":
        return cls(
            id=txn.id,
            account_id=txn.account_id,
            created_by=txn.created_by,
            title=txn.title,
            description=txn.description,
            amount=from_cents(txn.amount_cents),
            balance=from_cents(txn.balance_cents),
            transaction_date_time=txn.transaction_date_time,
            created_at=txn.created_at,
        )
