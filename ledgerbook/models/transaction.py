"""
Transaction model — one dated, signed entry in a ledger.

Key fields:
  - amount_cents: Signed amount in minor units. Positive is money in,
    negative is money out. Never zero.
  - balance_cents: The running balance after this entry. DERIVED: it is
    rewritten by the recompute engine (services/ledger.py) after every
    insert, edit or delete on the account and is never set from user input.
  - transaction_date_time: When the entry happened, stored in UTC. Together
    with id it defines the ledger order.

Ledger order and the balance invariant:
  Order an account's rows by (transaction_date_time ASC, id ASC). Then for
  every row, balance_cents == SUM(amount_cents) over that row and all rows
  before it. The composite index below serves both the windowed recompute
  and the newest-first listing.

Why integer cents?
  Floating-point numbers can introduce rounding errors in financial
  calculations: 0.1 + 0.2 != 0.3 in IEEE 754. Integer minor units keep
  every sum exact, including the running sum the database computes with a
  window function. The API layer converts to and from two-place decimals.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, String, Text, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledgerbook.database import Base, BigIntId


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        # Zero-amount entries carry no information
        CheckConstraint("amount_cents <> 0", name="ck_transactions_non_zero_amount"),
        Index("ix_transactions_account_ledger_order", "account_id", "transaction_date_time", "id"),
    )

    # Monotonic: breaks ties between entries with the same timestamp
    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
    )

    created_by: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    # 3-120 characters, validated at the API boundary
    title: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    transaction_date_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
