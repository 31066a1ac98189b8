"""
Account model — a ledger book.

An account is a titled collection of transactions. It has no balance column
of its own: the running balance lives on each Transaction row, and the
account's current balance is the balance of its chronologically last
transaction.

Access to an account is granted through Membership rows (EDITOR or VIEWER);
admins reach every account regardless of membership.

Deleting an account that still has transactions is refused (409). Its
memberships are deleted with it.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerbook.database import Base, BigIntId


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    # 3-80 characters, validated at the API boundary
    title: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # The admin who created the ledger
    created_by: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    # --- Relationships ---
    memberships: Mapped[list["Membership"]] = relationship(
        back_populates="account",
    )
