"""
Membership model — grants one user EDITOR or VIEWER rights on one account.

  - EDITOR: may read the ledger and record new transactions
  - VIEWER: may read the ledger only

A user holds at most one membership per account. The service layer rejects
a request that names the same user as both editor and viewer before any row
is written; the composite primary key is the database-level safety net.

Memberships are never diffed: an account update that carries member lists
deletes the account's rows and inserts the new set.
"""

import enum
import uuid

from sqlalchemy import Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerbook.database import Base


class MembershipType(str, enum.Enum):
    """
    The capability a membership grants.

    Inherits from str so the value serializes naturally to JSON.
    """
    EDITOR = "EDITOR"
    VIEWER = "VIEWER"


class Membership(Base):
    __tablename__ = "account_members"

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )

    uid: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    type: Mapped[MembershipType] = mapped_column(
        Enum(MembershipType, name="membership_type"),
        nullable=False,
    )

    # --- Relationships ---
    account: Mapped["Account"] = relationship(back_populates="memberships")
    user: Mapped["User"] = relationship(back_populates="memberships")
