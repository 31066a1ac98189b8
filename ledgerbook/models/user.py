"""
User model — the authentication identity.

Each User is a login credential (email + hashed password). Users carry no
role column: admin rights come from the configured email allow-list
(see ledgerbook.security.is_admin_email), and access to individual ledgers
comes from Membership rows.

The password is stored as an Argon2id hash — never in plaintext.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledgerbook.database import Base


class User(Base):
    __tablename__ = "users"

    # UUID ids, matching the user ids handed out by hosted identity providers
    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Email is the login identifier: unique, indexed
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Soft-disable: deactivated users can't log in and their tokens stop resolving
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Audit timestamps
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

    # --- Relationships ---
    memberships: Mapped[list["Membership"]] = relationship(
        back_populates="user",
    )
