"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from ledgerbook.models directly
"""

from ledgerbook.models.user import User  # noqa: F401
from ledgerbook.models.account import Account  # noqa: F401
from ledgerbook.models.membership import Membership, MembershipType  # noqa: F401
from ledgerbook.models.transaction import Transaction  # noqa: F401
