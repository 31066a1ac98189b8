"""
Conversion between API decimals and stored integer minor units.

The API speaks two-place decimals ("12.50", -30); the database stores cents.
Converting at the boundary keeps every stored sum integer arithmetic.
"""

from decimal import Decimal

CENTS = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Decimal("12.5") -> 1250. Callers validate the scale beforehand."""
    return int((amount / CENTS).to_integral_exact())


def from_cents(cents: int) -> Decimal:
    """1250 -> Decimal("12.50")."""
    return Decimal(cents).scaleb(-2)
