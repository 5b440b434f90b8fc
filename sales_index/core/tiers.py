"""
Account tiers derived from trailing sales.

Tiers are computed at read time and never stored.
"""

from enum import Enum


class Tier(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


# Lower bound of each band, inclusive, highest band first
TIER_BREAKPOINTS: tuple[tuple[Tier, float], ...] = (
    (Tier.A, 10000.0),
    (Tier.B, 5000.0),
    (Tier.C, 2000.0),
)

TIER_ORDER: tuple[Tier, ...] = (Tier.A, Tier.B, Tier.C, Tier.D)


def tier_from_sales(sales: float) -> Tier:
    """
    Classify trailing sales into one of four bands.

    A boundary value belongs to the higher band: 10000 is A, 9999.99 is B.
    """
    for tier, floor in TIER_BREAKPOINTS:
        if sales >= floor:
            return tier
    return Tier.D


def parse_tier(value: str | None) -> Tier | None:
    """
    Parse a tier letter; empty input means "no tier".

    Raises:
        ValueError: If the value is not one of A-D
    """
    text = (value or "").strip().upper()
    if not text:
        return None
    return Tier(text)
