"""
Volume Tier Resolver - Picks the quantity tier that applies to an order line.

Used by the pricing engine both as a pricing method (volume_tiered)
and as a post-method volume discount.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import VolumeTier


@dataclass
class VolumeDiscount:
    """Outcome of applying volume tiers to a price."""
    price: float
    discount: float = 0.0
    tier: Optional[VolumeTier] = None


def resolve_tier(quantity: int, tiers: Iterable[VolumeTier]) -> Optional[VolumeTier]:
    """
    Return the first tier whose range contains ``quantity``.

    A tier matches when min_quantity <= quantity and either it has no
    max_quantity or quantity <= max_quantity. Tiers are checked in the
    order given; callers pass them sorted by min_quantity.
    """
    for tier in tiers:
        if tier.matches(quantity):
            return tier
    return None


def apply_volume_discount(price: float, quantity: int, tiers: Iterable[VolumeTier]) -> VolumeDiscount:
    """Take the matching tier's discount percentage off ``price``."""
    tier = resolve_tier(quantity, tiers)
    if tier is None:
        return VolumeDiscount(price=price)

    discounted = price * (1 - tier.discount_percentage / 100)
    return VolumeDiscount(price=discounted, discount=tier.discount_percentage, tier=tier)


def price_volume_tiered(
    cost: float,
    quantity: int,
    tiers: Iterable[VolumeTier],
    default_markup: float = 40.0,
) -> tuple[float, Optional[VolumeTier]]:
    """
    Volume-tiered price for a quantity.

    Base is cost marked up by ``default_markup`` percent. A matching tier's
    special price replaces the base outright; otherwise its discount
    percentage comes off the base.

    Returns (price, tier_used).
    """
    base_price = cost * (1 + default_markup / 100)

    tier = resolve_tier(quantity, tiers)
    if tier is None:
        return base_price, None

    if tier.special_price is not None:
        return tier.special_price, tier

    return base_price * (1 - tier.discount_percentage / 100), tier


def tiers_from_tuples(rows: Iterable[tuple]) -> list[VolumeTier]:
    """Build tiers from (min_quantity, max_quantity, discount_percentage) tuples."""
    return [
        VolumeTier(min_quantity=int(lo), max_quantity=hi, discount_percentage=float(pct))
        for lo, hi, pct in rows
    ]
