from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Sequence, Tuple

from subgate.core.settings import S

BASE_PRICES: Dict[str, Decimal] = {
    "1_month": Decimal("19.99"),
    "3_months": Decimal("49.99"),
    "6_months": Decimal("79.99"),
    "12_months": Decimal("139.99"),
}

# (first affiliate, last affiliate, percent per affiliate)
AFFILIATE_TIERS: Tuple[Tuple[int, int, int], ...] = (
    (1, 9, S.affiliate_tier_a_percent),
    (10, 19, 2),
    (20, 29, 3),
)

FREE_SUBSCRIPTION_THRESHOLD = S.free_subscription_threshold

_CENT = Decimal("0.01")


def affiliate_discount_percent(count: int, tiers: Sequence[Tuple[int, int, int]] = AFFILIATE_TIERS) -> int:
    count = max(int(count or 0), 0)
    total = 0
    for first, last, percent in tiers:
        if count < first:
            break
        total += (min(count, last) - first + 1) * percent
    return total


def total_discount_percent(
    promo_fraction: Optional[Decimal],
    affiliate_count: int,
    tiers: Sequence[Tuple[int, int, int]] = AFFILIATE_TIERS,
) -> Decimal:
    promo_pct = Decimal(str(promo_fraction or 0)) * 100
    return promo_pct + affiliate_discount_percent(affiliate_count, tiers)


def adjusted_price(base: Decimal, discount_percent: Decimal) -> Decimal:
    price = Decimal(str(base)) * (1 - Decimal(str(discount_percent)) / 100)
    if price < 0:
        price = Decimal(0)
    return price.quantize(_CENT, rounding=ROUND_HALF_UP)


def adjusted_prices(discount_percent: Decimal) -> Dict[str, Decimal]:
    return {t: adjusted_price(base, discount_percent) for t, base in BASE_PRICES.items()}


def promo_prices(subscription_type: str, promo_fraction: Decimal) -> Dict[str, Decimal]:
    """Base price list with the promo applied to one duration only."""
    prices = dict(BASE_PRICES)
    prices[subscription_type] = adjusted_price(BASE_PRICES[subscription_type], Decimal(str(promo_fraction)) * 100)
    return prices


def is_free_subscription(discount_percent: Decimal, threshold: int = FREE_SUBSCRIPTION_THRESHOLD) -> bool:
    return Decimal(str(discount_percent)) >= threshold


def is_paid_duration(subscription_type: str) -> bool:
    return subscription_type in BASE_PRICES


def prices_out(prices: Dict[str, Decimal]) -> Dict[str, float]:
    return {k: float(v) for k, v in prices.items()}
