"""
Billing mode of a candidate plan.

Decided once when the plan is created and stored on the plan row so callers
switch on the mode instead of re-deriving it from price and flags.
"""
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import NamedTuple, Optional


class BillingMode(str, Enum):
    FREE = "free"          # price == 0
    BYPASS = "bypass"      # priced, but never sent to Stripe
    EXTERNAL = "external"  # mirrored as a Stripe product + one-time price


class PlanBilling(NamedTuple):
    mode: BillingMode
    product_id: Optional[str] = None
    price_id: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return self.mode == BillingMode.EXTERNAL


def resolve_billing_mode(price, skip_external_billing: bool = False) -> BillingMode:
    """Classify a plan from its price and the skip flag."""
    if Decimal(str(price)) == 0:
        return BillingMode.FREE
    if skip_external_billing:
        return BillingMode.BYPASS
    return BillingMode.EXTERNAL


# Currencies Stripe charges in whole units
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})


def currency_exponent(currency: str) -> int:
    return 0 if (currency or "").lower() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount, currency: str = "usd") -> int:
    """Convert a decimal amount into Stripe's smallest unit for the currency (cents for usd, yen for jpy)."""
    scale = Decimal(10) ** currency_exponent(currency)
    return int((Decimal(str(amount)) * scale).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
