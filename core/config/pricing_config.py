#!/usr/bin/env python3
"""Pricing configuration

Flat fees and the tax rate applied by the pricing engine. Amounts are kept
as Decimal so totals stay exact until they are rounded for display.
"""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

def _decimal(val: str, default: str) -> Decimal:
    try:
        return Decimal(val) if val else Decimal(default)
    except InvalidOperation:
        return Decimal(default)


@dataclass(frozen=True)
class PricingConfig:
    """Fixed pricing policy"""
    customization_fee_per_option: Decimal = Decimal("10")
    handling_fee: Decimal = Decimal("5")
    platform_fee: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0.08")
    currency: str = "USD"

    @classmethod
    def from_env(cls) -> 'PricingConfig':
        """Load pricing policy from environment variables"""
        return cls(
            customization_fee_per_option=_decimal(os.getenv("PRICING_CUSTOMIZATION_FEE", ""), "10"),
            handling_fee=_decimal(os.getenv("PRICING_HANDLING_FEE", ""), "5"),
            platform_fee=_decimal(os.getenv("PRICING_PLATFORM_FEE", ""), "0"),
            tax_rate=_decimal(os.getenv("PRICING_TAX_RATE", ""), "0.08"),
            currency=os.getenv("PRICING_CURRENCY", "USD"),
        )
