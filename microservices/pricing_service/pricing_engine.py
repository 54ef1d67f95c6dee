"""
Pricing Engine

Deterministic price computation for an order. ``compute_price`` is pure:
the caller passes the point-in-time material prices it read from the
inventory ledger, so identical inputs always give an identical breakdown.
"""

from decimal import Decimal
from typing import Dict, Mapping, Optional

from core.config import PricingConfig
from core.errors import (
    InvalidCustomization,
    InvalidQuantity,
    InventoryItemNotFound,
    UnsupportedDeliveryMethod,
)

from .models import DeliveryMethod, Listing, PriceBreakdown

ZERO = Decimal("0")


def validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(
            "Quantity must be a positive integer",
            {"quantity": quantity},
        )
    return quantity


def validate_customization(listing: Listing, choices: Mapping[str, str]) -> Dict[str, str]:
    """Every key must be a listing option and every value one of its choices"""
    if not choices:
        return {}
    if not listing.is_customizable:
        raise InvalidCustomization("This listing does not support customization")

    for name, value in choices.items():
        option = listing.option(name)
        if option is None:
            raise InvalidCustomization(
                f"Invalid customization option: {name}",
                {"option": name},
            )
        if value not in option.choices:
            raise InvalidCustomization(
                f'Invalid choice "{value}" for option "{name}"',
                {"option": name, "choice": value, "allowed": option.choices},
            )
    return dict(choices)


def delivery_fee_for(listing: Listing, method: DeliveryMethod) -> Decimal:
    if method == DeliveryMethod.PICKUP:
        return ZERO
    try:
        return listing.delivery_fees[method]
    except KeyError:
        raise UnsupportedDeliveryMethod(method.value)


def bulk_discount_for(listing: Listing, quantity: int, total_base_price: Decimal) -> Decimal:
    """Highest tier reached by quantity; discounts totalBasePrice only"""
    reached = [t for t in listing.bulk_discount_tiers if quantity >= t.min_quantity]
    if not reached:
        return ZERO
    tier = max(reached, key=lambda t: t.min_quantity)
    return min(total_base_price * tier.discount_percent / Decimal(100), total_base_price)


def material_cost_for(listing: Listing, material_prices: Mapping[str, Decimal]) -> Decimal:
    cost = ZERO
    for entry in listing.bill_of_materials:
        try:
            unit_price = material_prices[entry.inventory_item_id]
        except KeyError:
            raise InventoryItemNotFound(entry.inventory_item_id)
        cost += unit_price * entry.quantity_per_unit
    return cost


def compute_price(
    listing: Listing,
    quantity: int,
    customization_choices: Optional[Mapping[str, str]],
    delivery_method: DeliveryMethod,
    material_prices: Optional[Mapping[str, Decimal]] = None,
    policy: Optional[PricingConfig] = None,
) -> PriceBreakdown:
    """
    Compute the itemized price of an order.

    Args:
        listing: Listing snapshot
        quantity: Units ordered, positive
        customization_choices: option name -> chosen value
        delivery_method: Requested delivery method
        material_prices: inventory item id -> current unit price
        policy: Fixed fees and tax rate, defaults to PricingConfig()

    Raises:
        InvalidQuantity, InvalidCustomization, UnsupportedDeliveryMethod,
        InventoryItemNotFound
    """
    policy = policy or PricingConfig()
    validate_quantity(quantity)
    choices = validate_customization(listing, customization_choices or {})

    base_price = listing.price
    total_base_price = base_price * quantity

    customization_fee = policy.customization_fee_per_option * len(choices)
    material_cost = material_cost_for(listing, material_prices or {})
    delivery_fee = delivery_fee_for(listing, delivery_method)
    handling_fee = policy.handling_fee

    subtotal_before_discount = (
        total_base_price + customization_fee + material_cost + delivery_fee + handling_fee
    )
    bulk_discount = bulk_discount_for(listing, quantity, total_base_price)
    platform_fee = policy.platform_fee
    subtotal = subtotal_before_discount - bulk_discount + platform_fee

    tax_amount = subtotal * policy.tax_rate
    total = subtotal + tax_amount

    return PriceBreakdown(
        base_price=base_price,
        quantity=quantity,
        total_base_price=total_base_price,
        customization_fee=customization_fee,
        material_cost=material_cost,
        delivery_fee=delivery_fee,
        handling_fee=handling_fee,
        subtotal_before_discount=subtotal_before_discount,
        bulk_discount=bulk_discount,
        platform_fee=platform_fee,
        subtotal=subtotal,
        tax_rate=policy.tax_rate,
        tax_amount=tax_amount,
        total=total,
        currency=policy.currency,
    )
