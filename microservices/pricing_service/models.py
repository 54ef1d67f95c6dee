"""
Pricing Service Data Models

Listing snapshot as read from the listing catalog, and the itemized
price breakdown produced for an order.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.money import quantize


class DeliveryMethod(str, Enum):
    """Delivery methods offered by sellers"""
    PICKUP = "pickup"
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"


# ====================
# Listing snapshot
# ====================

class CustomizationOption(BaseModel):
    """One customizable attribute and the choices a buyer may pick"""
    name: str
    choices: List[str] = Field(..., min_length=1)


class BulkDiscountTier(BaseModel):
    """Percentage off totalBasePrice once quantity reaches min_quantity"""
    min_quantity: int = Field(..., ge=1)
    discount_percent: Decimal = Field(..., ge=0, le=100)


class BillOfMaterialsEntry(BaseModel):
    """Inventory consumed per ordered unit"""
    inventory_item_id: str
    quantity_per_unit: int = Field(..., gt=0)


class Listing(BaseModel):
    """Immutable-at-purchase snapshot of a seller's listing"""
    model_config = ConfigDict(frozen=True)

    listing_id: str
    seller_id: str
    title: str
    price: Decimal = Field(..., ge=0)
    is_customizable: bool = False
    customization_options: List[CustomizationOption] = Field(default_factory=list)
    bulk_discount_tiers: List[BulkDiscountTier] = Field(default_factory=list)
    delivery_fees: Dict[DeliveryMethod, Decimal] = Field(default_factory=dict)
    bill_of_materials: List[BillOfMaterialsEntry] = Field(default_factory=list)
    is_active: bool = True

    def option(self, name: str) -> Optional[CustomizationOption]:
        for option in self.customization_options:
            if option.name == name:
                return option
        return None


# ====================
# Price breakdown
# ====================

MONEY_FIELDS = (
    "base_price",
    "total_base_price",
    "customization_fee",
    "material_cost",
    "delivery_fee",
    "handling_fee",
    "subtotal_before_discount",
    "bulk_discount",
    "platform_fee",
    "subtotal",
    "tax_amount",
    "total",
)


class PriceBreakdown(BaseModel):
    """Itemized order price.

    Amounts are exact Decimals; rounding to cents happens only in
    ``display()``.
    """
    model_config = ConfigDict(frozen=True)

    base_price: Decimal
    quantity: int
    total_base_price: Decimal
    customization_fee: Decimal
    material_cost: Decimal
    delivery_fee: Decimal
    handling_fee: Decimal
    subtotal_before_discount: Decimal
    bulk_discount: Decimal
    platform_fee: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    currency: str = "USD"

    @property
    def amount_due(self) -> Decimal:
        """Total rounded to cents, the amount actually charged"""
        return quantize(self.total)

    def display(self) -> Dict[str, object]:
        data: Dict[str, object] = {name: str(quantize(getattr(self, name))) for name in MONEY_FIELDS}
        data["quantity"] = self.quantity
        data["tax_rate"] = str(self.tax_rate)
        data["currency"] = self.currency
        return data
