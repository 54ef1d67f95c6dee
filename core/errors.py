"""
Settlement error taxonomy

Every core operation raises one of these. The HTTP layer maps the six base
categories onto status codes; subclasses only refine the code and message.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class SettlementError(Exception):
    """Base class for all settlement errors"""

    code = "SETTLEMENT_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.code, "message": self.message, "details": self.details}


# ============================================================================
# Categories
# ============================================================================

class ValidationError(SettlementError):
    """Malformed or out-of-range input"""
    code = "VALIDATION_ERROR"


class NotFoundError(SettlementError):
    """Referenced listing, order, item or transaction is missing"""
    code = "NOT_FOUND"


class ConflictError(SettlementError):
    """Request conflicts with the current state of a resource"""
    code = "CONFLICT"


class AuthorizationError(SettlementError):
    """Caller's role or ownership does not permit the operation"""
    code = "FORBIDDEN"


class ExternalServiceError(SettlementError):
    """A collaborator (gateway, catalog) failed"""
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if provider:
            details["provider"] = provider
        if error_code:
            details["provider_error_code"] = error_code
        super().__init__(message, details)
        self.provider = provider
        self.error_code = error_code


class RiskBlockedError(SettlementError):
    """Risk evaluation blocked the payment attempt"""
    code = "PAYMENT_BLOCKED"

    def __init__(self, review_id: str):
        super().__init__(
            "Payment cannot be processed at this time",
            {"review_id": review_id},
        )
        self.review_id = review_id


# ============================================================================
# Validation
# ============================================================================

class InvalidCustomization(ValidationError):
    code = "INVALID_CUSTOMIZATION"


class UnsupportedDeliveryMethod(ValidationError):
    code = "UNSUPPORTED_DELIVERY_METHOD"

    def __init__(self, method: str):
        super().__init__(
            f"Delivery method '{method}' is not offered for this listing",
            {"delivery_method": method},
        )


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"


# ============================================================================
# Not found
# ============================================================================

class ListingNotFound(NotFoundError):
    code = "LISTING_NOT_FOUND"

    def __init__(self, listing_id: str):
        super().__init__(f"Listing not found: {listing_id}", {"listing_id": listing_id})


class OrderNotFound(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}", {"order_id": order_id})


class InventoryItemNotFound(NotFoundError):
    code = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        super().__init__(f"Inventory item not found: {item_id}", {"item_id": item_id})


class TransactionNotFound(NotFoundError):
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        super().__init__(
            f"Payment transaction not found: {transaction_id}",
            {"transaction_id": transaction_id},
        )


# ============================================================================
# Conflict
# ============================================================================

class InsufficientStock(ConflictError):
    """Raised when an adjustment would drive stock below zero"""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_id: str, available: int, requested: int, item_name: Optional[str] = None):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            "Not enough inventory available for this order",
            {
                "item_id": item_id,
                "item_name": item_name,
                "available": available,
                "requested": requested,
            },
        )


class ItemInUse(ConflictError):
    code = "ITEM_IN_USE"

    def __init__(self, item_id: str, listing_ids):
        super().__init__(
            "Inventory item is used by active listings and cannot be deleted",
            {"item_id": item_id, "listing_ids": list(listing_ids)},
        )


class InvalidStateTransition(ConflictError):
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot change order status from {current} to {target}",
            {"current_status": current, "requested_status": target},
        )


class CancellationNotAllowed(ConflictError):
    code = "CANCELLATION_NOT_ALLOWED"

    def __init__(self, current: str, reason: str):
        super().__init__(reason, {"current_status": current})


class RefundExceedsCapturedAmount(ConflictError):
    code = "REFUND_EXCEEDS_CAPTURED_AMOUNT"

    def __init__(self, remaining: Decimal, requested: Decimal):
        super().__init__(
            f"Cannot refund more than the remaining amount: {remaining}",
            {"remaining": str(remaining), "requested": str(requested)},
        )


class DuplicateTransaction(ConflictError):
    code = "DUPLICATE_TRANSACTION"


class InvalidTransactionState(ConflictError):
    code = "INVALID_TRANSACTION_STATE"


class AlreadyRated(ConflictError):
    code = "ALREADY_RATED"


class ConcurrentModification(ConflictError):
    """Optimistic version check failed while saving an aggregate"""
    code = "CONCURRENT_MODIFICATION"


__all__ = [
    "SettlementError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AuthorizationError",
    "ExternalServiceError",
    "RiskBlockedError",
    "InvalidCustomization",
    "UnsupportedDeliveryMethod",
    "InvalidQuantity",
    "ListingNotFound",
    "OrderNotFound",
    "InventoryItemNotFound",
    "TransactionNotFound",
    "InsufficientStock",
    "ItemInUse",
    "InvalidStateTransition",
    "CancellationNotAllowed",
    "RefundExceedsCapturedAmount",
    "DuplicateTransaction",
    "InvalidTransactionState",
    "AlreadyRated",
    "ConcurrentModification",
]
