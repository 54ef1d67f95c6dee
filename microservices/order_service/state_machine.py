"""
Order status state machine

Allowed transitions and who may request them. Pure functions, no I/O.
"""

from typing import Dict, FrozenSet, Optional

from core.errors import AuthorizationError, CancellationNotAllowed, InvalidStateTransition
from core.identity import Identity

from .models import Order, OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELED, OrderStatus.DISPUTED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.MAKING, OrderStatus.CANCELED, OrderStatus.DISPUTED}),
    OrderStatus.MAKING: frozenset({OrderStatus.READY, OrderStatus.DISPUTED}),
    OrderStatus.READY: frozenset({OrderStatus.SHIPPED, OrderStatus.DISPUTED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.DISPUTED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.DISPUTED}),
    # admin resolution
    OrderStatus.DISPUTED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}

CANCELABLE = frozenset({OrderStatus.PENDING, OrderStatus.ACCEPTED})

# States reached only after production began; inventory is consumed
IN_PRODUCTION = frozenset({
    OrderStatus.MAKING,
    OrderStatus.READY,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
})


def allowed_targets(current: OrderStatus) -> FrozenSet[OrderStatus]:
    return TRANSITIONS.get(current, frozenset())


def validate_transition(current: OrderStatus, target: OrderStatus) -> None:
    """
    Raise if ``current -> target`` is not an allowed edge.

    Raises:
        CancellationNotAllowed: cancel requested once production started
        InvalidStateTransition: any other unreachable target, including
            the current status itself
    """
    if target == OrderStatus.CANCELED and current in IN_PRODUCTION:
        raise CancellationNotAllowed(
            current.value,
            "Cannot cancel an order that is already in production",
        )
    if target not in allowed_targets(current):
        raise InvalidStateTransition(current.value, target.value)


def authorize_transition(identity: Optional[Identity], order: Order, target: OrderStatus) -> None:
    """
    Status updates belong to the seller of the order. Admins may move any
    order and are the only ones who resolve disputes.
    """
    if identity is None:
        raise AuthorizationError("Authentication required")
    if identity.is_admin:
        return

    if order.status == OrderStatus.DISPUTED:
        raise AuthorizationError("Only an admin can resolve a disputed order")

    if identity.user_id != order.seller_id:
        raise AuthorizationError("Only the seller of this order can update its status")
