"""
Order Service Business Logic

Owns the Order aggregate: placement (price, risk gate, reservation,
first payment attempt), status transitions, tracking, notes and rating.
Payment status is read here but only ever written by the payment ledger.
"""

from typing import Optional, List, Tuple
from datetime import datetime, timezone
import logging
import uuid

from core.config import PricingConfig
from core.errors import (
    AlreadyRated,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    ListingNotFound,
    OrderNotFound,
    RiskBlockedError,
    ValidationError,
)
from core.identity import Identity, Role, require_owner, require_role
from core.keyed_lock import KeyedLock
from microservices.inventory_service.inventory_ledger import InventoryLedger
from microservices.inventory_service.models import ReservationLine
from microservices.payment_service.payment_ledger import PaymentLedger
from microservices.pricing_service.pricing_engine import compute_price
from microservices.risk_service.models import RequestContext, RiskAction, RiskReview

from .events.publishers import (
    publish_order_canceled,
    publish_order_created,
    publish_order_note_added,
    publish_order_status_changed,
)
from .models import (
    Order,
    OrderCreateRequest,
    OrderNote,
    OrderNoteRequest,
    OrderPlacement,
    OrderStatus,
    Rating,
    RatingRequest,
    StatusHistoryEntry,
    TrackingInfo,
    TrackingUpdate,
    TrackingUpdateRequest,
)
from .protocols import ListingCatalogProtocol, OrderRepositoryProtocol
from .state_machine import IN_PRODUCTION, authorize_transition, validate_transition

logger = logging.getLogger(__name__)

RATEABLE = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED})
TRACKABLE = frozenset({OrderStatus.READY, OrderStatus.SHIPPED, OrderStatus.DELIVERED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _reached_production(order: Order) -> bool:
    return any(entry.status in IN_PRODUCTION for entry in order.status_history)


class OrderService:
    """
    Order management business logic service

    Transitions on one order are serialized by the order lock, which is
    shared with the payment ledger.
    """

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        catalog: ListingCatalogProtocol,
        inventory: InventoryLedger,
        payments: PaymentLedger,
        event_bus=None,
        locks: Optional[KeyedLock] = None,
        pricing: Optional[PricingConfig] = None,
    ):
        """
        Initialize Order Service

        Args:
            repository: Order persistence
            catalog: Listing snapshots
            inventory: Inventory ledger used for reservations and releases
            payments: Payment ledger, sole writer of payment_status
            event_bus: NATS event bus instance (optional)
            locks: Per-order locks; defaults to the payment ledger's
            pricing: Fee and tax policy
        """
        self.repository = repository
        self.catalog = catalog
        self.inventory = inventory
        self.payments = payments
        self.event_bus = event_bus
        self.locks = locks or payments.locks
        self.pricing = pricing or PricingConfig()

        logger.info("OrderService initialized")

    # Order Lifecycle Operations

    async def create_order(
        self,
        identity: Identity,
        request: OrderCreateRequest,
        context: Optional[RequestContext] = None,
    ) -> OrderPlacement:
        """
        Place an order.

        The price is computed and the payment attempt risk-screened before
        anything is written. Reservation and insert succeed or fail
        together. The first payment attempt runs after the order exists; a
        gateway outage leaves the order pending and is reported in the
        placement rather than raised.

        Raises:
            ListingNotFound, ValidationError (and subclasses),
            InsufficientStock, RiskBlockedError
        """
        require_role(identity, Role.BUYER)

        listing = await self.catalog.get_listing(request.listing_id)
        if listing is None:
            raise ListingNotFound(request.listing_id)
        if not listing.is_active:
            raise ValidationError("This listing is not available for purchase", {"listing_id": listing.listing_id})
        if listing.seller_id == identity.user_id:
            raise ValidationError("You cannot order your own listing")

        materials = [
            ReservationLine(inventory_item_id=entry.inventory_item_id, quantity_per_unit=entry.quantity_per_unit)
            for entry in listing.bill_of_materials
        ]
        material_prices = await self.inventory.material_prices([line.inventory_item_id for line in materials])
        price = compute_price(
            listing,
            request.quantity,
            request.customization_choices,
            request.delivery_method,
            material_prices,
            self.pricing,
        )

        now = _now()
        order = Order(
            order_id=f"ord_{uuid.uuid4().hex[:16]}",
            buyer_id=identity.user_id,
            seller_id=listing.seller_id,
            listing_id=listing.listing_id,
            listing_title=listing.title,
            quantity=request.quantity,
            customization_choices=dict(request.customization_choices),
            materials=materials,
            status_history=[
                StatusHistoryEntry(status=OrderStatus.PENDING, timestamp=now, note="Order placed", actor_id=identity.user_id)
            ],
            price=price,
            payment_method=request.payment_method,
            delivery_method=request.delivery_method,
            delivery_address=request.delivery_address,
            created_at=now,
            updated_at=now,
        )

        review = await self.payments.screen(order, request.provider_payload, request.billing_address, context)
        if review.assessment.action == RiskAction.BLOCK:
            raise RiskBlockedError(review.review_id)
        order.risk_reviews.append(review)

        await self.inventory.reserve_for_order(materials, order.quantity, order.order_id, identity.user_id)
        try:
            order = await self.repository.insert_order(order)
        except Exception as e:
            logger.error(f"Failed to persist order {order.order_id}, releasing materials: {e}")
            await self.inventory.release_for_order(
                materials, order.quantity, order.order_id, identity.user_id, note="Order creation failed"
            )
            raise

        logger.info(f"Order created: {order.order_id} for buyer {identity.user_id} ({order.amount_due} {price.currency})")
        await publish_order_created(self.event_bus, order)

        placement = OrderPlacement(order=order)
        try:
            placement.payment = await self.payments.initiate(
                identity,
                order.order_id,
                request.provider_payload,
                request.billing_address,
                context,
                screened=review,
            )
        except ExternalServiceError as e:
            logger.warning(f"Order {order.order_id} placed but payment could not start: {e.message}")
            placement.payment_error_code = e.error_code or e.code
            placement.payment_error_message = "Payment could not be started, please try again"

        placement.order = await self._load(order.order_id)
        return placement

    async def get_order(self, identity: Identity, order_id: str) -> Order:
        """Get order by ID (parties and admins only)"""
        order = await self._load(order_id)
        self._require_party(identity, order)
        return order

    async def list_orders(
        self,
        identity: Identity,
        status: Optional[OrderStatus] = None,
        as_seller: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        """
        Orders visible to the caller, newest first.

        Sellers see orders for their listings unless ``as_seller`` is
        False; buyers see their purchases. Admins see everything.
        """
        require_role(identity, Role.BUYER, Role.SELLER)
        buyer_id = seller_id = None
        if not identity.is_admin:
            if as_seller is None:
                as_seller = identity.role == Role.SELLER
            if as_seller:
                seller_id = identity.user_id
            else:
                buyer_id = identity.user_id

        orders = await self.repository.list_orders(
            buyer_id=buyer_id, seller_id=seller_id, status=status, limit=limit, offset=offset
        )
        total = await self.repository.count_orders(buyer_id=buyer_id, seller_id=seller_id, status=status)
        return orders, total

    async def get_risk_reviews(self, identity: Identity, order_id: str) -> List[RiskReview]:
        """Risk audit trail, for the owning seller and admins only"""
        require_role(identity, Role.SELLER)
        order = await self._load(order_id)
        require_owner(identity, order.seller_id, "order")
        return list(order.risk_reviews)

    # Status Transitions

    async def update_status(
        self,
        identity: Identity,
        order_id: str,
        target: OrderStatus,
        note: Optional[str] = None,
    ) -> Order:
        """
        Apply one status transition.

        Rejected transitions leave the order untouched. Canceling an order
        whose production never started returns its materials to stock as
        part of the same transition.

        Raises:
            InvalidStateTransition, CancellationNotAllowed, AuthorizationError
        """
        require_role(identity, Role.SELLER)
        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            authorize_transition(identity, order, target)
            validate_transition(order.status, target)

            previous = order.status
            released = False
            if target == OrderStatus.CANCELED and not _reached_production(order):
                await self.inventory.release_for_order(
                    order.materials, order.quantity, order.order_id, identity.user_id,
                    note=f"Order {order.order_id} canceled",
                )
                released = True

            note = note or f"Status updated to {target.value}"
            order.status = target
            order.status_history.append(
                StatusHistoryEntry(status=target, timestamp=_now(), note=note, actor_id=identity.user_id)
            )
            try:
                order = await self._save(order)
            except Exception:
                if released:
                    await self._restore_reservation(order)
                raise

        logger.info(f"Order {order_id}: {previous.value} -> {target.value} by {identity.user_id}")
        await publish_order_status_changed(self.event_bus, order, previous, note, identity.user_id)
        if target == OrderStatus.CANCELED:
            await publish_order_canceled(self.event_bus, order, note, inventory_released=released)
        return order

    async def cancel_order(self, identity: Identity, order_id: str, reason: Optional[str] = None) -> Order:
        """Cancel a pending or accepted order"""
        return await self.update_status(identity, order_id, OrderStatus.CANCELED, reason)

    async def _restore_reservation(self, order: Order):
        try:
            await self.inventory.reserve_for_order(
                order.materials, order.quantity, order.order_id, order.buyer_id
            )
        except Exception as e:
            logger.error(f"Could not restore reservation for order {order.order_id} after failed cancel: {e}")

    # Tracking

    async def add_tracking(self, identity: Identity, order_id: str, request: TrackingUpdateRequest) -> Order:
        """
        Record carrier tracking. Adding tracking to a ready order ships it.
        """
        require_role(identity, Role.SELLER)
        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            require_owner(identity, order.seller_id, "order")
            if order.status not in TRACKABLE:
                raise ConflictError(
                    f"Tracking cannot be added to a {order.status.value} order",
                    {"order_id": order_id, "status": order.status.value},
                )

            now = _now()
            info = order.tracking_info
            if info is None or (info.carrier, info.tracking_number) != (request.carrier, request.tracking_number):
                info = TrackingInfo(
                    carrier=request.carrier,
                    tracking_number=request.tracking_number,
                    updates=info.updates if info else [],
                )
            info.tracking_url = request.tracking_url or info.tracking_url or (
                f"https://track.{request.carrier.lower()}.com/{request.tracking_number}"
            )
            if request.estimated_delivery:
                info.estimated_delivery = request.estimated_delivery
            if request.status:
                info.updates.append(
                    TrackingUpdate(
                        status=request.status,
                        description=request.description,
                        location=request.location,
                        timestamp=now,
                    )
                )
            order.tracking_info = info

            previous = order.status
            if previous == OrderStatus.READY:
                validate_transition(previous, OrderStatus.SHIPPED)
                order.status = OrderStatus.SHIPPED
                order.status_history.append(
                    StatusHistoryEntry(
                        status=OrderStatus.SHIPPED,
                        timestamp=now,
                        note=f"Shipped via {request.carrier} ({request.tracking_number})",
                        actor_id=identity.user_id,
                    )
                )
            order = await self._save(order)

        if order.status != previous:
            await publish_order_status_changed(
                self.event_bus, order, previous, order.status_history[-1].note, identity.user_id
            )
        return order

    # Rating

    async def rate_order(self, identity: Identity, order_id: str, request: RatingRequest) -> Order:
        """Attach the buyer's rating to a delivered or completed order"""
        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            if identity is None or identity.user_id != order.buyer_id:
                raise AuthorizationError("Only the buyer can rate this order")
            if order.status not in RATEABLE:
                raise ConflictError(
                    "Orders can only be rated once delivered or completed",
                    {"order_id": order_id, "status": order.status.value},
                )
            if order.rating is not None:
                raise AlreadyRated("This order has already been rated", {"order_id": order_id})

            order.rating = Rating(
                value=request.value,
                comment=request.comment,
                aspects=request.aspects,
                created_at=_now(),
            )
            order = await self._save(order)

        logger.info(f"Order {order_id} rated {request.value} by {identity.user_id}")
        return order

    # Notes

    async def add_note(
        self, identity: Identity, order_id: str, request: OrderNoteRequest
    ) -> Tuple[Order, OrderNote]:
        """
        Attach a note from the buyer, the seller or an admin.

        Public notes notify the other party. Private notes stay visible to
        their author and admins only.
        """
        text = request.note.strip()
        if not text:
            raise ValidationError("Note content is required")

        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            self._require_party(identity, order)

            if identity.user_id == order.buyer_id:
                author_role = Role.BUYER
            elif identity.user_id == order.seller_id:
                author_role = Role.SELLER
            else:
                author_role = Role.ADMIN

            note = OrderNote(
                note_id=f"note_{uuid.uuid4().hex[:16]}",
                note=text,
                author_id=identity.user_id,
                author_role=author_role,
                is_private=request.is_private,
                timestamp=_now(),
            )
            order.notes.append(note)
            order = await self._save(order)

        logger.info(f"Note {note.note_id} added to order {order_id} by {identity.user_id} ({author_role.value})")
        await publish_order_note_added(self.event_bus, order, note)
        return order, note

    # Helpers

    async def _load(self, order_id: str) -> Order:
        order = await self.repository.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def _save(self, order: Order) -> Order:
        order.updated_at = _now()
        return await self.repository.save_order(order)

    @staticmethod
    def _require_party(identity: Optional[Identity], order: Order):
        if identity is None:
            raise AuthorizationError("Authentication required")
        if identity.is_admin or identity.user_id in (order.buyer_id, order.seller_id):
            return
        raise AuthorizationError("Not authorized to access this order")
