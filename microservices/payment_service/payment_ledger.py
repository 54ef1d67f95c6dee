"""
Payment Ledger

Per-order transaction log: initiation through a provider adapter, gateway
verification, manual settlement, refunds and webhook reconciliation.

The ledger is the only writer of ``Order.payment_status``. Every mutation
runs under the order's lock (shared with the order service) and is saved
with the order's version check, so verify and mark-paid on the same
transaction are mutually exclusive and webhook replays apply once.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from core.config import PaymentConfig
from core.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateTransaction,
    ExternalServiceError,
    InvalidTransactionState,
    OrderNotFound,
    RefundExceedsCapturedAmount,
    RiskBlockedError,
    TransactionNotFound,
    ValidationError,
)
from core.identity import Identity, Role, require_owner, require_role
from core.keyed_lock import KeyedLock
from core.money import quantize
from microservices.order_service.models import Order, OrderStatus
from microservices.order_service.protocols import OrderRepositoryProtocol
from microservices.risk_service.models import (
    Address,
    BuyerProfile,
    RequestContext,
    RiskAction,
    RiskReview,
    TransactionProfile,
)
from microservices.risk_service.risk_evaluator import RiskEvaluator

from .events.publishers import (
    publish_payment_blocked,
    publish_payment_completed,
    publish_payment_failed,
    publish_payment_initiated,
    publish_payment_refunded,
)
from .models import (
    GatewayEvent,
    GatewayStatus,
    PaymentIntent,
    PaymentProvider,
    PaymentStatus,
    PaymentTransaction,
    ProviderPayload,
    RefundEntry,
    RefundResult,
    TransactionRef,
    TransactionStatus,
    WebhookResult,
)
from .protocols import BuyerProfileSourceProtocol, GatewayRegistryProtocol

logger = logging.getLogger(__name__)

PAID_STATES = frozenset({PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED})
CAPTURED = frozenset({TransactionStatus.COMPLETED, TransactionStatus.REFUNDED})

GATEWAY_ACTOR = "gateway"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _transaction_ref(order: Order, txn: PaymentTransaction, checkout_url=None, instructions=None,
                     duplicate: bool = False) -> TransactionRef:
    return TransactionRef(
        transaction_id=txn.transaction_id,
        order_id=order.order_id,
        provider=txn.provider,
        reference_number=txn.reference_number,
        status=txn.status,
        amount=txn.amount,
        checkout_url=checkout_url,
        instructions=instructions if instructions is not None else txn.notes,
        flagged_for_review=txn.flagged_for_review,
        duplicate=duplicate,
    )


def _settled_status(order: Order) -> PaymentStatus:
    """Order-level status derived from captured transactions"""
    captured = [t for t in order.payment_transactions if t.status in CAPTURED]
    if not captured:
        return order.payment_status
    if not any(t.refunds for t in captured):
        return PaymentStatus.PAID
    if all(t.status == TransactionStatus.REFUNDED for t in captured):
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIALLY_REFUNDED


class PaymentLedger:
    """
    Payment transaction state machine over the Order aggregate.

    Collaborators are injected: the order repository, the gateway registry,
    the risk evaluator and an optional buyer-profile source and event bus.
    """

    def __init__(
        self,
        repository: OrderRepositoryProtocol,
        gateways: GatewayRegistryProtocol,
        evaluator: Optional[RiskEvaluator] = None,
        profiles: Optional[BuyerProfileSourceProtocol] = None,
        event_bus=None,
        locks: Optional[KeyedLock] = None,
        config: Optional[PaymentConfig] = None,
    ):
        self.repository = repository
        self.gateways = gateways
        self.evaluator = evaluator or RiskEvaluator()
        self.profiles = profiles
        self.event_bus = event_bus
        self.locks = locks or KeyedLock()
        self.config = config or PaymentConfig()

    # ====================
    # Risk screening
    # ====================

    async def screen(
        self,
        order: Order,
        payload: ProviderPayload,
        billing_address: Optional[Address] = None,
        context: Optional[RequestContext] = None,
    ) -> RiskReview:
        """
        Score a payment attempt and return its audit record.

        The review is returned for every outcome; the caller decides where
        to persist it. Blocked attempts are published for audit, and the
        caller must raise RiskBlockedError before touching a gateway.
        """
        now = _now()
        blocked_before = sum(1 for r in order.risk_reviews if r.assessment.action == RiskAction.BLOCK)
        profile = TransactionProfile(
            order_id=order.order_id,
            amount=order.amount_due,
            currency=order.price.currency,
            payment_method=payload.provider,
            billing_address=billing_address,
            shipping_address=order.delivery_address,
            cardholder_name=getattr(payload, "cardholder_name", None) or getattr(payload, "customer_name", None),
            retry_count=len(order.payment_transactions) + blocked_before,
            occurred_at=now,
        )
        buyer = await self._buyer_profile(order.buyer_id)
        assessment = self.evaluator.evaluate(profile, buyer, context or RequestContext())
        review = RiskReview(
            review_id=_new_id("rr"),
            order_id=order.order_id,
            payment_method=payload.provider,
            assessment=assessment,
            created_at=now,
        )

        if assessment.action == RiskAction.BLOCK:
            logger.warning(
                f"Payment blocked for order {order.order_id} "
                f"(review {review.review_id}, score {assessment.risk_score}, factors {assessment.risk_factors})"
            )
            await publish_payment_blocked(
                self.event_bus, order.order_id, order.buyer_id, review.review_id, payload.provider
            )
        elif assessment.action == RiskAction.CHALLENGE:
            logger.info(f"Payment for order {order.order_id} flagged for review {review.review_id}")
        return review

    async def _buyer_profile(self, buyer_id: str) -> BuyerProfile:
        if self.profiles is None:
            return BuyerProfile(user_id=buyer_id)
        try:
            profile = await self.profiles.get_buyer_profile(buyer_id)
        except ExternalServiceError as e:
            logger.warning(f"Buyer profile unavailable for {buyer_id}, scoring without history: {e}")
            profile = None
        return profile or BuyerProfile(user_id=buyer_id)

    # ====================
    # Initiation
    # ====================

    async def initiate(
        self,
        identity: Identity,
        order_id: str,
        payload: ProviderPayload,
        billing_address: Optional[Address] = None,
        context: Optional[RequestContext] = None,
        screened: Optional[RiskReview] = None,
    ) -> TransactionRef:
        """
        Start a payment for an order.

        Idempotent per order and provider: a pending transaction younger
        than the idempotency window, or a completed one, is returned with
        ``duplicate=True`` instead of creating another.

        Args:
            screened: Review already recorded on the order by the caller

        Raises:
            RiskBlockedError, DuplicateTransaction, ConflictError,
            ExternalServiceError
        """
        provider = PaymentProvider(payload.provider)
        gateway = self.gateways.get(provider)

        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            require_owner(identity, order.buyer_id, "order")

            if order.status in (OrderStatus.CANCELED, OrderStatus.COMPLETED):
                raise ConflictError(
                    f"Cannot start a payment for a {order.status.value} order",
                    {"order_id": order_id, "status": order.status.value},
                )

            existing = self._reusable_transaction(order, provider)
            if existing is not None:
                logger.info(
                    f"Returning existing transaction {existing.transaction_id} for order {order_id} ({provider.value})"
                )
                return _transaction_ref(order, existing, duplicate=True)

            if order.payment_status in PAID_STATES:
                raise DuplicateTransaction(
                    "Order has already been paid",
                    {"order_id": order_id, "payment_status": order.payment_status.value},
                )

            if screened is None:
                review = await self.screen(order, payload, billing_address, context)
                order.risk_reviews.append(review)
            else:
                review = next((r for r in order.risk_reviews if r.review_id == screened.review_id), None)
                if review is None:
                    review = screened
                    order.risk_reviews.append(review)

            if review.assessment.action == RiskAction.BLOCK:
                await self._save(order)
                raise RiskBlockedError(review.review_id)

            transaction_id = _new_id("txn")
            intent = PaymentIntent(
                order_id=order.order_id,
                transaction_id=transaction_id,
                buyer_id=order.buyer_id,
                amount=order.amount_due,
                currency=order.price.currency,
                description=f"{order.listing_title} x{order.quantity}",
                payload=payload,
            )
            try:
                result = await gateway.create_payment(intent)
            except ExternalServiceError as e:
                logger.error(f"Gateway {provider.value} failed for order {order_id}: {e.message}")
                await self._save(order)
                raise

            review.transaction_id = transaction_id
            now = _now()
            txn = PaymentTransaction(
                transaction_id=transaction_id,
                amount=intent.amount,
                provider=provider,
                timestamp=now,
                reference_number=result.reference_number,
                notes=result.instructions,
                flagged_for_review=review.assessment.action == RiskAction.CHALLENGE,
                risk_review_id=review.review_id,
            )
            order.payment_transactions.append(txn)
            if result.status == GatewayStatus.SUCCESS:
                self._mark_completed(order, txn, now)
            elif result.status == GatewayStatus.FAILED:
                self._mark_failed(order, txn, result.error_code)
            elif order.payment_status == PaymentStatus.FAILED:
                order.payment_status = PaymentStatus.PENDING
            order = await self._save(order)

        logger.info(f"Initiated {provider.value} transaction {txn.transaction_id} for order {order_id}: {txn.status.value}")
        await publish_payment_initiated(self.event_bus, order, txn)
        await self._publish_outcome(order, txn)
        return _transaction_ref(order, txn, checkout_url=result.checkout_url, instructions=result.instructions)

    def _reusable_transaction(self, order: Order, provider: PaymentProvider) -> Optional[PaymentTransaction]:
        window = timedelta(seconds=self.config.idempotency_window_seconds)
        now = _now()
        for txn in reversed(order.payment_transactions):
            if txn.provider != provider:
                continue
            if txn.status == TransactionStatus.COMPLETED:
                return txn
            if txn.status == TransactionStatus.PENDING and now - txn.timestamp <= window:
                return txn
        return None

    # ====================
    # Settlement
    # ====================

    async def verify(self, identity: Identity, transaction_id: str) -> TransactionRef:
        """
        Reconcile a pending transaction against its gateway.

        Success completes the transaction and marks the order paid; a
        permanent failure marks it failed; anything else leaves it pending.
        """
        order_id = await self._order_id_for(transaction_id)
        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            self._require_party(identity, order)
            txn = self._pending_transaction(order, transaction_id)

            gateway = self.gateways.get(txn.provider)
            verification = await gateway.verify_payment(txn.reference_number, txn.transaction_id)

            if verification.status == GatewayStatus.SUCCESS:
                self._mark_completed(order, txn, _now())
            elif verification.status == GatewayStatus.FAILED and verification.permanent:
                self._mark_failed(order, txn, verification.error_code)
            else:
                logger.info(f"Transaction {transaction_id} still {txn.status.value} at {txn.provider.value}")
                return _transaction_ref(order, txn)

            order = await self._save(order)

        await self._publish_outcome(order, txn)
        return _transaction_ref(order, txn)

    async def mark_manually_paid(self, identity: Identity, transaction_id: str, notes: str) -> TransactionRef:
        """Seller confirms funds received outside a gateway"""
        require_role(identity, Role.SELLER)
        if not notes or not notes.strip():
            raise ValidationError("Notes are required when marking a payment as received")

        order_id = await self._order_id_for(transaction_id)
        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            require_owner(identity, order.seller_id, "order")
            txn = self._pending_transaction(order, transaction_id)

            if not self.gateways.get(txn.provider).is_manual and not identity.is_admin:
                raise ValidationError(
                    f"{txn.provider.value} payments are confirmed by the gateway; use verify instead",
                    {"transaction_id": transaction_id, "provider": txn.provider.value},
                )
            if any(t.status in CAPTURED for t in order.payment_transactions):
                raise DuplicateTransaction(
                    "Order has already been paid",
                    {"order_id": order_id, "transaction_id": transaction_id},
                )

            stamp = f"[{_now().isoformat()} {identity.user_id}] {notes.strip()}"
            txn.notes = f"{txn.notes}\n{stamp}" if txn.notes else stamp
            self._mark_completed(order, txn, _now())
            order = await self._save(order)

        logger.info(f"Transaction {transaction_id} marked paid by {identity.user_id}")
        await publish_payment_completed(self.event_bus, order, txn, settled_manually=True)
        return _transaction_ref(order, txn)

    def _pending_transaction(self, order: Order, transaction_id: str) -> PaymentTransaction:
        txn = order.find_transaction(transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        if txn.status != TransactionStatus.PENDING:
            raise InvalidTransactionState(
                f"Transaction is already {txn.status.value}",
                {"transaction_id": transaction_id, "status": txn.status.value},
            )
        return txn

    @staticmethod
    def _mark_completed(order: Order, txn: PaymentTransaction, when: datetime):
        if any(t.status in CAPTURED for t in order.payment_transactions if t is not txn):
            logger.warning(f"Order {order.order_id} captured a second payment ({txn.transaction_id})")
        txn.status = TransactionStatus.COMPLETED
        txn.completed_at = when
        order.payment_status = _settled_status(order)

    @staticmethod
    def _mark_failed(order: Order, txn: PaymentTransaction, error_code: Optional[str]):
        txn.status = TransactionStatus.FAILED
        txn.failure_code = error_code
        if order.payment_status == PaymentStatus.PENDING:
            order.payment_status = PaymentStatus.FAILED

    async def _publish_outcome(self, order: Order, txn: PaymentTransaction):
        if txn.status == TransactionStatus.COMPLETED:
            await publish_payment_completed(self.event_bus, order, txn)
        elif txn.status == TransactionStatus.FAILED:
            await publish_payment_failed(self.event_bus, order, txn)

    # ====================
    # Refunds
    # ====================

    async def refund_full(self, identity: Identity, order_id: str, reason: str) -> RefundResult:
        """Refund whatever remains of the latest captured transaction"""
        return await self._refund(identity, order_id, None, reason)

    async def refund_partial(self, identity: Identity, order_id: str, amount: Decimal, reason: str) -> RefundResult:
        """Refund part of the latest captured transaction"""
        cents = quantize(Decimal(amount)) if amount is not None else None
        if cents is None or cents <= 0:
            raise ValidationError("Refund amount must be at least one cent", {"amount": str(amount)})
        return await self._refund(identity, order_id, cents, reason)

    async def _refund(
        self,
        identity: Identity,
        order_id: str,
        amount: Optional[Decimal],
        reason: str,
    ) -> RefundResult:
        require_role(identity, Role.SELLER)
        if not reason or not reason.strip():
            raise ValidationError("A refund reason is required")

        async with self.locks.hold(order_id):
            order = await self._load(order_id)
            require_owner(identity, order.seller_id, "order")
            txn = self._refundable_transaction(order)

            if amount is None:
                if txn.status == TransactionStatus.REFUNDED:
                    raise InvalidTransactionState(
                        "Transaction is already refunded",
                        {"transaction_id": txn.transaction_id},
                    )
                amount = txn.refundable_amount
            elif txn.refunded_amount + amount > txn.amount:
                raise RefundExceedsCapturedAmount(txn.refundable_amount, amount)

            gateway = self.gateways.get(txn.provider)
            gateway_refund_id = await gateway.refund(txn.reference_number, amount, reason)

            entry = RefundEntry(
                refund_id=_new_id("refund"),
                amount=amount,
                reason=reason.strip(),
                timestamp=_now(),
                actor_id=identity.user_id,
                gateway_refund_id=gateway_refund_id,
            )
            result = self._apply_refund(order, txn, entry)
            order = await self._save(order)

        logger.info(
            f"Refunded {entry.amount} on transaction {txn.transaction_id} (order {order_id}): "
            f"{result.payment_status.value}"
        )
        await publish_payment_refunded(self.event_bus, order, result)
        return result

    @staticmethod
    def _refundable_transaction(order: Order) -> PaymentTransaction:
        for txn in reversed(order.payment_transactions):
            if txn.status in CAPTURED:
                return txn
        raise InvalidTransactionState(
            "Order has no captured payment to refund",
            {"order_id": order.order_id, "payment_status": order.payment_status.value},
        )

    @staticmethod
    def _apply_refund(order: Order, txn: PaymentTransaction, entry: RefundEntry) -> RefundResult:
        txn.refunds.append(entry)
        if txn.refunded_amount >= txn.amount:
            txn.status = TransactionStatus.REFUNDED
        order.payment_status = _settled_status(order)
        return RefundResult(
            order_id=order.order_id,
            transaction_id=txn.transaction_id,
            refund=entry,
            refunded_total=txn.refunded_amount,
            remaining=txn.refundable_amount,
            transaction_status=txn.status,
            payment_status=order.payment_status,
        )

    async def list_refunds(self, identity: Identity, order_id: str) -> List[RefundEntry]:
        order = await self._load(order_id)
        self._require_party(identity, order)
        return [entry for txn in order.payment_transactions for entry in txn.refunds]

    # ====================
    # Webhooks
    # ====================

    async def handle_webhook(self, provider: PaymentProvider, payload: bytes, headers) -> WebhookResult:
        """
        Apply a signed gateway notification.

        Each provider event id is applied at most once per transaction, so
        replays never complete or refund twice.
        """
        gateway = self.gateways.get(provider)
        event = await gateway.parse_webhook(payload, {k.lower(): v for k, v in dict(headers).items()})
        if event is None:
            raise ValidationError("Webhook could not be verified", {"provider": provider.value})

        order = await self._order_for_event(event)
        if order is None:
            logger.warning(f"No transaction matches {provider.value} webhook {event.event_id}")
            return WebhookResult(processed=False)

        async with self.locks.hold(order.order_id):
            order = await self._load(order.order_id)
            txn = self._transaction_for_event(order, event)
            if event.event_id in txn.applied_gateway_events:
                logger.info(f"Ignoring replayed webhook {event.event_id}")
                return WebhookResult(
                    processed=False, duplicate=True, transaction_id=txn.transaction_id, status=txn.status
                )

            refund_result = self._apply_gateway_event(order, txn, event)
            txn.applied_gateway_events.append(event.event_id)
            order = await self._save(order)

        if refund_result is not None:
            await publish_payment_refunded(self.event_bus, order, refund_result)
        elif event.status in (GatewayStatus.SUCCESS, GatewayStatus.FAILED):
            await self._publish_outcome(order, txn)
        return WebhookResult(processed=True, transaction_id=txn.transaction_id, status=txn.status)

    def _apply_gateway_event(
        self, order: Order, txn: PaymentTransaction, event: GatewayEvent
    ) -> Optional[RefundResult]:
        if event.status == GatewayStatus.SUCCESS:
            if txn.status in (TransactionStatus.PENDING, TransactionStatus.FAILED):
                self._mark_completed(order, txn, _now())
        elif event.status == GatewayStatus.FAILED:
            if txn.status == TransactionStatus.PENDING:
                self._mark_failed(order, txn, event.error_code)
        elif event.status == GatewayStatus.REFUNDED and txn.status in CAPTURED:
            refunded_total = event.refunded_amount if event.refunded_amount is not None else txn.amount
            outstanding = min(refunded_total, txn.amount) - txn.refunded_amount
            if outstanding > 0:
                entry = RefundEntry(
                    refund_id=_new_id("refund"),
                    amount=outstanding,
                    reason=f"Refunded at {txn.provider.value}",
                    timestamp=_now(),
                    actor_id=GATEWAY_ACTOR,
                )
                return self._apply_refund(order, txn, entry)
        return None

    async def _order_for_event(self, event: GatewayEvent) -> Optional[Order]:
        if event.transaction_id:
            order = await self.repository.find_by_transaction(event.transaction_id)
            if order is not None:
                return order
        if event.reference_number:
            return await self.repository.find_by_payment_reference(event.reference_number)
        return None

    @staticmethod
    def _transaction_for_event(order: Order, event: GatewayEvent) -> PaymentTransaction:
        txn = order.find_transaction(event.transaction_id) if event.transaction_id else None
        if txn is None and event.reference_number:
            txn = order.find_by_reference(event.reference_number)
        if txn is None:
            raise TransactionNotFound(event.transaction_id or event.reference_number)
        return txn

    # ====================
    # Helpers
    # ====================

    async def _load(self, order_id: str) -> Order:
        order = await self.repository.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def _save(self, order: Order) -> Order:
        order.updated_at = _now()
        return await self.repository.save_order(order)

    async def _order_id_for(self, transaction_id: str) -> str:
        order = await self.repository.find_by_transaction(transaction_id)
        if order is None:
            raise TransactionNotFound(transaction_id)
        return order.order_id

    @staticmethod
    def _require_party(identity: Optional[Identity], order: Order):
        if identity is None:
            raise AuthorizationError("Authentication required")
        if identity.is_admin or identity.user_id in (order.buyer_id, order.seller_id):
            return
        raise AuthorizationError("Not authorized to access this order")
