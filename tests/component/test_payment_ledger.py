"""
Payment Ledger Component Tests

Covers:
1. Initiation: idempotency, gateway outcomes, outages
2. Risk gate on the payment path (allow, challenge, block)
3. Verification and manual settlement, including their race
4. Full and partial refunds
5. Webhook reconciliation and replay protection
"""

import asyncio
from decimal import Decimal

import pytest

from core.config import PricingConfig, RiskConfig
from core.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateTransaction,
    ExternalServiceError,
    InvalidTransactionState,
    RefundExceedsCapturedAmount,
    RiskBlockedError,
    TransactionNotFound,
    ValidationError,
)
from core.identity import Role
from microservices.order_service.models import OrderStatus
from microservices.payment_service.models import (
    GatewayEvent,
    GatewayStatus,
    GatewayVerification,
    PaymentProvider,
    PaymentStatus,
    TransactionStatus,
)
from microservices.payment_service.payment_ledger import PaymentLedger
from microservices.pricing_service.models import DeliveryMethod
from microservices.pricing_service.pricing_engine import compute_price
from microservices.risk_service.models import RiskAction
from microservices.risk_service.risk_evaluator import RiskEvaluator

from tests.component.mocks import build_mock_registry
from tests.fixtures import make_context, make_identity, make_listing, make_order, make_payload

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest.fixture
def order(order_repository, buyer_id, seller_id):
    """Pending stripe order for 64.80"""
    return order_repository.put(make_order(buyer_id, seller_id))


@pytest.fixture
def hundred_order(order_repository, buyer_id, seller_id):
    """Order whose amount due is exactly 100.00"""
    order = make_order(buyer_id, seller_id)
    order.price = compute_price(
        make_listing(seller_id, price=Decimal("100")),
        1,
        {},
        DeliveryMethod.PICKUP,
        {},
        PricingConfig(handling_fee=Decimal("0"), tax_rate=Decimal("0")),
    )
    return order_repository.put(order)


def _ledger(order_repository, gateways, account_client, mock_event_bus, order_locks, policy: RiskConfig):
    return PaymentLedger(
        repository=order_repository,
        gateways=gateways,
        evaluator=RiskEvaluator(policy),
        profiles=account_client,
        event_bus=mock_event_bus,
        locks=order_locks,
    )


async def _capture(payment_ledger, stripe_gateway, buyer, order_id):
    stripe_gateway.create_status = GatewayStatus.SUCCESS
    return await payment_ledger.initiate(buyer, order_id, make_payload(PaymentProvider.STRIPE), context=make_context())


# =============================================================================
# 1. Initiation
# =============================================================================


class TestInitiate:

    async def test_creates_pending_transaction(self, payment_ledger, order_repository, mock_event_bus, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        stored = order_repository.orders[order.order_id]
        assert ref.status == TransactionStatus.PENDING
        assert ref.amount == Decimal("64.80")
        assert ref.duplicate is False
        assert ref.checkout_url is not None
        assert [t.transaction_id for t in stored.payment_transactions] == [ref.transaction_id]
        assert stored.payment_status == PaymentStatus.PENDING
        assert stored.risk_reviews[0].transaction_id == ref.transaction_id
        mock_event_bus.assert_event_published("payment.initiated", {"transaction_id": ref.transaction_id})

    async def test_repeat_returns_same_transaction(self, payment_ledger, stripe_gateway, buyer, order):
        first = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        second = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        assert second.transaction_id == first.transaction_id
        assert second.duplicate is True
        assert len(stripe_gateway.calls_to("create_payment")) == 1

    async def test_concurrent_initiates_create_one_transaction(
        self, payment_ledger, order_repository, stripe_gateway, buyer, order
    ):
        refs = await asyncio.gather(
            *(payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context()) for _ in range(5))
        )

        assert len({r.transaction_id for r in refs}) == 1
        assert sum(1 for r in refs if not r.duplicate) == 1
        assert len(order_repository.orders[order.order_id].payment_transactions) == 1
        assert len(stripe_gateway.calls_to("create_payment")) == 1

    async def test_immediate_success_marks_order_paid(self, payment_ledger, stripe_gateway, order_repository,
                                                      mock_event_bus, buyer, seller_id, order):
        ref = await _capture(payment_ledger, stripe_gateway, buyer, order.order_id)

        stored = order_repository.orders[order.order_id]
        assert ref.status == TransactionStatus.COMPLETED
        assert stored.payment_status == PaymentStatus.PAID
        assert stored.payment_transactions[0].completed_at is not None
        mock_event_bus.assert_event_published("payment.completed", {"order_id": order.order_id})
        assert mock_event_bus.get_notifications("payment_received")[0]["user_id"] == seller_id
        assert mock_event_bus.get_notifications("payment_confirmed")[0]["user_id"] == buyer.user_id

    async def test_paid_order_rejects_other_provider(self, payment_ledger, stripe_gateway, buyer, order):
        await _capture(payment_ledger, stripe_gateway, buyer, order.order_id)

        with pytest.raises(DuplicateTransaction):
            await payment_ledger.initiate(buyer, order.order_id, make_payload(PaymentProvider.FAWRY))

    async def test_declined_then_retry(self, payment_ledger, stripe_gateway, order_repository, buyer, order):
        stripe_gateway.create_status = GatewayStatus.FAILED
        declined = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        assert declined.status == TransactionStatus.FAILED
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.FAILED

        stripe_gateway.create_status = GatewayStatus.PENDING
        retry = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        stored = order_repository.orders[order.order_id]
        assert retry.transaction_id != declined.transaction_id
        assert stored.payment_status == PaymentStatus.PENDING
        assert stored.payment_transactions[0].failure_code == "card_declined"

    async def test_gateway_outage_records_nothing_but_review(
        self, payment_ledger, stripe_gateway, order_repository, buyer, order
    ):
        stripe_gateway.fail_with()

        with pytest.raises(ExternalServiceError):
            await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        stored = order_repository.orders[order.order_id]
        assert stored.payment_transactions == []
        assert stored.payment_status == PaymentStatus.PENDING
        assert len(stored.risk_reviews) == 1
        assert stored.risk_reviews[0].transaction_id is None

    async def test_only_the_buyer_pays(self, payment_ledger, seller, stranger, order):
        for identity in (seller, stranger):
            with pytest.raises(AuthorizationError):
                await payment_ledger.initiate(identity, order.order_id, make_payload())

    async def test_canceled_order(self, payment_ledger, order_repository, buyer, order):
        order_repository.orders[order.order_id].status = OrderStatus.CANCELED
        with pytest.raises(ConflictError):
            await payment_ledger.initiate(buyer, order.order_id, make_payload())

    async def test_unavailable_provider(self, order_repository, order_locks, buyer, order):
        ledger = PaymentLedger(order_repository, build_mock_registry(PaymentProvider.STRIPE), locks=order_locks)
        with pytest.raises(ValidationError):
            await ledger.initiate(buyer, order.order_id, make_payload(PaymentProvider.FAWRY))


# =============================================================================
# 2. Risk gate
# =============================================================================


class TestRiskGate:

    async def test_block_stops_before_gateway(self, order_repository, gateways, stripe_gateway, account_client,
                                              mock_event_bus, order_locks, buyer, order):
        policy = RiskConfig(blacklisted_ips=frozenset({"203.0.113.10"}))
        ledger = _ledger(order_repository, gateways, account_client, mock_event_bus, order_locks, policy)

        with pytest.raises(RiskBlockedError) as exc_info:
            await ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        stored = order_repository.orders[order.order_id]
        assert stripe_gateway.calls_to("create_payment") == []
        assert stored.payment_transactions == []
        assert stored.risk_reviews[0].review_id == exc_info.value.review_id
        assert stored.risk_reviews[0].assessment.action == RiskAction.BLOCK
        event = mock_event_bus.assert_event_published("risk.payment_blocked", {"order_id": order.order_id})
        assert "risk_score" not in event["data"]

    async def test_challenge_flags_transaction(self, order_repository, gateways, account_client,
                                               mock_event_bus, order_locks, buyer, order):
        policy = RiskConfig(low_threshold=1, medium_threshold=5, high_threshold=95)
        ledger = _ledger(order_repository, gateways, account_client, mock_event_bus, order_locks, policy)

        ref = await ledger.initiate(buyer, order.order_id, make_payload())

        stored = order_repository.orders[order.order_id]
        assert ref.flagged_for_review is True
        assert stored.payment_transactions[0].flagged_for_review is True
        assert stored.payment_transactions[0].risk_review_id == stored.risk_reviews[0].review_id

    async def test_account_service_outage_still_scores(self, payment_ledger, account_client, order_repository,
                                                       buyer, order):
        account_client.unavailable = True

        await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        review = order_repository.orders[order.order_id].risk_reviews[0]
        assert "unknown_account_age" in review.assessment.risk_factors

    async def test_blocked_attempts_count_as_retries(self, payment_ledger, order_repository, gateways,
                                                     account_client, mock_event_bus, order_locks, buyer, order):
        policy = RiskConfig(blacklisted_ips=frozenset({"203.0.113.10"}))
        strict = _ledger(order_repository, gateways, account_client, mock_event_bus, order_locks, policy)
        for _ in range(3):
            with pytest.raises(RiskBlockedError):
                await strict.initiate(buyer, order.order_id, make_payload(), context=make_context())

        stored = await order_repository.get_order(order.order_id)
        review = await payment_ledger.screen(stored, make_payload(), context=make_context())

        assert review.assessment.action != RiskAction.BLOCK
        assert "repeated_attempts" in review.assessment.risk_factors


# =============================================================================
# 3. Verification and manual settlement
# =============================================================================


class TestSettlement:

    async def test_verify_success(self, payment_ledger, stripe_gateway, order_repository, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        stripe_gateway.verification = GatewayVerification(status=GatewayStatus.SUCCESS)

        verified = await payment_ledger.verify(buyer, ref.transaction_id)

        assert verified.status == TransactionStatus.COMPLETED
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.PAID

        with pytest.raises(InvalidTransactionState, match="already completed"):
            await payment_ledger.verify(buyer, ref.transaction_id)

    async def test_verify_still_pending(self, payment_ledger, order_repository, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        version = order_repository.orders[order.order_id].version

        result = await payment_ledger.verify(buyer, ref.transaction_id)

        assert result.status == TransactionStatus.PENDING
        assert order_repository.orders[order.order_id].version == version

    async def test_verify_permanent_failure(self, payment_ledger, stripe_gateway, order_repository,
                                            mock_event_bus, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        stripe_gateway.verification = GatewayVerification(
            status=GatewayStatus.FAILED, permanent=True, error_code="expired"
        )

        result = await payment_ledger.verify(buyer, ref.transaction_id)

        assert result.status == TransactionStatus.FAILED
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.FAILED
        mock_event_bus.assert_event_published("payment.failed", {"error_code": "expired"})

    async def test_verify_unknown_transaction(self, payment_ledger, buyer):
        with pytest.raises(TransactionNotFound):
            await payment_ledger.verify(buyer, "txn_missing")

    async def test_mark_paid(self, payment_ledger, order_repository, mock_event_bus, buyer, seller, order):
        ref = await payment_ledger.initiate(
            buyer, order.order_id, make_payload(PaymentProvider.VODAFONE_CASH), context=make_context()
        )

        result = await payment_ledger.mark_manually_paid(seller, ref.transaction_id, "Received on 0100 wallet")

        txn = order_repository.orders[order.order_id].payment_transactions[0]
        assert result.status == TransactionStatus.COMPLETED
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.PAID
        assert "Received on 0100 wallet" in txn.notes
        assert seller.user_id in txn.notes
        mock_event_bus.assert_event_published("payment.completed", {"settled_manually": True})

    async def test_mark_paid_requires_owner_and_notes(self, payment_ledger, buyer, seller, order):
        ref = await payment_ledger.initiate(
            buyer, order.order_id, make_payload(PaymentProvider.INSTAPAY), context=make_context()
        )

        with pytest.raises(ValidationError):
            await payment_ledger.mark_manually_paid(seller, ref.transaction_id, "   ")
        with pytest.raises(AuthorizationError):
            await payment_ledger.mark_manually_paid(buyer, ref.transaction_id, "paid")
        with pytest.raises(AuthorizationError):
            await payment_ledger.mark_manually_paid(make_identity(Role.SELLER), ref.transaction_id, "paid")

    @pytest.mark.parametrize("provider", [PaymentProvider.STRIPE, PaymentProvider.FAWRY])
    async def test_gateway_payments_not_marked_paid_by_seller(self, payment_ledger, order_repository,
                                                              mock_event_bus, buyer, seller, order, provider):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(provider), context=make_context())

        with pytest.raises(ValidationError):
            await payment_ledger.mark_manually_paid(seller, ref.transaction_id, "Customer says they paid")

        stored = order_repository.orders[order.order_id]
        assert stored.payment_transactions[0].status == TransactionStatus.PENDING
        assert stored.payment_status == PaymentStatus.PENDING
        assert mock_event_bus.get_published("payment.completed") == []

    async def test_admin_settles_gateway_payment_manually(self, payment_ledger, order_repository,
                                                          admin, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())

        result = await payment_ledger.mark_manually_paid(admin, ref.transaction_id, "Confirmed in Stripe dashboard")

        assert result.status == TransactionStatus.COMPLETED
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.PAID

    async def test_verify_and_mark_paid_race(self, payment_ledger, gateways, order_repository, buyer, seller, order):
        ref = await payment_ledger.initiate(
            buyer, order.order_id, make_payload(PaymentProvider.VODAFONE_CASH), context=make_context()
        )
        gateways.get(PaymentProvider.VODAFONE_CASH).verification = GatewayVerification(status=GatewayStatus.SUCCESS)

        results = await asyncio.gather(
            payment_ledger.verify(buyer, ref.transaction_id),
            payment_ledger.mark_manually_paid(seller, ref.transaction_id, "Cash received"),
            return_exceptions=True,
        )

        completed = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, InvalidTransactionState)]
        assert len(completed) == 1
        assert len(rejected) == 1
        stored = order_repository.orders[order.order_id]
        assert stored.payment_status == PaymentStatus.PAID
        assert [t.status for t in stored.payment_transactions] == [TransactionStatus.COMPLETED]

    async def test_mark_paid_when_another_transaction_captured(
        self, payment_ledger, stripe_gateway, buyer, seller, order
    ):
        manual = await payment_ledger.initiate(
            buyer, order.order_id, make_payload(PaymentProvider.CASH_ON_DELIVERY), context=make_context()
        )
        await _capture(payment_ledger, stripe_gateway, buyer, order.order_id)

        with pytest.raises(DuplicateTransaction):
            await payment_ledger.mark_manually_paid(seller, manual.transaction_id, "Cash received")


# =============================================================================
# 4. Refunds
# =============================================================================


class TestRefunds:

    async def test_partial_then_excess_rejected(self, payment_ledger, stripe_gateway, order_repository,
                                                buyer, seller, hundred_order):
        await _capture(payment_ledger, stripe_gateway, buyer, hundred_order.order_id)

        first = await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("60"), "Sleeve too short")
        with pytest.raises(RefundExceedsCapturedAmount):
            await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("50"), "Late delivery")

        stored = order_repository.orders[hundred_order.order_id]
        txn = stored.payment_transactions[0]
        assert first.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert first.remaining == Decimal("40")
        assert stored.payment_status == PaymentStatus.PARTIALLY_REFUNDED
        assert txn.status == TransactionStatus.COMPLETED
        assert [r.amount for r in txn.refunds] == [Decimal("60")]
        assert len(stripe_gateway.calls_to("refund")) == 1

    async def test_full_refund_after_partial(self, payment_ledger, stripe_gateway, order_repository,
                                             mock_event_bus, buyer, seller, hundred_order):
        await _capture(payment_ledger, stripe_gateway, buyer, hundred_order.order_id)
        await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("60"), "Alteration")

        result = await payment_ledger.refund_full(seller, hundred_order.order_id, "Order returned")

        stored = order_repository.orders[hundred_order.order_id]
        assert result.refund.amount == Decimal("40")
        assert result.transaction_status == TransactionStatus.REFUNDED
        assert stored.payment_status == PaymentStatus.REFUNDED
        assert len(mock_event_bus.get_published("payment.refunded")) == 2
        assert mock_event_bus.get_notifications("refund_processed")[-1]["user_id"] == buyer.user_id

        with pytest.raises(InvalidTransactionState):
            await payment_ledger.refund_full(seller, hundred_order.order_id, "Again")

    async def test_refund_exactly_remaining(self, payment_ledger, stripe_gateway, buyer, seller, hundred_order):
        await _capture(payment_ledger, stripe_gateway, buyer, hundred_order.order_id)
        await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("60"), "Part")

        result = await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("40"), "Rest")

        assert result.payment_status == PaymentStatus.REFUNDED
        assert result.remaining == Decimal("0")

    async def test_nothing_captured(self, payment_ledger, seller, order):
        with pytest.raises(InvalidTransactionState):
            await payment_ledger.refund_full(seller, order.order_id, "No payment yet")

    async def test_refund_rules(self, payment_ledger, stripe_gateway, buyer, seller, order):
        await _capture(payment_ledger, stripe_gateway, buyer, order.order_id)

        with pytest.raises(AuthorizationError):
            await payment_ledger.refund_full(buyer, order.order_id, "I want my money")
        with pytest.raises(ValidationError):
            await payment_ledger.refund_full(seller, order.order_id, "")
        with pytest.raises(ValidationError):
            await payment_ledger.refund_partial(seller, order.order_id, Decimal("0"), "Zero")

    async def test_sub_cent_refund_rejected_before_gateway(self, payment_ledger, stripe_gateway, order_repository,
                                                           buyer, seller, hundred_order):
        await _capture(payment_ledger, stripe_gateway, buyer, hundred_order.order_id)

        with pytest.raises(ValidationError):
            await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("0.004"), "Tiny")

        stored = order_repository.orders[hundred_order.order_id]
        assert stripe_gateway.calls_to("refund") == []
        assert stored.payment_transactions[0].refunds == []
        assert stored.payment_status == PaymentStatus.PAID

    async def test_fractional_cents_rounded_to_cents(self, payment_ledger, stripe_gateway, buyer, seller,
                                                     hundred_order):
        await _capture(payment_ledger, stripe_gateway, buyer, hundred_order.order_id)

        result = await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("10.005"), "Rounding")

        assert result.refund.amount == Decimal("10.01")
        assert result.remaining == Decimal("89.99")

    async def test_gateway_refund_failure_records_nothing(self, payment_ledger, stripe_gateway, order_repository,
                                                          buyer, seller, order):
        await _capture(payment_ledger, stripe_gateway, buyer, order.order_id)
        stripe_gateway.refund_error = ExternalServiceError("Stripe is down", provider="stripe")

        with pytest.raises(ExternalServiceError):
            await payment_ledger.refund_full(seller, order.order_id, "Damaged")

        stored = order_repository.orders[order.order_id]
        assert stored.payment_transactions[0].refunds == []
        assert stored.payment_status == PaymentStatus.PAID

    async def test_list_refunds(self, payment_ledger, stripe_gateway, buyer, seller, stranger, order):
        await _capture(payment_ledger, stripe_gateway, buyer, order.order_id)
        await payment_ledger.refund_partial(seller, order.order_id, Decimal("10"), "Discount")

        refunds = await payment_ledger.list_refunds(buyer, order.order_id)

        assert [r.amount for r in refunds] == [Decimal("10.00")]
        with pytest.raises(AuthorizationError):
            await payment_ledger.list_refunds(stranger, order.order_id)


# =============================================================================
# 5. Webhooks
# =============================================================================


class TestWebhooks:

    async def test_success_applied_once(self, payment_ledger, stripe_gateway, order_repository,
                                        mock_event_bus, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        stripe_gateway.webhook_events[b"evt-1"] = GatewayEvent(
            event_id="evt_1",
            provider=PaymentProvider.STRIPE,
            reference_number=ref.reference_number,
            transaction_id=ref.transaction_id,
            status=GatewayStatus.SUCCESS,
        )

        first = await payment_ledger.handle_webhook(PaymentProvider.STRIPE, b"evt-1", {})
        replay = await payment_ledger.handle_webhook(PaymentProvider.STRIPE, b"evt-1", {})

        assert first.processed is True
        assert first.status == TransactionStatus.COMPLETED
        assert replay.processed is False
        assert replay.duplicate is True
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.PAID
        assert len(mock_event_bus.get_published("payment.completed")) == 1

    async def test_matched_by_reference(self, payment_ledger, stripe_gateway, order_repository, buyer, order):
        ref = await payment_ledger.initiate(buyer, order.order_id, make_payload(), context=make_context())
        stripe_gateway.webhook_events[b"evt-2"] = GatewayEvent(
            event_id="evt_2",
            provider=PaymentProvider.STRIPE,
            reference_number=ref.reference_number,
            status=GatewayStatus.FAILED,
            error_code="card_declined",
        )

        result = await payment_ledger.handle_webhook(PaymentProvider.STRIPE, b"evt-2", {})

        assert result.transaction_id == ref.transaction_id
        assert result.status == TransactionStatus.FAILED
        assert order_repository.orders[order.order_id].payment_status == PaymentStatus.FAILED

    async def test_provider_refund_records_only_the_difference(self, payment_ledger, stripe_gateway,
                                                               order_repository, buyer, seller, hundred_order):
        ref = await _capture(payment_ledger, stripe_gateway, buyer, hundred_order.order_id)
        await payment_ledger.refund_partial(seller, hundred_order.order_id, Decimal("60"), "Alteration")

        for key, cumulative in ((b"refund-60", "60"), (b"refund-100", "100")):
            stripe_gateway.webhook_events[key] = GatewayEvent(
                event_id=f"evt_{key.decode()}",
                provider=PaymentProvider.STRIPE,
                reference_number=ref.reference_number,
                status=GatewayStatus.REFUNDED,
                refunded_amount=Decimal(cumulative),
            )
            await payment_ledger.handle_webhook(PaymentProvider.STRIPE, key, {})

        stored = order_repository.orders[hundred_order.order_id]
        txn = stored.payment_transactions[0]
        assert [r.amount for r in txn.refunds] == [Decimal("60"), Decimal("40")]
        assert txn.refunds[-1].actor_id == "gateway"
        assert txn.status == TransactionStatus.REFUNDED
        assert stored.payment_status == PaymentStatus.REFUNDED

    async def test_unknown_transaction_ignored(self, payment_ledger, stripe_gateway):
        stripe_gateway.webhook_events[b"evt-3"] = GatewayEvent(
            event_id="evt_3",
            provider=PaymentProvider.STRIPE,
            reference_number="pi_unknown",
            status=GatewayStatus.SUCCESS,
        )

        result = await payment_ledger.handle_webhook(PaymentProvider.STRIPE, b"evt-3", {})

        assert result.processed is False
        assert result.duplicate is False

    async def test_unverified_payload_rejected(self, payment_ledger):
        with pytest.raises(ValidationError):
            await payment_ledger.handle_webhook(PaymentProvider.STRIPE, b"forged", {})
