"""
Stripe gateway

Card payments through Stripe PaymentIntents. The stripe library is
synchronous, so calls run in a worker thread.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Dict, Optional

import stripe

from core.errors import ExternalServiceError
from core.money import quantize

from ..models import (
    GatewayEvent,
    GatewayPayment,
    GatewayStatus,
    GatewayVerification,
    PaymentIntent,
    PaymentProvider,
)
from .base import PaymentGateway

logger = logging.getLogger(__name__)

INTENT_STATUS_MAP = {
    "succeeded": GatewayStatus.SUCCESS,
    "processing": GatewayStatus.PENDING,
    "requires_action": GatewayStatus.PENDING,
    "requires_confirmation": GatewayStatus.PENDING,
    "requires_capture": GatewayStatus.PENDING,
    "requires_payment_method": GatewayStatus.PENDING,
    "canceled": GatewayStatus.FAILED,
}

WEBHOOK_STATUS_MAP = {
    "payment_intent.succeeded": GatewayStatus.SUCCESS,
    "payment_intent.processing": GatewayStatus.PENDING,
    "payment_intent.payment_failed": GatewayStatus.FAILED,
    "payment_intent.canceled": GatewayStatus.FAILED,
    "charge.refunded": GatewayStatus.REFUNDED,
}


def to_minor_units(amount: Decimal) -> int:
    return int(quantize(amount) * 100)


def from_minor_units(amount: int) -> Decimal:
    return Decimal(amount) / 100


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntent adapter"""

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str] = None):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        if not secret_key:
            logger.warning("Stripe secret key not configured")

    @property
    def provider(self) -> PaymentProvider:
        return PaymentProvider.STRIPE

    async def _call(self, fn, **kwargs):
        if not self.secret_key:
            raise ExternalServiceError("Stripe is not configured", provider="stripe", error_code="not_configured")
        try:
            return await asyncio.to_thread(fn, api_key=self.secret_key, **kwargs)
        except stripe.StripeError as e:
            logger.error(f"Stripe API error: {e}")
            raise ExternalServiceError(
                "Stripe request failed",
                provider="stripe",
                error_code=getattr(e, "code", None) or type(e).__name__,
            ) from e

    async def create_payment(self, intent: PaymentIntent) -> GatewayPayment:
        payload = intent.payload
        try:
            stripe_intent = await self._call(
                stripe.PaymentIntent.create,
                amount=to_minor_units(intent.amount),
                currency=intent.currency.lower(),
                description=intent.description,
                payment_method=payload.payment_method_id,
                confirm=True,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
                metadata={"order_id": intent.order_id, "transaction_id": intent.transaction_id},
                **({"receipt_email": payload.receipt_email} if payload.receipt_email else {}),
            )
        except ExternalServiceError as e:
            # A declined card is a payment outcome, not an outage
            if isinstance(e.__cause__, stripe.CardError):
                return GatewayPayment(
                    reference_number=f"declined_{intent.transaction_id}",
                    status=GatewayStatus.FAILED,
                    error_code=e.error_code,
                )
            raise

        logger.info(f"Created Stripe PaymentIntent {stripe_intent.id} for order {intent.order_id}")
        return GatewayPayment(
            reference_number=stripe_intent.id,
            status=INTENT_STATUS_MAP.get(stripe_intent.status, GatewayStatus.PENDING),
        )

    async def verify_payment(
        self, reference_number: str, transaction_id: Optional[str] = None
    ) -> GatewayVerification:
        stripe_intent = await self._call(stripe.PaymentIntent.retrieve, id=reference_number)
        status = INTENT_STATUS_MAP.get(stripe_intent.status, GatewayStatus.PENDING)
        error = getattr(stripe_intent, "last_payment_error", None)
        return GatewayVerification(
            status=status,
            permanent=stripe_intent.status == "canceled",
            error_code=getattr(error, "code", None) if error else None,
        )

    async def refund(self, reference_number: str, amount: Decimal, reason: str) -> str:
        refund = await self._call(
            stripe.Refund.create,
            payment_intent=reference_number,
            amount=to_minor_units(amount),
            reason="requested_by_customer",
            metadata={"reason": reason[:500]},
        )
        logger.info(f"Created Stripe refund {refund.id} for {reference_number}")
        return refund.id

    async def parse_webhook(self, payload: bytes, headers: Dict[str, str]) -> Optional[GatewayEvent]:
        if not self.webhook_secret:
            logger.warning("Stripe webhook secret not configured, rejecting webhook")
            return None

        signature = headers.get("stripe-signature", "")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Invalid Stripe webhook: {e}")
            return None

        status = WEBHOOK_STATUS_MAP.get(event["type"])
        if status is None:
            logger.debug(f"Ignoring Stripe webhook type {event['type']}")
            return None

        obj = event["data"]["object"]
        reference = obj.get("payment_intent") if event["type"].startswith("charge.") else obj.get("id")
        metadata = obj.get("metadata") or {}
        error = obj.get("last_payment_error") or {}
        refunded = obj.get("amount_refunded") if event["type"] == "charge.refunded" else None

        logger.info(f"Received Stripe webhook: {event['type']} ({event['id']})")
        return GatewayEvent(
            event_id=event["id"],
            provider=PaymentProvider.STRIPE,
            reference_number=reference,
            transaction_id=metadata.get("transaction_id"),
            status=status,
            error_code=error.get("code"),
            refunded_amount=from_minor_units(refunded) if refunded is not None else None,
        )
