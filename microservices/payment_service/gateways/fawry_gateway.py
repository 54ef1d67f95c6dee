"""
Fawry gateway

Reference-code payments through Fawry's e-commerce API. The buyer pays the
reference at a Fawry outlet or in-app; Fawry notifies us by webhook and we
can poll the status endpoint.
"""

import hashlib
import hmac
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

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

STATUS_MAP = {
    "PAID": GatewayStatus.SUCCESS,
    "DELIVERED": GatewayStatus.SUCCESS,
    "NEW": GatewayStatus.PENDING,
    "UNPAID": GatewayStatus.PENDING,
    "CANCELED": GatewayStatus.FAILED,
    "CANCELLED": GatewayStatus.FAILED,
    "EXPIRED": GatewayStatus.FAILED,
    "FAILED": GatewayStatus.FAILED,
    "REFUNDED": GatewayStatus.REFUNDED,
}

# Fawry will not change these again
FINAL_FAILURES = {"CANCELED", "CANCELLED", "EXPIRED"}


def _sha256(*parts: Any) -> str:
    return hashlib.sha256("".join(str(p) for p in parts).encode()).hexdigest()


class FawryGateway(PaymentGateway):
    """Fawry reference-code adapter"""

    def __init__(
        self,
        merchant_code: Optional[str],
        security_key: Optional[str],
        base_url: str = "https://atfawry.fawrystaging.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.merchant_code = merchant_code
        self.security_key = security_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not merchant_code or not security_key:
            logger.warning("Fawry merchant credentials not configured")

    @property
    def provider(self) -> PaymentProvider:
        return PaymentProvider.FAWRY

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy HTTP client initialization"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _require_credentials(self):
        if not self.merchant_code or not self.security_key:
            raise ExternalServiceError("Fawry is not configured", provider="fawry", error_code="not_configured")

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        self._require_credentials()
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Fawry API error: {e.response.status_code} {e.response.text}")
            raise ExternalServiceError(
                "Fawry request failed", provider="fawry", error_code=str(e.response.status_code)
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fawry request error: {e}")
            raise ExternalServiceError(
                "Fawry is unavailable", provider="fawry", error_code=type(e).__name__
            ) from e

        status_code = body.get("statusCode")
        if status_code not in (None, 200):
            raise ExternalServiceError(
                body.get("statusDescription") or "Fawry rejected the request",
                provider="fawry",
                error_code=str(status_code),
            )
        return body

    async def create_payment(self, intent: PaymentIntent) -> GatewayPayment:
        payload = intent.payload
        amount = f"{quantize(intent.amount):.2f}"
        body = await self._request(
            "POST",
            "/ECommerceWeb/Fawry/payments/charge",
            json={
                "merchantCode": self.merchant_code,
                "merchantRefNum": intent.transaction_id,
                "customerProfileId": intent.buyer_id,
                "customerMobile": payload.customer_mobile,
                "customerEmail": payload.customer_email,
                "customerName": payload.customer_name,
                "paymentMethod": "PAYATFAWRY",
                "amount": amount,
                "currencyCode": intent.currency,
                "description": intent.description,
                "chargeItems": [
                    {"itemId": intent.order_id, "description": intent.description, "price": amount, "quantity": 1}
                ],
                "signature": _sha256(
                    self.merchant_code, intent.transaction_id, intent.buyer_id,
                    "PAYATFAWRY", amount, self.security_key,
                ),
            },
        )
        reference = str(body.get("referenceNumber"))
        logger.info(f"Created Fawry reference {reference} for order {intent.order_id}")
        return GatewayPayment(
            reference_number=reference,
            status=STATUS_MAP.get(str(body.get("orderStatus", "NEW")).upper(), GatewayStatus.PENDING),
            instructions=f"Pay reference {reference} at any Fawry outlet before it expires.",
        )

    async def verify_payment(
        self, reference_number: str, transaction_id: Optional[str] = None
    ) -> GatewayVerification:
        merchant_ref = transaction_id or reference_number
        body = await self._request(
            "GET",
            "/ECommerceWeb/Fawry/payments/status/v2",
            params={
                "merchantCode": self.merchant_code,
                "merchantRefNumber": merchant_ref,
                "signature": _sha256(self.merchant_code, merchant_ref, self.security_key),
            },
        )
        raw_status = str(body.get("orderStatus", "")).upper()
        return GatewayVerification(
            status=STATUS_MAP.get(raw_status, GatewayStatus.PENDING),
            permanent=raw_status in FINAL_FAILURES,
            error_code=raw_status or None,
        )

    async def refund(self, reference_number: str, amount: Decimal, reason: str) -> str:
        refund_amount = f"{quantize(amount):.2f}"
        body = await self._request(
            "POST",
            "/ECommerceWeb/Fawry/payments/refund",
            json={
                "merchantCode": self.merchant_code,
                "referenceNumber": reference_number,
                "refundAmount": refund_amount,
                "reason": reason,
                "signature": _sha256(
                    self.merchant_code, reference_number, refund_amount, reason, self.security_key
                ),
            },
        )
        return str(body.get("refundReferenceNumber") or f"fawry_refund_{reference_number}")

    async def parse_webhook(self, payload: bytes, headers: Dict[str, str]) -> Optional[GatewayEvent]:
        if not self.security_key:
            logger.warning("Fawry security key not configured, rejecting webhook")
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid Fawry webhook JSON: {e}")
            return None

        fawry_ref = data.get("fawryRefNumber", "")
        merchant_ref = data.get("merchantRefNumber", "")
        order_status = str(data.get("orderStatus", "")).upper()
        expected = _sha256(
            fawry_ref,
            merchant_ref,
            data.get("paymentAmount", ""),
            data.get("orderAmount", ""),
            order_status,
            data.get("paymentMethod", ""),
            data.get("paymentRefrenceNumber", ""),
            self.security_key,
        )
        if not hmac.compare_digest(expected, str(data.get("messageSignature", ""))):
            logger.warning(f"Invalid Fawry webhook signature for {merchant_ref}")
            return None

        status = STATUS_MAP.get(order_status)
        if status is None:
            logger.warning(f"Unknown Fawry order status '{order_status}' for {merchant_ref}")
            return None

        return GatewayEvent(
            event_id=f"fawry:{fawry_ref}:{order_status}",
            provider=PaymentProvider.FAWRY,
            reference_number=str(fawry_ref) or None,
            transaction_id=merchant_ref or None,
            status=status,
            error_code=order_status if status == GatewayStatus.FAILED else None,
        )
