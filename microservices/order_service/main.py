"""
Order Settlement Microservice

Responsibilities:
- Order placement (pricing, risk gate, inventory reservation)
- Order status lifecycle, tracking, notes and rating
- Payment initiation, verification, manual settlement and refunds
- Gateway webhooks
- Seller inventory management
"""

from fastapi import FastAPI, HTTPException, Depends, Request, status, Query, Path, Body
from fastapi.responses import JSONResponse
import uvicorn
from contextlib import asynccontextmanager
from typing import Optional
from datetime import datetime, timezone

from core.auth_dependencies import require_identity
from core.config import get_settings
from core.errors import (
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RiskBlockedError,
    SettlementError,
    ValidationError,
)
from core.identity import Identity
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import close_postgres_pools, get_postgres_pool, health_check as postgres_health_check
from microservices.inventory_service.models import (
    AdjustmentContext,
    InventoryItemCreateRequest,
    InventoryItemUpdateRequest,
    StockAdjustRequest,
)
from microservices.payment_service.models import (
    ManualPaymentRequest,
    PaymentProvider,
    PaymentRequest,
    RefundRequest,
)
from microservices.risk_service.models import RequestContext

from .factory import SettlementServices, create_settlement_services
from .models import (
    OrderCreateRequest,
    OrderListResponse,
    OrderNoteRequest,
    OrderResponse,
    OrderServiceStatus,
    OrderStatus,
    OrderStatusUpdateRequest,
    OrderView,
    RatingRequest,
    TrackingUpdateRequest,
)

# Initialize configuration
settings = get_settings()
config = settings.services

# Setup loggers (use actual service name)
logger = setup_service_logger(config.service_name, settings.logging)

ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (RiskBlockedError, status.HTTP_403_FORBIDDEN),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
)

PAYMENT_PROVIDERS = {p.value for p in PaymentProvider}


class SettlementMicroservice:
    """Settlement microservice core class"""

    def __init__(self):
        self.services: Optional[SettlementServices] = None
        self.event_bus = None
        self.pool = None

    async def initialize(self, event_bus=None):
        """Initialize the microservice"""
        try:
            self.event_bus = event_bus
            self.pool = await get_postgres_pool(config.service_name, settings.infrastructure)
            self.services = create_settlement_services(self.pool, settings, event_bus)
            logger.info("Settlement microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize settlement microservice: {e}")
            raise

    async def shutdown(self):
        """Shutdown the microservice"""
        try:
            if self.services:
                await self.services.close()
            if self.event_bus:
                await self.event_bus.close()
                logger.info("Event bus closed")
            await close_postgres_pools()
            logger.info("Settlement microservice shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


# Global microservice instance
settlement_microservice = SettlementMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    event_bus = None
    if settings.infrastructure.nats_enabled:
        try:
            event_bus = await get_event_bus(config.service_name, settings.infrastructure)
            logger.info("Event bus initialized successfully")
        except Exception as e:
            logger.warning(f"Failed to initialize event bus: {e}. Continuing without event publishing.")
            event_bus = None

    await settlement_microservice.initialize(event_bus=event_bus)

    yield

    await settlement_microservice.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Order Settlement Service",
    description="Pricing, inventory reservation, payment ledger and order lifecycle",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break

    message = exc.message
    if isinstance(exc, ExternalServiceError) and exc.provider in PAYMENT_PROVIDERS:
        message = "Payment provider is unavailable, please retry"
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error_code": exc.code, "message": message, "details": exc.details},
    )


# Dependency injection
def get_settlement_services() -> SettlementServices:
    """Get settlement services"""
    if not settlement_microservice.services:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Settlement service not initialized"
        )
    return settlement_microservice.services


def get_request_context(request: Request) -> RequestContext:
    """Client context forwarded by the gateway, used for risk scoring"""
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (
        request.client.host if request.client else None
    )
    return RequestContext(
        ip_address=ip_address,
        ip_country=request.headers.get("x-ip-country"),
        device_id=request.headers.get("x-device-id"),
        session_id=request.headers.get("x-session-id"),
        user_agent=request.headers.get("user-agent"),
    )


# Health check endpoints

@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "port": config.service_port,
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health/detailed", response_model=OrderServiceStatus)
async def detailed_health_check():
    """Detailed health check with database and event bus connectivity"""
    database_connected = False
    if settlement_microservice.pool is not None:
        database_connected = await postgres_health_check(settlement_microservice.pool)
    event_bus = settlement_microservice.event_bus
    return OrderServiceStatus(
        database_connected=database_connected,
        event_bus_connected=bool(event_bus and event_bus.is_connected),
        timestamp=datetime.now(timezone.utc),
    )


# Order endpoints

@app.post("/api/v1/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    identity: Identity = Depends(require_identity),
    context: RequestContext = Depends(get_request_context),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Place an order and start its payment"""
    placement = await services.orders.create_order(identity, request, context)
    if placement.payment_error_code:
        return OrderResponse(
            success=True,
            order=OrderView.from_order(placement.order, identity),
            message=placement.payment_error_message,
            error_code=placement.payment_error_code,
        )
    return OrderResponse(
        success=True,
        order=OrderView.from_order(placement.order, identity),
        payment=placement.payment,
        message="Order created successfully",
    )


@app.get("/api/v1/orders", response_model=OrderListResponse)
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Filter by status"),
    as_seller: Optional[bool] = Query(None, description="Seller view (defaults by role)"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """List the caller's orders, newest first"""
    orders, total = await services.orders.list_orders(identity, status_filter, as_seller, limit, offset)
    return OrderListResponse(
        orders=[OrderView.from_order(order, identity) for order in orders],
        total_count=total,
        limit=limit,
        offset=offset,
    )


@app.get("/api/v1/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str = Path(..., description="Order ID"),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Get order details"""
    order = await services.orders.get_order(identity, order_id)
    return OrderResponse(success=True, order=OrderView.from_order(order, identity), message="Order retrieved")


@app.put("/api/v1/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str = Path(..., description="Order ID"),
    request: OrderStatusUpdateRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Move an order to a new status"""
    order = await services.orders.update_status(identity, order_id, request.status, request.note)
    return OrderResponse(
        success=True,
        order=OrderView.from_order(order, identity),
        message=f"Order status updated to {order.status.value}",
    )


@app.put("/api/v1/orders/{order_id}/tracking", response_model=OrderResponse)
async def update_tracking(
    order_id: str = Path(..., description="Order ID"),
    request: TrackingUpdateRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Set carrier tracking (seller)"""
    order = await services.orders.add_tracking(identity, order_id, request)
    return OrderResponse(success=True, order=OrderView.from_order(order, identity), message="Tracking updated")


@app.post("/api/v1/orders/{order_id}/rating", response_model=OrderResponse)
async def rate_order(
    order_id: str = Path(..., description="Order ID"),
    request: RatingRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Rate a delivered or completed order (buyer)"""
    order = await services.orders.rate_order(identity, order_id, request)
    return OrderResponse(success=True, order=OrderView.from_order(order, identity), message="Rating saved")


@app.post("/api/v1/orders/{order_id}/notes", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def add_order_note(
    order_id: str = Path(..., description="Order ID"),
    request: OrderNoteRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Add a note to an order (buyer, seller or admin)"""
    order, _ = await services.orders.add_note(identity, order_id, request)
    return OrderResponse(success=True, order=OrderView.from_order(order, identity), message="Note added successfully")


@app.get("/api/v1/orders/{order_id}/risk-reviews")
async def get_risk_reviews(
    order_id: str = Path(..., description="Order ID"),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Risk audit trail (owning seller or admin)"""
    reviews = await services.orders.get_risk_reviews(identity, order_id)
    return {
        "order_id": order_id,
        "reviews": [review.model_dump(mode="json") for review in reviews],
        "count": len(reviews),
    }


# Payment endpoints

@app.post("/api/v1/payments", status_code=status.HTTP_201_CREATED)
async def initiate_payment(
    request: PaymentRequest,
    identity: Identity = Depends(require_identity),
    context: RequestContext = Depends(get_request_context),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Start (or return the existing) payment for an order"""
    if request.provider_payload.provider != request.payment_method.value:
        raise ValidationError("provider_payload does not match payment_method")
    ref = await services.payments.initiate(
        identity, request.order_id, request.provider_payload, request.billing_address, context
    )
    return {"success": True, "payment": ref.model_dump(mode="json")}


@app.post("/api/v1/payments/{transaction_id}/verify")
async def verify_payment(
    transaction_id: str = Path(..., description="Transaction ID"),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Reconcile a pending transaction with its gateway"""
    ref = await services.payments.verify(identity, transaction_id)
    return {"success": True, "payment": ref.model_dump(mode="json")}


@app.post("/api/v1/payments/{transaction_id}/mark-paid")
async def mark_payment_paid(
    transaction_id: str = Path(..., description="Transaction ID"),
    request: ManualPaymentRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Confirm a manual payment (seller)"""
    ref = await services.payments.mark_manually_paid(identity, transaction_id, request.notes)
    return {"success": True, "payment": ref.model_dump(mode="json")}


@app.post("/api/v1/orders/{order_id}/refunds")
async def refund_order(
    order_id: str = Path(..., description="Order ID"),
    request: RefundRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Refund an order; omit amount for a full refund"""
    if request.amount is None:
        result = await services.payments.refund_full(identity, order_id, request.reason)
    else:
        result = await services.payments.refund_partial(identity, order_id, request.amount, request.reason)
    return {"success": True, "refund": result.model_dump(mode="json")}


@app.get("/api/v1/orders/{order_id}/refunds")
async def list_refunds(
    order_id: str = Path(..., description="Order ID"),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Refund history"""
    refunds = await services.payments.list_refunds(identity, order_id)
    return {
        "order_id": order_id,
        "refunds": [entry.model_dump(mode="json") for entry in refunds],
        "count": len(refunds),
    }


@app.post("/api/v1/payments/webhooks/{provider}")
async def payment_webhook(
    request: Request,
    provider: PaymentProvider = Path(..., description="Payment provider"),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Gateway callback"""
    payload = await request.body()
    result = await services.payments.handle_webhook(provider, payload, request.headers)
    return result.model_dump(mode="json")


# Inventory endpoints

@app.post("/api/v1/inventory", status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    request: InventoryItemCreateRequest,
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Create an inventory item (seller)"""
    item = await services.inventory.create_item(identity, request)
    return {"success": True, "item": item.model_dump(mode="json")}


@app.get("/api/v1/inventory")
async def list_inventory_items(
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """List the seller's inventory"""
    items = await services.inventory.list_items(identity)
    return {"items": [item.model_dump(mode="json") for item in items], "count": len(items)}


@app.get("/api/v1/inventory/alerts/low-stock")
async def low_stock_items(
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Items at or below their reorder point"""
    items = await services.inventory.low_stock_items(identity)
    return {"items": [item.model_dump(mode="json") for item in items], "count": len(items)}


@app.get("/api/v1/inventory/{item_id}")
async def get_inventory_item(
    item_id: str = Path(..., description="Inventory item ID"),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    item = await services.inventory.get_owned_item(identity, item_id)
    return {"success": True, "item": item.model_dump(mode="json")}


@app.patch("/api/v1/inventory/{item_id}")
async def update_inventory_item(
    item_id: str = Path(..., description="Inventory item ID"),
    request: InventoryItemUpdateRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Update non-stock fields"""
    item = await services.inventory.update_item(identity, item_id, request)
    return {"success": True, "item": item.model_dump(mode="json")}


@app.post("/api/v1/inventory/{item_id}/adjust")
async def adjust_inventory(
    item_id: str = Path(..., description="Inventory item ID"),
    request: StockAdjustRequest = Body(...),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Manual stock adjustment"""
    result = await services.inventory.adjust(
        item_id,
        request.quantity,
        request.action,
        AdjustmentContext(identity=identity, note=request.note),
    )
    return {
        "success": True,
        "item": result.item.model_dump(mode="json"),
        "signals": [signal.model_dump(mode="json") for signal in result.signals],
    }


@app.delete("/api/v1/inventory/{item_id}")
async def delete_inventory_item(
    item_id: str = Path(..., description="Inventory item ID"),
    identity: Identity = Depends(require_identity),
    services: SettlementServices = Depends(get_settlement_services)
):
    """Delete an item not used by any active listing"""
    deleted = await services.inventory.delete_item(identity, item_id)
    return {"success": deleted, "message": "Inventory item deleted"}


if __name__ == "__main__":
    uvicorn.run(
        "microservices.order_service.main:app",
        host=config.service_host,
        port=config.service_port,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower()
    )
