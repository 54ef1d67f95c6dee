"""
NATS JetStream Client for the settlement engine

Thin event bus over nats-py. Events are JSON documents published to
JetStream subjects named after the event type (``order.created``); each
subject prefix gets its own stream.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import nats
from nats.js import JetStreamContext

from core.config import InfraConfig

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that keeps Decimal amounts exact"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class EventType(Enum):
    """Event types published by the settlement engine"""

    # Order Events
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_CANCELED = "order.canceled"
    ORDER_NOTE_ADDED = "order.note_added"

    # Payment Events
    PAYMENT_INITIATED = "payment.initiated"
    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"

    # Risk Events
    RISK_PAYMENT_BLOCKED = "risk.payment_blocked"

    # Inventory Events
    INVENTORY_LOW_STOCK = "inventory.low_stock"
    INVENTORY_OUT_OF_STOCK = "inventory.out_of_stock"

    # Notification Events
    NOTIFICATION_REQUESTED = "notification.requested"


class ServiceSource(Enum):
    """Services that publish events"""
    ORDER_SERVICE = "order_service"
    PAYMENT_SERVICE = "payment_service"
    INVENTORY_SERVICE = "inventory_service"
    RISK_SERVICE = "risk_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """NATS JetStream event bus"""

    def __init__(self, service_name: str, config: Optional[InfraConfig] = None):
        self.service_name = service_name
        self.servers = (config or InfraConfig.from_env()).nats_servers

        self._nc: Optional[nats.NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._known_streams: set = set()

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=[self.servers], name=self.service_name)
            self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    @staticmethod
    def _stream_name(event_type: str) -> str:
        return f"{event_type.split('.')[0]}-stream"

    async def _ensure_stream(self, event_type: str) -> str:
        prefix = event_type.split('.')[0]
        name = self._stream_name(event_type)
        if name not in self._known_streams:
            try:
                await self._js.add_stream(name=name, subjects=[f"{prefix}.>"])
            except Exception as e:
                logger.debug(f"Stream creation note: {e}")
            self._known_streams.add(name)
        return name

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to JetStream.

        The subject is the event type; the stream is chosen by prefix
        (order.* -> order-stream, payment.* -> payment-stream, ...).
        """
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = await self._ensure_stream(event.type)
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            ack = await self._js.publish(event.type, data, stream=stream_name)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True
        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def close(self):
        """Drain and close the connection"""
        if self._nc:
            await self._nc.drain()
            self._nc = None
            self._js = None
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(service_name: str, config: Optional[InfraConfig] = None) -> NATSEventBus:
    """Get or create the process-wide event bus"""
    global _event_bus

    if _event_bus is None:
        bus = NATSEventBus(service_name=service_name, config=config)
        await bus.connect()
        _event_bus = bus

    return _event_bus


__all__ = [
    "DecimalEncoder",
    "EventType",
    "ServiceSource",
    "Event",
    "NATSEventBus",
    "get_event_bus",
]
