"""
Event System Module

Publish/subscribe dispatcher for ledger domain events. Collaborators outside
the engine (inventory, notifications) subscribe here instead of being called
directly.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock


class DomainEvent(Enum):
    """Domain events emitted by the payment ledger"""

    # Sale events
    SALE_ORIGINATED = "sale.originated"
    SALE_COMPLETED = "sale.completed"
    SALE_REACTIVATED = "sale.reactivated"
    SALE_CANCELLED = "sale.cancelled"
    SALE_DELETED = "sale.deleted"

    # Vehicle events
    VEHICLE_SOLD = "vehicle.sold"
    VEHICLE_RELEASED = "vehicle.released"

    # Payment events
    PAYMENT_RECORDED = "payment.recorded"
    PAYMENT_DELETED = "payment.deleted"
    PAYMENT_REINSTATED = "payment.reinstated"
    SCHEDULE_RESEQUENCED = "schedule.resequenced"


@dataclass
class EventPayload:
    """Payload for domain events"""
    event_type: DomainEvent
    entity_type: str
    entity_id: str
    data: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'data': self.data,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }


class EventDispatcher:
    """Central event dispatcher, publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[DomainEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []
        self._lock = RLock()
        self.logger = logging.getLogger("dealer_finance.events")

    def subscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: DomainEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers"""
        with self._lock:
            handlers = list(self._handlers.get(event.event_type, [])) + list(self._global_handlers)

        self.logger.debug(f"Publishing event {event.event_type.value} for {event.entity_type}:{event.entity_id}")
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # Log but don't break the main operation
                self.logger.error(
                    f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}"
                )

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[DomainEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__name__", repr(handler))


def create_sale_event(event_type: DomainEvent, sale) -> EventPayload:
    """Create a sale-related event"""
    return EventPayload(
        event_type=event_type,
        entity_type="sale",
        entity_id=sale.id,
        data={
            "vehicle_id": sale.vehicle_id,
            "client_id": sale.client_id,
            "status": sale.status.value,
            "sale_price": str(sale.sale_price.amount),
            "payment_amount": str(sale.payment_amount.amount),
            "currency": sale.currency.code,
            "ledger_version": sale.ledger_version
        }
    )


def create_payment_event(event_type: DomainEvent, payment) -> EventPayload:
    """Create a payment-related event"""
    return EventPayload(
        event_type=event_type,
        entity_type="payment",
        entity_id=payment.id,
        data={
            "sale_id": payment.sale_id,
            "amount": str(payment.amount.amount),
            "currency": payment.amount.currency.code,
            "due_date": payment.due_date.isoformat(),
            "status": payment.status.value,
            "paid_date": payment.paid_date.isoformat() if payment.paid_date else None
        }
    )


def create_vehicle_event(event_type: DomainEvent, vehicle_id: str, sale_id: str) -> EventPayload:
    """Create a vehicle status event"""
    return EventPayload(
        event_type=event_type,
        entity_type="vehicle",
        entity_id=vehicle_id,
        data={"sale_id": sale_id}
    )
