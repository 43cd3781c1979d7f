"""
Tests for the event dispatcher
"""

import pytest
from datetime import datetime
from unittest.mock import Mock

from dealer_finance.events import (
    DomainEvent, EventDispatcher, EventPayload, create_vehicle_event
)


class TestEventPayload:
    """Test EventPayload creation and serialization"""

    def test_event_payload_creation(self):
        event = EventPayload(
            event_type=DomainEvent.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id="payment-123",
            data={"amount": "547.59", "currency": "USD"}
        )

        assert event.event_type == DomainEvent.PAYMENT_RECORDED
        assert event.entity_id == "payment-123"
        assert isinstance(event.timestamp, datetime)
        assert len(event.event_id) > 0

    def test_to_dict(self):
        event = create_vehicle_event(DomainEvent.VEHICLE_SOLD, "vehicle-1", "sale-1")
        data = event.to_dict()

        assert data['event_type'] == "vehicle.sold"
        assert data['entity_type'] == "vehicle"
        assert data['data'] == {"sale_id": "sale-1"}


class TestEventDispatcher:
    """Test publish/subscribe"""

    def setup_method(self):
        self.dispatcher = EventDispatcher()
        self.event = EventPayload(
            event_type=DomainEvent.SALE_COMPLETED,
            entity_type="sale",
            entity_id="sale-1",
            data={}
        )

    def test_subscribe_and_publish(self):
        handler = Mock()
        other = Mock()
        self.dispatcher.subscribe(DomainEvent.SALE_COMPLETED, handler)
        self.dispatcher.subscribe(DomainEvent.SALE_CANCELLED, other)

        self.dispatcher.publish(self.event)

        handler.assert_called_once_with(self.event)
        other.assert_not_called()

    def test_global_handler_receives_everything(self):
        handler = Mock()
        self.dispatcher.subscribe_all(handler)

        self.dispatcher.publish(self.event)
        self.dispatcher.publish(create_vehicle_event(DomainEvent.VEHICLE_RELEASED, "v1", "sale-1"))

        assert handler.call_count == 2

    def test_unsubscribe(self):
        handler = Mock()
        self.dispatcher.subscribe(DomainEvent.SALE_COMPLETED, handler)
        self.dispatcher.unsubscribe(DomainEvent.SALE_COMPLETED, handler)

        self.dispatcher.publish(self.event)
        handler.assert_not_called()

        # Unsubscribing twice only logs
        self.dispatcher.unsubscribe(DomainEvent.SALE_COMPLETED, handler)

    def test_handler_errors_do_not_propagate(self):
        failing = Mock(side_effect=RuntimeError("handler failed"))
        healthy = Mock()
        self.dispatcher.subscribe(DomainEvent.SALE_COMPLETED, failing)
        self.dispatcher.subscribe(DomainEvent.SALE_COMPLETED, healthy)

        self.dispatcher.publish(self.event)

        failing.assert_called_once()
        healthy.assert_called_once()

    def test_handler_counts_and_clear(self):
        self.dispatcher.subscribe(DomainEvent.SALE_COMPLETED, Mock())
        self.dispatcher.subscribe(DomainEvent.PAYMENT_RECORDED, Mock())
        self.dispatcher.subscribe_all(Mock())

        assert self.dispatcher.get_handler_count(DomainEvent.SALE_COMPLETED) == 1
        assert self.dispatcher.get_handler_count() == 3

        self.dispatcher.clear()
        assert self.dispatcher.get_handler_count() == 0
