"""Tests for domain event models and builders."""

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from statusflow.errors import EventValidationError
from statusflow.events.builders import (
    build_appointment_event,
    build_delivery_event,
    build_new_order_event,
    build_order_status_event,
    build_status_changed_event,
    event_type_for_status_change,
)
from statusflow.events.models import (
    REQUIRED_FIELDS,
    DomainEvent,
    DomainEventType,
    build_event,
)
from statusflow.transitions.machines import EntityKind

# ============================================================================
# build_event Tests
# ============================================================================


class TestBuildEvent:
    """Tests for build_event."""

    def test_build_event_stamps_id_and_time(self):
        """Test that build_event assigns an evt_ id and a UTC timestamp."""
        before = datetime.now(UTC)
        event = build_event(
            DomainEventType.NEW_ORDER,
            "tenant-1",
            "ord-1",
            {"order_number": "1001", "total_amount": 250000},
        )

        assert event.id.startswith("evt_")
        assert event.occurred_at >= before
        assert event.occurred_at.tzinfo is not None
        assert event.payload["order_number"] == "1001"

    def test_build_event_accepts_string_type(self):
        """Test that event type strings are coerced."""
        event = build_event("low_stock", "tenant-1", None, {"product_name": "Tea", "remaining": 2})

        assert event.event_type is DomainEventType.LOW_STOCK

    def test_build_event_missing_required_field(self):
        """Test that missing documented fields raise EventValidationError."""
        with pytest.raises(EventValidationError) as exc_info:
            build_event(DomainEventType.ORDER_STATUS, "tenant-1", "ord-1", {"order_number": "1"})

        assert exc_info.value.missing == ["previous_status", "new_status"]
        assert exc_info.value.status_code == 422

    def test_build_event_none_counts_as_missing(self):
        """Test that a None value does not satisfy a required field."""
        with pytest.raises(EventValidationError):
            build_event(
                DomainEventType.NEW_MESSAGE,
                "tenant-1",
                "conv-1",
                {"customer_name": None, "message": "hi"},
            )

    def test_build_event_undocumented_type_accepts_anything(self):
        """Test that types without required fields accept any payload."""
        assert DomainEventType.NEW_CUSTOMER not in REQUIRED_FIELDS

        event = build_event(DomainEventType.NEW_CUSTOMER, "tenant-1", "cus-1", {})

        assert event.payload == {}

    def test_build_event_custom_id_and_time(self):
        """Test that an explicit id and timestamp are kept."""
        occurred = datetime(2024, 1, 1, tzinfo=UTC)
        event = build_event(
            DomainEventType.NEW_CUSTOMER,
            "tenant-1",
            None,
            event_id="evt_fixed",
            occurred_at=occurred,
        )

        assert event.id == "evt_fixed"
        assert event.occurred_at == occurred


# ============================================================================
# DomainEvent Tests
# ============================================================================


class TestDomainEvent:
    """Tests for DomainEvent."""

    def test_event_is_frozen(self):
        """Test that events cannot be modified."""
        event = build_event(DomainEventType.NEW_CUSTOMER, "tenant-1", None)

        with pytest.raises(ValidationError):
            event.tenant_id = "tenant-2"

    def test_empty_tenant_rejected(self):
        """Test that an empty tenant id is rejected."""
        with pytest.raises(ValidationError):
            DomainEvent(event_type=DomainEventType.NEW_CUSTOMER, tenant_id="")

    def test_payload_rejects_nested_values(self):
        """Test that payload values must be scalars."""
        with pytest.raises(ValidationError):
            DomainEvent(
                event_type=DomainEventType.NEW_CUSTOMER,
                tenant_id="tenant-1",
                payload={"nested": {"a": 1}},
            )

    def test_serialize_is_compact_json(self):
        """Test the wire format is compact JSON with ISO timestamps."""
        event = build_event(
            DomainEventType.NEW_MESSAGE,
            "tenant-1",
            "conv-1",
            {"customer_name": "Ana", "message": "Olá"},
            event_id="evt_1",
            occurred_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        )

        body = event.serialize()

        assert ", " not in body
        assert "Olá" in body
        data = json.loads(body)
        assert data["event_type"] == "new_message"
        assert data["occurred_at"] == "2024-01-01T12:00:00+00:00"

    def test_json_round_trip_keeps_identity(self):
        """Test that a serialized event parses back to an equal event."""
        event = build_status_changed_event("tenant-1", "project", "prj-1", "active", "done")

        restored = DomainEvent.model_validate_json(event.serialize())

        assert restored == event


# ============================================================================
# Builder Tests
# ============================================================================


class TestBuilders:
    """Tests for convenience builders."""

    def test_status_changed_event(self):
        """Test the generic status_changed builder."""
        event = build_status_changed_event(
            "tenant-1", EntityKind.RESERVATION, "res-1", "confirmed", "checked_in",
            guest_name="Kim",
        )

        assert event.event_type is DomainEventType.STATUS_CHANGED
        assert event.payload["entity_kind"] == "reservation"
        assert event.payload["guest_name"] == "Kim"

    def test_new_order_event(self):
        """Test the new_order builder."""
        event = build_new_order_event("tenant-1", "ord-1", "1001", 99.5, payment_method="cash")

        assert event.entity_id == "ord-1"
        assert event.payload["total_amount"] == 99.5
        assert event.payload["payment_method"] == "cash"

    def test_order_status_event(self):
        """Test the order_status builder."""
        event = build_order_status_event("tenant-1", "ord-1", "1001", "pending", "confirmed")

        assert event.event_type is DomainEventType.ORDER_STATUS
        assert event.payload["new_status"] == "confirmed"

    def test_appointment_event_formats_datetime(self):
        """Test appointment builder converts datetimes to ISO strings."""
        event = build_appointment_event(
            DomainEventType.APPOINTMENT_CREATED,
            "tenant-1",
            "apt-1",
            "Kim",
            datetime(2024, 3, 5, 14, 30, tzinfo=UTC),
            service_name="Haircut",
        )

        assert event.payload["scheduled_at"] == "2024-03-05T14:30:00+00:00"

    def test_delivery_event_non_notifying_status(self):
        """Test in_transit does not produce a delivery event."""
        assert build_delivery_event("tenant-1", "dlv-1", "D-1", "in_transit") is None

    def test_delivery_event_failed(self):
        """Test a failed delivery produces delivery_failed."""
        event = build_delivery_event(
            "tenant-1", "dlv-1", "D-1", "failed", failure_reason="Nobody home"
        )

        assert event is not None
        assert event.event_type is DomainEventType.DELIVERY_FAILED
        assert event.payload["failure_reason"] == "Nobody home"

    @pytest.mark.parametrize(
        ("kind", "status", "expected"),
        [
            ("order", "confirmed", DomainEventType.ORDER_STATUS),
            ("delivery", "picked_up", DomainEventType.DELIVERY_PICKED_UP),
            ("delivery", "assigned", DomainEventType.STATUS_CHANGED),
            ("appointment", "cancelled", DomainEventType.APPOINTMENT_CANCELLED),
            ("appointment", "completed", DomainEventType.STATUS_CHANGED),
            (EntityKind.PROJECT, "done", DomainEventType.STATUS_CHANGED),
        ],
    )
    def test_event_type_for_status_change(self, kind, status, expected):
        """Test the most specific event type is chosen."""
        assert event_type_for_status_change(kind, status) is expected
