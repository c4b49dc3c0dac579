"""Domain events and their human-readable rendering."""

from statusflow.events.builders import (
    build_appointment_event,
    build_delivery_event,
    build_escalation_event,
    build_new_order_event,
    build_order_status_event,
    build_status_changed_event,
    event_type_for_status_change,
)
from statusflow.events.content import render_notification
from statusflow.events.models import (
    REQUIRED_FIELDS,
    DomainEvent,
    DomainEventType,
    build_event,
)

__all__ = [
    # Models
    "REQUIRED_FIELDS",
    "DomainEvent",
    "DomainEventType",
    "build_event",
    # Builders
    "build_appointment_event",
    "build_delivery_event",
    "build_escalation_event",
    "build_new_order_event",
    "build_order_status_event",
    "build_status_changed_event",
    "event_type_for_status_change",
    # Content
    "render_notification",
]
