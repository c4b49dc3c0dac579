"""Domain event types and payload models.

A domain event records one completed write (an entity created or its status
changed). It carries only display-ready fields so that no channel has to go
back to the system of record to render a message.
"""

import json
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from statusflow.errors import EventValidationError

Scalar = str | int | float | bool | None


class DomainEventType(str, Enum):
    """Supported domain event types.

    Events are organized by category:
    - commerce: orders, customers, stock
    - conversation: chat messages and escalations
    - appointment_*: appointment lifecycle
    - delivery_*: delivery lifecycle
    - status_changed: generic status change for any entity kind
    """

    # Commerce events
    NEW_ORDER = "new_order"
    ORDER_STATUS = "order_status"
    NEW_CUSTOMER = "new_customer"
    LOW_STOCK = "low_stock"

    # Conversation events
    NEW_MESSAGE = "new_message"
    ESCALATION = "escalation"

    # Appointment events
    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_ASSIGNED = "appointment_assigned"

    # Delivery events
    DELIVERY_PICKED_UP = "delivery_picked_up"
    DELIVERY_COMPLETED = "delivery_completed"
    DELIVERY_FAILED = "delivery_failed"
    DELIVERY_DELAYED = "delivery_delayed"

    # Generic
    STATUS_CHANGED = "status_changed"


# Fields each event type must carry. Types not listed accept any fields.
REQUIRED_FIELDS: dict[DomainEventType, tuple[str, ...]] = {
    DomainEventType.NEW_ORDER: ("order_number", "total_amount"),
    DomainEventType.ORDER_STATUS: ("order_number", "previous_status", "new_status"),
    DomainEventType.NEW_MESSAGE: ("customer_name", "message"),
    DomainEventType.LOW_STOCK: ("product_name", "remaining"),
    DomainEventType.ESCALATION: ("level",),
    DomainEventType.APPOINTMENT_CREATED: ("customer_name", "scheduled_at"),
    DomainEventType.APPOINTMENT_CONFIRMED: ("customer_name", "scheduled_at"),
    DomainEventType.APPOINTMENT_CANCELLED: ("customer_name", "scheduled_at"),
    DomainEventType.APPOINTMENT_ASSIGNED: ("customer_name", "scheduled_at", "staff_name"),
    DomainEventType.DELIVERY_PICKED_UP: ("delivery_number",),
    DomainEventType.DELIVERY_COMPLETED: ("delivery_number",),
    DomainEventType.DELIVERY_FAILED: ("delivery_number",),
    DomainEventType.DELIVERY_DELAYED: ("delivery_number",),
    DomainEventType.STATUS_CHANGED: ("entity_kind", "previous_status", "new_status"),
}


class DomainEvent(BaseModel):
    """Immutable record of something that happened to a tenant's entity.

    This is also the exact body POSTed to a tenant's webhook endpoint.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}",
        description="Unique event identifier",
    )
    event_type: DomainEventType = Field(..., description="Event type")
    tenant_id: str = Field(..., description="Tenant that owns the entity", min_length=1)
    entity_id: str | None = Field(default=None, description="Entity the event is about")
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred",
    )
    payload: dict[str, Scalar] = Field(
        default_factory=dict,
        description="Display-safe event fields",
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary.

        Returns:
            Dictionary with ISO-formatted timestamp.
        """
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "tenant_id": self.tenant_id,
            "entity_id": self.entity_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
        }

    def serialize(self) -> str:
        """Serialize to the compact JSON text sent over the wire."""
        return json.dumps(self.to_json_dict(), separators=(",", ":"), ensure_ascii=False)


def missing_fields(event_type: DomainEventType, fields: dict[str, Any]) -> list[str]:
    """List documented required fields absent from ``fields``.

    Args:
        event_type: Event type.
        fields: Candidate payload.

    Returns:
        Names of missing fields (empty when complete or undocumented).
    """
    required = REQUIRED_FIELDS.get(event_type, ())
    return [name for name in required if fields.get(name) is None]


def build_event(
    event_type: DomainEventType | str,
    tenant_id: str,
    entity_id: str | None,
    fields: dict[str, Any] | None = None,
    *,
    event_id: str | None = None,
    occurred_at: datetime | None = None,
) -> DomainEvent:
    """Create a domain event, stamping ``occurred_at`` at call time.

    Args:
        event_type: Type of event.
        tenant_id: Tenant that owns the entity.
        entity_id: Entity the event is about.
        fields: Display-ready fields, already resolved by the caller.
        event_id: Optional custom event ID.
        occurred_at: Optional custom timestamp.

    Returns:
        DomainEvent ready for dispatch.

    Raises:
        EventValidationError: If a documented required field is missing.
    """
    event_type = DomainEventType(event_type)
    payload = dict(fields or {})

    missing = missing_fields(event_type, payload)
    if missing:
        raise EventValidationError(event_type.value, missing)

    extra: dict[str, Any] = {}
    if event_id:
        extra["id"] = event_id
    if occurred_at:
        extra["occurred_at"] = occurred_at

    return DomainEvent(
        event_type=event_type,
        tenant_id=tenant_id,
        entity_id=entity_id,
        payload=payload,
        **extra,
    )
