"""Event builders for common domain events.

Each builder takes already-resolved display values (a staff member's name,
not their id) and returns a DomainEvent.
"""

from datetime import datetime

from statusflow.events.models import DomainEvent, DomainEventType, build_event
from statusflow.transitions.machines import EntityKind, kind_key

# Delivery provider statuses that produce a notification.
DELIVERY_STATUS_EVENTS: dict[str, DomainEventType] = {
    "picked_up": DomainEventType.DELIVERY_PICKED_UP,
    "delivered": DomainEventType.DELIVERY_COMPLETED,
    "failed": DomainEventType.DELIVERY_FAILED,
    "delayed": DomainEventType.DELIVERY_DELAYED,
}

APPOINTMENT_STATUS_EVENTS: dict[str, DomainEventType] = {
    "confirmed": DomainEventType.APPOINTMENT_CONFIRMED,
    "cancelled": DomainEventType.APPOINTMENT_CANCELLED,
}


def _iso(value: datetime | str) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


def build_status_changed_event(
    tenant_id: str,
    entity_kind: EntityKind | str,
    entity_id: str,
    previous_status: str,
    new_status: str,
    **fields: str | int | float | bool | None,
) -> DomainEvent:
    """Build a generic status_changed event.

    Args:
        tenant_id: Tenant that owns the entity.
        entity_kind: Kind of entity.
        entity_id: Entity identifier.
        previous_status: Status before the change.
        new_status: Status after the change.
        **fields: Extra display fields (e.g. customer_name).

    Returns:
        Domain event for the status change.
    """
    return build_event(
        DomainEventType.STATUS_CHANGED,
        tenant_id,
        entity_id,
        {
            **fields,
            "entity_kind": kind_key(entity_kind),
            "previous_status": previous_status,
            "new_status": new_status,
        },
    )


def build_new_order_event(
    tenant_id: str,
    order_id: str,
    order_number: str,
    total_amount: float,
    *,
    payment_method: str | None = None,
    customer_name: str | None = None,
) -> DomainEvent:
    """Build a new_order event."""
    return build_event(
        DomainEventType.NEW_ORDER,
        tenant_id,
        order_id,
        {
            "order_number": order_number,
            "total_amount": total_amount,
            "payment_method": payment_method,
            "customer_name": customer_name,
        },
    )


def build_order_status_event(
    tenant_id: str,
    order_id: str,
    order_number: str,
    previous_status: str,
    new_status: str,
) -> DomainEvent:
    """Build an order_status event.

    Args:
        tenant_id: Tenant that owns the order.
        order_id: Order identifier.
        order_number: Human-facing order number.
        previous_status: Status before the change.
        new_status: Status after the change.

    Returns:
        Domain event for the order status change.
    """
    return build_event(
        DomainEventType.ORDER_STATUS,
        tenant_id,
        order_id,
        {
            "order_number": order_number,
            "previous_status": previous_status,
            "new_status": new_status,
        },
    )


def build_appointment_event(
    event_type: DomainEventType,
    tenant_id: str,
    appointment_id: str,
    customer_name: str,
    scheduled_at: datetime | str,
    *,
    service_name: str | None = None,
    staff_name: str | None = None,
    resource_name: str | None = None,
) -> DomainEvent:
    """Build an appointment lifecycle event.

    Args:
        event_type: One of the APPOINTMENT_* event types.
        tenant_id: Tenant that owns the appointment.
        appointment_id: Appointment identifier.
        customer_name: Customer display name.
        scheduled_at: Appointment start.
        service_name: Booked service name.
        staff_name: Assigned staff member name.
        resource_name: Booked room/resource name.

    Returns:
        Domain event for the appointment.
    """
    return build_event(
        event_type,
        tenant_id,
        appointment_id,
        {
            "customer_name": customer_name,
            "scheduled_at": _iso(scheduled_at),
            "service_name": service_name,
            "staff_name": staff_name,
            "resource_name": resource_name,
        },
    )


def build_delivery_event(
    tenant_id: str,
    delivery_id: str,
    delivery_number: str,
    status: str,
    *,
    driver_name: str = "",
    order_number: str = "",
    failure_reason: str = "",
    notes: str = "",
) -> DomainEvent | None:
    """Build a delivery event for a provider status update.

    Args:
        tenant_id: Tenant that owns the delivery.
        delivery_id: Delivery identifier.
        delivery_number: Human-facing delivery number.
        status: Provider status (picked_up, in_transit, delivered, failed, delayed).
        driver_name: Driver display name.
        order_number: Related order number.
        failure_reason: Reason reported on failure.
        notes: Free-text notes from the provider.

    Returns:
        Domain event, or None if the status does not notify (e.g. in_transit).
    """
    event_type = DELIVERY_STATUS_EVENTS.get(status)
    if event_type is None:
        return None

    return build_event(
        event_type,
        tenant_id,
        delivery_id,
        {
            "delivery_number": delivery_number,
            "driver_name": driver_name,
            "order_number": order_number,
            "failure_reason": failure_reason,
            "notes": notes,
        },
    )


def build_escalation_event(
    tenant_id: str,
    conversation_id: str,
    level: str,
    *,
    signals: str = "",
    customer_name: str | None = None,
) -> DomainEvent:
    """Build an escalation event for a conversation handed to a human."""
    return build_event(
        DomainEventType.ESCALATION,
        tenant_id,
        conversation_id,
        {"level": level, "signals": signals, "customer_name": customer_name},
    )


def event_type_for_status_change(
    entity_kind: EntityKind | str,
    new_status: str,
) -> DomainEventType:
    """Pick the most specific event type for a status change.

    Args:
        entity_kind: Kind of entity that changed.
        new_status: Status it moved to.

    Returns:
        A kind-specific event type where one exists, else STATUS_CHANGED.
    """
    kind = kind_key(entity_kind)
    if kind == EntityKind.DELIVERY.value and new_status in DELIVERY_STATUS_EVENTS:
        return DELIVERY_STATUS_EVENTS[new_status]
    if kind == EntityKind.APPOINTMENT.value and new_status in APPOINTMENT_STATUS_EVENTS:
        return APPOINTMENT_STATUS_EVENTS[new_status]
    if kind == EntityKind.ORDER.value:
        return DomainEventType.ORDER_STATUS
    return DomainEventType.STATUS_CHANGED
