"""Human-readable notification content for domain events.

Shared by every channel that shows text (in-app, email, push, SMS) so a
tenant sees the same title and body wherever the notification lands.
"""

from datetime import datetime

from statusflow.events.models import DomainEvent, DomainEventType

MESSAGE_PREVIEW_LENGTH = 100

STATUS_LABELS: dict[str, str] = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "processing": "Processing",
    "shipped": "Shipped",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
    "in_progress": "In progress",
    "completed": "Completed",
    "no_show": "No-show",
}

ESCALATION_LABELS: dict[str, str] = {
    "low": "Low",
    "medium": "Medium",
    "high": "Urgent",
    "critical": "Critical",
}

DEFAULT_EVENT_ROUTE = "/dashboard"

# Dashboard page a notification links to.
EVENT_ROUTES: dict[DomainEventType, str] = {
    DomainEventType.NEW_ORDER: "/dashboard/orders",
    DomainEventType.ORDER_STATUS: "/dashboard/orders",
    DomainEventType.NEW_MESSAGE: "/dashboard/chat",
    DomainEventType.ESCALATION: "/dashboard/chat",
    DomainEventType.NEW_CUSTOMER: "/dashboard/customers",
    DomainEventType.LOW_STOCK: "/dashboard/products",
    DomainEventType.APPOINTMENT_CREATED: "/dashboard/appointments",
    DomainEventType.APPOINTMENT_CONFIRMED: "/dashboard/appointments",
    DomainEventType.APPOINTMENT_CANCELLED: "/dashboard/appointments",
    DomainEventType.APPOINTMENT_ASSIGNED: "/dashboard/appointments",
    DomainEventType.DELIVERY_PICKED_UP: "/dashboard/deliveries",
    DomainEventType.DELIVERY_COMPLETED: "/dashboard/deliveries",
    DomainEventType.DELIVERY_FAILED: "/dashboard/deliveries",
    DomainEventType.DELIVERY_DELAYED: "/dashboard/deliveries",
}


def status_label(status: object) -> str:
    """Display label for a status value."""
    text = "" if status is None else str(status)
    return STATUS_LABELS.get(text, text.replace("_", " "))


def _format_amount(amount: object) -> str:
    if isinstance(amount, (int, float)) and not isinstance(amount, bool):
        return f"{amount:,.0f}"
    return ""


def _format_schedule(value: object) -> str:
    if not isinstance(value, str):
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%m/%d %H:%M")
    except ValueError:
        return value


def _preview(text: object) -> str:
    if not isinstance(text, str):
        return ""
    if len(text) > MESSAGE_PREVIEW_LENGTH:
        return text[:MESSAGE_PREVIEW_LENGTH] + "..."
    return text


APPOINTMENT_TITLES: dict[DomainEventType, str] = {
    DomainEventType.APPOINTMENT_CREATED: "New appointment",
    DomainEventType.APPOINTMENT_CONFIRMED: "Appointment confirmed",
    DomainEventType.APPOINTMENT_CANCELLED: "Appointment cancelled",
    DomainEventType.APPOINTMENT_ASSIGNED: "Appointment assigned",
}

DELIVERY_TITLES: dict[DomainEventType, str] = {
    DomainEventType.DELIVERY_PICKED_UP: "Delivery picked up",
    DomainEventType.DELIVERY_COMPLETED: "Delivery completed",
    DomainEventType.DELIVERY_FAILED: "Delivery failed",
    DomainEventType.DELIVERY_DELAYED: "Delivery delayed",
}


def render_notification(event: DomainEvent) -> tuple[str, str]:
    """Build a title and body for an event.

    Args:
        event: Domain event to describe.

    Returns:
        Tuple of (title, body).
    """
    data = event.payload
    event_type = event.event_type

    if event_type == DomainEventType.NEW_ORDER:
        return (
            f"New order #{data.get('order_number') or ''}",
            f"Total: {_format_amount(data.get('total_amount'))}",
        )

    if event_type == DomainEventType.ORDER_STATUS:
        return (
            f"Order #{data.get('order_number') or ''} status changed",
            f"{status_label(data.get('previous_status'))} → {status_label(data.get('new_status'))}",
        )

    if event_type == DomainEventType.NEW_MESSAGE:
        return (
            f"New message: {data.get('customer_name') or 'Customer'}",
            _preview(data.get("message")),
        )

    if event_type == DomainEventType.NEW_CUSTOMER:
        return (
            "New customer",
            f"{data.get('name') or 'Unnamed'} · {data.get('channel') or 'web'}",
        )

    if event_type == DomainEventType.LOW_STOCK:
        return (
            f"Low stock: {data.get('product_name') or ''}",
            f"Remaining: {data.get('remaining') or 0} units",
        )

    if event_type == DomainEventType.ESCALATION:
        level = str(data.get("level") or "")
        return (
            "Conversation escalated",
            f"Level: {ESCALATION_LABELS.get(level, level)}. Signals: {data.get('signals') or ''}",
        )

    if event_type in APPOINTMENT_TITLES:
        parts = [
            str(data.get("customer_name") or ""),
            str(data.get("service_name") or ""),
            str(data.get("staff_name") or ""),
            _format_schedule(data.get("scheduled_at")),
        ]
        return APPOINTMENT_TITLES[event_type], " · ".join(p for p in parts if p)

    if event_type in DELIVERY_TITLES:
        body = f"#{data.get('delivery_number') or ''}"
        if data.get("driver_name"):
            body += f" · {data['driver_name']}"
        if data.get("failure_reason"):
            body += f" · {data['failure_reason']}"
        return DELIVERY_TITLES[event_type], body

    kind = str(data.get("entity_kind") or "record").replace("_", " ")
    return (
        f"{kind.capitalize()} status changed",
        f"{status_label(data.get('previous_status'))} → {status_label(data.get('new_status'))}",
    )
