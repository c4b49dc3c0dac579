"""Notification data models."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from statusflow.events.models import DomainEventType


class NotificationChannelKind(str, Enum):
    """Delivery mechanisms a tenant can enable."""

    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"
    WEBHOOK = "webhook"


class StoredNotification(BaseModel):
    """An in-app notification row polled by the tenant's dashboard.

    Created by the in-app channel; only ``is_read`` ever changes afterwards.
    """

    id: str = Field(
        default_factory=lambda: f"ntf_{uuid.uuid4().hex[:12]}",
        description="Unique notification identifier",
    )
    tenant_id: str = Field(..., description="Owning tenant")
    type: DomainEventType = Field(..., description="Event type that produced it")
    title: str = Field(..., description="Short title")
    body: str = Field(default="", description="Body text")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload")
    is_read: bool = Field(default=False, description="Whether the tenant has read it")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the notification was stored",
    )


class TenantChannelSettings(BaseModel):
    """Which event types each channel delivers for one tenant.

    In-app receives everything unless narrowed. Email and push start with
    the owner-facing commerce events, SMS is opt-in, and webhook defaults
    mirror the dashboard's initial selection.
    """

    tenant_id: str
    in_app_events: set[DomainEventType] = Field(
        default_factory=lambda: set(DomainEventType),
    )
    email_events: set[DomainEventType] = Field(
        default_factory=lambda: {DomainEventType.NEW_ORDER, DomainEventType.LOW_STOCK},
    )
    push_events: set[DomainEventType] = Field(
        default_factory=lambda: {DomainEventType.NEW_ORDER, DomainEventType.NEW_MESSAGE},
    )
    sms_events: set[DomainEventType] = Field(default_factory=set)
    webhook_events: set[DomainEventType] = Field(
        default_factory=lambda: {
            DomainEventType.NEW_ORDER,
            DomainEventType.ORDER_STATUS,
            DomainEventType.NEW_MESSAGE,
        },
    )

    def events_for(self, channel: NotificationChannelKind) -> set[DomainEventType]:
        """Event types enabled for a channel."""
        return {
            NotificationChannelKind.IN_APP: self.in_app_events,
            NotificationChannelKind.EMAIL: self.email_events,
            NotificationChannelKind.PUSH: self.push_events,
            NotificationChannelKind.SMS: self.sms_events,
            NotificationChannelKind.WEBHOOK: self.webhook_events,
        }[channel]

    def is_enabled(self, channel: NotificationChannelKind, event_type: DomainEventType) -> bool:
        """Check whether a channel should deliver an event type."""
        return event_type in self.events_for(channel)

    def enabled_channels(self, event_type: DomainEventType) -> list[NotificationChannelKind]:
        """Channels that deliver an event type, in declaration order."""
        return [
            channel for channel in NotificationChannelKind
            if self.is_enabled(channel, event_type)
        ]
