"""Notification API endpoints.

In-app notifications are polled by the tenant dashboard; listing is unread
first, then newest first. Channel settings decide which events reach each
channel.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from statusflow.api.dependencies import Services, get_services, get_tenant_id
from statusflow.events.models import DomainEventType
from statusflow.notifications.models import StoredNotification, TenantChannelSettings

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ============================================================================
# Request Models
# ============================================================================


class MarkReadRequest(BaseModel):
    """Request to mark notifications as read."""

    ids: list[str] = Field(..., description="Notification IDs to mark", min_length=1)


class ChannelSettingsUpdateRequest(BaseModel):
    """Request to change which events each channel delivers.

    Omitted channels keep their current selection.
    """

    in_app_events: set[DomainEventType] | None = Field(default=None, description="In-app events")
    email_events: set[DomainEventType] | None = Field(default=None, description="Email events")
    push_events: set[DomainEventType] | None = Field(default=None, description="Push events")
    sms_events: set[DomainEventType] | None = Field(default=None, description="SMS events")
    webhook_events: set[DomainEventType] | None = Field(
        default=None,
        description="Events sent to the webhook subscription",
    )


# ============================================================================
# Response Models
# ============================================================================


class NotificationResponse(BaseModel):
    """Notification details response."""

    id: str
    type: DomainEventType
    title: str
    body: str
    data: dict[str, Any]
    is_read: bool
    created_at: str

    @classmethod
    def from_notification(cls, notification: StoredNotification) -> "NotificationResponse":
        """Create response from StoredNotification model."""
        return cls(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            body=notification.body,
            data=notification.data,
            is_read=notification.is_read,
            created_at=notification.created_at.isoformat(),
        )


class ChannelSettingsResponse(BaseModel):
    """Per-channel event selection response."""

    in_app_events: list[DomainEventType]
    email_events: list[DomainEventType]
    push_events: list[DomainEventType]
    sms_events: list[DomainEventType]
    webhook_events: list[DomainEventType]

    @classmethod
    def from_settings(cls, settings: TenantChannelSettings) -> "ChannelSettingsResponse":
        """Create response from TenantChannelSettings model."""
        return cls(
            in_app_events=sorted(settings.in_app_events),
            email_events=sorted(settings.email_events),
            push_events=sorted(settings.push_events),
            sms_events=sorted(settings.sms_events),
            webhook_events=sorted(settings.webhook_events),
        )


class UnreadCountResponse(BaseModel):
    unread: int


class MarkReadResponse(BaseModel):
    updated: int = Field(..., description="Rows that changed from unread to read")


# ============================================================================
# Endpoints
# ============================================================================


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> list[NotificationResponse]:
    """List the tenant's notifications, unread first then newest first."""
    notifications = await services.notification_store.list_for_tenant(
        tenant_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return [NotificationResponse.from_notification(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> UnreadCountResponse:
    """Count the tenant's unread notifications."""
    count = await services.notification_store.unread_count(tenant_id)
    return UnreadCountResponse(unread=count)


@router.post("/read", response_model=MarkReadResponse)
async def mark_read(
    request: MarkReadRequest,
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> MarkReadResponse:
    """Mark specific notifications as read. Idempotent."""
    updated = await services.notification_store.mark_read(tenant_id, request.ids)
    return MarkReadResponse(updated=updated)


@router.post("/read-all", response_model=MarkReadResponse)
async def mark_all_read(
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> MarkReadResponse:
    """Mark every unread notification as read. Idempotent."""
    updated = await services.notification_store.mark_all_read(tenant_id)
    logger.info("notifications_read_all", tenant_id=tenant_id, updated=updated)
    return MarkReadResponse(updated=updated)


@router.get("/settings", response_model=ChannelSettingsResponse)
async def get_channel_settings(
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> ChannelSettingsResponse:
    """Get which events each channel delivers for the tenant."""
    settings = await services.channel_settings.get_settings(tenant_id)
    return ChannelSettingsResponse.from_settings(settings)


@router.put("/settings", response_model=ChannelSettingsResponse)
async def put_channel_settings(
    request: ChannelSettingsUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> ChannelSettingsResponse:
    """Change which events each channel delivers for the tenant."""
    current = await services.channel_settings.get_settings(tenant_id)
    updated = current.model_copy(update=request.model_dump(exclude_none=True))
    saved = await services.channel_settings.save_settings(updated)
    logger.info(
        "channel_settings_changed",
        tenant_id=tenant_id,
        channels=sorted(request.model_dump(exclude_none=True)),
    )
    return ChannelSettingsResponse.from_settings(saved)
