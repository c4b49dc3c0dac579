"""Notification fan-out across in-app, email, push, SMS and webhook channels.

This module provides:
- NotificationDispatcher: Best-effort, concurrent channel delivery
- Channels: InAppChannel, EmailChannel, PushChannel, SmsChannel, WebhookChannel
- NotificationStore: SQLite storage for in-app notifications
- ChannelSettingsProvider: Per-tenant channel selection
"""

from statusflow.notifications.channels import (
    EmailChannel,
    EmailSender,
    InAppChannel,
    NotificationChannel,
    PushChannel,
    PushSender,
    SmsChannel,
    SmsSender,
    WebhookChannel,
)
from statusflow.notifications.dispatcher import (
    NotificationDispatcher,
    get_notification_dispatcher,
    set_notification_dispatcher,
)
from statusflow.notifications.models import (
    NotificationChannelKind,
    StoredNotification,
    TenantChannelSettings,
)
from statusflow.notifications.settings import ChannelSettingsProvider, InMemoryChannelSettings
from statusflow.notifications.store import (
    NotificationStore,
    get_notification_store,
    set_notification_store,
)

__all__ = [
    # Models
    "NotificationChannelKind",
    "StoredNotification",
    "TenantChannelSettings",
    # Channels
    "EmailChannel",
    "EmailSender",
    "InAppChannel",
    "NotificationChannel",
    "PushChannel",
    "PushSender",
    "SmsChannel",
    "SmsSender",
    "WebhookChannel",
    # Dispatcher
    "NotificationDispatcher",
    "get_notification_dispatcher",
    "set_notification_dispatcher",
    # Settings
    "ChannelSettingsProvider",
    "InMemoryChannelSettings",
    # Store
    "NotificationStore",
    "get_notification_store",
    "set_notification_store",
]
