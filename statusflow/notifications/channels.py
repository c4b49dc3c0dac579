"""Notification channels.

A channel takes a built DomainEvent and hands it to one delivery mechanism.
Channels raise on failure; isolating one channel's failure from the others
is the dispatcher's job.
"""

from abc import ABC, abstractmethod

import structlog

from statusflow.errors import ChannelDeliveryError
from statusflow.events.content import DEFAULT_EVENT_ROUTE, EVENT_ROUTES, render_notification
from statusflow.events.models import DomainEvent, DomainEventType
from statusflow.notifications.models import NotificationChannelKind, StoredNotification
from statusflow.notifications.store import NotificationStore
from statusflow.webhooks.queue import DeliveryQueue, QueuedDeliveryJob
from statusflow.webhooks.subscriptions import WebhookSubscriptionRepository

logger = structlog.get_logger(__name__)

# Event types with an email template; other types are never emailed.
EMAIL_EVENT_TYPES: frozenset[DomainEventType] = frozenset(
    {DomainEventType.NEW_ORDER, DomainEventType.NEW_MESSAGE, DomainEventType.LOW_STOCK}
)

PUSH_TAG_PREFIX = "statusflow"


class NotificationChannel(ABC):
    """One delivery mechanism for domain events."""

    kind: NotificationChannelKind

    @abstractmethod
    async def deliver(self, event: DomainEvent) -> None:
        """Deliver an event.

        Args:
            event: Event to deliver.

        Raises:
            Exception: Any failure; the dispatcher logs and swallows it.
        """


class InAppChannel(NotificationChannel):
    """Stores a notification row for the tenant's dashboard."""

    kind = NotificationChannelKind.IN_APP

    def __init__(self, store: NotificationStore) -> None:
        self._store = store
        self._logger = logger.bind(component="in_app_channel")

    async def deliver(self, event: DomainEvent) -> None:
        title, body = render_notification(event)
        notification = StoredNotification(
            tenant_id=event.tenant_id,
            type=event.event_type,
            title=title,
            body=body,
            data={**event.payload, "event_id": event.id, "entity_id": event.entity_id},
        )
        await self._store.save(notification)
        self._logger.debug(
            "in_app_notification_created",
            tenant_id=event.tenant_id,
            notification_id=notification.id,
        )


# ============================================================================
# Email, push and SMS
# ============================================================================


class EmailSender(ABC):
    """Provider adapter for email."""

    @abstractmethod
    async def send(self, tenant_id: str, subject: str, text: str) -> None:
        """Send one email to the tenant owner's address."""


class PushSender(ABC):
    """Provider adapter for push notifications."""

    @abstractmethod
    async def send(self, tenant_id: str, title: str, body: str, data: dict[str, object]) -> None:
        """Send one push notification to the tenant's registered devices."""


class SmsSender(ABC):
    """Provider adapter for SMS."""

    @abstractmethod
    async def send(self, tenant_id: str, text: str) -> None:
        """Send one SMS to the tenant's notification number."""


class LoggingEmailSender(EmailSender):
    """Email sender that only logs. Default when no provider is configured."""

    async def send(self, tenant_id: str, subject: str, text: str) -> None:
        logger.info("email_notification_logged", tenant_id=tenant_id, subject=subject)


class LoggingPushSender(PushSender):
    """Push sender that only logs. Default when no provider is configured."""

    async def send(self, tenant_id: str, title: str, body: str, data: dict[str, object]) -> None:
        logger.info("push_notification_logged", tenant_id=tenant_id, title=title)


class LoggingSmsSender(SmsSender):
    """SMS sender that only logs. Default when no provider is configured."""

    async def send(self, tenant_id: str, text: str) -> None:
        logger.info("sms_notification_logged", tenant_id=tenant_id, length=len(text))


class EmailChannel(NotificationChannel):
    """Renders an event as an email to the tenant owner.

    Only event types with an email template are sent; enabling email for
    any other type is a no-op.
    """

    kind = NotificationChannelKind.EMAIL

    def __init__(self, sender: EmailSender | None = None) -> None:
        self._sender = sender or LoggingEmailSender()
        self._logger = logger.bind(component="email_channel")

    async def deliver(self, event: DomainEvent) -> None:
        if event.event_type not in EMAIL_EVENT_TYPES:
            self._logger.debug("email_template_missing", event_type=event.event_type.value)
            return
        title, body = render_notification(event)
        await self._sender.send(event.tenant_id, title, body)


class PushChannel(NotificationChannel):
    """Renders an event and hands it to a push provider."""

    kind = NotificationChannelKind.PUSH

    def __init__(self, sender: PushSender | None = None) -> None:
        self._sender = sender or LoggingPushSender()

    async def deliver(self, event: DomainEvent) -> None:
        title, body = render_notification(event)
        await self._sender.send(
            event.tenant_id,
            title,
            body,
            {
                "event_id": event.id,
                "event_type": event.event_type.value,
                "url": EVENT_ROUTES.get(event.event_type, DEFAULT_EVENT_ROUTE),
                "tag": f"{PUSH_TAG_PREFIX}-{event.event_type.value}",
            },
        )


class SmsChannel(NotificationChannel):
    """Renders an event as a single text message."""

    kind = NotificationChannelKind.SMS

    def __init__(self, sender: SmsSender | None = None) -> None:
        self._sender = sender or LoggingSmsSender()

    async def deliver(self, event: DomainEvent) -> None:
        title, body = render_notification(event)
        text = f"{title}: {body}" if body else title
        await self._sender.send(event.tenant_id, text)


# ============================================================================
# Webhook
# ============================================================================


class WebhookChannel(NotificationChannel):
    """Hands events to the durable queue for later signed delivery.

    Never calls the tenant endpoint. The URL check here only avoids queueing
    jobs for tenants without a subscription; the worker checks again on
    every attempt.
    """

    kind = NotificationChannelKind.WEBHOOK

    def __init__(
        self,
        subscriptions: WebhookSubscriptionRepository,
        queue: DeliveryQueue,
    ) -> None:
        self._subscriptions = subscriptions
        self._queue = queue
        self._logger = logger.bind(component="webhook_channel")

    async def deliver(self, event: DomainEvent) -> None:
        subscription = await self._subscriptions.get(event.tenant_id)
        if subscription is None or not subscription.has_url:
            self._logger.debug("webhook_not_configured", tenant_id=event.tenant_id)
            return

        job = QueuedDeliveryJob(tenant_id=event.tenant_id, payload=event)
        try:
            message_id = await self._queue.enqueue(job)
        except Exception as e:
            raise ChannelDeliveryError(
                NotificationChannelKind.WEBHOOK.value,
                f"Failed to enqueue webhook job: {e}",
            ) from e

        self._logger.info(
            "webhook_job_queued",
            tenant_id=event.tenant_id,
            event_id=event.id,
            message_id=message_id,
        )
