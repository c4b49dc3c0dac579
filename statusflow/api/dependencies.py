"""Service wiring and FastAPI dependencies.

``Services`` holds every long-lived component the HTTP layer needs. The
application lifespan builds one from settings unless a test has already set
its own with ``set_services``.
"""

from dataclasses import dataclass, field

import structlog
from fastapi import Header, HTTPException

from statusflow.config import Settings
from statusflow.notifications.channels import (
    EmailChannel,
    InAppChannel,
    PushChannel,
    SmsChannel,
    WebhookChannel,
)
from statusflow.notifications.dispatcher import (
    NotificationDispatcher,
    set_notification_dispatcher,
)
from statusflow.notifications.settings import (
    ChannelSettingsProvider,
    InMemoryChannelSettings,
)
from statusflow.notifications.store import NotificationStore, set_notification_store
from statusflow.transitions.machines import DEFAULT_TRANSITIONS, TransitionTable
from statusflow.transitions.service import (
    EntityStateStore,
    InMemoryEntityStateStore,
    StatusTransitionService,
)
from statusflow.webhooks.dead_letters import DeadLetterStore
from statusflow.webhooks.queue import (
    DeliveryQueue,
    InMemoryDeliveryQueue,
    QStashDeliveryQueue,
)
from statusflow.webhooks.queue_auth import QueueSignatureVerifier
from statusflow.webhooks.subscriptions import (
    InMemoryWebhookSubscriptionRepository,
    WebhookSubscriptionRepository,
)
from statusflow.webhooks.worker import WebhookDeliveryWorker

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Long-lived components shared by all requests."""

    config: Settings
    table: TransitionTable
    notification_store: NotificationStore
    dead_letter_store: DeadLetterStore
    subscriptions: WebhookSubscriptionRepository
    channel_settings: ChannelSettingsProvider
    queue: DeliveryQueue
    dispatcher: NotificationDispatcher
    worker: WebhookDeliveryWorker
    entity_states: EntityStateStore
    transitions: StatusTransitionService
    _started: bool = field(default=False, repr=False)

    async def start(self) -> None:
        """Open storage and publish globals. Idempotent."""
        if self._started:
            return
        await self.notification_store.initialize()
        await self.dead_letter_store.initialize()
        set_notification_store(self.notification_store)
        set_notification_dispatcher(self.dispatcher)
        self._started = True
        logger.info("services_started", environment=self.config.ENVIRONMENT)

    async def stop(self) -> None:
        """Drain background dispatches and close storage."""
        if not self._started:
            return
        await self.dispatcher.shutdown()
        await self.notification_store.close()
        await self.dead_letter_store.close()
        set_notification_store(None)
        set_notification_dispatcher(None)
        self._started = False
        logger.info("services_stopped")


def build_queue(config: Settings) -> DeliveryQueue:
    """Create the delivery queue client for the configured environment.

    Falls back to an in-memory queue when no queue token or worker URL is
    set, which is only acceptable outside production.
    """
    if config.QUEUE_TOKEN and config.DELIVERY_WORKER_URL:
        return QStashDeliveryQueue(
            base_url=config.QUEUE_URL,
            token=config.QUEUE_TOKEN,
            worker_url=config.DELIVERY_WORKER_URL,
            failure_callback_url=config.DEAD_LETTER_URL,
            max_retries=config.QUEUE_MAX_RETRIES,
        )

    if config.is_production:
        logger.error("delivery_queue_not_configured")
    else:
        logger.warning("delivery_queue_in_memory")
    return InMemoryDeliveryQueue()


def build_services(
    config: Settings,
    *,
    table: TransitionTable | None = None,
    queue: DeliveryQueue | None = None,
) -> Services:
    """Wire all components from settings.

    Args:
        config: Application settings.
        table: Transition table (defaults to the built-in tables).
        queue: Delivery queue (defaults to one built from settings).

    Returns:
        Services, not yet started.
    """
    table = table or DEFAULT_TRANSITIONS
    notification_store = NotificationStore(config.NOTIFICATIONS_DB_PATH)
    dead_letter_store = DeadLetterStore(config.NOTIFICATIONS_DB_PATH)
    subscriptions = InMemoryWebhookSubscriptionRepository()
    channel_settings = InMemoryChannelSettings()
    queue = queue or build_queue(config)

    dispatcher = NotificationDispatcher(
        channel_settings,
        [
            InAppChannel(notification_store),
            EmailChannel(),
            PushChannel(),
            SmsChannel(),
            WebhookChannel(subscriptions, queue),
        ],
        channel_timeout=config.CHANNEL_TIMEOUT_SECONDS,
    )

    worker = WebhookDeliveryWorker(
        subscriptions,
        QueueSignatureVerifier(
            config.QUEUE_CURRENT_SIGNING_KEY,
            config.QUEUE_NEXT_SIGNING_KEY,
        ),
        delivery_timeout=config.WEBHOOK_TIMEOUT_SECONDS,
        allow_unsigned=config.ALLOW_UNSIGNED_QUEUE_CALLS or not config.is_production,
    )

    entity_states = InMemoryEntityStateStore()

    return Services(
        config=config,
        table=table,
        notification_store=notification_store,
        dead_letter_store=dead_letter_store,
        subscriptions=subscriptions,
        channel_settings=channel_settings,
        queue=queue,
        dispatcher=dispatcher,
        worker=worker,
        entity_states=entity_states,
        transitions=StatusTransitionService(table, entity_states, dispatcher),
    )


# Global services instance
_services: Services | None = None


def get_services() -> Services:
    """FastAPI dependency returning the running services."""
    if _services is None:
        raise RuntimeError("Services not initialized")
    return _services


def set_services(services: Services | None) -> None:
    """Set the global services.

    Useful for testing.

    Args:
        services: Services instance, or None to clear.
    """
    global _services
    _services = services


def has_services() -> bool:
    return _services is not None


async def get_tenant_id(
    x_tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> str:
    """Resolve the calling tenant from the X-Tenant-ID header.

    Authentication happens upstream; this only rejects requests that reach
    the service without a tenant.
    """
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Tenant-ID header")
    return x_tenant_id.strip()
