"""Notification dispatcher.

Fans a domain event out to every channel the tenant has enabled for its
type. Dispatch is best-effort: channels run concurrently, each inside its own
error boundary and timeout, and nothing raised while notifying ever reaches
the caller whose write produced the event.
"""

import asyncio
from typing import Any

import structlog

from statusflow.events.models import DomainEvent, DomainEventType, build_event
from statusflow.notifications.channels import NotificationChannel
from statusflow.notifications.models import NotificationChannelKind
from statusflow.notifications.settings import ChannelSettingsProvider

logger = structlog.get_logger(__name__)

DEFAULT_CHANNEL_TIMEOUT_SECONDS = 5.0


class NotificationDispatcher:
    """Dispatches domain events to notification channels.

    Features:
    - Per-tenant channel selection
    - Concurrent, independent channel delivery
    - Per-channel timeout
    - Fire-and-forget dispatch with tracked background tasks

    Example:
        dispatcher = NotificationDispatcher(settings, [InAppChannel(store)])
        dispatcher.dispatch_nowait("tenant-1", DomainEventType.NEW_ORDER, fields)
    """

    def __init__(
        self,
        settings_provider: ChannelSettingsProvider,
        channels: list[NotificationChannel],
        *,
        channel_timeout: float = DEFAULT_CHANNEL_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            settings_provider: Source of per-tenant channel settings.
            channels: Available channels; at most one per kind.
            channel_timeout: Upper bound in seconds for one channel delivery.
        """
        self._settings_provider = settings_provider
        self._channels: dict[NotificationChannelKind, NotificationChannel] = {
            channel.kind: channel for channel in channels
        }
        self._channel_timeout = channel_timeout
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._logger = logger.bind(component="notification_dispatcher")

    @property
    def pending_tasks(self) -> int:
        """Number of fire-and-forget dispatches still running."""
        return len(self._background_tasks)

    async def dispatch(
        self,
        tenant_id: str,
        event_type: DomainEventType | str,
        fields: dict[str, Any] | None = None,
        *,
        entity_id: str | None = None,
    ) -> None:
        """Build an event and deliver it to the tenant's channels.

        Never raises.

        Args:
            tenant_id: Tenant that owns the entity.
            event_type: Type of event.
            fields: Display-ready event fields.
            entity_id: Entity the event is about.
        """
        try:
            event = build_event(event_type, tenant_id, entity_id, fields)
        except Exception as e:
            self._logger.error(
                "dispatch_event_build_failed",
                tenant_id=tenant_id,
                event_type=str(event_type),
                error=str(e),
            )
            return

        await self.dispatch_event(event)

    async def dispatch_event(self, event: DomainEvent) -> None:
        """Deliver a built event to the tenant's enabled channels.

        Never raises.

        Args:
            event: Event to deliver.
        """
        log = self._logger.bind(
            tenant_id=event.tenant_id,
            event_id=event.id,
            event_type=event.event_type.value,
        )

        try:
            settings = await self._settings_provider.get_settings(event.tenant_id)
        except Exception as e:
            log.error("dispatch_settings_lookup_failed", error=str(e))
            return

        channels = [
            self._channels[kind]
            for kind in settings.enabled_channels(event.event_type)
            if kind in self._channels
        ]
        if not channels:
            log.debug("dispatch_no_channels")
            return

        results = await asyncio.gather(
            *(self._deliver(channel, event) for channel in channels)
        )

        log.info(
            "event_dispatched",
            channels=[channel.kind.value for channel in channels],
            succeeded=sum(results),
        )

    async def _deliver(self, channel: NotificationChannel, event: DomainEvent) -> bool:
        """Run one channel inside its own error boundary.

        Returns:
            True if the channel delivered.
        """
        try:
            await asyncio.wait_for(channel.deliver(event), timeout=self._channel_timeout)
        except TimeoutError:
            self._logger.warning(
                "dispatch_channel_timeout",
                channel=channel.kind.value,
                tenant_id=event.tenant_id,
                event_id=event.id,
                timeout=self._channel_timeout,
            )
            return False
        except Exception as e:
            self._logger.error(
                "dispatch_channel_failed",
                channel=channel.kind.value,
                tenant_id=event.tenant_id,
                event_id=event.id,
                error=str(e),
            )
            return False
        return True

    def dispatch_nowait(
        self,
        tenant_id: str,
        event_type: DomainEventType | str,
        fields: dict[str, Any] | None = None,
        *,
        entity_id: str | None = None,
    ) -> asyncio.Task[None]:
        """Schedule ``dispatch`` in the background and return immediately.

        Must be called from a running event loop.

        Returns:
            The tracked background task.
        """
        return self._track(
            asyncio.create_task(
                self.dispatch(tenant_id, event_type, fields, entity_id=entity_id)
            )
        )

    def dispatch_event_nowait(self, event: DomainEvent) -> asyncio.Task[None]:
        """Schedule ``dispatch_event`` in the background and return immediately."""
        return self._track(asyncio.create_task(self.dispatch_event(event)))

    def _track(self, task: asyncio.Task[None]) -> asyncio.Task[None]:
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def shutdown(self) -> None:
        """Wait for pending background dispatches to finish."""
        if not self._background_tasks:
            return
        self._logger.info("dispatcher_draining", pending=len(self._background_tasks))
        await asyncio.gather(*list(self._background_tasks), return_exceptions=True)


# Global dispatcher instance
_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher | None:
    """Get the global notification dispatcher, if one has been set."""
    return _dispatcher


def set_notification_dispatcher(dispatcher: NotificationDispatcher | None) -> None:
    """Set the global notification dispatcher.

    Useful for testing.

    Args:
        dispatcher: NotificationDispatcher instance, or None to clear.
    """
    global _dispatcher
    _dispatcher = dispatcher
