"""Per-tenant channel configuration.

The dispatcher asks a ``ChannelSettingsProvider`` which channels a tenant has
enabled for an event type. In production this is backed by the tenant's
settings in the system of record; ``InMemoryChannelSettings`` serves tests and
local development.
"""

from abc import ABC, abstractmethod

import structlog

from statusflow.notifications.models import TenantChannelSettings

logger = structlog.get_logger(__name__)


class ChannelSettingsProvider(ABC):
    """Source of per-tenant channel settings."""

    @abstractmethod
    async def get_settings(self, tenant_id: str) -> TenantChannelSettings:
        """Get a tenant's channel settings.

        Args:
            tenant_id: Tenant identifier.

        Returns:
            The tenant's settings, or defaults if none are stored.
        """

    @abstractmethod
    async def save_settings(self, settings: TenantChannelSettings) -> TenantChannelSettings:
        """Store a tenant's channel settings, replacing any previous ones.

        Returns:
            The stored settings.
        """


class InMemoryChannelSettings(ChannelSettingsProvider):
    """Dictionary-backed channel settings."""

    def __init__(self) -> None:
        self._settings: dict[str, TenantChannelSettings] = {}
        self._logger = logger.bind(component="channel_settings")

    async def get_settings(self, tenant_id: str) -> TenantChannelSettings:
        stored = self._settings.get(tenant_id)
        if stored is None:
            return TenantChannelSettings(tenant_id=tenant_id)
        return stored.model_copy(deep=True)

    async def save_settings(self, settings: TenantChannelSettings) -> TenantChannelSettings:
        self.set_settings(settings)
        return settings.model_copy(deep=True)

    def set_settings(self, settings: TenantChannelSettings) -> None:
        """Replace a tenant's channel settings."""
        self._settings[settings.tenant_id] = settings.model_copy(deep=True)
        self._logger.info(
            "channel_settings_updated",
            tenant_id=settings.tenant_id,
            email_events=len(settings.email_events),
            push_events=len(settings.push_events),
            sms_events=len(settings.sms_events),
            webhook_events=len(settings.webhook_events),
        )
