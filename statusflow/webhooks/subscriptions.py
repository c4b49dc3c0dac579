"""Tenant webhook subscriptions.

A tenant has at most one subscription: the URL its events are POSTed to and
the secret they are signed with. Tenants may change either at any time, so
the delivery worker looks the subscription up again on every attempt instead
of trusting anything captured at enqueue time.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from datetime import UTC, datetime

import structlog
from pydantic import BaseModel, Field, HttpUrl

logger = structlog.get_logger(__name__)


def generate_secret() -> str:
    """Generate a new webhook signing secret."""
    return f"whsec_{secrets.token_hex(24)}"


class WebhookSubscription(BaseModel):
    """A tenant's webhook endpoint configuration."""

    tenant_id: str = Field(..., description="Owning tenant")
    url: HttpUrl | None = Field(
        default=None, description="Webhook endpoint URL (None = removed)"
    )
    secret: str | None = Field(
        default=None,
        description="Secret key for HMAC signature (None = send unsigned)",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the subscription was created",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the subscription was last updated",
    )

    @property
    def has_url(self) -> bool:
        return self.url is not None and bool(str(self.url))


class WebhookSubscriptionRepository(ABC):
    """Storage for tenant webhook subscriptions."""

    @abstractmethod
    async def get(self, tenant_id: str) -> WebhookSubscription | None:
        """Read a tenant's current subscription.

        Args:
            tenant_id: Tenant identifier.

        Returns:
            The subscription, or None if the tenant never configured one.
        """

    @abstractmethod
    async def save(self, subscription: WebhookSubscription) -> WebhookSubscription:
        """Create or replace a tenant's subscription."""

    @abstractmethod
    async def delete(self, tenant_id: str) -> bool:
        """Remove a tenant's subscription.

        Returns:
            True if one existed.
        """


class InMemoryWebhookSubscriptionRepository(WebhookSubscriptionRepository):
    """Dictionary-backed subscription storage.

    Returns copies so callers never hold a live reference that could change
    underneath them.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, WebhookSubscription] = {}
        self._logger = logger.bind(component="webhook_subscriptions")

    async def get(self, tenant_id: str) -> WebhookSubscription | None:
        subscription = self._subscriptions.get(tenant_id)
        return subscription.model_copy() if subscription else None

    async def save(self, subscription: WebhookSubscription) -> WebhookSubscription:
        existing = self._subscriptions.get(subscription.tenant_id)
        stored = subscription.model_copy(
            update={
                "created_at": existing.created_at if existing else subscription.created_at,
                "updated_at": datetime.now(UTC),
            }
        )
        self._subscriptions[subscription.tenant_id] = stored

        self._logger.info(
            "webhook_subscription_saved",
            tenant_id=subscription.tenant_id,
            url=str(stored.url) if stored.url else None,
            signed=stored.secret is not None,
        )
        return stored.model_copy()

    async def delete(self, tenant_id: str) -> bool:
        if tenant_id in self._subscriptions:
            del self._subscriptions[tenant_id]
            self._logger.info("webhook_subscription_deleted", tenant_id=tenant_id)
            return True
        return False
