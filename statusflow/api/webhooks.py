"""Webhook API endpoints.

Two audiences:
- the durable queue, which calls the delivery worker and the failure callback,
- tenants, who manage their subscription and inspect dead letters.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, HttpUrl

from statusflow.api.dependencies import Services, get_services, get_tenant_id
from statusflow.events.models import DomainEventType
from statusflow.webhooks.dead_letters import DeadLetter, parse_failure_callback
from statusflow.webhooks.queue_auth import QUEUE_SIGNATURE_HEADER
from statusflow.webhooks.subscriptions import WebhookSubscription, generate_secret

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


# ============================================================================
# Request Models
# ============================================================================


class SubscriptionUpdateRequest(BaseModel):
    """Request to set the tenant's webhook endpoint."""

    url: HttpUrl | None = Field(default=None, description="Webhook endpoint URL (null = remove)")
    rotate_secret: bool = Field(
        default=False,
        description="Generate a new signing secret",
    )
    unsigned: bool = Field(
        default=False,
        description="Send payloads without a signature",
    )
    events: set[DomainEventType] | None = Field(
        default=None,
        description="Event types to deliver (omit to keep the current selection)",
    )


# ============================================================================
# Response Models
# ============================================================================


class SubscriptionResponse(BaseModel):
    """Webhook subscription details response."""

    tenant_id: str
    url: str | None
    secret: str | None
    events: list[DomainEventType]
    created_at: str
    updated_at: str

    @classmethod
    def from_subscription(
        cls,
        subscription: WebhookSubscription,
        events: set[DomainEventType],
    ) -> "SubscriptionResponse":
        """Create response from WebhookSubscription model and its event selection."""
        return cls(
            tenant_id=subscription.tenant_id,
            url=str(subscription.url) if subscription.url else None,
            secret=subscription.secret,
            events=sorted(events),
            created_at=subscription.created_at.isoformat(),
            updated_at=subscription.updated_at.isoformat(),
        )


class DeadLetterResponse(BaseModel):
    """Dead-letter details response."""

    id: str
    event_id: str | None
    event_type: str | None
    url: str | None
    response_status: int | None
    response_body: str | None
    retried: int
    payload: dict[str, Any]
    created_at: str

    @classmethod
    def from_dead_letter(cls, dead_letter: DeadLetter) -> "DeadLetterResponse":
        """Create response from DeadLetter model."""
        return cls(
            id=dead_letter.id,
            event_id=dead_letter.event_id,
            event_type=dead_letter.event_type,
            url=dead_letter.url,
            response_status=dead_letter.response_status,
            response_body=dead_letter.response_body,
            retried=dead_letter.retried,
            payload=dead_letter.payload,
            created_at=dead_letter.created_at.isoformat(),
        )


# ============================================================================
# Queue Endpoints
# ============================================================================


@router.post(
    "/delivery",
    responses={
        200: {"description": "Delivered, or nothing to deliver"},
        400: {"description": "Malformed job (not retried)"},
        401: {"description": "Call not signed by the queue"},
        500: {"description": "Delivery failed; the queue retries"},
    },
)
async def deliver_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> JSONResponse:
    """Delivery worker endpoint. Called only by the durable queue."""
    body = await request.body()
    result = await services.worker.handle(
        body,
        request.headers.get(QUEUE_SIGNATURE_HEADER),
        url=services.config.DELIVERY_WORKER_URL,
    )
    return JSONResponse(
        status_code=result.status_code,
        content=result.to_json_dict(),
        headers=result.headers,
    )


@router.post(
    "/delivery/failed",
    responses={
        200: {"description": "Dead letter recorded"},
        400: {"description": "Malformed callback"},
        401: {"description": "Call not signed by the queue"},
    },
)
async def delivery_failed(
    request: Request,
    services: Services = Depends(get_services),
) -> JSONResponse:
    """Queue failure callback. Records jobs the queue gave up on."""
    body = await request.body()
    rejection = services.worker.authenticate(
        body,
        request.headers.get(QUEUE_SIGNATURE_HEADER),
        url=services.config.DEAD_LETTER_URL,
    )
    if rejection is not None:
        return JSONResponse(status_code=rejection.status_code, content=rejection.to_json_dict())

    dead_letter = await services.dead_letter_store.record(parse_failure_callback(body))
    return JSONResponse(status_code=200, content={"recorded": True, "id": dead_letter.id})


# ============================================================================
# Tenant Endpoints
# ============================================================================


@router.get(
    "/subscription",
    response_model=SubscriptionResponse,
    responses={404: {"description": "No subscription configured"}},
)
async def get_subscription(
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> SubscriptionResponse:
    """Get the tenant's webhook subscription."""
    subscription = await services.subscriptions.get(tenant_id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="No webhook subscription configured")
    settings = await services.channel_settings.get_settings(tenant_id)
    return SubscriptionResponse.from_subscription(subscription, settings.webhook_events)


@router.put("/subscription", response_model=SubscriptionResponse)
async def put_subscription(
    request: SubscriptionUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> SubscriptionResponse:
    """Create or update the tenant's webhook subscription.

    A secret is generated on first creation. Jobs already queued pick up the
    new URL and secret on their next attempt. ``events`` replaces the webhook
    channel's event selection; new events are queued from the next dispatch.
    """
    existing = await services.subscriptions.get(tenant_id)

    if request.unsigned:
        secret = None
    elif request.rotate_secret or existing is None or existing.secret is None:
        secret = generate_secret()
    else:
        secret = existing.secret

    subscription = await services.subscriptions.save(
        WebhookSubscription(tenant_id=tenant_id, url=request.url, secret=secret)
    )

    settings = await services.channel_settings.get_settings(tenant_id)
    if request.events is not None:
        settings = await services.channel_settings.save_settings(
            settings.model_copy(update={"webhook_events": request.events})
        )

    logger.info(
        "webhook_subscription_updated",
        tenant_id=tenant_id,
        has_url=subscription.has_url,
        secret_rotated=existing is not None and secret != existing.secret,
    )
    return SubscriptionResponse.from_subscription(subscription, settings.webhook_events)


@router.delete(
    "/subscription",
    responses={
        204: {"description": "Subscription deleted"},
        404: {"description": "No subscription configured"},
    },
    status_code=204,
)
async def delete_subscription(
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> None:
    """Delete the tenant's webhook subscription.

    Queued jobs are not cancelled; the worker skips them once the URL is gone.
    """
    deleted = await services.subscriptions.delete(tenant_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="No webhook subscription configured")


@router.get("/dead-letters", response_model=list[DeadLetterResponse])
async def list_dead_letters(
    limit: int = Query(default=50, ge=1, le=200),
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> list[DeadLetterResponse]:
    """List webhook events that were never delivered."""
    dead_letters = await services.dead_letter_store.list_for_tenant(tenant_id, limit=limit)
    return [DeadLetterResponse.from_dead_letter(d) for d in dead_letters]
