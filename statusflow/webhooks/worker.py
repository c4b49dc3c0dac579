"""Webhook delivery worker.

Invoked only by the durable queue. For each call it:

1. authenticates the queue's signature,
2. parses the delivery job,
3. re-reads the tenant's current subscription,
4. signs the event with the tenant's current secret,
5. POSTs it to the tenant's endpoint with a bounded timeout.

The HTTP status returned to the queue is the only retry signal: 2xx means
done (delivered, or nothing to deliver), 500 asks the queue to retry, 400 and
401 are terminal. The worker keeps no state between calls, so the queue may
invoke it any number of times for the same job.
"""

from dataclasses import dataclass, field
from enum import Enum

import httpx
import structlog
from pydantic import ValidationError

from statusflow.errors import QueueSignatureError
from statusflow.webhooks.queue import QueuedDeliveryJob
from statusflow.webhooks.queue_auth import QueueSignatureVerifier
from statusflow.webhooks.security import build_signed_envelope
from statusflow.webhooks.subscriptions import WebhookSubscriptionRepository

logger = structlog.get_logger(__name__)

DEFAULT_DELIVERY_TIMEOUT_SECONDS = 10.0

# Tells a QStash-compatible queue not to retry a response.
NON_RETRYABLE_HEADER = "Upstash-NonRetryable-Error"


class DeliveryOutcome(str, Enum):
    """What happened to one worker invocation."""

    DELIVERED = "delivered"
    SKIPPED = "skipped"
    UNAUTHORIZED = "unauthorized"
    MALFORMED = "malformed"
    FAILED = "failed"


@dataclass
class DeliveryResult:
    """Response the worker gives the queue.

    Attributes:
        outcome: Outcome of the invocation.
        status_code: HTTP status returned to the queue.
        detail: Human-readable detail for logs and the response body.
        destination_status: Status returned by the tenant endpoint, if called.
        headers: Extra response headers for the queue.
    """

    outcome: DeliveryOutcome
    status_code: int
    detail: str = ""
    destination_status: int | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 300

    def to_json_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "detail": self.detail,
            "destination_status": self.destination_status,
        }


class WebhookDeliveryWorker:
    """Performs one signed delivery per queue invocation."""

    def __init__(
        self,
        subscriptions: WebhookSubscriptionRepository,
        verifier: QueueSignatureVerifier,
        *,
        delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT_SECONDS,
        allow_unsigned: bool = False,
    ) -> None:
        """Initialize the worker.

        Args:
            subscriptions: Source of tenants' current subscriptions.
            verifier: Queue signature verifier.
            delivery_timeout: Timeout in seconds for the outbound call.
            allow_unsigned: Accept calls without a queue signature when the
                verifier has no keys. Development only.
        """
        self._subscriptions = subscriptions
        self._verifier = verifier
        self._delivery_timeout = delivery_timeout
        self._allow_unsigned = allow_unsigned
        self._logger = logger.bind(component="webhook_delivery_worker")

    def authenticate(
        self,
        body: bytes,
        signature: str | None,
        *,
        url: str | None = None,
    ) -> DeliveryResult | None:
        """Check that a call really comes from the queue.

        Args:
            body: Raw request body.
            signature: Queue signature header value, if present.
            url: Endpoint URL the signature must be bound to, if known.

        Returns:
            None when the call may proceed, else the 401 result to return.
        """
        if self._verifier.enabled:
            try:
                self._verifier.verify(signature, body, url=url)
            except QueueSignatureError as e:
                return DeliveryResult(
                    outcome=DeliveryOutcome.UNAUTHORIZED,
                    status_code=401,
                    detail=e.message,
                )
            return None

        if self._allow_unsigned:
            self._logger.warning("queue_signature_check_skipped")
            return None

        self._logger.error("queue_signing_keys_not_configured")
        return DeliveryResult(
            outcome=DeliveryOutcome.UNAUTHORIZED,
            status_code=401,
            detail="Queue signing keys not configured",
        )

    async def handle(
        self,
        body: bytes,
        signature: str | None,
        *,
        url: str | None = None,
    ) -> DeliveryResult:
        """Process one queue invocation.

        Args:
            body: Raw request body from the queue.
            signature: Queue signature header value, if present.
            url: Public URL of this endpoint, checked against the signature.

        Returns:
            DeliveryResult describing the response for the queue.
        """
        # Step 1: authenticate the queue
        rejection = self.authenticate(body, signature, url=url)
        if rejection is not None:
            return rejection

        # Step 2: parse the job
        try:
            job = QueuedDeliveryJob.model_validate_json(body)
        except ValidationError as e:
            self._logger.warning("delivery_job_malformed", errors=e.error_count())
            return DeliveryResult(
                outcome=DeliveryOutcome.MALFORMED,
                status_code=400,
                detail="Malformed delivery job",
                headers={NON_RETRYABLE_HEADER: "true"},
            )

        event = job.payload
        log = self._logger.bind(
            tenant_id=job.tenant_id,
            event_id=event.id,
            event_type=event.event_type.value,
        )

        # Step 3: re-read the subscription
        subscription = await self._subscriptions.get(job.tenant_id)
        if subscription is None or not subscription.has_url:
            log.info("webhook_delivery_skipped_no_url")
            return DeliveryResult(
                outcome=DeliveryOutcome.SKIPPED,
                status_code=200,
                detail="No webhook URL configured",
            )

        # Step 4: sign with the current secret
        envelope = build_signed_envelope(event, subscription.secret)
        url = str(subscription.url)

        # Step 5: outbound call
        try:
            async with httpx.AsyncClient(timeout=self._delivery_timeout) as client:
                response = await client.post(
                    url,
                    content=envelope.body.encode("utf-8"),
                    headers=envelope.headers,
                )
        except httpx.TimeoutException:
            log.warning("webhook_delivery_timeout", url=url, timeout=self._delivery_timeout)
            return DeliveryResult(
                outcome=DeliveryOutcome.FAILED,
                status_code=500,
                detail="Request timeout",
            )
        except httpx.HTTPError as e:
            log.warning("webhook_delivery_connection_error", url=url, error=str(e))
            return DeliveryResult(
                outcome=DeliveryOutcome.FAILED,
                status_code=500,
                detail=f"Connection error: {e}",
            )

        if not response.is_success:
            log.warning(
                "webhook_delivery_non_success_response",
                url=url,
                status_code=response.status_code,
            )
            return DeliveryResult(
                outcome=DeliveryOutcome.FAILED,
                status_code=500,
                detail=f"HTTP {response.status_code}",
                destination_status=response.status_code,
            )

        log.info("webhook_delivered", url=url, status_code=response.status_code)
        return DeliveryResult(
            outcome=DeliveryOutcome.DELIVERED,
            status_code=200,
            detail="Delivered",
            destination_status=response.status_code,
        )
