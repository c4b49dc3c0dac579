"""Durable delivery queue client.

The webhook channel never calls a tenant endpoint itself. It hands a
``QueuedDeliveryJob`` to an external durable queue, which later POSTs the job
to the delivery worker and owns every delivery retry. The only retry done
here is for the publish call to the queue itself.
"""

import json
import uuid
from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, model_validator
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from statusflow.errors import QueuePublishError
from statusflow.events.models import DomainEvent

logger = structlog.get_logger(__name__)

PUBLISH_TIMEOUT_SECONDS = 10.0
PUBLISH_MAX_ATTEMPTS = 3


class QueuedDeliveryJob(BaseModel):
    """Body the queue replays to the delivery worker.

    Deliberately carries no URL or secret: those are read fresh by the
    worker on each attempt.
    """

    tenant_id: str = Field(..., min_length=1, description="Owning tenant")
    payload: DomainEvent = Field(..., description="Event to deliver")

    @model_validator(mode="after")
    def _tenant_matches_event(self) -> "QueuedDeliveryJob":
        if self.payload.tenant_id != self.tenant_id:
            raise ValueError("job tenant_id does not match event tenant_id")
        return self

    def to_json_dict(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "payload": self.payload.to_json_dict()}

    def serialize(self) -> str:
        """Serialize to the JSON text published to the queue."""
        return json.dumps(self.to_json_dict(), separators=(",", ":"), ensure_ascii=False)


class DeliveryQueue(ABC):
    """External durable queue that invokes the delivery worker."""

    @abstractmethod
    async def enqueue(self, job: QueuedDeliveryJob) -> str:
        """Submit a job.

        Args:
            job: Delivery job.

        Returns:
            Queue message identifier.

        Raises:
            QueuePublishError: If the queue did not accept the job.
        """


class InMemoryDeliveryQueue(DeliveryQueue):
    """Queue that only records jobs. Used in tests and local development."""

    def __init__(self) -> None:
        self.jobs: list[QueuedDeliveryJob] = []

    async def enqueue(self, job: QueuedDeliveryJob) -> str:
        self.jobs.append(job)
        return f"msg_{uuid.uuid4().hex[:12]}"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, QueuePublishError) and exc.recoverable


class QStashDeliveryQueue(DeliveryQueue):
    """Publishes jobs to a QStash-compatible HTTP queue.

    Features:
    - Bearer-token publish to ``{base_url}/v2/publish/{worker_url}``
    - Queue-side retry budget via ``Upstash-Retries``
    - Failure callback so exhausted jobs reach the dead-letter log
    - Deduplication on the event id
    - Bounded local retry of the publish call only
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        worker_url: str,
        failure_callback_url: str | None = None,
        max_retries: int = 3,
        timeout: float = PUBLISH_TIMEOUT_SECONDS,
        max_publish_attempts: int = PUBLISH_MAX_ATTEMPTS,
    ) -> None:
        """Initialize the queue client.

        Args:
            base_url: Queue service base URL.
            token: Publish token.
            worker_url: Public URL of the delivery worker endpoint.
            failure_callback_url: Endpoint told about jobs that ran out of retries.
            max_retries: Delivery retries the queue should attempt.
            timeout: HTTP timeout for the publish call.
            max_publish_attempts: Local attempts for the publish call.
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._worker_url = worker_url
        self._failure_callback_url = failure_callback_url
        self._max_retries = max_retries
        self._timeout = timeout
        self._max_publish_attempts = max_publish_attempts
        self._logger = logger.bind(component="delivery_queue")

    @property
    def publish_url(self) -> str:
        return f"{self._base_url}/v2/publish/{self._worker_url}"

    def _headers(self, job: QueuedDeliveryJob) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Upstash-Retries": str(self._max_retries),
            "Upstash-Deduplication-Id": job.payload.id,
        }
        if self._failure_callback_url:
            headers["Upstash-Failure-Callback"] = self._failure_callback_url
        return headers

    async def enqueue(self, job: QueuedDeliveryJob) -> str:
        body = job.serialize()
        headers = self._headers(job)
        message_id = ""

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_publish_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                message_id = await self._publish(body, headers)

        self._logger.info(
            "delivery_job_enqueued",
            tenant_id=job.tenant_id,
            event_id=job.payload.id,
            event_type=job.payload.event_type.value,
            message_id=message_id,
        )
        return message_id

    async def _publish(self, body: str, headers: dict[str, str]) -> str:
        """Make a single publish attempt.

        Returns:
            Queue message id.

        Raises:
            QueuePublishError: On transport errors or non-2xx responses.
        """
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.publish_url, content=body, headers=headers)
        except httpx.HTTPError as e:
            self._logger.warning("queue_publish_transport_error", error=str(e))
            raise QueuePublishError(f"Queue unreachable: {e}") from e

        if not response.is_success:
            self._logger.warning(
                "queue_publish_rejected",
                status_code=response.status_code,
            )
            raise QueuePublishError(
                f"Queue rejected job: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        return str(data.get("messageId", "")) if isinstance(data, dict) else ""
