"""Tests for the webhook delivery worker."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from statusflow.events.models import DomainEventType, build_event
from statusflow.webhooks.queue import QueuedDeliveryJob
from statusflow.webhooks.queue_auth import QueueSignatureVerifier, sign_queue_request
from statusflow.webhooks.security import EVENT_HEADER, SIGNATURE_HEADER, verify_signature
from statusflow.webhooks.subscriptions import (
    InMemoryWebhookSubscriptionRepository,
    WebhookSubscription,
)
from statusflow.webhooks.worker import (
    NON_RETRYABLE_HEADER,
    DeliveryOutcome,
    WebhookDeliveryWorker,
)

SIGNING_KEY = "sig_current_0123456789abcdef0123456789abcdef"
TENANT_URL = "https://tenant.example.com/hooks"

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
async def subscriptions():
    """Repository with a signed subscription for tenant-1."""
    repo = InMemoryWebhookSubscriptionRepository()
    await repo.save(
        WebhookSubscription(tenant_id="tenant-1", url=TENANT_URL, secret="whsec_one")
    )
    return repo


@pytest.fixture
def worker(subscriptions):
    """Worker requiring queue signatures."""
    return WebhookDeliveryWorker(
        subscriptions,
        QueueSignatureVerifier(SIGNING_KEY),
        delivery_timeout=2.0,
    )


@pytest.fixture
def job_body():
    """Serialized delivery job."""
    event = build_event(
        DomainEventType.NEW_MESSAGE,
        "tenant-1",
        "conv-1",
        {"customer_name": "Ana", "message": "Hi"},
    )
    return QueuedDeliveryJob(tenant_id="tenant-1", payload=event).serialize().encode("utf-8")


def _ok(status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    return response


# ============================================================================
# Authentication Tests
# ============================================================================


class TestAuthentication:
    """Tests for queue signature checks."""

    @pytest.mark.asyncio
    async def test_missing_signature_401_without_outbound_call(self, worker, job_body):
        """Test unsigned calls are rejected before any delivery."""
        with patch("httpx.AsyncClient") as mock_client:
            result = await worker.handle(job_body, None)

        assert result.status_code == 401
        assert result.outcome is DeliveryOutcome.UNAUTHORIZED
        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_signature_401_without_outbound_call(self, worker, job_body):
        """Test calls signed with an unknown key are rejected."""
        token = sign_queue_request(job_body, "sig_wrong_0123456789abcdef0123456789abcdef")

        with patch("httpx.AsyncClient") as mock_client:
            result = await worker.handle(job_body, token)

        assert result.status_code == 401
        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_keys_refused_by_default(self, subscriptions, job_body):
        """Test a worker without keys refuses calls unless allowed."""
        worker = WebhookDeliveryWorker(subscriptions, QueueSignatureVerifier(None))

        with patch("httpx.AsyncClient") as mock_client:
            result = await worker.handle(job_body, None)

        assert result.status_code == 401
        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_keys_allowed_in_development(self, subscriptions, job_body):
        """Test the unsigned fallback delivers when explicitly allowed."""
        worker = WebhookDeliveryWorker(
            subscriptions, QueueSignatureVerifier(None), allow_unsigned=True
        )

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=_ok()
            )
            result = await worker.handle(job_body, None)

        assert result.status_code == 200
        assert result.outcome is DeliveryOutcome.DELIVERED


# ============================================================================
# Delivery Tests
# ============================================================================


class TestDelivery:
    """Tests for the outbound delivery."""

    @pytest.mark.asyncio
    async def test_signed_delivery(self, worker, job_body):
        """Test the tenant receives the event with a recomputable signature."""
        token = sign_queue_request(job_body, SIGNING_KEY)
        post = AsyncMock(return_value=_ok(204))

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = post
            result = await worker.handle(job_body, token)

        assert result.status_code == 200
        assert result.destination_status == 204
        assert post.await_args.args[0] == TENANT_URL
        sent_body = post.await_args.kwargs["content"]
        headers = post.await_args.kwargs["headers"]
        assert headers[EVENT_HEADER] == "new_message"
        assert verify_signature(sent_body, headers[SIGNATURE_HEADER], "whsec_one") is True

    @pytest.mark.asyncio
    async def test_double_invocation_delivers_twice(self, worker, job_body):
        """Test the same job twice gives two outbound calls and two successes."""
        token = sign_queue_request(job_body, SIGNING_KEY)
        post = AsyncMock(return_value=_ok())

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = post
            first = await worker.handle(job_body, token)
            second = await worker.handle(job_body, token)

        assert first.status_code == 200
        assert second.status_code == 200
        assert post.await_count == 2

    @pytest.mark.asyncio
    async def test_removed_url_is_a_successful_noop(self, worker, subscriptions, job_body):
        """Test a job for a tenant whose URL was removed returns 200 skipped."""
        await subscriptions.save(WebhookSubscription(tenant_id="tenant-1", url=None))
        token = sign_queue_request(job_body, SIGNING_KEY)

        with patch("httpx.AsyncClient") as mock_client:
            result = await worker.handle(job_body, token)

        assert result.status_code == 200
        assert result.outcome is DeliveryOutcome.SKIPPED
        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_rotated_secret_used_on_next_attempt(self, worker, subscriptions, job_body):
        """Test the secret is re-read for every attempt."""
        await subscriptions.save(
            WebhookSubscription(tenant_id="tenant-1", url=TENANT_URL, secret="whsec_two")
        )
        token = sign_queue_request(job_body, SIGNING_KEY)
        post = AsyncMock(return_value=_ok())

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = post
            await worker.handle(job_body, token)

        sent_body = post.await_args.kwargs["content"]
        signature = post.await_args.kwargs["headers"][SIGNATURE_HEADER]
        assert verify_signature(sent_body, signature, "whsec_two") is True
        assert verify_signature(sent_body, signature, "whsec_one") is False

    @pytest.mark.asyncio
    async def test_unsigned_subscription_sends_without_signature(
        self, worker, subscriptions, job_body
    ):
        """Test a subscription without a secret gets an unsigned request."""
        await subscriptions.save(
            WebhookSubscription(tenant_id="tenant-1", url=TENANT_URL, secret=None)
        )
        token = sign_queue_request(job_body, SIGNING_KEY)
        post = AsyncMock(return_value=_ok())

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = post
            result = await worker.handle(job_body, token)

        assert result.status_code == 200
        assert SIGNATURE_HEADER not in post.await_args.kwargs["headers"]


# ============================================================================
# Failure Tests
# ============================================================================


class TestFailures:
    """Tests for failure responses to the queue."""

    @pytest.mark.asyncio
    async def test_malformed_job_is_terminal(self, worker):
        """Test a body that is not a job returns 400 and asks for no retry."""
        body = b'{"tenant_id": "tenant-1"}'
        token = sign_queue_request(body, SIGNING_KEY)

        with patch("httpx.AsyncClient") as mock_client:
            result = await worker.handle(body, token)

        assert result.status_code == 400
        assert result.outcome is DeliveryOutcome.MALFORMED
        assert result.headers[NON_RETRYABLE_HEADER] == "true"
        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_2xx_asks_for_retry(self, worker, job_body):
        """Test a tenant error response maps to 500 so the queue retries."""
        token = sign_queue_request(job_body, SIGNING_KEY)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                return_value=_ok(404)
            )
            result = await worker.handle(job_body, token)

        assert result.status_code == 500
        assert result.outcome is DeliveryOutcome.FAILED
        assert result.destination_status == 404
        assert result.success is False

    @pytest.mark.asyncio
    async def test_timeout_asks_for_retry(self, worker, job_body):
        """Test a timeout maps to 500."""
        token = sign_queue_request(job_body, SIGNING_KEY)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.TimeoutException("Timeout")
            )
            result = await worker.handle(job_body, token)

        assert result.status_code == 500
        assert result.detail == "Request timeout"

    @pytest.mark.asyncio
    async def test_connection_error_asks_for_retry(self, worker, job_body):
        """Test a connection error maps to 500."""
        token = sign_queue_request(job_body, SIGNING_KEY)

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.post = AsyncMock(
                side_effect=httpx.ConnectError("refused")
            )
            result = await worker.handle(job_body, token)

        assert result.status_code == 500
        assert "Connection error" in result.detail
