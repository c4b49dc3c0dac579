"""Signed webhook delivery through a durable queue.

This module provides:
- WebhookSubscription: A tenant's endpoint URL and signing secret
- DeliveryQueue: Enqueue client for the external durable queue
- QueueSignatureVerifier: Authentication of calls made by the queue
- WebhookDeliveryWorker: One signed delivery per queue invocation
- DeadLetterStore: Log of jobs the queue gave up on
- HMAC signature generation and verification
"""

from statusflow.webhooks.dead_letters import DeadLetter, DeadLetterStore, parse_failure_callback
from statusflow.webhooks.queue import (
    DeliveryQueue,
    InMemoryDeliveryQueue,
    QStashDeliveryQueue,
    QueuedDeliveryJob,
)
from statusflow.webhooks.queue_auth import QueueSignatureVerifier, sign_queue_request
from statusflow.webhooks.security import (
    SignedEnvelope,
    build_signed_envelope,
    generate_signature,
    verify_signature,
)
from statusflow.webhooks.subscriptions import (
    InMemoryWebhookSubscriptionRepository,
    WebhookSubscription,
    WebhookSubscriptionRepository,
    generate_secret,
)
from statusflow.webhooks.worker import DeliveryOutcome, DeliveryResult, WebhookDeliveryWorker

__all__ = [
    # Subscriptions
    "InMemoryWebhookSubscriptionRepository",
    "WebhookSubscription",
    "WebhookSubscriptionRepository",
    "generate_secret",
    # Queue
    "DeliveryQueue",
    "InMemoryDeliveryQueue",
    "QStashDeliveryQueue",
    "QueuedDeliveryJob",
    "QueueSignatureVerifier",
    "sign_queue_request",
    # Worker
    "DeliveryOutcome",
    "DeliveryResult",
    "WebhookDeliveryWorker",
    # Dead letters
    "DeadLetter",
    "DeadLetterStore",
    "parse_failure_callback",
    # Security
    "SignedEnvelope",
    "build_signed_envelope",
    "generate_signature",
    "verify_signature",
]
