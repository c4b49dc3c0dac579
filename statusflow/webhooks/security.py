"""Webhook security utilities.

Provides HMAC signature generation and verification for outbound webhook
payloads. The signature is HMAC-SHA256 over the exact body bytes that are
sent, hex encoded, so a receiver can recompute it from the raw request body
and its copy of the secret.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass

import structlog

from statusflow.events.models import DomainEvent

logger = structlog.get_logger(__name__)

# Outbound header names
SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
EVENT_HEADER = "X-Webhook-Event"

USER_AGENT = "StatusFlow-Webhook/1.0"


def generate_signature(body: str | bytes, secret: str) -> str:
    """Generate the HMAC-SHA256 signature of a webhook body.

    Args:
        body: Serialized payload exactly as sent.
        secret: Tenant's webhook secret.

    Returns:
        Hex-encoded signature.
    """
    body_bytes = body.encode("utf-8") if isinstance(body, str) else body
    return hmac.new(secret.encode("utf-8"), body_bytes, hashlib.sha256).hexdigest()


def verify_signature(body: str | bytes, signature: str, secret: str) -> bool:
    """Verify a webhook body against a claimed signature.

    Uses constant-time comparison to prevent timing attacks.

    Args:
        body: Raw body as received.
        signature: Claimed hex signature.
        secret: Shared webhook secret.

    Returns:
        True if the signature matches.
    """
    expected = generate_signature(body, secret)
    is_valid = hmac.compare_digest(signature, expected)

    if not is_valid:
        logger.warning("webhook_signature_invalid")

    return is_valid


@dataclass(frozen=True)
class SignedEnvelope:
    """One outbound webhook request, built fresh for each delivery attempt.

    Attributes:
        body: Serialized event, sent byte-for-byte.
        event_type: Event type header value.
        timestamp: Unix time the envelope was built.
        signature: Hex HMAC of ``body``; None when the tenant has no secret.
    """

    body: str
    event_type: str
    timestamp: int
    signature: str | None = None

    @property
    def headers(self) -> dict[str, str]:
        """HTTP headers for the outbound request."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            EVENT_HEADER: self.event_type,
            TIMESTAMP_HEADER: str(self.timestamp),
        }
        if self.signature is not None:
            headers[SIGNATURE_HEADER] = self.signature
        return headers


def build_signed_envelope(
    event: DomainEvent,
    secret: str | None,
    *,
    timestamp: int | None = None,
) -> SignedEnvelope:
    """Serialize and sign an event for delivery.

    Args:
        event: Event to deliver.
        secret: Tenant's current secret; None or empty sends unsigned.
        timestamp: Optional Unix timestamp (defaults to current time).

    Returns:
        SignedEnvelope ready to POST.
    """
    if timestamp is None:
        timestamp = int(time.time())

    body = event.serialize()
    signature = generate_signature(body, secret) if secret else None

    logger.debug(
        "webhook_envelope_built",
        event_id=event.id,
        signed=signature is not None,
        payload_length=len(body),
    )

    return SignedEnvelope(
        body=body,
        event_type=event.event_type.value,
        timestamp=timestamp,
        signature=signature,
    )
