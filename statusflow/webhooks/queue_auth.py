"""Authentication of calls made by the durable queue.

The queue signs each call to the delivery worker with a short-lived HS256 JWT
in the ``Upstash-Signature`` header. The token binds the call to the worker
URL (``sub``) and to the exact request body (``body`` = base64url SHA-256).

Two keys are configured so the queue can rotate its signing key without a
delivery outage: verification tries the current key, then the next key.
"""

import base64
import hashlib
import hmac
import time
import uuid
from typing import Any

import jwt
import structlog

from statusflow.errors import QueueSignatureError

logger = structlog.get_logger(__name__)

QUEUE_SIGNATURE_HEADER = "Upstash-Signature"
QUEUE_ISSUER = "Upstash"

# Allowed clock skew between queue and worker
CLOCK_TOLERANCE_SECONDS = 10

# Lifetime of tokens produced by sign_queue_request
TOKEN_TTL_SECONDS = 300


def body_digest(body: bytes) -> str:
    """Unpadded base64url SHA-256 of a request body."""
    digest = hashlib.sha256(body).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def sign_queue_request(
    body: bytes,
    key: str,
    *,
    url: str = "",
    now: int | None = None,
    ttl_seconds: int = TOKEN_TTL_SECONDS,
) -> str:
    """Produce a queue signature for a body, as the queue service does.

    Used by local tooling and tests to call the worker.

    Args:
        body: Raw request body.
        key: Signing key.
        url: Worker URL the token is bound to.
        now: Optional issue time (Unix seconds).
        ttl_seconds: Token lifetime.

    Returns:
        Encoded JWT.
    """
    issued_at = int(time.time()) if now is None else now
    claims = {
        "iss": QUEUE_ISSUER,
        "sub": url,
        "iat": issued_at,
        "nbf": issued_at,
        "exp": issued_at + ttl_seconds,
        "jti": f"jwt_{uuid.uuid4().hex}",
        "body": body_digest(body),
    }
    return jwt.encode(claims, key, algorithm="HS256")


class QueueSignatureVerifier:
    """Verifies queue signatures with current/next key fallback.

    Example:
        verifier = QueueSignatureVerifier(current_key, next_key)
        verifier.verify(request.headers.get(QUEUE_SIGNATURE_HEADER), raw_body, url=url)
    """

    def __init__(
        self,
        current_key: str | None,
        next_key: str | None = None,
        *,
        clock_tolerance: int = CLOCK_TOLERANCE_SECONDS,
    ) -> None:
        """Initialize the verifier.

        Args:
            current_key: Key the queue signs with now.
            next_key: Key the queue will sign with after rotation.
            clock_tolerance: Leeway in seconds for exp/nbf checks.
        """
        self._keys = [key for key in (current_key, next_key) if key]
        self._clock_tolerance = clock_tolerance
        self._logger = logger.bind(component="queue_signature_verifier")

    @property
    def enabled(self) -> bool:
        """Whether any signing key is configured."""
        return bool(self._keys)

    def verify(
        self,
        signature: str | None,
        body: bytes,
        *,
        url: str | None = None,
    ) -> dict[str, Any]:
        """Verify a queue signature.

        Args:
            signature: Value of the signature header (None if absent).
            body: Raw request body.
            url: If set, the token's ``sub`` must equal it.

        Returns:
            Decoded claims; empty when verification is disabled.

        Raises:
            QueueSignatureError: If the signature is missing or no key verifies it.
        """
        if not self.enabled:
            return {}

        if not signature:
            self._logger.warning("queue_signature_missing")
            raise QueueSignatureError(f"Missing {QUEUE_SIGNATURE_HEADER} header")

        last_error: Exception | None = None
        for index, key in enumerate(self._keys):
            try:
                claims = self._verify_with_key(signature, body, key, url)
            except (jwt.InvalidTokenError, QueueSignatureError) as e:
                last_error = e
                continue

            if index > 0:
                self._logger.info("queue_signature_verified_with_next_key")
            return claims

        self._logger.warning("queue_signature_invalid", error=str(last_error))
        raise QueueSignatureError("Invalid queue signature")

    def _verify_with_key(
        self, token: str, body: bytes, key: str, url: str | None
    ) -> dict[str, Any]:
        claims: dict[str, Any] = jwt.decode(
            token,
            key,
            algorithms=["HS256"],
            issuer=QUEUE_ISSUER,
            leeway=self._clock_tolerance,
            options={"require": ["iss", "exp", "nbf", "body"]},
        )

        if url is not None and claims.get("sub") != url:
            raise QueueSignatureError("Signature bound to a different URL")

        claimed = str(claims.get("body", "")).rstrip("=")
        if not hmac.compare_digest(claimed, body_digest(body)):
            raise QueueSignatureError("Signature does not match body")

        return claims
