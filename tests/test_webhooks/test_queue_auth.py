"""Tests for queue call authentication."""

import time

import jwt
import pytest

from statusflow.errors import QueueSignatureError
from statusflow.webhooks.queue_auth import (
    QUEUE_ISSUER,
    QueueSignatureVerifier,
    body_digest,
    sign_queue_request,
)

CURRENT_KEY = "sig_current_0123456789abcdef0123456789abcdef"
NEXT_KEY = "sig_next_0123456789abcdef0123456789abcdef0123"
OTHER_KEY = "sig_other_0123456789abcdef0123456789abcdef012"
WORKER_URL = "https://api.example.com/webhooks/delivery"
BODY = b'{"tenant_id":"tenant-1","payload":{}}'


@pytest.fixture
def verifier():
    """Verifier with current and next keys."""
    return QueueSignatureVerifier(CURRENT_KEY, NEXT_KEY)


class TestBodyDigest:
    """Tests for body_digest."""

    def test_digest_is_unpadded_base64url(self):
        """Test the digest has no padding and URL-safe characters."""
        digest = body_digest(BODY)

        assert "=" not in digest
        assert "+" not in digest
        assert "/" not in digest
        assert len(digest) == 43


class TestQueueSignatureVerifier:
    """Tests for QueueSignatureVerifier."""

    def test_current_key_accepted(self, verifier):
        """Test a token signed with the current key verifies."""
        token = sign_queue_request(BODY, CURRENT_KEY, url=WORKER_URL)

        claims = verifier.verify(token, BODY, url=WORKER_URL)

        assert claims["iss"] == QUEUE_ISSUER
        assert claims["sub"] == WORKER_URL

    def test_next_key_accepted(self, verifier):
        """Test a token signed with the next key verifies after rotation."""
        token = sign_queue_request(BODY, NEXT_KEY)

        assert verifier.verify(token, BODY)["body"] == body_digest(BODY)

    def test_unknown_key_rejected(self, verifier):
        """Test a token signed with another key is rejected."""
        token = sign_queue_request(BODY, OTHER_KEY)

        with pytest.raises(QueueSignatureError):
            verifier.verify(token, BODY)

    def test_missing_signature_rejected(self, verifier):
        """Test a missing header is rejected."""
        with pytest.raises(QueueSignatureError) as exc_info:
            verifier.verify(None, BODY)

        assert exc_info.value.status_code == 401

    def test_tampered_body_rejected(self, verifier):
        """Test a signature for another body is rejected."""
        token = sign_queue_request(BODY, CURRENT_KEY)

        with pytest.raises(QueueSignatureError):
            verifier.verify(token, BODY + b" ")

    def test_wrong_url_rejected(self, verifier):
        """Test a token bound to another endpoint is rejected."""
        token = sign_queue_request(BODY, CURRENT_KEY, url="https://evil.example.com/")

        with pytest.raises(QueueSignatureError):
            verifier.verify(token, BODY, url=WORKER_URL)

    def test_expired_token_rejected(self, verifier):
        """Test an expired token is rejected."""
        token = sign_queue_request(BODY, CURRENT_KEY, now=int(time.time()) - 3600)

        with pytest.raises(QueueSignatureError):
            verifier.verify(token, BODY)

    def test_wrong_issuer_rejected(self, verifier):
        """Test a token from another issuer is rejected."""
        now = int(time.time())
        token = jwt.encode(
            {"iss": "someone", "nbf": now, "exp": now + 60, "body": body_digest(BODY)},
            CURRENT_KEY,
            algorithm="HS256",
        )

        with pytest.raises(QueueSignatureError):
            verifier.verify(token, BODY)

    def test_garbage_token_rejected(self, verifier):
        """Test a non-JWT value is rejected."""
        with pytest.raises(QueueSignatureError):
            verifier.verify("not-a-jwt", BODY)

    def test_disabled_without_keys(self):
        """Test a verifier without keys is disabled and returns no claims."""
        verifier = QueueSignatureVerifier(None, "")

        assert verifier.enabled is False
        assert verifier.verify(None, BODY) == {}
