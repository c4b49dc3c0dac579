"""Tests for the error hierarchy."""

import pytest

from statusflow.errors import (
    ChannelDeliveryError,
    EntityNotFoundError,
    MalformedJobError,
    QueuePublishError,
    QueueSignatureError,
    StaleStateError,
    StatusFlowError,
    TransitionRejectedError,
)


class TestStatusFlowError:
    """Tests for the base error."""

    def test_to_dict(self):
        """Test conversion for logging and responses."""
        error = StatusFlowError("boom", details={"a": 1})

        assert error.to_dict() == {
            "error_type": "StatusFlowError",
            "message": "boom",
            "details": {"a": 1},
            "recoverable": False,
        }
        assert error.status_code == 500


class TestSubclasses:
    """Tests for status codes and recoverability of subclasses."""

    def test_transition_rejected(self):
        """Test the rejection carries the allowed next states."""
        error = TransitionRejectedError(
            entity_kind="order",
            current_state="pending",
            requested_state="delivered",
            reason="illegal_transition",
            allowed_next=("cancelled", "confirmed"),
        )

        assert error.status_code == 400
        assert "pending" in error.message
        assert error.details["reason"] == "illegal_transition"
        assert list(error.details["allowed_next"]) == ["cancelled", "confirmed"]

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [
            (StaleStateError(entity_kind="order", entity_id="o1", expected_state="pending"), 409),
            (EntityNotFoundError(entity_kind="order", entity_id="o1"), 404),
            (QueueSignatureError("bad signature"), 401),
            (MalformedJobError("bad job"), 400),
        ],
    )
    def test_status_codes(self, error, status_code):
        """Test each error maps to its HTTP status."""
        assert error.status_code == status_code
        assert isinstance(error, StatusFlowError)

    def test_stale_state_is_recoverable(self):
        """Test a lost race may succeed on retry."""
        assert StaleStateError(
            entity_kind="order", entity_id="o1", expected_state="pending"
        ).recoverable is True

    def test_queue_publish_recoverability(self):
        """Test 4xx publish failures are not recoverable but 5xx and network are."""
        assert QueuePublishError("rejected", status_code=401).recoverable is False
        assert QueuePublishError("unavailable", status_code=503).recoverable is True
        assert QueuePublishError("unreachable").recoverable is True

    def test_channel_delivery_error(self):
        """Test the channel name is kept."""
        error = ChannelDeliveryError("webhook", "queue down")

        assert error.channel == "webhook"
        assert error.recoverable is True
