"""Tests for the dead-letter log."""

import base64
import json
import tempfile
from pathlib import Path

import pytest

from statusflow.errors import MalformedJobError
from statusflow.events.models import DomainEventType, build_event
from statusflow.webhooks.dead_letters import DeadLetterStore, parse_failure_callback
from statusflow.webhooks.queue import QueuedDeliveryJob


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.fixture
def job():
    """A delivery job the queue gave up on."""
    event = build_event(
        DomainEventType.ORDER_STATUS,
        "tenant-1",
        "ord-1",
        {"order_number": "1001", "previous_status": "pending", "new_status": "confirmed"},
    )
    return QueuedDeliveryJob(tenant_id="tenant-1", payload=event)


@pytest.fixture
def callback_body(job):
    """Failure callback as sent by the queue."""
    return json.dumps(
        {
            "status": 500,
            "body": _b64('{"detail":"HTTP 503"}'),
            "retried": 3,
            "maxRetries": 3,
            "sourceMessageId": "msg_123",
            "url": "https://api.example.com/webhooks/delivery",
            "sourceBody": _b64(job.serialize()),
        }
    ).encode("utf-8")


class TestParseFailureCallback:
    """Tests for parse_failure_callback."""

    def test_parses_job_and_response(self, callback_body, job):
        """Test the original job and last response are extracted."""
        dead_letter = parse_failure_callback(callback_body)

        assert dead_letter.id.startswith("dlq_")
        assert dead_letter.tenant_id == "tenant-1"
        assert dead_letter.event_id == job.payload.id
        assert dead_letter.event_type == "order_status"
        assert dead_letter.message_id == "msg_123"
        assert dead_letter.response_status == 500
        assert dead_letter.response_body == '{"detail":"HTTP 503"}'
        assert dead_letter.retried == 3
        assert dead_letter.payload == job.to_json_dict()

    def test_undecodable_source_kept_without_tenant(self):
        """Test a callback whose source body is not a job is still recorded."""
        body = json.dumps({"status": 500, "sourceBody": _b64("not json")}).encode()

        dead_letter = parse_failure_callback(body)

        assert dead_letter.tenant_id is None
        assert dead_letter.response_status == 500
        assert dead_letter.payload == {"raw_source": "not json"}

    def test_non_numeric_counters_do_not_fail(self):
        """Test odd status and retry values are recorded instead of raising."""
        body = json.dumps(
            {"status": "n/a", "retried": "many", "sourceMessageId": 7, "url": ["x"]}
        ).encode()

        dead_letter = parse_failure_callback(body)

        assert dead_letter.response_status is None
        assert dead_letter.retried == 0
        assert dead_letter.message_id is None
        assert dead_letter.url is None

    def test_numeric_strings_are_parsed(self):
        """Test counters sent as strings are kept."""
        body = json.dumps({"status": "502", "retried": "3"}).encode()

        dead_letter = parse_failure_callback(body)

        assert dead_letter.response_status == 502
        assert dead_letter.retried == 3

    def test_invalid_json_raises(self):
        """Test a non-JSON callback is malformed."""
        with pytest.raises(MalformedJobError):
            parse_failure_callback(b"nope")

    def test_non_object_raises(self):
        """Test a JSON array callback is malformed."""
        with pytest.raises(MalformedJobError):
            parse_failure_callback(b"[1, 2]")


class TestDeadLetterStore:
    """Tests for DeadLetterStore."""

    @pytest.fixture
    async def store(self) -> DeadLetterStore:
        """Create a temporary dead-letter store for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DeadLetterStore(db_path=str(Path(tmpdir) / "test_dead_letters.db"))
            await store.initialize()
            yield store
            await store.close()

    @pytest.mark.asyncio
    async def test_record_and_list(self, store: DeadLetterStore, callback_body) -> None:
        """Test recorded dead letters are listed for their tenant."""
        recorded = await store.record(parse_failure_callback(callback_body))

        listed = await store.list_for_tenant("tenant-1")

        assert [d.id for d in listed] == [recorded.id]
        assert listed[0].payload == recorded.payload
        assert listed[0].url == "https://api.example.com/webhooks/delivery"
        assert await store.list_for_tenant("tenant-2") == []
