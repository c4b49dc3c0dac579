"""Dead-letter log for webhook jobs the queue gave up on.

When the queue exhausts its retry budget it calls the failure callback with
the last worker response and the original job. Those calls land here so that
lost events are recorded and visible instead of silently dropped.
"""

import base64
import binascii
import json
import os
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import BaseModel, Field, ValidationError

from statusflow.errors import MalformedJobError
from statusflow.webhooks.queue import QueuedDeliveryJob

logger = structlog.get_logger(__name__)

DEFAULT_DB_PATH = "./data/notifications.db"

RESPONSE_BODY_LIMIT = 1000


class DeadLetter(BaseModel):
    """A webhook job that was never delivered."""

    id: str = Field(
        default_factory=lambda: f"dlq_{uuid.uuid4().hex[:12]}",
        description="Unique dead-letter identifier",
    )
    tenant_id: str | None = Field(default=None, description="Owning tenant, if decodable")
    event_id: str | None = Field(default=None, description="Event that was not delivered")
    event_type: str | None = Field(default=None, description="Type of that event")
    message_id: str | None = Field(default=None, description="Queue message identifier")
    url: str | None = Field(default=None, description="Endpoint the queue last called")
    response_status: int | None = Field(default=None, description="Last worker status")
    response_body: str | None = Field(default=None, description="Last worker body (truncated)")
    retried: int = Field(default=0, description="Retries the queue made")
    payload: dict[str, Any] = Field(default_factory=dict, description="Original job")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the dead letter was recorded",
    )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _b64_text(value: Any) -> str | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return base64.b64decode(value).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return value


def parse_failure_callback(body: bytes) -> DeadLetter:
    """Turn a queue failure callback into a DeadLetter.

    Args:
        body: Raw callback body.

    Returns:
        DeadLetter. When the original job cannot be decoded, tenant and event
        fields are None and the payload keeps the raw source text.

    Raises:
        MalformedJobError: If the callback itself is not a JSON object.
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise MalformedJobError("Failure callback is not valid JSON") from e
    if not isinstance(data, dict):
        raise MalformedJobError("Failure callback must be a JSON object")

    dead_letter = DeadLetter(
        message_id=_as_str(data.get("sourceMessageId")),
        url=_as_str(data.get("url")),
        response_status=_as_int(data.get("status")),
        response_body=(_b64_text(data.get("body")) or "")[:RESPONSE_BODY_LIMIT] or None,
        retried=_as_int(data.get("retried")) or 0,
    )

    source = _b64_text(data.get("sourceBody"))
    if source is None:
        return dead_letter

    try:
        job = QueuedDeliveryJob.model_validate_json(source)
    except ValidationError:
        raw_source = source[:RESPONSE_BODY_LIMIT]
        logger.warning(
            "dead_letter_source_undecodable",
            message_id=dead_letter.message_id,
            raw_source=raw_source,
        )
        return dead_letter.model_copy(update={"payload": {"raw_source": raw_source}})

    return dead_letter.model_copy(
        update={
            "tenant_id": job.tenant_id,
            "event_id": job.payload.id,
            "event_type": job.payload.event_type.value,
            "payload": job.to_json_dict(),
        }
    )


class DeadLetterStore:
    """SQLite-backed dead-letter log."""

    def __init__(self, db_path: str | None = None) -> None:
        """Initialize the dead-letter store.

        Args:
            db_path: Path to SQLite database file.
                    Defaults to NOTIFICATIONS_DB_PATH env var or ./data/notifications.db
        """
        self._db_path = db_path or os.environ.get("NOTIFICATIONS_DB_PATH", DEFAULT_DB_PATH)
        self._connection: aiosqlite.Connection | None = None
        self._logger = logger.bind(component="dead_letter_store")

    async def initialize(self) -> None:
        """Initialize the database and create tables."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS webhook_dead_letters (
                id TEXT PRIMARY KEY,
                tenant_id TEXT,
                event_id TEXT,
                event_type TEXT,
                message_id TEXT,
                url TEXT,
                response_status INTEGER,
                response_body TEXT,
                retried INTEGER NOT NULL DEFAULT 0,
                payload TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_dead_letters_tenant
            ON webhook_dead_letters(tenant_id, created_at DESC)
        """)
        await self._connection.commit()
        self._logger.info("dead_letter_store_initialized", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def record(self, dead_letter: DeadLetter) -> DeadLetter:
        """Persist a dead letter.

        Args:
            dead_letter: Dead letter to store.

        Returns:
            The stored dead letter.
        """
        assert self._connection is not None

        await self._connection.execute(
            """
            INSERT INTO webhook_dead_letters
            (id, tenant_id, event_id, event_type, message_id, url, response_status,
             response_body, retried, payload, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                dead_letter.id,
                dead_letter.tenant_id,
                dead_letter.event_id,
                dead_letter.event_type,
                dead_letter.message_id,
                dead_letter.url,
                dead_letter.response_status,
                dead_letter.response_body,
                dead_letter.retried,
                json.dumps(dead_letter.payload),
                dead_letter.created_at.isoformat(),
            ),
        )
        await self._connection.commit()

        self._logger.error(
            "webhook_dead_lettered",
            dead_letter_id=dead_letter.id,
            tenant_id=dead_letter.tenant_id,
            event_id=dead_letter.event_id,
            response_status=dead_letter.response_status,
            retried=dead_letter.retried,
        )
        return dead_letter

    async def list_for_tenant(self, tenant_id: str, *, limit: int = 50) -> list[DeadLetter]:
        """List a tenant's dead letters, newest first."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            """
            SELECT * FROM webhook_dead_letters
            WHERE tenant_id = ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (tenant_id, limit),
        )
        rows = await cursor.fetchall()
        return [
            DeadLetter(
                id=row["id"],
                tenant_id=row["tenant_id"],
                event_id=row["event_id"],
                event_type=row["event_type"],
                message_id=row["message_id"],
                url=row["url"],
                response_status=row["response_status"],
                response_body=row["response_body"],
                retried=row["retried"],
                payload=json.loads(row["payload"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
