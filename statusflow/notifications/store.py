"""SQLite-based store for in-app notifications.

Rows are inserted by the in-app channel and read by the tenant dashboard.
The only mutation after insert is marking rows read; nothing here deletes.
"""

import json
import os
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from statusflow.events.models import DomainEventType
from statusflow.notifications.models import StoredNotification

logger = structlog.get_logger(__name__)

# Default database path
DEFAULT_DB_PATH = "./data/notifications.db"

DEFAULT_LIST_LIMIT = 50


class NotificationStore:
    """SQLite-backed storage for in-app notifications.

    Listing always returns unread before read, newest first within each
    group.

    Example:
        store = NotificationStore()
        await store.initialize()
        await store.save(notification)
        unread = await store.list_for_tenant("tenant-1", unread_only=True)
    """

    def __init__(self, db_path: str | None = None) -> None:
        """Initialize the notification store.

        Args:
            db_path: Path to SQLite database file.
                    Defaults to NOTIFICATIONS_DB_PATH env var or ./data/notifications.db
        """
        self._db_path = db_path or os.environ.get("NOTIFICATIONS_DB_PATH", DEFAULT_DB_PATH)
        self._connection: aiosqlite.Connection | None = None
        self._logger = logger.bind(component="notification_store")

    async def initialize(self) -> None:
        """Initialize the database and create tables."""
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._create_tables()
        self._logger.info("notification_store_initialized", db_path=self._db_path)

    async def _create_tables(self) -> None:
        """Create the notifications table if it doesn't exist."""
        assert self._connection is not None

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS notifications (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                body TEXT NOT NULL,
                data TEXT NOT NULL,
                is_read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)
        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_notifications_tenant_listing
            ON notifications(tenant_id, is_read, created_at DESC)
        """)
        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def save(self, notification: StoredNotification) -> StoredNotification:
        """Insert a notification.

        Args:
            notification: Notification to store.

        Returns:
            The stored notification.
        """
        assert self._connection is not None

        await self._connection.execute(
            """
            INSERT INTO notifications
            (id, tenant_id, type, title, body, data, is_read, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification.id,
                notification.tenant_id,
                notification.type.value,
                notification.title,
                notification.body,
                json.dumps(notification.data),
                int(notification.is_read),
                notification.created_at.isoformat(),
            ),
        )
        await self._connection.commit()

        self._logger.debug(
            "notification_saved",
            notification_id=notification.id,
            tenant_id=notification.tenant_id,
            type=notification.type.value,
        )
        return notification

    async def get(self, tenant_id: str, notification_id: str) -> StoredNotification | None:
        """Get one of a tenant's notifications by ID."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            "SELECT * FROM notifications WHERE id = ? AND tenant_id = ?",
            (notification_id, tenant_id),
        )
        row = await cursor.fetchone()
        return self._row_to_notification(row) if row else None

    async def list_for_tenant(
        self,
        tenant_id: str,
        *,
        unread_only: bool = False,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> list[StoredNotification]:
        """List a tenant's notifications, unread first then newest first.

        Args:
            tenant_id: Owning tenant.
            unread_only: Only return unread notifications.
            limit: Maximum results.
            offset: Number of results to skip.

        Returns:
            Notifications in display order.
        """
        assert self._connection is not None

        query = "SELECT * FROM notifications WHERE tenant_id = ?"
        params: list[object] = [tenant_id]
        if unread_only:
            query += " AND is_read = 0"
        query += " ORDER BY is_read ASC, created_at DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        cursor = await self._connection.execute(query, params)
        rows = await cursor.fetchall()
        return [self._row_to_notification(row) for row in rows]

    async def unread_count(self, tenant_id: str) -> int:
        """Count a tenant's unread notifications."""
        assert self._connection is not None

        cursor = await self._connection.execute(
            "SELECT COUNT(*) FROM notifications WHERE tenant_id = ? AND is_read = 0",
            (tenant_id,),
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def mark_read(self, tenant_id: str, notification_ids: list[str]) -> int:
        """Mark specific notifications as read.

        Idempotent: rows already read, or owned by another tenant, are left
        untouched.

        Args:
            tenant_id: Owning tenant.
            notification_ids: Notifications to mark.

        Returns:
            Number of rows that changed from unread to read.
        """
        assert self._connection is not None

        if not notification_ids:
            return 0

        placeholders = ",".join("?" for _ in notification_ids)
        cursor = await self._connection.execute(
            f"UPDATE notifications SET is_read = 1 "  # noqa: S608
            f"WHERE tenant_id = ? AND is_read = 0 AND id IN ({placeholders})",
            (tenant_id, *notification_ids),
        )
        await self._connection.commit()

        self._logger.debug(
            "notifications_marked_read",
            tenant_id=tenant_id,
            requested=len(notification_ids),
            updated=cursor.rowcount,
        )
        return cursor.rowcount

    async def mark_all_read(self, tenant_id: str) -> int:
        """Mark every unread notification of a tenant as read.

        Returns:
            Number of rows that changed.
        """
        assert self._connection is not None

        cursor = await self._connection.execute(
            "UPDATE notifications SET is_read = 1 WHERE tenant_id = ? AND is_read = 0",
            (tenant_id,),
        )
        await self._connection.commit()

        self._logger.debug(
            "notifications_marked_all_read",
            tenant_id=tenant_id,
            updated=cursor.rowcount,
        )
        return cursor.rowcount

    def _row_to_notification(self, row: aiosqlite.Row) -> StoredNotification:
        """Convert a database row to a StoredNotification."""
        return StoredNotification(
            id=row["id"],
            tenant_id=row["tenant_id"],
            type=DomainEventType(row["type"]),
            title=row["title"],
            body=row["body"],
            data=json.loads(row["data"]),
            is_read=bool(row["is_read"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


# Global notification store instance
_store: NotificationStore | None = None


def get_notification_store() -> NotificationStore | None:
    """Get the global notification store, if one has been set."""
    return _store


def set_notification_store(store: NotificationStore | None) -> None:
    """Set the global notification store.

    Useful for testing.

    Args:
        store: NotificationStore instance, or None to clear.
    """
    global _store
    _store = store
