"""
Notification Outbox - Undelivered notifications waiting for a retry.

A row is written when the dispatcher gives up on an event after the
order change was already committed. Rows are never deleted; a successful
retry flips ``delivered``.
"""

import json
import sqlite3
from datetime import datetime

from ...domain.entities import NotificationFailure
from ..database import Database


class NotificationRepository:
    """Repository for the notification outbox table."""

    def __init__(self, database: Database):
        self._db = database

    def record_failure(
        self,
        order_id: str,
        kind: str,
        payload: dict,
        error: str,
        now: datetime,
    ) -> int:
        """
        Store a failed notification.

        Returns:
            The new outbox row id
        """
        with self._db.transaction() as c:
            cursor = c.execute(
                """
                INSERT INTO notification_outbox
                    (order_id, kind, payload, last_error, attempts, delivered, created_at, updated_at)
                VALUES (?, ?, ?, ?, 1, 0, ?, ?)
                """,
                (order_id, kind, json.dumps(payload, default=str), error, now.isoformat(), now.isoformat()),
            )
            return cursor.lastrowid

    def pending(self, max_attempts: int | None = None) -> list[NotificationFailure]:
        """
        Get undelivered notifications, oldest first.

        Args:
            max_attempts: Skip rows that already failed this many times
        """
        query = "SELECT * FROM notification_outbox WHERE delivered = 0"
        params: list = []
        if max_attempts is not None:
            query += " AND attempts < ?"
            params.append(max_attempts)
        query += " ORDER BY failure_id"

        with self._db.connect() as c:
            return [self._row_to_failure(row) for row in c.execute(query, params).fetchall()]

    def mark_delivered(self, failure_id: int, now: datetime) -> None:
        with self._db.transaction() as c:
            c.execute(
                "UPDATE notification_outbox SET delivered = 1, updated_at = ? WHERE failure_id = ?",
                (now.isoformat(), failure_id),
            )

    def increment_attempts(
        self,
        failure_id: int,
        error: str,
        now: datetime,
        payload: dict | None = None,
    ) -> None:
        """
        Count another failed attempt and keep the latest error.

        When ``payload`` is given it replaces the stored one.
        """
        with self._db.transaction() as c:
            c.execute(
                """
                UPDATE notification_outbox
                SET attempts = attempts + 1, last_error = ?, updated_at = ?
                WHERE failure_id = ?
                """,
                (error, now.isoformat(), failure_id),
            )
            if payload is not None:
                c.execute(
                    "UPDATE notification_outbox SET payload = ? WHERE failure_id = ?",
                    (json.dumps(payload, default=str), failure_id),
                )

    def count_pending(self) -> int:
        with self._db.connect() as c:
            return c.execute("SELECT COUNT(*) FROM notification_outbox WHERE delivered = 0").fetchone()[0]

    @staticmethod
    def _row_to_failure(row: sqlite3.Row) -> NotificationFailure:
        return NotificationFailure(
            failure_id=row["failure_id"],
            order_id=row["order_id"],
            kind=row["kind"],
            payload=json.loads(row["payload"]),
            last_error=row["last_error"] or "",
            attempts=row["attempts"],
            delivered=bool(row["delivered"]),
        )
