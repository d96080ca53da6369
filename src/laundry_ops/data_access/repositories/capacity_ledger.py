"""
Capacity Ledger - Per-laundromat, per-day order counters.

A CapacityDay row is created lazily the first time a day is touched,
with the laundromat's current ceiling. Reservation is a single
conditional UPDATE, so two concurrent order creations can never both
take the last slot.
"""

import logging
import sqlite3
from datetime import date

from ...domain.entities import CapacityDay
from ...domain.errors import CapacityExceeded, LaundromatNotFound
from ..database import Database

logger = logging.getLogger(__name__)


class CapacityLedger:
    """
    Books and releases daily order slots.

    Meant to be called inside the caller's transaction (pass ``conn``) so
    the slot and the order that uses it commit or roll back together.
    """

    def __init__(self, database: Database):
        self._db = database

    def reserve(self, laundromat_id: str, day: date, conn: sqlite3.Connection | None = None) -> CapacityDay:
        """
        Take one slot for a laundromat on a day.

        Args:
            laundromat_id: Laundromat to book
            day: Pickup date
            conn: Optional connection of an enclosing transaction

        Returns:
            CapacityDay after the increment

        Raises:
            CapacityExceeded: The day's ceiling is already reached
            LaundromatNotFound: Unknown laundromat id
        """
        with self._db.transaction(conn) as c:
            self._open_day(c, laundromat_id, day)
            cursor = c.execute(
                """
                UPDATE capacity_days
                SET consumed = consumed + 1
                WHERE laundromat_id = ? AND day = ? AND consumed < ceiling
                """,
                (laundromat_id, day.isoformat()),
            )
            if cursor.rowcount == 0:
                raise CapacityExceeded(laundromat_id, day)

            snapshot = self._read(c, laundromat_id, day)
            logger.debug(
                "[CAPACITY] Reserved %s on %s (%d/%d)",
                laundromat_id, day, snapshot.consumed, snapshot.ceiling,
            )
            return snapshot

    def release(self, laundromat_id: str, day: date, conn: sqlite3.Connection | None = None) -> None:
        """
        Give back one slot (cancellations, reassignment).

        Never drops below zero; releasing an untouched day is a no-op.
        """
        with self._db.transaction(conn) as c:
            c.execute(
                """
                UPDATE capacity_days
                SET consumed = consumed - 1
                WHERE laundromat_id = ? AND day = ? AND consumed > 0
                """,
                (laundromat_id, day.isoformat()),
            )
        logger.debug("[CAPACITY] Released %s on %s", laundromat_id, day)

    def snapshot(
        self,
        laundromat_id: str,
        day: date,
        default_ceiling: int,
        conn: sqlite3.Connection | None = None,
    ) -> CapacityDay:
        """
        Read a day's counter without creating it.

        Args:
            laundromat_id: Laundromat to inspect
            day: Calendar day
            default_ceiling: Ceiling to report for a day not yet opened

        Returns:
            CapacityDay (consumed=0 if the day has no row yet)
        """
        with self._db.connect(conn) as c:
            existing = self._read(c, laundromat_id, day)
            if existing is not None:
                return existing
            return CapacityDay(laundromat_id=laundromat_id, day=day, consumed=0, ceiling=default_ceiling)

    @staticmethod
    def _open_day(conn: sqlite3.Connection, laundromat_id: str, day: date) -> None:
        """Create the day's row from the laundromat's ceiling if missing."""
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO capacity_days (laundromat_id, day, consumed, ceiling)
            SELECT laundromat_id, ?, 0, daily_capacity
            FROM laundromats WHERE laundromat_id = ?
            """,
            (day.isoformat(), laundromat_id),
        )
        if cursor.rowcount == 0:
            exists = conn.execute(
                "SELECT 1 FROM laundromats WHERE laundromat_id = ?", (laundromat_id,)
            ).fetchone()
            if not exists:
                raise LaundromatNotFound(laundromat_id)

    @staticmethod
    def _read(conn: sqlite3.Connection, laundromat_id: str, day: date) -> CapacityDay | None:
        row = conn.execute(
            "SELECT consumed, ceiling FROM capacity_days WHERE laundromat_id = ? AND day = ?",
            (laundromat_id, day.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return CapacityDay(
            laundromat_id=laundromat_id,
            day=day,
            consumed=row["consumed"],
            ceiling=row["ceiling"],
        )
