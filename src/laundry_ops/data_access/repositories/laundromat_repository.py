"""
Laundromat Repository - Partner laundromats and their service areas.

Service areas are stored one row per (laundromat, postal code) so the
routing lookup is a single indexed join.
"""

import sqlite3

from ...domain.entities import Laundromat
from ..database import Database


class LaundromatRepository:
    """Repository for laundromat storage and coverage lookups."""

    def __init__(self, database: Database):
        self._db = database

    def save(self, laundromat: Laundromat, conn: sqlite3.Connection | None = None) -> None:
        """
        Insert or update a laundromat and replace its service area.

        Args:
            laundromat: Laundromat to save
            conn: Optional connection of an enclosing transaction
        """
        with self._db.transaction(conn) as c:
            c.execute(
                """
                INSERT INTO laundromats (laundromat_id, name, daily_capacity, is_active)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(laundromat_id) DO UPDATE SET
                    name = excluded.name,
                    daily_capacity = excluded.daily_capacity,
                    is_active = excluded.is_active
                """,
                (
                    laundromat.laundromat_id,
                    laundromat.name,
                    laundromat.daily_capacity,
                    int(laundromat.is_active),
                ),
            )
            c.execute(
                "DELETE FROM laundromat_service_areas WHERE laundromat_id = ?",
                (laundromat.laundromat_id,),
            )
            c.executemany(
                "INSERT INTO laundromat_service_areas (laundromat_id, postal_code) VALUES (?, ?)",
                [(laundromat.laundromat_id, code) for code in sorted(laundromat.service_postal_codes)],
            )

    def set_active(self, laundromat_id: str, is_active: bool) -> bool:
        """
        Flip a laundromat's active flag.

        Existing order assignments are untouched; only new routing looks
        at the flag.

        Returns:
            True if the laundromat exists
        """
        with self._db.transaction() as c:
            cursor = c.execute(
                "UPDATE laundromats SET is_active = ? WHERE laundromat_id = ?",
                (int(is_active), laundromat_id),
            )
            return cursor.rowcount > 0

    def find_by_id(self, laundromat_id: str, conn: sqlite3.Connection | None = None) -> Laundromat | None:
        with self._db.connect(conn) as c:
            row = c.execute(
                "SELECT laundromat_id, name, daily_capacity, is_active FROM laundromats WHERE laundromat_id = ?",
                (laundromat_id,),
            ).fetchone()
            if not row:
                return None
            return self._row_to_laundromat(row, self._postal_codes(c, laundromat_id))

    def list_covering(
        self,
        postal_code: str,
        active_only: bool = True,
        conn: sqlite3.Connection | None = None,
    ) -> list[Laundromat]:
        """
        Get laundromats whose service area contains a postal code.

        Args:
            postal_code: 5-digit postal code
            active_only: Skip deactivated laundromats
            conn: Optional connection of an enclosing transaction

        Returns:
            Matching laundromats, ordered by id
        """
        query = """
            SELECT l.laundromat_id, l.name, l.daily_capacity, l.is_active
            FROM laundromat_service_areas sa
            JOIN laundromats l ON l.laundromat_id = sa.laundromat_id
            WHERE sa.postal_code = ?
        """
        if active_only:
            query += " AND l.is_active = 1"
        query += " ORDER BY l.laundromat_id"

        with self._db.connect(conn) as c:
            rows = c.execute(query, (postal_code,)).fetchall()
            return [
                self._row_to_laundromat(row, self._postal_codes(c, row["laundromat_id"]))
                for row in rows
            ]

    def list_all(self) -> list[Laundromat]:
        """
        Get all laundromats, active or not.

        Returns:
            List of laundromats ordered by name
        """
        with self._db.connect() as c:
            rows = c.execute(
                "SELECT laundromat_id, name, daily_capacity, is_active FROM laundromats ORDER BY name"
            ).fetchall()
            return [
                self._row_to_laundromat(row, self._postal_codes(c, row["laundromat_id"]))
                for row in rows
            ]

    def count(self) -> int:
        with self._db.connect() as c:
            return c.execute("SELECT COUNT(*) FROM laundromats").fetchone()[0]

    @staticmethod
    def _postal_codes(conn: sqlite3.Connection, laundromat_id: str) -> frozenset[str]:
        rows = conn.execute(
            "SELECT postal_code FROM laundromat_service_areas WHERE laundromat_id = ?",
            (laundromat_id,),
        ).fetchall()
        return frozenset(row["postal_code"] for row in rows)

    @staticmethod
    def _row_to_laundromat(row: sqlite3.Row, postal_codes: frozenset[str]) -> Laundromat:
        return Laundromat(
            laundromat_id=row["laundromat_id"],
            name=row["name"],
            service_postal_codes=postal_codes,
            daily_capacity=row["daily_capacity"],
            is_active=bool(row["is_active"]),
        )
