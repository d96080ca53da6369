"""
Database - SQLite connection handling and schema management.

One connection per unit of work. Write transactions start with
``BEGIN IMMEDIATE`` so concurrent writers queue on the database lock
instead of interleaving read-then-write sequences.
"""

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS customers (
        customer_id TEXT PRIMARY KEY,
        email TEXT NOT NULL,
        full_name TEXT DEFAULT '',
        phone TEXT,
        auth_user_id TEXT UNIQUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_customers_email ON customers(email)",
    """
    CREATE TABLE IF NOT EXISTS laundromats (
        laundromat_id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        daily_capacity INTEGER NOT NULL DEFAULT 50 CHECK (daily_capacity >= 0),
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS laundromat_service_areas (
        laundromat_id TEXT NOT NULL REFERENCES laundromats(laundromat_id) ON DELETE CASCADE,
        postal_code TEXT NOT NULL,
        PRIMARY KEY (laundromat_id, postal_code)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_service_areas_postal_code ON laundromat_service_areas(postal_code)",
    """
    CREATE TABLE IF NOT EXISTS capacity_days (
        laundromat_id TEXT NOT NULL REFERENCES laundromats(laundromat_id),
        day TEXT NOT NULL,
        consumed INTEGER NOT NULL DEFAULT 0 CHECK (consumed >= 0),
        ceiling INTEGER NOT NULL,
        PRIMARY KEY (laundromat_id, day)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        order_id TEXT PRIMARY KEY,
        customer_id TEXT NOT NULL REFERENCES customers(customer_id),
        service_type TEXT NOT NULL,
        pricing_model TEXT NOT NULL,
        pickup_date TEXT NOT NULL,
        time_window_id TEXT NOT NULL,
        laundromat_id TEXT REFERENCES laundromats(laundromat_id),
        routing_method TEXT DEFAULT 'zip_match',
        status TEXT NOT NULL,
        subtotal_cents INTEGER NOT NULL,
        total_cents INTEGER NOT NULL CHECK (total_cents >= 0),
        currency TEXT NOT NULL DEFAULT 'usd',
        addons TEXT DEFAULT '[]',
        notes TEXT,
        is_member INTEGER NOT NULL DEFAULT 0,
        access_token TEXT NOT NULL UNIQUE,
        token_expires_at TEXT NOT NULL,
        pickup_line1 TEXT NOT NULL,
        pickup_line2 TEXT,
        pickup_city TEXT,
        pickup_state TEXT,
        pickup_postal_code TEXT NOT NULL,
        delivery_line1 TEXT NOT NULL,
        delivery_line2 TEXT,
        delivery_city TEXT,
        delivery_state TEXT,
        delivery_postal_code TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        picked_up_at TEXT,
        ready_for_delivery_at TEXT,
        delivered_at TEXT,
        measured_weight_lb REAL,
        pickup_photo TEXT,
        delivery_photo TEXT,
        delivery_notes TEXT,
        payment_status TEXT NOT NULL DEFAULT 'requires_payment',
        payment_intent_id TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_customer ON orders(customer_id)",
    "CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status)",
    "CREATE INDEX IF NOT EXISTS idx_orders_laundromat_day ON orders(laundromat_id, pickup_date)",
    """
    CREATE TABLE IF NOT EXISTS order_status_history (
        history_id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL REFERENCES orders(order_id),
        from_status TEXT,
        to_status TEXT NOT NULL,
        actor_role TEXT NOT NULL,
        actor_id TEXT,
        note TEXT,
        changed_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_history_order ON order_status_history(order_id)",
    """
    CREATE TRIGGER IF NOT EXISTS order_status_history_no_update
    BEFORE UPDATE ON order_status_history
    BEGIN
        SELECT RAISE(ABORT, 'order_status_history is append-only');
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS order_status_history_no_delete
    BEFORE DELETE ON order_status_history
    BEGIN
        SELECT RAISE(ABORT, 'order_status_history is append-only');
    END
    """,
    """
    CREATE TABLE IF NOT EXISTS notification_outbox (
        failure_id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        payload TEXT NOT NULL,
        last_error TEXT,
        attempts INTEGER NOT NULL DEFAULT 1,
        delivered INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
]

# Columns added after the first release. Older database files get them on
# startup; fresh databases get them here too.
ADDED_COLUMNS: list[tuple[str, str, str]] = [
    ("orders", "cancelled_at", "TEXT"),
    ("orders", "refund_amount_cents", "INTEGER"),
    ("orders", "refund_reason", "TEXT"),
    ("orders", "assigned_at", "TEXT"),
    ("orders", "authorized_cents", "INTEGER"),
]


class Database:
    """
    Thin wrapper around an SQLite database file.

    Creates tables on first use and migrates older files by adding any
    missing columns. ``":memory:"`` gives a private in-memory database
    that lives as long as this object.
    """

    def __init__(self, db_path: Path | str, timeout: float = 30.0):
        """
        Initialize database wrapper.

        Args:
            db_path: Path to SQLite database file or ":memory:" for in-memory DB
            timeout: Seconds a writer waits for the database lock
        """
        self._timeout = timeout
        self._anchor: sqlite3.Connection | None = None

        if str(db_path) == ":memory:":
            self._target = f"file:laundry_ops_{uuid.uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
            # Shared in-memory databases vanish when their last connection closes
            self._anchor = self._open()
        else:
            self._target = str(db_path)
            self._uri = False
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._ensure_database_exists()
        self._migrate_schema()

    @property
    def location(self) -> str:
        return self._target

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._target,
            timeout=self._timeout,
            uri=self._uri,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _ensure_database_exists(self) -> None:
        """Create tables, indexes and triggers if they don't exist."""
        with self.transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    def _migrate_schema(self) -> None:
        """
        Add new columns to existing databases that don't have them yet.

        This allows older database files to be upgraded automatically
        without losing existing data.
        """
        with self.transaction() as conn:
            for table, column, column_type in ADDED_COLUMNS:
                existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
                if column not in existing:
                    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
                    logger.info("[DB] Added column %s.%s", table, column)

    @contextmanager
    def connect(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """
        Yield a connection for reads.

        Reuses ``conn`` when the caller is already inside a transaction.
        """
        if conn is not None:
            yield conn
            return
        own = self._open()
        try:
            yield own
        finally:
            own.close()

    @contextmanager
    def transaction(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """
        Run a block as one write transaction.

        Nested use (passing the outer connection back in) joins the outer
        transaction rather than committing early. Any exception rolls the
        whole transaction back and propagates.
        """
        if conn is not None:
            yield conn
            return

        own = self._open()
        try:
            own.execute("BEGIN IMMEDIATE")
            try:
                yield own
            except BaseException:
                own.execute("ROLLBACK")
                raise
            own.execute("COMMIT")
        finally:
            own.close()

    def close(self) -> None:
        """Release the in-memory anchor connection, if any."""
        if self._anchor is not None:
            self._anchor.close()
            self._anchor = None


def create_database(db_path: Path | str) -> Database:
    """Factory function to create a ready-to-use Database."""
    return Database(db_path)
