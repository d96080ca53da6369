"""
Order Repository - Persistence for orders and their status history.

Status changes go through ``compare_and_set_status``, which only updates
the row if it is still in the status the caller read. The history table
is append-only (enforced by triggers in the schema).
"""

import json
import sqlite3
from datetime import date, datetime
from enum import Enum
from typing import Any

from ...domain.entities import Order, StatusChange
from ...domain.enums import (
    ActorRole,
    OrderStatus,
    PaymentStatus,
    PricingModel,
    RoutingMethod,
    ServiceType,
)
from ...domain.value_objects import Address
from ..database import Database

# Columns that may be written after insert. Keys of ``changes`` dicts are
# checked against this set before being put into SQL.
UPDATABLE_COLUMNS = frozenset({
    "laundromat_id",
    "routing_method",
    "subtotal_cents",
    "total_cents",
    "picked_up_at",
    "ready_for_delivery_at",
    "delivered_at",
    "cancelled_at",
    "measured_weight_lb",
    "pickup_photo",
    "delivery_photo",
    "delivery_notes",
    "payment_status",
    "payment_intent_id",
    "refund_amount_cents",
    "refund_reason",
    "authorized_cents",
    "assigned_at",
})


def _to_db(value: Any) -> Any:
    """Convert a domain value to its SQLite representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (tuple, list)):
        return json.dumps(list(value))
    return value


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class OrderRepository:
    """Repository for orders and the order status history."""

    def __init__(self, database: Database):
        self._db = database

    def insert(self, order: Order, conn: sqlite3.Connection | None = None) -> None:
        """
        Insert a new order row.

        Args:
            order: Order to persist
            conn: Optional connection of an enclosing transaction
        """
        row = {
            "order_id": order.order_id,
            "customer_id": order.customer_id,
            "service_type": order.service_type,
            "pricing_model": order.pricing_model,
            "pickup_date": order.pickup_date,
            "time_window_id": order.time_window_id,
            "laundromat_id": order.laundromat_id,
            "routing_method": order.routing_method,
            "status": order.status,
            "subtotal_cents": order.subtotal_cents,
            "total_cents": order.total_cents,
            "currency": order.currency,
            "addons": order.addons,
            "notes": order.notes,
            "is_member": int(order.is_member),
            "access_token": order.access_token,
            "token_expires_at": order.token_expires_at,
            "pickup_line1": order.pickup_address.line1,
            "pickup_line2": order.pickup_address.line2,
            "pickup_city": order.pickup_address.city,
            "pickup_state": order.pickup_address.state,
            "pickup_postal_code": order.pickup_address.postal_code,
            "delivery_line1": order.delivery_address.line1,
            "delivery_line2": order.delivery_address.line2,
            "delivery_city": order.delivery_address.city,
            "delivery_state": order.delivery_address.state,
            "delivery_postal_code": order.delivery_address.postal_code,
            "created_at": order.created_at,
            "updated_at": order.created_at,
            "assigned_at": order.created_at if order.laundromat_id else None,
            "payment_status": order.payment_status,
            "payment_intent_id": order.payment_intent_id,
            "authorized_cents": order.authorized_cents,
        }
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        with self._db.transaction(conn) as c:
            c.execute(
                f"INSERT INTO orders ({columns}) VALUES ({placeholders})",
                [_to_db(value) for value in row.values()],
            )

    def find_by_id(self, order_id: str, conn: sqlite3.Connection | None = None) -> Order | None:
        with self._db.connect(conn) as c:
            row = c.execute("SELECT * FROM orders WHERE order_id = ?", (order_id,)).fetchone()
            return self._row_to_order(row) if row else None

    def find_by_token(self, access_token: str) -> Order | None:
        """Look up an order by its magic-link token (expiry is checked by the caller)."""
        with self._db.connect() as c:
            row = c.execute("SELECT * FROM orders WHERE access_token = ?", (access_token,)).fetchone()
            return self._row_to_order(row) if row else None

    def list_orders(
        self,
        status: OrderStatus | None = None,
        laundromat_id: str | None = None,
        customer_id: str | None = None,
        day: date | None = None,
        limit: int = 200,
    ) -> list[Order]:
        """
        List orders for dashboards, newest pickup first.

        Every filter is optional and they combine with AND.
        """
        clauses = []
        params: list[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if laundromat_id is not None:
            clauses.append("laundromat_id = ?")
            params.append(laundromat_id)
        if customer_id is not None:
            clauses.append("customer_id = ?")
            params.append(customer_id)
        if day is not None:
            clauses.append("pickup_date = ?")
            params.append(day.isoformat())

        query = "SELECT * FROM orders"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY pickup_date DESC, created_at DESC LIMIT ?"
        params.append(limit)

        with self._db.connect() as c:
            return [self._row_to_order(row) for row in c.execute(query, params).fetchall()]

    def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new_status: OrderStatus,
        changed_at: datetime,
        changes: dict[str, Any] | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """
        Move an order to ``new_status`` only if it is still ``expected``.

        Args:
            order_id: Order to update
            expected: Status the caller read before deciding
            new_status: Target status
            changed_at: Timestamp for updated_at
            changes: Extra columns to write in the same statement
            conn: Optional connection of an enclosing transaction

        Returns:
            True if the row was updated, False if the status had moved on
        """
        assignments, params = self._assignments(changes or {})
        assignments = ["status = ?", "updated_at = ?"] + assignments
        params = [new_status.value, changed_at.isoformat()] + params

        with self._db.transaction(conn) as c:
            cursor = c.execute(
                f"UPDATE orders SET {', '.join(assignments)} WHERE order_id = ? AND status = ?",
                params + [order_id, expected.value],
            )
            return cursor.rowcount == 1

    def update_fields(
        self,
        order_id: str,
        changes: dict[str, Any],
        changed_at: datetime,
        expected_status: OrderStatus | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """
        Write non-status columns (weight, price, payment fields).

        With ``expected_status`` the write only lands while the order is
        still in that status.

        Returns:
            True if the row was updated
        """
        assignments, params = self._assignments(changes)
        assignments.append("updated_at = ?")
        params.append(changed_at.isoformat())
        query = f"UPDATE orders SET {', '.join(assignments)} WHERE order_id = ?"
        params.append(order_id)
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status.value)

        with self._db.transaction(conn) as c:
            return c.execute(query, params).rowcount == 1

    def append_history(self, change: StatusChange, conn: sqlite3.Connection | None = None) -> None:
        """Append one status history row."""
        with self._db.transaction(conn) as c:
            c.execute(
                """
                INSERT INTO order_status_history
                    (order_id, from_status, to_status, actor_role, actor_id, note, changed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    change.order_id,
                    change.from_status.value if change.from_status else None,
                    change.to_status.value,
                    change.actor_role.value,
                    change.actor_id,
                    change.note,
                    change.changed_at.isoformat(),
                ),
            )

    def history(self, order_id: str) -> list[StatusChange]:
        """
        Get an order's status history, oldest first.

        Returns:
            List of StatusChange; the first entry has from_status None
        """
        with self._db.connect() as c:
            rows = c.execute(
                """
                SELECT order_id, from_status, to_status, actor_role, actor_id, note, changed_at
                FROM order_status_history
                WHERE order_id = ?
                ORDER BY history_id
                """,
                (order_id,),
            ).fetchall()
        return [
            StatusChange(
                order_id=row["order_id"],
                from_status=OrderStatus(row["from_status"]) if row["from_status"] else None,
                to_status=OrderStatus(row["to_status"]),
                actor_role=ActorRole(row["actor_role"]),
                changed_at=datetime.fromisoformat(row["changed_at"]),
                actor_id=row["actor_id"],
                note=row["note"],
            )
            for row in rows
        ]

    def count(self) -> int:
        with self._db.connect() as c:
            return c.execute("SELECT COUNT(*) FROM orders").fetchone()[0]

    @staticmethod
    def _assignments(changes: dict[str, Any]) -> tuple[list[str], list[Any]]:
        unknown = set(changes) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        return [f"{column} = ?" for column in changes], [_to_db(v) for v in changes.values()]

    @staticmethod
    def _row_to_order(row: sqlite3.Row) -> Order:
        """Map a database row to an Order entity."""
        return Order(
            order_id=row["order_id"],
            customer_id=row["customer_id"],
            pickup_address=Address(
                line1=row["pickup_line1"],
                line2=row["pickup_line2"],
                city=row["pickup_city"],
                state=row["pickup_state"],
                postal_code=row["pickup_postal_code"],
            ),
            delivery_address=Address(
                line1=row["delivery_line1"],
                line2=row["delivery_line2"],
                city=row["delivery_city"],
                state=row["delivery_state"],
                postal_code=row["delivery_postal_code"],
            ),
            pickup_date=date.fromisoformat(row["pickup_date"]),
            time_window_id=row["time_window_id"],
            subtotal_cents=row["subtotal_cents"],
            total_cents=row["total_cents"],
            access_token=row["access_token"],
            token_expires_at=datetime.fromisoformat(row["token_expires_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            service_type=ServiceType(row["service_type"]),
            pricing_model=PricingModel(row["pricing_model"]),
            laundromat_id=row["laundromat_id"],
            routing_method=RoutingMethod(row["routing_method"]),
            status=OrderStatus(row["status"]),
            currency=row["currency"],
            addons=tuple(json.loads(row["addons"] or "[]")),
            notes=row["notes"],
            is_member=bool(row["is_member"]),
            picked_up_at=_parse_datetime(row["picked_up_at"]),
            ready_for_delivery_at=_parse_datetime(row["ready_for_delivery_at"]),
            delivered_at=_parse_datetime(row["delivered_at"]),
            cancelled_at=_parse_datetime(row["cancelled_at"]),
            measured_weight_lb=row["measured_weight_lb"],
            pickup_photo=row["pickup_photo"],
            delivery_photo=row["delivery_photo"],
            delivery_notes=row["delivery_notes"],
            payment_status=PaymentStatus(row["payment_status"]),
            payment_intent_id=row["payment_intent_id"],
            refund_amount_cents=row["refund_amount_cents"],
            refund_reason=row["refund_reason"],
            authorized_cents=row["authorized_cents"],
        )
