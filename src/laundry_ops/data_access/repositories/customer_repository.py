"""
Customer Repository - Data access layer for customer records.

Customers with an account are keyed by their auth user id. Guests are
matched by email so repeat guest orders land on one customer row.
"""

import sqlite3
import uuid

from ...domain.entities import Customer
from ...domain.value_objects import ContactInfo
from ..database import Database

_COLUMNS = "customer_id, email, full_name, phone, auth_user_id"


class CustomerRepository:
    """
    Repository for customer data storage and retrieval.

    Every method accepts an optional open connection so it can take part
    in a larger transaction (order intake creates the customer and the
    order atomically).
    """

    def __init__(self, database: Database):
        """
        Initialize repository with its database.

        Args:
            database: Shared Database wrapper
        """
        self._db = database

    def find_by_id(self, customer_id: str, conn: sqlite3.Connection | None = None) -> Customer | None:
        with self._db.connect(conn) as c:
            row = c.execute(
                f"SELECT {_COLUMNS} FROM customers WHERE customer_id = ?",
                (customer_id,),
            ).fetchone()
            return self._row_to_customer(row) if row else None

    def find_by_auth_user(self, auth_user_id: str, conn: sqlite3.Connection | None = None) -> Customer | None:
        """
        Find the customer linked to an authentication identity.

        Args:
            auth_user_id: Identity id from the session

        Returns:
            Customer if found, None otherwise
        """
        with self._db.connect(conn) as c:
            row = c.execute(
                f"SELECT {_COLUMNS} FROM customers WHERE auth_user_id = ?",
                (auth_user_id,),
            ).fetchone()
            return self._row_to_customer(row) if row else None

    def find_guest_by_email(self, email: str, conn: sqlite3.Connection | None = None) -> Customer | None:
        """Find a guest customer (no auth identity) by case-insensitive email."""
        with self._db.connect(conn) as c:
            row = c.execute(
                f"""
                SELECT {_COLUMNS} FROM customers
                WHERE LOWER(email) = ? AND auth_user_id IS NULL
                ORDER BY created_at
                LIMIT 1
                """,
                (email.strip().lower(),),
            ).fetchone()
            return self._row_to_customer(row) if row else None

    def save(self, customer: Customer, conn: sqlite3.Connection | None = None) -> None:
        """
        Save or update customer in database.

        Args:
            customer: Customer to save
            conn: Optional connection of an enclosing transaction
        """
        with self._db.transaction(conn) as c:
            c.execute(
                """
                INSERT INTO customers (customer_id, email, full_name, phone, auth_user_id)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(customer_id) DO UPDATE SET
                    email = excluded.email,
                    full_name = excluded.full_name,
                    phone = excluded.phone,
                    auth_user_id = excluded.auth_user_id
                """,
                (
                    customer.customer_id,
                    customer.email,
                    customer.full_name,
                    customer.phone,
                    customer.auth_user_id,
                ),
            )

    def find_or_create(
        self,
        contact: ContactInfo,
        auth_user_id: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Customer:
        """
        Resolve the customer placing an order, creating one if needed.

        Account holders get their contact details refreshed from the
        latest intake. Guests are reused by email.

        Args:
            contact: Contact info from the intake
            auth_user_id: Identity id if the customer is signed in
            conn: Optional connection of an enclosing transaction

        Returns:
            Persisted Customer
        """
        with self._db.transaction(conn) as c:
            if auth_user_id:
                existing = self.find_by_auth_user(auth_user_id, conn=c)
            else:
                existing = self.find_guest_by_email(contact.email, conn=c)

            if existing:
                updated = Customer(
                    customer_id=existing.customer_id,
                    email=contact.email.strip(),
                    full_name=contact.name or existing.full_name,
                    phone=contact.phone or existing.phone,
                    auth_user_id=existing.auth_user_id,
                )
                if updated != existing:
                    self.save(updated, conn=c)
                return updated

            customer = Customer(
                customer_id=uuid.uuid4().hex,
                email=contact.email.strip(),
                full_name=contact.name,
                phone=contact.phone,
                auth_user_id=auth_user_id,
            )
            self.save(customer, conn=c)
            return customer

    def count(self) -> int:
        """
        Get total number of customers in database.

        Returns:
            Total customer count
        """
        with self._db.connect() as c:
            return c.execute("SELECT COUNT(*) FROM customers").fetchone()[0]

    def list_all(self) -> list[Customer]:
        """
        Get all customers from database.

        Returns:
            List of all customers, ordered by email
        """
        with self._db.connect() as c:
            rows = c.execute(f"SELECT {_COLUMNS} FROM customers ORDER BY email").fetchall()
            return [self._row_to_customer(row) for row in rows]

    @staticmethod
    def _row_to_customer(row: sqlite3.Row) -> Customer:
        """Map a database row to a Customer entity."""
        return Customer(
            customer_id=row["customer_id"],
            email=row["email"],
            full_name=row["full_name"] or "",
            phone=row["phone"],
            auth_user_id=row["auth_user_id"],
        )


def create_customer_repository(database: Database) -> CustomerRepository:
    """
    Factory function to create a fully configured CustomerRepository.

    Args:
        database: Shared Database wrapper

    Returns:
        Configured CustomerRepository instance
    """
    return CustomerRepository(database)
