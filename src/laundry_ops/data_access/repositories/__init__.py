"""
Repositories - Data access objects for each aggregate.
"""

from .capacity_ledger import CapacityLedger
from .customer_repository import CustomerRepository, create_customer_repository
from .laundromat_repository import LaundromatRepository
from .notification_repository import NotificationRepository
from .order_repository import OrderRepository

__all__ = [
    "CapacityLedger",
    "CustomerRepository",
    "LaundromatRepository",
    "NotificationRepository",
    "OrderRepository",
    "create_customer_repository",
]
