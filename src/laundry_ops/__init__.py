"""
laundry_ops - Laundry pickup and delivery back end.

Order intake, laundromat routing, daily capacity, the order status
lifecycle and customer notifications.
"""

__version__ = "0.1.0"
