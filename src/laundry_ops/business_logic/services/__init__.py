"""
Services - Pricing, routing, the transition gate, notifications and
the order service that ties them together.
"""

from .laundromat_service import LaundromatService
from .notification_dispatcher import NotificationDispatcher, RetryReport
from .order_service import OrderService
from .pricing_service import PricingService, RefundDecision
from .routing_service import RoutingResolver
from .transition_gate import StatusTransitionGate, TransitionResult

__all__ = [
    "LaundromatService",
    "NotificationDispatcher",
    "OrderService",
    "PricingService",
    "RefundDecision",
    "RetryReport",
    "RoutingResolver",
    "StatusTransitionGate",
    "TransitionResult",
]
