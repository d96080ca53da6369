"""
Domain Enums - Type-safe constants for the order lifecycle.

These enums replace magic strings throughout the codebase. Every value is
the exact string stored in the database and exchanged over HTTP.
"""

from enum import Enum


class OrderStatus(Enum):
    """
    Lifecycle status of a laundry order.

    The happy path is strictly linear:

        scheduled → en_route_pickup → picked_up → processing
                  → ready_for_delivery → en_route_delivery → delivered

    CANCELLED and ARCHIVED can be reached from any non-terminal status.
    DELIVERED, CANCELLED and ARCHIVED are terminal.
    """
    SCHEDULED = "scheduled"
    EN_ROUTE_PICKUP = "en_route_pickup"
    PICKED_UP = "picked_up"
    PROCESSING = "processing"
    READY_FOR_DELIVERY = "ready_for_delivery"
    EN_ROUTE_DELIVERY = "en_route_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    def is_terminal(self) -> bool:
        """Terminal statuses accept no further transitions."""
        return self in {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.ARCHIVED}

    def is_before_pickup(self) -> bool:
        """True while the laundry is still at the customer's door."""
        return self in {OrderStatus.SCHEDULED, OrderStatus.EN_ROUTE_PICKUP}

    def milestone_column(self) -> str | None:
        """
        Name of the order timestamp column stamped when entering this status.

        Returns:
            Column name, or None if the status has no dedicated timestamp
        """
        return {
            OrderStatus.PICKED_UP: "picked_up_at",
            OrderStatus.READY_FOR_DELIVERY: "ready_for_delivery_at",
            OrderStatus.DELIVERED: "delivered_at",
            OrderStatus.CANCELLED: "cancelled_at",
        }.get(self)

    def get_display(self) -> tuple[str, str]:
        """Get (label, description) for dashboards and notifications."""
        return _STATUS_DISPLAY[self]


_STATUS_DISPLAY: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.SCHEDULED: ("Scheduled", "Pickup scheduled"),
    OrderStatus.EN_ROUTE_PICKUP: ("En Route", "Driver heading to pickup"),
    OrderStatus.PICKED_UP: ("Picked Up", "Items collected"),
    OrderStatus.PROCESSING: ("Processing", "Being cleaned"),
    OrderStatus.READY_FOR_DELIVERY: ("Ready", "Ready for delivery"),
    OrderStatus.EN_ROUTE_DELIVERY: ("Out for Delivery", "On the way back"),
    OrderStatus.DELIVERED: ("Delivered", "Items delivered"),
    OrderStatus.CANCELLED: ("Cancelled", "Order cancelled"),
    OrderStatus.ARCHIVED: ("Archived", "Removed from active lists"),
}


class ActorRole(Enum):
    """
    Who is asking for a change.

    Resolved from the request session; SYSTEM is used for internal jobs
    (seeding, scheduled retries) that have no human behind them.
    """
    CUSTOMER = "customer"
    DRIVER = "driver"
    LAUNDROMAT_STAFF = "laundromat_staff"
    ADMIN = "admin"
    SYSTEM = "system"

    def is_staff(self) -> bool:
        """Staff roles may look at any order."""
        return self is not ActorRole.CUSTOMER


class ServiceType(Enum):
    """Kind of cleaning requested at intake."""
    WASH_FOLD = "wash_fold"
    DRY_CLEAN = "dry_clean"


class BagSize(Enum):
    """Flat-price bag sizes offered to members."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class PricingModel(Enum):
    """
    How an order is priced.

    PER_LB orders are billed by measured weight with a minimum charge.
    Bag orders are billed at a flat price plus an overweight fee.
    """
    PER_LB = "per_lb"
    BAG_SMALL = "bag_small"
    BAG_MEDIUM = "bag_medium"
    BAG_LARGE = "bag_large"

    def is_bag(self) -> bool:
        return self is not PricingModel.PER_LB

    def bag_size(self) -> BagSize | None:
        """Map a bag pricing model to its bag size (None for per-lb)."""
        if not self.is_bag():
            return None
        return BagSize(self.value.removeprefix("bag_"))

    @classmethod
    def from_order_type(cls, order_type: str | None) -> "PricingModel":
        """
        Map the storefront's order-type names onto pricing models.

        Examples:
            >>> PricingModel.from_order_type("medium_bag")
            PricingModel.BAG_MEDIUM
            >>> PricingModel.from_order_type(None)
            PricingModel.PER_LB
        """
        mapping = {
            "per_pound": cls.PER_LB,
            "small_bag": cls.BAG_SMALL,
            "medium_bag": cls.BAG_MEDIUM,
            "large_bag": cls.BAG_LARGE,
        }
        if order_type is None:
            return cls.PER_LB
        if order_type in mapping:
            return mapping[order_type]
        return cls(order_type)


class PaymentStatus(Enum):
    """
    Payment lifecycle of an order, independent of its fulfilment status.

    Intake leaves orders in REQUIRES_PAYMENT. The card is authorized before
    pickup and captured when the order is delivered.
    """
    REQUIRES_PAYMENT = "requires_payment"
    AUTHORIZED = "authorized"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    CANCELED = "canceled"

    def is_successful(self) -> bool:
        """Money has been collected (possibly partly returned since)."""
        return self in {
            PaymentStatus.PAID,
            PaymentStatus.PARTIALLY_REFUNDED,
            PaymentStatus.REFUNDED,
        }

    def can_authorize(self) -> bool:
        return self in {PaymentStatus.REQUIRES_PAYMENT, PaymentStatus.CANCELED}


class RoutingMethod(Enum):
    """How the order was matched to its laundromat."""
    ZIP_MATCH = "zip_match"
    MANUAL = "manual"


class NotificationChannel(Enum):
    EMAIL = "email"
    SMS = "sms"


class NotificationKind(Enum):
    """
    Lifecycle events forwarded to customers.

    Each kind declares the channels it goes out on.
    """
    ORDER_CONFIRMED = "order_confirmed"
    DRIVER_DISPATCHED = "driver_dispatched"
    WEIGHT_UPDATED = "weight_updated"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def channels(self) -> tuple[NotificationChannel, ...]:
        return _NOTIFICATION_CHANNELS[self]

    @classmethod
    def for_status(cls, status: OrderStatus) -> "NotificationKind | None":
        """
        Get the notification fired when an order enters a status.

        Returns:
            NotificationKind, or None for silent transitions
        """
        return {
            OrderStatus.EN_ROUTE_PICKUP: cls.DRIVER_DISPATCHED,
            OrderStatus.EN_ROUTE_DELIVERY: cls.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED: cls.DELIVERED,
            OrderStatus.CANCELLED: cls.CANCELLED,
        }.get(status)


_NOTIFICATION_CHANNELS: dict[NotificationKind, tuple[NotificationChannel, ...]] = {
    NotificationKind.ORDER_CONFIRMED: (NotificationChannel.EMAIL, NotificationChannel.SMS),
    NotificationKind.DRIVER_DISPATCHED: (NotificationChannel.SMS,),
    NotificationKind.WEIGHT_UPDATED: (NotificationChannel.EMAIL, NotificationChannel.SMS),
    NotificationKind.OUT_FOR_DELIVERY: (NotificationChannel.SMS,),
    NotificationKind.DELIVERED: (NotificationChannel.EMAIL,),
    NotificationKind.CANCELLED: (NotificationChannel.EMAIL,),
}
