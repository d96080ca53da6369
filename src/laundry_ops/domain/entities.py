"""
Domain Entities - Core business objects with identity.

Entities are identified by their ID rather than their attributes.
They are immutable: every change produces a new instance through
``dataclasses.replace``, and persistence is the repositories' job.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime

from .enums import (
    ActorRole,
    OrderStatus,
    PaymentStatus,
    PricingModel,
    RoutingMethod,
    ServiceType,
)
from .value_objects import Address


@dataclass(frozen=True)
class Customer:
    """
    A person who places orders.

    Customers with an auth_user_id have an account; everyone else is a
    guest and reaches their orders through magic links.
    """
    customer_id: str
    email: str
    full_name: str = ""
    phone: str | None = None
    auth_user_id: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.auth_user_id is None


@dataclass(frozen=True)
class Laundromat:
    """
    A partner laundromat that washes routed orders.

    The daily capacity ceiling is copied into each CapacityDay when that
    day's first order arrives, so editing it only affects days not yet
    opened.
    """
    laundromat_id: str
    name: str
    service_postal_codes: frozenset[str] = field(default_factory=frozenset)
    daily_capacity: int = 50
    is_active: bool = True

    def covers(self, postal_code: str) -> bool:
        """Check if this laundromat's service area includes a postal code."""
        return postal_code in self.service_postal_codes

    def with_active(self, is_active: bool) -> "Laundromat":
        return replace(self, is_active=is_active)


@dataclass(frozen=True)
class CapacityDay:
    """One laundromat's order counter for one calendar day."""
    laundromat_id: str
    day: date
    consumed: int
    ceiling: int

    @property
    def remaining(self) -> int:
        return max(self.ceiling - self.consumed, 0)

    def is_full(self) -> bool:
        return self.consumed >= self.ceiling


@dataclass(frozen=True)
class LaundromatAvailability:
    """A routing candidate with its remaining slots for a day."""
    laundromat: Laundromat
    remaining: int


@dataclass(frozen=True)
class Order:
    """
    Core domain entity representing a laundry pickup-and-delivery order.

    Addresses are snapshots taken at intake. Money is stored in integer
    minor units of ``currency``.
    """
    order_id: str
    customer_id: str
    pickup_address: Address
    delivery_address: Address
    pickup_date: date
    time_window_id: str
    subtotal_cents: int
    total_cents: int
    access_token: str
    token_expires_at: datetime
    created_at: datetime
    service_type: ServiceType = ServiceType.WASH_FOLD
    pricing_model: PricingModel = PricingModel.PER_LB
    laundromat_id: str | None = None
    routing_method: RoutingMethod = RoutingMethod.ZIP_MATCH
    status: OrderStatus = OrderStatus.SCHEDULED
    currency: str = "usd"
    addons: tuple[str, ...] = ()
    notes: str | None = None
    is_member: bool = False
    picked_up_at: datetime | None = None
    ready_for_delivery_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    measured_weight_lb: float | None = None
    pickup_photo: str | None = None
    delivery_photo: str | None = None
    delivery_notes: str | None = None
    payment_status: PaymentStatus = PaymentStatus.REQUIRES_PAYMENT
    payment_intent_id: str | None = None
    refund_amount_cents: int | None = None
    refund_reason: str | None = None
    authorized_cents: int | None = None

    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def is_token_valid(self, token: str, now: datetime) -> bool:
        """Check a magic-link token against this order's token and expiry."""
        return bool(token) and token == self.access_token and now < self.token_expires_at

    def is_owned_by(self, customer_id: str | None) -> bool:
        return customer_id is not None and customer_id == self.customer_id

    def magic_link(self, base_url: str) -> str:
        """Tokenized URL that lets a guest open this order."""
        return f"{base_url.rstrip('/')}/orders/{self.order_id}?token={self.access_token}"

    def with_status(self, status: OrderStatus) -> "Order":
        """Create new Order with updated status (immutability pattern)."""
        return replace(self, status=status)

    def get_display_name(self) -> str:
        """Get human-readable name for display."""
        return f"Order {self.order_id[:8]} ({self.pickup_date.isoformat()}, {self.time_window_id})"


@dataclass(frozen=True)
class StatusChange:
    """
    One row of the append-only order status history.

    from_status is None for the entry written at intake.
    """
    order_id: str
    from_status: OrderStatus | None
    to_status: OrderStatus
    actor_role: ActorRole
    changed_at: datetime
    actor_id: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class IntakeResult:
    """
    Result of creating an order.

    Encapsulates the persisted order plus what the guest needs to come
    back to it.
    """
    order: Order
    magic_link: str
    notification_queued: bool = True

    @property
    def access_token(self) -> str:
        return self.order.access_token


@dataclass(frozen=True)
class NotificationFailure:
    """An undelivered notification waiting in the outbox for a retry."""
    failure_id: int
    order_id: str
    kind: str
    payload: dict
    last_error: str
    attempts: int
    delivered: bool = False
