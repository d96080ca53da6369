"""
Value Objects - Immutable domain data structures.

Value objects represent domain concepts that are identified by their
values rather than a unique identity. They validate themselves on
construction and raise ValidationError on bad input.
"""

import re
from dataclasses import dataclass
from datetime import date, time

from .enums import ActorRole, PricingModel, ServiceType
from .errors import ValidationError

_POSTAL_CODE = re.compile(r"^\d{5}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class Address:
    """
    Street address snapshot.

    Orders store a copy of this, so later edits to a customer's saved
    addresses never change past orders.
    """
    line1: str
    postal_code: str
    line2: str | None = None
    city: str = "Detroit"
    state: str = "MI"

    def __post_init__(self) -> None:
        if not self.line1 or not self.line1.strip():
            raise ValidationError("Address line1 is required")
        if not _POSTAL_CODE.match(self.postal_code or ""):
            raise ValidationError(f"Invalid postal code: {self.postal_code!r}")

    def one_line(self) -> str:
        """Format as a single display line."""
        parts = [self.line1]
        if self.line2:
            parts.append(self.line2)
        parts.append(f"{self.city}, {self.state} {self.postal_code}")
        return ", ".join(parts)

    @staticmethod
    def extract_postal_code(text: str) -> str | None:
        """
        Pull the first 5-digit ZIP code out of free-form address text.

        Examples:
            >>> Address.extract_postal_code("4801 Cass Ave, Detroit MI 48201")
            "48201"
        """
        match = re.search(r"\b(\d{5})\b", text or "")
        return match.group(1) if match else None


@dataclass(frozen=True)
class ContactInfo:
    """Customer contact details captured at intake."""
    email: str
    name: str = ""
    phone: str | None = None

    def __post_init__(self) -> None:
        if not self.email or not _EMAIL.match(self.email.strip()):
            raise ValidationError(f"A valid contact email is required, got {self.email!r}")


@dataclass(frozen=True)
class TimeWindow:
    """
    A pickup window within a day (e.g. morning, 8a-12p).

    Immutable value object with validation and parsing helpers.
    """
    window_id: str
    label: str
    start_time: time
    end_time: time

    def __post_init__(self) -> None:
        """Validate that start time is before end time."""
        if self.start_time >= self.end_time:
            raise ValueError(f"Start time {self.start_time} must be before end time {self.end_time}")

    @classmethod
    def from_string(cls, window_id: str, label: str, time_range: str) -> "TimeWindow":
        """
        Parse a window from a string like "8a-12p" or "4:30p-8p".

        Examples:
            >>> TimeWindow.from_string("morning", "Morning", "8a-12p")
            TimeWindow(window_id="morning", ..., start_time=time(8, 0), end_time=time(12, 0))
        """
        start_str, end_str = time_range.split("-")
        return cls(
            window_id=window_id,
            label=label,
            start_time=cls._parse_time(start_str.strip()),
            end_time=cls._parse_time(end_str.strip()),
        )

    @staticmethod
    def _parse_time(time_str: str) -> time:
        """Parse time string like '5p' or '11:30a' to a time object."""
        time_str = time_str.strip().lower()
        is_pm = time_str.endswith("p")
        is_am = time_str.endswith("a")
        if is_pm or is_am:
            time_str = time_str[:-1]

        if ":" in time_str:
            hour_str, min_str = time_str.split(":")
            hour = int(hour_str)
            minute = int(min_str)
        else:
            hour = int(time_str)
            minute = 0

        # Convert to 24-hour format
        if is_pm and hour != 12:
            hour += 12
        elif is_am and hour == 12:
            hour = 0

        return time(hour, minute)

    def to_display(self) -> str:
        return f"{self.label} ({self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')})"


@dataclass(frozen=True)
class Actor:
    """
    The authenticated party behind a request.

    customer_id is only set for customer sessions and is what ownership
    checks compare against. laundromat_id ties a laundromat staff session
    to the one location whose orders it may see and work.
    """
    role: ActorRole
    actor_id: str | None = None
    customer_id: str | None = None
    laundromat_id: str | None = None

    def works_at(self, laundromat_id: str | None) -> bool:
        """False only for laundromat staff outside the given location."""
        if self.role is not ActorRole.LAUNDROMAT_STAFF:
            return True
        return self.laundromat_id is not None and self.laundromat_id == laundromat_id

    @classmethod
    def system(cls) -> "Actor":
        return cls(role=ActorRole.SYSTEM, actor_id="system")


@dataclass(frozen=True)
class OrderIntake:
    """
    Everything a customer submits to place an order, before routing.

    Stores all decisions needed to create the order in one shot.
    """
    contact: ContactInfo
    pickup_address: Address
    pickup_date: date
    time_window_id: str
    service_type: ServiceType = ServiceType.WASH_FOLD
    pricing_model: PricingModel = PricingModel.PER_LB
    delivery_address: Address | None = None
    declared_weight_lb: float | None = None
    estimated_amount_cents: int | None = None
    addons: tuple[str, ...] = ()
    notes: str | None = None
    is_member: bool = False
    auth_user_id: str | None = None

    def __post_init__(self) -> None:
        if not self.time_window_id or not self.time_window_id.strip():
            raise ValidationError("A pickup time window is required")
        if self.declared_weight_lb is not None and self.declared_weight_lb <= 0:
            raise ValidationError("Declared weight must be greater than 0")
        if self.estimated_amount_cents is not None and self.estimated_amount_cents < 0:
            raise ValidationError("Estimated amount cannot be negative")

    def effective_delivery_address(self) -> Address:
        """Delivery defaults to the pickup address."""
        return self.delivery_address or self.pickup_address

    def has_declared_weight(self) -> bool:
        return self.declared_weight_lb is not None


@dataclass(frozen=True)
class PriceQuote:
    """
    Result of pricing an order, in integer minor units.

    ``total_cents`` already includes add-ons and the minimum-charge floor.
    """
    subtotal_cents: int
    addon_cents: int
    total_cents: int
    minimum_applied: bool = False
    rate_per_lb_cents: int | None = None
    overweight_fee_cents: int = 0
    currency: str = "usd"

    def to_display(self) -> str:
        """Format total as dollars, e.g. '$35.00'."""
        return f"${self.total_cents / 100:.2f}"


@dataclass(frozen=True)
class TransitionPayload:
    """
    Role-specific data that travels with a status change.

    Drivers send weight and a photo on pickup, a photo and notes on
    delivery; customers may give a cancellation reason.
    """
    weight_lb: float | None = None
    photo_reference: str | None = None
    delivery_notes: str | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.weight_lb is not None and self.weight_lb <= 0:
            raise ValidationError("Weight must be greater than 0")
