"""
Request and response schemas for the HTTP API.

Requests are pydantic models that convert themselves into domain value
objects. Responses are plain dicts built from domain entities.
"""

from datetime import date
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, RootModel

from ...domain.entities import (
    IntakeResult,
    Laundromat,
    LaundromatAvailability,
    Order,
    StatusChange,
)
from ...domain.enums import PricingModel, ServiceType
from ...domain.errors import ValidationError
from ...domain.value_objects import Address, ContactInfo, OrderIntake, TransitionPayload


# ----- Intake -----

class AddressIn(BaseModel):
    line1: str
    postal_code: str
    line2: Optional[str] = None
    city: str = "Detroit"
    state: str = "MI"

    def to_address(self) -> Address:
        return Address(
            line1=self.line1,
            postal_code=self.postal_code.strip(),
            line2=self.line2,
            city=self.city,
            state=self.state,
        )


class ContactIn(BaseModel):
    email: str
    name: str = ""
    phone: Optional[str] = None


class OrderCreateRequest(BaseModel):
    contact: ContactIn
    pickup_address: AddressIn
    pickup_date: date
    time_window_id: str
    delivery_address: Optional[AddressIn] = None
    service_type: ServiceType = ServiceType.WASH_FOLD
    order_type: Optional[str] = Field(None, description="per_pound, small_bag, medium_bag or large_bag")
    declared_weight_lb: Optional[float] = Field(None, gt=0)
    estimated_amount_cents: Optional[int] = Field(None, ge=0)
    addons: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_member: bool = False

    def to_intake(self) -> OrderIntake:
        """Build the domain intake; raises the domain ValidationError on bad values."""
        try:
            pricing_model = PricingModel.from_order_type(self.order_type)
        except ValueError:
            raise ValidationError(f"Unknown order type: {self.order_type}") from None

        return OrderIntake(
            contact=ContactInfo(email=self.contact.email, name=self.contact.name, phone=self.contact.phone),
            pickup_address=self.pickup_address.to_address(),
            pickup_date=self.pickup_date,
            time_window_id=self.time_window_id,
            service_type=self.service_type,
            pricing_model=pricing_model,
            delivery_address=self.delivery_address.to_address() if self.delivery_address else None,
            declared_weight_lb=self.declared_weight_lb,
            estimated_amount_cents=self.estimated_amount_cents,
            addons=tuple(self.addons),
            notes=self.notes,
            is_member=self.is_member,
        )


# ----- Status transitions -----

class SimpleTransition(BaseModel):
    status: Literal["en_route_pickup", "processing", "ready_for_delivery", "en_route_delivery", "archived"]
    note: Optional[str] = None

    def to_payload(self) -> TransitionPayload:
        return TransitionPayload(reason=self.note)


class PickedUpTransition(BaseModel):
    status: Literal["picked_up"]
    weight_lb: float = Field(..., gt=0)
    photo_reference: str = Field(..., min_length=1)

    def to_payload(self) -> TransitionPayload:
        return TransitionPayload(weight_lb=self.weight_lb, photo_reference=self.photo_reference)


class DeliveredTransition(BaseModel):
    status: Literal["delivered"]
    photo_reference: Optional[str] = None
    delivery_notes: Optional[str] = None

    def to_payload(self) -> TransitionPayload:
        return TransitionPayload(photo_reference=self.photo_reference, delivery_notes=self.delivery_notes)


class CancelledTransition(BaseModel):
    status: Literal["cancelled"]
    reason: Optional[str] = None

    def to_payload(self) -> TransitionPayload:
        return TransitionPayload(reason=self.reason)


TransitionRequest = Annotated[
    Union[SimpleTransition, PickedUpTransition, DeliveredTransition, CancelledTransition],
    Field(discriminator="status"),
]


class TransitionBody(RootModel[TransitionRequest]):
    """The request body is the tagged union itself."""


# ----- Adjustments -----

class WeightRequest(BaseModel):
    weight_lb: float = Field(..., gt=0)


class AssignRequest(BaseModel):
    laundromat_id: str


class LaundromatIn(BaseModel):
    name: str = Field(..., min_length=1)
    service_postal_codes: list[str] = Field(..., min_length=1)
    daily_capacity: int = Field(50, ge=0)
    is_active: bool = True

    def to_laundromat(self, laundromat_id: str) -> Laundromat:
        return Laundromat(
            laundromat_id=laundromat_id,
            name=self.name,
            service_postal_codes=frozenset(code.strip() for code in self.service_postal_codes),
            daily_capacity=self.daily_capacity,
            is_active=self.is_active,
        )


class RetryRequest(BaseModel):
    max_attempts: Optional[int] = Field(None, ge=1)


# ----- Responses -----

def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def order_to_dict(order: Order) -> dict:
    """Serialize an order for API responses (the access token is never included)."""
    return {
        "order_id": order.order_id,
        "customer_id": order.customer_id,
        "status": order.status.value,
        "status_label": order.status.get_display()[0],
        "service_type": order.service_type.value,
        "pricing_model": order.pricing_model.value,
        "pickup_date": order.pickup_date.isoformat(),
        "time_window_id": order.time_window_id,
        "pickup_address": order.pickup_address.one_line(),
        "delivery_address": order.delivery_address.one_line(),
        "laundromat_id": order.laundromat_id,
        "routing_method": order.routing_method.value,
        "subtotal_cents": order.subtotal_cents,
        "total_cents": order.total_cents,
        "currency": order.currency,
        "addons": list(order.addons),
        "notes": order.notes,
        "measured_weight_lb": order.measured_weight_lb,
        "pickup_photo": order.pickup_photo,
        "delivery_photo": order.delivery_photo,
        "delivery_notes": order.delivery_notes,
        "payment_status": order.payment_status.value,
        "authorized_cents": order.authorized_cents,
        "refund_amount_cents": order.refund_amount_cents,
        "refund_reason": order.refund_reason,
        "created_at": _iso(order.created_at),
        "picked_up_at": _iso(order.picked_up_at),
        "ready_for_delivery_at": _iso(order.ready_for_delivery_at),
        "delivered_at": _iso(order.delivered_at),
        "cancelled_at": _iso(order.cancelled_at),
    }


def intake_to_dict(result: IntakeResult) -> dict:
    return {
        "order_id": result.order.order_id,
        "access_token": result.access_token,
        "magic_link": result.magic_link,
        "notification_queued": result.notification_queued,
        "order": order_to_dict(result.order),
    }


def history_to_dict(change: StatusChange) -> dict:
    return {
        "from_status": change.from_status.value if change.from_status else None,
        "to_status": change.to_status.value,
        "actor_role": change.actor_role.value,
        "actor_id": change.actor_id,
        "note": change.note,
        "changed_at": change.changed_at.isoformat(),
    }


def laundromat_to_dict(laundromat: Laundromat) -> dict:
    return {
        "laundromat_id": laundromat.laundromat_id,
        "name": laundromat.name,
        "service_postal_codes": sorted(laundromat.service_postal_codes),
        "daily_capacity": laundromat.daily_capacity,
        "is_active": laundromat.is_active,
    }


def availability_to_dict(availability: LaundromatAvailability) -> dict:
    return {
        "laundromat_id": availability.laundromat.laundromat_id,
        "name": availability.laundromat.name,
        "remaining": availability.remaining,
    }
