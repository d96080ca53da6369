"""
Status Transition Gate - The only way an order's status changes.

Every request is checked against the transition table and the role
table before anything is touched. The status write is a
compare-and-swap on the status that was read, so two racing requests
cannot both succeed from the same state. The history row and any
capacity release commit in the same transaction as the status.

Side effects per target status:

    picked_up   weight and photo required; photo attached and order
                repriced before commit
    delivered   hold raised when the final price exceeds it, then the
                final price captured before commit; a decline leaves
                the order untouched
    cancelled   committed first, capacity released if not yet picked
                up, then the authorization is settled by refund policy
    archived    capacity released under the same rule, no payment
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from ...data_access.database import Database
from ...data_access.repositories.capacity_ledger import CapacityLedger
from ...data_access.repositories.order_repository import OrderRepository
from ...domain.entities import Order, StatusChange
from ...domain.enums import ActorRole, OrderStatus, PaymentStatus
from ...domain.errors import (
    AccessDenied,
    InvalidTransition,
    OrderNotFound,
    PaymentFailed,
    StorageFailed,
    ValidationError,
)
from ...domain.transitions import require_role, require_transition
from ...domain.value_objects import Actor, TimeWindow, TransitionPayload
from ..collaborators import PaymentClient, PhotoStorage
from .pricing_service import PricingService, RefundDecision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """An accepted transition and what it did."""
    order: Order
    previous_status: OrderStatus
    refund: RefundDecision | None = None

    @property
    def status(self) -> OrderStatus:
        return self.order.status


class StatusTransitionGate:
    """Validates and applies order status transitions."""

    def __init__(
        self,
        database: Database,
        order_repository: OrderRepository,
        capacity_ledger: CapacityLedger,
        pricing_service: PricingService,
        payment_client: PaymentClient,
        photo_storage: PhotoStorage,
        time_windows: dict[str, TimeWindow],
        local_timezone: timezone = timezone.utc,
        clock: Callable[[], datetime] | None = None,
    ):
        self._db = database
        self._orders = order_repository
        self._ledger = capacity_ledger
        self._pricing = pricing_service
        self._payments = payment_client
        self._photos = photo_storage
        self._windows = time_windows
        self._tz = local_timezone
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def apply(
        self,
        order_id: str,
        requested: OrderStatus,
        actor: Actor,
        payload: TransitionPayload | None = None,
    ) -> TransitionResult:
        """
        Move an order to ``requested``.

        Args:
            order_id: Order to change
            requested: Target status
            actor: Who is asking
            payload: Role-specific data (weight, photo, notes, reason)

        Returns:
            TransitionResult with the updated order

        Raises:
            OrderNotFound: Unknown order id
            AccessDenied: Role or ownership check failed
            InvalidTransition: Not an edge from the current status
            ValidationError: Required payload fields missing
            PaymentFailed: Capture or settlement failed
            StorageFailed: Photo could not be attached
        """
        payload = payload or TransitionPayload()
        order = self._load(order_id)

        require_role(actor.role, requested)
        if actor.role is ActorRole.CUSTOMER and not order.is_owned_by(actor.customer_id):
            raise AccessDenied("Customers may only change their own orders", details={"order_id": order_id})
        if not actor.works_at(order.laundromat_id):
            raise AccessDenied(
                "Staff may only change orders at their own laundromat",
                details={"order_id": order_id, "laundromat_id": order.laundromat_id},
            )
        require_transition(order.status, requested)

        if requested is OrderStatus.PICKED_UP:
            return self._pick_up(order, actor, payload)
        if requested is OrderStatus.DELIVERED:
            return self._deliver(order, actor, payload)
        if requested is OrderStatus.CANCELLED:
            return self._cancel(order, actor, payload)
        if requested is OrderStatus.ARCHIVED:
            return self._archive(order, actor, payload)

        now = self._clock()
        changes = self._milestone(requested, now)
        return self._commit(order, requested, actor, now, changes, note=payload.reason)

    def window_start(self, order: Order) -> datetime:
        """Start of the order's pickup window in the service timezone."""
        window = self._windows.get(order.time_window_id)
        start = window.start_time if window else datetime.min.time()
        return datetime.combine(order.pickup_date, start, tzinfo=self._tz)

    def _pick_up(self, order: Order, actor: Actor, payload: TransitionPayload) -> TransitionResult:
        if payload.weight_lb is None:
            raise ValidationError("Pickup requires the measured weight", details={"field": "weight_lb"})
        if not payload.photo_reference:
            raise ValidationError("Pickup requires a photo", details={"field": "photo_reference"})

        photo = self._attach_photo(order, "pickup", payload.photo_reference)
        quote = self._pricing.quote_order(order, payload.weight_lb)
        now = self._clock()
        changes = {
            **self._milestone(OrderStatus.PICKED_UP, now),
            "measured_weight_lb": payload.weight_lb,
            "pickup_photo": photo,
            "subtotal_cents": quote.subtotal_cents,
            "total_cents": quote.total_cents,
        }
        logger.info(
            "[GATE] %s weighed %.1f lb at pickup, repriced %d -> %d",
            order.order_id, payload.weight_lb, order.total_cents, quote.total_cents,
        )
        return self._commit(order, OrderStatus.PICKED_UP, actor, now, changes, note=payload.reason)

    def _deliver(self, order: Order, actor: Actor, payload: TransitionPayload) -> TransitionResult:
        if order.measured_weight_lb:
            quote = self._pricing.quote_order(order, order.measured_weight_lb)
            subtotal, total = quote.subtotal_cents, quote.total_cents
        else:
            subtotal, total = order.subtotal_cents, order.total_cents

        photo = None
        if payload.photo_reference:
            photo = self._attach_photo(order, "delivery", payload.photo_reference)

        if order.payment_status is not PaymentStatus.AUTHORIZED or not order.payment_intent_id:
            raise PaymentFailed(
                "Order has no authorized payment to capture",
                details={"order_id": order.order_id, "payment_status": order.payment_status.value},
            )
        try:
            authorized = self._raise_hold(order, total)
            self._payments.capture(order.payment_intent_id, total, idempotency_key=f"capture:{order.order_id}")
        except Exception as e:
            logger.warning("[GATE] Capture failed for %s: %s", order.order_id, e)
            raise PaymentFailed(
                f"Payment capture failed: {e}",
                details={"order_id": order.order_id, "amount_cents": total},
            ) from e

        now = self._clock()
        changes = {
            **self._milestone(OrderStatus.DELIVERED, now),
            "subtotal_cents": subtotal,
            "total_cents": total,
            "payment_status": PaymentStatus.PAID,
            "authorized_cents": authorized,
        }
        if photo:
            changes["delivery_photo"] = photo
        if payload.delivery_notes:
            changes["delivery_notes"] = payload.delivery_notes

        try:
            return self._commit(order, OrderStatus.DELIVERED, actor, now, changes, note=payload.delivery_notes)
        except InvalidTransition as e:
            # Money moved but the order did not
            logger.error("[GATE] %s captured but status moved to %s first", order.order_id, e.current)
            e.state_changed = True
            raise

    def _cancel(self, order: Order, actor: Actor, payload: TransitionPayload) -> TransitionResult:
        now = self._clock()
        changes = self._milestone(OrderStatus.CANCELLED, now)
        result = self._commit(
            order, OrderStatus.CANCELLED, actor, now, changes,
            note=payload.reason, release_capacity=order.status.is_before_pickup(),
        )

        if order.payment_status is not PaymentStatus.AUTHORIZED or not order.payment_intent_id:
            return result

        decision = self._pricing.cancellation_refund(
            order, now, self.window_start(order),
            by_admin=actor.role in {ActorRole.ADMIN, ActorRole.SYSTEM},
        )
        held = order.authorized_cents
        try:
            if decision.retained_cents > 0:
                held = self._raise_hold(order, decision.retained_cents)
                self._payments.capture(
                    order.payment_intent_id,
                    decision.retained_cents,
                    idempotency_key=f"cancel-capture:{order.order_id}",
                )
                payment_status = PaymentStatus.PARTIALLY_REFUNDED
            else:
                self._payments.cancel(order.payment_intent_id, idempotency_key=f"cancel:{order.order_id}")
                payment_status = PaymentStatus.CANCELED
        except Exception as e:
            logger.error("[GATE] %s cancelled but payment settlement failed: %s", order.order_id, e)
            raise PaymentFailed(
                f"Order cancelled but payment settlement failed: {e}",
                state_changed=True,
                details={"order_id": order.order_id, "refund_cents": decision.refund_cents},
            ) from e

        settled = {
            "payment_status": payment_status,
            "refund_amount_cents": decision.refund_cents,
            "refund_reason": decision.reason,
            "authorized_cents": held,
        }
        self._orders.update_fields(order.order_id, settled, self._clock())
        logger.info("[GATE] %s settled: %s", order.order_id, decision.reason)
        return TransitionResult(
            order=self._load(order.order_id),
            previous_status=result.previous_status,
            refund=decision,
        )

    def _archive(self, order: Order, actor: Actor, payload: TransitionPayload) -> TransitionResult:
        now = self._clock()
        return self._commit(
            order, OrderStatus.ARCHIVED, actor, now, {},
            note=payload.reason, release_capacity=order.status.is_before_pickup(),
        )

    def _commit(
        self,
        order: Order,
        requested: OrderStatus,
        actor: Actor,
        now: datetime,
        changes: dict[str, Any],
        note: str | None = None,
        release_capacity: bool = False,
    ) -> TransitionResult:
        """Compare-and-swap the status, append history, release capacity."""
        with self._db.transaction() as conn:
            swapped = self._orders.compare_and_set_status(
                order.order_id, order.status, requested, now, changes, conn=conn
            )
            if not swapped:
                current = self._orders.find_by_id(order.order_id, conn=conn)
                raise InvalidTransition(current.status if current else order.status, requested)

            self._orders.append_history(
                StatusChange(
                    order_id=order.order_id,
                    from_status=order.status,
                    to_status=requested,
                    actor_role=actor.role,
                    actor_id=actor.actor_id,
                    changed_at=now,
                    note=note,
                ),
                conn=conn,
            )
            if release_capacity and order.laundromat_id:
                self._ledger.release(order.laundromat_id, order.pickup_date, conn=conn)

            updated = self._orders.find_by_id(order.order_id, conn=conn)

        logger.info(
            "[GATE] %s %s -> %s by %s",
            order.order_id, order.status.value, requested.value, actor.role.value,
        )
        return TransitionResult(order=updated, previous_status=order.status)

    def _raise_hold(self, order: Order, amount_cents: int) -> int:
        """
        Make sure the authorization covers ``amount_cents`` before capture.

        Returns the amount held afterwards. Provider errors propagate.
        """
        authorized = order.authorized_cents
        if authorized is not None and amount_cents <= authorized:
            return authorized
        self._payments.update_amount(
            order.payment_intent_id,
            amount_cents,
            idempotency_key=f"update-amount:{order.order_id}:{amount_cents}",
        )
        logger.info(
            "[GATE] %s hold raised from %s to %d before capture",
            order.order_id, authorized if authorized is not None else "unknown", amount_cents,
        )
        return amount_cents

    def _attach_photo(self, order: Order, kind: str, reference: str) -> str:
        try:
            return self._photos.attach(order.order_id, kind, reference)
        except Exception as e:
            raise StorageFailed(
                f"Could not attach {kind} photo: {e}",
                details={"order_id": order.order_id, "photo_reference": reference},
            ) from e

    def _load(self, order_id: str) -> Order:
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    @staticmethod
    def _milestone(status: OrderStatus, now: datetime) -> dict[str, Any]:
        column = status.milestone_column()
        return {column: now} if column else {}
