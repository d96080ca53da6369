"""
Order Service - The order aggregate's public operations.

Intake, status changes, lookups and the payment/weight/assignment
adjustments all go through here. Notifications are sent after the
database work has committed; a delivery failure is logged and parked in
the outbox, never raised to the caller.
"""

import logging
import secrets
import uuid
from concurrent.futures import Executor, Future
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from ...data_access.database import Database
from ...data_access.repositories.capacity_ledger import CapacityLedger
from ...data_access.repositories.customer_repository import CustomerRepository
from ...data_access.repositories.laundromat_repository import LaundromatRepository
from ...data_access.repositories.notification_repository import NotificationRepository
from ...data_access.repositories.order_repository import OrderRepository
from ...domain.entities import IntakeResult, Order, StatusChange
from ...domain.enums import (
    ActorRole,
    NotificationKind,
    OrderStatus,
    PaymentStatus,
    RoutingMethod,
)
from ...domain.errors import (
    AccessDenied,
    DeliveryFailed,
    LaundromatNotFound,
    OrderNotFound,
    PaymentFailed,
    ValidationError,
)
from ...domain.value_objects import Actor, OrderIntake, TimeWindow, TransitionPayload
from ..collaborators import PaymentClient
from .notification_dispatcher import NotificationDispatcher
from .pricing_service import PricingService
from .routing_service import RoutingResolver
from .transition_gate import StatusTransitionGate

logger = logging.getLogger(__name__)

_WEIGHABLE = frozenset({OrderStatus.PICKED_UP, OrderStatus.PROCESSING})
_WEIGHING_ROLES = frozenset({ActorRole.LAUNDROMAT_STAFF, ActorRole.ADMIN, ActorRole.SYSTEM})
_ROUTING_ROLES = frozenset({ActorRole.ADMIN, ActorRole.SYSTEM})


class OrderService:
    """
    Service for the full order lifecycle.

    Responsibilities:
    - Validate, price and route new orders in one transaction
    - Delegate status changes to the transition gate
    - Enforce who may read which order
    - Hand lifecycle events to the notification dispatcher
    """

    def __init__(
        self,
        database: Database,
        customer_repository: CustomerRepository,
        order_repository: OrderRepository,
        laundromat_repository: LaundromatRepository,
        capacity_ledger: CapacityLedger,
        routing_resolver: RoutingResolver,
        pricing_service: PricingService,
        transition_gate: StatusTransitionGate,
        dispatcher: NotificationDispatcher,
        outbox: NotificationRepository,
        payment_client: PaymentClient,
        time_windows: dict[str, TimeWindow],
        base_url: str = "http://localhost:8000",
        token_ttl_days: int = 14,
        currency: str = "usd",
        local_timezone: timezone = timezone.utc,
        clock: Callable[[], datetime] | None = None,
        executor: Executor | None = None,
    ):
        self._db = database
        self._customers = customer_repository
        self._orders = order_repository
        self._laundromats = laundromat_repository
        self._ledger = capacity_ledger
        self._routing = routing_resolver
        self._pricing = pricing_service
        self._gate = transition_gate
        self._dispatcher = dispatcher
        self._outbox = outbox
        self._payments = payment_client
        self._windows = time_windows
        self._base_url = base_url
        self._token_ttl = timedelta(days=token_ttl_days)
        self._currency = currency
        self._tz = local_timezone
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._executor = executor

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def create(self, intake: OrderIntake, actor: Actor | None = None) -> IntakeResult:
        """
        Create, price and route a new order.

        Everything is validated before the transaction opens. Routing,
        the capacity reservation, the customer record, the order row and
        its first history entry then commit together or not at all.

        Args:
            intake: Customer-submitted order request
            actor: Signed-in customer, staff member, or None for guests

        Returns:
            IntakeResult with the order and its magic link

        Raises:
            ValidationError: Bad date, window or add-on
            NoCoverage: No laundromat can take the order
        """
        now = self._clock()
        if intake.pickup_date < self.today():
            raise ValidationError(
                "Pickup date cannot be in the past",
                details={"pickup_date": intake.pickup_date.isoformat()},
            )
        if intake.time_window_id not in self._windows:
            raise ValidationError(
                f"Unknown time window: {intake.time_window_id}",
                details={"available": sorted(self._windows)},
            )
        quote = self._pricing.quote_intake(intake)

        auth_user_id = intake.auth_user_id
        if actor is not None and actor.role is ActorRole.CUSTOMER and actor.actor_id:
            auth_user_id = actor.actor_id

        with self._db.transaction() as conn:
            laundromat, capacity = self._routing.resolve(
                intake.pickup_address.postal_code, intake.pickup_date, conn=conn
            )
            customer = self._customers.find_or_create(intake.contact, auth_user_id=auth_user_id, conn=conn)
            order = Order(
                order_id=uuid.uuid4().hex,
                customer_id=customer.customer_id,
                pickup_address=intake.pickup_address,
                delivery_address=intake.effective_delivery_address(),
                pickup_date=intake.pickup_date,
                time_window_id=intake.time_window_id,
                subtotal_cents=quote.subtotal_cents,
                total_cents=quote.total_cents,
                access_token=secrets.token_urlsafe(32),
                token_expires_at=now + self._token_ttl,
                created_at=now,
                service_type=intake.service_type,
                pricing_model=intake.pricing_model,
                laundromat_id=laundromat.laundromat_id,
                routing_method=RoutingMethod.ZIP_MATCH,
                status=OrderStatus.SCHEDULED,
                currency=self._currency,
                addons=intake.addons,
                notes=intake.notes,
                is_member=intake.is_member,
            )
            self._orders.insert(order, conn=conn)
            self._orders.append_history(
                StatusChange(
                    order_id=order.order_id,
                    from_status=None,
                    to_status=OrderStatus.SCHEDULED,
                    actor_role=actor.role if actor else ActorRole.CUSTOMER,
                    actor_id=actor.actor_id if actor else None,
                    changed_at=now,
                ),
                conn=conn,
            )

        logger.info(
            "[ORDER] Created %s for %s -> %s (%d/%d booked on %s)",
            order.order_id, customer.email, laundromat.name,
            capacity.consumed, capacity.ceiling, order.pickup_date,
        )

        link = order.magic_link(self._base_url)
        queued = self._notify(
            order,
            NotificationKind.ORDER_CONFIRMED,
            {"magic_link": link, "total_display": f"${quote.total_cents / 100:.2f}"},
        )
        return IntakeResult(order=order, magic_link=link, notification_queued=queued)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def update_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        actor: Actor,
        payload: TransitionPayload | None = None,
    ) -> Order:
        """
        Apply a status transition through the gate, then notify.

        A PaymentFailed raised after a cancellation committed still sends
        the cancellation notice before propagating.
        """
        try:
            result = self._gate.apply(order_id, new_status, actor, payload)
        except PaymentFailed as e:
            if e.state_changed and new_status is OrderStatus.CANCELLED:
                order = self._orders.find_by_id(order_id)
                if order is not None:
                    self._notify(order, NotificationKind.CANCELLED, {})
            raise

        kind = NotificationKind.for_status(result.status)
        if kind is not None:
            extra = {}
            if kind is NotificationKind.DELIVERED:
                extra["total_display"] = f"${result.order.total_cents / 100:.2f}"
            if result.refund is not None:
                extra["refund_reason"] = result.refund.reason
            self._notify(result.order, kind, extra)
        if result.status is OrderStatus.PICKED_UP:
            self._notify_weight(result.order)
        return result.order

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, order_id: str, actor: Actor | None = None) -> Order:
        """
        Get an order.

        Args:
            order_id: Order to fetch
            actor: When given, customers must own the order

        Raises:
            OrderNotFound: Unknown order id
            AccessDenied: A customer asked for someone else's order, or staff
                for an order at another laundromat
        """
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if actor is not None:
            self._require_can_view(order, actor)
        return order

    def get_with_token(self, order_id: str, token: str) -> Order:
        """Guest access through a magic link; wrong or expired tokens are denied."""
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if not order.is_token_valid(token, self._clock()):
            raise AccessDenied("Invalid or expired order link", details={"order_id": order_id})
        return order

    def history(self, order_id: str, actor: Actor | None = None) -> list[StatusChange]:
        self.get(order_id, actor)
        return self._orders.history(order_id)

    def list_orders(
        self,
        actor: Actor,
        status: OrderStatus | None = None,
        laundromat_id: str | None = None,
        customer_id: str | None = None,
        day: date | None = None,
    ) -> list[Order]:
        """
        List orders for a dashboard.

        Customers only ever see their own orders and laundromat staff only
        their own location's, whatever filter they pass.
        """
        if actor.role is ActorRole.CUSTOMER:
            if not actor.customer_id:
                return []
            customer_id = actor.customer_id
        if actor.role is ActorRole.LAUNDROMAT_STAFF:
            if not actor.laundromat_id:
                return []
            laundromat_id = actor.laundromat_id
        return self._orders.list_orders(
            status=status, laundromat_id=laundromat_id, customer_id=customer_id, day=day
        )

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def authorize_payment(self, order_id: str, actor: Actor) -> Order:
        """
        Place a hold for the order's current total.

        Raises:
            PaymentFailed: Provider declined; the order is unchanged
            ValidationError: Order is finished or already authorized
        """
        order = self.get(order_id, actor)
        if order.is_terminal():
            raise ValidationError(
                "Cannot authorize payment on a finished order",
                details={"status": order.status.value},
            )
        if not order.payment_status.can_authorize():
            raise ValidationError(
                f"Payment is already {order.payment_status.value}",
                details={"payment_status": order.payment_status.value},
            )

        try:
            intent_id = self._payments.authorize(
                order.order_id, order.total_cents, order.currency,
                idempotency_key=f"authorize:{order.order_id}",
            )
        except Exception as e:
            logger.warning("[ORDER] Authorization failed for %s: %s", order_id, e)
            raise PaymentFailed(
                f"Payment authorization failed: {e}",
                details={"order_id": order_id, "amount_cents": order.total_cents},
            ) from e

        self._orders.update_fields(
            order_id,
            {
                "payment_status": PaymentStatus.AUTHORIZED,
                "payment_intent_id": intent_id,
                "authorized_cents": order.total_cents,
            },
            self._clock(),
        )
        logger.info("[ORDER] Authorized %d for %s", order.total_cents, order_id)
        return self.get(order_id)

    def record_weight(self, order_id: str, weight_lb: float, actor: Actor) -> Order:
        """
        Record the load's weight at the laundromat and reprice the order.

        Only allowed while the order is picked up or processing.
        """
        if actor.role not in _WEIGHING_ROLES:
            raise AccessDenied(f"Role {actor.role.value} may not record weights")
        order = self.get(order_id, actor)
        if order.status not in _WEIGHABLE:
            raise ValidationError(
                "Weight can only be recorded while the order is picked up or processing",
                details={"status": order.status.value},
            )

        quote = self._pricing.quote_order(order, weight_lb)
        updated = self._orders.update_fields(
            order_id,
            {
                "measured_weight_lb": weight_lb,
                "subtotal_cents": quote.subtotal_cents,
                "total_cents": quote.total_cents,
            },
            self._clock(),
            expected_status=order.status,
        )
        if not updated:
            raise ValidationError(
                f"Order is no longer {order.status.value}",
                details={"expected_status": order.status.value},
            )
        logger.info("[ORDER] %s weighed %.1f lb, total %d", order_id, weight_lb, quote.total_cents)
        order = self.get(order_id)
        self._notify_weight(order)
        return order

    def reassign(self, order_id: str, laundromat_id: str, actor: Actor) -> Order:
        """
        Manually move an order to another laundromat.

        The new laundromat's slot is reserved and the old one released in
        the same transaction. Only possible before pickup.

        Raises:
            AccessDenied: Not an admin
            LaundromatNotFound: Unknown laundromat
            CapacityExceeded: Target laundromat is full that day
        """
        if actor.role not in _ROUTING_ROLES:
            raise AccessDenied("Only admins may reassign orders")
        order = self.get(order_id)
        if not order.status.is_before_pickup():
            raise ValidationError(
                "Orders can only be reassigned before pickup",
                details={"status": order.status.value},
            )
        if order.laundromat_id == laundromat_id:
            return order

        now = self._clock()
        with self._db.transaction() as conn:
            if self._laundromats.find_by_id(laundromat_id, conn=conn) is None:
                raise LaundromatNotFound(laundromat_id)
            self._ledger.reserve(laundromat_id, order.pickup_date, conn=conn)
            if order.laundromat_id:
                self._ledger.release(order.laundromat_id, order.pickup_date, conn=conn)
            updated = self._orders.update_fields(
                order_id,
                {
                    "laundromat_id": laundromat_id,
                    "routing_method": RoutingMethod.MANUAL,
                    "assigned_at": now,
                },
                now,
                expected_status=order.status,
                conn=conn,
            )
            if not updated:
                raise ValidationError(
                    f"Order is no longer {order.status.value}",
                    details={"expected_status": order.status.value},
                )

        logger.info("[ORDER] %s reassigned %s -> %s", order_id, order.laundromat_id, laundromat_id)
        return self.get(order_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def today(self) -> date:
        """Today's date in the service timezone."""
        return self._clock().astimezone(self._tz).date()

    def _require_can_view(self, order: Order, actor: Actor) -> None:
        if not actor.works_at(order.laundromat_id):
            raise AccessDenied(
                "Staff may only view orders at their own laundromat",
                details={"order_id": order.order_id, "laundromat_id": order.laundromat_id},
            )
        if actor.role.is_staff():
            return
        if not order.is_owned_by(actor.customer_id):
            raise AccessDenied("Customers may only view their own orders", details={"order_id": order.order_id})

    def _notify(self, order: Order, kind: NotificationKind, extra: dict) -> bool:
        """
        Hand an event to the dispatcher, inline or on the executor.

        Returns:
            False if an inline delivery failed and was parked in the outbox
        """
        customer = self._customers.find_by_id(order.customer_id)
        window = self._windows.get(order.time_window_id)
        payload = {
            "email": customer.email if customer else None,
            "phone": customer.phone if customer else None,
            "customer_name": customer.full_name if customer else "",
            "status": order.status.value,
            "pickup_date": order.pickup_date.isoformat(),
            "time_window": window.to_display() if window else order.time_window_id,
            **extra,
        }
        if self._executor is not None:
            future = self._executor.submit(self._deliver, order.order_id, kind, payload)
            future.add_done_callback(
                lambda f: self._log_background_failure(f, order.order_id, kind)
            )
            return True
        return self._deliver(order.order_id, kind, payload)

    def _notify_weight(self, order: Order) -> None:
        self._notify(
            order,
            NotificationKind.WEIGHT_UPDATED,
            {
                "weight_lb": order.measured_weight_lb,
                "total_display": f"${order.total_cents / 100:.2f}",
            },
        )

    @staticmethod
    def _log_background_failure(future: Future, order_id: str, kind: NotificationKind) -> None:
        """Surface errors from background deliveries that nothing else awaits."""
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                "[ORDER] Background %s notification for %s failed: %s",
                kind.value, order_id, error, exc_info=error,
            )

    def _deliver(self, order_id: str, kind: NotificationKind, payload: dict) -> bool:
        try:
            self._dispatcher.notify(order_id, kind, payload)
            return True
        except DeliveryFailed as e:
            logger.warning("[ORDER] %s notification for %s parked in outbox: %s", kind.value, order_id, e)
            self._outbox.record_failure(
                order_id,
                kind.value,
                {**payload, "failed_channels": e.details.get("failed_channels", [])},
                str(e.details.get("errors") or e),
                self._clock(),
            )
            return False
