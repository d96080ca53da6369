"""
Integration tests for the order lifecycle through OrderService.

Runs against the fully wired orchestrator from conftest: a real SQLite
file, a fixed clock and recording fakes for payment, photos, email and
SMS.
"""

import logging
import threading
from dataclasses import replace
from datetime import timedelta

import pytest

from laundry_ops.business_logic.services.notification_dispatcher import NotificationDispatcher
from laundry_ops.domain.entities import Laundromat
from laundry_ops.domain.enums import (
    ActorRole,
    OrderStatus,
    PaymentStatus,
    PricingModel,
    RoutingMethod,
)
from laundry_ops.domain.errors import (
    AccessDenied,
    CapacityExceeded,
    InvalidTransition,
    LaundromatNotFound,
    NoCoverage,
    OrderNotFound,
    PaymentFailed,
    StorageFailed,
    ValidationError,
)
from laundry_ops.domain.value_objects import Actor, Address, TransitionPayload
from laundry_ops.orchestration.orchestrator import create_orchestrator

from conftest import ADMIN, DOWNTOWN, DRIVER, MIDTOWN, STAFF, TODAY, TOMORROW, make_intake

PICKUP = TransitionPayload(weight_lb=20, photo_reference="photos/pickup-1.jpg")


def customer_of(order) -> Actor:
    return Actor(role=ActorRole.CUSTOMER, actor_id="user-1", customer_id=order.customer_id)


def walk(service, order_id, until: OrderStatus, pickup: TransitionPayload = PICKUP):
    """Drive an order along the happy path until it reaches ``until``."""
    steps = [
        (OrderStatus.EN_ROUTE_PICKUP, DRIVER, None),
        (OrderStatus.PICKED_UP, DRIVER, pickup),
        (OrderStatus.PROCESSING, STAFF, None),
        (OrderStatus.READY_FOR_DELIVERY, STAFF, None),
        (OrderStatus.EN_ROUTE_DELIVERY, DRIVER, None),
        (OrderStatus.DELIVERED, DRIVER, TransitionPayload(delivery_notes="Left with doorman")),
    ]
    order = service.get(order_id)
    for status, actor, payload in steps:
        order = service.update_status(order_id, status, actor, payload)
        if status is until:
            return order
    return order


def remaining(app, laundromat_id: str, postal_code: str = "48201") -> int:
    for candidate in app.laundromats.capacity(postal_code, TOMORROW):
        if candidate.laundromat.laundromat_id == laundromat_id:
            return candidate.remaining
    raise AssertionError(f"{laundromat_id} does not cover {postal_code}")


class TestCreateOrder:
    """Tests for order intake."""

    def test_create_prices_routes_and_notifies(self, app, service, emails, sms):
        """Should create a scheduled order at the minimum price on the emptiest laundromat."""
        result = service.create(make_intake(estimated_amount_cents=1000))
        order = result.order

        assert order.status is OrderStatus.SCHEDULED
        assert order.subtotal_cents == 1000
        assert order.total_cents == 3500
        assert order.laundromat_id == "midtown"
        assert order.routing_method is RoutingMethod.ZIP_MATCH
        assert order.payment_status is PaymentStatus.REQUIRES_PAYMENT
        assert order.delivery_address == order.pickup_address
        assert result.magic_link == f"http://testserver/orders/{order.order_id}?token={order.access_token}"
        assert result.notification_queued

        assert service.get(order.order_id) == order
        assert remaining(app, "midtown") == 2
        assert len(emails.sent) == 1
        assert result.magic_link in emails.sent[0][2]
        assert len(sms.sent) == 1

    def test_initial_history_row(self, service):
        order = service.create(make_intake()).order

        [entry] = service.history(order.order_id)

        assert entry.from_status is None
        assert entry.to_status is OrderStatus.SCHEDULED
        assert entry.actor_role is ActorRole.CUSTOMER

    def test_repeat_guest_reuses_customer(self, app, service):
        first = service.create(make_intake()).order
        second = service.create(make_intake(pickup_address=Address(line1="9 Elm", postal_code="48226"))).order

        assert first.customer_id == second.customer_id
        assert second.laundromat_id == "downtown"
        assert app.customers.count() == 1

    def test_signed_in_customer_links_account(self, app, service):
        actor = Actor(role=ActorRole.CUSTOMER, actor_id="auth-42")

        order = service.create(make_intake(), actor).order

        assert app.customers.find_by_auth_user("auth-42").customer_id == order.customer_id

    def test_past_date_rejected(self, app, service):
        with pytest.raises(ValidationError):
            service.create(make_intake(pickup_date=TODAY - timedelta(days=1)))

        assert service.list_orders(ADMIN) == []

    def test_same_day_allowed(self, service):
        assert service.create(make_intake(pickup_date=TODAY)).order.pickup_date == TODAY

    def test_unknown_window_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.create(make_intake(time_window_id="midnight"))

        assert exc_info.value.details["available"] == ["afternoon", "evening", "morning"]

    def test_unknown_addon_rejected_before_reserving(self, app, service):
        with pytest.raises(ValidationError):
            service.create(make_intake(addons=("gold_leaf",)))

        assert remaining(app, "midtown") == 3

    def test_no_capacity_creates_nothing(self, app, service):
        """Should raise NoCoverage and leave no order, customer or slot behind."""
        app.laundromats.upsert(replace(MIDTOWN, daily_capacity=0), ADMIN)
        app.laundromats.upsert(replace(DOWNTOWN, daily_capacity=0), ADMIN)

        with pytest.raises(NoCoverage) as exc_info:
            service.create(make_intake())

        assert exc_info.value.reason == "no_capacity"
        assert exc_info.value.retry_safe
        assert service.list_orders(ADMIN) == []
        assert app.customers.count() == 0

    def test_outside_service_area(self, service):
        with pytest.raises(NoCoverage) as exc_info:
            service.create(make_intake(pickup_address=Address(line1="1 Far Rd", postal_code="99999")))

        assert exc_info.value.reason == "outside_service_area"

    def test_capacity_is_shared_across_laundromats(self, service):
        """Should fill every covering laundromat before refusing."""
        placed = [service.create(make_intake()).order.laundromat_id for _ in range(5)]

        assert placed.count("midtown") == 3
        assert placed.count("downtown") == 2
        with pytest.raises(NoCoverage):
            service.create(make_intake())

    def test_deactivated_laundromat_keeps_orders(self, app, service):
        existing = service.create(make_intake()).order
        app.laundromats.set_active("midtown", False, ADMIN)

        new = service.create(make_intake()).order

        assert service.get(existing.order_id).laundromat_id == "midtown"
        assert new.laundromat_id == "downtown"

    def test_bag_order_with_declared_weight(self, service):
        order = service.create(
            make_intake(pricing_model=PricingModel.BAG_SMALL, declared_weight_lb=26, addons=("hang_dry",))
        ).order

        assert order.subtotal_cents == 4500
        assert order.total_cents == 4800

    def test_concurrent_intake_never_overbooks(self, app, service):
        """Should accept exactly the combined capacity under concurrent intake."""
        attempts = 8
        barrier = threading.Barrier(attempts)
        outcomes: list[str] = []
        lock = threading.Lock()

        def place():
            barrier.wait()
            try:
                service.create(make_intake())
                outcome = "ok"
            except NoCoverage:
                outcome = "full"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=place) for _ in range(attempts)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 5
        assert len(service.list_orders(ADMIN)) == 5
        assert remaining(app, "midtown") == 0
        assert remaining(app, "downtown") == 0


class TestStatusTransitions:
    """Tests for status changes through the transition gate."""

    def test_full_lifecycle(self, service, payments, photos, emails):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, customer_of(order))

        delivered = walk(service, order.order_id, OrderStatus.DELIVERED)

        assert delivered.status is OrderStatus.DELIVERED
        assert delivered.measured_weight_lb == 20
        assert delivered.total_cents == 4500
        assert delivered.payment_status is PaymentStatus.PAID
        assert delivered.delivery_notes == "Left with doorman"
        assert delivered.picked_up_at is not None
        assert delivered.ready_for_delivery_at is not None
        assert delivered.delivered_at is not None
        assert photos.photos[order.order_id] == [("pickup", "photos/pickup-1.jpg")]
        assert [(c.operation, c.amount_cents) for c in payments.calls] == [
            ("authorize", 3500),
            ("update_amount", 4500),
            ("capture", 4500),
        ]
        assert delivered.authorized_cents == 4500
        assert emails.sent[-1][1] == "Your laundry has been delivered"
        assert "$45.00" in emails.sent[-1][2]

        history = service.history(order.order_id)
        assert [h.to_status for h in history] == [
            OrderStatus.SCHEDULED,
            OrderStatus.EN_ROUTE_PICKUP,
            OrderStatus.PICKED_UP,
            OrderStatus.PROCESSING,
            OrderStatus.READY_FOR_DELIVERY,
            OrderStatus.EN_ROUTE_DELIVERY,
            OrderStatus.DELIVERED,
        ]
        assert all(h.from_status is prev.to_status for prev, h in zip(history, history[1:]))
        assert history[1].actor_id == "driver-1"

    def test_skipping_a_step_is_rejected(self, service):
        order = service.create(make_intake()).order

        with pytest.raises(InvalidTransition):
            service.update_status(order.order_id, OrderStatus.PICKED_UP, DRIVER, PICKUP)

        assert service.get(order.order_id).status is OrderStatus.SCHEDULED
        assert len(service.history(order.order_id)) == 1

    def test_terminal_order_cannot_move(self, service):
        order = service.create(make_intake()).order
        service.update_status(order.order_id, OrderStatus.CANCELLED, ADMIN)

        with pytest.raises(InvalidTransition):
            service.update_status(order.order_id, OrderStatus.ARCHIVED, ADMIN)

    @pytest.mark.parametrize("actor,status", [
        (DRIVER, OrderStatus.CANCELLED),
        (STAFF, OrderStatus.EN_ROUTE_PICKUP),
        (Actor(role=ActorRole.CUSTOMER, customer_id="someone"), OrderStatus.EN_ROUTE_PICKUP),
    ])
    def test_role_table_enforced(self, service, actor, status):
        order = service.create(make_intake()).order

        with pytest.raises(AccessDenied):
            service.update_status(order.order_id, status, actor)

        assert service.get(order.order_id).status is OrderStatus.SCHEDULED

    def test_customer_cannot_cancel_someone_elses_order(self, service):
        order = service.create(make_intake()).order
        stranger = Actor(role=ActorRole.CUSTOMER, customer_id="someone-else")

        with pytest.raises(AccessDenied):
            service.update_status(order.order_id, OrderStatus.CANCELLED, stranger)

    def test_unknown_order(self, service):
        with pytest.raises(OrderNotFound):
            service.update_status("missing", OrderStatus.CANCELLED, ADMIN)

    def test_pickup_requires_weight_and_photo(self, service):
        order = service.create(make_intake()).order
        service.update_status(order.order_id, OrderStatus.EN_ROUTE_PICKUP, DRIVER)

        with pytest.raises(ValidationError):
            service.update_status(
                order.order_id, OrderStatus.PICKED_UP, DRIVER, TransitionPayload(photo_reference="p.jpg")
            )
        with pytest.raises(ValidationError):
            service.update_status(order.order_id, OrderStatus.PICKED_UP, DRIVER, TransitionPayload(weight_lb=10))

        assert service.get(order.order_id).status is OrderStatus.EN_ROUTE_PICKUP

    def test_photo_storage_failure(self, service):
        order = service.create(make_intake()).order
        service.update_status(order.order_id, OrderStatus.EN_ROUTE_PICKUP, DRIVER)

        with pytest.raises(StorageFailed):
            service.update_status(
                order.order_id, OrderStatus.PICKED_UP, DRIVER,
                TransitionPayload(weight_lb=10, photo_reference="   "),
            )

        assert service.get(order.order_id).status is OrderStatus.EN_ROUTE_PICKUP

    def test_concurrent_transitions_only_one_wins(self, service):
        """Should let one of two racing identical requests through."""
        order = service.create(make_intake()).order
        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def dispatch():
            barrier.wait()
            try:
                service.update_status(order.order_id, OrderStatus.EN_ROUTE_PICKUP, DRIVER)
                outcome = "ok"
            except InvalidTransition:
                outcome = "lost"
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=dispatch) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["lost", "ok"]
        assert len(service.history(order.order_id)) == 2


class TestDeliveryPayment:
    """Tests for payment capture on delivery."""

    def test_capture_failure_leaves_order_en_route(self, service, payments):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        walk(service, order.order_id, OrderStatus.EN_ROUTE_DELIVERY)
        payments.failing.add("capture")

        with pytest.raises(PaymentFailed) as exc_info:
            service.update_status(order.order_id, OrderStatus.DELIVERED, DRIVER)

        assert exc_info.value.retry_safe
        current = service.get(order.order_id)
        assert current.status is OrderStatus.EN_ROUTE_DELIVERY
        assert current.payment_status is PaymentStatus.AUTHORIZED
        assert current.delivered_at is None
        assert service.history(order.order_id)[-1].to_status is OrderStatus.EN_ROUTE_DELIVERY

    def test_delivery_without_authorization(self, service):
        order = service.create(make_intake()).order
        walk(service, order.order_id, OrderStatus.EN_ROUTE_DELIVERY)

        with pytest.raises(PaymentFailed):
            service.update_status(order.order_id, OrderStatus.DELIVERED, DRIVER)

        assert service.get(order.order_id).status is OrderStatus.EN_ROUTE_DELIVERY

    def test_capture_uses_weight_recorded_at_laundromat(self, service, payments):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        walk(service, order.order_id, OrderStatus.PROCESSING)
        service.record_weight(order.order_id, 30, STAFF)
        walk_rest = [
            (OrderStatus.READY_FOR_DELIVERY, STAFF),
            (OrderStatus.EN_ROUTE_DELIVERY, DRIVER),
            (OrderStatus.DELIVERED, DRIVER),
        ]
        for status, actor in walk_rest:
            service.update_status(order.order_id, status, actor)

        assert payments.calls[-1].amount_cents == 6750
        assert service.get(order.order_id).total_cents == 6750

    def test_hold_raised_when_pickup_weight_exceeds_it(self, service, payments):
        """Should raise the authorization to the repriced total before capturing it."""
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        walk(
            service, order.order_id, OrderStatus.DELIVERED,
            pickup=TransitionPayload(weight_lb=40, photo_reference="photos/pickup-40.jpg"),
        )

        assert [(c.operation, c.amount_cents) for c in payments.calls] == [
            ("authorize", 3500),
            ("update_amount", 9000),
            ("capture", 9000),
        ]
        delivered = service.get(order.order_id)
        assert delivered.total_cents == 9000
        assert delivered.authorized_cents == 9000
        assert delivered.payment_status is PaymentStatus.PAID

    def test_capture_within_hold_leaves_it_alone(self, service, payments):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        walk(
            service, order.order_id, OrderStatus.DELIVERED,
            pickup=TransitionPayload(weight_lb=12, photo_reference="photos/pickup-12.jpg"),
        )

        assert [(c.operation, c.amount_cents) for c in payments.calls] == [
            ("authorize", 3500),
            ("capture", 3500),
        ]

    def test_declined_hold_increase_leaves_order_en_route(self, service, payments):
        """Should not capture or deliver when the provider refuses the larger hold."""
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        walk(service, order.order_id, OrderStatus.EN_ROUTE_DELIVERY)
        payments.failing.add("update_amount")

        with pytest.raises(PaymentFailed):
            service.update_status(order.order_id, OrderStatus.DELIVERED, DRIVER)

        current = service.get(order.order_id)
        assert current.status is OrderStatus.EN_ROUTE_DELIVERY
        assert current.payment_status is PaymentStatus.AUTHORIZED
        assert current.authorized_cents == 3500
        assert [c.operation for c in payments.calls] == ["authorize"]


class TestNotificationFailures:
    """Tests for notification delivery failures after a committed change."""

    def test_failed_notification_does_not_undo_delivery(self, app, service, emails):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        walk(service, order.order_id, OrderStatus.EN_ROUTE_DELIVERY)
        emails.down = True

        delivered = service.update_status(order.order_id, OrderStatus.DELIVERED, DRIVER)

        assert delivered.status is OrderStatus.DELIVERED
        assert service.get(order.order_id).status is OrderStatus.DELIVERED

        emails.down = False
        sent_before = len(emails.sent)
        report = app.retry_notifications()

        assert (report.attempted, report.delivered, report.still_failing) == (1, 1, 0)
        assert len(emails.sent) == sent_before + 1
        assert app.retry_notifications().attempted == 0

    def test_failed_confirmation_reported_on_intake(self, service, emails):
        emails.down = True

        result = service.create(make_intake())

        assert result.notification_queued is False
        assert service.get(result.order.order_id).status is OrderStatus.SCHEDULED

    def test_async_notifications_flushed_on_shutdown(self, config, payments, photos, emails, sms, clock):
        orchestrator = create_orchestrator(
            replace(config, notify_async=True, notification_workers=2),
            payment_client=payments,
            photo_storage=photos,
            email_sender=emails,
            sms_sender=sms,
            clock=clock,
        )
        orchestrator.laundromats.upsert(MIDTOWN, ADMIN)

        result = orchestrator.orders.create(make_intake())
        orchestrator.shutdown()

        assert result.notification_queued
        assert len(emails.sent) == 1
        assert len(sms.sent) == 1

    def test_background_failure_is_logged(
        self, config, payments, photos, emails, sms, clock, monkeypatch, caplog
    ):
        """Should log an error raised inside a background delivery."""
        def explode(self, order_id, kind, payload, channels=None):
            raise RuntimeError("template missing")

        monkeypatch.setattr(NotificationDispatcher, "notify", explode)
        orchestrator = create_orchestrator(
            replace(config, notify_async=True, notification_workers=1),
            payment_client=payments,
            photo_storage=photos,
            email_sender=emails,
            sms_sender=sms,
            clock=clock,
        )
        orchestrator.laundromats.upsert(MIDTOWN, ADMIN)

        with caplog.at_level(logging.ERROR, logger="laundry_ops"):
            result = orchestrator.orders.create(make_intake())
            orchestrator.shutdown()

        assert result.notification_queued
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "order_confirmed" in errors[0].getMessage()
        assert result.order.order_id in errors[0].getMessage()
        assert "template missing" in errors[0].getMessage()


class TestWeightNotifications:
    """Tests for the customer notice sent when a load is weighed."""

    def test_pickup_weight_notifies_customer(self, service, emails, sms):
        order = service.create(make_intake()).order

        walk(service, order.order_id, OrderStatus.PICKED_UP)

        assert emails.sent[-1][1] == "Your laundry has been weighed"
        assert "20" in emails.sent[-1][2]
        assert "$45.00" in emails.sent[-1][2]
        assert "$45.00" in sms.sent[-1][1]

    def test_recorded_weight_notifies_customer(self, service, emails, sms):
        """Should send the new total after a weight is recorded at the laundromat."""
        order = service.create(make_intake()).order
        walk(service, order.order_id, OrderStatus.PROCESSING)
        sent_before = len(emails.sent), len(sms.sent)

        service.record_weight(order.order_id, 30, STAFF)

        assert (len(emails.sent), len(sms.sent)) == (sent_before[0] + 1, sent_before[1] + 1)
        assert emails.sent[-1][1] == "Your laundry has been weighed"
        assert "$67.50" in emails.sent[-1][2]

    def test_weight_notice_failure_keeps_weight(self, app, service, emails):
        order = service.create(make_intake()).order
        walk(service, order.order_id, OrderStatus.PROCESSING)
        emails.down = True

        updated = service.record_weight(order.order_id, 30, STAFF)

        assert updated.measured_weight_lb == 30
        assert updated.total_cents == 6750
        assert app.retry_notifications().still_failing == 1


class TestCancellation:
    """Tests for cancelling and archiving orders."""

    def test_cancel_releases_capacity(self, app, service):
        order = service.create(make_intake()).order
        assert remaining(app, "midtown") == 2

        cancelled = service.update_status(
            order.order_id, OrderStatus.CANCELLED, customer_of(order), TransitionPayload(reason="Plans changed")
        )

        assert cancelled.status is OrderStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        assert remaining(app, "midtown") == 3
        assert service.history(order.order_id)[-1].note == "Plans changed"

    def test_cancel_after_pickup_keeps_capacity(self, app, service):
        order = service.create(make_intake()).order
        walk(service, order.order_id, OrderStatus.PICKED_UP)

        service.update_status(order.order_id, OrderStatus.CANCELLED, ADMIN)

        assert remaining(app, "midtown") == 2

    def test_archive_before_pickup_releases_capacity(self, app, service):
        order = service.create(make_intake()).order

        archived = service.update_status(order.order_id, OrderStatus.ARCHIVED, ADMIN)

        assert archived.status is OrderStatus.ARCHIVED
        assert remaining(app, "midtown") == 3

    def test_early_cancel_voids_authorization(self, service, payments, emails):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, customer_of(order))

        cancelled = service.update_status(order.order_id, OrderStatus.CANCELLED, customer_of(order))

        assert cancelled.payment_status is PaymentStatus.CANCELED
        assert cancelled.refund_amount_cents == 3500
        assert payments.calls[-1].operation == "cancel"
        assert emails.sent[-1][1] == "Your order was cancelled"
        assert "Full refund" in emails.sent[-1][2]

    def test_late_cancel_keeps_fee(self, service, payments, clock):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, customer_of(order))
        clock.advance(hours=20)

        cancelled = service.update_status(order.order_id, OrderStatus.CANCELLED, customer_of(order))

        assert cancelled.payment_status is PaymentStatus.PARTIALLY_REFUNDED
        assert cancelled.refund_amount_cents == 2500
        assert (payments.calls[-1].operation, payments.calls[-1].amount_cents) == ("capture", 1000)

    def test_settlement_failure_still_cancels(self, service, payments, emails):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)
        payments.failing.add("cancel")

        with pytest.raises(PaymentFailed) as exc_info:
            service.update_status(order.order_id, OrderStatus.CANCELLED, ADMIN)

        assert exc_info.value.state_changed
        assert not exc_info.value.retry_safe
        assert service.get(order.order_id).status is OrderStatus.CANCELLED
        assert emails.sent[-1][1] == "Your order was cancelled"


class TestAccess:
    """Tests for reads, magic links and customer scoping."""

    def test_magic_link_token(self, service):
        result = service.create(make_intake())

        assert service.get_with_token(result.order.order_id, result.access_token) == result.order
        with pytest.raises(AccessDenied):
            service.get_with_token(result.order.order_id, "wrong-token")

    def test_expired_token_denied(self, service, clock):
        result = service.create(make_intake())
        clock.advance(days=15)

        with pytest.raises(AccessDenied):
            service.get_with_token(result.order.order_id, result.access_token)

    def test_customer_cannot_read_other_orders(self, service):
        order = service.create(make_intake()).order

        assert service.get(order.order_id, customer_of(order)) == order
        assert service.get(order.order_id, DRIVER) == order
        with pytest.raises(AccessDenied):
            service.get(order.order_id, Actor(role=ActorRole.CUSTOMER, customer_id="someone-else"))

    def test_customer_listing_is_scoped(self, service):
        mine = service.create(make_intake()).order
        service.create(make_intake(contact=replace(make_intake().contact, email="other@example.com")))

        listed = service.list_orders(customer_of(mine), customer_id="ignored")

        assert [o.order_id for o in listed] == [mine.order_id]
        assert len(service.list_orders(ADMIN)) == 2
        assert service.list_orders(Actor(role=ActorRole.CUSTOMER)) == []

    def test_staff_limited_to_their_laundromat(self, service):
        """Should keep staff from another location away from the order."""
        order = service.create(make_intake()).order
        walk(service, order.order_id, OrderStatus.PICKED_UP)
        elsewhere = Actor(role=ActorRole.LAUNDROMAT_STAFF, actor_id="staff-2", laundromat_id="downtown")

        with pytest.raises(AccessDenied):
            service.update_status(order.order_id, OrderStatus.PROCESSING, elsewhere)
        with pytest.raises(AccessDenied):
            service.record_weight(order.order_id, 30, elsewhere)
        with pytest.raises(AccessDenied):
            service.get(order.order_id, elsewhere)
        with pytest.raises(AccessDenied):
            service.history(order.order_id, elsewhere)

        current = service.get(order.order_id, STAFF)
        assert current.status is OrderStatus.PICKED_UP
        assert current.measured_weight_lb == 20
        moved = service.update_status(order.order_id, OrderStatus.PROCESSING, STAFF)
        assert moved.status is OrderStatus.PROCESSING

    def test_staff_without_laundromat_denied(self, service):
        order = service.create(make_intake()).order
        walk(service, order.order_id, OrderStatus.PICKED_UP)
        unassigned = Actor(role=ActorRole.LAUNDROMAT_STAFF, actor_id="staff-3")

        with pytest.raises(AccessDenied):
            service.update_status(order.order_id, OrderStatus.PROCESSING, unassigned)
        with pytest.raises(AccessDenied):
            service.get(order.order_id, unassigned)
        assert service.list_orders(unassigned) == []

    def test_staff_listing_is_scoped(self, service):
        mine = service.create(make_intake()).order
        service.create(make_intake(pickup_address=Address(line1="9 Elm", postal_code="48226")))

        listed = service.list_orders(STAFF, laundromat_id="downtown")

        assert [o.order_id for o in listed] == [mine.order_id]
        assert len(service.list_orders(ADMIN)) == 2


class TestAdjustments:
    """Tests for payment authorization, weights and manual reassignment."""

    def test_authorize_twice_rejected(self, service):
        order = service.create(make_intake()).order
        service.authorize_payment(order.order_id, ADMIN)

        with pytest.raises(ValidationError):
            service.authorize_payment(order.order_id, ADMIN)

    def test_declined_authorization(self, service, payments):
        order = service.create(make_intake()).order
        payments.failing.add("authorize")

        with pytest.raises(PaymentFailed):
            service.authorize_payment(order.order_id, ADMIN)

        assert service.get(order.order_id).payment_status is PaymentStatus.REQUIRES_PAYMENT

    def test_record_weight_only_after_pickup(self, service):
        order = service.create(make_intake()).order

        with pytest.raises(ValidationError):
            service.record_weight(order.order_id, 12, STAFF)

        walk(service, order.order_id, OrderStatus.PICKED_UP)
        with pytest.raises(AccessDenied):
            service.record_weight(order.order_id, 12, DRIVER)

        updated = service.record_weight(order.order_id, 12, STAFF)
        assert updated.measured_weight_lb == 12
        assert updated.total_cents == 3500

    def test_reassign_moves_capacity(self, app, service):
        order = service.create(make_intake()).order

        moved = service.reassign(order.order_id, "downtown", ADMIN)

        assert moved.laundromat_id == "downtown"
        assert moved.routing_method is RoutingMethod.MANUAL
        assert remaining(app, "midtown") == 3
        assert remaining(app, "downtown") == 1

    def test_reassign_to_full_laundromat(self, app, service):
        order = service.create(make_intake()).order
        app.laundromats.upsert(
            Laundromat("tiny", "Tiny Wash", frozenset({"48202"}), daily_capacity=0), ADMIN
        )

        with pytest.raises(CapacityExceeded):
            service.reassign(order.order_id, "tiny", ADMIN)

        assert service.get(order.order_id).laundromat_id == "midtown"
        assert remaining(app, "midtown") == 2

    def test_reassign_rules(self, service):
        order = service.create(make_intake()).order

        with pytest.raises(AccessDenied):
            service.reassign(order.order_id, "downtown", DRIVER)
        with pytest.raises(LaundromatNotFound):
            service.reassign(order.order_id, "nowhere", ADMIN)
        assert service.reassign(order.order_id, "midtown", ADMIN).routing_method is RoutingMethod.ZIP_MATCH

        walk(service, order.order_id, OrderStatus.PICKED_UP)
        with pytest.raises(ValidationError):
            service.reassign(order.order_id, "downtown", ADMIN)
