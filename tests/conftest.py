"""
Global test configuration.

Shared fixtures: a controllable clock, recording fakes for every
collaborator, and a fully wired orchestrator on a throwaway SQLite file.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

import pytest

from laundry_ops.business_logic.collaborators import (
    LocalPaymentClient,
    LocalPhotoStorage,
    LoggingEmailSender,
    LoggingSmsSender,
)
from laundry_ops.domain.entities import Laundromat
from laundry_ops.domain.enums import ActorRole, PricingModel
from laundry_ops.domain.value_objects import Actor, Address, ContactInfo, OrderIntake
from laundry_ops.orchestration.config import ApplicationConfig
from laundry_ops.orchestration.orchestrator import create_orchestrator

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()
TOMORROW = TODAY + timedelta(days=1)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class FlakyPaymentClient(LocalPaymentClient):
    """Local payment client that can be told to decline operations."""
    failing: set[str] = field(default_factory=set)

    def authorize(self, order_id, amount_cents, currency, idempotency_key):
        if "authorize" in self.failing:
            raise RuntimeError("card declined")
        return super().authorize(order_id, amount_cents, currency, idempotency_key)

    def update_amount(self, intent_id, amount_cents, idempotency_key):
        if "update_amount" in self.failing:
            raise RuntimeError("hold increase declined")
        return super().update_amount(intent_id, amount_cents, idempotency_key)

    def capture(self, intent_id, amount_cents, idempotency_key):
        if "capture" in self.failing:
            raise RuntimeError("capture declined")
        return super().capture(intent_id, amount_cents, idempotency_key)

    def cancel(self, intent_id, idempotency_key):
        if "cancel" in self.failing:
            raise RuntimeError("provider unavailable")
        return super().cancel(intent_id, idempotency_key)


@dataclass
class FlakyEmailSender(LoggingEmailSender):
    """Email sender that fails while ``down`` is set."""
    down: bool = False

    def send(self, to, subject, body):
        if self.down:
            raise ConnectionError("smtp unavailable")
        super().send(to, subject, body)


MIDTOWN = Laundromat(
    laundromat_id="midtown",
    name="Midtown Wash & Fold",
    service_postal_codes=frozenset({"48201", "48202"}),
    daily_capacity=3,
)
DOWNTOWN = Laundromat(
    laundromat_id="downtown",
    name="Downtown Express Wash",
    service_postal_codes=frozenset({"48201", "48226"}),
    daily_capacity=2,
)

ADMIN = Actor(role=ActorRole.ADMIN, actor_id="admin-1")
DRIVER = Actor(role=ActorRole.DRIVER, actor_id="driver-1")
STAFF = Actor(role=ActorRole.LAUNDROMAT_STAFF, actor_id="staff-1", laundromat_id="midtown")


def make_intake(**overrides) -> OrderIntake:
    """Build a valid intake for 48201 tomorrow morning."""
    values = dict(
        contact=ContactInfo(email="jane@example.com", name="Jane Doe", phone="+13135550100"),
        pickup_address=Address(line1="4801 Cass Ave", postal_code="48201"),
        pickup_date=TOMORROW,
        time_window_id="morning",
        pricing_model=PricingModel.PER_LB,
    )
    values.update(overrides)
    return OrderIntake(**values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return ApplicationConfig.for_testing(tmp_path)


@pytest.fixture
def payments():
    return FlakyPaymentClient()


@pytest.fixture
def photos():
    return LocalPhotoStorage()


@pytest.fixture
def emails():
    return FlakyEmailSender()


@pytest.fixture
def sms():
    return LoggingSmsSender()


@pytest.fixture
def app(config, payments, photos, emails, sms, clock):
    """Fully wired orchestrator with two laundromats covering 48201."""
    orchestrator = create_orchestrator(
        config,
        payment_client=payments,
        photo_storage=photos,
        email_sender=emails,
        sms_sender=sms,
        clock=clock,
    )
    orchestrator.laundromats.upsert(MIDTOWN, ADMIN)
    orchestrator.laundromats.upsert(DOWNTOWN, ADMIN)
    yield orchestrator
    orchestrator.shutdown()


@pytest.fixture
def service(app):
    return app.orders


@pytest.fixture
def pickup_day() -> date:
    return TOMORROW
