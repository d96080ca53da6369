"""
Collaborator Interfaces - External systems the order lifecycle calls.

Payment, photo storage, email and SMS are injected into the services as
objects satisfying these protocols. The ``Local*`` classes are the
development implementations: they log what a real provider would do and
keep a record in memory.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)


class PaymentClient(Protocol):
    """
    Card payment provider.

    Every call carries an idempotency key; repeating a call with the same
    key must not move money twice. Implementations raise any exception on
    decline or transport failure.
    """

    def authorize(self, order_id: str, amount_cents: int, currency: str, idempotency_key: str) -> str:
        """Place a hold and return the provider's payment intent id."""
        ...

    def update_amount(self, intent_id: str, amount_cents: int, idempotency_key: str) -> None:
        """Raise or lower the held amount on an authorized intent."""
        ...

    def capture(self, intent_id: str, amount_cents: int, idempotency_key: str) -> None:
        ...

    def cancel(self, intent_id: str, idempotency_key: str) -> None:
        ...


class PhotoStorage(Protocol):
    def attach(self, order_id: str, kind: str, reference: str) -> str:
        """
        Confirm an uploaded photo belongs to an order.

        Returns:
            The stored reference to save on the order
        """
        ...


class EmailSender(Protocol):
    def send(self, to: str, subject: str, body: str) -> None:
        ...


class SmsSender(Protocol):
    def send(self, to: str, body: str) -> None:
        ...


@dataclass
class PaymentCall:
    """One call made to the local payment client."""
    operation: str
    intent_id: str
    amount_cents: int | None
    idempotency_key: str


@dataclass
class LocalPaymentClient:
    """
    In-process payment client for development.

    Honors idempotency keys: a repeated key returns the first result
    without recording a second call.
    """
    calls: list[PaymentCall] = field(default_factory=list)
    _seen: dict[str, str] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def authorize(self, order_id: str, amount_cents: int, currency: str, idempotency_key: str) -> str:
        with self._lock:
            if idempotency_key in self._seen:
                return self._seen[idempotency_key]
            intent_id = f"pi_local_{uuid.uuid4().hex[:16]}"
            self._record("authorize", intent_id, amount_cents, idempotency_key)
        logger.info("[PAYMENT] Authorized %d %s for %s (%s)", amount_cents, currency, order_id, intent_id)
        return intent_id

    def update_amount(self, intent_id: str, amount_cents: int, idempotency_key: str) -> None:
        with self._lock:
            if idempotency_key in self._seen:
                return
            self._record("update_amount", intent_id, amount_cents, idempotency_key)
        logger.info("[PAYMENT] Updated hold on %s to %d", intent_id, amount_cents)

    def capture(self, intent_id: str, amount_cents: int, idempotency_key: str) -> None:
        with self._lock:
            if idempotency_key in self._seen:
                return
            self._record("capture", intent_id, amount_cents, idempotency_key)
        logger.info("[PAYMENT] Captured %d on %s", amount_cents, intent_id)

    def cancel(self, intent_id: str, idempotency_key: str) -> None:
        with self._lock:
            if idempotency_key in self._seen:
                return
            self._record("cancel", intent_id, None, idempotency_key)
        logger.info("[PAYMENT] Cancelled authorization %s", intent_id)

    def _record(self, operation: str, intent_id: str, amount_cents: int | None, key: str) -> None:
        self._seen[key] = intent_id
        self.calls.append(PaymentCall(operation, intent_id, amount_cents, key))


@dataclass
class LocalPhotoStorage:
    """Accepts any non-empty reference and remembers it per order."""
    photos: dict[str, list[tuple[str, str]]] = field(default_factory=dict)

    def attach(self, order_id: str, kind: str, reference: str) -> str:
        if not reference or not reference.strip():
            raise ValueError("Photo reference is empty")
        self.photos.setdefault(order_id, []).append((kind, reference))
        logger.info("[PHOTO] Attached %s photo to %s: %s", kind, order_id, reference)
        return reference


@dataclass
class LoggingEmailSender:
    """Writes emails to the log instead of sending them."""
    sent: list[tuple[str, str, str]] = field(default_factory=list)

    def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append((to, subject, body))
        logger.info("[EMAIL] To %s: %s", to, subject)


@dataclass
class LoggingSmsSender:
    """Writes text messages to the log instead of sending them."""
    sent: list[tuple[str, str]] = field(default_factory=list)

    def send(self, to: str, body: str) -> None:
        self.sent.append((to, body))
        logger.info("[SMS] To %s: %s", to, body[:60])
