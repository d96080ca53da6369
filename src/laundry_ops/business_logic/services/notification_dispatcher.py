"""
Notification Dispatcher - Forwards lifecycle events to email and SMS.

Delivery is best effort. A failure raises DeliveryFailed to the caller,
which records it in the outbox; the order change that triggered the
event is already committed and stays that way.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ...data_access.repositories.notification_repository import NotificationRepository
from ...domain.enums import NotificationChannel, NotificationKind
from ...domain.errors import DeliveryFailed
from ..collaborators import EmailSender, SmsSender

logger = logging.getLogger(__name__)

_SUBJECTS: dict[NotificationKind, str] = {
    NotificationKind.ORDER_CONFIRMED: "Your laundry pickup is confirmed",
    NotificationKind.DRIVER_DISPATCHED: "Your driver is on the way",
    NotificationKind.WEIGHT_UPDATED: "Your laundry has been weighed",
    NotificationKind.OUT_FOR_DELIVERY: "Your laundry is out for delivery",
    NotificationKind.DELIVERED: "Your laundry has been delivered",
    NotificationKind.CANCELLED: "Your order was cancelled",
}


@dataclass(frozen=True)
class RetryReport:
    """Outcome of one outbox retry pass."""
    attempted: int
    delivered: int
    still_failing: int


def render_message(kind: NotificationKind, payload: dict) -> tuple[str, str]:
    """
    Build a plain (subject, body) pair for an event.

    Args:
        kind: Lifecycle event
        payload: Event data (order_id, customer_name, pickup_date, ...)

    Returns:
        Tuple of subject and body text
    """
    name = payload.get("customer_name") or "there"
    order_ref = str(payload.get("order_id", ""))[:8]
    lines = [f"Hi {name},", ""]

    if kind is NotificationKind.ORDER_CONFIRMED:
        lines.append(
            f"Order #{order_ref} is booked for pickup on {payload.get('pickup_date')}, "
            f"{payload.get('time_window', '')}."
        )
        if payload.get("total_display"):
            lines.append(f"Estimated total: {payload['total_display']}")
    elif kind is NotificationKind.DRIVER_DISPATCHED:
        lines.append(f"Your driver is heading over to pick up order #{order_ref}.")
    elif kind is NotificationKind.WEIGHT_UPDATED:
        lines.append(f"We weighed order #{order_ref} at {payload.get('weight_lb')} lb.")
        if payload.get("total_display"):
            lines.append(f"Updated total: {payload['total_display']}")
    elif kind is NotificationKind.OUT_FOR_DELIVERY:
        lines.append(f"Order #{order_ref} is clean and on its way back to you.")
    elif kind is NotificationKind.DELIVERED:
        lines.append(f"Order #{order_ref} has been delivered.")
        if payload.get("total_display"):
            lines.append(f"Final total: {payload['total_display']}")
    elif kind is NotificationKind.CANCELLED:
        lines.append(f"Order #{order_ref} has been cancelled.")
        if payload.get("refund_reason"):
            lines.append(payload["refund_reason"])

    if payload.get("magic_link"):
        lines.extend(["", f"Track your order: {payload['magic_link']}"])

    return _SUBJECTS[kind], "\n".join(lines)


class NotificationDispatcher:
    """
    Sends one event on every channel its kind uses.

    SMS is skipped when the payload carries no phone number.
    """

    def __init__(
        self,
        email_sender: EmailSender,
        sms_sender: SmsSender,
        outbox: NotificationRepository | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._email = email_sender
        self._sms = sms_sender
        self._outbox = outbox
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def notify(
        self,
        order_id: str,
        kind: NotificationKind,
        payload: dict,
        channels: tuple[NotificationChannel, ...] | None = None,
    ) -> list[NotificationChannel]:
        """
        Deliver an event.

        Args:
            order_id: Order the event is about
            kind: Lifecycle event
            payload: Recipient and order details
            channels: Restrict to these channels (retries of a partial failure)

        Returns:
            Channels the event was sent on

        Raises:
            DeliveryFailed: At least one channel failed
        """
        subject, body = render_message(kind, {"order_id": order_id, **payload})
        sent: list[NotificationChannel] = []
        failed: dict[str, str] = {}

        for channel in channels or kind.channels():
            try:
                if channel is NotificationChannel.EMAIL:
                    if not payload.get("email"):
                        raise ValueError("no email address")
                    self._email.send(payload["email"], subject, body)
                elif channel is NotificationChannel.SMS:
                    if not payload.get("phone"):
                        logger.debug("[NOTIFY] No phone for %s, skipping SMS", order_id)
                        continue
                    self._sms.send(payload["phone"], body)
                sent.append(channel)
            except Exception as e:
                logger.warning("[NOTIFY] %s %s via %s failed: %s", kind.value, order_id, channel.value, e)
                failed[channel.value] = str(e)

        if failed:
            raise DeliveryFailed(
                f"Could not deliver {kind.value} for {order_id}",
                details={"failed_channels": sorted(failed), "errors": failed},
            )

        logger.info("[NOTIFY] %s for %s sent via %s", kind.value, order_id, [c.value for c in sent])
        return sent

    def retry_failed(self, max_attempts: int = 5) -> RetryReport:
        """
        Re-send undelivered outbox notifications.

        Rows that already failed ``max_attempts`` times are left alone.
        Only the channels that failed last time are retried, and a row that
        fails again keeps just the channels that failed on this pass.
        """
        if self._outbox is None:
            return RetryReport(attempted=0, delivered=0, still_failing=0)

        pending = self._outbox.pending(max_attempts=max_attempts)
        delivered = 0
        for failure in pending:
            payload = dict(failure.payload)
            channels = tuple(NotificationChannel(c) for c in payload.pop("failed_channels", []))
            try:
                self.notify(failure.order_id, NotificationKind(failure.kind), payload, channels or None)
            except DeliveryFailed as e:
                self._outbox.increment_attempts(
                    failure.failure_id,
                    str(e.details.get("errors", e)),
                    self._clock(),
                    payload={**payload, "failed_channels": e.details.get("failed_channels", [])},
                )
                continue
            self._outbox.mark_delivered(failure.failure_id, self._clock())
            delivered += 1

        report = RetryReport(
            attempted=len(pending),
            delivered=delivered,
            still_failing=len(pending) - delivered,
        )
        logger.info(
            "[NOTIFY] Retry pass: %d attempted, %d delivered, %d still failing",
            report.attempted, report.delivered, report.still_failing,
        )
        return report
