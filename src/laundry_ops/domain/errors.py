"""
Domain Errors - The failure taxonomy of the order lifecycle.

Every error states whether anything was persisted before it was raised.
Callers use ``retry_safe`` to decide if the request can simply be sent
again, or if it was partially applied and needs a human look.
"""


class LifecycleError(Exception):
    """
    Base class for all expected order-lifecycle failures.

    Attributes:
        code: Stable machine-readable error code
        state_changed: True if some state was committed before the failure
        details: Extra structured context for API responses
    """
    code = "lifecycle_error"

    def __init__(self, message: str, *, state_changed: bool = False, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.state_changed = state_changed
        self.details = details or {}

    @property
    def retry_safe(self) -> bool:
        """Nothing was applied, so the same request can be retried."""
        return not self.state_changed


class ValidationError(LifecycleError, ValueError):
    """Missing or malformed input. Raised before any persistence."""
    code = "validation_error"


class AccessDenied(LifecycleError):
    """The actor may not perform this operation on this order."""
    code = "access_denied"


class OrderNotFound(LifecycleError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}", details={"order_id": order_id})
        self.order_id = order_id


class LaundromatNotFound(LifecycleError):
    code = "laundromat_not_found"

    def __init__(self, laundromat_id: str):
        super().__init__(
            f"Laundromat not found: {laundromat_id}",
            details={"laundromat_id": laundromat_id},
        )
        self.laundromat_id = laundromat_id


class NoCoverage(LifecycleError):
    """
    No active laundromat can take an order for this postal code and day.

    ``reason`` is "outside_service_area" when nobody covers the postal code
    and "no_capacity" when every covering laundromat is full.
    """
    code = "no_coverage"

    def __init__(self, postal_code: str, day, reason: str = "outside_service_area"):
        if reason == "no_capacity":
            message = f"No pickup capacity left for {postal_code} on {day}"
        else:
            message = f"{postal_code} is outside our service area"
        super().__init__(
            message,
            details={"postal_code": postal_code, "date": str(day), "reason": reason},
        )
        self.postal_code = postal_code
        self.day = day
        self.reason = reason


class CapacityExceeded(LifecycleError):
    """A laundromat's daily ceiling is already reached."""
    code = "capacity_exceeded"

    def __init__(self, laundromat_id: str, day):
        super().__init__(
            f"Laundromat {laundromat_id} is full on {day}",
            details={"laundromat_id": laundromat_id, "date": str(day)},
        )
        self.laundromat_id = laundromat_id
        self.day = day


class InvalidTransition(LifecycleError):
    """The requested status is not a legal successor of the current one."""
    code = "invalid_transition"

    def __init__(self, current, requested):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        super().__init__(
            f"Cannot move order from {current_value} to {requested_value}",
            details={"current_status": current_value, "requested_status": requested_value},
        )
        self.current = current
        self.requested = requested


class PaymentFailed(LifecycleError):
    """The payment collaborator declined or errored."""
    code = "payment_failed"


class DeliveryFailed(LifecycleError):
    """
    A notification could not be delivered.

    Never rolls back the state change that triggered it.
    """
    code = "delivery_failed"


class StorageFailed(LifecycleError):
    """The photo storage collaborator rejected an attachment."""
    code = "storage_failed"
