"""
Order status transition table.

Closed set of legal edges plus which roles may request each target
status. Pure functions only, no I/O: the transition gate service uses
these checks before it touches the database.
"""

from .enums import ActorRole, OrderStatus
from .errors import AccessDenied, InvalidTransition

# Designated successor of each non-terminal status on the happy path
SUCCESSORS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.SCHEDULED: OrderStatus.EN_ROUTE_PICKUP,
    OrderStatus.EN_ROUTE_PICKUP: OrderStatus.PICKED_UP,
    OrderStatus.PICKED_UP: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.READY_FOR_DELIVERY,
    OrderStatus.READY_FOR_DELIVERY: OrderStatus.EN_ROUTE_DELIVERY,
    OrderStatus.EN_ROUTE_DELIVERY: OrderStatus.DELIVERED,
}

# Reachable from every non-terminal status
EXIT_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.CANCELLED, OrderStatus.ARCHIVED})

ROLE_TARGETS: dict[ActorRole, frozenset[OrderStatus]] = {
    ActorRole.CUSTOMER: frozenset({OrderStatus.CANCELLED}),
    ActorRole.DRIVER: frozenset({
        OrderStatus.EN_ROUTE_PICKUP,
        OrderStatus.PICKED_UP,
        OrderStatus.EN_ROUTE_DELIVERY,
        OrderStatus.DELIVERED,
    }),
    ActorRole.LAUNDROMAT_STAFF: frozenset({
        OrderStatus.PROCESSING,
        OrderStatus.READY_FOR_DELIVERY,
    }),
    ActorRole.ADMIN: frozenset(OrderStatus),
    ActorRole.SYSTEM: frozenset(OrderStatus),
}


def allowed_targets(current: OrderStatus) -> frozenset[OrderStatus]:
    """
    Get every status an order may move to from ``current``.

    Examples:
        >>> allowed_targets(OrderStatus.SCHEDULED)
        frozenset({EN_ROUTE_PICKUP, CANCELLED, ARCHIVED})
        >>> allowed_targets(OrderStatus.DELIVERED)
        frozenset()
    """
    if current.is_terminal():
        return frozenset()
    return frozenset({SUCCESSORS[current]}) | EXIT_STATUSES


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in allowed_targets(current)


def require_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Raise InvalidTransition unless ``current -> requested`` is an edge."""
    if not can_transition(current, requested):
        raise InvalidTransition(current, requested)


def require_role(role: ActorRole, requested: OrderStatus) -> None:
    """Raise AccessDenied unless ``role`` may request ``requested``."""
    if requested not in ROLE_TARGETS.get(role, frozenset()):
        raise AccessDenied(
            f"Role {role.value} may not set status {requested.value}",
            details={"role": role.value, "requested_status": requested.value},
        )
