"""
Tests for the order status transition and role tables.
"""

import pytest

from laundry_ops.domain.enums import ActorRole, OrderStatus
from laundry_ops.domain.errors import AccessDenied, InvalidTransition
from laundry_ops.domain.transitions import (
    allowed_targets,
    can_transition,
    require_role,
    require_transition,
)

HAPPY_PATH = [
    OrderStatus.SCHEDULED,
    OrderStatus.EN_ROUTE_PICKUP,
    OrderStatus.PICKED_UP,
    OrderStatus.PROCESSING,
    OrderStatus.READY_FOR_DELIVERY,
    OrderStatus.EN_ROUTE_DELIVERY,
    OrderStatus.DELIVERED,
]


class TestTransitionTable:
    """Tests for the legal edges."""

    @pytest.mark.parametrize("current,successor", list(zip(HAPPY_PATH, HAPPY_PATH[1:])))
    def test_happy_path_edges(self, current, successor):
        """Should allow each status to move to its designated successor."""
        assert can_transition(current, successor)

    @pytest.mark.parametrize("current", HAPPY_PATH[:-1])
    def test_exit_statuses_from_any_active_status(self, current):
        """Should allow cancel and archive from every non-terminal status."""
        assert can_transition(current, OrderStatus.CANCELLED)
        assert can_transition(current, OrderStatus.ARCHIVED)

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.ARCHIVED])
    def test_terminal_statuses_have_no_targets(self, terminal):
        assert allowed_targets(terminal) == frozenset()
        for target in OrderStatus:
            assert not can_transition(terminal, target)

    def test_skipping_steps_is_rejected(self):
        """Should reject jumps over intermediate statuses."""
        assert not can_transition(OrderStatus.SCHEDULED, OrderStatus.PICKED_UP)
        assert not can_transition(OrderStatus.PICKED_UP, OrderStatus.DELIVERED)

    def test_going_backwards_is_rejected(self):
        assert not can_transition(OrderStatus.PROCESSING, OrderStatus.PICKED_UP)

    def test_self_transition_is_rejected(self):
        assert not can_transition(OrderStatus.SCHEDULED, OrderStatus.SCHEDULED)

    def test_require_transition_raises(self):
        with pytest.raises(InvalidTransition) as exc_info:
            require_transition(OrderStatus.DELIVERED, OrderStatus.CANCELLED)

        assert exc_info.value.current is OrderStatus.DELIVERED
        assert exc_info.value.requested is OrderStatus.CANCELLED

    def test_scheduled_targets(self):
        assert allowed_targets(OrderStatus.SCHEDULED) == {
            OrderStatus.EN_ROUTE_PICKUP,
            OrderStatus.CANCELLED,
            OrderStatus.ARCHIVED,
        }


class TestRoleTable:
    """Tests for which roles may request which statuses."""

    @pytest.mark.parametrize("role,status", [
        (ActorRole.CUSTOMER, OrderStatus.CANCELLED),
        (ActorRole.DRIVER, OrderStatus.EN_ROUTE_PICKUP),
        (ActorRole.DRIVER, OrderStatus.PICKED_UP),
        (ActorRole.DRIVER, OrderStatus.EN_ROUTE_DELIVERY),
        (ActorRole.DRIVER, OrderStatus.DELIVERED),
        (ActorRole.LAUNDROMAT_STAFF, OrderStatus.PROCESSING),
        (ActorRole.LAUNDROMAT_STAFF, OrderStatus.READY_FOR_DELIVERY),
        (ActorRole.ADMIN, OrderStatus.ARCHIVED),
        (ActorRole.SYSTEM, OrderStatus.DELIVERED),
    ])
    def test_allowed(self, role, status):
        require_role(role, status)

    @pytest.mark.parametrize("role,status", [
        (ActorRole.CUSTOMER, OrderStatus.PROCESSING),
        (ActorRole.CUSTOMER, OrderStatus.ARCHIVED),
        (ActorRole.DRIVER, OrderStatus.PROCESSING),
        (ActorRole.DRIVER, OrderStatus.CANCELLED),
        (ActorRole.LAUNDROMAT_STAFF, OrderStatus.DELIVERED),
        (ActorRole.LAUNDROMAT_STAFF, OrderStatus.CANCELLED),
    ])
    def test_denied(self, role, status):
        with pytest.raises(AccessDenied) as exc_info:
            require_role(role, status)

        assert exc_info.value.details == {"role": role.value, "requested_status": status.value}
