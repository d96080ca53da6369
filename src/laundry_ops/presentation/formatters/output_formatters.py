"""
Output Formatters - Presentation layer for displaying results.

This module handles all console output formatting for the CLI, keeping
display logic separate from business logic.
"""

from typing import Any

from ...business_logic.services.notification_dispatcher import RetryReport
from ...domain.entities import Laundromat, LaundromatAvailability, Order, StatusChange


def format_cents(cents: int | None) -> str:
    """Format minor units as dollars, e.g. 3500 -> '$35.00'."""
    if cents is None:
        return "-"
    return f"${cents / 100:.2f}"


class ConsoleFormatter:
    """Plain-text building blocks shared by the CLI formatters."""

    def __init__(self, width: int = 70):
        self._width = width

    def header(self, text: str, char: str = "=") -> str:
        """Title framed above and below by a rule of ``char``."""
        rule = char * self._width
        return f"{rule}\n{text}\n{rule}"

    def subheader(self, text: str) -> str:
        """Format a subheader line."""
        return f"\n{text}\n{'-' * self._width}"

    def key_value(self, key: str, value: Any, indent: int = 0) -> str:
        """``key: value`` indented by ``indent`` spaces."""
        return f"{' ' * indent}{key}: {value}"

    def success(self, message: str) -> str:
        """Format a success message."""
        return f"✓ {message}"

    def error(self, message: str) -> str:
        """Format an error message."""
        return f"✗ {message}"

    def warning(self, message: str) -> str:
        """Format a warning message."""
        return f"⚠  {message}"

    def info(self, message: str) -> str:
        """Format an info message."""
        return f"ℹ  {message}"


class OrderFormatter(ConsoleFormatter):
    """Formatter specifically for order-related output."""

    def format_order_list(self, orders: list[Order]) -> str:
        """
        Format a list of orders for display.

        Args:
            orders: Orders to format

        Returns:
            Formatted string
        """
        if not orders:
            return self.warning("No orders found")

        lines = [self.header("ORDERS")]

        for i, order in enumerate(orders, 1):
            label, _ = order.status.get_display()
            lines.append(f"\n[{i}] {order.get_display_name()}")
            lines.append(f"    Status: {label}")
            lines.append(f"    Laundromat: {order.laundromat_id or 'unassigned'}")
            lines.append(f"    Total: {format_cents(order.total_cents)}")

        lines.append(f"\nTotal: {len(orders)} order(s)")
        lines.append("=" * self._width)

        return "\n".join(lines)

    def format_order_summary(self, order: Order) -> str:
        """
        Format a single order summary.

        Args:
            order: Order to format

        Returns:
            Formatted string
        """
        label, description = order.status.get_display()
        lines = [
            self.subheader(f"Order: {order.get_display_name()}"),
            self.key_value("Status", f"{label} ({description})", 2),
            self.key_value("Pickup", order.pickup_address.one_line(), 2),
            self.key_value("Laundromat", order.laundromat_id or "unassigned", 2),
            self.key_value("Total", format_cents(order.total_cents), 2),
            self.key_value("Payment", order.payment_status.value, 2),
        ]
        if order.measured_weight_lb:
            lines.append(self.key_value("Weight", f"{order.measured_weight_lb:.1f} lb", 2))
        return "\n".join(lines)

    def format_history(self, history: list[StatusChange]) -> str:
        """Format an order's status history, oldest first."""
        if not history:
            return self.warning("No history")
        lines = [self.subheader("History")]
        for change in history:
            source = change.from_status.value if change.from_status else "(new)"
            lines.append(
                f"  {change.changed_at:%Y-%m-%d %H:%M}  {source} -> {change.to_status.value}"
                f"  [{change.actor_role.value}]"
            )
        return "\n".join(lines)


class CapacityFormatter(ConsoleFormatter):
    """Formatter for laundromat and capacity output."""

    def format_availability(self, postal_code: str, day, candidates: list[LaundromatAvailability]) -> str:
        """
        Format the routing candidates for a postal code and day.

        Args:
            postal_code: Pickup postal code
            day: Pickup date
            candidates: Ranked availability from the routing resolver

        Returns:
            Formatted string
        """
        lines = [self.header(f"CAPACITY {postal_code} ON {day}")]
        if not candidates:
            lines.append(self.error("Outside service area"))
            return "\n".join(lines)

        for candidate in candidates:
            line = f"  - {candidate.laundromat.name}: {candidate.remaining} slot(s) left"
            lines.append(line if candidate.remaining > 0 else f"{line} (full)")

        if all(c.remaining == 0 for c in candidates):
            lines.append(self.warning("No capacity left for this day"))
        return "\n".join(lines)

    def format_laundromats(self, laundromats: list[Laundromat]) -> str:
        if not laundromats:
            return self.warning("No laundromats configured")
        lines = [self.header("LAUNDROMATS")]
        for laundromat in laundromats:
            state = "active" if laundromat.is_active else "inactive"
            lines.append(f"\n{laundromat.name} ({laundromat.laundromat_id}, {state})")
            lines.append(self.key_value("Daily capacity", laundromat.daily_capacity, 2))
            lines.append(self.key_value("Postal codes", ", ".join(sorted(laundromat.service_postal_codes)), 2))
        return "\n".join(lines)

    def format_retry_report(self, report: RetryReport) -> str:
        if report.attempted == 0:
            return self.info("No failed notifications to retry")
        message = f"Delivered {report.delivered}/{report.attempted} notification(s)"
        if report.still_failing:
            return self.warning(f"{message}, {report.still_failing} still failing")
        return self.success(message)


# Convenience instances for easy import
console_formatter = ConsoleFormatter()
order_formatter = OrderFormatter()
capacity_formatter = CapacityFormatter()
