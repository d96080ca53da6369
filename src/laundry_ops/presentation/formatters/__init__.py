"""
Output Formatters - Presentation layer for displaying results.

This module provides classes for formatting output to the console,
keeping display logic separate from business logic.
"""

from .output_formatters import (
    CapacityFormatter,
    ConsoleFormatter,
    OrderFormatter,
    capacity_formatter,
    console_formatter,
    format_cents,
    order_formatter,
)

__all__ = [
    "CapacityFormatter",
    "ConsoleFormatter",
    "OrderFormatter",
    "capacity_formatter",
    "console_formatter",
    "format_cents",
    "order_formatter",
]
