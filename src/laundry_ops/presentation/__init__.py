"""
Presentation Layer - HTTP API and console output formatting.

This layer handles all user interaction and output formatting,
keeping it separate from business logic.
"""

from .formatters.output_formatters import (
    CapacityFormatter,
    ConsoleFormatter,
    OrderFormatter,
    capacity_formatter,
    console_formatter,
    order_formatter,
)

__all__ = [
    "CapacityFormatter",
    "ConsoleFormatter",
    "OrderFormatter",
    "capacity_formatter",
    "console_formatter",
    "order_formatter",
]
