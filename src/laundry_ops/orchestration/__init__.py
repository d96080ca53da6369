"""
Orchestration Layer - Application coordination and wiring.

This layer builds every other layer from an ApplicationConfig and hands
the resulting services to the HTTP app and the CLI.
"""

from .config import ApplicationConfig
from .orchestrator import ApplicationOrchestrator, create_orchestrator
from .seed import DETROIT_LAUNDROMATS, seed_laundromats

__all__ = [
    "ApplicationConfig",
    "ApplicationOrchestrator",
    "create_orchestrator",
    "DETROIT_LAUNDROMATS",
    "seed_laundromats",
]
