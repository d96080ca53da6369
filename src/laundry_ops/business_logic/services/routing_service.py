"""
Routing Resolver - Matches a pickup postal code to a laundromat.

Candidates are the active laundromats whose service area contains the
postal code. They are tried in order of most remaining capacity for the
day (ties go to the lowest id), and the first one whose reservation
succeeds gets the order.
"""

import logging
import sqlite3
from datetime import date

from ...data_access.repositories.capacity_ledger import CapacityLedger
from ...data_access.repositories.laundromat_repository import LaundromatRepository
from ...domain.entities import CapacityDay, Laundromat, LaundromatAvailability
from ...domain.errors import CapacityExceeded, NoCoverage

logger = logging.getLogger(__name__)


class RoutingResolver:
    """Assigns orders to laundromats by coverage and remaining capacity."""

    def __init__(self, laundromat_repository: LaundromatRepository, capacity_ledger: CapacityLedger):
        self._laundromats = laundromat_repository
        self._ledger = capacity_ledger

    def availability(
        self,
        postal_code: str,
        day: date,
        conn: sqlite3.Connection | None = None,
    ) -> list[LaundromatAvailability]:
        """
        Rank covering laundromats by remaining capacity without reserving.

        Args:
            postal_code: Pickup postal code
            day: Pickup date
            conn: Optional connection of an enclosing transaction

        Returns:
            Candidates, most remaining capacity first, ties by lowest id
        """
        candidates = [
            LaundromatAvailability(
                laundromat=laundromat,
                remaining=self._ledger.snapshot(
                    laundromat.laundromat_id, day, laundromat.daily_capacity, conn=conn
                ).remaining,
            )
            for laundromat in self._laundromats.list_covering(postal_code, active_only=True, conn=conn)
        ]
        candidates.sort(key=lambda c: (-c.remaining, c.laundromat.laundromat_id))
        return candidates

    def resolve(
        self,
        postal_code: str,
        day: date,
        conn: sqlite3.Connection | None = None,
    ) -> tuple[Laundromat, CapacityDay]:
        """
        Pick a laundromat and reserve one slot on it.

        Must run inside the transaction that inserts the order so the slot
        is given back if the insert fails.

        Returns:
            (laundromat, capacity day after the reservation)

        Raises:
            NoCoverage: Nobody covers the postal code, or all are full
        """
        candidates = self.availability(postal_code, day, conn=conn)
        if not candidates:
            logger.info("[ROUTING] No active laundromat covers %s", postal_code)
            raise NoCoverage(postal_code, day, reason="outside_service_area")

        for candidate in candidates:
            laundromat = candidate.laundromat
            try:
                capacity = self._ledger.reserve(laundromat.laundromat_id, day, conn=conn)
            except CapacityExceeded:
                logger.debug("[ROUTING] %s is full on %s, trying next", laundromat.laundromat_id, day)
                continue
            logger.info(
                "[ROUTING] %s on %s -> %s (%d left)",
                postal_code, day, laundromat.name, capacity.remaining,
            )
            return laundromat, capacity

        logger.info("[ROUTING] All laundromats covering %s are full on %s", postal_code, day)
        raise NoCoverage(postal_code, day, reason="no_capacity")
