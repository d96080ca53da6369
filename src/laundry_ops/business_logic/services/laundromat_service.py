"""
Laundromat Service - Partner administration and capacity lookups.
"""

import logging
from datetime import date

from ...data_access.repositories.laundromat_repository import LaundromatRepository
from ...domain.entities import Laundromat, LaundromatAvailability
from ...domain.enums import ActorRole
from ...domain.errors import AccessDenied, LaundromatNotFound, ValidationError
from ...domain.value_objects import Actor
from .routing_service import RoutingResolver

logger = logging.getLogger(__name__)


class LaundromatService:
    """Admin upserts, activation and the public capacity query."""

    def __init__(self, laundromat_repository: LaundromatRepository, routing_resolver: RoutingResolver):
        self._laundromats = laundromat_repository
        self._routing = routing_resolver

    def upsert(self, laundromat: Laundromat, actor: Actor) -> Laundromat:
        """
        Create or update a laundromat.

        A changed capacity ceiling applies to days not yet opened in the
        ledger; days that already have bookings keep their ceiling.
        """
        self._require_admin(actor)
        if laundromat.daily_capacity < 0:
            raise ValidationError("Daily capacity cannot be negative")
        if not laundromat.service_postal_codes:
            raise ValidationError("A laundromat needs at least one service postal code")

        self._laundromats.save(laundromat)
        logger.info(
            "[LAUNDROMAT] Saved %s (%s), capacity %d, active=%s",
            laundromat.laundromat_id, laundromat.name, laundromat.daily_capacity, laundromat.is_active,
        )
        return self._laundromats.find_by_id(laundromat.laundromat_id)

    def set_active(self, laundromat_id: str, is_active: bool, actor: Actor) -> Laundromat:
        """Deactivated laundromats keep their orders but get no new ones."""
        self._require_admin(actor)
        if not self._laundromats.set_active(laundromat_id, is_active):
            raise LaundromatNotFound(laundromat_id)
        logger.info("[LAUNDROMAT] %s active=%s", laundromat_id, is_active)
        return self._laundromats.find_by_id(laundromat_id)

    def list_all(self) -> list[Laundromat]:
        return self._laundromats.list_all()

    def capacity(self, postal_code: str, day: date) -> list[LaundromatAvailability]:
        return self._routing.availability(postal_code, day)

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if actor.role not in {ActorRole.ADMIN, ActorRole.SYSTEM}:
            raise AccessDenied("Only admins may manage laundromats")
