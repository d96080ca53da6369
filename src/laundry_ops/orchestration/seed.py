"""
Seed Data - Starter laundromat network for development databases.
"""

import logging

from ..data_access.repositories.laundromat_repository import LaundromatRepository
from ..domain.entities import Laundromat

logger = logging.getLogger(__name__)

DETROIT_LAUNDROMATS: tuple[Laundromat, ...] = (
    Laundromat(
        laundromat_id="midtown-wash-fold",
        name="Midtown Wash & Fold",
        service_postal_codes=frozenset({"48201", "48202", "48226"}),
        daily_capacity=40,
    ),
    Laundromat(
        laundromat_id="westside-laundry-hub",
        name="Westside Laundry Hub",
        service_postal_codes=frozenset({"48209", "48210", "48228"}),
        daily_capacity=35,
    ),
    Laundromat(
        laundromat_id="downtown-express-wash",
        name="Downtown Express Wash",
        service_postal_codes=frozenset({"48226", "48201", "48243"}),
        daily_capacity=50,
    ),
    Laundromat(
        laundromat_id="hamtramck-clean-center",
        name="Hamtramck Clean Center",
        service_postal_codes=frozenset({"48212", "48213"}),
        daily_capacity=30,
    ),
)


def seed_laundromats(
    repository: LaundromatRepository,
    laundromats: tuple[Laundromat, ...] = DETROIT_LAUNDROMATS,
) -> int:
    """
    Insert the starter laundromats, leaving existing ones untouched.

    Returns:
        Number of laundromats added
    """
    added = 0
    for laundromat in laundromats:
        if repository.find_by_id(laundromat.laundromat_id) is not None:
            continue
        repository.save(laundromat)
        added += 1
    logger.info("[SEED] Added %d laundromat(s)", added)
    return added
