"""Driver links between character shots and the vehicle shots they drive.

Both directions are stored: ``driving_id`` on the character shot and
``driver_id`` on the vehicle shot. Every write here touches both sides in one
transaction so the pair never disagrees.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast
from shot_core.domain.errors import ValidationError
from shot_core.domain.fights import require_fight, require_shot
from shot_core.infra.db import atomic
from shot_core.models.db_models import Shot

logger = logging.getLogger(__name__)


class LinkMismatch(NamedTuple):
    shot_id: str
    field: str
    target_id: str


async def _release(db: AsyncSession, driver: Shot, vehicle: Shot | None) -> None:
    # Drop every pairing that involves either side, except the one being made.
    stmt = update(Shot).where(Shot.driver_id == driver.id)
    if vehicle is not None:
        stmt = stmt.where(Shot.id != vehicle.id)
    await db.execute(stmt.values(driver_id=None))
    if vehicle is not None:
        await db.execute(
            update(Shot)
            .where(Shot.driving_id == vehicle.id, Shot.id != driver.id)
            .values(driving_id=None)
        )


async def assign_driver(db: AsyncSession, driver_shot_id: str, vehicle_shot_id: str | None) -> Shot:
    """Make ``driver_shot_id`` drive ``vehicle_shot_id``; ``None`` unassigns.

    Any previous driver of the vehicle and any previous vehicle of the driver
    are released first.
    """
    driver = await require_shot(db, driver_shot_id)
    vehicle = None
    if vehicle_shot_id is not None:
        vehicle = await require_shot(db, vehicle_shot_id)
        if vehicle.id == driver.id:
            raise ValidationError("A shot cannot drive itself")
        if vehicle.fight_id != driver.fight_id:
            raise ValidationError("Driver and vehicle must be in the same fight")
        if vehicle.vehicle_id is None:
            raise ValidationError(f"Shot {vehicle.id} is not a vehicle")
        if driver.vehicle_id is not None:
            raise ValidationError(f"Shot {driver.id} is a vehicle and cannot drive")

    async with atomic(db):
        await _release(db, driver, vehicle)
        driver.driving_id = vehicle.id if vehicle is not None else None
        if vehicle is not None:
            vehicle.driver_id = driver.id

    logger.debug("Shot %s now driving %s", driver.id, vehicle_shot_id)
    await broadcast.publish_fight(db, driver.fight_id)
    return driver


async def clear_drivers_of_vehicle(db: AsyncSession, fight_id: str, vehicle_shot_id: str) -> int:
    """Detach every driver of ``vehicle_shot_id``. Returns how many were cleared."""
    await require_fight(db, fight_id)
    async with atomic(db):
        result = await db.execute(
            update(Shot)
            .where(Shot.fight_id == fight_id, Shot.driving_id == vehicle_shot_id)
            .values(driving_id=None)
        )
        cleared = result.rowcount
        vehicle_result = await db.execute(
            update(Shot)
            .where(Shot.id == vehicle_shot_id, Shot.fight_id == fight_id, Shot.driver_id.isnot(None))
            .values(driver_id=None)
        )

    if cleared or vehicle_result.rowcount:
        await broadcast.publish_fight(db, fight_id)
    return cleared


async def find_asymmetric_links(db: AsyncSession, fight_id: str) -> list[LinkMismatch]:
    """Pointers in ``fight_id`` whose partner does not point back."""
    shots = (
        await db.execute(
            select(Shot).where(
                Shot.fight_id == fight_id,
                or_(Shot.driver_id.isnot(None), Shot.driving_id.isnot(None)),
            )
        )
    ).scalars().all()
    partners = {
        s.id: s
        for s in (
            await db.execute(
                select(Shot).where(
                    or_(
                        Shot.id.in_([s.driving_id for s in shots if s.driving_id]),
                        Shot.id.in_([s.driver_id for s in shots if s.driver_id]),
                    )
                )
            )
        ).scalars()
    }

    mismatches = []
    for shot in shots:
        if shot.driving_id is not None:
            partner = partners.get(shot.driving_id)
            if partner is None or partner.driver_id != shot.id:
                mismatches.append(LinkMismatch(shot.id, "driving_id", shot.driving_id))
        if shot.driver_id is not None:
            partner = partners.get(shot.driver_id)
            if partner is None or partner.driving_id != shot.id:
                mismatches.append(LinkMismatch(shot.id, "driver_id", shot.driver_id))
    return mismatches
