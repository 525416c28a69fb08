"""Shot record store: placing participants into a fight and taking them out."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast
from shot_core.domain.errors import NotFoundError, ValidationError
from shot_core.domain.fights import require_fight, require_shot
from shot_core.domain.roster import RosterPlan, plan_roster
from shot_core.infra.db import atomic
from shot_core.models.db_models import (
    Character,
    CharacterEffect,
    ChaseRelationship,
    Shot,
    Vehicle,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"shot", "impairments", "count", "acted", "was_rammed_or_damaged"})


async def _require_templates(db: AsyncSession, model, ids: Iterable[str]) -> None:
    wanted = set(ids)
    if not wanted:
        return
    found = set((await db.execute(select(model.id).where(model.id.in_(wanted)))).scalars())
    missing = sorted(wanted - found)
    if missing:
        raise NotFoundError(model.__name__, missing[0])


async def list_shots(db: AsyncSession, fight_id: str) -> list[Shot]:
    result = await db.execute(
        select(Shot).where(Shot.fight_id == fight_id).order_by(*broadcast.shot_order())
    )
    return list(result.scalars().all())


async def add_participant(
    db: AsyncSession,
    fight_id: str,
    character_id: str | None = None,
    vehicle_id: str | None = None,
) -> Shot:
    """Place a character or vehicle into the fight with no initiative yet."""
    await require_fight(db, fight_id)
    if character_id is not None and vehicle_id is not None:
        raise ValidationError("A shot holds either a character or a vehicle, not both")
    if character_id is not None:
        await _require_templates(db, Character, [character_id])
    if vehicle_id is not None:
        await _require_templates(db, Vehicle, [vehicle_id])

    async with atomic(db):
        shot = Shot(fight_id=fight_id, character_id=character_id, vehicle_id=vehicle_id, shot=None)
        db.add(shot)
    await broadcast.publish_fight(db, fight_id)
    return shot


async def purge_shots(db: AsyncSession, shot_ids: list[str]) -> None:
    """Delete ``shot_ids`` and everything hanging off them.

    Pointers from surviving shots are nulled first so the delete never trips
    a foreign key. Runs inside the caller's transaction.
    """
    if not shot_ids:
        return
    await db.execute(update(Shot).where(Shot.driver_id.in_(shot_ids)).values(driver_id=None))
    await db.execute(update(Shot).where(Shot.driving_id.in_(shot_ids)).values(driving_id=None))
    await db.execute(delete(CharacterEffect).where(CharacterEffect.shot_id.in_(shot_ids)))
    await db.execute(
        delete(ChaseRelationship).where(
            or_(
                ChaseRelationship.pursuer_id.in_(shot_ids),
                ChaseRelationship.evader_id.in_(shot_ids),
            )
        )
    )
    await db.execute(delete(Shot).where(Shot.id.in_(shot_ids)))


async def remove_participant(db: AsyncSession, shot_id: str) -> None:
    shot = await require_shot(db, shot_id)
    fight_id = shot.fight_id
    async with atomic(db):
        await purge_shots(db, [shot_id])
    logger.info("Removed shot %s from fight %s", shot_id, fight_id)
    await broadcast.publish_fight(db, fight_id)


async def reconcile_roster(
    db: AsyncSession,
    fight_id: str,
    character_ids: list[str] | None = None,
    vehicle_ids: list[str] | None = None,
) -> RosterPlan:
    """Make the fight hold exactly the given multiset of characters and vehicles.

    ``None`` leaves that half of the roster untouched; an empty list clears it.
    Returns the plan that was applied.
    """
    await require_fight(db, fight_id)
    if character_ids is not None:
        await _require_templates(db, Character, character_ids)
    if vehicle_ids is not None:
        await _require_templates(db, Vehicle, vehicle_ids)

    existing = (
        await db.execute(select(Shot).where(Shot.fight_id == fight_id))
    ).scalars().all()

    character_plan = RosterPlan()
    vehicle_plan = RosterPlan()
    if character_ids is not None:
        character_plan = plan_roster(existing, character_ids, lambda s: s.character_id)
    if vehicle_ids is not None:
        vehicle_plan = plan_roster(existing, vehicle_ids, lambda s: s.vehicle_id)

    if not (character_plan or vehicle_plan):
        return RosterPlan()

    async with atomic(db):
        for character_id in character_plan.to_insert:
            db.add(Shot(fight_id=fight_id, character_id=character_id, shot=None))
        for vehicle_id in vehicle_plan.to_insert:
            db.add(Shot(fight_id=fight_id, vehicle_id=vehicle_id, shot=None))
        await purge_shots(db, character_plan.to_delete + vehicle_plan.to_delete)

    plan = character_plan + vehicle_plan
    logger.info(
        "Reconciled roster of fight %s: +%d -%d shots",
        fight_id, len(plan.to_insert), len(plan.to_delete),
    )
    await broadcast.publish_fight(db, fight_id)
    return plan


async def act(db: AsyncSession, shot_id: str, cost: int) -> Shot:
    """Spend ``cost`` shots. The result may go negative."""
    shot = await require_shot(db, shot_id)
    if shot.shot is None:
        raise ValidationError(f"Shot {shot_id} has no initiative to spend")
    if cost < 0:
        raise ValidationError("Shot cost cannot be negative")

    async with atomic(db):
        shot.shot = shot.shot - cost
        shot.acted = True
    await broadcast.publish_fight(db, shot.fight_id)
    return shot


async def update_shot(db: AsyncSession, shot_id: str, **fields) -> Shot:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update shot fields: {', '.join(sorted(unknown))}")
    if fields.get("impairments") is not None and fields["impairments"] < 0:
        raise ValidationError("Impairments cannot be negative")
    for name in ("impairments", "count", "acted", "was_rammed_or_damaged"):
        if name in fields and fields[name] is None:
            raise ValidationError(f"{name} cannot be null")

    shot = await require_shot(db, shot_id)
    async with atomic(db):
        for name, value in fields.items():
            setattr(shot, name, value)
    await broadcast.publish_fight(db, shot.fight_id)
    return shot
