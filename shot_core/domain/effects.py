"""Effect expiry tracker: timed modifiers measured on the initiative clock.

Expiry is never stored. Whether an effect is live is computed from the
fight's sequence and the owning shot's counter every time it is asked.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast, events
from shot_core.domain.errors import NotFoundError, ValidationError
from shot_core.domain.fights import require_fight, require_shot
from shot_core.domain.initiative import is_expired
from shot_core.infra.db import atomic
from shot_core.models.db_models import Character, CharacterEffect, Shot, Vehicle

logger = logging.getLogger(__name__)

EFFECT_EXPIRED = "effect_expired"

__all__ = [
    "attach",
    "detach",
    "expire_effects_for_fight",
    "get_effect_for_fight",
    "is_expired",
    "list_active_for_fight",
    "list_effects_for_fight",
]


async def attach(
    db: AsyncSession,
    *,
    shot_id: str | None = None,
    character_id: str | None = None,
    vehicle_id: str | None = None,
    name: str | None = None,
    description: str | None = None,
    severity: str | None = None,
    action_value: str | None = None,
    change: str | None = None,
    end_sequence: int | None = None,
    end_shot: int | None = None,
) -> CharacterEffect:
    """Attach an effect to a shot, a character or a vehicle.

    When a shot is given its character and vehicle are recorded as well, so
    the effect can be found from either side.
    """
    if shot_id is None and character_id is None and vehicle_id is None:
        raise ValidationError("An effect needs a shot, character or vehicle")
    if not (name or description):
        raise ValidationError("An effect needs a name or description")

    fight_id = None
    if shot_id is not None:
        shot = await require_shot(db, shot_id)
        fight_id = shot.fight_id
        character_id = character_id or shot.character_id
        vehicle_id = vehicle_id or shot.vehicle_id
    if character_id is not None and await db.get(Character, character_id) is None:
        raise NotFoundError("Character", character_id)
    if vehicle_id is not None and await db.get(Vehicle, vehicle_id) is None:
        raise NotFoundError("Vehicle", vehicle_id)

    async with atomic(db):
        effect = CharacterEffect(
            shot_id=shot_id,
            character_id=character_id,
            vehicle_id=vehicle_id,
            name=name or description,
            description=description,
            severity=severity,
            action_value=action_value,
            change=change,
            end_sequence=end_sequence,
            end_shot=end_shot,
        )
        db.add(effect)
    await broadcast.publish_fight(db, fight_id)
    return effect


async def detach(db: AsyncSession, effect_id: str) -> None:
    effect = await db.get(CharacterEffect, effect_id)
    if effect is None:
        raise NotFoundError("CharacterEffect", effect_id)
    fight_id = None
    if effect.shot_id is not None:
        fight_id = (await require_shot(db, effect.shot_id)).fight_id

    async with atomic(db):
        await db.delete(effect)
    await broadcast.publish_fight(db, fight_id)


async def list_effects_for_fight(db: AsyncSession, fight_id: str) -> list[tuple[CharacterEffect, Shot]]:
    result = await db.execute(
        select(CharacterEffect, Shot)
        .join(Shot, CharacterEffect.shot_id == Shot.id)
        .where(Shot.fight_id == fight_id)
        .order_by(CharacterEffect.created_at)
    )
    return [(effect, shot) for effect, shot in result.all()]


async def list_active_for_fight(db: AsyncSession, fight_id: str) -> list[CharacterEffect]:
    """Effects on shots of ``fight_id`` that have not lapsed yet."""
    fight = await require_fight(db, fight_id)
    return [
        effect
        for effect, shot in await list_effects_for_fight(db, fight_id)
        if not is_expired(effect, fight, shot)
    ]


async def expire_effects_for_fight(
    db: AsyncSession, fight_id: str, broadcast_change: bool = True
) -> list[CharacterEffect]:
    """Delete every lapsed effect in the fight and return what was removed.

    Each removal is logged as an ``effect_expired`` fight event in the same
    transaction.
    """
    fight = await require_fight(db, fight_id)
    expired = [
        effect
        for effect, shot in await list_effects_for_fight(db, fight_id)
        if is_expired(effect, fight, shot)
    ]
    if not expired:
        return []

    async with atomic(db):
        for effect in expired:
            db.add(
                events.build_event(
                    fight_id,
                    EFFECT_EXPIRED,
                    f"{effect.name} expired",
                    {
                        "effect_id": effect.id,
                        "effect_name": effect.name,
                        "shot_id": effect.shot_id,
                        "character_id": effect.character_id,
                        "vehicle_id": effect.vehicle_id,
                    },
                )
            )
        await db.execute(
            delete(CharacterEffect).where(CharacterEffect.id.in_([e.id for e in expired]))
        )
    logger.info("Expired %d effects in fight %s", len(expired), fight_id)
    if broadcast_change:
        await broadcast.publish_fight(db, fight_id)
    return expired


async def get_effect_for_fight(db: AsyncSession, fight_id: str, effect_id: str) -> CharacterEffect | None:
    result = await db.execute(
        select(CharacterEffect)
        .join(Shot, CharacterEffect.shot_id == Shot.id)
        .where(CharacterEffect.id == effect_id, Shot.fight_id == fight_id)
    )
    return result.scalar_one_or_none()
