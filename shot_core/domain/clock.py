"""Initiative clock: advancing, resetting and ending a fight."""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast, effects, events
from shot_core.domain.fights import now_seconds, require_fight
from shot_core.domain.initiative import SHOT_COUNTER_TOP, next_sequence
from shot_core.infra.db import atomic
from shot_core.models.db_models import Fight, Shot

logger = logging.getLogger(__name__)


async def advance(db: AsyncSession, fight_id: str, expire_effects: bool = True) -> Fight:
    """Count the fight down by one, wrapping from 0 back to the top.

    Lapsed effects are swept afterwards; a failing sweep is logged and does
    not undo the advance.
    """
    fight = await require_fight(db, fight_id)
    async with atomic(db):
        fight.sequence = next_sequence(fight.sequence)

    if expire_effects:
        try:
            await effects.expire_effects_for_fight(db, fight_id, broadcast_change=False)
        except Exception:
            logger.exception("Effect sweep failed for fight %s", fight_id)

    await broadcast.publish_fight(db, fight_id)
    return fight


async def reset(db: AsyncSession, fight_id: str) -> Fight:
    """Put the counter back at the top of a new round."""
    fight = await require_fight(db, fight_id)
    async with atomic(db):
        fight.sequence = SHOT_COUNTER_TOP
    await broadcast.publish_fight(db, fight_id)
    return fight


async def reset_fight(db: AsyncSession, fight_id: str, purge_events: bool = False) -> Fight:
    """Return the fight and every one of its shots to a fresh, unstarted state.

    The fight row, all shot rows and (with ``purge_events``) the event history change
    together or not at all.
    """
    fight = await require_fight(db, fight_id)
    async with atomic(db):
        fight.sequence = 0
        fight.started_at = None
        fight.ended_at = None
        fight.active = True
        await db.execute(
            update(Shot)
            .where(Shot.fight_id == fight_id)
            .values(shot=None, impairments=0, count=0, was_rammed_or_damaged=False)
        )
        if purge_events:
            await events.purge_events(db, fight_id)

    logger.info("Reset fight %s (purge_events=%s)", fight_id, purge_events)
    await broadcast.publish_fight(db, fight_id)
    return fight


async def end(db: AsyncSession, fight_id: str) -> Fight:
    fight = await require_fight(db, fight_id)
    async with atomic(db):
        fight.active = False
        fight.ended_at = now_seconds()
    await broadcast.publish_fight(db, fight_id)
    return fight


async def touch(db: AsyncSession, fight_id: str) -> Fight:
    """Bump ``updated_at`` so listeners get a fresh copy of the fight."""
    fight = await require_fight(db, fight_id)
    async with atomic(db):
        fight.updated_at = now_seconds()
    await broadcast.publish_fight(db, fight_id)
    return fight
