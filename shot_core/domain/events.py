"""Fight event log: append-only history, purgeable on reset."""

from __future__ import annotations

import json
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast
from shot_core.domain.fights import require_fight
from shot_core.infra.db import atomic
from shot_core.models.db_models import FightEvent

logger = logging.getLogger(__name__)


def build_event(
    fight_id: str,
    event_type: str,
    description: str | None = None,
    details: dict | None = None,
) -> FightEvent:
    """An unsaved event row; the caller adds it inside its own transaction."""
    return FightEvent(
        fight_id=fight_id,
        event_type=event_type,
        description=description,
        details_json=json.dumps(details) if details is not None else None,
    )


async def record_event(
    db: AsyncSession,
    fight_id: str,
    event_type: str,
    description: str | None = None,
    details: dict | None = None,
    broadcast_change: bool = True,
) -> FightEvent:
    await require_fight(db, fight_id)
    async with atomic(db):
        fight_event = build_event(fight_id, event_type, description, details)
        db.add(fight_event)
    if broadcast_change:
        await broadcast.publish_fight(db, fight_id)
    return fight_event


async def list_events(db: AsyncSession, fight_id: str) -> list[FightEvent]:
    """Events for ``fight_id``, oldest first."""
    result = await db.execute(
        select(FightEvent)
        .where(FightEvent.fight_id == fight_id)
        .order_by(FightEvent.created_at.asc())
    )
    return list(result.scalars().all())


async def purge_events(db: AsyncSession, fight_id: str) -> int:
    """Delete every event of ``fight_id``. Runs inside the caller's transaction."""
    result = await db.execute(delete(FightEvent).where(FightEvent.fight_id == fight_id))
    logger.info("Purged %d events from fight %s", result.rowcount, fight_id)
    return result.rowcount


def event_details(fight_event: FightEvent) -> dict | None:
    return json.loads(fight_event.details_json) if fight_event.details_json else None
