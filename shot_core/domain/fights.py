"""Fight registry: creation, lookup and lifecycle state."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast
from shot_core.domain.errors import NotFoundError
from shot_core.infra.db import atomic
from shot_core.models.db_models import Campaign, Fight, Shot


def now_seconds() -> datetime:
    """UTC now, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


async def get_fight(db: AsyncSession, fight_id: str) -> Fight | None:
    return await db.get(Fight, fight_id)


async def require_fight(db: AsyncSession, fight_id: str) -> Fight:
    fight = await db.get(Fight, fight_id)
    if fight is None:
        raise NotFoundError("Fight", fight_id)
    return fight


async def require_shot(db: AsyncSession, shot_id: str) -> Shot:
    shot = await db.get(Shot, shot_id)
    if shot is None:
        raise NotFoundError("Shot", shot_id)
    return shot


async def list_fights(db: AsyncSession, campaign_id: str, active: bool | None = True) -> list[Fight]:
    stmt = select(Fight).where(Fight.campaign_id == campaign_id)
    if active is not None:
        stmt = stmt.where(Fight.active.is_(active))
    result = await db.execute(stmt.order_by(Fight.created_at.desc()))
    return list(result.scalars().all())


async def create_fight(
    db: AsyncSession,
    campaign_id: str,
    name: str,
    description: str | None = None,
) -> Fight:
    if await db.get(Campaign, campaign_id) is None:
        raise NotFoundError("Campaign", campaign_id)

    async with atomic(db):
        fight = Fight(campaign_id=campaign_id, name=name, description=description)
        db.add(fight)
    await broadcast.publish_fight(db, fight.id)
    return fight


async def start_fight(db: AsyncSession, fight_id: str) -> Fight:
    """Stamp ``started_at`` unless the fight is already running."""
    fight = await require_fight(db, fight_id)
    if fight.started_at is not None:
        return fight

    async with atomic(db):
        fight.started_at = now_seconds()
        fight.active = True
    await broadcast.publish_fight(db, fight.id)
    return fight


def fight_state(fight: Fight) -> str:
    """``"unstarted"``, ``"started"`` or ``"ended"``, derived from the timestamps."""
    return fight.state
