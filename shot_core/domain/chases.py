"""Chase relationships between vehicle shots.

Relationships reference shots, not vehicle templates, so two copies of the
same vehicle can be in different chases. Ending a chase deactivates the row;
the uniqueness index only covers active rows, so the same pair can start a
new chase straight away.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast
from shot_core.domain.errors import (
    DuplicateActiveRelationshipError,
    InvalidPositionError,
    NotFoundError,
    SelfReferenceError,
    ValidationError,
)
from shot_core.domain.fights import require_fight, require_shot
from shot_core.infra.db import atomic
from shot_core.models.db_models import CHASE_POSITIONS, ChaseRelationship

logger = logging.getLogger(__name__)


def _check_position(position: str) -> None:
    if position not in CHASE_POSITIONS:
        raise InvalidPositionError(position)


async def get_relationship(db: AsyncSession, relationship_id: str) -> ChaseRelationship | None:
    return await db.get(ChaseRelationship, relationship_id)


async def require_relationship(db: AsyncSession, relationship_id: str) -> ChaseRelationship:
    relationship = await db.get(ChaseRelationship, relationship_id)
    if relationship is None:
        raise NotFoundError("ChaseRelationship", relationship_id)
    return relationship


async def find_active(
    db: AsyncSession, fight_id: str, pursuer_id: str, evader_id: str
) -> ChaseRelationship | None:
    result = await db.execute(
        select(ChaseRelationship).where(
            ChaseRelationship.fight_id == fight_id,
            ChaseRelationship.pursuer_id == pursuer_id,
            ChaseRelationship.evader_id == evader_id,
            ChaseRelationship.active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def _validate_pair(db: AsyncSession, fight_id: str, pursuer_id: str, evader_id: str) -> None:
    if pursuer_id == evader_id:
        raise SelfReferenceError()
    await require_fight(db, fight_id)
    for shot_id in (pursuer_id, evader_id):
        shot = await require_shot(db, shot_id)
        if shot.fight_id != fight_id:
            raise ValidationError(f"Shot {shot_id} is not in fight {fight_id}")


async def create_relationship(
    db: AsyncSession,
    fight_id: str,
    pursuer_id: str,
    evader_id: str,
    position: str = "far",
) -> ChaseRelationship:
    _check_position(position)
    await _validate_pair(db, fight_id, pursuer_id, evader_id)
    if await find_active(db, fight_id, pursuer_id, evader_id) is not None:
        raise DuplicateActiveRelationshipError(pursuer_id, evader_id)

    try:
        async with atomic(db):
            relationship = ChaseRelationship(
                fight_id=fight_id,
                pursuer_id=pursuer_id,
                evader_id=evader_id,
                position=position,
                active=True,
            )
            db.add(relationship)
    except IntegrityError as exc:
        # Lost a race against another writer for the same pair.
        raise DuplicateActiveRelationshipError(pursuer_id, evader_id) from exc

    logger.info("Chase %s: %s pursuing %s (%s)", relationship.id, pursuer_id, evader_id, position)
    await broadcast.publish_fight(db, fight_id)
    return relationship


async def get_or_create_relationship(
    db: AsyncSession, fight_id: str, pursuer_id: str, evader_id: str
) -> ChaseRelationship:
    """The active chase for this ordered pair, starting one at ``far`` if needed."""
    existing = await find_active(db, fight_id, pursuer_id, evader_id)
    if existing is not None:
        return existing
    return await create_relationship(db, fight_id, pursuer_id, evader_id, "far")


async def update_position(db: AsyncSession, relationship_id: str, position: str) -> ChaseRelationship:
    _check_position(position)
    relationship = await require_relationship(db, relationship_id)
    async with atomic(db):
        relationship.position = position
    await broadcast.publish_fight(db, relationship.fight_id)
    return relationship


async def deactivate(db: AsyncSession, relationship_id: str) -> ChaseRelationship:
    relationship = await require_relationship(db, relationship_id)
    async with atomic(db):
        relationship.active = False
    await broadcast.publish_fight(db, relationship.fight_id)
    return relationship


async def active_relationships_for_fight(db: AsyncSession, fight_id: str) -> list[ChaseRelationship]:
    result = await db.execute(
        select(ChaseRelationship)
        .where(ChaseRelationship.fight_id == fight_id, ChaseRelationship.active.is_(True))
        .order_by(ChaseRelationship.created_at)
    )
    return list(result.scalars().all())


async def relationships_for_shot(
    db: AsyncSession, shot_id: str, active: bool | None = True
) -> list[ChaseRelationship]:
    """Chases where ``shot_id`` is either the pursuer or the evader."""
    stmt = select(ChaseRelationship).where(
        or_(ChaseRelationship.pursuer_id == shot_id, ChaseRelationship.evader_id == shot_id)
    )
    if active is not None:
        stmt = stmt.where(ChaseRelationship.active.is_(active))
    result = await db.execute(stmt.order_by(ChaseRelationship.created_at))
    return list(result.scalars().all())
