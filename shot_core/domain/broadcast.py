"""Fight hydration and change notification.

The transport is somebody else's problem: whatever implements
:class:`Broadcaster` receives a fully hydrated :class:`FightView` after the
mutation has committed. A failing broadcaster is logged and otherwise ignored;
the database stays the source of truth.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shot_core.domain.initiative import is_expired
from shot_core.models.db_models import (
    ChaseRelationship,
    Fight,
    Location,
    LocationConnection,
    Shot,
)
from shot_core.models.views import (
    ChaseView,
    ConnectionView,
    EffectView,
    FightView,
    LocationView,
    ShotView,
)

logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    async def publish(self, campaign_id: str, fight_id: str, view: FightView) -> None: ...


class LoggingBroadcaster:
    """Default broadcaster: records the change in the log and nothing else."""

    async def publish(self, campaign_id: str, fight_id: str, view: FightView) -> None:
        logger.info(
            "fight %s updated (campaign %s, seq %s, %d shots)",
            fight_id, campaign_id, view.sequence, len(view.shots),
        )


_broadcaster: Broadcaster = LoggingBroadcaster()


def configure_broadcaster(broadcaster: Broadcaster) -> Broadcaster:
    """Install ``broadcaster`` and return the one it replaced."""
    global _broadcaster
    previous, _broadcaster = _broadcaster, broadcaster
    return previous


def get_broadcaster() -> Broadcaster:
    return _broadcaster


def shot_order():
    # Highest initiative first, unset initiative last, then placement order.
    return (Shot.shot.desc().nulls_last(), Shot.created_at)


async def fight_view(db: AsyncSession, fight_id: str) -> FightView | None:
    fight = await db.get(Fight, fight_id, populate_existing=True)
    if fight is None:
        return None

    shots = (
        await db.execute(
            select(Shot)
            .where(Shot.fight_id == fight_id)
            .options(
                selectinload(Shot.character),
                selectinload(Shot.vehicle),
                selectinload(Shot.effects),
            )
            .order_by(*shot_order())
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    chases = (
        await db.execute(
            select(ChaseRelationship)
            .where(ChaseRelationship.fight_id == fight_id, ChaseRelationship.active.is_(True))
            .order_by(ChaseRelationship.created_at)
        )
    ).scalars().all()

    locations = (
        await db.execute(
            select(Location).where(Location.fight_id == fight_id).order_by(Location.name)
        )
    ).scalars().all()

    connections = []
    if locations:
        connections = (
            await db.execute(
                select(LocationConnection)
                .where(LocationConnection.from_location_id.in_([loc.id for loc in locations]))
                .order_by(LocationConnection.created_at)
            )
        ).scalars().all()

    shot_views = []
    for shot in shots:
        view = ShotView.model_validate(shot)
        view.effects = [
            EffectView.model_validate(effect).model_copy(
                update={"expired": is_expired(effect, fight, shot)}
            )
            for effect in shot.effects
        ]
        shot_views.append(view)

    return FightView(
        id=fight.id,
        campaign_id=fight.campaign_id,
        name=fight.name,
        description=fight.description,
        sequence=fight.sequence,
        active=fight.active,
        state=fight.state,
        started_at=fight.started_at,
        ended_at=fight.ended_at,
        updated_at=fight.updated_at,
        shots=shot_views,
        chases=[ChaseView.model_validate(c) for c in chases],
        locations=[LocationView.model_validate(loc) for loc in locations],
        connections=[ConnectionView.model_validate(c) for c in connections],
    )


async def publish_fight(db: AsyncSession, fight_id: str | None) -> None:
    """Hand the current state of ``fight_id`` to the broadcaster.

    Must be called after commit. Never raises.
    """
    if fight_id is None:
        return
    try:
        view = await fight_view(db, fight_id)
        if view is None:
            return
        await _broadcaster.publish(view.campaign_id, fight_id, view)
    except Exception:
        logger.exception("Broadcast failed for fight %s", fight_id)
