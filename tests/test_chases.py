"""Tests for chase relationships."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from shot_core.domain import chases, shots
from shot_core.domain.errors import (
    ConflictError,
    DuplicateActiveRelationshipError,
    InvalidPositionError,
    NotFoundError,
    SelfReferenceError,
    ValidationError,
)
from shot_core.models.db_models import ChaseRelationship


async def _two_cars(db, make):
    fight = await make.fight("Highway Chase")
    sedan = await make.vehicle("Sedan")
    bike = await make.vehicle("Bike")
    pursuer = await shots.add_participant(db, fight.id, vehicle_id=sedan.id)
    evader = await shots.add_participant(db, fight.id, vehicle_id=bike.id)
    return fight, pursuer, evader


@pytest.mark.asyncio
async def test_create_defaults_to_far(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    relationship = await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id)
    assert relationship.position == "far"
    assert relationship.active is True


@pytest.mark.asyncio
async def test_self_reference_rejected(db_session, make):
    fight, pursuer, _ = await _two_cars(db_session, make)
    with pytest.raises(SelfReferenceError):
        await chases.create_relationship(db_session, fight.id, pursuer.id, pursuer.id)
    assert await chases.active_relationships_for_fight(db_session, fight.id) == []
    assert await chases.relationships_for_shot(db_session, pursuer.id, active=None) == []


@pytest.mark.asyncio
async def test_invalid_position_rejected(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    with pytest.raises(InvalidPositionError):
        await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id, "alongside")
    assert await chases.active_relationships_for_fight(db_session, fight.id) == []


@pytest.mark.asyncio
async def test_duplicate_active_pair_rejected(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id)

    with pytest.raises(DuplicateActiveRelationshipError) as info:
        await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id, "near")
    assert isinstance(info.value, ConflictError)
    assert len(await chases.active_relationships_for_fight(db_session, fight.id)) == 1


@pytest.mark.asyncio
async def test_reverse_direction_is_a_separate_chase(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id)
    await chases.create_relationship(db_session, fight.id, evader.id, pursuer.id)
    assert len(await chases.active_relationships_for_fight(db_session, fight.id)) == 2


@pytest.mark.asyncio
async def test_deactivate_then_recreate(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    first = await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id)

    ended = await chases.deactivate(db_session, first.id)
    assert ended.active is False

    second = await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id, "near")
    assert second.id != first.id
    history = await chases.relationships_for_shot(db_session, pursuer.id, active=None)
    assert [r.active for r in history] == [False, True]


@pytest.mark.asyncio
async def test_update_position(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    relationship = await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id)

    relationship = await chases.update_position(db_session, relationship.id, "near")
    assert relationship.position == "near"

    with pytest.raises(InvalidPositionError):
        await chases.update_position(db_session, relationship.id, "behind")


@pytest.mark.asyncio
async def test_get_or_create_reuses_active(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    first = await chases.get_or_create_relationship(db_session, fight.id, pursuer.id, evader.id)
    again = await chases.get_or_create_relationship(db_session, fight.id, pursuer.id, evader.id)
    assert again.id == first.id
    assert first.position == "far"


@pytest.mark.asyncio
async def test_cross_fight_pair_rejected(db_session, make):
    fight, pursuer, _ = await _two_cars(db_session, make)
    other, _, stranger = await _two_cars(db_session, make)
    with pytest.raises(ValidationError, match="is not in fight"):
        await chases.create_relationship(db_session, fight.id, pursuer.id, stranger.id)


@pytest.mark.asyncio
async def test_unknown_shot(db_session, make):
    fight, pursuer, _ = await _two_cars(db_session, make)
    with pytest.raises(NotFoundError):
        await chases.create_relationship(db_session, fight.id, pursuer.id, "missing")


@pytest.mark.asyncio
async def test_removing_a_shot_drops_its_chases(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    await chases.create_relationship(db_session, fight.id, pursuer.id, evader.id)

    await shots.remove_participant(db_session, evader.id)

    assert await chases.active_relationships_for_fight(db_session, fight.id) == []


@pytest.mark.asyncio
async def test_unique_index_covers_only_active_rows(db_session, make):
    fight, pursuer, evader = await _two_cars(db_session, make)
    fight_id, pursuer_id, evader_id = fight.id, pursuer.id, evader.id

    db_session.add_all([
        ChaseRelationship(fight_id=fight_id, pursuer_id=pursuer_id, evader_id=evader_id, active=False),
        ChaseRelationship(fight_id=fight_id, pursuer_id=pursuer_id, evader_id=evader_id, active=True),
    ])
    await db_session.commit()

    db_session.add(
        ChaseRelationship(fight_id=fight_id, pursuer_id=pursuer_id, evader_id=evader_id, active=True)
    )
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()

    rows = (
        await db_session.execute(
            select(ChaseRelationship.active).where(ChaseRelationship.fight_id == fight_id)
        )
    ).scalars().all()
    assert sorted(rows) == [False, True]


@pytest.mark.asyncio
async def test_check_constraint_rejects_self_chase(db_session, make):
    fight, pursuer, _ = await _two_cars(db_session, make)
    fight_id, pursuer_id = fight.id, pursuer.id

    db_session.add(ChaseRelationship(fight_id=fight_id, pursuer_id=pursuer_id, evader_id=pursuer_id))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()

    rows = (
        await db_session.execute(
            select(ChaseRelationship.id).where(ChaseRelationship.fight_id == fight_id)
        )
    ).scalars().all()
    assert rows == []
