"""Tests for change notification after committed mutations."""

import pytest

from shot_core.domain import broadcast, chases, clock, effects, shots
from shot_core.domain.errors import SelfReferenceError


class ExplodingBroadcaster:
    async def publish(self, campaign_id, fight_id, view):
        raise RuntimeError("socket closed")


@pytest.mark.asyncio
async def test_each_command_publishes_once(db_session, make, broadcasts):
    fight = await make.fight()
    hero = await make.character()
    broadcasts.published.clear()

    shot = await shots.add_participant(db_session, fight.id, character_id=hero.id)
    await shots.update_shot(db_session, shot.id, shot=9)
    await clock.advance(db_session, fight.id)

    views = broadcasts.for_fight(fight.id)
    assert len(views) == 3
    assert views[-1].sequence == 18
    assert views[-1].shots[0].shot == 9
    assert views[-1].shots[0].character.name == hero.name
    assert broadcasts.published[-1][0] == fight.campaign_id


@pytest.mark.asyncio
async def test_rejected_command_publishes_nothing(db_session, make, broadcasts):
    fight = await make.fight()
    car = await make.vehicle()
    shot = await shots.add_participant(db_session, fight.id, vehicle_id=car.id)
    broadcasts.published.clear()

    with pytest.raises(SelfReferenceError):
        await chases.create_relationship(db_session, fight.id, shot.id, shot.id)
    assert broadcasts.published == []


@pytest.mark.asyncio
async def test_failing_broadcaster_does_not_undo_the_change(db_session, make):
    fight = await make.fight()
    previous = broadcast.configure_broadcaster(ExplodingBroadcaster())
    try:
        fight = await clock.reset(db_session, fight.id)
    finally:
        broadcast.configure_broadcaster(previous)

    assert fight.sequence == 18
    assert (await broadcast.fight_view(db_session, fight.id)).sequence == 18


@pytest.mark.asyncio
async def test_view_orders_shots_and_flags_expired_effects(db_session, make):
    fight = await make.fight()
    fast = await make.character("Fast")
    slow = await make.character("Slow")
    idle = await make.character("Idle")
    a = await shots.add_participant(db_session, fight.id, character_id=slow.id)
    b = await shots.add_participant(db_session, fight.id, character_id=idle.id)
    c = await shots.add_participant(db_session, fight.id, character_id=fast.id)
    await shots.update_shot(db_session, a.id, shot=4)
    await shots.update_shot(db_session, c.id, shot=15)
    await effects.attach(db_session, shot_id=a.id, name="Spent", end_sequence=0, end_shot=5)

    view = await broadcast.fight_view(db_session, fight.id)

    assert [s.id for s in view.shots] == [c.id, a.id, b.id]
    assert view.shots[1].effects[0].expired is True
    assert view.state == "unstarted"


@pytest.mark.asyncio
async def test_view_of_missing_fight(db_session):
    assert await broadcast.fight_view(db_session, "missing") is None
