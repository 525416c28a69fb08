"""Tests for the initiative clock and fight lifecycle."""

import pytest

from shot_core.domain import clock, events, fights, shots
from shot_core.domain.errors import NotFoundError
from shot_core.domain.initiative import SHOT_COUNTER_TOP, next_sequence


def test_next_sequence_counts_down_and_wraps():
    assert next_sequence(5) == 4
    assert next_sequence(1) == 0
    assert next_sequence(0) == SHOT_COUNTER_TOP == 18


@pytest.mark.asyncio
async def test_new_fight_is_unstarted(make):
    fight = await make.fight()
    assert fight.sequence == 0
    assert fight.active is True
    assert fights.fight_state(fight) == "unstarted"


@pytest.mark.asyncio
async def test_create_fight_unknown_campaign(db_session):
    with pytest.raises(NotFoundError, match="Campaign"):
        await fights.create_fight(db_session, "nope", "Ghost Fight")


@pytest.mark.asyncio
async def test_start_then_end(db_session, make):
    fight = await make.fight()

    started = await fights.start_fight(db_session, fight.id)
    assert started.state == "started"
    first_start = started.started_at

    again = await fights.start_fight(db_session, fight.id)
    assert again.started_at == first_start

    ended = await clock.end(db_session, fight.id)
    assert ended.active is False
    assert ended.ended_at is not None
    assert ended.ended_at.microsecond == 0
    assert ended.state == "ended"


@pytest.mark.asyncio
async def test_advance_wraps_after_nineteen_steps(db_session, make):
    fight = await make.fight()
    await clock.reset(db_session, fight.id)
    assert fight.sequence == 18

    seen = []
    for _ in range(19):
        fight = await clock.advance(db_session, fight.id)
        seen.append(fight.sequence)

    assert seen[:18] == list(range(17, -1, -1))
    assert seen[-1] == 18


@pytest.mark.asyncio
async def test_advance_from_zero_wraps(db_session, make):
    fight = await make.fight()
    fight = await clock.advance(db_session, fight.id)
    assert fight.sequence == 18


@pytest.mark.asyncio
async def test_advance_unknown_fight(db_session):
    with pytest.raises(NotFoundError):
        await clock.advance(db_session, "missing")


@pytest.mark.asyncio
async def test_reset_fight_neutralises_every_shot(db_session, make):
    fight = await make.fight()
    hero = await make.character("Hero")
    car = await make.vehicle("Cab")
    fight_id = fight.id

    a = await shots.add_participant(db_session, fight_id, character_id=hero.id)
    b = await shots.add_participant(db_session, fight_id, vehicle_id=car.id)
    await shots.update_shot(db_session, a.id, shot=12, impairments=2, count=3)
    await shots.update_shot(db_session, b.id, shot=7, was_rammed_or_damaged=True)
    await fights.start_fight(db_session, fight_id)
    await clock.advance(db_session, fight_id)
    await clock.end(db_session, fight_id)

    fight = await clock.reset_fight(db_session, fight_id)

    assert fight.sequence == 0
    assert fight.started_at is None
    assert fight.ended_at is None
    assert fight.active is True
    for shot in await shots.list_shots(db_session, fight_id):
        assert shot.shot is None
        assert shot.impairments == 0
        assert shot.count == 0
        assert shot.was_rammed_or_damaged is False


@pytest.mark.asyncio
async def test_reset_fight_keeps_events_unless_purged(db_session, make):
    fight = await make.fight()
    fight_id = fight.id
    await events.record_event(db_session, fight_id, "attack", "Johnny hits", {"damage": 12})
    await events.record_event(db_session, fight_id, "move", "Cab swerves")

    await clock.reset_fight(db_session, fight_id)
    assert len(await events.list_events(db_session, fight_id)) == 2

    await clock.reset_fight(db_session, fight_id, purge_events=True)
    assert await events.list_events(db_session, fight_id) == []


@pytest.mark.asyncio
async def test_event_details_round_trip(db_session, make):
    fight = await make.fight()
    recorded = await events.record_event(db_session, fight.id, "attack", details={"damage": 12})
    assert events.event_details(recorded) == {"damage": 12}

    bare = await events.record_event(db_session, fight.id, "note")
    assert events.event_details(bare) is None


@pytest.mark.asyncio
async def test_touch_bumps_updated_at(db_session, make):
    fight = await make.fight()
    fight_id = fight.id
    fight = await clock.touch(db_session, fight_id)
    assert fight.updated_at is not None
    assert fight.updated_at.microsecond == 0


@pytest.mark.asyncio
async def test_list_fights_filters_on_active(db_session, make, campaign):
    open_fight = await make.fight("Open")
    closed = await make.fight("Closed")
    await clock.end(db_session, closed.id)

    assert [f.name for f in await fights.list_fights(db_session, campaign.id)] == ["Open"]
    assert len(await fights.list_fights(db_session, campaign.id, active=None)) == 2
    assert await fights.get_fight(db_session, open_fight.id) is open_fight
    assert await fights.get_fight(db_session, "missing") is None
