"""Tests for shot placement and roster reconciliation."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from shot_core.domain import drivers, effects, shots
from shot_core.domain.errors import NotFoundError, ValidationError
from shot_core.domain.roster import RosterPlan, plan_roster
from shot_core.models.db_models import CharacterEffect, Shot

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _placed(ident, character_id, minutes):
    return SimpleNamespace(id=ident, character_id=character_id, created_at=T0 + timedelta(minutes=minutes))


def test_plan_adds_missing_instances():
    existing = [_placed("s1", "c1", 0)]
    plan = plan_roster(existing, ["c1", "c1", "c1", "c2"], lambda s: s.character_id)
    assert sorted(plan.to_insert) == ["c1", "c1", "c2"]
    assert plan.to_delete == []


def test_plan_removes_newest_first():
    existing = [
        _placed("old", "c1", 0),
        _placed("newest", "c1", 10),
        _placed("middle", "c1", 5),
    ]
    plan = plan_roster(existing, ["c1"], lambda s: s.character_id)
    assert plan.to_insert == []
    assert plan.to_delete == ["newest", "middle"]


def test_plan_drops_templates_no_longer_wanted():
    existing = [_placed("s1", "c1", 0), _placed("s2", "c2", 1)]
    plan = plan_roster(existing, ["c2"], lambda s: s.character_id)
    assert plan.to_delete == ["s1"]


def test_plan_ignores_shots_outside_this_roster():
    vehicle_shot = SimpleNamespace(id="v1", character_id=None, created_at=T0)
    plan = plan_roster([vehicle_shot], [], lambda s: s.character_id)
    assert not plan


def test_plan_mixes_naive_and_aware_timestamps():
    naive = SimpleNamespace(id="naive", character_id="c1", created_at=datetime(2026, 1, 1, 0, 5))
    aware = _placed("aware", "c1", 0)
    plan = plan_roster([aware, naive], ["c1"], lambda s: s.character_id)
    assert plan.to_delete == ["naive"]


def test_plans_combine():
    combined = RosterPlan(["c1"], []) + RosterPlan([], ["s9"])
    assert combined.to_insert == ["c1"]
    assert combined.to_delete == ["s9"]


@pytest.mark.asyncio
async def test_add_participant_starts_without_initiative(db_session, make):
    fight = await make.fight()
    hero = await make.character()
    shot = await shots.add_participant(db_session, fight.id, character_id=hero.id)
    assert shot.shot is None
    assert shot.fight_id == fight.id


@pytest.mark.asyncio
async def test_add_participant_rejects_character_and_vehicle(db_session, make):
    fight = await make.fight()
    hero = await make.character()
    car = await make.vehicle()
    with pytest.raises(ValidationError):
        await shots.add_participant(db_session, fight.id, character_id=hero.id, vehicle_id=car.id)


@pytest.mark.asyncio
async def test_add_participant_unknown_template(db_session, make):
    fight = await make.fight()
    with pytest.raises(NotFoundError, match="Character"):
        await shots.add_participant(db_session, fight.id, character_id="ghost")


@pytest.mark.asyncio
async def test_reconcile_grows_to_three_instances(db_session, make):
    fight = await make.fight()
    mook = await make.character("Mook")
    await shots.add_participant(db_session, fight.id, character_id=mook.id)

    plan = await shots.reconcile_roster(db_session, fight.id, character_ids=[mook.id] * 3)

    assert plan.to_insert == [mook.id, mook.id]
    roster = await shots.list_shots(db_session, fight.id)
    assert len(roster) == 3
    assert all(s.character_id == mook.id and s.shot is None for s in roster)


@pytest.mark.asyncio
async def test_reconcile_shrinks_by_removing_newest(db_session, make):
    fight = await make.fight()
    mook = await make.character("Mook")
    car = await make.vehicle("Van")
    fight_id = fight.id

    placed = []
    for minutes in (0, 1, 2):
        shot = Shot(fight_id=fight_id, character_id=mook.id, created_at=T0 + timedelta(minutes=minutes))
        db_session.add(shot)
        placed.append(shot)
    van = Shot(fight_id=fight_id, vehicle_id=car.id, created_at=T0)
    db_session.add(van)
    await db_session.commit()
    oldest_id, middle_id, newest_id = (s.id for s in placed)
    van_id = van.id

    await drivers.assign_driver(db_session, newest_id, van_id)
    await effects.attach(db_session, shot_id=newest_id, name="Dazed", end_sequence=3)

    plan = await shots.reconcile_roster(db_session, fight_id, character_ids=[mook.id])

    assert sorted(plan.to_delete) == sorted([newest_id, middle_id])
    remaining = [s.id for s in await shots.list_shots(db_session, fight_id)]
    assert sorted(remaining) == sorted([oldest_id, van_id])

    van = await db_session.get(Shot, van_id, populate_existing=True)
    assert van.driver_id is None
    orphaned = (
        await db_session.execute(select(CharacterEffect).where(CharacterEffect.shot_id == newest_id))
    ).scalars().all()
    assert orphaned == []


@pytest.mark.asyncio
async def test_reconcile_none_leaves_side_alone(db_session, make):
    fight = await make.fight()
    mook = await make.character("Mook")
    car = await make.vehicle("Van")
    await shots.add_participant(db_session, fight.id, vehicle_id=car.id)

    await shots.reconcile_roster(db_session, fight.id, character_ids=[mook.id])
    roster = await shots.list_shots(db_session, fight.id)
    assert sorted(s.vehicle_id or "" for s in roster) == ["", car.id]

    await shots.reconcile_roster(db_session, fight.id, character_ids=[], vehicle_ids=None)
    roster = await shots.list_shots(db_session, fight.id)
    assert [s.vehicle_id for s in roster] == [car.id]


@pytest.mark.asyncio
async def test_reconcile_noop_returns_empty_plan(db_session, make, broadcasts):
    fight = await make.fight()
    mook = await make.character("Mook")
    await shots.add_participant(db_session, fight.id, character_id=mook.id)
    broadcasts.published.clear()

    plan = await shots.reconcile_roster(db_session, fight.id, character_ids=[mook.id])
    assert not plan
    assert broadcasts.published == []


@pytest.mark.asyncio
async def test_remove_participant(db_session, make):
    fight = await make.fight()
    hero = await make.character()
    shot = await shots.add_participant(db_session, fight.id, character_id=hero.id)
    await shots.remove_participant(db_session, shot.id)
    assert await shots.list_shots(db_session, fight.id) == []


@pytest.mark.asyncio
async def test_act_spends_shots(db_session, make):
    fight = await make.fight()
    hero = await make.character()
    shot = await shots.add_participant(db_session, fight.id, character_id=hero.id)
    await shots.update_shot(db_session, shot.id, shot=2)

    shot = await shots.act(db_session, shot.id, 3)
    assert shot.shot == -1
    assert shot.acted is True


@pytest.mark.asyncio
async def test_act_requires_initiative(db_session, make):
    fight = await make.fight()
    hero = await make.character()
    shot = await shots.add_participant(db_session, fight.id, character_id=hero.id)
    with pytest.raises(ValidationError, match="no initiative"):
        await shots.act(db_session, shot.id, 3)


@pytest.mark.asyncio
async def test_update_shot_rejects_bad_fields(db_session, make):
    fight = await make.fight()
    hero = await make.character()
    shot = await shots.add_participant(db_session, fight.id, character_id=hero.id)
    with pytest.raises(ValidationError):
        await shots.update_shot(db_session, shot.id, impairments=-1)
    with pytest.raises(ValidationError):
        await shots.update_shot(db_session, shot.id, fight_id="elsewhere")
