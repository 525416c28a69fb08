"""Fight routes: clock, roster, shots, drivers and effects."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast, clock, drivers, effects, events, fights, locations, shots
from shot_core.domain.errors import NotFoundError
from shot_core.infra.db import get_db
from shot_core.models.commands import (
    Act,
    AddParticipant,
    AttachEffect,
    CreateFight,
    Driving,
    RecordEvent,
    ResetFight,
    Roster,
    ShotLocation,
    ShotUpdate,
)
from shot_core.models.db_models import Shot
from shot_core.models.views import EffectView, FightEventView

router = APIRouter(prefix="/api/fights", tags=["fights"])

Db = Annotated[AsyncSession, Depends(get_db)]


async def fight_payload(db: AsyncSession, fight_id: str) -> dict:
    view = await broadcast.fight_view(db, fight_id)
    if view is None:
        raise NotFoundError("Fight", fight_id)
    return view.model_dump(mode="json")


async def shot_in_fight(db: AsyncSession, fight_id: str, shot_id: str) -> Shot:
    shot = await fights.require_shot(db, shot_id)
    if shot.fight_id != fight_id:
        raise NotFoundError("Shot", shot_id)
    return shot


@router.post("")
async def create_fight(body: CreateFight, db: Db) -> dict:
    fight = await fights.create_fight(db, body.campaign_id, body.name, body.description)
    return await fight_payload(db, fight.id)


@router.get("/{fight_id}")
async def get_fight(fight_id: str, db: Db) -> dict:
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/start")
async def start_fight(fight_id: str, db: Db) -> dict:
    await fights.start_fight(db, fight_id)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/advance")
async def advance(fight_id: str, db: Db) -> dict:
    await clock.advance(db, fight_id)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/reset-counter")
async def reset_counter(fight_id: str, db: Db) -> dict:
    await clock.reset(db, fight_id)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/reset")
async def reset_fight(fight_id: str, body: ResetFight, db: Db) -> dict:
    await clock.reset_fight(db, fight_id, purge_events=body.purge_events)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/end")
async def end_fight(fight_id: str, db: Db) -> dict:
    await clock.end(db, fight_id)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/touch")
async def touch_fight(fight_id: str, db: Db) -> dict:
    await clock.touch(db, fight_id)
    return await fight_payload(db, fight_id)


@router.put("/{fight_id}/roster")
async def sync_roster(fight_id: str, body: Roster, db: Db) -> dict:
    plan = await shots.reconcile_roster(db, fight_id, body.character_ids, body.vehicle_ids)
    payload = await fight_payload(db, fight_id)
    payload["removed_shot_ids"] = plan.to_delete
    return payload


@router.post("/{fight_id}/shots")
async def add_shot(fight_id: str, body: AddParticipant, db: Db) -> dict:
    shot = await shots.add_participant(db, fight_id, body.character_id, body.vehicle_id)
    payload = await fight_payload(db, fight_id)
    payload["shot_id"] = shot.id
    return payload


@router.patch("/{fight_id}/shots/{shot_id}")
async def update_shot(fight_id: str, shot_id: str, body: ShotUpdate, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    await shots.update_shot(db, shot_id, **body.model_dump(exclude_unset=True))
    return await fight_payload(db, fight_id)


@router.delete("/{fight_id}/shots/{shot_id}")
async def remove_shot(fight_id: str, shot_id: str, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    await shots.remove_participant(db, shot_id)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/shots/{shot_id}/act")
async def act(fight_id: str, shot_id: str, body: Act, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    await shots.act(db, shot_id, body.cost)
    return await fight_payload(db, fight_id)


@router.put("/{fight_id}/shots/{shot_id}/driving")
async def assign_driver(fight_id: str, shot_id: str, body: Driving, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    await drivers.assign_driver(db, shot_id, body.vehicle_shot_id)
    return await fight_payload(db, fight_id)


@router.delete("/{fight_id}/shots/{shot_id}/drivers")
async def clear_drivers(fight_id: str, shot_id: str, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    cleared = await drivers.clear_drivers_of_vehicle(db, fight_id, shot_id)
    payload = await fight_payload(db, fight_id)
    payload["cleared"] = cleared
    return payload


@router.put("/{fight_id}/shots/{shot_id}/location")
async def set_location(fight_id: str, shot_id: str, body: ShotLocation, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    created = False
    if body.name is not None:
        _, created = await locations.set_shot_location(db, shot_id, body.name)
    else:
        await locations.place_shot(db, shot_id, body.location_id)
    payload = await fight_payload(db, fight_id)
    payload["location_created"] = created
    return payload


@router.post("/{fight_id}/shots/{shot_id}/effects")
async def attach_effect(fight_id: str, shot_id: str, body: AttachEffect, db: Db) -> dict:
    await shot_in_fight(db, fight_id, shot_id)
    effect = await effects.attach(db, shot_id=shot_id, **body.model_dump())
    return EffectView.model_validate(effect).model_dump(mode="json")


@router.get("/{fight_id}/effects")
async def list_active_effects(fight_id: str, db: Db) -> dict:
    active = await effects.list_active_for_fight(db, fight_id)
    return {
        "fight_id": fight_id,
        "effects": [EffectView.model_validate(e).model_dump(mode="json") for e in active],
    }


@router.delete("/{fight_id}/effects/{effect_id}")
async def detach_effect(fight_id: str, effect_id: str, db: Db) -> dict:
    if await effects.get_effect_for_fight(db, fight_id, effect_id) is None:
        raise NotFoundError("CharacterEffect", effect_id)
    await effects.detach(db, effect_id)
    return await fight_payload(db, fight_id)


@router.post("/{fight_id}/events")
async def record_event(fight_id: str, body: RecordEvent, db: Db) -> dict:
    fight_event = await events.record_event(
        db, fight_id, body.event_type, body.description, body.details
    )
    return {"id": fight_event.id, "fight_id": fight_id, "event_type": fight_event.event_type}


@router.get("/{fight_id}/events")
async def list_events(fight_id: str, db: Db) -> dict:
    await fights.require_fight(db, fight_id)
    history = await events.list_events(db, fight_id)
    return {
        "fight_id": fight_id,
        "events": [
            FightEventView(
                id=e.id,
                fight_id=e.fight_id,
                event_type=e.event_type,
                description=e.description,
                details=events.event_details(e),
                created_at=e.created_at,
            ).model_dump(mode="json")
            for e in history
        ],
    }
