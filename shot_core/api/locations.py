"""Location routes: the per-fight map of places and connections."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import fights, locations
from shot_core.domain.errors import NotFoundError, ScopeError
from shot_core.infra.db import get_db
from shot_core.models.commands import CopySite, CreateConnection, CreateLocation
from shot_core.models.views import ConnectionView, LocationView

router = APIRouter(prefix="/api/fights/{fight_id}/locations", tags=["locations"])

Db = Annotated[AsyncSession, Depends(get_db)]


@router.post("")
async def create_location(fight_id: str, body: CreateLocation, db: Db) -> dict:
    location = await locations.create_location(db, fight_id=fight_id, **body.model_dump())
    return LocationView.model_validate(location).model_dump()


@router.get("")
async def list_locations(fight_id: str, db: Db) -> dict:
    await fights.require_fight(db, fight_id)
    places = await locations.list_locations(db, fight_id=fight_id)
    edges = await locations.list_connections(db, fight_id=fight_id)
    return {
        "fight_id": fight_id,
        "locations": [LocationView.model_validate(loc).model_dump() for loc in places],
        "connections": [ConnectionView.model_validate(c).model_dump() for c in edges],
    }


@router.post("/connections")
async def connect(fight_id: str, body: CreateConnection, db: Db) -> dict:
    await fights.require_fight(db, fight_id)
    origin = await locations.require_location(db, body.from_location_id)
    if origin.fight_id != fight_id:
        raise ScopeError(f"Location {origin.id} does not belong to fight {fight_id}")
    connection = await locations.connect(
        db, body.from_location_id, body.to_location_id, body.bidirectional, body.label
    )
    return ConnectionView.model_validate(connection).model_dump()


@router.post("/copy")
async def copy_site(fight_id: str, body: CopySite, db: Db) -> dict:
    copies = await locations.copy_site_locations(db, body.site_id, fight_id)
    return {
        "fight_id": fight_id,
        "locations": [LocationView.model_validate(loc).model_dump() for loc in copies],
    }


@router.delete("/{location_id}")
async def delete_location(fight_id: str, location_id: str, db: Db) -> dict:
    location = await locations.require_location(db, location_id)
    if location.fight_id != fight_id:
        raise NotFoundError("Location", location_id)
    await locations.delete_location(db, location_id)
    return {"deleted": location_id}
