"""Chase routes: pursuer/evader relationships inside one fight."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import chases
from shot_core.domain.errors import NotFoundError
from shot_core.infra.db import get_db
from shot_core.models.commands import ChasePosition, CreateChase
from shot_core.models.db_models import ChaseRelationship
from shot_core.models.views import ChaseView

router = APIRouter(prefix="/api/fights/{fight_id}/chases", tags=["chases"])

Db = Annotated[AsyncSession, Depends(get_db)]


async def chase_in_fight(db: AsyncSession, fight_id: str, relationship_id: str) -> ChaseRelationship:
    relationship = await chases.require_relationship(db, relationship_id)
    if relationship.fight_id != fight_id:
        raise NotFoundError("ChaseRelationship", relationship_id)
    return relationship


@router.post("")
async def create_chase(fight_id: str, body: CreateChase, db: Db) -> dict:
    relationship = await chases.create_relationship(
        db, fight_id, body.pursuer_id, body.evader_id, body.position
    )
    return ChaseView.model_validate(relationship).model_dump()


@router.get("")
async def list_chases(fight_id: str, db: Db) -> dict:
    active = await chases.active_relationships_for_fight(db, fight_id)
    return {
        "fight_id": fight_id,
        "chases": [ChaseView.model_validate(r).model_dump() for r in active],
    }


@router.patch("/{relationship_id}")
async def update_position(fight_id: str, relationship_id: str, body: ChasePosition, db: Db) -> dict:
    await chase_in_fight(db, fight_id, relationship_id)
    relationship = await chases.update_position(db, relationship_id, body.position)
    return ChaseView.model_validate(relationship).model_dump()


@router.delete("/{relationship_id}")
async def end_chase(fight_id: str, relationship_id: str, db: Db) -> dict:
    await chase_in_fight(db, fight_id, relationship_id)
    relationship = await chases.deactivate(db, relationship_id)
    return ChaseView.model_validate(relationship).model_dump()
