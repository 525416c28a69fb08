"""Request bodies accepted by the HTTP surface."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class CreateFight(BaseModel):
    campaign_id: str
    name: str
    description: str | None = None


class ResetFight(BaseModel):
    purge_events: bool = False


class Roster(BaseModel):
    character_ids: list[str] | None = None
    vehicle_ids: list[str] | None = None


class AddParticipant(BaseModel):
    character_id: str | None = None
    vehicle_id: str | None = None


class ShotUpdate(BaseModel):
    shot: int | None = None
    impairments: int | None = Field(default=None, ge=0)
    count: int | None = None
    acted: bool | None = None
    was_rammed_or_damaged: bool | None = None


class Act(BaseModel):
    cost: int = Field(ge=0)


class Driving(BaseModel):
    vehicle_shot_id: str | None = None


class ShotLocation(BaseModel):
    location_id: str | None = None
    name: str | None = None


class AttachEffect(BaseModel):
    name: str | None = None
    description: str | None = None
    severity: str | None = None
    action_value: str | None = None
    change: str | None = None
    end_sequence: int | None = None
    end_shot: int | None = None


class CreateChase(BaseModel):
    pursuer_id: str
    evader_id: str
    position: str = "far"


class ChasePosition(BaseModel):
    position: Literal["near", "far"]


class CreateLocation(BaseModel):
    name: str
    description: str | None = None
    color: str | None = None
    position_x: int | None = None
    position_y: int | None = None
    width: int | None = None
    height: int | None = None


class CreateConnection(BaseModel):
    from_location_id: str
    to_location_id: str
    bidirectional: bool = True
    label: str | None = None


class CopySite(BaseModel):
    site_id: str


class RecordEvent(BaseModel):
    event_type: str
    description: str | None = None
    details: dict | None = None
