"""Serialisable views of a fight, handed to the broadcaster and the API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class _View(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ParticipantView(_View):
    id: str
    name: str


class EffectView(_View):
    id: str
    shot_id: str | None = None
    character_id: str | None = None
    vehicle_id: str | None = None
    name: str
    description: str | None = None
    severity: str | None = None
    action_value: str | None = None
    change: str | None = None
    end_sequence: int | None = None
    end_shot: int | None = None
    expired: bool = False


class ShotView(_View):
    id: str
    fight_id: str
    character_id: str | None = None
    vehicle_id: str | None = None
    shot: int | None = None
    impairments: int = 0
    count: int = 0
    acted: bool = False
    was_rammed_or_damaged: bool = False
    driver_id: str | None = None
    driving_id: str | None = None
    location_id: str | None = None
    character: ParticipantView | None = None
    vehicle: ParticipantView | None = None
    effects: list[EffectView] = []


class ChaseView(_View):
    id: str
    fight_id: str
    pursuer_id: str
    evader_id: str
    position: str
    active: bool


class LocationView(_View):
    id: str
    fight_id: str | None = None
    site_id: str | None = None
    copied_from_location_id: str | None = None
    name: str
    description: str | None = None
    color: str | None = None
    position_x: int
    position_y: int
    width: int
    height: int


class ConnectionView(_View):
    id: str
    from_location_id: str
    to_location_id: str
    bidirectional: bool
    label: str | None = None


class FightEventView(_View):
    id: str
    fight_id: str
    event_type: str
    description: str | None = None
    details: dict | None = None
    created_at: datetime | None = None


class FightView(_View):
    id: str
    campaign_id: str
    name: str
    description: str | None = None
    sequence: int
    active: bool
    state: str
    started_at: datetime | None = None
    ended_at: datetime | None = None
    updated_at: datetime | None = None
    shots: list[ShotView] = []
    chases: list[ChaseView] = []
    locations: list[LocationView] = []
    connections: list[ConnectionView] = []
