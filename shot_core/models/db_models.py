"""SQLAlchemy ORM models for shot-core."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Constraint names Alembic batch mode can address on SQLite
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

CHASE_POSITIONS = ("near", "far")


def _uuid() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    fights: Mapped[list[Fight]] = relationship(back_populates="campaign")

    def __str__(self) -> str:
        return self.name


class Character(Base):
    """Character template; a fight places one or more shots of it."""

    __tablename__ = "characters"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    campaign_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __str__(self) -> str:
        return self.name

    __table_args__ = (
        Index("ix_character_campaign", "campaign_id"),
    )


class Vehicle(Base):
    """Vehicle template; a fight places one or more shots of it."""

    __tablename__ = "vehicles"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    campaign_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __str__(self) -> str:
        return self.name

    __table_args__ = (
        Index("ix_vehicle_campaign", "campaign_id"),
    )


class Site(Base):
    """A reusable place whose locations can be copied into fights."""

    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    campaign_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    locations: Mapped[list[Location]] = relationship(
        back_populates="site", cascade="all, delete-orphan", passive_deletes=True
    )

    def __str__(self) -> str:
        return self.name


class Fight(Base):
    """One combat encounter. Soft-deactivated, never deleted."""

    __tablename__ = "fights"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    campaign_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    campaign: Mapped[Campaign] = relationship(back_populates="fights")
    shots: Mapped[list[Shot]] = relationship(
        back_populates="fight", cascade="all, delete-orphan", passive_deletes=True
    )
    locations: Mapped[list[Location]] = relationship(
        back_populates="fight", cascade="all, delete-orphan", passive_deletes=True
    )
    events: Mapped[list[FightEvent]] = relationship(
        back_populates="fight", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def state(self) -> str:
        if self.started_at is None:
            return "unstarted"
        if self.ended_at is None:
            return "started"
        return "ended"

    def __str__(self) -> str:
        return f"{self.name} (seq {self.sequence})"

    __table_args__ = (
        CheckConstraint("sequence >= 0", name="sequence_non_negative"),
        Index("ix_fight_campaign", "campaign_id"),
    )


class Shot(Base):
    """A participant-instance in a fight: one character or vehicle placement."""

    __tablename__ = "shots"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    fight_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("fights.id", ondelete="CASCADE"), nullable=False
    )
    character_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("characters.id", ondelete="CASCADE"), nullable=True
    )
    vehicle_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=True
    )
    shot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    impairments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    acted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    was_rammed_or_damaged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # driving_id lives on the character shot, driver_id on the vehicle shot.
    driver_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("shots.id", ondelete="SET NULL"), nullable=True
    )
    driving_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("shots.id", ondelete="SET NULL"), nullable=True
    )
    location_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    fight: Mapped[Fight] = relationship(back_populates="shots")
    character: Mapped[Character | None] = relationship(foreign_keys=[character_id])
    vehicle: Mapped[Vehicle | None] = relationship(foreign_keys=[vehicle_id])
    location: Mapped[Location | None] = relationship(
        foreign_keys=[location_id], back_populates="shots"
    )
    effects: Mapped[list[CharacterEffect]] = relationship(
        back_populates="shot", cascade="all, delete-orphan", passive_deletes=True
    )

    def __str__(self) -> str:
        return f"Shot({self.id[:8]} @ {self.shot})"

    __table_args__ = (
        CheckConstraint("impairments >= 0", name="impairments_non_negative"),
        Index("ix_shot_fight", "fight_id"),
        Index("ix_shot_fight_character", "fight_id", "character_id"),
        Index("ix_shot_fight_vehicle", "fight_id", "vehicle_id"),
        Index("ix_shot_driver", "driver_id"),
        Index("ix_shot_driving", "driving_id"),
    )


class ChaseRelationship(Base):
    """A pursuer/evader edge between two vehicle shots in one fight."""

    __tablename__ = "chase_relationships"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    fight_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("fights.id", ondelete="CASCADE"), nullable=False
    )
    pursuer_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("shots.id", ondelete="CASCADE"), nullable=False
    )
    evader_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("shots.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[str] = mapped_column(String(8), nullable=False, default="far")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    pursuer: Mapped[Shot] = relationship(foreign_keys=[pursuer_id])
    evader: Mapped[Shot] = relationship(foreign_keys=[evader_id])

    def __str__(self) -> str:
        return f"Chase({self.pursuer_id[:8]} -> {self.evader_id[:8]}, {self.position})"

    __table_args__ = (
        CheckConstraint("pursuer_id <> evader_id", name="different_shots"),
        CheckConstraint("position IN ('near', 'far')", name="position_enum"),
        Index("ix_chase_fight", "fight_id"),
        # Only one live chase per ordered pair; inactive history rows are exempt.
        Index(
            "uq_chase_active_pair",
            "pursuer_id",
            "evader_id",
            "fight_id",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
    )


class CharacterEffect(Base):
    """A timed modifier riding on a shot, expiring at (end_sequence, end_shot)."""

    __tablename__ = "character_effects"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    shot_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("shots.id", ondelete="CASCADE"), nullable=True
    )
    character_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("characters.id", ondelete="CASCADE"), nullable=True
    )
    vehicle_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str | None] = mapped_column(String(32), nullable=True)
    action_value: Mapped[str | None] = mapped_column(String(64), nullable=True)
    change: Mapped[str | None] = mapped_column(String(32), nullable=True)
    end_sequence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    end_shot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    shot: Mapped[Shot | None] = relationship(back_populates="effects")

    def __str__(self) -> str:
        return f"{self.name} ({self.action_value} {self.change})"

    __table_args__ = (
        CheckConstraint(
            "shot_id IS NOT NULL OR character_id IS NOT NULL OR vehicle_id IS NOT NULL",
            name="has_target",
        ),
        Index("ix_effect_shot", "shot_id"),
    )


class Location(Base):
    """A named place in exactly one of a fight or a site."""

    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    fight_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("fights.id", ondelete="CASCADE"), nullable=True
    )
    site_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("sites.id", ondelete="CASCADE"), nullable=True
    )
    copied_from_location_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    position_x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position_y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    width: Mapped[int] = mapped_column(Integer, nullable=False, default=200)
    height: Mapped[int] = mapped_column(Integer, nullable=False, default=150)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    fight: Mapped[Fight | None] = relationship(back_populates="locations")
    site: Mapped[Site | None] = relationship(back_populates="locations")
    shots: Mapped[list[Shot]] = relationship(
        foreign_keys="[Shot.location_id]", back_populates="location"
    )

    @property
    def scope(self) -> tuple[str, str]:
        if self.fight_id is not None:
            return ("fight", self.fight_id)
        return ("site", self.site_id)

    def __str__(self) -> str:
        return self.name

    __table_args__ = (
        CheckConstraint(
            "(fight_id IS NOT NULL AND site_id IS NULL) "
            "OR (fight_id IS NULL AND site_id IS NOT NULL)",
            name="location_scope",
        ),
        Index("ix_location_fight", "fight_id"),
        Index("ix_location_site", "site_id"),
    )


# Case-insensitive name uniqueness, one partial index per scope.
Index(
    "uq_location_fight_name",
    Location.fight_id,
    func.lower(Location.name),
    unique=True,
    sqlite_where=Location.fight_id.isnot(None),
    postgresql_where=Location.fight_id.isnot(None),
)
Index(
    "uq_location_site_name",
    Location.site_id,
    func.lower(Location.name),
    unique=True,
    sqlite_where=Location.site_id.isnot(None),
    postgresql_where=Location.site_id.isnot(None),
)


class LocationConnection(Base):
    """An edge between two locations. Parallel edges are allowed."""

    __tablename__ = "location_connections"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    from_location_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )
    to_location_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("locations.id", ondelete="CASCADE"), nullable=False
    )
    bidirectional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    label: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    from_location: Mapped[Location] = relationship(foreign_keys=[from_location_id])
    to_location: Mapped[Location] = relationship(foreign_keys=[to_location_id])

    def __str__(self) -> str:
        arrow = "<->" if self.bidirectional else "->"
        return f"{self.from_location_id[:8]} {arrow} {self.to_location_id[:8]}"

    __table_args__ = (
        Index("ix_connection_from", "from_location_id"),
        Index("ix_connection_to", "to_location_id"),
    )


class FightEvent(Base):
    __tablename__ = "fight_events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    fight_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("fights.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    details_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    fight: Mapped[Fight] = relationship(back_populates="events")

    def __str__(self) -> str:
        return f"{self.event_type} ({self.fight_id[:8]})"

    __table_args__ = (
        Index("ix_fight_event_fight", "fight_id", "created_at"),
    )
