"""Location graph: named places in a fight (or a site) and the edges between them."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shot_core.domain import broadcast
from shot_core.domain.errors import DuplicateNameError, NotFoundError, ScopeError, ValidationError
from shot_core.domain.fights import require_fight, require_shot
from shot_core.infra.db import atomic
from shot_core.models.db_models import Location, LocationConnection, Shot, Site

logger = logging.getLogger(__name__)

# Layout grid, shared with the map editor.
DEFAULT_WIDTH = 200
DEFAULT_HEIGHT = 150
SPACING = 20
GRID_COLUMNS = 5
GRID_ROWS = 10

LOCATION_FIELDS = frozenset(
    {"name", "description", "color", "position_x", "position_y", "width", "height"}
)
NON_NULL_FIELDS = frozenset({"name", "position_x", "position_y", "width", "height"})
NAME_INDEXES = ("uq_location_fight_name", "uq_location_site_name")


class _Box(Protocol):
    position_x: int
    position_y: int
    width: int | None
    height: int | None


def _is_clear(x: int, y: int, existing: Iterable[_Box]) -> bool:
    for loc in existing:
        width = loc.width or DEFAULT_WIDTH
        height = loc.height or DEFAULT_HEIGHT
        if (
            x < loc.position_x + width + SPACING
            and x + DEFAULT_WIDTH + SPACING > loc.position_x
            and y < loc.position_y + height + SPACING
            and y + DEFAULT_HEIGHT + SPACING > loc.position_y
        ):
            return False
    return True


def calculate_non_overlapping_position(existing: Iterable[_Box]) -> tuple[int, int]:
    """First free grid cell, row by row; below the grid once it is full."""
    existing = list(existing)
    cell_width = DEFAULT_WIDTH + SPACING
    cell_height = DEFAULT_HEIGHT + SPACING
    for row in range(GRID_ROWS):
        for col in range(GRID_COLUMNS):
            x, y = col * cell_width, row * cell_height
            if _is_clear(x, y, existing):
                return x, y
    return 0, GRID_ROWS * cell_height


def _is_name_clash(exc: IntegrityError) -> bool:
    return any(index in str(exc.orig) for index in NAME_INDEXES)


def _scope_clause(fight_id: str | None, site_id: str | None):
    if fight_id is not None:
        return Location.fight_id == fight_id
    return Location.site_id == site_id


async def get_location(db: AsyncSession, location_id: str) -> Location | None:
    return await db.get(Location, location_id)


async def require_location(db: AsyncSession, location_id: str) -> Location:
    location = await db.get(Location, location_id)
    if location is None:
        raise NotFoundError("Location", location_id)
    return location


async def find_by_name(
    db: AsyncSession, name: str, fight_id: str | None = None, site_id: str | None = None
) -> Location | None:
    result = await db.execute(
        select(Location).where(
            _scope_clause(fight_id, site_id),
            func.lower(Location.name) == name.strip().lower(),
        )
    )
    return result.scalars().first()


async def list_locations(
    db: AsyncSession, fight_id: str | None = None, site_id: str | None = None
) -> list[Location]:
    result = await db.execute(
        select(Location).where(_scope_clause(fight_id, site_id)).order_by(Location.name)
    )
    return list(result.scalars().all())


async def list_connections(
    db: AsyncSession, fight_id: str | None = None, site_id: str | None = None
) -> list[LocationConnection]:
    result = await db.execute(
        select(LocationConnection)
        .join(Location, LocationConnection.from_location_id == Location.id)
        .where(_scope_clause(fight_id, site_id))
        .order_by(LocationConnection.created_at)
    )
    return list(result.scalars().all())


async def _validate_scope(db: AsyncSession, fight_id: str | None, site_id: str | None) -> None:
    if (fight_id is None) == (site_id is None):
        raise ScopeError("A location belongs to exactly one of a fight or a site")
    if fight_id is not None:
        await require_fight(db, fight_id)
    elif await db.get(Site, site_id) is None:
        raise NotFoundError("Site", site_id)


async def _insert_location(
    db: AsyncSession,
    name: str,
    fight_id: str | None,
    site_id: str | None,
    **attrs,
) -> Location:
    # Caller owns the transaction and has validated scope and name.
    if attrs.get("position_x") is None and attrs.get("position_y") is None:
        existing = await list_locations(db, fight_id=fight_id, site_id=site_id)
        attrs["position_x"], attrs["position_y"] = calculate_non_overlapping_position(existing)
    else:
        attrs["position_x"] = attrs.get("position_x") or 0
        attrs["position_y"] = attrs.get("position_y") or 0
    if attrs.get("width") is None:
        attrs["width"] = DEFAULT_WIDTH
    if attrs.get("height") is None:
        attrs["height"] = DEFAULT_HEIGHT

    location = Location(name=name, fight_id=fight_id, site_id=site_id, **attrs)
    db.add(location)
    await db.flush()
    return location


async def create_location(
    db: AsyncSession,
    name: str,
    *,
    fight_id: str | None = None,
    site_id: str | None = None,
    description: str | None = None,
    color: str | None = None,
    position_x: int | None = None,
    position_y: int | None = None,
    width: int | None = None,
    height: int | None = None,
    copied_from_location_id: str | None = None,
) -> Location:
    """Create a location scoped to a fight or a site.

    When neither coordinate is given the location is dropped into the first
    free cell of the layout grid.
    """
    await _validate_scope(db, fight_id, site_id)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Location name cannot be blank")
    if await find_by_name(db, name, fight_id=fight_id, site_id=site_id) is not None:
        raise DuplicateNameError(name)
    if copied_from_location_id is not None and await db.get(Location, copied_from_location_id) is None:
        raise NotFoundError("Location", copied_from_location_id)

    try:
        async with atomic(db):
            location = await _insert_location(
                db,
                name,
                fight_id,
                site_id,
                description=description,
                color=color,
                position_x=position_x,
                position_y=position_y,
                width=width,
                height=height,
                copied_from_location_id=copied_from_location_id,
            )
    except IntegrityError as exc:
        if not _is_name_clash(exc):
            raise
        raise DuplicateNameError(name) from exc

    await broadcast.publish_fight(db, fight_id)
    return location


async def update_location(db: AsyncSession, location_id: str, **fields) -> Location:
    unknown = set(fields) - LOCATION_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update location fields: {', '.join(sorted(unknown))}")
    nulled = sorted(f for f in NON_NULL_FIELDS if f in fields and fields[f] is None)
    if nulled:
        raise ValidationError(f"Location fields cannot be null: {', '.join(nulled)}")
    location = await require_location(db, location_id)

    if "name" in fields:
        fields["name"] = (fields["name"] or "").strip()
        if not fields["name"]:
            raise ValidationError("Location name cannot be blank")
        clash = await find_by_name(
            db, fields["name"], fight_id=location.fight_id, site_id=location.site_id
        )
        if clash is not None and clash.id != location.id:
            raise DuplicateNameError(fields["name"])

    try:
        async with atomic(db):
            for name, value in fields.items():
                setattr(location, name, value)
    except IntegrityError as exc:
        if not _is_name_clash(exc):
            raise
        raise DuplicateNameError(fields.get("name", location.name)) from exc

    await broadcast.publish_fight(db, location.fight_id)
    return location


async def delete_location(db: AsyncSession, location_id: str) -> None:
    """Remove a location; shots standing there are left without one."""
    location = await require_location(db, location_id)
    fight_id = location.fight_id
    async with atomic(db):
        await db.execute(
            update(Shot).where(Shot.location_id == location_id).values(location_id=None)
        )
        await db.execute(
            update(Location)
            .where(Location.copied_from_location_id == location_id)
            .values(copied_from_location_id=None)
        )
        await db.execute(
            delete(LocationConnection).where(
                (LocationConnection.from_location_id == location_id)
                | (LocationConnection.to_location_id == location_id)
            )
        )
        await db.execute(delete(Location).where(Location.id == location_id))
    await broadcast.publish_fight(db, fight_id)


async def connect(
    db: AsyncSession,
    from_id: str,
    to_id: str,
    bidirectional: bool = True,
    label: str | None = None,
) -> LocationConnection:
    """Add an edge. Parallel edges between the same pair are allowed."""
    origin = await require_location(db, from_id)
    target = await require_location(db, to_id)
    if origin.scope != target.scope:
        raise ScopeError("Both ends of a connection must belong to the same fight or site")

    async with atomic(db):
        connection = LocationConnection(
            from_location_id=from_id,
            to_location_id=to_id,
            bidirectional=bidirectional,
            label=label,
        )
        db.add(connection)
    await broadcast.publish_fight(db, origin.fight_id)
    return connection


async def disconnect(db: AsyncSession, connection_id: str) -> None:
    connection = await db.get(LocationConnection, connection_id)
    if connection is None:
        raise NotFoundError("LocationConnection", connection_id)
    origin = await require_location(db, connection.from_location_id)
    async with atomic(db):
        await db.delete(connection)
    await broadcast.publish_fight(db, origin.fight_id)


async def place_shot(db: AsyncSession, shot_id: str, location_id: str | None) -> Shot:
    """Put a shot at a location of its own fight; ``None`` clears it."""
    shot = await require_shot(db, shot_id)
    if location_id is not None:
        location = await require_location(db, location_id)
        if location.fight_id != shot.fight_id:
            raise ValidationError(
                f"Location {location_id} does not belong to fight {shot.fight_id}"
            )

    async with atomic(db):
        shot.location_id = location_id
    await broadcast.publish_fight(db, shot.fight_id)
    return shot


async def set_shot_location(db: AsyncSession, shot_id: str, name: str | None) -> tuple[Shot, bool]:
    """Place a shot by location name, creating the location if needed.

    Returns the shot and whether a new location was created. A blank name
    clears the shot's location.
    """
    name = (name or "").strip()
    if not name:
        return await place_shot(db, shot_id, None), False

    shot = await require_shot(db, shot_id)
    location = await find_by_name(db, name, fight_id=shot.fight_id)
    created = location is None
    try:
        async with atomic(db):
            if location is None:
                location = await _insert_location(db, name, shot.fight_id, None)
            shot.location_id = location.id
    except IntegrityError as exc:
        if not _is_name_clash(exc):
            raise
        raise DuplicateNameError(name) from exc

    await broadcast.publish_fight(db, shot.fight_id)
    return shot, created


async def copy_site_locations(db: AsyncSession, site_id: str, fight_id: str) -> list[Location]:
    """Copy a site's locations and connections into a fight.

    Names the fight already uses are skipped, along with any connection
    touching them. Each copy remembers the site location it came from.
    """
    if await db.get(Site, site_id) is None:
        raise NotFoundError("Site", site_id)
    await require_fight(db, fight_id)

    templates = await list_locations(db, site_id=site_id)
    edges = await list_connections(db, site_id=site_id)
    taken = {loc.name.lower() for loc in await list_locations(db, fight_id=fight_id)}

    copies: dict[str, Location] = {}
    async with atomic(db):
        for template in templates:
            if template.name.lower() in taken:
                continue
            copies[template.id] = await _insert_location(
                db,
                template.name,
                fight_id,
                None,
                description=template.description,
                color=template.color,
                position_x=template.position_x,
                position_y=template.position_y,
                width=template.width,
                height=template.height,
                copied_from_location_id=template.id,
            )
        for edge in edges:
            if edge.from_location_id in copies and edge.to_location_id in copies:
                db.add(
                    LocationConnection(
                        from_location_id=copies[edge.from_location_id].id,
                        to_location_id=copies[edge.to_location_id].id,
                        bidirectional=edge.bidirectional,
                        label=edge.label,
                    )
                )

    logger.info("Copied %d locations from site %s into fight %s", len(copies), site_id, fight_id)
    await broadcast.publish_fight(db, fight_id)
    return list(copies.values())
