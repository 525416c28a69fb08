"""Roster planning: turn a desired multiset of templates into shot inserts/deletes.

Planning is pure so the removal policy can be tested without a database.
When a template has more shots than wanted, the newest shots go first.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol


class _Placed(Protocol):
    id: str
    created_at: datetime | None


@dataclass
class RosterPlan:
    to_insert: list[str] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.to_insert or self.to_delete)

    def __add__(self, other: RosterPlan) -> RosterPlan:
        return RosterPlan(self.to_insert + other.to_insert, self.to_delete + other.to_delete)


def _created_key(shot: _Placed) -> datetime:
    # SQLite hands back naive datetimes; freshly created rows still carry tzinfo.
    ts = shot.created_at
    if ts is None:
        return datetime.max.replace(tzinfo=timezone.utc)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def newest_first(shots: Iterable[_Placed]) -> list[_Placed]:
    return sorted(shots, key=_created_key, reverse=True)


def plan_roster(
    existing: Iterable[_Placed],
    desired_ids: Iterable[str],
    key: Callable[[_Placed], str | None],
) -> RosterPlan:
    """Diff ``existing`` shots against ``desired_ids`` grouped by ``key``.

    ``desired_ids`` may repeat an id once per wanted instance. Shots whose key
    is ``None`` are not part of this roster and are left alone.
    """
    grouped: dict[str, list[_Placed]] = {}
    for shot in existing:
        ref = key(shot)
        if ref is not None:
            grouped.setdefault(ref, []).append(shot)

    desired_counts = Counter(desired_ids)
    plan = RosterPlan()

    for ref, wanted in desired_counts.items():
        have = len(grouped.get(ref, ()))
        if wanted > have:
            plan.to_insert.extend([ref] * (wanted - have))

    for ref, shots in grouped.items():
        surplus = len(shots) - desired_counts.get(ref, 0)
        if surplus > 0:
            plan.to_delete.extend(s.id for s in newest_first(shots)[:surplus])

    return plan
