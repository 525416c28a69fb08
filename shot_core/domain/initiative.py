"""Initiative-clock arithmetic, free of any persistence."""

from __future__ import annotations

from typing import Protocol

# The counter runs down from here and wraps back to it after zero.
SHOT_COUNTER_TOP = 18


class _Clocked(Protocol):
    sequence: int


class _Timed(Protocol):
    end_sequence: int | None
    end_shot: int | None


class _Counted(Protocol):
    shot: int | None


def next_sequence(sequence: int) -> int:
    return sequence - 1 if sequence > 0 else SHOT_COUNTER_TOP


def is_expired(effect: _Timed, fight: _Clocked, shot: _Counted | None) -> bool:
    """Whether ``effect`` has lapsed at the fight's current clock position.

    An effect lapses once the fight's sequence passes ``end_sequence``. Within
    the end sequence itself it lapses only when the shot it rides with has
    come down to ``end_shot`` or below, so a participant who has not acted yet
    keeps the effect. An effect with no ``end_shot`` lapses as soon as its end
    sequence is reached. With only ``end_shot`` set, the effect lapses once the
    fight's counter drops below it. Effects with neither never lapse.
    """
    if effect.end_sequence is None:
        if effect.end_shot is None:
            return False
        return fight.sequence < effect.end_shot
    if fight.sequence > effect.end_sequence:
        return True
    if fight.sequence < effect.end_sequence:
        return False
    if effect.end_shot is None:
        return True
    if shot is None or shot.shot is None:
        return False
    return shot.shot <= effect.end_shot
