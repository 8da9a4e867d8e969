"""Lifecycle state machine for item status changes."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Tuple

from plansync.records import Status

TRANSITIONS: Mapping[Status, Tuple[Status, ...]] = MappingProxyType(
    {
        Status.NOT_STARTED: (Status.IN_PLANNING,),
        Status.IN_PLANNING: (Status.READY, Status.NOT_STARTED),
        Status.READY: (Status.IN_PROGRESS, Status.IN_PLANNING),
        Status.IN_PROGRESS: (Status.COMPLETED, Status.BLOCKED, Status.READY),
        Status.BLOCKED: (Status.READY, Status.IN_PROGRESS),
        Status.COMPLETED: (Status.IN_PROGRESS,),
    }
)


class StatusTransitionValidator:
    """Answer whether one status may follow another.

    A status never transitions to itself, and ``Archived`` is neither a source
    nor a target. Callers that want "set to current status" to be a no-op must
    check for it before asking.
    """

    def __init__(self, transitions: Mapping[Status, Tuple[Status, ...]] = TRANSITIONS) -> None:
        self._transitions = transitions

    def is_valid_transition(self, current: Status, target: Status) -> bool:
        """Return whether ``current`` may change to ``target``."""
        return target in self._transitions.get(current, ())

    def valid_next_statuses(self, current: Status) -> Tuple[Status, ...]:
        """Return the statuses reachable from ``current`` in one step."""
        return tuple(self._transitions.get(current, ()))


def is_valid_transition(current: Status, target: Status) -> bool:
    """Module-level shortcut for the default state machine."""
    return target in TRANSITIONS.get(current, ())


__all__ = ["TRANSITIONS", "StatusTransitionValidator", "is_valid_transition"]
