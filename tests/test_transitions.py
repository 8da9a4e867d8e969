"""Tests for the status lifecycle state machine."""

from __future__ import annotations

import itertools

import pytest

from plansync.records import LIFECYCLE_STATUSES, Status
from plansync.transitions import TRANSITIONS, StatusTransitionValidator, is_valid_transition

NS = Status.NOT_STARTED
IPL = Status.IN_PLANNING
RD = Status.READY
IPR = Status.IN_PROGRESS
BL = Status.BLOCKED
CO = Status.COMPLETED

ALLOWED = {
    (NS, IPL),
    (IPL, RD),
    (IPL, NS),
    (RD, IPR),
    (RD, IPL),
    (IPR, CO),
    (IPR, BL),
    (IPR, RD),
    (BL, RD),
    (BL, IPR),
    (CO, IPR),
}


@pytest.mark.parametrize(
    ("current", "target"),
    list(itertools.product(LIFECYCLE_STATUSES, repeat=2)),
    ids=lambda status: status.name,
)
def test_transition_table(current: Status, target: Status) -> None:
    """Every lifecycle pair, same-state included, follows the table exactly."""
    expected = (current, target) in ALLOWED

    assert is_valid_transition(current, target) is expected
    assert StatusTransitionValidator().is_valid_transition(current, target) is expected


@pytest.mark.parametrize("status", list(LIFECYCLE_STATUSES))
def test_same_state_is_never_valid(status: Status) -> None:
    assert not is_valid_transition(status, status)


@pytest.mark.parametrize("status", list(LIFECYCLE_STATUSES))
def test_archived_is_neither_source_nor_target(status: Status) -> None:
    assert not is_valid_transition(Status.ARCHIVED, status)
    assert not is_valid_transition(status, Status.ARCHIVED)


def test_valid_next_statuses() -> None:
    validator = StatusTransitionValidator()

    assert validator.valid_next_statuses(IPR) == (CO, BL, RD)
    assert validator.valid_next_statuses(Status.ARCHIVED) == ()


def test_table_is_read_only() -> None:
    with pytest.raises(TypeError):
        TRANSITIONS[Status.ARCHIVED] = (RD,)  # type: ignore[index]
