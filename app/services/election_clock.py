"""Election lifecycle classification."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from app.utils.time import parse_timestamp


class ElectionState(str, Enum):
    """Lifecycle state of an election at a given instant."""

    INACTIVE = "inactive"
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


def classify_window(
    is_active: bool,
    start: str | datetime,
    end: str | datetime,
    now: datetime,
) -> ElectionState:
    """Classify an election window; both bounds are inclusive."""
    if not is_active:
        return ElectionState.INACTIVE

    current = parse_timestamp(now)
    if current < parse_timestamp(start):
        return ElectionState.UPCOMING
    if current > parse_timestamp(end):
        return ElectionState.ENDED
    return ElectionState.ACTIVE


def classify(election: Mapping[str, Any], now: datetime) -> ElectionState:
    """Classify an election row at ``now``.

    ``now`` is always supplied by the caller; this function never reads the
    wall clock.
    """
    return classify_window(
        is_active=bool(election.get("is_active")),
        start=election["start_time"],
        end=election["end_time"],
        now=now,
    )


def with_state(election: Mapping[str, Any], now: datetime) -> dict[str, Any]:
    """Return a copy of an election row annotated with its current state."""
    payload = dict(election)
    payload["state"] = classify(election, now).value
    return payload
