"""Incoming causal edges."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from xtrace.identifiers import DEFAULT_CHAIN_ID, OpId


class EdgeDirection(str, Enum):
    """How a predecessor relates to the event it points at."""

    NEXT = "next"  # continuation of the predecessor
    UP = "up"      # predecessor is the parent
    DOWN = "down"  # predecessor is a child returning


_DIRECTION_NAMES: dict[EdgeDirection, str] = {
    EdgeDirection.NEXT: "next",
    EdgeDirection.UP: "up",
    EdgeDirection.DOWN: "down",
}


def direction_name(direction: object) -> str:
    """Report text for a direction. Unknown values render as ''."""
    try:
        return _DIRECTION_NAMES.get(direction, "")  # type: ignore[call-overload]
    except TypeError:
        return ""


def direction_from_name(name: str) -> Optional[EdgeDirection]:
    for direction, text in _DIRECTION_NAMES.items():
        if text == name:
            return direction
    return None


@dataclass(frozen=True)
class Edge:
    """One recorded causal predecessor of an event."""

    op_id: OpId
    direction: EdgeDirection = EdgeDirection.NEXT
    chain_id: int = DEFAULT_CHAIN_ID
