from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class PipelineState(str, Enum):
    IDLE = "idle"
    EXTRACTING_PLACES = "extracting_places"
    GEOCODING = "geocoding"
    ROUTING = "routing"
    HALTED_TOO_LONG = "halted_too_long"
    RENDERING = "rendering"
    FETCHING_IMAGERY = "fetching_imagery"
    EXPLAINING = "explaining"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATES: FrozenSet[PipelineState] = frozenset(
    {PipelineState.HALTED_TOO_LONG, PipelineState.DONE, PipelineState.ERROR}
)

TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.EXTRACTING_PLACES, PipelineState.ERROR}),
    PipelineState.EXTRACTING_PLACES: frozenset({PipelineState.GEOCODING, PipelineState.ERROR}),
    PipelineState.GEOCODING: frozenset({PipelineState.ROUTING, PipelineState.ERROR}),
    PipelineState.ROUTING: frozenset(
        {PipelineState.HALTED_TOO_LONG, PipelineState.RENDERING, PipelineState.ERROR}
    ),
    PipelineState.RENDERING: frozenset({PipelineState.FETCHING_IMAGERY, PipelineState.ERROR}),
    PipelineState.FETCHING_IMAGERY: frozenset({PipelineState.EXPLAINING, PipelineState.ERROR}),
    PipelineState.EXPLAINING: frozenset({PipelineState.DONE, PipelineState.ERROR}),
    PipelineState.HALTED_TOO_LONG: frozenset(),
    PipelineState.DONE: frozenset(),
    PipelineState.ERROR: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a run is moved along an edge the state machine does not have."""


def check_transition(current: PipelineState, target: PipelineState) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot move from {current.value} to {target.value}")
