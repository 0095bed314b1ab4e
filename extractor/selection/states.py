"""Selection-mode states and the transitions allowed between them."""

from __future__ import annotations

from enum import Enum


class SelectionState(str, Enum):
    """States of the selection-mode controller.

    IDLE: nothing armed, the document behaves normally.
    ARMED: a field type is chosen, listeners are installed, nothing hovered yet.
    HIGHLIGHTING: armed and a candidate node carries the highlight decoration.
    """

    IDLE = "IDLE"
    ARMED = "ARMED"
    HIGHLIGHTING = "HIGHLIGHTING"


# Each key maps to the set of states it can transition to.
VALID_TRANSITIONS: dict[SelectionState, set[SelectionState]] = {
    SelectionState.IDLE: {SelectionState.ARMED},
    SelectionState.ARMED: {SelectionState.HIGHLIGHTING, SelectionState.IDLE},
    SelectionState.HIGHLIGHTING: {SelectionState.HIGHLIGHTING, SelectionState.IDLE},
}

ARMED_STATES = {SelectionState.ARMED, SelectionState.HIGHLIGHTING}
