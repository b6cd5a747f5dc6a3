"""Pointer-drag state machine.

A gesture source reports start / hover / drop / cancel. ``step`` is a pure
function from (state, event, forest) to a ``Transition``; the only side effect
a drag can have is the ``MoveCommand`` carried by the transition out of a drop.
``DragSession`` wraps ``step`` for callers that prefer callbacks.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Union

from models.card import CollectionCard, CollectionLayoutStyle, Forest
from models.errors import MoveOutcome
from services.tree_repository import (
    ROOT_SENTINEL,
    MoveResult,
    check_move,
    children_of,
    index_forest,
    normalize_parent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class HoverGeometry:
    """Bounding box of the hovered card and the pointer, in the same coordinates."""

    rect: Rect
    pointer: Point

    def offset_along(self, horizontal: bool) -> tuple[float, float] | None:
        if horizontal:
            extent, offset = self.rect.width, self.pointer.x - self.rect.left
        else:
            extent, offset = self.rect.height, self.pointer.y - self.rect.top
        if extent <= 0:
            return None
        return offset, extent / 2


@dataclass(frozen=True)
class MoveCommand:
    drag_index: int
    hover_index: int
    drag_parent_id: str | None
    hover_parent_id: str | None


# --- states ---------------------------------------------------------------

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    card_id: str
    origin_index: int
    origin_parent_id: str | None
    hover_index: int | None = None
    hover_parent_id: str | None = None

    @property
    def has_proposal(self) -> bool:
        return self.hover_index is not None

    def proposal(self) -> MoveCommand | None:
        if not self.has_proposal:
            return None
        if self.hover_index == self.origin_index and self.hover_parent_id == self.origin_parent_id:
            return None
        return MoveCommand(self.origin_index, self.hover_index, self.origin_parent_id, self.hover_parent_id)


@dataclass(frozen=True)
class Dropped:
    card_id: str
    command: MoveCommand | None


@dataclass(frozen=True)
class Cancelled:
    card_id: str


DragState = Union[Idle, Dragging, Dropped, Cancelled]

IDLE = Idle()


# --- events ---------------------------------------------------------------

@dataclass(frozen=True)
class DragStart:
    card_id: str
    index: int
    parent_id: str | None = None


@dataclass(frozen=True)
class DragHover:
    """Pointer is over ``parent_id``; ``index`` is the hovered child or None for the container itself."""

    index: int | None
    parent_id: str | None
    geometry: HoverGeometry | None = None


@dataclass(frozen=True)
class DragDrop:
    outside: bool = False


@dataclass(frozen=True)
class DragCancel:
    pass


DragEvent = Union[DragStart, DragHover, DragDrop, DragCancel]


class DragStatus(str, Enum):
    STARTED = "started"
    PROPOSED = "proposed"
    RESET = "reset"
    IGNORED = "ignored"
    REJECTED = "rejected"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Transition:
    state: DragState
    status: DragStatus
    command: MoveCommand | None = None
    reason: MoveOutcome | None = None


def is_resting(state: DragState) -> bool:
    return not isinstance(state, Dragging)


def _start(state: DragState, event: DragStart, forest: Forest) -> Transition:
    if not is_resting(state):
        return Transition(state, DragStatus.REJECTED)
    parent_id = normalize_parent(event.parent_id)
    siblings = children_of(forest, parent_id)
    if siblings is None:
        return Transition(state, DragStatus.REJECTED, reason=MoveOutcome.INVALID_TARGET)
    if not 0 <= event.index < len(siblings) or siblings[event.index].id != event.card_id:
        return Transition(state, DragStatus.REJECTED, reason=MoveOutcome.NOT_FOUND)
    logger.debug("drag start %s at %s[%s]", event.card_id, parent_id or ROOT_SENTINEL, event.index)
    return Transition(Dragging(event.card_id, event.index, parent_id), DragStatus.STARTED)


def _layout_is_horizontal(forest: Forest, parent_id: str | None) -> bool:
    if parent_id is None:
        return False
    container = index_forest(forest).cards.get(parent_id)
    return isinstance(container, CollectionCard) and container.layout_style is CollectionLayoutStyle.HORIZONTAL


def _hover_same_container(state: Dragging, event: DragHover, forest: Forest) -> Transition:
    if event.index is None:
        return Transition(state, DragStatus.IGNORED)
    if event.index == state.origin_index:
        return Transition(replace(state, hover_index=None, hover_parent_id=None), DragStatus.RESET)
    if event.geometry is None:
        return Transition(state, DragStatus.IGNORED)
    measured = event.geometry.offset_along(_layout_is_horizontal(forest, state.origin_parent_id))
    if measured is None:
        return Transition(state, DragStatus.IGNORED)
    offset, middle = measured
    # only swap once the pointer has crossed the hovered card's midpoint
    if state.origin_index < event.index and offset < middle:
        return Transition(state, DragStatus.IGNORED)
    if state.origin_index > event.index and offset > middle:
        return Transition(state, DragStatus.IGNORED)
    return Transition(
        replace(state, hover_index=event.index, hover_parent_id=state.origin_parent_id),
        DragStatus.PROPOSED,
    )


def _locate(state: Dragging, forest: Forest) -> tuple[int, str | None] | None:
    """Where the dragged card sits now; it may have shifted since pick-up."""
    index = index_forest(forest)
    if state.card_id not in index.cards:
        return None
    return index.positions[state.card_id], index.parents[state.card_id]


def _hover_other_container(state: Dragging, parent_id: str | None, event: DragHover, forest: Forest) -> Transition:
    siblings = children_of(forest, parent_id)
    if siblings is None:
        return Transition(state, DragStatus.REJECTED, reason=MoveOutcome.INVALID_TARGET)
    located = _locate(state, forest)
    if located is None:
        return Transition(state, DragStatus.REJECTED, reason=MoveOutcome.NOT_FOUND)
    index = len(siblings) if event.index is None else min(max(0, event.index), len(siblings))
    outcome = check_move(forest, located[0], index, located[1], parent_id)
    if outcome is not MoveOutcome.MOVED:
        return Transition(state, DragStatus.REJECTED, reason=outcome)
    return Transition(replace(state, hover_index=index, hover_parent_id=parent_id), DragStatus.PROPOSED)


def _hover(state: DragState, event: DragHover, forest: Forest) -> Transition:
    if not isinstance(state, Dragging):
        return Transition(state, DragStatus.IGNORED)
    parent_id = normalize_parent(event.parent_id)
    if parent_id == state.origin_parent_id:
        return _hover_same_container(state, event, forest)
    return _hover_other_container(state, parent_id, event, forest)


def _drop(state: Dragging, forest: Forest) -> Transition:
    command = state.proposal()
    if command is None:
        logger.debug("drag drop %s: no move", state.card_id)
        return Transition(Dropped(state.card_id, None), DragStatus.DROPPED)
    located = _locate(state, forest)
    if located is None:
        logger.warning("drag drop %s: card no longer in the forest", state.card_id)
        return Transition(Dropped(state.card_id, None), DragStatus.DROPPED, reason=MoveOutcome.NOT_FOUND)
    if located != (command.drag_index, command.drag_parent_id):
        # the forest changed under the gesture; move the card from where it is now
        command = replace(command, drag_index=located[0], drag_parent_id=located[1])
    outcome = check_move(forest, command.drag_index, command.hover_index, command.drag_parent_id, command.hover_parent_id)
    if outcome is not MoveOutcome.MOVED:
        logger.debug("drag drop %s: %s", state.card_id, outcome.value)
        return Transition(Dropped(state.card_id, None), DragStatus.DROPPED, reason=outcome)
    logger.debug("drag drop %s: %s", state.card_id, command)
    return Transition(Dropped(state.card_id, command), DragStatus.DROPPED, command=command)


def step(state: DragState, event: DragEvent, forest: Forest) -> Transition:
    if isinstance(event, DragStart):
        return _start(state, event, forest)
    if isinstance(event, DragHover):
        return _hover(state, event, forest)
    if not isinstance(state, Dragging):
        return Transition(state, DragStatus.IGNORED)
    if isinstance(event, DragDrop) and not event.outside:
        return _drop(state, forest)
    logger.debug("drag cancelled %s", state.card_id)
    return Transition(Cancelled(state.card_id), DragStatus.CANCELLED)


class DragSession:
    """Feeds gesture callbacks through ``step`` and commits the dropped move."""

    def __init__(
        self,
        get_forest: Callable[[], Forest],
        commit: Callable[[MoveCommand], MoveResult],
        lock: threading.RLock | None = None,
    ) -> None:
        self.get_forest = get_forest
        self.commit = commit
        self.lock = lock or threading.RLock()
        self.state: DragState = IDLE
        self.last: Transition | None = None

    @property
    def is_dragging(self) -> bool:
        return isinstance(self.state, Dragging)

    def dispatch(self, event: DragEvent) -> Transition:
        with self.lock:
            transition = step(self.state, event, self.get_forest())
            self.state = transition.state
            self.last = transition
            return transition

    def on_drag_start(self, card_id: str, index: int, parent_id: str | None = None) -> DragStatus:
        return self.dispatch(DragStart(card_id, index, parent_id)).status

    def on_drag_hover(
        self,
        candidate_index: int | None,
        candidate_parent_id: str | None,
        geometry: HoverGeometry | None = None,
    ) -> DragStatus:
        return self.dispatch(DragHover(candidate_index, candidate_parent_id, geometry)).status

    def on_drag_drop(self, outside: bool = False) -> MoveResult | None:
        # resolve and commit against the same forest
        with self.lock:
            transition = self.dispatch(DragDrop(outside=outside))
            if transition.command is None:
                return None
            return self.commit(transition.command)

    def on_drag_cancel(self) -> None:
        self.dispatch(DragCancel())
