"""Drag-and-drop reordering of visits within one day."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .editor import ItineraryEditor
from .sync import END, ListMapSynchronizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowBox:
    """Vertical extent of a rendered list row."""

    index: int
    top: float
    height: float

    @property
    def midpoint(self) -> float:
        return self.top + self.height / 2


def find_insertion_point(boxes: Sequence[RowBox], pointer_y: float, dragged_index: int) -> Optional[int]:
    """Index of the row the dragged row should be dropped before, or None for the end.

    Among the rows not being dragged, the candidate is the closest row whose
    midpoint lies below the pointer.
    """
    closest: Optional[RowBox] = None
    closest_offset = float("-inf")
    for box in boxes:
        if box.index == dragged_index:
            continue
        offset = pointer_y - box.midpoint
        if offset < 0 and offset > closest_offset:
            closest_offset = offset
            closest = box
    return closest.index if closest else None


def resulting_index(row_count: int, dragged_index: int, before: Optional[int]) -> int:
    """Position of the dragged row after dropping it before `before` (None = end)."""
    if before is None:
        return row_count - 1
    return before - 1 if before > dragged_index else before


class DragSession:
    """One drag of one row; lives from drag start to drag end."""

    def __init__(self, engine: ReorderEngine, day_id: str, index: int):
        self.engine = engine
        self.day_id = day_id
        self.index = index
        self.indicator: Optional[int] = None
        self.committed = False
        self.active = True

    def _set_indicator(self, position: Optional[int]) -> None:
        self.indicator = position
        if self.engine.synchronizer is not None:
            if position is None:
                self.engine.synchronizer.clear_indicator(self.day_id)
            else:
                self.engine.synchronizer.show_indicator(self.day_id, position, dragging=self.index)

    def over(self, pointer_y: float, boxes: Sequence[RowBox]) -> int:
        """Pointer moved over the list: move the indicator. Returns its position."""
        before = find_insertion_point(boxes, pointer_y, self.index)
        position = END if before is None else before
        self._set_indicator(position)
        return position

    def leave(self) -> None:
        """Pointer left the list."""
        self._set_indicator(None)

    def drop(self, pointer_y: float, boxes: Sequence[RowBox]) -> bool:
        """Commit the move. Returns True if the day's order changed."""
        self._set_indicator(None)
        if not self.active:
            return False

        day = self.engine.editor.day(self.day_id)
        before = find_insertion_point(boxes, pointer_y, self.index)
        new_index = resulting_index(len(day.visits), self.index, before)
        self.active = False
        if new_index == self.index:
            return False

        self.committed = self.engine.editor.move_visit(self.day_id, self.index, new_index)
        logger.debug("[DRAG] %s: %d -> %d", self.day_id, self.index, new_index)
        return self.committed

    def end(self) -> None:
        """Drag finished, with or without a drop."""
        self._set_indicator(None)
        self.active = False
        if self.engine.session is self:
            self.engine.session = None


class ReorderEngine:
    """Starts drag sessions and funnels drops into the editor."""

    def __init__(self, editor: ItineraryEditor, synchronizer: Optional[ListMapSynchronizer] = None):
        self.editor = editor
        self.synchronizer = synchronizer
        self.session: Optional[DragSession] = None

    def begin(self, day_id: str, index: int) -> DragSession:
        day = self.editor.day(day_id)
        if not (0 <= index < len(day.visits)):
            raise IndexError(f"No visit {index} in {day_id}")
        if self.session is not None:
            self.session.end()
        self.session = DragSession(self, day_id, index)
        return self.session

    def move(self, day_id: str, from_index: int, to_index: int) -> bool:
        """Pointer-free reorder (keyboard, API): same commit path as a drop."""
        return self.editor.move_visit(day_id, from_index, to_index)
