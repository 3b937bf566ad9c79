"""
Stroke recording for freehand mask painting.

Pointer drags are accumulated into an in-progress point list and committed
as immutable Stroke objects when the drag ends. The committed history is
linear and supports undo of the most recent stroke.
"""

import logging
import math
from typing import List, Optional

from .models import Point, Stroke, StrokeSet

logger = logging.getLogger(__name__)


class StrokeRecorder:
    """
    Accumulates drag samples into strokes.

    Not thread-safe: the recorder belongs to the control thread. Other
    threads only ever see the tuples returned by snapshot().
    """

    def __init__(self, brush_size: float = 30.0):
        """
        Initialize the recorder.

        Args:
            brush_size: Diameter assigned to strokes started from now on
        """
        self.brush_size = brush_size
        self._committed: List[Stroke] = []
        self._current: List[Point] = []
        self._current_brush: Optional[float] = None

    @property
    def is_drawing(self) -> bool:
        """True while a drag is in progress."""
        return bool(self._current)

    def on_drag_update(self, x: float, y: float) -> None:
        """
        Start a stroke at the point or extend the current one.

        Args:
            x: Horizontal position in display units
            y: Vertical position in display units
        """
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"Drag point must be finite, got ({x}, {y})")

        if not self._current:
            self._current_brush = self.brush_size
        self._current.append((float(x), float(y)))

    def on_drag_end(self) -> Optional[Stroke]:
        """
        Commit the in-progress stroke.

        Returns:
            The committed stroke, or None when no drag was in progress
        """
        if not self._current:
            return None

        stroke = Stroke(points=tuple(self._current), brush_size=self._current_brush)
        self._committed.append(stroke)
        self._current = []
        self._current_brush = None

        logger.debug(f"Committed stroke with {len(stroke)} points "
                     f"({len(self._committed)} total)")
        return stroke

    def undo(self) -> Optional[Stroke]:
        """
        Remove the most recently committed stroke.

        The in-progress stroke is left alone.

        Returns:
            The removed stroke, or None when the history is empty
        """
        if not self._committed:
            logger.debug("Cannot undo: no committed strokes")
            return None
        return self._committed.pop()

    def clear(self) -> None:
        """Drop all committed strokes and any in-progress stroke."""
        self._committed.clear()
        self._current = []
        self._current_brush = None

    def snapshot(self) -> StrokeSet:
        """Committed strokes, oldest first."""
        return tuple(self._committed)

    def strokes_for_preview(self) -> StrokeSet:
        """Committed strokes followed by the live stroke, if any."""
        strokes = self.snapshot()
        if self._current:
            strokes += (Stroke(points=tuple(self._current),
                               brush_size=self._current_brush),)
        return strokes

    def __len__(self) -> int:
        return len(self._committed)
