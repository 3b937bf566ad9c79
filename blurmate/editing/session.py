"""
Editing session: the state behind one picked photo.

The session is the surface the UI talks to. It forwards pointer input to the
stroke recorder, tracks brush and blur settings and the viewport size, and
starts exports from an immutable snapshot of all of that.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from ..config import get_config_value, get_default_config
from ..processing.pipeline import CompositingPipeline
from ..storage.abstract import PersistenceSink
from .export import DEFAULT_TIMEOUT_SECONDS, Dispatcher, ExportController, ExportListener
from .models import (
    BlurParameters, BlurStyle, DisplayGeometry, ExportSnapshot, ExportState,
    SourceImage, StrokeSet
)
from .strokes import StrokeRecorder

logger = logging.getLogger(__name__)

# A gate receives `proceed` and must eventually call it once
ExportGate = Callable[[Callable[[], None]], None]


def _clamp(value: float, bounds: Tuple[float, float]) -> float:
    low, high = bounds
    return min(high, max(low, value))


class EditSession:
    """Aggregates source image, strokes, parameters and export state."""

    def __init__(self, sink: PersistenceSink,
                 config: Optional[Dict[str, Any]] = None,
                 pipeline: Optional[CompositingPipeline] = None,
                 dispatcher: Optional[Dispatcher] = None):
        """
        Initialize an empty session.

        Args:
            sink: Destination for exported images
            config: Configuration dictionary, defaults to get_default_config()
            pipeline: Pipeline override, built from config if None
            dispatcher: Runs export notifications on the UI thread
        """
        self.config = config or get_default_config()

        self.brush_range = tuple(get_config_value(self.config, 'editor.brush_size_range', [10.0, 100.0]))
        self.blur_range = tuple(get_config_value(self.config, 'editor.blur_intensity_range', [0.0, 15.0]))

        self.parameters = BlurParameters(
            brush_size=_clamp(float(get_config_value(self.config, 'editor.brush_size', 30.0)),
                              self.brush_range),
            blur_intensity=_clamp(float(get_config_value(self.config, 'editor.blur_intensity', 8.0)),
                                  self.blur_range),
            style=BlurStyle(get_config_value(self.config, 'editor.blur_style', 'gaussian')),
        )

        self.pipeline = pipeline or CompositingPipeline.from_config(self.config)
        self.exporter = ExportController(
            self.pipeline, sink,
            timeout=float(get_config_value(self.config, 'export.timeout_seconds',
                                           DEFAULT_TIMEOUT_SECONDS)),
            dispatcher=dispatcher,
        )

        self.source: Optional[SourceImage] = None
        self.display = DisplayGeometry(0, 0)
        self.recorder = StrokeRecorder(brush_size=self.parameters.brush_size)

    # Image and viewport

    def load_image(self, image: SourceImage) -> None:
        """Start editing a new image, discarding strokes from the old one."""
        self.source = image
        self.display = DisplayGeometry(0, 0)
        self.recorder.clear()
        logger.info(f"Loaded image {image.width}x{image.height}")

    def set_display_geometry(self, width: float, height: float) -> None:
        """
        Record the viewport size the image is drawn at.

        Degenerate sizes are ignored so a transient zero-sized layout pass
        does not wipe a valid geometry. Strokes already drawn are not
        re-mapped.
        """
        geometry = DisplayGeometry(float(width), float(height))
        if geometry.is_degenerate:
            logger.debug(f"Ignoring degenerate display geometry {width}x{height}")
            return
        if self.recorder.snapshot() and geometry != self.display and not self.display.is_degenerate:
            logger.warning(f"Display geometry changed from {self.display} to {geometry} "
                           f"with {len(self.recorder)} strokes recorded")
        self.display = geometry

    # Brush settings

    def set_brush_size(self, size: float) -> float:
        """Set the brush diameter for new strokes, clamped to the slider range."""
        size = _clamp(float(size), self.brush_range)
        self.parameters = self.parameters.evolve(brush_size=size)
        self.recorder.brush_size = size
        return size

    def set_blur_intensity(self, intensity: float) -> float:
        """Set the blur intensity, clamped to the slider range."""
        intensity = _clamp(float(intensity), self.blur_range)
        self.parameters = self.parameters.evolve(blur_intensity=intensity)
        return intensity

    def set_blur_style(self, style) -> None:
        self.parameters = self.parameters.evolve(style=BlurStyle(style))

    # Pointer input

    def on_drag_update(self, x: float, y: float) -> None:
        self.recorder.on_drag_update(x, y)

    def on_drag_end(self) -> None:
        self.recorder.on_drag_end()

    def undo(self) -> None:
        self.recorder.undo()

    def clear(self) -> None:
        self.recorder.clear()

    @property
    def strokes(self) -> StrokeSet:
        return self.recorder.snapshot()

    # Preview and export

    def render_preview(self) -> Optional[SourceImage]:
        """Composite the current strokes, including a live one, at display size."""
        if self.source is None:
            return None
        return self.pipeline.render_preview(
            self.source, self.recorder.strokes_for_preview(),
            self.parameters, self.display
        )

    def snapshot(self) -> ExportSnapshot:
        """Freeze the state an export should render."""
        return ExportSnapshot(
            source=self.source,
            strokes=self.recorder.snapshot(),
            parameters=self.parameters,
            display=self.display,
        )

    def export(self) -> int:
        """
        Start exporting the current edit.

        Returns:
            Generation number of the export attempt

        Raises:
            NoImageError, NoStrokesError: Nothing to blur
            ExportInProgressError: Another export is running
        """
        return self.exporter.export(self.snapshot())

    def request_export(self, gate: ExportGate) -> None:
        """
        Run a pre-export step, then export once.

        The gate is called with a `proceed` callable. Calls to `proceed`
        after the first are ignored. Errors from export() propagate out of
        `proceed`.
        """
        fired = []

        def proceed():
            if fired:
                logger.warning("Export gate called proceed more than once, ignoring")
                return
            fired.append(True)
            self.export()

        gate(proceed)

    def subscribe(self, listener: ExportListener) -> Callable[[], None]:
        return self.exporter.subscribe(listener)

    @property
    def export_state(self) -> ExportState:
        return self.exporter.state

    @property
    def save_error(self) -> Optional[str]:
        """Reason of the last failed export, None otherwise."""
        event = self.exporter.last_event
        if event is not None and event.state == ExportState.FAILED:
            return event.reason
        return None

    def close(self) -> None:
        self.exporter.shutdown(wait=False)
