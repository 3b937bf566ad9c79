"""
Display-to-source coordinate mapping.

Strokes are captured in the coordinate space of the on-screen viewport. The
mapper scales them, along with the brush diameter and blur intensity, into
the pixel space of the full-resolution source image.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..exceptions import NoImageError, NoStrokesError
from .models import (
    BlurParameters, DisplayGeometry, SourceImage, Stroke, StrokeSet
)

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_WIDTH = 300.0


@dataclass(frozen=True)
class MappedStroke:
    """A stroke in source-pixel coordinates."""
    points: Tuple[Tuple[float, float], ...]
    diameter: float


@dataclass(frozen=True)
class MappedExport:
    """Everything the rasterizer and blur filter need, in source pixels."""
    scale_x: float
    scale_y: float
    strokes: Tuple[MappedStroke, ...]
    blur_radius: float

    @property
    def uniform_scale(self) -> float:
        return min(self.scale_x, self.scale_y)


class CoordinateMapper:
    """Maps display-space geometry onto source-image pixels."""

    def __init__(self, fallback_width: float = DEFAULT_FALLBACK_WIDTH):
        """
        Initialize the mapper.

        Args:
            fallback_width: Display width assumed when the viewport is degenerate
        """
        if not (math.isfinite(fallback_width) and fallback_width > 0):
            raise ValueError(f"Invalid fallback width: {fallback_width}")
        self.fallback_width = fallback_width

    def effective_geometry(self, display: Optional[DisplayGeometry],
                           source_size: Tuple[int, int]) -> DisplayGeometry:
        """
        Resolve the viewport to map against.

        A degenerate viewport is replaced by an aspect-preserving one of
        fallback_width display units.

        Args:
            display: Viewport reported by the UI, may be None
            source_size: (width, height) of the source image in pixels

        Returns:
            A non-degenerate DisplayGeometry
        """
        if display is not None and not display.is_degenerate:
            return display

        source_w, source_h = source_size
        ratio = source_w / source_h
        fallback = DisplayGeometry(self.fallback_width, self.fallback_width / ratio)
        logger.debug(f"Degenerate display geometry {display}, using {fallback}")
        return fallback

    def scale_factors(self, display: Optional[DisplayGeometry],
                      source_size: Tuple[int, int]) -> Tuple[float, float]:
        """
        Compute display-to-source scale factors.

        Returns:
            (sx, sy), both positive and finite
        """
        geometry = self.effective_geometry(display, source_size)
        source_w, source_h = source_size
        return source_w / geometry.width, source_h / geometry.height

    @staticmethod
    def map_stroke(stroke: Stroke, scale_x: float, scale_y: float) -> MappedStroke:
        """Scale one stroke's points independently per axis."""
        points = tuple((x * scale_x, y * scale_y) for x, y in stroke.points)
        return MappedStroke(points=points,
                            diameter=stroke.brush_size * min(scale_x, scale_y))

    def map_export(self, source: Optional[SourceImage], strokes: StrokeSet,
                   parameters: BlurParameters,
                   display: Optional[DisplayGeometry]) -> MappedExport:
        """
        Map a stroke set and blur parameters into source pixels.

        Args:
            source: Source image, required
            strokes: Committed strokes in display coordinates
            parameters: Brush and blur settings in display units
            display: Viewport the strokes were captured in

        Returns:
            MappedExport with scaled strokes and blur radius

        Raises:
            NoImageError: If no source image is given
            NoStrokesError: If the stroke set is empty
        """
        if source is None:
            raise NoImageError()
        if not strokes:
            raise NoStrokesError()

        scale_x, scale_y = self.scale_factors(display, (source.width, source.height))
        mapped = tuple(self.map_stroke(stroke, scale_x, scale_y) for stroke in strokes)
        blur_radius = parameters.blur_intensity * min(scale_x, scale_y)

        logger.debug(f"Mapped {len(mapped)} strokes with scale ({scale_x:.3f}, {scale_y:.3f}), "
                     f"blur radius {blur_radius:.2f}")
        return MappedExport(scale_x=scale_x, scale_y=scale_y,
                            strokes=mapped, blur_radius=blur_radius)
