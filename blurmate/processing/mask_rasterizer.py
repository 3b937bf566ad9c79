"""
Mask rasterization for painted blur regions.
"""

import logging
from typing import Iterable, Tuple

import cv2
import numpy as np
from scipy.ndimage import gaussian_filter

from ..editing.geometry import MappedStroke

logger = logging.getLogger(__name__)

# Fractional bits used for sub-pixel coordinates in OpenCV drawing calls
_SHIFT = 4
_ONE = 1 << _SHIFT


def _fixed(value: float) -> int:
    return int(round(value * _ONE))


class MaskRasterizer:
    """Renders pixel-space strokes into a single-channel opacity mask."""

    def __init__(self, antialias: bool = True, feather: float = 0.0):
        """
        Initialize the rasterizer.

        Args:
            antialias: Draw anti-aliased edges for smooth blending
            feather: Gaussian sigma in pixels applied to the finished mask
        """
        if feather < 0:
            raise ValueError(f"Feather must be non-negative, got {feather}")
        self.antialias = antialias
        self.feather = feather

    @property
    def line_type(self) -> int:
        return cv2.LINE_AA if self.antialias else cv2.LINE_8

    def rasterize(self, shape: Tuple[int, int],
                  strokes: Iterable[MappedStroke]) -> np.ndarray:
        """
        Render strokes into a mask.

        Each stroke is drawn as a continuous path with round caps and joins.
        Strokes are unioned: later strokes only add coverage.

        Args:
            shape: (height, width) of the source image
            strokes: Strokes in source-pixel coordinates

        Returns:
            Mask as float32 array (0-1) of the given shape
        """
        height, width = shape
        canvas = np.zeros((height, width), dtype=np.uint8)

        count = 0
        for stroke in strokes:
            self._draw_stroke(canvas, stroke)
            count += 1

        mask = canvas.astype(np.float32) / 255.0

        if self.feather > 0 and count:
            mask = np.clip(gaussian_filter(mask, self.feather), 0, 1).astype(np.float32)

        logger.debug(f"Rasterized {count} strokes into {width}x{height} mask "
                     f"(coverage {float(mask.mean()):.4f})")
        return mask

    def _draw_stroke(self, canvas: np.ndarray, stroke: MappedStroke) -> None:
        """Draw one stroke onto the canvas at full opacity."""
        if stroke.diameter <= 0:
            return

        thickness = max(1, int(round(stroke.diameter)))
        radius = _fixed(stroke.diameter / 2.0)
        points = [(_fixed(x), _fixed(y)) for x, y in stroke.points]

        for start, end in zip(points, points[1:]):
            if start != end:
                cv2.line(canvas, start, end, 255, thickness, self.line_type, _SHIFT)

        # Discs at every vertex give round caps and joins, and make
        # single-point strokes render as dots
        for point in points:
            cv2.circle(canvas, point, radius, 255, -1, self.line_type, _SHIFT)
