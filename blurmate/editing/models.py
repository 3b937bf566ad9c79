"""
Data models for the BlurMate editing core.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

Point = Tuple[float, float]


class BlurStyle(Enum):
    """Available blur looks for the masked region."""
    GAUSSIAN = "gaussian"
    MOSAIC = "mosaic"  # Block-averaged cells
    PIXEL = "pixel"    # Nearest-sample pixelation


class ExportState(Enum):
    """States of the export state machine."""
    IDLE = "idle"
    EXPORTING = "exporting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Stroke:
    """One committed freehand drag in display coordinates."""
    points: Tuple[Point, ...]
    brush_size: float  # Diameter in display units at capture time

    def __post_init__(self):
        if not self.points:
            raise ValueError("A stroke needs at least one point")
        if not (math.isfinite(self.brush_size) and self.brush_size >= 0):
            raise ValueError(f"Invalid brush size: {self.brush_size}")

    def __len__(self) -> int:
        return len(self.points)


# Committed strokes in commit order
StrokeSet = Tuple[Stroke, ...]


@dataclass(frozen=True)
class DisplayGeometry:
    """Viewport size, in display units, the image is rendered into."""
    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        """True when either side is zero, negative or not finite."""
        return not (
            math.isfinite(self.width) and math.isfinite(self.height)
            and self.width > 0 and self.height > 0
        )


@dataclass(frozen=True)
class SourceImage:
    """
    Full-resolution image for an editing session.

    The pixel buffer is exposed through a read-only view so it can be shared
    between the control thread and the export worker. Writable input arrays
    are copied first; arrays already marked read-only are shared.
    """
    pixels: np.ndarray  # H x W or H x W x C, uint8 or uint16
    orientation: int = 1  # EXIF orientation tag, kept as metadata only
    info: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        pixels = np.asarray(self.pixels)
        if pixels.ndim not in (2, 3) or pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError(f"Unsupported image shape: {pixels.shape}")
        if pixels.dtype not in (np.uint8, np.uint16):
            raise ValueError(f"Unsupported image dtype: {pixels.dtype}")
        if pixels.flags.writeable:
            pixels = pixels.copy()
        view = pixels.view()
        view.flags.writeable = False
        object.__setattr__(self, 'pixels', view)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else self.pixels.shape[2]

    def with_pixels(self, pixels: np.ndarray) -> 'SourceImage':
        """Create an image with new pixels and the same metadata."""
        return SourceImage(pixels=pixels, orientation=self.orientation,
                           info=dict(self.info))


@dataclass(frozen=True)
class BlurParameters:
    """User-adjustable brush and blur settings, in display units."""
    brush_size: float = 30.0
    blur_intensity: float = 8.0
    style: BlurStyle = BlurStyle.GAUSSIAN

    def __post_init__(self):
        for name in ('brush_size', 'blur_intensity'):
            value = getattr(self, name)
            if not (math.isfinite(value) and value >= 0):
                raise ValueError(f"{name} must be a non-negative finite number, got {value}")
        if not isinstance(self.style, BlurStyle):
            object.__setattr__(self, 'style', BlurStyle(self.style))

    def evolve(self, **changes) -> 'BlurParameters':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class ExportSnapshot:
    """Consistent copy of the session state taken when an export begins."""
    source: Optional[SourceImage]
    strokes: StrokeSet
    parameters: BlurParameters
    display: DisplayGeometry


@dataclass(frozen=True)
class ExportEvent:
    """State-change notification published by the export controller."""
    state: ExportState
    generation: int
    reason: Optional[str] = None
    error: Optional[BaseException] = None
    output: Optional[SourceImage] = None
