"""
Compositing pipeline: mapping, rasterization, blur and compositing.

The pipeline is stateless between calls. Every render builds its mask and
blurred layer from scratch and lets them go on return.
"""

import logging
import time
from typing import Any, Dict, Optional

import cv2
import numpy as np

from ..config import get_config_value
from ..editing.geometry import CoordinateMapper, MappedStroke
from ..editing.models import (
    BlurParameters, DisplayGeometry, ExportSnapshot, SourceImage, StrokeSet
)
from ..exceptions import BlurMateError, CompositeError
from .blur_filter import BlurFilter
from .compositor import Compositor
from .mask_rasterizer import MaskRasterizer

logger = logging.getLogger(__name__)


class CompositingPipeline:
    """Turns an export snapshot into a full-resolution composited image."""

    def __init__(self, mapper: Optional[CoordinateMapper] = None,
                 rasterizer: Optional[MaskRasterizer] = None,
                 blur_filter: Optional[BlurFilter] = None,
                 compositor: Optional[Compositor] = None):
        self.mapper = mapper or CoordinateMapper()
        self.rasterizer = rasterizer or MaskRasterizer()
        self.blur_filter = blur_filter or BlurFilter()
        self.compositor = compositor or Compositor()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'CompositingPipeline':
        """Build a pipeline from a configuration dictionary."""
        return cls(
            mapper=CoordinateMapper(
                fallback_width=float(get_config_value(config, 'editor.fallback_display_width', 300.0))
            ),
            rasterizer=MaskRasterizer(
                antialias=bool(get_config_value(config, 'rendering.antialias', True)),
                feather=float(get_config_value(config, 'rendering.mask_feather', 0.0))
            ),
            blur_filter=BlurFilter(
                max_direct_sigma=float(get_config_value(config, 'rendering.max_direct_sigma', 32.0))
            ),
        )

    def render(self, snapshot: ExportSnapshot) -> SourceImage:
        """
        Render the final image for an export.

        Args:
            snapshot: Immutable copy of the session state

        Returns:
            Composited image at the source's full resolution

        Raises:
            NoImageError, NoStrokesError: If there is nothing to blur
            CompositeError: If any stage fails
        """
        # Raises NothingToExportError before any pixel work is done
        mapped = self.mapper.map_export(
            snapshot.source, snapshot.strokes, snapshot.parameters, snapshot.display
        )
        source = snapshot.source
        start_time = time.time()

        try:
            mask = self.rasterizer.rasterize((source.height, source.width), mapped.strokes)
            blurred = self.blur_filter.apply(source.pixels, mapped.blur_radius,
                                             snapshot.parameters.style)
            output = self.compositor.composite(source, blurred, mask)
        except BlurMateError:
            raise
        except (cv2.error, ValueError, MemoryError) as e:
            raise CompositeError(f"Image processing failed: {e}") from e

        logger.info(f"Rendered {source.width}x{source.height} export in "
                    f"{time.time() - start_time:.2f}s")
        return output

    def render_preview(self, source: SourceImage, strokes: StrokeSet,
                       parameters: BlurParameters,
                       display: DisplayGeometry) -> SourceImage:
        """
        Render an on-screen approximation at display resolution.

        The source is downscaled to the viewport and strokes are drawn
        without scaling. This is only a preview; exports always go through
        render() at full resolution.

        Args:
            source: Full-resolution source image
            strokes: Strokes to show, including a live one
            parameters: Brush and blur settings in display units
            display: Viewport the preview is drawn into

        Returns:
            Composited image sized to the (resolved) viewport
        """
        geometry = self.mapper.effective_geometry(display, (source.width, source.height))
        width = max(1, int(round(geometry.width)))
        height = max(1, int(round(geometry.height)))

        pixels = cv2.resize(source.pixels, (width, height), interpolation=cv2.INTER_AREA)
        pixels = pixels.reshape((height, width) + source.pixels.shape[2:])
        preview_source = source.with_pixels(np.ascontiguousarray(pixels))

        display_strokes = [
            MappedStroke(points=stroke.points, diameter=stroke.brush_size)
            for stroke in strokes
        ]
        mask = self.rasterizer.rasterize((height, width), display_strokes)
        blurred = self.blur_filter.apply(preview_source.pixels, parameters.blur_intensity,
                                         parameters.style)
        return self.compositor.composite(preview_source, blurred, mask)
