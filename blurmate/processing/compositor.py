"""
Mask-weighted compositing of source and blurred layers.
"""

import logging

import numpy as np

from ..editing.models import SourceImage
from ..exceptions import CompositeError

logger = logging.getLogger(__name__)


class Compositor:
    """Blends the blurred layer over the source through an opacity mask."""

    def composite(self, source: SourceImage, blurred: np.ndarray,
                  mask: np.ndarray) -> SourceImage:
        """
        Blend two layers with a per-pixel mask.

        output = source * (1 - mask) + blurred * mask, per channel.

        Args:
            source: Full-resolution source image
            blurred: Blurred pixels with the source's shape
            mask: Float mask (0-1) with the source's height and width

        Returns:
            New image with the source's shape, dtype and orientation
        """
        base = source.pixels
        if blurred.shape != base.shape:
            raise CompositeError(
                f"Blurred layer shape {blurred.shape} does not match source {base.shape}"
            )
        if mask.shape != base.shape[:2]:
            raise CompositeError(
                f"Mask shape {mask.shape} does not match source {base.shape[:2]}"
            )

        weights = np.clip(mask.astype(np.float32), 0, 1)
        if base.ndim == 3:
            weights = weights[:, :, np.newaxis]

        result = base.astype(np.float32) * (1 - weights) + blurred.astype(np.float32) * weights

        limit = np.iinfo(base.dtype).max
        output = np.clip(np.round(result), 0, limit).astype(base.dtype)
        output.flags.writeable = False

        return source.with_pixels(output)
