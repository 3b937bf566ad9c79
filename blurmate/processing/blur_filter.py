"""
Full-image blur for the masked compositing pipeline.
"""

import logging
import math
from typing import Tuple

import cv2
import numpy as np

from ..editing.models import BlurStyle

logger = logging.getLogger(__name__)


class BlurFilter:
    """
    Produces a blurred copy of an image at a given radius.

    Gaussian blur uses the radius as kernel sigma with replicated borders.
    Sigmas above max_direct_sigma are computed on a downscaled copy, so very
    large radii degrade toward a flat average color instead of failing.
    """

    def __init__(self, max_direct_sigma: float = 32.0):
        if not max_direct_sigma > 0:
            raise ValueError(f"max_direct_sigma must be positive, got {max_direct_sigma}")
        self.max_direct_sigma = max_direct_sigma

    def apply(self, pixels: np.ndarray, radius: float,
              style: BlurStyle = BlurStyle.GAUSSIAN) -> np.ndarray:
        """
        Blur an image.

        Args:
            pixels: Image array (H x W or H x W x C)
            radius: Blur radius in pixels, zero returns an unmodified copy
            style: Blur look to produce

        Returns:
            Blurred array with the same shape and dtype as the input
        """
        if not (math.isfinite(radius) and radius >= 0):
            raise ValueError(f"Blur radius must be non-negative and finite, got {radius}")

        if radius == 0:
            return pixels.copy()

        if style == BlurStyle.GAUSSIAN:
            result = self._gaussian(pixels, radius)
        elif style == BlurStyle.MOSAIC:
            result = self._cells(pixels, radius, cv2.INTER_AREA)
        elif style == BlurStyle.PIXEL:
            result = self._cells(pixels, radius, cv2.INTER_NEAREST)
        else:
            raise ValueError(f"Unsupported blur style: {style}")

        return result.reshape(pixels.shape).astype(pixels.dtype, copy=False)

    def _gaussian(self, pixels: np.ndarray, sigma: float) -> np.ndarray:
        """Gaussian blur, downscaling first for large sigmas."""
        height, width = pixels.shape[:2]

        if sigma <= self.max_direct_sigma:
            return self._gaussian_direct(pixels, sigma)

        factor = sigma / self.max_direct_sigma
        small_w = int(round(width / factor))
        small_h = int(round(height / factor))

        if small_w < 2 or small_h < 2:
            logger.debug(f"Blur sigma {sigma:.1f} exceeds image size, using mean color")
            return self._uniform(pixels)

        small = cv2.resize(pixels, (small_w, small_h), interpolation=cv2.INTER_AREA)
        small = small.reshape((small_h, small_w) + pixels.shape[2:])
        small_sigma = sigma * small_w / width
        blurred = self._gaussian_direct(small, small_sigma)
        return cv2.resize(blurred, (width, height), interpolation=cv2.INTER_LINEAR)

    @staticmethod
    def _gaussian_direct(pixels: np.ndarray, sigma: float) -> np.ndarray:
        return cv2.GaussianBlur(pixels, (0, 0), sigmaX=sigma, sigmaY=sigma,
                                borderType=cv2.BORDER_REPLICATE)

    @staticmethod
    def _uniform(pixels: np.ndarray) -> np.ndarray:
        """Fill the image with its per-channel mean."""
        mean = pixels.reshape(pixels.shape[0], pixels.shape[1], -1).mean(axis=(0, 1))
        filled = np.broadcast_to(np.round(mean), pixels.shape[:2] + mean.shape)
        return np.ascontiguousarray(filled).astype(pixels.dtype)

    @staticmethod
    def _cells(pixels: np.ndarray, radius: float, down: int) -> np.ndarray:
        """Block pixelation with cells of roughly `radius` pixels."""
        height, width = pixels.shape[:2]
        cell = max(1, int(round(radius)))
        small_size: Tuple[int, int] = (max(1, math.ceil(width / cell)),
                                       max(1, math.ceil(height / cell)))
        small = cv2.resize(pixels, small_size, interpolation=down)
        return cv2.resize(small, (width, height), interpolation=cv2.INTER_NEAREST)
