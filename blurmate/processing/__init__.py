"""
Pixel processing for BlurMate

Mask rasterization, blur, and mask-weighted compositing.
"""

from .mask_rasterizer import MaskRasterizer
from .blur_filter import BlurFilter
from .compositor import Compositor
from .pipeline import CompositingPipeline

__all__ = [
    "MaskRasterizer",
    "BlurFilter",
    "Compositor",
    "CompositingPipeline",
]
