"""
BlurMate: paint a mask over a photo and blur it

Records freehand strokes in display coordinates, maps them onto the
full-resolution image, and composites a blurred layer through the
resulting mask for export.
"""

__version__ = "0.1.0"

from .config import load_config
from .editing.models import BlurStyle, ExportState, SourceImage
from .editing.session import EditSession

__all__ = [
    "load_config",
    "BlurStyle",
    "ExportState",
    "SourceImage",
    "EditSession",
]
