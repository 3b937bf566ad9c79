"""
Editing core for BlurMate.

Stroke capture, display-to-source mapping and the data model shared by the
processing pipeline. The session and export controller live in
`blurmate.editing.session` and `blurmate.editing.export`.
"""

from .models import (
    BlurParameters, BlurStyle, DisplayGeometry, ExportEvent, ExportSnapshot,
    ExportState, SourceImage, Stroke, StrokeSet
)
from .strokes import StrokeRecorder
from .geometry import CoordinateMapper, MappedExport, MappedStroke

__all__ = [
    'BlurParameters',
    'BlurStyle',
    'DisplayGeometry',
    'ExportEvent',
    'ExportSnapshot',
    'ExportState',
    'SourceImage',
    'Stroke',
    'StrokeSet',
    'StrokeRecorder',
    'CoordinateMapper',
    'MappedExport',
    'MappedStroke'
]
