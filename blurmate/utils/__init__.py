"""
BlurMate utilities module.

Provides logging helpers shared by the editing and processing layers.
"""

from .logging import StructuredLogger, setup_console_logging

__all__ = [
    'StructuredLogger',
    'setup_console_logging'
]
