"""
Persistence sink abstraction for BlurMate.

A sink accepts a finished image and reports the outcome through a callback,
either immediately or later from another thread. The export controller does
not know or care where the image ends up.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..editing.models import SourceImage
from ..exceptions import BlurMateError

logger = logging.getLogger(__name__)

# Called with None on success or with the persistence error on failure
SaveCallback = Callable[[Optional[Exception]], None]


class PersistenceError(BlurMateError):
    """Base exception for persistence operations."""
    pass


class PersistenceDeniedError(PersistenceError):
    """Raised when the sink lacks permission to write the output."""
    pass


class PersistenceSink(ABC):
    """Abstract base class for export destinations."""

    @abstractmethod
    def save(self, image: SourceImage, callback: SaveCallback) -> None:
        """
        Persist an image and report the outcome.

        Implementations must call `callback` exactly once, with None on
        success or a PersistenceError describing the failure.
        """
        pass
