"""
Local persistence sinks: files on disk and in-memory collection.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from ..editing.models import SourceImage
from ..io.images import save_image
from .abstract import (
    PersistenceDeniedError, PersistenceError, PersistenceSink, SaveCallback
)

logger = logging.getLogger(__name__)


class FileSink(PersistenceSink):
    """
    Writes exported images to the local filesystem.

    When `target` is a directory, each export gets a timestamped file name.
    The write runs on the calling thread and the callback fires before
    save() returns.
    """

    def __init__(self, target: Union[str, Path], image_format: str = 'PNG',
                 jpeg_quality: int = 95):
        """
        Initialize the file sink.

        Args:
            target: Output file path, or an existing directory
            image_format: Pillow format used for generated file names
            jpeg_quality: Quality for JPEG output
        """
        self.target = Path(target)
        self.image_format = image_format.upper()
        self.jpeg_quality = jpeg_quality
        self.saved_paths: List[Path] = []

    def _resolve_path(self) -> Path:
        if self.target.is_dir():
            suffix = '.jpg' if self.image_format == 'JPEG' else f".{self.image_format.lower()}"
            stamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
            return self.target / f"blurmate_{stamp}{suffix}"
        return self.target

    def save(self, image: SourceImage, callback: SaveCallback) -> None:
        path = self._resolve_path()
        image_format = None if not self.target.is_dir() else self.image_format

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            save_image(image, path, image_format=image_format,
                       jpeg_quality=self.jpeg_quality)
        except PermissionError as e:
            logger.error(f"Permission denied writing {path}: {e}")
            callback(PersistenceDeniedError(f"Permission denied writing {path}"))
            return
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Failed to write {path}: {e}")
            callback(PersistenceError(f"Failed to write {path}: {e}"))
            return

        self.saved_paths.append(path)
        logger.info(f"Saved export to {path}")
        callback(None)


class MemorySink(PersistenceSink):
    """Keeps exported images in memory."""

    def __init__(self):
        self.images: List[SourceImage] = []
        self._lock = threading.Lock()

    @property
    def last(self) -> Optional[SourceImage]:
        with self._lock:
            return self.images[-1] if self.images else None

    def save(self, image: SourceImage, callback: SaveCallback) -> None:
        with self._lock:
            self.images.append(image)
        callback(None)
