"""
Image file reading and writing with Pillow.

EXIF orientation is carried as metadata on SourceImage and written back on
save. Pixels are never rotated, so strokes drawn over the stored pixel
layout stay aligned.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..editing.models import SourceImage
from ..exceptions import ImageLoadError

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112

_NATIVE_MODES = {'L', 'RGB', 'RGBA', 'I;16'}

_FORMATS_BY_SUFFIX = {
    '.png': 'PNG',
    '.jpg': 'JPEG',
    '.jpeg': 'JPEG',
    '.tif': 'TIFF',
    '.tiff': 'TIFF',
    '.webp': 'WEBP',
}


def load_image(path: Union[str, Path]) -> SourceImage:
    """
    Read an image file into a SourceImage.

    Args:
        path: Image file path

    Returns:
        SourceImage with uint8 (or uint16 for 16-bit grayscale) pixels

    Raises:
        ImageLoadError: If the file is missing or not a readable image
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            orientation = int(img.getexif().get(EXIF_ORIENTATION_TAG, 1))
            if img.mode not in _NATIVE_MODES:
                has_alpha = 'A' in img.getbands() or 'transparency' in img.info
                img = img.convert('RGBA' if has_alpha else 'RGB')
            pixels = np.array(img)
            info = {'format': img.format, 'mode': img.mode}
    except (OSError, UnidentifiedImageError) as e:
        raise ImageLoadError(f"Cannot read image {path}: {e}") from e

    if pixels.dtype not in (np.uint8, np.uint16):
        pixels = pixels.astype(np.uint16)
    pixels.flags.writeable = False

    logger.debug(f"Loaded {path.name}: {pixels.shape}, orientation {orientation}")
    return SourceImage(pixels=pixels, orientation=orientation, info=info)


def to_pil(image: SourceImage) -> Image.Image:
    """Convert a SourceImage to a Pillow image."""
    pixels = np.ascontiguousarray(image.pixels)
    if pixels.dtype == np.uint16 and pixels.ndim == 3:
        # Pillow has no 16-bit color modes
        logger.warning("Reducing 16-bit color image to 8 bits for saving")
        pixels = (pixels >> 8).astype(np.uint8)
    if pixels.ndim == 3 and pixels.shape[2] == 1:
        pixels = pixels[:, :, 0]
    return Image.fromarray(pixels)


def guess_format(path: Union[str, Path], default: str = 'PNG') -> str:
    """Pick a Pillow format name from a file suffix."""
    return _FORMATS_BY_SUFFIX.get(Path(path).suffix.lower(), default)


def save_image(image: SourceImage, path: Union[str, Path],
               image_format: Optional[str] = None, jpeg_quality: int = 95) -> Path:
    """
    Write a SourceImage to disk, keeping its orientation tag.

    Args:
        image: Image to write
        path: Destination path
        image_format: Pillow format name, guessed from the suffix if None
        jpeg_quality: Quality for JPEG output

    Returns:
        The written path
    """
    path = Path(path)
    image_format = (image_format or guess_format(path)).upper()
    pil_image = to_pil(image)

    if image_format == 'JPEG' and pil_image.mode not in ('L', 'RGB'):
        pil_image = pil_image.convert('RGB')

    exif = Image.Exif()
    exif[EXIF_ORIENTATION_TAG] = image.orientation

    save_kwargs = {'exif': exif.tobytes()}
    if image_format == 'JPEG':
        save_kwargs['quality'] = jpeg_quality

    pil_image.save(path, format=image_format, **save_kwargs)
    logger.debug(f"Saved {path} as {image_format}")
    return path
