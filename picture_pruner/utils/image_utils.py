"""
Image utility functions
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

logger = logging.getLogger(__name__)

EXIF_ORIENTATION = 0x0112
EXIF_DATETIME = 0x0132
EXIF_IFD_POINTER = 0x8769
EXIF_DATETIME_ORIGINAL = 0x9003

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# HEIC/HEIF photos decode through Pillow once the opener is registered
register_heif_opener()


def _parse_exif_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='ignore')
    value = str(value).strip().rstrip('\x00')
    try:
        return datetime.strptime(value[:19], EXIF_DATE_FORMAT)
    except ValueError:
        return None


def get_image_info(image_path: str) -> dict:
    """
    Get image metadata without decoding pixel data

    Width and height are swapped for EXIF orientations 5-8 (rotated 90 or
    270 degrees) so they describe the image as displayed. Any field that
    cannot be read is None.
    """
    path = Path(image_path)
    info = {
        'width': None,
        'height': None,
        'format': None,
        'orientation': None,
        'taken_at': None,
    }

    try:
        with Image.open(path) as img:
            width, height = img.size
            info['format'] = img.format

            exif = img.getexif()
            orientation = exif.get(EXIF_ORIENTATION)
            taken_at = _parse_exif_datetime(
                exif.get_ifd(EXIF_IFD_POINTER).get(EXIF_DATETIME_ORIGINAL)
            ) or _parse_exif_datetime(exif.get(EXIF_DATETIME))
    except FileNotFoundError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, SyntaxError, ValueError) as e:
        logger.debug("Cannot read image header of %s: %s", path, e)
        return info

    if orientation in (5, 6, 7, 8):
        width, height = height, width

    info.update({
        'width': width,
        'height': height,
        'orientation': orientation,
        'taken_at': taken_at,
    })
    return info
