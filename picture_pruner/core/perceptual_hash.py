# core/perceptual_hash.py

import re

import imagehash
import numpy as np
from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener
from pathlib import Path
from typing import Union

from picture_pruner.core.exceptions import InvalidInput, UnsupportedImage

DEFAULT_HASH_SIZE = 8

_HEX_RE = re.compile(r'\A[0-9a-fA-F]+\Z')

register_heif_opener()

RESAMPLE_FILTERS = {
    'nearest': Image.Resampling.NEAREST,
    'box': Image.Resampling.BOX,
    'bilinear': Image.Resampling.BILINEAR,
    'hamming': Image.Resampling.HAMMING,
    'bicubic': Image.Resampling.BICUBIC,
    'lanczos': Image.Resampling.LANCZOS,
}


def _resolve_filter(resample: str) -> Image.Resampling:
    try:
        return RESAMPLE_FILTERS[resample.lower()]
    except KeyError:
        raise InvalidInput(
            f"Unknown resample filter {resample!r}; "
            f"expected one of {sorted(RESAMPLE_FILTERS)}"
        ) from None


def fingerprint_image(image: Image.Image,
                      hash_size: int = DEFAULT_HASH_SIZE,
                      resample: str = 'lanczos') -> str:
    """
    Difference hash of an already decoded image.

    The image is reduced to a (hash_size + 1) x hash_size luminance grid.
    Each row yields hash_size bits, 1 where the left pixel is strictly
    brighter than its right neighbour. Rows are concatenated top to bottom
    with the first pair as the most significant bit, and rendered as
    zero-padded hex (16 characters for the default 8).

    Encoders that pack the first pair into the least significant bit
    render the same image as different hex; Hamming distances between
    fingerprints of one layout are unaffected, but the two layouts must not
    be mixed in one store.
    """
    if hash_size < 2:
        raise InvalidInput("hash_size must be at least 2")
    resample_filter = _resolve_filter(resample)

    gray = image.convert('L').resize((hash_size + 1, hash_size), resample_filter)
    pixels = np.asarray(gray, dtype=np.int16)

    diff = pixels[:, :-1] > pixels[:, 1:]
    return str(imagehash.ImageHash(diff))


def compute_fingerprint(file_path: Union[str, Path],
                        hash_size: int = DEFAULT_HASH_SIZE,
                        resample: str = 'lanczos') -> str:
    """
    Decode an image file and return its difference hash.

    Raises UnsupportedImage when the decoder cannot process the file and
    OSError when the file does not exist.
    """
    _resolve_filter(resample)

    try:
        with Image.open(file_path) as img:
            img.load()
            return fingerprint_image(img, hash_size, resample)
    except FileNotFoundError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, SyntaxError, ValueError) as e:
        # SyntaxError comes from some broken PNG/GIF headers
        raise UnsupportedImage(file_path, str(e)) from e


def hamming_distance(a: str, b: str) -> int:
    """
    Number of differing bits between two hex fingerprints of equal width.

    Raises InvalidInput when the widths differ or the values are not hex.
    """
    if len(a) != len(b):
        raise InvalidInput(
            f"Fingerprint widths differ: {len(a) * 4} vs {len(b) * 4} bits"
        )
    if not (_HEX_RE.match(a) and _HEX_RE.match(b)):
        raise InvalidInput(f"Not a hex fingerprint: {a!r} / {b!r}")

    xor = int(a, 16) ^ int(b, 16)
    return bin(xor).count('1')


def bit_width(fingerprint: str) -> int:
    return len(fingerprint) * 4
