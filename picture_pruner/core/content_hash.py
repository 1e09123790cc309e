# core/content_hash.py

import hashlib
from pathlib import Path
from typing import Union

CHUNK_SIZE = 1024 * 1024  # 1 MB


def hash_content(file_path: Union[str, Path], chunk_size: int = CHUNK_SIZE) -> str:
    """
    SHA-256 of the exact file bytes, read in fixed-size chunks.

    Returns a 64 character lowercase hex digest. Raises OSError when the
    file is missing or becomes unreadable while it is being read.
    """
    digest = hashlib.sha256()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            digest.update(chunk)
    return digest.hexdigest()
