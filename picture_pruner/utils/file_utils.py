"""
File operation utilities
"""

from pathlib import Path
from typing import List

MIME_BY_EXTENSION = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.heic': 'image/heic',
    '.heif': 'image/heif',
    '.webp': 'image/webp',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
    '.bmp': 'image/bmp',
    '.gif': 'image/gif',
}

SUPPORTED_EXTENSIONS = frozenset(MIME_BY_EXTENSION)


def is_image_file(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def mime_type_for(path: Path) -> str:
    return MIME_BY_EXTENSION.get(Path(path).suffix.lower(), 'application/octet-stream')


def get_image_files(directory: str, recursive: bool = False) -> List[Path]:
    """
    Get all supported image files in directory, sorted by path

    A missing or unreadable directory yields an empty list.
    """
    path = Path(directory)
    if not path.is_dir():
        return []

    pattern = path.rglob('*') if recursive else path.glob('*')
    try:
        return sorted(f for f in pattern if f.is_file() and is_image_file(f))
    except OSError:
        return []


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"
