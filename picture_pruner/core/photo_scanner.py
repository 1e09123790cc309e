# core/photo_scanner.py

import hashlib
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from picture_pruner.config import SystemConfig
from picture_pruner.core.batch_processor import BatchProcessor
from picture_pruner.core.content_hash import hash_content
from picture_pruner.core.exceptions import UnsupportedImage
from picture_pruner.core.models import Photo, ScanResult
from picture_pruner.core.perceptual_hash import compute_fingerprint
from picture_pruner.utils.file_utils import get_image_files, mime_type_for
from picture_pruner.utils.image_utils import get_image_info

logger = logging.getLogger(__name__)

# Per-file outcomes reported back to the scan loop
_OK = "ok"
_MISSING = "missing"


def _uuid_from_digest(hex_digest: str) -> str:
    # Version nibble 4 and RFC 4122 variant bits over the first 128 bits
    return str(uuid.UUID(hex=hex_digest[:32], version=4))


def generate_photo_id(collection_id: str, file_name: str) -> str:
    """
    Deterministic photo id from (collection, file name)

    Re-scanning the same folder reproduces the same ids without a lookup.
    """
    digest = hashlib.sha256(f"{collection_id}:{file_name}".encode('utf-8')).hexdigest()
    return _uuid_from_digest(digest)


def collection_id_for(root) -> str:
    """Deterministic collection id for a folder"""
    resolved = str(Path(root).expanduser().resolve())
    return _uuid_from_digest(hashlib.sha256(resolved.encode('utf-8')).hexdigest())


def collection_id_for_name(name: str) -> str:
    """
    Deterministic collection id for a user-chosen name

    Named collections keep their id when the folder moves; the store maps
    the name to whichever root it was last synced from.
    """
    digest = hashlib.sha256(f"name:{name}".encode('utf-8')).hexdigest()
    return _uuid_from_digest(digest)


class PhotoScanner:
    """
    Build Photo records for the supported image files of a folder

    Each file is handled independently: metadata, content hash and
    fingerprint. A file that vanishes or cannot be read is skipped and
    counted; a file the decoder rejects keeps its record but gets no
    fingerprint.
    """

    def __init__(self, config=None):
        self.config = config or SystemConfig()

    def scan(self, directory, collection_id: Optional[str] = None,
             cancel_event: Optional[threading.Event] = None) -> ScanResult:
        root = Path(directory)
        collection_id = collection_id or collection_id_for(root)
        scan_config = self.config.scan

        files = get_image_files(str(root), recursive=scan_config.recursive)
        if not files:
            logger.info("No supported images found in %s", root)
            return ScanResult(photos=[])

        processor = BatchProcessor(
            n_workers=scan_config.n_workers,
            chunk_size=scan_config.chunk_size,
            show_progress=self.config.show_progress,
        )
        outcomes = processor.process_files(
            files,
            lambda path: self._process_file(root, path, collection_id),
            desc="Scanning photos",
            cancel_event=cancel_event,
        )

        result = ScanResult(photos=[], scanned_count=len(files))
        for status, photo, unsupported in outcomes:
            if status == _MISSING:
                result.missing_file_count += 1
                continue
            if unsupported:
                result.unsupported_count += 1
            if photo.content_hash:
                result.hashed_count += 1
            result.photos.append(photo)

        result.photos.sort(key=lambda p: p.file_name)
        logger.info(
            "Scanned %s: %d files, %d photos, %d missing, %d unsupported",
            root, result.scanned_count, len(result.photos),
            result.missing_file_count, result.unsupported_count
        )
        return result

    def _process_file(self, root: Path, path: Path,
                      collection_id: str) -> Tuple[str, Optional[Photo], bool]:
        scan_config = self.config.scan
        fingerprint_config = self.config.fingerprint
        file_name = path.relative_to(root).as_posix()

        try:
            stat = path.stat()
            info = get_image_info(str(path))
            content_hash = hash_content(path) if scan_config.compute_content_hash else None
        except OSError as e:
            logger.warning("Skipping %s: %s", path, e)
            return _MISSING, None, False

        fingerprint = None
        unsupported = False
        if scan_config.compute_fingerprint:
            try:
                fingerprint = compute_fingerprint(
                    path,
                    hash_size=fingerprint_config.hash_size,
                    resample=fingerprint_config.resample,
                )
            except UnsupportedImage as e:
                logger.warning("No fingerprint for %s: %s", path, e.reason)
                unsupported = True
            except OSError as e:
                logger.warning("Skipping %s: %s", path, e)
                return _MISSING, None, False

        photo = Photo(
            id=generate_photo_id(collection_id, file_name),
            collection_id=collection_id,
            file_name=file_name,
            source_path=str(path),
            file_size_bytes=stat.st_size,
            mime_type=mime_type_for(path),
            imported_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            width=info['width'],
            height=info['height'],
            taken_at=info['taken_at'],
            content_hash=content_hash,
            perceptual_fingerprint=fingerprint,
        )
        return _OK, photo, unsupported


def scan_photos(directory, collection_id: Optional[str] = None, config=None,
                cancel_event: Optional[threading.Event] = None) -> ScanResult:
    return PhotoScanner(config).scan(directory, collection_id, cancel_event)
