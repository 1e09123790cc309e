# components/selection_manager.py

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

from picture_pruner.core.exceptions import InvalidInput
from picture_pruner.core.models import Group, Photo

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    exported: int = 0
    skipped: int = 0
    missing: int = 0
    failed: int = 0


def pick_group_photo(group: Group,
                     keep_photo_id: Optional[str] = None,
                     reject_others: bool = True) -> Dict[str, str]:
    """
    Decisions for a "keep one" pick inside a group

    Without `keep_photo_id` the rank-0 member is kept. Other members are
    marked `discard` when `reject_others` is set and left untouched
    otherwise.
    """
    photo_ids = group.photo_ids
    if not photo_ids:
        raise InvalidInput(f"Group {group.id} has no photos")

    if keep_photo_id is None:
        keep_photo_id = photo_ids[0]
    elif keep_photo_id not in photo_ids:
        raise InvalidInput(f"Photo {keep_photo_id} is not part of group {group.id}")

    decisions = {keep_photo_id: "keep"}
    if reject_others:
        for photo_id in photo_ids:
            if photo_id != keep_photo_id:
                decisions[photo_id] = "discard"

    return decisions


class SelectionManager:
    """
    Copies the curated selection out of a collection

    Source files are never moved or deleted.
    """

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self.operation_log = []

    def export_selected(self, photos: Iterable[Photo]) -> ExportResult:
        """
        Copy every `keep` photo into the output directory

        Files already present at the destination are skipped; per-file
        failures are counted rather than raised.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        result = ExportResult()

        for photo in photos:
            if photo.status != "keep":
                continue

            source = Path(photo.source_path)
            destination = self.output_dir / photo.file_name

            if not source.is_file():
                logger.warning("Export source missing: %s", source)
                result.missing += 1
                continue

            if destination.exists():
                result.skipped += 1
                continue

            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
            except OSError as e:
                logger.warning("Error exporting %s: %s", source, e)
                result.failed += 1
                continue

            result.exported += 1
            self.operation_log.append({
                'operation': 'export',
                'photo_id': photo.id,
                'source': str(source),
                'destination': str(destination),
            })

        logger.info(
            "Export to %s: %d exported, %d skipped, %d missing, %d failed",
            self.output_dir, result.exported, result.skipped, result.missing, result.failed
        )
        return result
