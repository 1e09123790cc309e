# core/sync_diff.py

from typing import Iterable, Sequence

from picture_pruner.core.models import Photo, StoredPhotoRecord, SyncDiff


def diff_collection(scanned: Sequence[Photo],
                    stored: Iterable[StoredPhotoRecord]) -> SyncDiff:
    """
    Reconcile a fresh scan against the records a store already holds

    Records are matched by file name rather than full path, so moving the
    collection root does not look like every photo was replaced.

    - to_insert: scanned photos the store has never seen
    - to_remove: stored ids missing from disk that are still marked existing
    - to_restore: stored ids marked missing whose file is back on disk
    - to_relocate: matched ids whose source path changed, with the new path
    """
    stored = list(stored)
    stored_names = {record.file_name for record in stored}
    scanned_by_name = {photo.file_name: photo for photo in scanned}

    diff = SyncDiff()

    for photo in scanned:
        if photo.file_name not in stored_names:
            diff.to_insert.append(photo)

    for record in stored:
        photo = scanned_by_name.get(record.file_name)
        if photo is None:
            if record.file_exists:
                diff.to_remove.append(record.id)
            continue

        if not record.file_exists:
            diff.to_restore.append(record.id)
        if record.source_path is not None and record.source_path != photo.source_path:
            diff.to_relocate.append((record.id, photo.source_path))

    return diff
