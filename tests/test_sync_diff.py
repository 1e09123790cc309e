# tests/test_sync_diff.py

from picture_pruner.core.models import StoredPhotoRecord
from picture_pruner.core.sync_diff import diff_collection


def _stored(name, exists=True, source_path=None):
    return StoredPhotoRecord(id=f"id-{name}", file_name=name, file_exists=exists,
                             source_path=source_path)


def test_new_files_are_inserted(make_photo):
    scanned = [make_photo("a.jpg"), make_photo("b.jpg")]

    diff = diff_collection(scanned, [_stored("a.jpg")])

    assert [p.file_name for p in diff.to_insert] == ["b.jpg"]
    assert diff.to_remove == []
    assert diff.to_restore == []


def test_vanished_files_are_removed(make_photo):
    diff = diff_collection([make_photo("a.jpg")], [_stored("a.jpg"), _stored("b.jpg")])

    assert diff.to_insert == []
    assert diff.to_remove == ["id-b.jpg"]


def test_returning_files_are_restored(make_photo):
    """Restored ids appear in no other list"""
    diff = diff_collection(
        [make_photo("a.jpg"), make_photo("b.jpg")],
        [_stored("a.jpg"), _stored("b.jpg", exists=False)],
    )

    assert diff.to_restore == ["id-b.jpg"]
    assert diff.to_insert == []
    assert diff.to_remove == []


def test_already_missing_files_are_not_removed_again(make_photo):
    diff = diff_collection([make_photo("a.jpg")], [_stored("a.jpg"), _stored("b.jpg", exists=False)])

    assert diff.is_empty


def test_unchanged_collection_is_idempotent(make_photo):
    scanned = [make_photo("a.jpg"), make_photo("b.jpg")]
    stored = [_stored("a.jpg"), _stored("b.jpg")]

    assert diff_collection(scanned, stored).is_empty
    assert diff_collection(scanned, stored).is_empty


def test_matches_by_file_name_not_path(make_photo):
    """Moving the collection root is not a replacement of every photo"""
    moved = make_photo("2024/a.jpg")
    moved.source_path = "/mnt/backup/2024/a.jpg"

    diff = diff_collection([moved], [_stored("2024/a.jpg")])

    assert diff.is_empty


def test_moved_root_refreshes_source_paths(make_photo):
    """Same file names under a new root keep their ids and only update paths"""
    moved = make_photo("a.jpg")
    moved.source_path = "/mnt/backup/a.jpg"
    unmoved = make_photo("b.jpg")

    diff = diff_collection(
        [moved, unmoved],
        [_stored("a.jpg", source_path="/photos/a.jpg"),
         _stored("b.jpg", source_path="/photos/b.jpg")],
    )

    assert diff.to_relocate == [("id-a.jpg", "/mnt/backup/a.jpg")]
    assert diff.to_insert == []
    assert diff.to_remove == []
    assert not diff.is_empty


def test_restored_file_at_new_path(make_photo):
    returned = make_photo("a.jpg")
    returned.source_path = "/mnt/backup/a.jpg"

    diff = diff_collection(
        [returned], [_stored("a.jpg", exists=False, source_path="/photos/a.jpg")]
    )

    assert diff.to_restore == ["id-a.jpg"]
    assert diff.to_relocate == [("id-a.jpg", "/mnt/backup/a.jpg")]


def test_empty_scan_removes_everything():
    diff = diff_collection([], [_stored("a.jpg"), _stored("b.jpg")])

    assert sorted(diff.to_remove) == ["id-a.jpg", "id-b.jpg"]


def test_first_sync_inserts_everything(make_photo):
    diff = diff_collection([make_photo("a.jpg"), make_photo("b.jpg")], [])

    assert len(diff.to_insert) == 2
