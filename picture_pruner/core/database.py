# core/database.py

import logging
import sqlite3
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from picture_pruner.core.exceptions import InvalidInput
from picture_pruner.core.models import (
    GROUP_KINDS, PHOTO_STATUSES, Group, GroupMember, Photo,
    StoredPhotoRecord, SyncDiff, SyncResult, utc_now
)

logger = logging.getLogger(__name__)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class PhotoDatabase:
    """
    SQLite store for photo records, detected groups and review decisions

    Group regeneration for a (collection, kind) happens inside a single
    transaction, so a reader sees either the previous group set or the new
    one, never an empty gap in between.
    """

    def __init__(self, db_path: str = "data/photos.db"):
        self.db_path = db_path
        self.conn = None
        self._initialize_database()

    def _initialize_database(self):
        """Create database schema"""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS photos (
                    id TEXT PRIMARY KEY,
                    collection_id TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    source_path TEXT NOT NULL,
                    file_size_bytes INTEGER NOT NULL,
                    width INTEGER,
                    height INTEGER,
                    mime_type TEXT NOT NULL,
                    taken_at TEXT,
                    imported_at TEXT NOT NULL,
                    content_hash TEXT,
                    perceptual_fingerprint TEXT,
                    file_exists BOOLEAN NOT NULL DEFAULT 1,
                    status TEXT NOT NULL DEFAULT 'unreviewed',
                    UNIQUE(collection_id, file_name)
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS photo_groups (
                    id TEXT PRIMARY KEY,
                    collection_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    policy TEXT,
                    confidence REAL NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS group_items (
                    group_id TEXT NOT NULL,
                    photo_id TEXT NOT NULL,
                    rank INTEGER NOT NULL,
                    score REAL NOT NULL,
                    PRIMARY KEY (group_id, photo_id),
                    FOREIGN KEY (group_id) REFERENCES photo_groups(id) ON DELETE CASCADE,
                    FOREIGN KEY (photo_id) REFERENCES photos(id) ON DELETE CASCADE
                )
            """)

            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    id TEXT PRIMARY KEY,
                    name TEXT UNIQUE,
                    root_path TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            # Indexing for faster queries
            self.conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_photos_collection ON photos(collection_id)
            """)
            self.conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_photos_hash ON photos(collection_id, content_hash)
            """)
            self.conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_groups_collection ON photo_groups(collection_id, kind)
            """)

    # Collections

    def upsert_collection(self, collection_id: str, root_path: str,
                          name: Optional[str] = None):
        """Record the folder a collection was last synced from"""
        with self.conn:
            self.conn.execute("""
                INSERT INTO collections (id, name, root_path, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    root_path = excluded.root_path,
                    name = COALESCE(excluded.name, collections.name),
                    updated_at = excluded.updated_at
            """, (collection_id, name, root_path, _to_iso(utc_now())))

    def find_collection_by_root(self, root_path: str) -> Optional[str]:
        row = self.conn.execute(
            "SELECT id FROM collections WHERE root_path = ? ORDER BY updated_at DESC",
            (root_path,)
        ).fetchone()
        return row['id'] if row else None

    # Photos

    def get_sync_records(self, collection_id: str) -> List[StoredPhotoRecord]:
        rows = self.conn.execute("""
            SELECT id, file_name, file_exists, source_path FROM photos
            WHERE collection_id = ?
        """, (collection_id,)).fetchall()

        return [
            StoredPhotoRecord(id=row['id'], file_name=row['file_name'],
                              file_exists=bool(row['file_exists']),
                              source_path=row['source_path'])
            for row in rows
        ]

    def apply_sync_diff(self, collection_id: str, diff: SyncDiff) -> SyncResult:
        """Insert new photos, flip file_exists flags and refresh moved paths in one transaction"""
        with self.conn:
            existing = self.conn.execute(
                "SELECT COUNT(*) FROM photos WHERE collection_id = ?",
                (collection_id,)
            ).fetchone()[0]

            self.conn.executemany("""
                INSERT INTO photos
                (id, collection_id, file_name, source_path, file_size_bytes,
                 width, height, mime_type, taken_at, imported_at,
                 content_hash, perceptual_fingerprint, file_exists, status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
            """, [
                (
                    p.id, collection_id, p.file_name, p.source_path,
                    p.file_size_bytes, p.width, p.height, p.mime_type,
                    _to_iso(p.taken_at), _to_iso(p.imported_at),
                    p.content_hash, p.perceptual_fingerprint, p.status
                )
                for p in diff.to_insert
            ])

            self.conn.executemany(
                "UPDATE photos SET file_exists = 0 WHERE id = ?",
                [(photo_id,) for photo_id in diff.to_remove]
            )
            self.conn.executemany(
                "UPDATE photos SET file_exists = 1 WHERE id = ?",
                [(photo_id,) for photo_id in diff.to_restore]
            )
            self.conn.executemany(
                "UPDATE photos SET source_path = ? WHERE id = ?",
                [(source_path, photo_id) for photo_id, source_path in diff.to_relocate]
            )

        result = SyncResult(
            added=len(diff.to_insert),
            removed=len(diff.to_remove),
            restored=len(diff.to_restore),
            total=existing + len(diff.to_insert),
            relocated=len(diff.to_relocate),
        )
        logger.info(
            "Synced collection %s: +%d -%d restored %d relocated %d (total %d)",
            collection_id, result.added, result.removed, result.restored,
            result.relocated, result.total
        )
        return result

    def get_photos(self, collection_id: str, existing_only: bool = True) -> List[Photo]:
        query = "SELECT * FROM photos WHERE collection_id = ?"
        if existing_only:
            query += " AND file_exists = 1"
        query += " ORDER BY file_name"

        rows = self.conn.execute(query, (collection_id,)).fetchall()
        return [self._row_to_photo(row) for row in rows]

    def get_photo(self, photo_id: str) -> Optional[Photo]:
        row = self.conn.execute(
            "SELECT * FROM photos WHERE id = ?", (photo_id,)
        ).fetchone()
        return self._row_to_photo(row) if row else None

    def set_content_hash(self, photo_id: str, content_hash: str) -> bool:
        """Store a content hash once; an existing value is never overwritten"""
        with self.conn:
            cursor = self.conn.execute("""
                UPDATE photos SET content_hash = ?
                WHERE id = ? AND content_hash IS NULL
            """, (content_hash, photo_id))
        return cursor.rowcount == 1

    def set_status(self, photo_id: str, status: str):
        self.apply_decisions({photo_id: status})

    def apply_decisions(self, decisions: Dict[str, str]) -> int:
        for status in decisions.values():
            if status not in PHOTO_STATUSES:
                raise InvalidInput(f"Unknown status {status!r}")

        with self.conn:
            self.conn.executemany(
                "UPDATE photos SET status = ? WHERE id = ?",
                [(status, photo_id) for photo_id, status in decisions.items()]
            )
        return len(decisions)

    @staticmethod
    def _row_to_photo(row: sqlite3.Row) -> Photo:
        return Photo(
            id=row['id'],
            collection_id=row['collection_id'],
            file_name=row['file_name'],
            source_path=row['source_path'],
            file_size_bytes=row['file_size_bytes'],
            mime_type=row['mime_type'],
            imported_at=_from_iso(row['imported_at']),
            width=row['width'],
            height=row['height'],
            taken_at=_from_iso(row['taken_at']),
            content_hash=row['content_hash'],
            perceptual_fingerprint=row['perceptual_fingerprint'],
            file_exists=bool(row['file_exists']),
            status=row['status'],
        )

    # Groups

    def replace_groups(self, collection_id: str, kind: str, groups: Sequence[Group]):
        """Delete every group of `kind` for the collection and insert `groups`"""
        if kind not in GROUP_KINDS:
            raise InvalidInput(f"Unknown group kind {kind!r}")
        for group in groups:
            if group.kind != kind:
                raise InvalidInput(f"Group {group.id} is {group.kind!r}, not {kind!r}")

        with self.conn:
            self.conn.execute(
                "DELETE FROM photo_groups WHERE collection_id = ? AND kind = ?",
                (collection_id, kind)
            )
            self.conn.executemany("""
                INSERT INTO photo_groups (id, collection_id, kind, policy, confidence, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, [
                (g.id, collection_id, g.kind, g.policy, g.confidence, _to_iso(g.created_at))
                for g in groups
            ])
            self.conn.executemany("""
                INSERT INTO group_items (group_id, photo_id, rank, score)
                VALUES (?, ?, ?, ?)
            """, [
                (g.id, m.photo_id, m.rank, m.score)
                for g in groups for m in g.members
            ])

        logger.info("Stored %d %s groups for collection %s", len(groups), kind, collection_id)

    def list_groups(self, collection_id: str, kind: Optional[str] = None) -> List[Group]:
        query = """
            SELECT g.id, g.kind, g.policy, g.confidence, g.created_at,
                   i.photo_id, i.rank, i.score
            FROM photo_groups g
            JOIN group_items i ON i.group_id = g.id
            WHERE g.collection_id = ?
        """
        params = [collection_id]
        if kind is not None:
            query += " AND g.kind = ?"
            params.append(kind)
        query += " ORDER BY g.kind, g.created_at, g.rowid, i.rank"

        groups: Dict[str, Group] = {}
        for row in self.conn.execute(query, params):
            group = groups.get(row['id'])
            if group is None:
                group = Group(
                    id=row['id'],
                    kind=row['kind'],
                    confidence=row['confidence'],
                    members=[],
                    collection_id=collection_id,
                    policy=row['policy'],
                    created_at=_from_iso(row['created_at']),
                )
                groups[row['id']] = group
            group.members.append(
                GroupMember(photo_id=row['photo_id'], rank=row['rank'], score=row['score'])
            )

        return list(groups.values())

    def get_group(self, collection_id: str, group_id: str) -> Optional[Group]:
        for group in self.list_groups(collection_id):
            if group.id == group_id:
                return group
        return None

    def get_progress(self, collection_id: str) -> dict:
        status_counts = Counter({status: 0 for status in PHOTO_STATUSES})
        for row in self.conn.execute("""
            SELECT status, COUNT(*) AS n FROM photos
            WHERE collection_id = ? AND file_exists = 1
            GROUP BY status
        """, (collection_id,)):
            status_counts[row['status']] = row['n']

        group_counts = Counter({kind: 0 for kind in GROUP_KINDS})
        for row in self.conn.execute("""
            SELECT kind, COUNT(*) AS n FROM photo_groups
            WHERE collection_id = ? GROUP BY kind
        """, (collection_id,)):
            group_counts[row['kind']] = row['n']

        return {
            'total_photos': sum(status_counts.values()),
            **{f'{status}_count': count for status, count in status_counts.items()},
            'exact_group_count': group_counts['exact'],
            'similar_group_count': group_counts['similar'],
        }

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
