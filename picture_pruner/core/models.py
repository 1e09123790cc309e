# core/models.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

GROUP_KINDS = ("exact", "similar")
PHOTO_STATUSES = ("unreviewed", "keep", "maybe", "discard")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Photo:
    """One scanned image file"""
    id: str
    collection_id: str
    file_name: str
    source_path: str
    file_size_bytes: int
    mime_type: str
    imported_at: datetime
    width: Optional[int] = None
    height: Optional[int] = None
    taken_at: Optional[datetime] = None
    content_hash: Optional[str] = None
    perceptual_fingerprint: Optional[str] = None
    file_exists: bool = True
    status: str = "unreviewed"


@dataclass
class StoredPhotoRecord:
    """Minimal view of a photo the store already knows about"""
    id: str
    file_name: str
    file_exists: bool
    source_path: Optional[str] = None


@dataclass
class GroupMember:
    photo_id: str
    rank: int
    score: float


@dataclass
class Group:
    """A cluster of two or more photos judged duplicate or similar"""
    id: str
    kind: str
    confidence: float
    members: List[GroupMember]
    collection_id: Optional[str] = None
    policy: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def photo_ids(self) -> List[str]:
        return [m.photo_id for m in sorted(self.members, key=lambda m: m.rank)]

    def __len__(self) -> int:
        return len(self.members)


@dataclass
class SyncDiff:
    to_insert: List[Photo] = field(default_factory=list)
    to_remove: List[str] = field(default_factory=list)
    to_restore: List[str] = field(default_factory=list)
    # (id, new source path) for known files found under a different root
    to_relocate: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_remove or self.to_restore
                    or self.to_relocate)


@dataclass
class SyncResult:
    added: int
    removed: int
    restored: int
    total: int
    relocated: int = 0


@dataclass
class ScanResult:
    """Photos produced by a directory scan plus per-file failure counters"""
    photos: List[Photo]
    scanned_count: int = 0
    hashed_count: int = 0
    missing_file_count: int = 0
    unsupported_count: int = 0


@dataclass
class ExactAnalysisResult:
    groups: List[Group]
    scanned_count: int
    hashed_count: int
    missing_file_count: int
    started_at: datetime
    finished_at: datetime

    @property
    def duplicate_photo_count(self) -> int:
        return sum(len(g) for g in self.groups)


@dataclass
class SimilarAnalysisResult:
    groups: List[Group]
    policy: str
    scanned_count: int
    candidate_count: int
    compared_pairs: int
    started_at: datetime
    finished_at: datetime

    @property
    def candidate_photo_count(self) -> int:
        return sum(len(g) for g in self.groups)
