# core/duplicate_detection.py

import logging
import threading
import uuid
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Union

from tqdm import tqdm

from picture_pruner.core.content_hash import hash_content
from picture_pruner.core.exceptions import AnalysisCancelled
from picture_pruner.core.models import (
    ExactAnalysisResult, Group, GroupMember, Photo, SimilarAnalysisResult, utc_now
)
from picture_pruner.core.similarity_policies import (
    SimilarityPolicy, get_policy, rank_key
)
from picture_pruner.core.union_find import UnionFind

logger = logging.getLogger(__name__)


def _check_cancelled(cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled("Analysis cancelled before completion")


def build_exact_groups(photos: Sequence[Photo],
                       collection_id: Optional[str] = None,
                       on_hashed: Optional[Callable[[Photo, str], None]] = None,
                       hasher: Callable[[str], str] = hash_content,
                       cancel_event: Optional[threading.Event] = None,
                       show_progress: bool = False) -> ExactAnalysisResult:
    """
    Group photos that share a content hash

    Photos without a content hash are hashed on demand; the digest is set
    on the record and handed to `on_hashed` so the caller can persist it.
    Files that cannot be read are counted in `missing_file_count` and left
    out of grouping. Members keep the order in which they were seen.

    Time Complexity: O(n) hashes
    """
    started_at = utc_now()
    hashed_count = 0
    missing_file_count = 0

    hash_to_photos: Dict[str, List[Photo]] = defaultdict(list)

    for photo in tqdm(photos, desc="Hashing", disable=not show_progress):
        _check_cancelled(cancel_event)

        content_hash = photo.content_hash
        if not content_hash:
            try:
                content_hash = hasher(photo.source_path)
            except OSError as e:
                logger.warning("Cannot hash %s: %s", photo.source_path, e)
                missing_file_count += 1
                continue

            photo.content_hash = content_hash
            hashed_count += 1
            if on_hashed is not None:
                on_hashed(photo, content_hash)

        hash_to_photos[content_hash].append(photo)

    created_at = utc_now()
    groups = []
    for bucket in hash_to_photos.values():
        if len(bucket) < 2:
            continue
        groups.append(Group(
            id=str(uuid.uuid4()),
            kind="exact",
            confidence=1.0,
            members=[
                GroupMember(photo_id=p.id, rank=rank, score=1.0)
                for rank, p in enumerate(bucket)
            ],
            collection_id=collection_id,
            created_at=created_at,
        ))

    result = ExactAnalysisResult(
        groups=groups,
        scanned_count=len(photos),
        hashed_count=hashed_count,
        missing_file_count=missing_file_count,
        started_at=started_at,
        finished_at=utc_now(),
    )
    logger.info(
        "Exact pass: %d photos, %d hashed, %d missing, %d groups",
        result.scanned_count, hashed_count, missing_file_count, len(groups)
    )
    return result


def build_similar_groups(photos: Sequence[Photo],
                         policy: Union[str, SimilarityPolicy] = "perceptual",
                         threshold=None,
                         collection_id: Optional[str] = None,
                         config=None,
                         cancel_event: Optional[threading.Event] = None,
                         show_progress: bool = False) -> SimilarAnalysisResult:
    """
    Cluster visually similar photos with the selected policy

    Every ordered pair (i < j) the policy does not prune is judged; accepted
    pairs are unioned and each connected component of two or more photos
    becomes one `similar` group. Members are ranked by capture time, with
    unknown times last and the source path as tiebreak.

    Time Complexity: O(n^2) pair evaluations in the worst case
    """
    if isinstance(policy, str):
        policy = get_policy(policy, threshold=threshold, config=config)

    started_at = utc_now()
    candidates = policy.order([p for p in photos if policy.eligible(p)])
    n = len(candidates)

    uf = UnionFind(n)
    edges = []
    compared_pairs = 0

    for i in tqdm(range(n), desc=f"Comparing ({policy.name})",
                  disable=not show_progress):
        _check_cancelled(cancel_event)
        left = candidates[i]

        for j in range(i + 1, n):
            right = candidates[j]
            if policy.should_stop(left, right):
                break

            compared_pairs += 1
            score = policy.evaluate_pair(left, right)
            if score is None:
                continue

            uf.union(i, j)
            edges.append((i, j, score))

    _check_cancelled(cancel_event)

    scores_by_root: Dict[int, List[float]] = defaultdict(list)
    incident: Dict[int, List[float]] = defaultdict(list)
    for i, j, score in edges:
        scores_by_root[uf.find(i)].append(score)
        incident[i].append(score)
        incident[j].append(score)

    created_at = utc_now()
    groups = []
    for component in uf.components(min_size=2):
        ordered = sorted(component, key=lambda index: rank_key(candidates[index]))
        members = [candidates[index] for index in ordered]
        confidence = policy.component_confidence(
            members, scores_by_root[uf.find(component[0])]
        )
        confidence = min(1.0, max(0.0, confidence))
        member_scores = policy.member_scores(members, [incident[index] for index in ordered])

        groups.append(Group(
            id=str(uuid.uuid4()),
            kind="similar",
            confidence=confidence,
            members=[
                GroupMember(photo_id=p.id, rank=rank, score=min(1.0, max(0.0, score)))
                for rank, (p, score) in enumerate(zip(members, member_scores))
            ],
            collection_id=collection_id,
            policy=policy.name,
            created_at=created_at,
        ))

    result = SimilarAnalysisResult(
        groups=groups,
        policy=policy.name,
        scanned_count=len(photos),
        candidate_count=n,
        compared_pairs=compared_pairs,
        started_at=started_at,
        finished_at=utc_now(),
    )
    logger.info(
        "Similar pass (%s): %d photos, %d candidates, %d pairs, %d groups",
        policy.name, result.scanned_count, n, compared_pairs, len(groups)
    )
    return result


class DuplicateGroupBuilder:
    """
    Runs both grouping policies with one configuration

    Results are plain values; persisting them (wholesale replacement per
    kind) is the store's job.
    """

    def __init__(self, config=None, cancel_event: Optional[threading.Event] = None):
        self.config = config
        self.cancel_event = cancel_event or threading.Event()

    @property
    def show_progress(self) -> bool:
        return bool(self.config and self.config.show_progress)

    def cancel(self):
        self.cancel_event.set()

    def exact(self, photos: Sequence[Photo],
              collection_id: Optional[str] = None,
              on_hashed: Optional[Callable[[Photo, str], None]] = None) -> ExactAnalysisResult:
        return build_exact_groups(
            photos,
            collection_id=collection_id,
            on_hashed=on_hashed,
            cancel_event=self.cancel_event,
            show_progress=self.show_progress,
        )

    def similar(self, photos: Sequence[Photo],
                collection_id: Optional[str] = None,
                policy: Optional[Union[str, SimilarityPolicy]] = None,
                threshold=None) -> SimilarAnalysisResult:
        similarity_config = self.config.similarity if self.config else None
        if policy is None:
            policy = similarity_config.policy if similarity_config else "perceptual"
        return build_similar_groups(
            photos,
            policy=policy,
            threshold=threshold,
            collection_id=collection_id,
            config=similarity_config,
            cancel_event=self.cancel_event,
            show_progress=self.show_progress,
        )
