# core/similarity_policies.py

"""
Pluggable pair-judging strategies for similar-photo grouping.

A policy decides which photos take part, in what order the pairwise scan
visits them, when the inner scan may stop early, and whether a pair is
similar enough to be unioned. Only one policy produces the `similar` group
set of a collection at a time; picking which one is a caller decision.
"""

from itertools import combinations
from typing import List, Optional, Sequence, Tuple

from picture_pruner.core.exceptions import InvalidInput
from picture_pruner.core.models import Photo
from picture_pruner.core.perceptual_hash import bit_width, hamming_distance

DEFAULT_HASH_THRESHOLD = 10
DEFAULT_TIME_WINDOW_SECONDS = 45.0


def _taken_at_seconds(photo: Photo) -> Optional[float]:
    return photo.taken_at.timestamp() if photo.taken_at else None


def rank_key(photo: Photo) -> Tuple[bool, float, str]:
    """Earliest capture first, unknown capture times last, then by path"""
    seconds = _taken_at_seconds(photo)
    return (seconds is None, seconds if seconds is not None else 0.0,
            photo.source_path)


class SimilarityPolicy:
    """Base strategy; subclasses override evaluate_pair at minimum"""

    name = "base"

    def eligible(self, photo: Photo) -> bool:
        return True

    def order(self, photos: Sequence[Photo]) -> List[Photo]:
        return list(photos)

    def should_stop(self, left: Photo, right: Photo) -> bool:
        """True when no photo after `right` can pair with `left`"""
        return False

    def evaluate_pair(self, left: Photo, right: Photo) -> Optional[float]:
        """Edge score in [0, 1] when the pair should be unioned, else None"""
        raise NotImplementedError

    def component_confidence(self,
                             members: Sequence[Photo],
                             edge_scores: Sequence[float]) -> float:
        if not edge_scores:
            return 0.0
        return sum(edge_scores) / len(edge_scores)

    def member_scores(self,
                      members: Sequence[Photo],
                      incident_scores: Sequence[Sequence[float]]) -> List[float]:
        """Per member, the mean of the accepted edges touching it"""
        return [sum(scores) / len(scores) if scores else 0.0
                for scores in incident_scores]


class PerceptualPolicy(SimilarityPolicy):
    """
    Union photos whose difference hashes are within `threshold` bits

    Confidence of a component is 1 minus the mean Hamming distance over
    every member pair, divided by the fingerprint width.
    """

    name = "perceptual"

    def __init__(self, threshold: int = DEFAULT_HASH_THRESHOLD):
        if threshold < 0:
            raise InvalidInput("threshold must be non-negative")
        self.threshold = int(threshold)

    def eligible(self, photo: Photo) -> bool:
        return bool(photo.perceptual_fingerprint)

    def evaluate_pair(self, left: Photo, right: Photo) -> Optional[float]:
        distance = hamming_distance(left.perceptual_fingerprint,
                                    right.perceptual_fingerprint)
        if distance > self.threshold:
            return None
        return 1.0 - distance / bit_width(left.perceptual_fingerprint)

    def component_confidence(self,
                             members: Sequence[Photo],
                             edge_scores: Sequence[float]) -> float:
        pairs = list(combinations(members, 2))
        if not pairs:
            return 0.0
        width = bit_width(members[0].perceptual_fingerprint)
        total = sum(
            hamming_distance(a.perceptual_fingerprint, b.perceptual_fingerprint)
            for a, b in pairs
        )
        return 1.0 - (total / len(pairs)) / width

    def member_scores(self,
                      members: Sequence[Photo],
                      incident_scores: Sequence[Sequence[float]]) -> List[float]:
        """1 minus the member's mean distance to every other member, over the width"""
        if len(members) < 2:
            return [1.0] * len(members)
        width = bit_width(members[0].perceptual_fingerprint)
        scores = []
        for member in members:
            distances = [
                hamming_distance(member.perceptual_fingerprint, other.perceptual_fingerprint)
                for other in members if other is not member
            ]
            scores.append(1.0 - (sum(distances) / len(distances)) / width)
        return scores


class HeuristicPolicy(SimilarityPolicy):
    """
    Burst-shot heuristic over capture time, pixel dimensions and file size

    Photos are scanned in capture-time order so the inner loop stops as
    soon as the gap to the left photo exceeds the time window. Pairs with
    an unknown capture time or dimension, or with identical content
    hashes, are never unioned.
    """

    name = "heuristic"

    def __init__(self,
                 time_window_seconds: float = DEFAULT_TIME_WINDOW_SECONDS,
                 min_score: float = 0.72,
                 min_dimension_score: float = 0.9,
                 min_size_ratio: float = 0.55,
                 time_weight: float = 0.45,
                 dimension_weight: float = 0.35,
                 size_weight: float = 0.2):
        if time_window_seconds <= 0:
            raise InvalidInput("time_window_seconds must be positive")
        self.time_window_seconds = float(time_window_seconds)
        self.min_score = float(min_score)
        self.min_dimension_score = float(min_dimension_score)
        self.min_size_ratio = float(min_size_ratio)
        self.time_weight = float(time_weight)
        self.dimension_weight = float(dimension_weight)
        self.size_weight = float(size_weight)

    def order(self, photos: Sequence[Photo]) -> List[Photo]:
        return sorted(photos, key=rank_key)

    def should_stop(self, left: Photo, right: Photo) -> bool:
        left_seconds = _taken_at_seconds(left)
        right_seconds = _taken_at_seconds(right)
        # Unknown capture times sort last, so nothing further can match
        if left_seconds is None or right_seconds is None:
            return True
        return right_seconds - left_seconds > self.time_window_seconds

    def evaluate_pair(self, left: Photo, right: Photo) -> Optional[float]:
        if left.taken_at is None or right.taken_at is None:
            return None
        if None in (left.width, left.height, right.width, right.height):
            return None
        if left.content_hash and left.content_hash == right.content_hash:
            return None

        time_difference = abs(
            left.taken_at.timestamp() - right.taken_at.timestamp()
        )
        if time_difference > self.time_window_seconds:
            return None

        width_ratio = _ratio(left.width, right.width)
        height_ratio = _ratio(left.height, right.height)
        dimension_score = (width_ratio + height_ratio) / 2
        size_ratio = _ratio(left.file_size_bytes, right.file_size_bytes)

        if dimension_score < self.min_dimension_score or size_ratio < self.min_size_ratio:
            return None

        time_score = 1.0 - time_difference / self.time_window_seconds
        score = (time_score * self.time_weight
                 + dimension_score * self.dimension_weight
                 + size_ratio * self.size_weight)

        return score if score >= self.min_score else None


def _ratio(a: int, b: int) -> float:
    largest = max(a, b)
    if largest <= 0:
        return 1.0 if a == b else 0.0
    return min(a, b) / largest


POLICIES = {
    PerceptualPolicy.name: PerceptualPolicy,
    HeuristicPolicy.name: HeuristicPolicy,
}


def get_policy(name: str, threshold=None, config=None) -> SimilarityPolicy:
    """
    Build a policy by name

    `threshold` overrides the configured cut-off: a bit count for the
    perceptual policy, a minimum score for the heuristic one. `config` is
    a SimilarityConfig supplying the remaining parameters.
    """
    key = name.lower()
    if key not in POLICIES:
        raise InvalidInput(
            f"Unknown similarity policy {name!r}; expected one of {sorted(POLICIES)}"
        )

    if key == PerceptualPolicy.name:
        if threshold is None:
            threshold = config.hash_threshold if config else DEFAULT_HASH_THRESHOLD
        return PerceptualPolicy(threshold=int(threshold))

    kwargs = {}
    if config is not None:
        kwargs = {
            'time_window_seconds': config.time_window_seconds,
            'min_score': config.min_score,
            'min_dimension_score': config.min_dimension_score,
            'min_size_ratio': config.min_size_ratio,
            'time_weight': config.time_weight,
            'dimension_weight': config.dimension_weight,
            'size_weight': config.size_weight,
        }
    if threshold is not None:
        kwargs['min_score'] = float(threshold)
    return HeuristicPolicy(**kwargs)
