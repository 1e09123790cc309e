# tests/test_duplicate_detection.py

import threading

import pytest

from picture_pruner.core.duplicate_detection import (
    DuplicateGroupBuilder, build_exact_groups, build_similar_groups
)
from picture_pruner.core.exceptions import AnalysisCancelled, InvalidInput
from picture_pruner.core.similarity_policies import PerceptualPolicy

ZERO = "0000000000000000"


def _bits(n):
    """64-bit fingerprint with the n lowest bits set"""
    return format((1 << n) - 1, "016x")


def _never_called(path):
    raise AssertionError(f"unexpected hash of {path}")


class TestExactGroups:

    def test_groups_shared_hashes(self, make_photo):
        """{A:h1, B:h1, C:h2} gives exactly one group [A, B]"""
        photos = [
            make_photo("a.jpg", content_hash="h1"),
            make_photo("b.jpg", content_hash="h1"),
            make_photo("c.jpg", content_hash="h2"),
        ]

        result = build_exact_groups(photos, collection_id="c1", hasher=_never_called)

        assert len(result.groups) == 1
        group = result.groups[0]
        assert group.kind == "exact"
        assert group.confidence == 1.0
        assert group.collection_id == "c1"
        assert group.photo_ids == ["id-a.jpg", "id-b.jpg"]
        assert [m.rank for m in group.members] == [0, 1]
        assert result.hashed_count == 0
        assert result.duplicate_photo_count == 2

    def test_unique_hashes_give_no_groups(self, make_photo):
        photos = [make_photo(f"{i}.jpg", content_hash=f"h{i}") for i in range(4)]

        assert build_exact_groups(photos).groups == []

    def test_hashes_on_demand(self, tmp_path, make_photo):
        """Missing hashes are computed, reported and set on the record"""
        for name, data in [("a.jpg", b"same"), ("b.jpg", b"same"), ("c.jpg", b"other")]:
            (tmp_path / name).write_bytes(data)

        photos = []
        for name in ("a.jpg", "b.jpg", "c.jpg"):
            photo = make_photo(name)
            photo.source_path = str(tmp_path / name)
            photos.append(photo)

        seen = {}
        result = build_exact_groups(
            photos, on_hashed=lambda photo, digest: seen.__setitem__(photo.id, digest)
        )

        assert result.hashed_count == 3
        assert set(seen) == {"id-a.jpg", "id-b.jpg", "id-c.jpg"}
        assert all(p.content_hash == seen[p.id] for p in photos)
        assert [g.photo_ids for g in result.groups] == [["id-a.jpg", "id-b.jpg"]]

    def test_missing_file_is_counted_and_skipped(self, tmp_path, make_photo):
        (tmp_path / "a.jpg").write_bytes(b"same")
        present = make_photo("a.jpg")
        present.source_path = str(tmp_path / "a.jpg")
        gone = make_photo("b.jpg")
        gone.source_path = str(tmp_path / "b.jpg")
        known = make_photo("c.jpg", content_hash="h-known")

        result = build_exact_groups([present, gone, known])

        assert result.missing_file_count == 1
        assert result.hashed_count == 1
        assert result.scanned_count == 3
        assert gone.content_hash is None
        assert result.groups == []

    def test_cancellation(self, make_photo):
        event = threading.Event()
        event.set()

        with pytest.raises(AnalysisCancelled):
            build_exact_groups([make_photo("a.jpg", content_hash="h")], cancel_event=event)


class TestPerceptualGroups:

    def test_threshold_is_inclusive(self, make_photo):
        """Distance equal to the threshold groups, one more bit does not"""
        at_threshold = [make_photo("a.jpg", ZERO), make_photo("b.jpg", _bits(10))]
        past_threshold = [make_photo("a.jpg", ZERO), make_photo("b.jpg", _bits(11))]

        assert len(build_similar_groups(at_threshold, threshold=10).groups) == 1
        assert build_similar_groups(past_threshold, threshold=10).groups == []

    def test_grouping_is_transitive(self, make_photo):
        """a~b and b~c form one group even though a and c are far apart"""
        photos = [
            make_photo("a.jpg", ZERO, seconds=0),
            make_photo("b.jpg", _bits(6), seconds=1),
            make_photo("c.jpg", _bits(12), seconds=2),
        ]

        result = build_similar_groups(photos, threshold=6)

        assert len(result.groups) == 1
        assert result.groups[0].photo_ids == ["id-a.jpg", "id-b.jpg", "id-c.jpg"]

    def test_photos_without_fingerprint_are_skipped(self, make_photo):
        photos = [
            make_photo("a.jpg", ZERO),
            make_photo("b.jpg", ZERO),
            make_photo("c.jpg", None),
        ]

        result = build_similar_groups(photos)

        assert result.candidate_count == 2
        assert result.scanned_count == 3
        assert result.groups[0].photo_ids == ["id-a.jpg", "id-b.jpg"]

    def test_identical_fingerprints_full_confidence(self, make_photo):
        photos = [make_photo("a.jpg", ZERO), make_photo("b.jpg", ZERO)]

        group = build_similar_groups(photos).groups[0]

        assert group.kind == "similar"
        assert group.policy == "perceptual"
        assert group.confidence == 1.0

    def test_confidence_from_mean_pair_distance(self, make_photo):
        """Mean distance over all member pairs, divided by 64 bits"""
        photos = [
            make_photo("a.jpg", ZERO),
            make_photo("b.jpg", _bits(4)),
            make_photo("c.jpg", _bits(8)),
        ]

        group = build_similar_groups(photos, threshold=4).groups[0]

        # Pair distances 4, 8 and 4
        assert group.confidence == pytest.approx(1 - (16 / 3) / 64)

    def test_member_score_is_mean_distance_to_others(self, make_photo):
        """The middle photo sits closest to the rest of its group"""
        photos = [
            make_photo("a.jpg", ZERO),
            make_photo("b.jpg", _bits(4)),
            make_photo("c.jpg", _bits(8)),
        ]

        group = build_similar_groups(photos, threshold=4).groups[0]
        scores = {m.photo_id: m.score for m in group.members}

        assert scores["id-a.jpg"] == pytest.approx(1 - 6 / 64)
        assert scores["id-b.jpg"] == pytest.approx(1 - 4 / 64)
        assert scores["id-c.jpg"] == pytest.approx(1 - 6 / 64)

    def test_members_ranked_by_capture_time(self, make_photo):
        """Earliest first, unknown times last, path breaks ties"""
        photos = [
            make_photo("undated.jpg", ZERO, seconds=None),
            make_photo("late.jpg", ZERO, seconds=30),
            make_photo("b-early.jpg", ZERO, seconds=5),
            make_photo("a-early.jpg", ZERO, seconds=5),
        ]

        group = build_similar_groups(photos).groups[0]

        assert group.photo_ids == [
            "id-a-early.jpg", "id-b-early.jpg", "id-late.jpg", "id-undated.jpg"
        ]

    def test_separate_clusters(self, make_photo):
        photos = [
            make_photo("a1.jpg", ZERO),
            make_photo("b1.jpg", "ffffffffffffffff"),
            make_photo("a2.jpg", _bits(1)),
            make_photo("b2.jpg", "fffffffffffffffe"),
            make_photo("lonely.jpg", "00000000ffffffff"),
        ]

        result = build_similar_groups(photos, threshold=2)

        assert sorted(g.photo_ids for g in result.groups) == [
            ["id-a1.jpg", "id-a2.jpg"], ["id-b1.jpg", "id-b2.jpg"]
        ]
        assert result.compared_pairs == 10

    def test_policy_instance(self, make_photo):
        photos = [make_photo("a.jpg", ZERO), make_photo("b.jpg", _bits(3))]

        assert build_similar_groups(photos, policy=PerceptualPolicy(2)).groups == []
        assert len(build_similar_groups(photos, policy=PerceptualPolicy(3)).groups) == 1

    def test_unknown_policy(self, make_photo):
        with pytest.raises(InvalidInput):
            build_similar_groups([make_photo("a.jpg", ZERO)], policy="clip")

    def test_cancellation(self, make_photo):
        event = threading.Event()
        event.set()

        with pytest.raises(AnalysisCancelled):
            build_similar_groups([make_photo("a.jpg", ZERO)], cancel_event=event)


class TestDuplicateGroupBuilder:

    def test_uses_configured_policy(self, make_photo, quiet_config):
        quiet_config.similarity.policy = "heuristic"
        photos = [
            make_photo("a.jpg", seconds=0),
            make_photo("b.jpg", seconds=2),
        ]

        result = DuplicateGroupBuilder(quiet_config).similar(photos, collection_id="c1")

        assert result.policy == "heuristic"
        assert len(result.groups) == 1
        assert result.groups[0].collection_id == "c1"

    def test_configured_threshold(self, make_photo, quiet_config):
        quiet_config.similarity.hash_threshold = 2
        photos = [make_photo("a.jpg", ZERO), make_photo("b.jpg", _bits(3))]
        builder = DuplicateGroupBuilder(quiet_config)

        assert builder.similar(photos).groups == []
        assert len(builder.similar(photos, threshold=3).groups) == 1

    def test_cancel(self, make_photo):
        builder = DuplicateGroupBuilder()
        builder.cancel()

        with pytest.raises(AnalysisCancelled):
            builder.exact([make_photo("a.jpg", content_hash="h")])

    def test_exact_and_similar_are_independent(self, make_photo, quiet_config):
        photos = [
            make_photo("a.jpg", ZERO, content_hash="h1"),
            make_photo("b.jpg", ZERO, content_hash="h1"),
        ]
        builder = DuplicateGroupBuilder(quiet_config)

        exact = builder.exact(photos)
        similar = builder.similar(photos)

        assert exact.groups[0].kind == "exact"
        assert similar.groups[0].kind == "similar"
        assert exact.groups[0].id != similar.groups[0].id
