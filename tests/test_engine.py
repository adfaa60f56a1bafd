# tests/test_engine.py
from __future__ import annotations

import itertools
import logging

import pytest
from pydantic import ValidationError

from wordclass import (
    Column,
    MatrixStatistics,
    MergeConfig,
    Merger,
    Row,
    RowKind,
    SparseMatrix,
    UnsupportedMergeError,
    transfer,
)
from wordclass import engine

A, B, C, D = (Row(name=n) for n in "ABCD")


def make_merger(matrix: SparseMatrix, callbacks: bool = True, **config) -> Merger:
    stats = MatrixStatistics(matrix=matrix)
    return Merger(
        config=MergeConfig(**config),
        matrix=matrix,
        scorer=stats,
        store=stats.store if callbacks else None,
        finish=stats.finish if callbacks else None,
    )


@pytest.fixture
def matrix():
    return SparseMatrix.from_dict(
        {
            "A": {"f1": 3.0, "f2": 5.0},
            "B": {"f1": 2.0, "f3": 4.0},
            "C": {"f1": 1.0, "f4": 6.0},
            "D": {"f4": 2.0},
        }
    )


class TestMergeConfig:
    def test_defaults_are_overlap_merge(self):
        cfg = MergeConfig()

        assert cfg.strategy == "fixed"
        assert cfg.fraction == 0.0
        assert cfg.merge_connectors is False

    @pytest.mark.parametrize(
        "kwargs",
        [{"fraction": 1.5}, {"noise": -1.0}, {"quorum": 0.0}, {"strategy": "bogus"}],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValidationError):
            MergeConfig(**kwargs)


class TestDispatch:
    """The row kinds pick the merge algorithm."""

    def test_two_base_rows_start_a_cluster(self, matrix):
        merger = make_merger(matrix, fraction=0.5)

        cluster = merger.merge(A, B)

        assert cluster.kind is RowKind.CLUSTER
        assert cluster.name == "A B"
        assert matrix.total(cluster) == pytest.approx(9.5)
        assert merger.scorer.support(cluster) == pytest.approx(9.5)

    @pytest.mark.parametrize("cluster_first", [True, False])
    def test_base_and_cluster_extend_the_cluster(self, matrix, cluster_first):
        merger = make_merger(matrix, fraction=0.5)
        cluster = merger.merge(A, B)

        pair = (cluster, C) if cluster_first else (C, cluster)
        result = merger.merge(*pair)

        assert result == cluster
        assert matrix.get_membership(C, cluster) == pytest.approx(4.0)

    def test_two_clusters_are_folded(self, matrix):
        merger = make_merger(matrix, fraction=1.0)
        k1 = merger.merge(A, B)
        k2 = matrix.make_cluster([C, D])
        merger.merge(k2, C)
        merger.merge(k2, D)

        result = merger.merge(k1, k2)

        assert result == k1
        assert not matrix.has_row(k2)
        assert set(matrix.memberships(k1)) == {A, B, C, D}

    def test_self_merge_leaves_no_cluster_behind(self, matrix):
        merger = make_merger(matrix)
        before = set(matrix.rows())

        with pytest.raises(UnsupportedMergeError):
            merger.merge(A, A)

        assert set(matrix.rows()) == before

    def test_store_and_finish_are_called(self, matrix):
        stored: list[Row] = []
        finished: list[bool] = []
        merger = Merger(
            config=MergeConfig(fraction=1.0),
            matrix=matrix,
            scorer=MatrixStatistics(matrix=matrix),
            store=stored.append,
            finish=lambda: finished.append(True),
        )

        cluster = merger.merge(A, B)

        # A and B are fully consumed and gone, only the cluster is stored
        assert stored == [cluster]
        assert finished == [True]

    def test_progress_callback_is_forwarded(self, matrix):
        events: list[tuple[str, int]] = []
        merger = make_merger(matrix, fraction=0.5)
        merger.progress = lambda phase, n: events.append((phase, n))

        merger.merge(A, B)

        assert ("column", 1) in events
        assert events[-1][0] == "cleanup-done"


class TestSimilarityGate:
    def test_rejected_pair_is_not_merged(self, matrix):
        merger = make_merger(matrix, cutoff=0.99)

        assert merger.try_merge(A, D) is None
        assert matrix.cells(A) == pytest.approx({Column.feature("f1"): 3.0, Column.feature("f2"): 5.0})

    def test_accepted_pair_is_logged_and_merged(self, matrix, caplog):
        merger = make_merger(matrix, cutoff=0.5)

        with caplog.at_level(logging.INFO, logger="wordclass.engine"):
            cluster = merger.try_merge(C, D)

        assert cluster is not None
        assert "Accepted merge of C and D" in caplog.text
        assert matrix.cells(cluster) == pytest.approx({Column.feature("f4"): 8.0})

    def test_slow_comparison_is_reported(self, matrix, caplog, monkeypatch):
        ticks = itertools.count(0.0, 10.0)
        monkeypatch.setattr(engine.time, "monotonic", lambda: next(ticks))
        merger = make_merger(matrix, cutoff=0.5, slow_compare_seconds=1.0)

        with caplog.at_level(logging.WARNING, logger="wordclass.engine"):
            merger.is_similar(C, D)

        assert "Slow comparison" in caplog.text


class TestGroupMerge:
    def test_majority_merge_through_facade(self, matrix):
        merger = make_merger(matrix, quorum=0.5)

        cluster = merger.merge_group([A, B, C, D])

        # f1 has three votes, f4 two; f2 and f3 one each
        assert matrix.cells(cluster) == pytest.approx(
            {Column.feature("f1"): 6.0, Column.feature("f4"): 8.0}
        )
        assert merger.scorer.support(cluster) == pytest.approx(14.0)

    def test_cluster_input_fails_with_named_error(self, matrix):
        merger = make_merger(matrix, fraction=0.5)
        cluster = merger.merge(A, B)

        with pytest.raises(UnsupportedMergeError):
            merger.merge_group([cluster, C, D])

    def test_group_without_winning_feature_is_not_reported_as_created(self, matrix, caplog):
        merger = make_merger(matrix, quorum=0.5)

        with caplog.at_level(logging.INFO, logger="wordclass.engine"):
            cluster = merger.merge_group([A, D])

        assert not matrix.has_row(cluster)
        assert "Created cluster" not in caplog.text

    def test_interrupted_group_resumes_into_same_cluster(self, matrix):
        merger = make_merger(matrix, quorum=0.5)
        cluster = matrix.make_cluster([A, B, C, D])
        f1 = Column.feature("f1")
        transfer(matrix, matrix.make_pair(cluster, f1), matrix.find_pair(A, f1), 1.0, 0.0)
        matrix.set_membership(A, cluster, 3.0)

        result = merger.merge_group([A, B, C, D], cluster=cluster)

        assert result == cluster
        assert [row for row in matrix.rows() if row.is_cluster] == [cluster]
        assert matrix.cells(cluster) == pytest.approx(
            {Column.feature("f1"): 6.0, Column.feature("f4"): 8.0}
        )
        assert matrix.memberships(cluster) == pytest.approx({A: 3.0, B: 2.0, C: 7.0, D: 2.0})


class TestDiscard:
    """Low-evidence rows are skipped by candidate selection."""

    def test_cached_and_live_variants_differ_after_merge(self, matrix):
        merger = make_merger(matrix, callbacks=False, fraction=0.5, min_observations=5.0)
        assert not merger.discard(A)

        merger.merge(A, B)

        # A is down to 2.5 but the cached support still says 8
        assert not merger.discard(A)
        assert merger.discard_margin(A)

    def test_store_callback_refreshes_cached_variant(self, matrix):
        merger = make_merger(matrix, fraction=0.5, min_observations=5.0)
        assert not merger.discard(A)

        merger.merge(A, B)

        assert merger.discard(A)


class FlatScorer:
    """Similarity-only scorer with no support totals."""

    def similarity(self, a: Row, b: Row) -> float:
        return 1.0

    def mutual_information(self, a: Row, b: Row) -> float:
        return 0.0

    def self_information(self, row: Row) -> float:
        return 0.0


class TestSupportCounter:
    def test_separate_counter_serves_discard(self, matrix):
        merger = Merger(
            config=MergeConfig(min_observations=5.0),
            matrix=matrix,
            scorer=FlatScorer(),
            counter=MatrixStatistics(matrix=matrix),
        )

        assert merger.discard(D)
        assert not merger.discard_margin(A)

    def test_scorer_without_support_needs_a_counter(self, matrix):
        merger = Merger(config=MergeConfig(), matrix=matrix, scorer=FlatScorer())

        with pytest.raises(TypeError, match="counter"):
            merger.discard(A)
