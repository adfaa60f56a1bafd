# src/wordclass/engine.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Literal, Sequence

from pydantic import BaseModel, Field, PrivateAttr

from .exceptions import UnsupportedMergeError
from .majority import merge_majority
from .models import MergeOutcome, Row, RowKind
from .pairwise import merge_clusters, merge_into_cluster, start_cluster
from .strategies import MergeStrategy, SupportCounter, make_strategy

logger = logging.getLogger(__name__)


class MergeConfig(BaseModel):
    """Configuration for merge operations.

    Parameters
    ----------
    strategy:
        Merge-fraction strategy. ``"fixed"`` with ``fraction=0`` is a pure
        overlap merge and the recommended setting.
    cutoff:
        Similarity that a pair must exceed to be merged.
    fraction:
        Fraction of unshared mass moved by the ``"fixed"`` strategy.
    noise:
        Counts at or below this are moved whole instead of tapered.
    merge_connectors:
        If ``True``, run the connector reshape pass after each merge.
    quorum:
        Fraction of rows that must share a feature in a majority merge.
    min_observations:
        Rows with less total support than this are discarded.
    slow_compare_seconds:
        Similarity comparisons slower than this are logged.
    """

    strategy: Literal["fixed", "linear", "exp-info", "ratio-info"] = Field(
        default="fixed", description="Merge-fraction strategy"
    )
    cutoff: float = Field(default=0.5, description="Similarity cutoff for accepting a merge")
    fraction: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Fixed fraction of unshared mass to move"
    )
    noise: float = Field(default=0.0, ge=0.0, description="Noise floor for fractional tapering")
    merge_connectors: bool = Field(
        default=False, description="Reshape connectors that reference merged rows"
    )
    quorum: float = Field(
        default=0.5, gt=0.0, le=1.0, description="Vote fraction for majority merges"
    )
    min_observations: float = Field(
        default=0.0, ge=0.0, description="Minimum support for a row to be considered"
    )
    slow_compare_seconds: float = Field(
        default=5.0, gt=0.0, description="Wall-clock threshold for reporting slow comparisons"
    )


class Merger(BaseModel):
    """High-level merge façade over a matrix provider.

    Picks the pairwise algorithm from the kinds of the two rows, then
    hands every touched row to ``store`` and calls ``finish`` so the
    caller can recompute marginals before the next similarity decision.
    """

    config: MergeConfig
    matrix: Any = Field(..., description="MatrixProvider holding the counts")
    scorer: Any = Field(..., description="SimilarityScorer used by the strategy")
    counter: Any = Field(
        default=None, description="SupportCounter for discard checks; defaults to the scorer"
    )
    store: Callable[[Row], None] | None = Field(
        default=None, description="Called with each row whose marginals went stale"
    )
    finish: Callable[[], None] | None = Field(
        default=None, description="Called once per merge after all store() calls"
    )
    progress: Callable[[str, int], None] | None = Field(
        default=None, description="Observability hook for per-column and per-phase progress"
    )

    model_config = {"arbitrary_types_allowed": True}

    _strategy: MergeStrategy | None = PrivateAttr(default=None)

    @property
    def strategy(self) -> MergeStrategy:
        if self._strategy is None:
            self._strategy = make_strategy(
                self.config.strategy,
                self.scorer,
                cutoff=self.config.cutoff,
                fraction=self.config.fraction,
            )
        return self._strategy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_similar(self, a: Row, b: Row) -> bool:
        """Similarity gate: true if ``a`` and ``b`` should be merged."""
        started = time.monotonic()
        accept = self.strategy.accept(a, b)
        elapsed = time.monotonic() - started

        if elapsed > self.config.slow_compare_seconds:
            logger.warning("Slow comparison %s / %s took %.1f s", a.name, b.name, elapsed)
        if accept:
            logger.info("Accepted merge of %s and %s", a.name, b.name)
        else:
            logger.debug("Rejected merge of %s and %s", a.name, b.name)
        return accept

    def merge(self, a: Row, b: Row) -> Row:
        """Merge two rows and return the resulting cluster.

        If nothing was moved, cleanup has already deleted the cluster and
        the returned row is no longer in the matrix.
        """
        outcome = self._dispatch(a, b)
        self._refresh(outcome)
        return outcome.cluster

    def try_merge(self, a: Row, b: Row) -> Row | None:
        """Merge ``a`` and ``b`` if they pass the similarity gate."""
        if not self.is_similar(a, b):
            return None
        return self.merge(a, b)

    def merge_group(self, rows: Sequence[Row], cluster: Row | None = None) -> Row:
        """Majority-vote merge of two or more base rows.

        A new cluster is made unless ``cluster`` is given, which resumes an
        interrupted group merge. When no feature wins enough votes the
        returned cluster has already been deleted by cleanup.
        """
        outcome = merge_majority(
            self.matrix,
            rows,
            quorum=self.config.quorum,
            noise=self.config.noise,
            merge_connectors=self.config.merge_connectors,
            progress=self.progress,
            cluster=cluster,
        )
        if self.matrix.has_row(outcome.cluster):
            logger.info("Created cluster %s from %d rows", outcome.cluster.name, len(rows))
        else:
            logger.debug("No feature of %d rows reached the vote threshold", len(rows))
        self._refresh(outcome)
        return outcome.cluster

    def discard(self, row: Row) -> bool:
        """True if the cached support of ``row`` is below the minimum.

        Cheap, but stale for rows touched since the last refresh.
        """
        return self._counter().support(row) < self.config.min_observations

    def discard_margin(self, row: Row) -> bool:
        """True if the live support of ``row`` is below the minimum."""
        return self._counter().live_support(row) < self.config.min_observations

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _counter(self) -> SupportCounter:
        counter = self.scorer if self.counter is None else self.counter
        if not isinstance(counter, SupportCounter):
            raise TypeError(
                f"{type(counter).__name__} has no support()/live_support(); pass counter="
            )
        return counter

    def _dispatch(self, a: Row, b: Row) -> MergeOutcome:
        if a == b:
            raise UnsupportedMergeError(f"Cannot merge {a.name!r} with itself")
        cfg = self.config
        frac_fn = self.strategy.fraction
        kinds = (a.kind, b.kind)

        if kinds == (RowKind.BASE, RowKind.BASE):
            cluster = self.matrix.make_cluster([a, b])
            logger.info("Creating cluster %s", cluster.name)
            return start_cluster(
                self.matrix, cluster, a, b, frac_fn, cfg.noise, cfg.merge_connectors, self.progress
            )
        if kinds == (RowKind.CLUSTER, RowKind.BASE):
            return merge_into_cluster(
                self.matrix, a, b, frac_fn, cfg.noise, cfg.merge_connectors, self.progress
            )
        if kinds == (RowKind.BASE, RowKind.CLUSTER):
            return merge_into_cluster(
                self.matrix, b, a, frac_fn, cfg.noise, cfg.merge_connectors, self.progress
            )
        return merge_clusters(self.matrix, a, b, cfg.noise, cfg.merge_connectors, self.progress)

    def _refresh(self, outcome: MergeOutcome) -> None:
        if self.store is not None:
            for row in outcome.touched:
                if self.matrix.has_row(row):
                    self.store(row)
        if self.finish is not None:
            self.finish()
