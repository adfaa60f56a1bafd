# src/wordclass/statistics.py
from __future__ import annotations

import math
from typing import Literal

import numpy as np
from pydantic import BaseModel, Field, PrivateAttr

from .matrix import SparseMatrix, column_key
from .models import Column, Row


class MatrixStatistics(BaseModel):
    """Marginals and similarity scores over a :class:`SparseMatrix`.

    Row supports and column totals are cached. They go stale as soon as
    a merge moves mass and are only refreshed through :meth:`store`
    (one row) and :meth:`finish` (everything), which are the callbacks
    handed to the merge engine.
    """

    matrix: SparseMatrix = Field(..., description="Matrix the statistics are computed over")
    metric: Literal["cosine", "mi"] = Field(
        default="cosine",
        description="Score returned by similarity()",
    )

    model_config = {"arbitrary_types_allowed": True}

    _support: dict[Row, float] = PrivateAttr(default_factory=dict)
    _column_totals: dict[Column, float] | None = PrivateAttr(default=None)
    _grand_total: float = PrivateAttr(default=0.0)

    # ------------------------------------------------------------------
    # Marginals
    # ------------------------------------------------------------------

    def store(self, row: Row) -> None:
        """Recompute the cached support of ``row``."""
        if self.matrix.has_row(row):
            self._support[row] = self.live_support(row)
        else:
            self._support.pop(row, None)

    def finish(self) -> None:
        """Recompute column totals and drop supports of deleted rows."""
        totals: dict[Column, float] = {}
        for row in self.matrix.rows():
            for column, count in self.matrix.cells(row).items():
                totals[column] = totals.get(column, 0.0) + count
        self._column_totals = totals
        self._grand_total = float(sum(totals.values()))
        for row in list(self._support):
            if not self.matrix.has_row(row):
                del self._support[row]

    def support(self, row: Row) -> float:
        """Cached total count of ``row``; may be stale after a merge."""
        if row not in self._support:
            self.store(row)
        return self._support.get(row, 0.0)

    def live_support(self, row: Row) -> float:
        """Total count of ``row`` recomputed from its cells."""
        return self.matrix.total(row)

    def column_totals(self) -> dict[Column, float]:
        if self._column_totals is None:
            self.finish()
        return dict(self._column_totals or {})

    @property
    def grand_total(self) -> float:
        if self._column_totals is None:
            self.finish()
        return self._grand_total

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    def _aligned(self, a: Row, b: Row) -> tuple[list[Column], np.ndarray]:
        columns = sorted(
            set(self.matrix.cells(a)) | set(self.matrix.cells(b)),
            key=column_key,
        )
        return columns, self.matrix.to_numpy([a, b], columns)

    def cosine(self, a: Row, b: Row) -> float:
        """Cosine similarity of the two rows' live count vectors."""
        from sklearn.metrics.pairwise import cosine_similarity

        columns, vectors = self._aligned(a, b)
        if not columns or not vectors[0].any() or not vectors[1].any():
            return 0.0
        return float(cosine_similarity(vectors)[0, 1])

    def mutual_information(self, a: Row, b: Row) -> float:
        """Fractional mutual information of two rows, in bits.

        ``log2(a.b * T / ((a.s) (b.s)))`` where ``s`` holds the cached
        column totals and ``T = s.s``. Returns ``-inf`` for rows with no
        overlap.
        """
        columns, vectors = self._aligned(a, b)
        if not columns:
            return -math.inf

        totals = self.column_totals()
        s = np.asarray([totals.get(c, 0.0) for c in columns], dtype=float)
        everything = np.fromiter(totals.values(), dtype=float, count=len(totals))
        norm = float(everything @ everything)

        dot = float(vectors[0] @ vectors[1])
        a_s = float(vectors[0] @ s)
        b_s = float(vectors[1] @ s)
        if dot <= 0.0 or a_s <= 0.0 or b_s <= 0.0 or norm <= 0.0:
            return -math.inf
        return math.log2(dot * norm / (a_s * b_s))

    def self_information(self, row: Row) -> float:
        return self.mutual_information(row, row)

    def similarity(self, a: Row, b: Row) -> float:
        if self.metric == "mi":
            return self.mutual_information(a, b)
        return self.cosine(a, b)
