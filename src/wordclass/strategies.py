# src/wordclass/strategies.py
"""Merge-fraction strategies.

Each strategy pairs a go/no-go predicate with a function giving the
fraction of non-shared mass to move. A fixed fraction of zero (a pure
overlap merge) is the recommended operating point; the tapered variants
are kept for comparison runs.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .models import Row

logger = logging.getLogger(__name__)


@runtime_checkable
class SimilarityScorer(Protocol):
    """Scores supplied by the statistics collaborator."""

    def similarity(self, a: Row, b: Row) -> float: ...

    def mutual_information(self, a: Row, b: Row) -> float: ...

    def self_information(self, row: Row) -> float: ...


@runtime_checkable
class SupportCounter(Protocol):
    """Row totals used to skip rows with too little evidence."""

    def support(self, row: Row) -> float: ...

    def live_support(self, row: Row) -> float: ...


@runtime_checkable
class MergeStrategy(Protocol):
    def accept(self, a: Row, b: Row) -> bool: ...

    def fraction(self, a: Row, b: Row) -> float: ...


class _ThresholdStrategy(BaseModel):
    scorer: Any = Field(..., description="SimilarityScorer supplying the scores")
    cutoff: float = Field(description="Minimum similarity for a merge")

    model_config = {"arbitrary_types_allowed": True}

    def accept(self, a: Row, b: Row) -> bool:
        return self.scorer.similarity(a, b) > self.cutoff


class FixedFraction(_ThresholdStrategy):
    """Constant fraction; 0 keeps only shared features, 1 keeps all."""

    frac: float = Field(default=0.0, ge=0.0, le=1.0, description="Fraction of unshared mass to move")

    def fraction(self, a: Row, b: Row) -> float:
        return self.frac


class LinearDiscriminative(_ThresholdStrategy):
    """Fraction grows linearly from 0 at the cutoff to 1 at perfect similarity."""

    def fraction(self, a: Row, b: Row) -> float:
        if self.cutoff >= 1.0:
            return 0.0
        sim = self.scorer.similarity(a, b)
        return min(1.0, max(0.0, (sim - self.cutoff) / (1.0 - self.cutoff)))


class ExponentialTaper(_ThresholdStrategy):
    """Fraction shrinks exponentially with the larger self-information.

    Rows that are already coherent classes give up less of their
    unshared mass.
    """

    def fraction(self, a: Row, b: Row) -> float:
        info = max(self.scorer.self_information(a), self.scorer.self_information(b))
        return min(1.0, max(0.0, 2.0 ** (self.cutoff - info)))


class RatioTaper(_ThresholdStrategy):
    """Fraction is mutual information over the smaller self-information.

    Values outside ``[0, 1]`` are clamped and logged.
    """

    def fraction(self, a: Row, b: Row) -> float:
        mi = self.scorer.mutual_information(a, b)
        denom = min(self.scorer.self_information(a), self.scorer.self_information(b)) - self.cutoff
        if denom <= 0.0:
            frac = 1.0 if mi > self.cutoff else 0.0
        else:
            frac = (mi - self.cutoff) / denom

        if not 0.0 <= frac <= 1.0:
            logger.warning(
                "Ratio fraction %.4f for %s/%s out of range; clamping", frac, a.name, b.name
            )
            frac = min(1.0, max(0.0, frac))
        return frac


STRATEGIES: dict[str, type[_ThresholdStrategy]] = {
    "fixed": FixedFraction,
    "linear": LinearDiscriminative,
    "exp-info": ExponentialTaper,
    "ratio-info": RatioTaper,
}


def make_strategy(
    name: str,
    scorer: SimilarityScorer,
    cutoff: float,
    fraction: float = 0.0,
) -> MergeStrategy:
    """Build the strategy registered under ``name``."""
    try:
        cls = STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unsupported merge strategy: {name!r}") from None

    if cls is FixedFraction:
        return FixedFraction(scorer=scorer, cutoff=cutoff, frac=fraction)
    return cls(scorer=scorer, cutoff=cutoff)
