"""Incremental word-class construction by merging sparse count vectors.

Rows (words or word-classes) are sparse vectors of feature counts held
by a matrix provider. The merge engine combines them into clusters
while conserving observation mass, recording provenance, and keeping
connector references consistent.
"""

# src/wordclass/__init__.py
from wordclass.engine import MergeConfig, Merger
from wordclass.exceptions import ClusterNotEmptyError, MergeError, UnsupportedMergeError
from wordclass.majority import merge_majority, vote_threshold
from wordclass.matrix import MatrixProvider, SparseMatrix
from wordclass.models import (
    Cell,
    Column,
    Connector,
    MembershipRecord,
    MergeOutcome,
    Row,
    RowKind,
)
from wordclass.pairwise import merge_clusters, merge_into_cluster, start_cluster
from wordclass.statistics import MatrixStatistics
from wordclass.strategies import (
    ExponentialTaper,
    FixedFraction,
    LinearDiscriminative,
    MergeStrategy,
    RatioTaper,
    SimilarityScorer,
    SupportCounter,
    make_strategy,
)
from wordclass.transfer import NOISE_EPSILON, transfer

__all__ = [
    "Row",
    "RowKind",
    "Column",
    "Connector",
    "Cell",
    "MembershipRecord",
    "MergeOutcome",
    "MatrixProvider",
    "SparseMatrix",
    "MatrixStatistics",
    "MergeConfig",
    "Merger",
    "MergeStrategy",
    "SimilarityScorer",
    "SupportCounter",
    "FixedFraction",
    "LinearDiscriminative",
    "ExponentialTaper",
    "RatioTaper",
    "make_strategy",
    "start_cluster",
    "merge_into_cluster",
    "merge_clusters",
    "merge_majority",
    "vote_threshold",
    "transfer",
    "NOISE_EPSILON",
    "MergeError",
    "ClusterNotEmptyError",
    "UnsupportedMergeError",
]
