# src/wordclass/exceptions.py
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Row


class MergeError(RuntimeError):
    """Base class for merge-engine failures."""


class ClusterNotEmptyError(MergeError):
    """A merged-away cluster still holds data and cannot be deleted."""

    def __init__(self, cluster: Row, residual: dict[str, int]):
        self.cluster = cluster
        self.residual = residual
        details = ", ".join(f"{k}={v}" for k, v in sorted(residual.items()) if v)
        super().__init__(f"Cluster {cluster.name!r} is not empty after merge ({details})")


class UnsupportedMergeError(MergeError, ValueError):
    """The requested combination of inputs is not supported by the algorithm."""
