# src/wordclass/pairwise.py
"""Pairwise merge algorithms.

Three operations cover every pair of row kinds:

* :func:`start_cluster` forms a new cluster from two base rows.
* :func:`merge_into_cluster` grows an existing cluster by one base row.
* :func:`merge_clusters` folds one cluster into another, unconditionally.

Shared columns are always taken whole. Columns that only one side has
are tapered by the merge fraction, subject to the noise floor applied
by :func:`~wordclass.transfer.transfer`. Each operation records
provenance, optionally reshapes connectors, and cleans up after itself.
"""

from __future__ import annotations

import logging
from typing import Callable

from .cleanup import cleanup
from .exceptions import ClusterNotEmptyError, UnsupportedMergeError
from .matrix import MatrixProvider
from .models import Cell, Column, MembershipRecord, MergeOutcome, Row
from .reshape import reshape_connectors
from .transfer import is_zero, transfer

logger = logging.getLogger(__name__)

FractionFn = Callable[[Row, Row], float]
ProgressCallback = Callable[[str, int], None]


def _live(matrix: MatrixProvider, cell: Cell | None) -> Cell | None:
    if cell is None or is_zero(matrix.get_count(cell)):
        return None
    return cell


def _record(matrix: MatrixProvider, source: Row, cluster: Row, moved: float) -> MembershipRecord:
    """Accumulate ``moved`` onto the source's membership in ``cluster``."""
    if moved > 0.0:
        matrix.set_membership(source, cluster, matrix.get_membership(source, cluster) + moved)
    return MembershipRecord(source=source, cluster=cluster, count=moved)


def _finish(
    matrix: MatrixProvider,
    rows: list[Row],
    progress: ProgressCallback | None,
) -> list[Row]:
    touched = list(dict.fromkeys(rows))
    deleted = cleanup(matrix, touched)
    if progress is not None:
        progress("cleanup-done", len(deleted))
    return touched


def start_cluster(
    matrix: MatrixProvider,
    cluster: Row,
    row_a: Row,
    row_b: Row,
    frac_fn: FractionFn,
    noise: float,
    merge_connectors: bool = False,
    progress: ProgressCallback | None = None,
) -> MergeOutcome:
    """Start ``cluster`` from two base rows.

    Re-running against the same ``cluster`` after an interruption only
    moves what is still left on the donors.
    """
    if row_a == row_b:
        raise UnsupportedMergeError(f"Cannot merge {row_a.name!r} with itself")
    if row_a.is_cluster or row_b.is_cluster:
        raise UnsupportedMergeError("start_cluster expects two base rows")
    if not cluster.is_cluster or cluster in (row_a, row_b):
        raise UnsupportedMergeError(
            f"{cluster.name!r} cannot accept the merge of {row_a.name!r} and {row_b.name!r}"
        )

    frac = frac_fn(row_a, row_b)
    moved_a = 0.0
    moved_b = 0.0
    columns_a: dict[Column, float] = {}
    columns_b: dict[Column, float] = {}

    for n, (cell_a, cell_b) in enumerate(matrix.right_stars([row_a, row_b]), start=1):
        cell_a = _live(matrix, cell_a)
        cell_b = _live(matrix, cell_b)
        if cell_a is None and cell_b is None:
            continue
        column = (cell_a or cell_b).column
        acceptor = matrix.make_pair(cluster, column)

        if cell_a is not None and cell_b is not None:
            moved_a += transfer(matrix, acceptor, cell_a, 1.0, noise)
            moved_b += transfer(matrix, acceptor, cell_b, 1.0, noise)
            columns_a[column] = columns_b[column] = 1.0
        elif cell_a is not None:
            moved_a += transfer(matrix, acceptor, cell_a, frac, noise)
            columns_a[column] = frac
        else:
            moved_b += transfer(matrix, acceptor, cell_b, frac, noise)
            columns_b[column] = frac

        if progress is not None:
            progress("column", n)

    records = [
        _record(matrix, row_a, cluster, moved_a),
        _record(matrix, row_b, cluster, moved_b),
    ]
    if progress is not None:
        progress("merge-done", len(columns_a) + len(columns_b))
    logger.debug(
        "Started %s from %s (%.6g) and %s (%.6g) at fraction %.4f",
        cluster.name,
        row_a.name,
        moved_a,
        row_b.name,
        moved_b,
        frac,
    )

    touched = [row_a, row_b, cluster]
    if merge_connectors:
        touched += reshape_connectors(matrix, cluster, row_a, columns_a, noise, progress)
        touched += reshape_connectors(matrix, cluster, row_b, columns_b, noise, progress)

    return MergeOutcome(
        cluster=cluster,
        memberships=records,
        touched=_finish(matrix, touched, progress),
    )


def merge_into_cluster(
    matrix: MatrixProvider,
    cluster: Row,
    row: Row,
    frac_fn: FractionFn,
    noise: float,
    merge_connectors: bool = False,
    progress: ProgressCallback | None = None,
) -> MergeOutcome:
    """Extend ``cluster`` with one more base row.

    Columns are aligned by identity only. With connector merging on, a
    column of ``row`` naming an earlier member does not match the
    cluster's reshaped column; the reshape pass that follows repairs
    this, so it has to run after every extension.
    """
    if not cluster.is_cluster:
        raise UnsupportedMergeError(f"{cluster.name!r} is not a cluster")
    if row.is_cluster:
        raise UnsupportedMergeError(
            f"{row.name!r} is a cluster; use merge_clusters to combine clusters"
        )

    frac = frac_fn(cluster, row)
    moved = 0.0
    columns: dict[Column, float] = {}

    for n, column in enumerate(matrix.right_basis(row), start=1):
        donor = _live(matrix, matrix.find_pair(row, column))
        if donor is None:
            continue
        acceptor = _live(matrix, matrix.find_pair(cluster, column))
        if acceptor is not None:
            moved += transfer(matrix, acceptor, donor, 1.0, noise)
            columns[column] = 1.0
        else:
            acceptor = matrix.make_pair(cluster, column)
            moved += transfer(matrix, acceptor, donor, frac, noise)
            columns[column] = frac
        if progress is not None:
            progress("column", n)

    records = [_record(matrix, row, cluster, moved)]
    if progress is not None:
        progress("merge-done", len(columns))
    logger.debug(
        "Merged %s into %s (%.6g) at fraction %.4f", row.name, cluster.name, moved, frac
    )

    touched = [row, cluster]
    if merge_connectors:
        touched += reshape_connectors(matrix, cluster, row, columns, noise, progress)

    return MergeOutcome(
        cluster=cluster,
        memberships=records,
        touched=_finish(matrix, touched, progress),
    )


def merge_clusters(
    matrix: MatrixProvider,
    cluster_a: Row,
    cluster_b: Row,
    noise: float,
    merge_connectors: bool = False,
    progress: ProgressCallback | None = None,
) -> MergeOutcome:
    """Fold ``cluster_b`` entirely into ``cluster_a`` and delete it.

    Raises :class:`ClusterNotEmptyError` if ``cluster_b`` still holds
    cells or membership records once everything has been moved.
    """
    if not (cluster_a.is_cluster and cluster_b.is_cluster):
        raise UnsupportedMergeError("merge_clusters expects two clusters")
    if cluster_a == cluster_b:
        raise UnsupportedMergeError(f"Cannot merge {cluster_a.name!r} with itself")

    moved = 0.0
    columns: dict[Column, float] = {}
    for n, column in enumerate(matrix.right_basis(cluster_b), start=1):
        donor = matrix.find_pair(cluster_b, column)
        if donor is None:
            continue
        columns[column] = 1.0
        moved += transfer(matrix, matrix.make_pair(cluster_a, column), donor, 1.0, noise)
        if progress is not None:
            progress("column", n)

    records: list[MembershipRecord] = []
    for source, count in matrix.memberships(cluster_b).items():
        matrix.set_membership(source, cluster_a, matrix.get_membership(source, cluster_a) + count)
        matrix.delete_membership(source, cluster_b)
        records.append(MembershipRecord(source=source, cluster=cluster_a, count=count))

    if progress is not None:
        progress("merge-done", len(columns))
    logger.debug("Folded %s into %s (%.6g)", cluster_b.name, cluster_a.name, moved)

    touched = [cluster_a, cluster_b]
    if merge_connectors:
        touched += reshape_connectors(matrix, cluster_a, cluster_b, columns, noise, progress)

    touched = _finish(matrix, touched, progress)

    residual = matrix.incoming_counts(cluster_b)
    if residual.get("cell", 0) or residual.get("membership", 0):
        raise ClusterNotEmptyError(cluster_b, residual)
    matrix.delete_row(cluster_b)
    logger.info("Deleted cluster %s after merging it into %s", cluster_b.name, cluster_a.name)

    return MergeOutcome(cluster=cluster_a, memberships=records, touched=touched)
