# src/wordclass/majority.py
from __future__ import annotations

import logging
from typing import Callable, Sequence

from .cleanup import cleanup
from .exceptions import UnsupportedMergeError
from .matrix import MatrixProvider
from .models import Column, MembershipRecord, MergeOutcome, Row
from .reshape import reshape_connectors
from .transfer import is_zero, transfer

logger = logging.getLogger(__name__)


def vote_threshold(n_rows: int, quorum: float) -> int:
    """Number of rows that must share a feature for it to be merged.

    Two rows always need to agree (a plain overlap merge); larger
    groups need ``round(quorum * n_rows)`` votes.
    """
    if n_rows == 2:
        return 2
    return round(quorum * n_rows)


def merge_majority(
    matrix: MatrixProvider,
    rows: Sequence[Row],
    quorum: float,
    noise: float,
    merge_connectors: bool = False,
    progress: Callable[[str, int], None] | None = None,
    cluster: Row | None = None,
) -> MergeOutcome:
    """Form a cluster from ``rows`` by per-feature voting.

    Every feature carried by at least :func:`vote_threshold` rows is
    moved in full from each of those rows; all other features stay put.

    A new cluster is made unless ``cluster`` is given. Passing the
    cluster of an interrupted run resumes it: features the cluster
    already holds count as accepted, so the remaining voters are moved
    without being outvoted.
    """
    rows = list(dict.fromkeys(rows))
    if len(rows) < 2:
        raise UnsupportedMergeError("Majority merge needs at least two distinct rows")
    clusters = [r.name for r in rows if r.is_cluster]
    if clusters:
        raise UnsupportedMergeError(
            f"Majority merge of existing clusters is not supported: {', '.join(clusters)}"
        )
    if cluster is not None and not cluster.is_cluster:
        raise UnsupportedMergeError(f"{cluster.name!r} is not a cluster")

    threshold = vote_threshold(len(rows), quorum)
    if cluster is None:
        cluster = matrix.make_cluster(rows)
    moved = {row: 0.0 for row in rows}
    voted: dict[Row, dict[Column, float]] = {row: {} for row in rows}
    kept = 0

    for n, star in enumerate(matrix.right_stars(rows), start=1):
        voters = [c for c in star if c is not None and not is_zero(matrix.get_count(c))]
        if progress is not None:
            progress("column", n)
        if not voters:
            continue
        column = voters[0].column
        held = matrix.find_pair(cluster, column)
        resumed = held is not None and not is_zero(matrix.get_count(held))
        if len(voters) < threshold and not resumed:
            continue
        kept += 1
        acceptor = matrix.make_pair(cluster, column)
        for cell in voters:
            moved[cell.row] += transfer(matrix, acceptor, cell, 1.0, noise)
            voted[cell.row][cell.column] = 1.0

    records: list[MembershipRecord] = []
    for row in rows:
        if moved[row] > 0.0:
            matrix.set_membership(row, cluster, matrix.get_membership(row, cluster) + moved[row])
        records.append(MembershipRecord(source=row, cluster=cluster, count=moved[row]))

    if progress is not None:
        progress("merge-done", kept)
    logger.debug(
        "Majority merge of %d rows into %s: %d of %d votes needed, %d features kept",
        len(rows),
        cluster.name,
        threshold,
        len(rows),
        kept,
    )

    touched = [*rows, cluster]
    if merge_connectors:
        for row in rows:
            touched += reshape_connectors(matrix, cluster, row, voted[row], noise, progress)

    touched = list(dict.fromkeys(touched))
    deleted = cleanup(matrix, touched)
    if progress is not None:
        progress("cleanup-done", len(deleted))

    return MergeOutcome(cluster=cluster, memberships=records, touched=touched)
