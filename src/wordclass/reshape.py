# src/wordclass/reshape.py
"""Connector reshaping.

When a row is merged into a cluster, columns elsewhere in the matrix
that reference the row through a connector still point at the old
name. This pass redirects them to the cluster: for every column the
primary merge moved into the cluster, the rows it links to are
inspected for columns that reference the merged row, and mass is moved
onto the cluster-qualified copy of those columns using the same
fractional rule as the primary merge.

The pass must run after the primary merge, because the cluster's cells
decide which linked columns are reshaped.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from .matrix import MatrixProvider
from .models import Cell, Column, Row
from .transfer import is_zero, transfer

logger = logging.getLogger(__name__)


def reshape_connectors(
    matrix: MatrixProvider,
    cluster: Row,
    source: Row,
    columns: Mapping[Column, float],
    noise: float,
    progress: Callable[[str, int], None] | None = None,
) -> list[Row]:
    """Redirect connectors to ``source`` so they point at ``cluster``.

    ``columns`` maps each column ``source`` gave the cluster to the
    fraction it was merged at; linked columns are moved at the same
    fraction. Returns the rows whose cells were modified.
    """
    matrix.clobber()
    duals = matrix.right_duals(source)

    pending: dict[tuple[Row, Column], float] = {}
    if duals:
        for column, frac in columns.items():
            anchor = matrix.find_pair(cluster, column)
            if anchor is None or is_zero(matrix.get_count(anchor)):
                continue
            for linked in column.referenced_rows():
                if linked in (source, cluster) or not matrix.has_row(linked):
                    continue
                for ref in matrix.right_basis(linked):
                    if ref in duals:
                        key = (linked, ref)
                        pending[key] = max(frac, pending.get(key, 0.0))

    touched: dict[Row, None] = {}
    moved_total = 0.0
    for n, ((row, ref), frac) in enumerate(pending.items(), start=1):
        target = matrix.make_pair(row, ref.substitute(source, cluster))
        moved = transfer(matrix, target, Cell(row=row, column=ref), frac, noise)
        if moved > 0.0:
            touched[row] = None
            moved_total += moved
        if progress is not None:
            progress("column", n)

    if _repair_cluster(matrix, cluster, source):
        touched[cluster] = None

    matrix.clobber()
    logger.debug(
        "Reshaped %d connector columns for %s -> %s (moved %.6g)",
        len(pending),
        source.name,
        cluster.name,
        moved_total,
    )
    if progress is not None:
        progress("reshape-done", len(pending))
    return list(touched)


def _repair_cluster(matrix: MatrixProvider, cluster: Row, source: Row) -> bool:
    """Rewrite the cluster's own columns that still name one of its members.

    Extending a cluster aligns columns by identity, so a member's
    column naming an earlier member lands on a different column than
    the cluster's reshaped one. Folding them here keeps the cluster
    consistent after every extension.
    """
    members = set(matrix.memberships(cluster)) | {source}
    matrix.clobber()
    changed = False
    for column in matrix.right_basis(cluster):
        stale = [m for m in members if column.references(m)]
        if not stale:
            continue
        fixed = column
        for member in stale:
            fixed = fixed.substitute(member, cluster)
        donor = matrix.find_pair(cluster, column)
        if donor is None:
            continue
        moved = transfer(matrix, matrix.make_pair(cluster, fixed), donor, 1.0, 0.0)
        changed = changed or moved > 0.0
    return changed
