# src/wordclass/cleanup.py
from __future__ import annotations

import logging
from typing import Iterable

from .matrix import MatrixProvider
from .models import Row
from .transfer import NOISE_EPSILON

logger = logging.getLogger(__name__)


def cleanup(matrix: MatrixProvider, rows: Iterable[Row]) -> list[Row]:
    """Drop sub-epsilon cells and empty rows; return the rows deleted.

    Caches are invalidated before and after, since the merge may have
    deleted cells out from under a cached basis and deleting a row can
    itself invalidate other indexes.
    """
    matrix.clobber()

    deleted: list[Row] = []
    for row in dict.fromkeys(rows):
        if not matrix.has_row(row):
            continue
        for column in matrix.right_basis(row):
            cell = matrix.find_pair(row, column)
            if cell is not None and matrix.get_count(cell) < NOISE_EPSILON:
                matrix.delete_cell(cell)
        matrix.clobber()
        if not matrix.right_basis(row):
            matrix.delete_row(row)
            deleted.append(row)

    matrix.clobber()
    if deleted:
        logger.debug("Deleted %d empty rows: %s", len(deleted), ", ".join(r.name for r in deleted))
    return deleted
