# src/wordclass/transfer.py
from __future__ import annotations

from .matrix import MatrixProvider
from .models import Cell

NOISE_EPSILON = 1e-10
"""Counts below this magnitude are treated as exactly zero."""


def is_zero(count: float) -> bool:
    return abs(count) < NOISE_EPSILON


def transfer(
    matrix: MatrixProvider,
    acceptor: Cell,
    donor: Cell,
    frac: float,
    noise: float,
) -> float:
    """Move mass from ``donor`` to ``acceptor`` and return the amount moved.

    Only features the acceptor has never seen are tapered: if the
    acceptor is empty and the donor count exceeds ``noise``, ``frac`` of
    it moves. Otherwise the whole donor count moves. A donor left with
    less than :data:`NOISE_EPSILON` is deleted.
    """
    if not 0.0 <= frac <= 1.0:
        raise ValueError(f"Merge fraction must be in [0, 1], got {frac!r}")
    if acceptor == donor:
        raise ValueError(f"Cannot transfer cell {donor.row}/{donor.column} onto itself")

    acnt = matrix.get_count(acceptor)
    mcnt = matrix.get_count(donor)

    if is_zero(acnt) and noise < mcnt:
        moved = frac * mcnt
    else:
        moved = mcnt

    if moved < NOISE_EPSILON:
        return 0.0

    matrix.set_count(acceptor, acnt + moved)
    remaining = mcnt - moved
    if remaining < NOISE_EPSILON:
        matrix.delete_cell(donor)
    else:
        matrix.set_count(donor, remaining)
    return moved
