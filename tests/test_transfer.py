# tests/test_transfer.py
from __future__ import annotations

import pytest

from wordclass import NOISE_EPSILON, Column, Row, SparseMatrix, transfer

F = Column.feature("f")


def make_cells(acceptor_count: float, donor_count: float):
    matrix = SparseMatrix()
    donor = matrix.add("donor", F, donor_count)
    acceptor = matrix.make_pair(Row(name="acc"), F)
    if acceptor_count:
        matrix.set_count(acceptor, acceptor_count)
    return matrix, acceptor, donor


class TestTransfer:
    """Mass transfer between two cells."""

    def test_new_feature_is_tapered(self):
        matrix, acceptor, donor = make_cells(0.0, 10.0)

        moved = transfer(matrix, acceptor, donor, 0.3, 0.0)

        assert moved == pytest.approx(3.0)
        assert matrix.get_count(acceptor) == pytest.approx(3.0)
        assert matrix.get_count(donor) == pytest.approx(7.0)

    def test_seen_feature_is_taken_whole(self):
        matrix, acceptor, donor = make_cells(1.0, 10.0)

        moved = transfer(matrix, acceptor, donor, 0.3, 0.0)

        assert moved == pytest.approx(10.0)
        assert matrix.get_count(acceptor) == pytest.approx(11.0)
        # emptied donors are deleted rather than kept at zero
        assert matrix.find_pair(donor.row, F) is None

    def test_counts_under_noise_floor_move_whole(self):
        matrix, acceptor, donor = make_cells(0.0, 2.0)

        moved = transfer(matrix, acceptor, donor, 0.3, 5.0)

        assert moved == pytest.approx(2.0)
        assert matrix.find_pair(donor.row, F) is None

    def test_zero_fraction_moves_nothing(self):
        matrix, acceptor, donor = make_cells(0.0, 4.0)

        moved = transfer(matrix, acceptor, donor, 0.0, 0.0)

        assert moved == 0.0
        assert matrix.get_count(donor) == 4.0
        assert matrix.get_count(acceptor) == 0.0

    def test_sub_epsilon_amount_is_skipped(self):
        matrix, acceptor, donor = make_cells(0.0, NOISE_EPSILON / 100)

        assert transfer(matrix, acceptor, donor, 0.5, 0.0) == 0.0
        assert matrix.get_count(acceptor) == 0.0

    def test_near_zero_remainder_deletes_donor(self):
        matrix, acceptor, donor = make_cells(0.0, 1.0)

        transfer(matrix, acceptor, donor, 1.0 - NOISE_EPSILON / 10, 0.0)

        assert matrix.find_pair(donor.row, F) is None

    def test_cell_onto_itself_raises(self):
        matrix = SparseMatrix()
        cell = matrix.add("A", F, 4.0)

        with pytest.raises(ValueError):
            transfer(matrix, cell, cell, 0.5, 0.0)

        assert matrix.get_count(cell) == 4.0

    @pytest.mark.parametrize("frac", [-0.1, 1.5])
    def test_fraction_out_of_range_raises(self, frac):
        matrix, acceptor, donor = make_cells(0.0, 1.0)

        with pytest.raises(ValueError):
            transfer(matrix, acceptor, donor, frac, 0.0)
