# tests/conftest.py
from __future__ import annotations

import pytest

from wordclass import Column, Connector, Row, SparseMatrix


def total_mass(matrix: SparseMatrix) -> float:
    return sum(matrix.total(row) for row in matrix.rows())


def link(name: str, direction: str) -> Column:
    """Single-connector section pointing at base row ``name``."""
    return Column.section(Connector(row=Row(name=name), direction=direction))


@pytest.fixture
def pair_matrix() -> SparseMatrix:
    """Two rows sharing one feature; each has one feature of its own."""
    return SparseMatrix.from_dict(
        {
            "A": {"f1": 3.0, "f2": 5.0},
            "B": {"f1": 2.0, "f3": 4.0},
        }
    )


@pytest.fixture
def linked_matrix() -> SparseMatrix:
    """Determiners and nouns linked to each other through connectors."""
    matrix = SparseMatrix()
    matrix.add("the", link("dog", "+"), 4.0)
    matrix.add("the", link("cat", "+"), 2.0)
    matrix.add("a", link("dog", "+"), 3.0)
    matrix.add("a", link("bird", "+"), 1.0)
    matrix.add("dog", link("the", "-"), 4.0)
    matrix.add("dog", link("a", "-"), 3.0)
    matrix.add("cat", link("the", "-"), 2.0)
    matrix.add("bird", link("a", "-"), 1.0)
    return matrix
