# src/wordclass/matrix.py
from __future__ import annotations

from typing import Callable, Protocol, Sequence, runtime_checkable

import numpy as np
from pydantic import BaseModel, Field, PrivateAttr

from .models import Cell, Column, Row, RowKind


def column_key(column: Column) -> tuple[str, tuple[str, ...]]:
    """Stable sort key for columns."""
    return (column.name, tuple(str(c) for c in column.connectors))


def join_names(rows: Sequence[Row]) -> str:
    return " ".join(r.name for r in rows)


@runtime_checkable
class MatrixProvider(Protocol):
    """Storage contract consumed by the merge algorithms.

    The merge engine never owns counts; every read and write goes
    through this handle.
    """

    @property
    def cluster_type(self) -> RowKind: ...

    def get_count(self, cell: Cell) -> float: ...

    def set_count(self, cell: Cell, count: float) -> None: ...

    def make_pair(self, row: Row, column: Column) -> Cell: ...

    def find_pair(self, row: Row, column: Column) -> Cell | None: ...

    def delete_cell(self, cell: Cell) -> None: ...

    def delete_row(self, row: Row) -> None: ...

    def has_row(self, row: Row) -> bool: ...

    def right_basis(self, row: Row) -> list[Column]: ...

    def right_duals(self, row: Row) -> set[Column]: ...

    def right_stars(self, rows: Sequence[Row]) -> list[tuple[Cell | None, ...]]: ...

    def make_cluster(self, rows: Sequence[Row]) -> Row: ...

    def clobber(self) -> None: ...

    def get_membership(self, source: Row, cluster: Row) -> float: ...

    def set_membership(self, source: Row, cluster: Row, count: float) -> None: ...

    def delete_membership(self, source: Row, cluster: Row) -> None: ...

    def memberships(self, cluster: Row) -> dict[Row, float]: ...

    def incoming_counts(self, row: Row) -> dict[str, int]: ...


class SparseMatrix(BaseModel):
    """In-memory sparse count matrix implementing :class:`MatrixProvider`.

    Row bases are cached on first use and only refreshed by
    :meth:`clobber`, so callers that delete or create cells must
    invalidate before iterating a row's columns again.
    """

    cluster_namer: Callable[[Sequence[Row]], str] = Field(
        default=join_names,
        description="Naming policy for newly synthesized clusters",
    )

    model_config = {"arbitrary_types_allowed": True}

    _cells: dict[Row, dict[Column, float]] = PrivateAttr(default_factory=dict)
    _members: dict[Row, dict[Row, float]] = PrivateAttr(default_factory=dict)
    _basis_cache: dict[Row, list[Column]] = PrivateAttr(default_factory=dict)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def add(self, row: Row | str, column: Column | str, count: float) -> Cell:
        """Add ``count`` observations to a cell, creating it if needed."""
        if isinstance(row, str):
            row = Row(name=row)
        if isinstance(column, str):
            column = Column.feature(column)
        cell = self.make_pair(row, column)
        self.set_count(cell, self.get_count(cell) + count)
        self._basis_cache.pop(row, None)
        return cell

    @classmethod
    def from_dict(cls, data: dict[str, dict[str, float]]) -> SparseMatrix:
        """Build a matrix of base rows over plain features."""
        matrix = cls()
        for name, features in data.items():
            for feature, count in features.items():
                matrix.add(name, feature, count)
        return matrix

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    @property
    def cluster_type(self) -> RowKind:
        return RowKind.CLUSTER

    def get_count(self, cell: Cell) -> float:
        return self._cells.get(cell.row, {}).get(cell.column, 0.0)

    def set_count(self, cell: Cell, count: float) -> None:
        if count < 0.0:
            raise ValueError(f"Negative count {count!r} for {cell.row}/{cell.column}")
        self._cells.setdefault(cell.row, {})[cell.column] = float(count)

    def make_pair(self, row: Row, column: Column) -> Cell:
        self._cells.setdefault(row, {}).setdefault(column, 0.0)
        return Cell(row=row, column=column)

    def find_pair(self, row: Row, column: Column) -> Cell | None:
        if column in self._cells.get(row, {}):
            return Cell(row=row, column=column)
        return None

    def delete_cell(self, cell: Cell) -> None:
        self._cells.get(cell.row, {}).pop(cell.column, None)

    def delete_row(self, row: Row) -> None:
        self._cells.pop(row, None)
        self._basis_cache.pop(row, None)

    # ------------------------------------------------------------------
    # Rows and bases
    # ------------------------------------------------------------------

    def rows(self) -> list[Row]:
        return list(self._cells)

    def has_row(self, row: Row) -> bool:
        return row in self._cells

    def cells(self, row: Row) -> dict[Column, float]:
        """Live view of a row's counts (bypasses the basis cache)."""
        return dict(self._cells.get(row, {}))

    def right_basis(self, row: Row) -> list[Column]:
        cached = self._basis_cache.get(row)
        if cached is None:
            cached = sorted(self._cells.get(row, {}), key=column_key)
            self._basis_cache[row] = cached
        return list(cached)

    def right_duals(self, row: Row) -> set[Column]:
        duals: set[Column] = set()
        for columns in self._cells.values():
            for column in columns:
                if column.references(row):
                    duals.add(column)
        return duals

    def right_stars(self, rows: Sequence[Row]) -> list[tuple[Cell | None, ...]]:
        union: set[Column] = set()
        for row in rows:
            union.update(self.right_basis(row))

        stars: list[tuple[Cell | None, ...]] = []
        for column in sorted(union, key=column_key):
            stars.append(tuple(self.find_pair(row, column) for row in rows))
        return stars

    def make_cluster(self, rows: Sequence[Row]) -> Row:
        base = self.cluster_namer(rows)
        name = base
        suffix = 2
        while Row(name=name, kind=RowKind.CLUSTER) in self._cells:
            name = f"{base}#{suffix}"
            suffix += 1
        cluster = Row(name=name, kind=RowKind.CLUSTER)
        self._cells[cluster] = {}
        return cluster

    def clobber(self) -> None:
        self._basis_cache.clear()

    def total(self, row: Row) -> float:
        return float(sum(self._cells.get(row, {}).values()))

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def get_membership(self, source: Row, cluster: Row) -> float:
        return self._members.get(cluster, {}).get(source, 0.0)

    def set_membership(self, source: Row, cluster: Row, count: float) -> None:
        if count < 0.0:
            raise ValueError(f"Negative membership {count!r} for {source} -> {cluster}")
        self._members.setdefault(cluster, {})[source] = float(count)

    def delete_membership(self, source: Row, cluster: Row) -> None:
        records = self._members.get(cluster)
        if records is None:
            return
        records.pop(source, None)
        if not records:
            del self._members[cluster]

    def memberships(self, cluster: Row) -> dict[Row, float]:
        return dict(self._members.get(cluster, {}))

    def incoming_counts(self, row: Row) -> dict[str, int]:
        connectors = sum(
            1
            for columns in self._cells.values()
            for column in columns
            if column.references(row)
        )
        return {
            "cell": len(self._cells.get(row, {})),
            "membership": len(self._members.get(row, {})),
            "connector": connectors,
        }

    # ------------------------------------------------------------------
    # Numeric helpers
    # ------------------------------------------------------------------

    def to_numpy(self, rows: Sequence[Row], columns: Sequence[Column]) -> np.ndarray:
        """Return live counts as a dense ``(len(rows), len(columns))`` array."""
        out = np.zeros((len(rows), len(columns)), dtype=float)
        for i, row in enumerate(rows):
            counts = self._cells.get(row, {})
            for j, column in enumerate(columns):
                out[i, j] = counts.get(column, 0.0)
        return out
