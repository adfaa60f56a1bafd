# src/wordclass/models.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RowKind(str, Enum):
    """Kind tag for a mergeable row."""

    BASE = "base"
    CLUSTER = "cluster"


class Row(BaseModel):
    """A word or word-class owning a sparse vector of counts."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Row identifier")
    kind: RowKind = Field(default=RowKind.BASE, description="Base item or cluster")

    @property
    def is_cluster(self) -> bool:
        return self.kind is RowKind.CLUSTER

    def __str__(self) -> str:
        return self.name


class Connector(BaseModel):
    """Reference from a feature to another row."""

    model_config = ConfigDict(frozen=True)

    row: Row = Field(description="Referenced row")
    direction: Literal["-", "+"] = Field(description="Link direction")

    def __str__(self) -> str:
        return f"{self.row.name}{self.direction}"


class Column(BaseModel):
    """A feature key shared across rows.

    Plain features only carry a ``name``. Connector features (sections)
    carry a sequence of connectors that reference other rows; those are
    the columns that need rewriting when a referenced row is merged.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Label of a plain feature")
    connectors: tuple[Connector, ...] = Field(
        default=(),
        description="Row references embedded in this feature",
    )

    @classmethod
    def feature(cls, name: str) -> Column:
        return cls(name=name)

    @classmethod
    def section(cls, *connectors: Connector) -> Column:
        return cls(connectors=tuple(connectors))

    def references(self, row: Row) -> bool:
        """True if any connector points at ``row``."""
        return any(c.row == row for c in self.connectors)

    def referenced_rows(self) -> list[Row]:
        seen: list[Row] = []
        for c in self.connectors:
            if c.row not in seen:
                seen.append(c.row)
        return seen

    def substitute(self, old: Row, new: Row) -> Column:
        """Return a copy with every connector to ``old`` redirected to ``new``."""
        return Column(
            name=self.name,
            connectors=tuple(
                Connector(row=new, direction=c.direction) if c.row == old else c
                for c in self.connectors
            ),
        )

    def __str__(self) -> str:
        if not self.connectors:
            return self.name
        linked = " ".join(str(c) for c in self.connectors)
        return f"{self.name}: {linked}" if self.name else linked


@dataclass(frozen=True)
class Cell:
    """Handle on a (row, column) pair. The count lives in the matrix."""

    row: Row
    column: Column


class MembershipRecord(BaseModel):
    """Provenance edge: how much mass a source row gave a cluster."""

    source: Row = Field(description="Contributing row")
    cluster: Row = Field(description="Receiving cluster")
    count: float = Field(ge=0.0, description="Total mass transferred")


class MergeOutcome(BaseModel):
    """Result of a single merge operation."""

    cluster: Row = Field(description="Cluster that was created or grown")
    memberships: list[MembershipRecord] = Field(
        default_factory=list,
        description="Mass moved per source during this operation",
    )
    touched: list[Row] = Field(
        default_factory=list,
        description="Rows whose cells changed and whose marginals are stale",
    )

    @property
    def moved(self) -> float:
        """Total mass moved into the cluster by the primary pass."""
        return sum(m.count for m in self.memberships)

    def contribution(self, source: Row) -> float:
        return sum(m.count for m in self.memberships if m.source == source)
