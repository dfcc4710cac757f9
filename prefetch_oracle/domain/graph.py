"""AffinityGraph — directed weighted "tends to be followed by" graph.

Nodes are component identifiers; an edge ``source → target`` with weight
``w ≥ 0`` says *target* tends to follow *source*.

Two independent instances exist at runtime: the Behavior Tracker's raw
EMA graph and the Transition Model's row-normalized graph.  They exchange
data only through ``AffinityEdge`` records, never by sharing the
underlying dicts.

Thread-safety note:
    Not locked.  Callers serialize access per session.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from pydantic import BaseModel, Field


class AffinityEdge(BaseModel):
    """A serialized edge, the only form in which graphs exchange data."""

    source: str
    target: str
    weight: float = Field(..., ge=0.0)

    model_config = {"frozen": True}


class AffinityGraph:
    """Adjacency-map graph with insertion-ordered nodes and edges."""

    __slots__ = ("_adjacency",)

    def __init__(self) -> None:
        self._adjacency: dict[str, dict[str, float]] = {}

    # ── Mutation ─────────────────────────────────────────────────────────

    def add_node(self, node: str) -> None:
        self._adjacency.setdefault(node, {})

    def set_weight(self, source: str, target: str, weight: float) -> None:
        """Set the edge weight, creating both endpoints if needed."""
        if weight < 0.0:
            raise ValueError(f"edge weight must be non-negative, got {weight}")
        self._adjacency.setdefault(source, {})[target] = weight
        self.add_node(target)

    def remove_node(self, node: str) -> None:
        """Drop *node* together with every edge into or out of it."""
        self._adjacency.pop(node, None)
        for row in self._adjacency.values():
            row.pop(node, None)

    def clear(self) -> None:
        self._adjacency.clear()

    # ── Queries ──────────────────────────────────────────────────────────

    def weight(self, source: str, target: str) -> float:
        """Edge weight, or 0.0 when the edge or source is unknown."""
        row = self._adjacency.get(source)
        if row is None:
            return 0.0
        return row.get(target, 0.0)

    def successors(self, source: str) -> dict[str, float]:
        """Copy of the outgoing row of *source* (empty if unknown)."""
        return dict(self._adjacency.get(source, {}))

    def out_degree(self, node: str) -> int:
        return len(self._adjacency.get(node, {}))

    def out_weight(self, node: str) -> float:
        return sum(self._adjacency.get(node, {}).values())

    def in_weight(self, node: str) -> float:
        return sum(row.get(node, 0.0) for row in self._adjacency.values())

    @property
    def nodes(self) -> list[str]:
        return list(self._adjacency)

    @property
    def node_count(self) -> int:
        return len(self._adjacency)

    @property
    def edge_count(self) -> int:
        return sum(len(row) for row in self._adjacency.values())

    def __contains__(self, node: object) -> bool:
        return node in self._adjacency

    def __len__(self) -> int:
        return len(self._adjacency)

    def iter_edges(self) -> Iterator[tuple[str, str, float]]:
        for source, row in self._adjacency.items():
            for target, weight in row.items():
                yield source, target, weight

    # ── Serialization ────────────────────────────────────────────────────

    def to_edges(self) -> list[AffinityEdge]:
        return [
            AffinityEdge(source=s, target=t, weight=w)
            for s, t, w in self.iter_edges()
        ]

    @classmethod
    def from_edges(cls, edges: Iterable[AffinityEdge]) -> "AffinityGraph":
        graph = cls()
        for edge in edges:
            graph.set_weight(edge.source, edge.target, edge.weight)
        return graph

    def copy(self) -> "AffinityGraph":
        clone = AffinityGraph()
        clone._adjacency = {s: dict(row) for s, row in self._adjacency.items()}
        return clone

    def __repr__(self) -> str:
        return f"AffinityGraph(nodes={self.node_count}, edges={self.edge_count})"


class TransitionState(BaseModel):
    """Portable Transition Model state.

    ``edges`` holds the normalized matrix; ``last_seen`` holds the raw
    tracker weight last applied per edge, so a restored model keeps
    ingest idempotent.
    """

    learning_rate: float = Field(..., gt=0.0, lt=1.0)
    edges: tuple[AffinityEdge, ...] = ()
    last_seen: tuple[AffinityEdge, ...] = ()

    model_config = {"frozen": True}
