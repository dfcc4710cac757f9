"""TransitionModel — row-normalized component transition probabilities.

Fed from the Behavior Tracker's affinity edges:

    T[s][t] = T[s][t] × (1 − α) + weight × α        (α = learning rate)

followed by renormalizing every row with a positive total so that
Σ_t T[s][t] = 1.  Only edges whose weight changed since the previous
ingest are applied, so ingesting identical input twice is a no-op.

The model owns its own AffinityGraph.  It reads AffinityEdge records and
never holds a reference to the tracker's structure.  Components the
tracker evicts are dropped with ``retain`` so both graphs share one bound.

Path and cluster queries read the matrix only:
    path probability   Π T[p_i][p_i+1]
    most likely path   BFS from start, edges below ``min_probability``
                       and already-queued nodes skipped; best of the
                       first ``max_paths`` paths reaching the end
    clusters           components reachable from a seed over edges with
                       T ≥ threshold, seeds in node order
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Sequence

from prefetch_oracle.domain.enums import DegenerateState
from prefetch_oracle.domain.errors import InputValidationError, log_degenerate
from prefetch_oracle.domain.graph import AffinityEdge, AffinityGraph, TransitionState

logger = logging.getLogger(__name__)

DEFAULT_LEARNING_RATE = 0.03


class TransitionModel:
    """Normalized directed transition graph updated by EMA."""

    def __init__(self, learning_rate: float = DEFAULT_LEARNING_RATE) -> None:
        if not 0.0 < learning_rate < 1.0:
            raise InputValidationError(
                "learning_rate", f"must be within (0, 1), got {learning_rate}"
            )
        self._learning_rate = learning_rate
        self._matrix = AffinityGraph()
        self._last_seen: dict[tuple[str, str], float] = {}

    @property
    def learning_rate(self) -> float:
        return self._learning_rate

    # ── Updates ──────────────────────────────────────────────────────────

    def ingest(self, edges: Iterable[AffinityEdge]) -> int:
        """Blend new or changed edges into the matrix, then renormalize.

        Returns the number of edges applied.
        """
        alpha = self._learning_rate
        applied = 0
        touched: set[str] = set()

        for edge in edges:
            key = (edge.source, edge.target)
            if self._last_seen.get(key) == edge.weight:
                continue
            old = self._matrix.weight(edge.source, edge.target)
            self._matrix.set_weight(edge.source, edge.target, old * (1.0 - alpha) + edge.weight * alpha)
            self._last_seen[key] = edge.weight
            touched.add(edge.source)
            applied += 1

        if applied:
            self._normalize(touched)
            logger.debug("Ingested %d edge(s) across %d source row(s)", applied, len(touched))
        return applied

    def retain(self, components: Iterable[str]) -> int:
        """Drop every component not in *components*; return how many were dropped.

        Rows that lose a target are renormalized.
        """
        keep = set(components)
        gone = {node for node in self._matrix.nodes if node not in keep}
        if not gone:
            return 0

        affected = {s for s, t, _ in self._matrix.iter_edges() if t in gone and s not in gone}
        for node in gone:
            self._matrix.remove_node(node)
        self._last_seen = {
            key: weight
            for key, weight in self._last_seen.items()
            if key[0] not in gone and key[1] not in gone
        }
        self._normalize({s for s in affected if self._matrix.out_degree(s) > 0})

        logger.debug("Dropped %d component(s) from transition model", len(gone))
        return len(gone)

    def _normalize(self, sources: set[str]) -> None:
        # Untouched rows are already normalized; renormalizing them is a no-op.
        for source in sorted(sources):
            row = self._matrix.successors(source)
            total = sum(row.values())
            if total <= 0.0:
                log_degenerate(
                    logger,
                    DegenerateState.ZERO_WEIGHT_ROW,
                    "row %s has zero total weight; left unnormalized",
                    source,
                )
                continue
            for target, weight in row.items():
                self._matrix.set_weight(source, target, weight / total)

    # ── Queries ──────────────────────────────────────────────────────────

    def transition_probability(self, source: str, target: str) -> float:
        """P(target | source); 0.0 for unseen sources (no implicit prior)."""
        return self._matrix.weight(source, target)

    def row(self, source: str) -> dict[str, float]:
        return self._matrix.successors(source)

    def row_sums(self) -> dict[str, float]:
        """Total outgoing probability of every source with a nonzero transition."""
        sums = {node: self._matrix.out_weight(node) for node in self._matrix.nodes}
        return {node: total for node, total in sums.items() if total > 0.0}

    def edges(self) -> list[AffinityEdge]:
        return self._matrix.to_edges()

    @property
    def nodes(self) -> list[str]:
        return self._matrix.nodes

    @property
    def source_count(self) -> int:
        return sum(1 for node in self._matrix.nodes if self._matrix.out_degree(node) > 0)

    # ── Paths and clusters ───────────────────────────────────────────────

    def path_probability(self, path: Sequence[str]) -> float:
        """Product of the transitions along *path*; 0.0 for fewer than two steps."""
        if len(path) < 2:
            return 0.0
        probability = 1.0
        for source, target in zip(path, path[1:]):
            probability *= self.transition_probability(source, target)
        return probability

    def most_likely_path(
        self,
        start: str,
        end: str,
        max_length: int = 5,
        min_probability: float = 0.1,
        max_paths: int = 3,
    ) -> list[str]:
        """Most probable path from *start* to *end*, or [] when none is found."""
        if not start or not end:
            return []
        if start == end:
            return [start]

        queue: deque[list[str]] = deque([[start]])
        queued = {start}
        found: list[tuple[float, list[str]]] = []

        while queue and len(found) < max_paths:
            path = queue.popleft()
            if len(path) > max_length:
                continue
            for target, probability in self._matrix.successors(path[-1]).items():
                if probability < min_probability or target in queued:
                    continue
                extended = path + [target]
                if target == end:
                    found.append((self.path_probability(extended), extended))
                else:
                    queue.append(extended)
                    queued.add(target)

        if not found:
            return []
        # max() keeps the first of equal probabilities, i.e. the shortest path
        return max(found, key=lambda item: item[0])[1]

    def clusters(self, min_size: int = 3, threshold: float = 0.3) -> list[list[str]]:
        """Groups of components linked by transitions of at least *threshold*."""
        visited: set[str] = set()
        clusters: list[list[str]] = []

        for seed in self._matrix.nodes:
            if seed in visited:
                continue
            cluster: list[str] = []
            queue = deque([seed])
            while queue:
                current = queue.popleft()
                if current in visited:
                    continue
                visited.add(current)
                cluster.append(current)
                queue.extend(
                    target
                    for target, probability in self._matrix.successors(current).items()
                    if probability >= threshold and target not in visited
                )
            if len(cluster) >= min_size:
                clusters.append(cluster)
        return clusters

    # ── State ────────────────────────────────────────────────────────────

    def export_state(self) -> TransitionState:
        return TransitionState(
            learning_rate=self._learning_rate,
            edges=tuple(self._matrix.to_edges()),
            last_seen=tuple(
                AffinityEdge(source=s, target=t, weight=w)
                for (s, t), w in self._last_seen.items()
            ),
        )

    @classmethod
    def from_state(cls, state: TransitionState) -> "TransitionModel":
        model = cls(state.learning_rate)
        model._matrix = AffinityGraph.from_edges(state.edges)
        model._last_seen = {(e.source, e.target): e.weight for e in state.last_seen}
        return model

    # ── Lifecycle ────────────────────────────────────────────────────────

    def reset(self) -> None:
        self._matrix.clear()
        self._last_seen.clear()

    def __repr__(self) -> str:
        return f"TransitionModel(alpha={self._learning_rate}, matrix={self._matrix!r})"
