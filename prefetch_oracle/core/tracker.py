"""BehaviorTracker — turns raw interaction events into a decaying relational model.

Interaction score:
    score = base_weight
          × (1 + min(duration_ms / 1000, 10) / 10 × 0.5)   if duration given
          × (1 + viewport_coverage × 0.3)                 if coverage given
          × (1 − min(recency_ms / 60000, 5) / 5)          if recency given

    The event timestamp never feeds the score, so replayed sessions with
    historical timestamps score like live ones.

Affinity update:
    After each insert the most recent *distinct* prior component within the
    last 5 records becomes the edge source:
        w(prior → current) = w × decay + score × (1 − decay),  decay = 0.7

Idle decay:
    Before each insert, when at least ``decay_interval`` has passed since
    the last decay, every edge is scaled by
        decay_factor ^ (idle / decay_horizon)      (0.95 per idle hour)

Navigation shape:
    Heuristic over out-degree statistics plus a single-pass DFS cycle
    count.  The cycle count is approximate: each node is a DFS
    root at most once, so overlapping cycles are under-counted.  It bounds
    classification cost; it is not a cycle basis.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from prefetch_oracle.domain.enums import DegenerateState, NavigationShape
from prefetch_oracle.domain.errors import InputValidationError, log_degenerate
from prefetch_oracle.domain.graph import AffinityEdge, AffinityGraph
from prefetch_oracle.domain.interaction import InteractionEvent, InteractionRecord
from prefetch_oracle.domain.patterns import (
    ComponentImportance,
    NavigationShapeReport,
    PatternSnapshot,
)
from prefetch_oracle.domain.weights import EVENT_WEIGHTS, resolve_weight
from prefetch_oracle.foundation.clock import elapsed_ms, utc_now
from prefetch_oracle.foundation.identifiers import new_id

logger = logging.getLogger(__name__)

# How far back to look for the prior component of a transition.
PRIOR_LOOKBACK = 5

MIN_DENSITY_MINUTES = 0.1


@dataclass(frozen=True)
class TrackerConfig:
    """Tunables for the Behavior Tracker."""

    retention: timedelta = timedelta(minutes=30)
    recent_window: int = 10
    primary_component_count: int = 5
    affinity_decay: float = 0.7
    max_history: int = 2000
    max_graph_nodes: int = 256

    # Idle decay of affinity edges
    decay_factor: float = 0.95
    decay_interval: timedelta = timedelta(minutes=1)
    decay_horizon: timedelta = timedelta(hours=1)

    # Navigation shape heuristic
    linear_out_degree: float = 1.5
    linear_score: float = 0.7
    branching_variance: float = 1.0
    branching_base: float = 0.6
    cyclic_min_length: int = 3
    shape_min_nodes: int = 4
    dominance_floor: float = 0.3


class BehaviorTracker:
    """Per-session interaction history and affinity graph.

    Thread-safety note:
        Not locked.  Concurrent ``record_interaction`` calls for one session
        must be serialized by the host (see SessionStore), otherwise the
        prior-component lookup and EMA order race.
    """

    def __init__(self, config: TrackerConfig | None = None) -> None:
        self._config = config or TrackerConfig()
        if not 0.0 <= self._config.affinity_decay <= 1.0:
            raise InputValidationError(
                "affinity_decay", f"must be within [0, 1], got {self._config.affinity_decay}"
            )
        if not 0.0 < self._config.decay_factor <= 1.0:
            raise InputValidationError(
                "decay_factor", f"must be within (0, 1], got {self._config.decay_factor}"
            )
        self.session_id: str = new_id()
        self.session_start: datetime = utc_now()
        self._last_decay: datetime = self.session_start
        self._history: list[InteractionRecord] = []
        self._graph = AffinityGraph()

    @property
    def config(self) -> TrackerConfig:
        return self._config

    # ── Ingestion ────────────────────────────────────────────────────────

    def record_interaction(self, event: InteractionEvent) -> InteractionRecord:
        """Score *event*, append it to history and update the affinity graph."""
        if not isinstance(event, InteractionEvent):
            raise InputValidationError("event", f"expected InteractionEvent, got {type(event).__name__}")
        if not event.component_id or not event.component_id.strip():
            raise InputValidationError("component_id", "must be a non-empty string")

        now = utc_now()
        base_weight = resolve_weight(event.kind)
        score = self.interaction_score(
            base_weight,
            duration_ms=event.duration_ms,
            viewport_coverage=event.viewport_coverage,
            recency_ms=event.recency_ms,
        )
        record = InteractionRecord.from_event(
            event,
            recorded_at=now,
            base_weight=base_weight,
            interaction_score=score,
            session_elapsed_ms=elapsed_ms(now, self.session_start),
        )

        self._history.append(record)
        self.apply_time_decay(now)
        prior = self._update_graph(record)
        self._enforce_bounds(now, keep={record.component_id, prior})

        logger.debug(
            "Recorded %s on %s (weight=%.2f, score=%.4f, prior=%s, history=%d)",
            record.kind,
            record.component_id,
            base_weight,
            score,
            prior,
            len(self._history),
        )
        return record

    @staticmethod
    def interaction_score(
        base_weight: float,
        duration_ms: float | None = None,
        viewport_coverage: float | None = None,
        recency_ms: float | None = None,
    ) -> float:
        score = base_weight
        if duration_ms is not None:
            duration_factor = min(duration_ms / 1000.0, 10.0) / 10.0
            score *= 1.0 + duration_factor * 0.5
        if viewport_coverage is not None:
            score *= 1.0 + viewport_coverage * 0.3
        if recency_ms is not None:
            score *= 1.0 - min(recency_ms / 60000.0, 5.0) / 5.0
        return max(score, 0.0)

    def _update_graph(self, record: InteractionRecord) -> str | None:
        """Apply the EMA edge update; return the prior component, if any."""
        current = record.component_id
        self._graph.add_node(current)

        recent = self.recent_interactions(PRIOR_LOOKBACK)
        if len(recent) <= 1:
            return None

        prior = next((r.component_id for r in recent if r.component_id != current), None)
        if prior is None:
            return None

        decay = self._config.affinity_decay
        old = self._graph.weight(prior, current)
        self._graph.set_weight(prior, current, old * decay + record.interaction_score * (1.0 - decay))
        return prior

    def _enforce_bounds(self, now: datetime, keep: set[str | None]) -> None:
        self.purge_expired(now)

        overflow = len(self._history) - self._config.max_history
        if overflow > 0:
            del self._history[:overflow]

        while self._graph.node_count > self._config.max_graph_nodes:
            victims = [n for n in self._graph.nodes if n not in keep]
            if not victims:
                break
            victim = min(
                victims,
                key=lambda n: self._graph.out_weight(n) + self._graph.in_weight(n),
            )
            self._graph.remove_node(victim)
            logger.debug("Evicted component %s from affinity graph", victim)

    def apply_time_decay(self, now: datetime | None = None) -> float:
        """Fade every affinity edge by the idle time since the last decay.

        Returns the factor applied, 1.0 when less than ``decay_interval``
        has passed.
        """
        cfg = self._config
        now = now or utc_now()
        idle = now - self._last_decay
        if idle < cfg.decay_interval:
            return 1.0

        factor = cfg.decay_factor ** (idle / cfg.decay_horizon)
        for source, target, weight in list(self._graph.iter_edges()):
            self._graph.set_weight(source, target, weight * factor)
        self._last_decay = now
        logger.debug("Decayed affinity edges by %.4f after %s idle", factor, idle)
        return factor

    # ── Retention ────────────────────────────────────────────────────────

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop records older than the retention window; return how many."""
        cutoff = (now or utc_now()) - self._config.retention
        before = len(self._history)
        self._history = [r for r in self._history if r.recorded_at >= cutoff]
        removed = before - len(self._history)
        if removed:
            logger.debug("Purged %d expired interaction record(s)", removed)
        return removed

    def _retained(self, now: datetime) -> list[InteractionRecord]:
        cutoff = now - self._config.retention
        return [r for r in self._history if r.recorded_at >= cutoff]

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def history(self) -> list[InteractionRecord]:
        """Read-only view of retained history, oldest first."""
        return self._retained(utc_now())

    def relationships(self) -> list[AffinityEdge]:
        """Serialized affinity edges, source insertion order."""
        return self._graph.to_edges()

    @property
    def component_ids(self) -> frozenset[str]:
        """Components currently held in the affinity graph."""
        return frozenset(self._graph.nodes)

    @property
    def graph(self) -> AffinityGraph:
        """A copy of the affinity graph; the tracker's own is never shared."""
        return self._graph.copy()

    def recent_interactions(self, count: int) -> list[InteractionRecord]:
        """The *count* newest records, most recent first."""
        if count <= 0:
            return []
        return list(reversed(self._history[-count:]))

    def interaction_density(self, now: datetime | None = None) -> float:
        """Retained records per minute of session lifetime."""
        now = now or utc_now()
        minutes = elapsed_ms(now, self.session_start) / 60000.0
        return len(self._retained(now)) / max(minutes, MIN_DENSITY_MINUTES)

    def primary_components(self, count: int | None = None) -> list[ComponentImportance]:
        """Top components by cumulative interaction score, ties by id."""
        count = self._config.primary_component_count if count is None else count
        totals: dict[str, float] = {}
        for record in self._retained(utc_now()):
            totals[record.component_id] = totals.get(record.component_id, 0.0) + record.interaction_score
        ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        return [
            ComponentImportance(component_id=cid, importance=importance)
            for cid, importance in ordered[:count]
        ]

    def get_current_patterns(self) -> PatternSnapshot:
        """Point-in-time snapshot of the session.  Mutates nothing."""
        now = utc_now()
        retained = self._retained(now)
        recent = list(reversed(retained[-self._config.recent_window:]))
        return PatternSnapshot(
            recent_interactions=tuple(recent),
            relationships=tuple(self._graph.to_edges()),
            interaction_density=self.interaction_density(now),
            primary_components=tuple(self.primary_components()),
            generated_at=now,
        )

    # ── Navigation shape ─────────────────────────────────────────────────

    def detect_navigation_shape(self) -> NavigationShapeReport:
        cfg = self._config
        nodes = self._graph.nodes
        if len(nodes) < cfg.shape_min_nodes:
            log_degenerate(
                logger,
                DegenerateState.SPARSE_GRAPH,
                "graph has %d node(s); shape defaults to mixed",
                len(nodes),
            )
            return NavigationShapeReport()

        degrees = [self._graph.out_degree(n) for n in nodes]
        mean_degree = sum(degrees) / len(degrees)
        variance = sum((d - mean_degree) ** 2 for d in degrees) / len(degrees)

        linear = cfg.linear_score if mean_degree < cfg.linear_out_degree else 0.0
        branching = 0.0
        if variance > cfg.branching_variance:
            branching = cfg.branching_base + min(variance / 10.0, 0.3)
        cycles = self.count_cycles()
        cyclic = min(cycles / 5.0, 0.9) if cycles > 0 else 0.0

        scores = [
            (NavigationShape.LINEAR, linear),
            (NavigationShape.BRANCHING, branching),
            (NavigationShape.CYCLIC, cyclic),
        ]
        # max() keeps the first of equal scores: linear, branching, cyclic
        best_shape, best_score = max(scores, key=lambda pair: pair[1])
        dominant = best_shape if best_score > cfg.dominance_floor else NavigationShape.MIXED

        return NavigationShapeReport(
            linear=linear,
            branching=branching,
            cyclic=cyclic,
            cycle_count=cycles,
            dominant=dominant,
        )

    def count_cycles(self) -> int:
        """Approximate cycle count via one DFS pass over the affinity graph.

        Known limitation: each node is expanded once, so cycles sharing
        already-visited nodes are not counted.
        """
        visited: set[str] = set()
        on_stack: set[str] = set()
        min_length = self._config.cyclic_min_length
        count = 0

        def visit(node: str, path: list[str]) -> None:
            nonlocal count
            visited.add(node)
            on_stack.add(node)
            path.append(node)
            for neighbour in self._graph.successors(node):
                if neighbour not in visited:
                    visit(neighbour, list(path))
                elif neighbour in on_stack and len(path) - path.index(neighbour) >= min_length:
                    count += 1
            on_stack.discard(node)

        for node in self._graph.nodes:
            if node not in visited:
                visit(node, [])
        return count

    # ── Derived analytics ────────────────────────────────────────────────

    def pattern_complexity(self) -> float:
        """Score in [0, 1] combining component variety, kind variety and graph density."""
        retained = self._retained(utc_now())
        unique_components = len({r.component_id for r in retained})
        unique_kinds = len({r.kind for r in retained})

        node_count = self._graph.node_count
        max_edges = node_count * (node_count - 1)
        density = self._graph.edge_count / max_edges if max_edges > 0 else 0.0

        component_variety = min(unique_components / 10.0, 1.0)
        kind_variety = min(unique_kinds / len(EVENT_WEIGHTS), 1.0)
        return component_variety * 0.4 + kind_variety * 0.3 + density * 0.3

    def feature_vector(self) -> list[float]:
        """[density, complexity, linear, branching, cyclic] for downstream models."""
        shape = self.detect_navigation_shape()
        return [
            self.interaction_density(),
            self.pattern_complexity(),
            shape.linear,
            shape.branching,
            shape.cyclic,
        ]

    def export_analysis(self) -> dict:
        """Plain-dict analysis export for hosts and collaborators."""
        now = utc_now()
        return {
            "session_id": self.session_id,
            "session_duration_seconds": elapsed_ms(now, self.session_start) / 1000.0,
            "interaction_count": len(self._retained(now)),
            "interaction_density": self.interaction_density(now),
            "pattern_complexity": self.pattern_complexity(),
            "navigation_shape": self.detect_navigation_shape().model_dump(mode="json"),
            "relationships": [e.model_dump() for e in self._graph.to_edges()],
            "primary_components": [c.model_dump() for c in self.primary_components(10)],
        }

    # ── Lifecycle ────────────────────────────────────────────────────────

    def reset(self) -> None:
        self._history = []
        self._graph.clear()
        self.session_id = new_id()
        self.session_start = utc_now()
        self._last_decay = self.session_start
        logger.info("Behavior tracker reset (session %s)", self.session_id)

    def __repr__(self) -> str:
        return (
            f"BehaviorTracker(session={self.session_id}, "
            f"history={len(self._history)}, graph={self._graph!r})"
        )
