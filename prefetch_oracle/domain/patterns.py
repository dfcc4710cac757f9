"""Pattern snapshots — immutable point-in-time summaries of a session.

These are pure data structures.  They are regenerated on every request,
never persisted, and dump to plain dicts for hosts that ship them across
a process boundary.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from prefetch_oracle.domain.enums import NavigationShape
from prefetch_oracle.domain.graph import AffinityEdge
from prefetch_oracle.domain.interaction import InteractionRecord


class ComponentImportance(BaseModel):
    """Cumulative interaction score of one component over retained history."""

    component_id: str
    importance: float = Field(..., ge=0.0)

    model_config = {"frozen": True}


class PatternSnapshot(BaseModel):
    """What the tracker currently knows about the session."""

    recent_interactions: tuple[InteractionRecord, ...] = Field(
        default=(),
        description="Last N records, most recent first",
    )
    relationships: tuple[AffinityEdge, ...] = Field(
        default=(),
        description="Serialized affinity edges of the tracker's graph",
    )
    interaction_density: float = Field(
        default=0.0,
        ge=0.0,
        description="Retained records per minute of session lifetime",
    )
    primary_components: tuple[ComponentImportance, ...] = Field(
        default=(),
        description="Top-K components by cumulative interaction score",
    )
    generated_at: datetime

    model_config = {"frozen": True}

    def recent_component_ids(self, count: int) -> list[str]:
        """Distinct component ids among the *count* most recent records, newest first."""
        seen: list[str] = []
        for record in self.recent_interactions[:count]:
            if record.component_id not in seen:
                seen.append(record.component_id)
        return seen

    def importance_of(self, component_id: str) -> float | None:
        for entry in self.primary_components:
            if entry.component_id == component_id:
                return entry.importance
        return None


class NavigationShapeReport(BaseModel):
    """Heuristic classification of the affinity graph's shape.

    Scores are in [0, 1].  ``dominant`` is the highest score above 0.3,
    or MIXED when none qualifies.
    """

    linear: float = Field(default=0.0, ge=0.0, le=1.0)
    branching: float = Field(default=0.0, ge=0.0, le=1.0)
    cyclic: float = Field(default=0.0, ge=0.0, le=1.0)
    cycle_count: int = Field(default=0, ge=0)
    dominant: NavigationShape = NavigationShape.MIXED

    model_config = {"frozen": True}
