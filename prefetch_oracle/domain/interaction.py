"""Interaction models — what the user did, and what the tracker made of it.

An InteractionEvent is the boundary contract: validated once on the way
in so the tracker never has to re-check field constraints.  An
InteractionRecord is the event enriched with the tracker's derived
values.  Both are immutable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from prefetch_oracle.foundation.clock import ensure_utc, utc_now


class InteractionEvent(BaseModel):
    """A single observed user action on a component."""

    component_id: str = Field(
        ...,
        min_length=1,
        max_length=256,
        description="Stable identifier of the component interacted with",
    )
    kind: str = Field(
        default="unknown",
        min_length=1,
        max_length=64,
        description="Interaction kind, e.g. click, hover, focus, mousemove",
    )
    duration_ms: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="How long the interaction lasted, in milliseconds",
    )
    viewport_coverage: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Fraction of the viewport the component covered",
    )
    recency_ms: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Staleness of the interaction; no recency decay when absent",
    )
    timestamp: datetime = Field(default_factory=lambda: utc_now())

    model_config = {"frozen": True}

    @field_validator("component_id")
    @classmethod
    def component_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("component_id must not be blank")
        return v

    @field_validator("timestamp")
    @classmethod
    def timestamp_must_be_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class InteractionRecord(BaseModel):
    """An InteractionEvent enriched by the Behavior Tracker."""

    component_id: str
    kind: str
    duration_ms: Optional[float] = None
    viewport_coverage: Optional[float] = None
    timestamp: datetime
    recorded_at: datetime = Field(..., description="Tracker clock at ingestion")
    base_weight: float = Field(..., ge=0.0, le=1.0)
    interaction_score: float = Field(..., ge=0.0)
    session_elapsed_ms: float = Field(..., description="Milliseconds since session start")

    model_config = {"frozen": True}

    @classmethod
    def from_event(
        cls,
        event: InteractionEvent,
        *,
        recorded_at: datetime,
        base_weight: float,
        interaction_score: float,
        session_elapsed_ms: float,
    ) -> "InteractionRecord":
        return cls(
            component_id=event.component_id,
            kind=event.kind,
            duration_ms=event.duration_ms,
            viewport_coverage=event.viewport_coverage,
            timestamp=event.timestamp,
            recorded_at=recorded_at,
            base_weight=base_weight,
            interaction_score=interaction_score,
            session_elapsed_ms=session_elapsed_ms,
        )
