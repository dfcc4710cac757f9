"""Request bodies accepted by the HTTP surface."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from prefetch_oracle.domain.enums import StrategyName


class PredictRequest(BaseModel):
    """Candidate components (from the host's registry) to rank."""

    candidates: list[str] = Field(
        default_factory=list,
        max_length=10_000,
        description="Loadable component identifiers supplied by the host",
    )
    strategy: Optional[StrategyName] = Field(
        default=None,
        description="Scoring strategy; the session default when omitted",
    )


class OutcomeRequest(BaseModel):
    """A component the user actually needed."""

    component_id: str = Field(..., min_length=1, max_length=256)
    was_predicted: Optional[bool] = Field(
        default=None,
        description="Inferred from the session's last PredictionSet when omitted",
    )
