"""Prediction domain models.

A Prediction pairs a probability (how likely the component is needed
next) with a confidence (how much corroborating evidence produced that
probability).  The two are independent.

Thresholds partition probability space into priority tiers and are only
ever mutated by the Adaptive Threshold Controller, which hands out frozen
ThresholdState copies to everybody else.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator

from pydantic import BaseModel, Field, model_validator

from prefetch_oracle.domain.enums import ControllerPhase, PriorityTier, StrategyName
from prefetch_oracle.foundation.clock import utc_now
from prefetch_oracle.foundation.identifiers import new_id


class ThresholdState(BaseModel):
    """The three probability cut-points.  Invariant: high ≥ medium ≥ low."""

    high: float = Field(default=0.75, ge=0.0, le=1.0)
    medium: float = Field(default=0.40, ge=0.0, le=1.0)
    low: float = Field(default=0.20, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def ordering_must_hold(self) -> "ThresholdState":
        if not (self.high >= self.medium >= self.low):
            raise ValueError(
                f"thresholds must satisfy high >= medium >= low, "
                f"got {self.high}/{self.medium}/{self.low}"
            )
        return self

    def tier_for(self, probability: float) -> PriorityTier:
        if probability >= self.high:
            return PriorityTier.HIGH
        if probability >= self.medium:
            return PriorityTier.MEDIUM
        return PriorityTier.LOW


class Prediction(BaseModel):
    """A single component forecast."""

    component_id: str
    probability: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    priority: PriorityTier
    strategy: StrategyName

    model_config = {"frozen": True}


class PredictionSet(BaseModel):
    """Ordered predictions, probability descending, ties by component id.

    Fully materialized: iterate it as many times as needed.
    """

    set_id: str = Field(default_factory=new_id)
    strategy: StrategyName
    predictions: tuple[Prediction, ...] = ()
    generated_at: datetime = Field(default_factory=lambda: utc_now())

    model_config = {"frozen": True}

    def __iter__(self) -> Iterator[Prediction]:  # type: ignore[override]
        return iter(self.predictions)

    def __len__(self) -> int:
        return len(self.predictions)

    def __bool__(self) -> bool:
        return bool(self.predictions)

    @property
    def component_ids(self) -> list[str]:
        return [p.component_id for p in self.predictions]

    def get(self, component_id: str) -> Prediction | None:
        for prediction in self.predictions:
            if prediction.component_id == component_id:
                return prediction
        return None

    def by_priority(self, tier: PriorityTier) -> list[Prediction]:
        return [p for p in self.predictions if p.priority == tier]


def ranked(predictions: list[Prediction]) -> tuple[Prediction, ...]:
    """Sort predictions probability-descending with id tie-break."""
    return tuple(sorted(predictions, key=lambda p: (-p.probability, p.component_id)))


class AccuracyReport(BaseModel):
    """Running accuracy of issued predictions and the resulting thresholds."""

    total_predictions: int = Field(default=0, ge=0)
    correct_predictions: int = Field(default=0, ge=0)
    accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    thresholds: ThresholdState = Field(default_factory=ThresholdState)
    phase: ControllerPhase = ControllerPhase.COLD

    model_config = {"frozen": True}
