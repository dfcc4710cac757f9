"""Prediction strategies — interchangeable scorers over the Transition Model.

A PredictionStrategy turns a PatternSnapshot plus a candidate list into a
ranked PredictionSet.  The engine depends on this protocol; swap
implementations to change scoring without touching tracking or the model.

probabilistic (default)
    current = distinct components of the 3 most recent records.
    Candidates in *current* are excluded first, then for the rest:
        probability = Σ_c T(c, candidate) × 0.7
        confidence  = 0.3 per nonzero contributing edge
    plus, for primary components, min(importance / 10, 0.3) probability
    and 0.2 confidence.  Exclusion takes precedence over the boost.

first-order-sequence
    State is the single most recent component.  Candidates among the
    distinct components of the 5 most recent records are excluded, then:
        probability = T(most_recent, candidate)
        confidence  = min(probability + 0.1, 1)
    A fallback for sparse data.

amplified
    probabilistic, then probability × 1.2 and confidence + 0.15, both
    capped at 1.  An aggressive preloading policy over the same model.

Every strategy clamps to [0, 1], discards probabilities below the current
``low`` threshold and orders by probability descending, ties by id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from prefetch_oracle.core.transition import TransitionModel
from prefetch_oracle.domain.enums import DegenerateState, StrategyName
from prefetch_oracle.domain.errors import InputValidationError, log_degenerate
from prefetch_oracle.domain.patterns import PatternSnapshot
from prefetch_oracle.domain.prediction import (
    Prediction,
    PredictionSet,
    ThresholdState,
    ranked,
)

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return max(0.0, min(value, 1.0))


def _unique(candidates: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.append(candidate)
    return seen


class PredictionStrategy(Protocol):
    """Protocol for snapshot-to-predictions scoring."""

    name: StrategyName

    def predict(
        self,
        snapshot: PatternSnapshot,
        candidates: Iterable[str],
        model: TransitionModel,
        thresholds: ThresholdState,
    ) -> PredictionSet:
        """Return ranked predictions for *candidates*."""
        ...


@dataclass(frozen=True)
class ProbabilisticWeights:
    """Coefficients of the probabilistic scorer."""

    context_size: int = 3
    transition_weight: float = 0.7
    edge_confidence: float = 0.3
    importance_scale: float = 10.0
    importance_cap: float = 0.3
    importance_confidence: float = 0.2


class ProbabilisticStrategy:
    """Conditional-probability scorer over the recent context."""

    name = StrategyName.PROBABILISTIC

    def __init__(self, weights: ProbabilisticWeights | None = None) -> None:
        self._weights = weights or ProbabilisticWeights()

    def context(self, snapshot: PatternSnapshot) -> list[str]:
        return snapshot.recent_component_ids(self._weights.context_size)

    def score(
        self,
        snapshot: PatternSnapshot,
        candidate: str,
        model: TransitionModel,
        context: list[str] | None = None,
    ) -> tuple[float, float]:
        """Unfiltered (probability, confidence) for one candidate.

        Does not apply context exclusion or the ``low`` cut-off.
        """
        w = self._weights
        context = self.context(snapshot) if context is None else context

        probability = 0.0
        confidence = 0.0
        for current in context:
            p = model.transition_probability(current, candidate)
            probability += p * w.transition_weight
            if p > 0.0:
                confidence += w.edge_confidence

        importance = snapshot.importance_of(candidate)
        if importance is not None:
            probability += min(importance / w.importance_scale, w.importance_cap)
            confidence += w.importance_confidence

        return _clamp(probability), _clamp(confidence)

    def predict(
        self,
        snapshot: PatternSnapshot,
        candidates: Iterable[str],
        model: TransitionModel,
        thresholds: ThresholdState,
    ) -> PredictionSet:
        candidates = _unique(candidates)
        if not candidates:
            return _empty(self.name)

        context = self.context(snapshot)
        predictions: list[Prediction] = []
        for candidate in candidates:
            if candidate in context:
                continue
            probability, confidence = self.score(snapshot, candidate, model, context)
            if probability < thresholds.low:
                continue
            predictions.append(
                Prediction(
                    component_id=candidate,
                    probability=probability,
                    confidence=confidence,
                    priority=thresholds.tier_for(probability),
                    strategy=self.name,
                )
            )
        return PredictionSet(strategy=self.name, predictions=ranked(predictions))


class FirstOrderSequenceStrategy:
    """Single-state lookup from the most recent component."""

    name = StrategyName.FIRST_ORDER_SEQUENCE

    def __init__(self, confidence_bonus: float = 0.1, exclusion_window: int = 5) -> None:
        self._confidence_bonus = confidence_bonus
        self._exclusion_window = exclusion_window

    def predict(
        self,
        snapshot: PatternSnapshot,
        candidates: Iterable[str],
        model: TransitionModel,
        thresholds: ThresholdState,
    ) -> PredictionSet:
        candidates = _unique(candidates)
        if not candidates:
            return _empty(self.name)
        if not snapshot.recent_interactions:
            log_degenerate(
                logger,
                DegenerateState.INSUFFICIENT_HISTORY,
                "no interactions recorded; first-order lookup has no state",
            )
            return PredictionSet(strategy=self.name)

        most_recent = snapshot.recent_interactions[0].component_id
        excluded = set(snapshot.recent_component_ids(self._exclusion_window))
        predictions: list[Prediction] = []
        for candidate in candidates:
            if candidate in excluded:
                continue
            probability = _clamp(model.transition_probability(most_recent, candidate))
            if probability < thresholds.low:
                continue
            predictions.append(
                Prediction(
                    component_id=candidate,
                    probability=probability,
                    confidence=_clamp(probability + self._confidence_bonus),
                    priority=thresholds.tier_for(probability),
                    strategy=self.name,
                )
            )
        return PredictionSet(strategy=self.name, predictions=ranked(predictions))


class AmplifiedStrategy:
    """Probabilistic scoring with optimistic scaling for aggressive preloading."""

    name = StrategyName.AMPLIFIED

    def __init__(
        self,
        base: ProbabilisticStrategy | None = None,
        probability_factor: float = 1.2,
        confidence_bonus: float = 0.15,
    ) -> None:
        self._base = base or ProbabilisticStrategy()
        self._probability_factor = probability_factor
        self._confidence_bonus = confidence_bonus

    def predict(
        self,
        snapshot: PatternSnapshot,
        candidates: Iterable[str],
        model: TransitionModel,
        thresholds: ThresholdState,
    ) -> PredictionSet:
        base = self._base.predict(snapshot, candidates, model, thresholds)
        amplified = []
        for prediction in base:
            probability = _clamp(prediction.probability * self._probability_factor)
            amplified.append(
                Prediction(
                    component_id=prediction.component_id,
                    probability=probability,
                    confidence=_clamp(prediction.confidence + self._confidence_bonus),
                    priority=thresholds.tier_for(probability),
                    strategy=self.name,
                )
            )
        return PredictionSet(strategy=self.name, predictions=ranked(amplified))


def _empty(strategy: StrategyName) -> PredictionSet:
    log_degenerate(
        logger,
        DegenerateState.EMPTY_CANDIDATES,
        "empty candidate list for %s strategy",
        strategy.value,
    )
    return PredictionSet(strategy=strategy)


STRATEGIES: dict[StrategyName, PredictionStrategy] = {
    StrategyName.PROBABILISTIC: ProbabilisticStrategy(),
    StrategyName.FIRST_ORDER_SEQUENCE: FirstOrderSequenceStrategy(),
    StrategyName.AMPLIFIED: AmplifiedStrategy(),
}


def get_strategy(name: StrategyName | str) -> PredictionStrategy:
    """Resolve a strategy by enum or by its string value."""
    try:
        key = StrategyName(name)
    except ValueError as exc:
        raise InputValidationError(
            "strategy", f"unknown strategy {name!r}; expected one of {[s.value for s in StrategyName]}"
        ) from exc
    return STRATEGIES[key]
