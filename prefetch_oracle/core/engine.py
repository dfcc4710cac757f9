"""PrefetchEngine — one session's forecast loop behind four operations.

    record_interaction   event → tracker update → transition ingest
    get_current_patterns tracker snapshot (pure read)
    predict              snapshot + candidates + strategy → PredictionSet
    report_outcome       realized use → threshold controller

The engine owns an independent tracker, transition model and threshold
controller.  It is not locked; hosts serialize calls per session.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from pydantic import ValidationError

from prefetch_oracle.core.strategies import STRATEGIES, PredictionStrategy, get_strategy
from prefetch_oracle.core.thresholds import AdaptiveThresholdController, ThresholdConfig
from prefetch_oracle.core.tracker import BehaviorTracker, TrackerConfig
from prefetch_oracle.core.transition import DEFAULT_LEARNING_RATE, TransitionModel
from prefetch_oracle.domain.enums import StrategyName
from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.domain.interaction import InteractionEvent, InteractionRecord
from prefetch_oracle.domain.patterns import NavigationShapeReport, PatternSnapshot
from prefetch_oracle.domain.prediction import AccuracyReport, PredictionSet

logger = logging.getLogger(__name__)


class PrefetchEngine:
    """Per-session predictive prefetching core.

    Args:
        tracker_config: Behavior Tracker tunables.
        learning_rate: EMA rate of the Transition Model, within (0, 1).
        threshold_config: Adaptive Threshold Controller tunables.
        default_strategy: Strategy used when ``predict`` is given none.
        strategies: Override or extend the strategy registry.
    """

    def __init__(
        self,
        tracker_config: TrackerConfig | None = None,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        threshold_config: ThresholdConfig | None = None,
        default_strategy: StrategyName | str = StrategyName.PROBABILISTIC,
        strategies: dict[StrategyName, PredictionStrategy] | None = None,
    ) -> None:
        self._tracker = BehaviorTracker(tracker_config)
        self._model = TransitionModel(learning_rate)
        self._controller = AdaptiveThresholdController(threshold_config)
        self._strategies = {**STRATEGIES, **(strategies or {})}
        self._default_strategy = get_strategy(default_strategy).name
        self._last_predictions: PredictionSet | None = None

    # ── Operations ───────────────────────────────────────────────────────

    def record_interaction(
        self,
        component_id: str,
        kind: str = "unknown",
        duration_ms: float | None = None,
        viewport_coverage: float | None = None,
        timestamp: datetime | None = None,
        recency_ms: float | None = None,
    ) -> InteractionRecord:
        """Validate and record one interaction.

        Raises:
            InputValidationError: If any field is malformed.  State is untouched.
        """
        payload: dict[str, Any] = {
            "component_id": component_id,
            "kind": kind,
            "duration_ms": duration_ms,
            "viewport_coverage": viewport_coverage,
            "recency_ms": recency_ms,
        }
        if timestamp is not None:
            payload["timestamp"] = timestamp
        return self.record_event(self.validate_event(payload))

    def record_event(self, event: InteractionEvent) -> InteractionRecord:
        """Record an already-validated event and feed the Transition Model."""
        record = self._tracker.record_interaction(event)
        self._model.ingest(self._tracker.relationships())
        self._model.retain(self._tracker.component_ids)
        return record

    def get_current_patterns(self) -> PatternSnapshot:
        return self._tracker.get_current_patterns()

    def predict(
        self,
        snapshot: PatternSnapshot | None,
        candidates: Iterable[str],
        strategy: StrategyName | str | None = None,
    ) -> PredictionSet:
        """Rank *candidates* using *strategy* (default strategy when None).

        A snapshot from ``get_current_patterns`` is used when *snapshot* is
        None.  The snapshot supplies context and importance only; the
        Transition Model is fed by ``record_event`` alone, so predicting
        never changes it.
        """
        snapshot = snapshot or self._tracker.get_current_patterns()
        name = self._default_strategy if strategy is None else get_strategy(strategy).name
        scorer = self._strategies[name]

        predictions = scorer.predict(snapshot, candidates, self._model, self._controller.thresholds)
        self._last_predictions = predictions

        logger.debug(
            "Predicted %d component(s) with %s: %s",
            len(predictions),
            name.value,
            predictions.component_ids,
        )
        return predictions

    def report_outcome(self, component_id: str, was_predicted: bool | None = None) -> AccuracyReport:
        """Feed a realized component use back into the threshold controller.

        When *was_predicted* is None it is inferred from the most recently
        issued PredictionSet.
        """
        if not component_id or not component_id.strip():
            raise InputValidationError("component_id", "must be a non-empty string")
        if was_predicted is None:
            was_predicted = (
                self._last_predictions is not None
                and self._last_predictions.get(component_id) is not None
            )
        return self._controller.report_outcome(component_id, was_predicted)

    # ── Diagnostics ──────────────────────────────────────────────────────

    def detect_navigation_shape(self) -> NavigationShapeReport:
        return self._tracker.detect_navigation_shape()

    def metrics(self) -> AccuracyReport:
        return self._controller.report()

    def most_likely_path(self, start: str, end: str, max_length: int = 5) -> list[str]:
        return self._model.most_likely_path(start, end, max_length=max_length)

    def component_clusters(self, min_size: int = 3, threshold: float = 0.3) -> list[list[str]]:
        return self._model.clusters(min_size=min_size, threshold=threshold)

    def export_analysis(self) -> dict[str, Any]:
        analysis = self._tracker.export_analysis()
        analysis["metrics"] = self._controller.report().model_dump(mode="json")
        analysis["transition_sources"] = self._model.source_count
        analysis["component_clusters"] = self._model.clusters()
        return analysis

    @property
    def tracker(self) -> BehaviorTracker:
        return self._tracker

    @property
    def model(self) -> TransitionModel:
        return self._model

    @property
    def controller(self) -> AdaptiveThresholdController:
        return self._controller

    @property
    def last_predictions(self) -> PredictionSet | None:
        return self._last_predictions

    # ── Lifecycle ────────────────────────────────────────────────────────

    def reset(self) -> None:
        self._tracker.reset()
        self._model.reset()
        self._controller.reset()
        self._last_predictions = None

    @staticmethod
    def validate_event(raw: dict[str, Any]) -> InteractionEvent:
        """Build an InteractionEvent, translating pydantic errors to InputValidationError."""
        try:
            return InteractionEvent.model_validate(raw)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "event"
            raise InputValidationError(field, first.get("msg", str(exc))) from exc
