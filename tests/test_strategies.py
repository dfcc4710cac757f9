"""Tests for the prediction strategies.

Snapshots and transition models are built directly so every expected
probability can be derived by hand.  A first ingest into an empty model
normalizes each row to the ratio of the supplied weights.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from prefetch_oracle.core.strategies import (
    AmplifiedStrategy,
    FirstOrderSequenceStrategy,
    ProbabilisticStrategy,
    get_strategy,
)
from prefetch_oracle.core.transition import TransitionModel
from prefetch_oracle.domain.enums import PriorityTier, StrategyName
from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.domain.graph import AffinityEdge
from prefetch_oracle.domain.interaction import InteractionEvent, InteractionRecord
from prefetch_oracle.domain.patterns import ComponentImportance, PatternSnapshot
from prefetch_oracle.domain.prediction import ThresholdState


_BASE = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
_DEFAULTS = ThresholdState()


def _record(component_id: str) -> InteractionRecord:
    event = InteractionEvent(component_id=component_id, kind="click", timestamp=_BASE)
    return InteractionRecord.from_event(
        event,
        recorded_at=_BASE,
        base_weight=0.9,
        interaction_score=0.9,
        session_elapsed_ms=0.0,
    )


def _snapshot(history: list[str], importance: dict[str, float] | None = None) -> PatternSnapshot:
    """Build a snapshot from *history* given oldest first."""
    recent = tuple(_record(cid) for cid in reversed(history))[:10]
    primary = tuple(
        ComponentImportance(component_id=cid, importance=value)
        for cid, value in (importance or {}).items()
    )
    return PatternSnapshot(
        recent_interactions=recent,
        primary_components=primary,
        generated_at=_BASE,
    )


def _model(edges: dict[tuple[str, str], float]) -> TransitionModel:
    model = TransitionModel()
    model.ingest(AffinityEdge(source=s, target=t, weight=w) for (s, t), w in edges.items())
    return model


# a→b 0.75, a→c 0.25
_SPLIT = {("a", "b"): 0.3, ("a", "c"): 0.1}


# ── Probabilistic ────────────────────────────────────────────────────────────


class TestProbabilisticStrategy:
    def test_scores_from_context_transitions(self) -> None:
        result = ProbabilisticStrategy().predict(
            _snapshot(["x", "y", "a"]), ["b", "c", "d"], _model(_SPLIT), _DEFAULTS
        )
        assert result.component_ids == ["b"]
        b = result.get("b")
        assert b.probability == pytest.approx(0.75 * 0.7)
        assert b.confidence == pytest.approx(0.3)
        assert b.priority == PriorityTier.MEDIUM
        assert b.strategy == StrategyName.PROBABILISTIC

    def test_below_low_threshold_discarded(self) -> None:
        result = ProbabilisticStrategy().predict(
            _snapshot(["a"]), ["c"], _model(_SPLIT), _DEFAULTS
        )
        # 0.25 × 0.7 = 0.175 < 0.2
        assert len(result) == 0
        assert not result

    def test_contributions_summed_and_clamped(self) -> None:
        model = _model({**_SPLIT, ("y", "b"): 1.0})
        result = ProbabilisticStrategy().predict(
            _snapshot(["y", "a"]), ["b"], model, _DEFAULTS
        )
        b = result.get("b")
        assert b.probability == 1.0
        assert b.confidence == pytest.approx(0.6)
        assert b.priority == PriorityTier.HIGH

    def test_only_three_most_recent_components_form_context(self) -> None:
        model = _model({("old", "b"): 1.0})
        strategy = ProbabilisticStrategy()
        snapshot = _snapshot(["old", "p", "q", "r"])
        assert strategy.context(snapshot) == ["r", "q", "p"]
        assert strategy.predict(snapshot, ["b"], model, _DEFAULTS).component_ids == []

    def test_importance_boost(self) -> None:
        result = ProbabilisticStrategy().predict(
            _snapshot(["a"], importance={"c": 1.5}), ["c"], _model(_SPLIT), _DEFAULTS
        )
        c = result.get("c")
        assert c.probability == pytest.approx(0.175 + 0.15)
        assert c.confidence == pytest.approx(0.5)

    def test_importance_boost_capped(self) -> None:
        result = ProbabilisticStrategy().predict(
            _snapshot(["a"], importance={"c": 40.0}), ["c"], _model(_SPLIT), _DEFAULTS
        )
        assert result.get("c").probability == pytest.approx(0.175 + 0.3)
        assert result.get("c").priority == PriorityTier.MEDIUM

    def test_exclusion_takes_precedence_over_boost(self) -> None:
        model = _model({("a", "c"): 1.0})
        snapshot = _snapshot(["c", "a"], importance={"c": 50.0})
        strategy = ProbabilisticStrategy()
        probability, _ = strategy.score(snapshot, "c", model)
        assert probability == 1.0
        assert strategy.predict(snapshot, ["c"], model, _DEFAULTS).component_ids == []

    def test_ties_broken_by_component_id(self) -> None:
        model = _model({("a", "b"): 0.2, ("a", "c"): 0.2})
        result = ProbabilisticStrategy().predict(_snapshot(["a"]), ["c", "b"], model, _DEFAULTS)
        assert result.component_ids == ["b", "c"]
        assert result.predictions[0].probability == result.predictions[1].probability

    def test_ordered_by_probability_descending(self) -> None:
        model = _model({("a", "b"): 0.1, ("a", "c"): 0.3, ("a", "d"): 0.6})
        result = ProbabilisticStrategy().predict(
            _snapshot(["a"]), ["b", "c", "d"], model, ThresholdState(high=0.9, medium=0.5, low=0.05)
        )
        assert result.component_ids == ["d", "c", "b"]
        probabilities = [p.probability for p in result]
        assert probabilities == sorted(probabilities, reverse=True)

    def test_deterministic(self) -> None:
        snapshot = _snapshot(["x", "y", "a"], importance={"b": 2.0, "c": 3.0})
        model = _model(_SPLIT)
        strategy = ProbabilisticStrategy()
        first = strategy.predict(snapshot, ["b", "c", "d"], model, _DEFAULTS)
        second = strategy.predict(snapshot, ["b", "c", "d"], model, _DEFAULTS)
        assert first.predictions == second.predictions

    def test_values_bounded(self) -> None:
        model = _model({("a", "b"): 1.0, ("y", "b"): 1.0, ("x", "b"): 1.0})
        snapshot = _snapshot(["x", "y", "a"], importance={"b": 100.0})
        result = ProbabilisticStrategy().predict(snapshot, ["b"], model, _DEFAULTS)
        for prediction in result:
            assert 0.0 <= prediction.probability <= 1.0
            assert 0.0 <= prediction.confidence <= 1.0

    def test_duplicates_and_blanks_ignored(self) -> None:
        result = ProbabilisticStrategy().predict(
            _snapshot(["a"]), ["b", "b", ""], _model(_SPLIT), _DEFAULTS
        )
        assert result.component_ids == ["b"]

    def test_stricter_low_threshold_filters_more(self) -> None:
        strict = ThresholdState(high=0.9, medium=0.6, low=0.6)
        result = ProbabilisticStrategy().predict(_snapshot(["a"]), ["b"], _model(_SPLIT), strict)
        assert len(result) == 0

    def test_empty_candidates_returns_empty_set(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="prefetch_oracle.core.strategies"):
            result = ProbabilisticStrategy().predict(_snapshot(["a"]), [], _model(_SPLIT), _DEFAULTS)
        assert len(result) == 0
        assert result.strategy == StrategyName.PROBABILISTIC
        assert any(
            getattr(r, "degenerate_state", None) == "empty_candidates" for r in caplog.records
        )

    def test_no_history_only_importance_counts(self) -> None:
        result = ProbabilisticStrategy().predict(
            _snapshot([], importance={"b": 5.0}), ["b"], _model(_SPLIT), _DEFAULTS
        )
        assert result.get("b").probability == pytest.approx(0.3)


# ── First-order sequence ─────────────────────────────────────────────────────


class TestFirstOrderSequenceStrategy:
    _EDGES = {("a", "b"): 0.6, ("a", "c"): 0.3, ("a", "e"): 0.1, ("x", "d"): 1.0}

    def test_uses_only_most_recent_component(self) -> None:
        result = FirstOrderSequenceStrategy().predict(
            _snapshot(["x", "a"]), ["b", "c", "d", "e"], _model(self._EDGES), _DEFAULTS
        )
        assert result.component_ids == ["b", "c"]
        b, c = result.predictions
        assert b.probability == pytest.approx(0.6)
        assert b.confidence == pytest.approx(0.7)
        assert b.priority == PriorityTier.MEDIUM
        assert c.probability == pytest.approx(0.3)
        assert c.priority == PriorityTier.LOW
        assert b.strategy == StrategyName.FIRST_ORDER_SEQUENCE

    def test_confidence_capped(self) -> None:
        result = FirstOrderSequenceStrategy().predict(
            _snapshot(["a"]), ["b"], _model({("a", "b"): 1.0}), _DEFAULTS
        )
        assert result.get("b").probability == pytest.approx(1.0)
        assert result.get("b").confidence == 1.0

    def test_recently_used_components_excluded(self) -> None:
        strategy = FirstOrderSequenceStrategy()
        only_b = strategy.predict(
            _snapshot(["a", "b", "a"]), ["a", "b", "c"], _model({("a", "b"): 1.0}), _DEFAULTS
        )
        assert len(only_b) == 0

        split = strategy.predict(
            _snapshot(["a", "b", "a"]),
            ["a", "b", "c"],
            _model({("a", "b"): 0.5, ("a", "c"): 0.5}),
            _DEFAULTS,
        )
        assert split.component_ids == ["c"]

    def test_exclusion_limited_to_five_most_recent(self) -> None:
        result = FirstOrderSequenceStrategy().predict(
            _snapshot(["b", "x1", "x2", "x3", "x4", "a"]),
            ["b"],
            _model({("a", "b"): 1.0}),
            _DEFAULTS,
        )
        assert result.component_ids == ["b"]

    def test_empty_history_is_degenerate(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="prefetch_oracle.core.strategies"):
            result = FirstOrderSequenceStrategy().predict(
                _snapshot([]), ["b"], _model(self._EDGES), _DEFAULTS
            )
        assert len(result) == 0
        assert any(
            getattr(r, "degenerate_state", None) == "insufficient_history" for r in caplog.records
        )

    def test_empty_candidates_returns_empty_set(self) -> None:
        result = FirstOrderSequenceStrategy().predict(
            _snapshot(["a"]), [], _model(self._EDGES), _DEFAULTS
        )
        assert len(result) == 0


# ── Amplified ────────────────────────────────────────────────────────────────


class TestAmplifiedStrategy:
    def test_scales_probability_and_confidence(self) -> None:
        result = AmplifiedStrategy().predict(
            _snapshot(["x", "y", "a"]), ["b", "c"], _model(_SPLIT), _DEFAULTS
        )
        b = result.get("b")
        assert b.probability == pytest.approx(0.525 * 1.2)
        assert b.confidence == pytest.approx(0.45)
        assert b.priority == PriorityTier.MEDIUM
        assert b.strategy == StrategyName.AMPLIFIED

    def test_low_cut_applied_before_amplification(self) -> None:
        # c scores 0.175 and would pass at 0.21 if amplified first
        result = AmplifiedStrategy().predict(
            _snapshot(["a"]), ["c"], _model(_SPLIT), _DEFAULTS
        )
        assert result.get("c") is None

    def test_capped_at_one(self) -> None:
        model = _model({**_SPLIT, ("y", "b"): 1.0})
        result = AmplifiedStrategy().predict(_snapshot(["y", "a"]), ["b"], model, _DEFAULTS)
        b = result.get("b")
        assert b.probability == 1.0
        assert b.confidence == pytest.approx(0.75)
        assert b.priority == PriorityTier.HIGH

    def test_never_below_probabilistic(self) -> None:
        snapshot = _snapshot(["x", "y", "a"], importance={"b": 2.0, "c": 1.0})
        model = _model(_SPLIT)
        base = ProbabilisticStrategy().predict(snapshot, ["b", "c"], model, _DEFAULTS)
        amplified = AmplifiedStrategy().predict(snapshot, ["b", "c"], model, _DEFAULTS)
        for prediction in base:
            assert amplified.get(prediction.component_id).probability >= prediction.probability


# ── Registry ─────────────────────────────────────────────────────────────────


class TestStrategyRegistry:
    def test_lookup_by_value(self) -> None:
        assert isinstance(get_strategy("probabilistic"), ProbabilisticStrategy)
        assert isinstance(get_strategy("first-order-sequence"), FirstOrderSequenceStrategy)

    def test_lookup_by_enum(self) -> None:
        assert isinstance(get_strategy(StrategyName.AMPLIFIED), AmplifiedStrategy)

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(InputValidationError) as exc_info:
            get_strategy("markov-chain-9000")
        assert exc_info.value.field == "strategy"
