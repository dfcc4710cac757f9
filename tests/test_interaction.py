"""Tests for the InteractionEvent model and the event weighting table."""

from datetime import datetime, timezone

import pytest

from prefetch_oracle.domain.interaction import InteractionEvent
from prefetch_oracle.domain.weights import (
    DEFAULT_EVENT_WEIGHT,
    EVENT_WEIGHTS,
    is_known_kind,
    resolve_weight,
)


def _valid_event(**overrides) -> dict:
    """Return a valid interaction event dict, with optional overrides."""
    base = {
        "component_id": "product-grid",
        "kind": "click",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    base.update(overrides)
    return base


class TestInteractionEventValidation:
    def test_valid_event_parses(self) -> None:
        event = InteractionEvent.model_validate(_valid_event())
        assert event.component_id == "product-grid"
        assert event.kind == "click"
        assert event.duration_ms is None
        assert event.viewport_coverage is None

    def test_optional_measurements_accepted(self) -> None:
        event = InteractionEvent.model_validate(
            _valid_event(duration_ms=1500, viewport_coverage=0.4, recency_ms=2000)
        )
        assert event.duration_ms == 1500
        assert event.viewport_coverage == 0.4
        assert event.recency_ms == 2000

    def test_missing_component_id_rejected(self) -> None:
        raw = _valid_event()
        del raw["component_id"]
        with pytest.raises(Exception):
            InteractionEvent.model_validate(raw)

    def test_empty_component_id_rejected(self) -> None:
        with pytest.raises(Exception):
            InteractionEvent.model_validate(_valid_event(component_id=""))

    def test_blank_component_id_rejected(self) -> None:
        with pytest.raises(Exception):
            InteractionEvent.model_validate(_valid_event(component_id="   "))

    def test_negative_duration_rejected(self) -> None:
        with pytest.raises(Exception):
            InteractionEvent.model_validate(_valid_event(duration_ms=-1))

    def test_coverage_out_of_range_rejected(self) -> None:
        with pytest.raises(Exception):
            InteractionEvent.model_validate(_valid_event(viewport_coverage=1.2))

    def test_unrecognized_kind_accepted(self) -> None:
        event = InteractionEvent.model_validate(_valid_event(kind="pinch-zoom"))
        assert event.kind == "pinch-zoom"

    def test_naive_timestamp_gets_utc(self) -> None:
        naive = datetime(2026, 1, 1, 12, 0, 0).isoformat()
        event = InteractionEvent.model_validate(_valid_event(timestamp=naive))
        assert event.timestamp.tzinfo is not None

    def test_timestamp_defaults_to_now(self) -> None:
        event = InteractionEvent(component_id="cart")
        assert event.timestamp.tzinfo is not None

    def test_event_is_immutable(self) -> None:
        event = InteractionEvent.model_validate(_valid_event())
        with pytest.raises(Exception):
            event.component_id = "changed"


class TestEventWeights:
    def test_known_kinds(self) -> None:
        assert resolve_weight("navigation") == 0.95
        assert resolve_weight("click") == 0.9
        assert resolve_weight("hover") == 0.7
        assert resolve_weight("mousemove") == 0.2

    def test_unknown_kind_gets_default(self) -> None:
        assert resolve_weight("long-press") == DEFAULT_EVENT_WEIGHT == 0.3
        assert not is_known_kind("long-press")

    def test_weights_are_bounded(self) -> None:
        assert all(0.0 < w <= 1.0 for w in EVENT_WEIGHTS.values())

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            EVENT_WEIGHTS["click"] = 0.1  # type: ignore[index]
