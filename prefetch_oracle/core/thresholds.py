"""AdaptiveThresholdController — keeps priority thresholds calibrated to accuracy.

Feedback rule, applied on every report once warm (total ≥ warm-up):

    accuracy > 0.85   all thresholds × 0.95, floored at 0.6 / 0.3 / 0.1
    accuracy < 0.65   all thresholds × 1.05, capped at 0.9 / 0.6 / 0.3
    otherwise         unchanged

Lowering thresholds surfaces more predictions (more aggressive preloading);
raising them is stricter gating.  high ≥ medium ≥ low is re-asserted after
every adjustment.

Lifecycle:  cold → warm, one-way until reset().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from prefetch_oracle.domain.enums import ControllerPhase
from prefetch_oracle.domain.errors import InputValidationError
from prefetch_oracle.domain.prediction import AccuracyReport, ThresholdState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdConfig:
    """Defaults, bounds and feedback gains for the controller."""

    initial: ThresholdState = field(default_factory=ThresholdState)
    floor: ThresholdState = field(
        default_factory=lambda: ThresholdState(high=0.6, medium=0.3, low=0.1)
    )
    ceiling: ThresholdState = field(
        default_factory=lambda: ThresholdState(high=0.9, medium=0.6, low=0.3)
    )
    warmup: int = 50
    loosen_above: float = 0.85
    tighten_below: float = 0.65
    loosen_factor: float = 0.95
    tighten_factor: float = 1.05


class AccuracyCounter:
    """Running totals of issued and confirmed predictions.

    Monotonically non-decreasing until reset().
    """

    __slots__ = ("total", "correct")

    def __init__(self) -> None:
        self.total: int = 0
        self.correct: int = 0

    def record(self, correct: bool) -> None:
        self.total += 1
        if correct:
            self.correct += 1

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total

    def reset(self) -> None:
        self.total = 0
        self.correct = 0


class AdaptiveThresholdController:
    """Owns the mutable thresholds; everybody else reads frozen copies."""

    def __init__(self, config: ThresholdConfig | None = None) -> None:
        self._config = config or ThresholdConfig()
        if self._config.warmup < 0:
            raise InputValidationError("warmup", f"must be >= 0, got {self._config.warmup}")
        self._counter = AccuracyCounter()
        self._high = self._config.initial.high
        self._medium = self._config.initial.medium
        self._low = self._config.initial.low
        self._phase = ControllerPhase.COLD

    # ── Public API ───────────────────────────────────────────────────────

    def report_outcome(self, component_id: str, was_predicted: bool) -> AccuracyReport:
        """Record whether *component_id*'s use had been predicted, then adapt."""
        self._counter.record(bool(was_predicted))

        if self._counter.total >= self._config.warmup:
            if self._phase is ControllerPhase.COLD:
                self._phase = ControllerPhase.WARM
                logger.info(
                    "Threshold controller warm after %d outcome(s) (accuracy=%.3f)",
                    self._counter.total,
                    self._counter.accuracy,
                )
            self._adjust(self._counter.accuracy)

        logger.debug(
            "Outcome for %s (predicted=%s): %d/%d correct",
            component_id,
            was_predicted,
            self._counter.correct,
            self._counter.total,
        )
        return self.report()

    @property
    def thresholds(self) -> ThresholdState:
        return ThresholdState(high=self._high, medium=self._medium, low=self._low)

    @property
    def phase(self) -> ControllerPhase:
        return self._phase

    @property
    def accuracy(self) -> float:
        return self._counter.accuracy

    def report(self) -> AccuracyReport:
        return AccuracyReport(
            total_predictions=self._counter.total,
            correct_predictions=self._counter.correct,
            accuracy=self._counter.accuracy,
            thresholds=self.thresholds,
            phase=self._phase,
        )

    def reset(self) -> None:
        self._counter.reset()
        self._high = self._config.initial.high
        self._medium = self._config.initial.medium
        self._low = self._config.initial.low
        self._phase = ControllerPhase.COLD

    # ── Feedback ─────────────────────────────────────────────────────────

    def _adjust(self, accuracy: float) -> None:
        cfg = self._config
        if accuracy > cfg.loosen_above:
            self._high = max(self._high * cfg.loosen_factor, cfg.floor.high)
            self._medium = max(self._medium * cfg.loosen_factor, cfg.floor.medium)
            self._low = max(self._low * cfg.loosen_factor, cfg.floor.low)
        elif accuracy < cfg.tighten_below:
            self._high = min(self._high * cfg.tighten_factor, cfg.ceiling.high)
            self._medium = min(self._medium * cfg.tighten_factor, cfg.ceiling.medium)
            self._low = min(self._low * cfg.tighten_factor, cfg.ceiling.low)
        else:
            return

        # Floors and ceilings may overlap under custom configs.
        self._medium = min(self._medium, self._high)
        self._low = min(self._low, self._medium)
