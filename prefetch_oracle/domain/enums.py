"""Controlled enumerations for the prefetch-oracle domain.

Categorical fields reference an enum defined here.  The one exception is
``InteractionEvent.kind``: hosts may emit kinds the weighting table does
not know, and those are accepted with a default weight.
"""

from __future__ import annotations

from enum import Enum


class InteractionKind(str, Enum):
    """Interaction kinds with a known predictive weight."""

    NAVIGATION = "navigation"
    CLICK = "click"
    FORM_SUBMIT = "form-submit"
    HOVER = "hover"
    FOCUS = "focus"
    SCROLL_END = "scroll-end"
    VISIBILITY = "visibility"
    SCROLL = "scroll"
    MOUSEMOVE = "mousemove"


class NavigationShape(str, Enum):
    """Dominant navigation shape of a session's affinity graph."""

    LINEAR = "linear"
    BRANCHING = "branching"
    CYCLIC = "cyclic"
    MIXED = "mixed"


class PriorityTier(str, Enum):
    """Priority tier a prediction falls into under the current thresholds."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StrategyName(str, Enum):
    """Selectable prediction strategies."""

    PROBABILISTIC = "probabilistic"
    FIRST_ORDER_SEQUENCE = "first-order-sequence"
    AMPLIFIED = "amplified"


class ControllerPhase(str, Enum):
    """Adaptive threshold controller lifecycle.

    COLD → WARM is one-way; only an explicit reset returns to COLD.
    """

    COLD = "cold"
    WARM = "warm"


class DegenerateState(str, Enum):
    """Non-fatal conditions that yield an empty or default result."""

    EMPTY_CANDIDATES = "empty_candidates"
    ZERO_WEIGHT_ROW = "zero_weight_row"
    INSUFFICIENT_HISTORY = "insufficient_history"
    SPARSE_GRAPH = "sparse_graph"
