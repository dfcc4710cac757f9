"""Event weighting table — base predictive value per interaction kind.

Navigation-like events carry the most signal about what comes next,
intent-signalling events (hover, focus) sit in the middle, and passive
motion is close to noise.
"""

from __future__ import annotations

from types import MappingProxyType

from prefetch_oracle.domain.enums import InteractionKind

DEFAULT_EVENT_WEIGHT = 0.3

EVENT_WEIGHTS = MappingProxyType({
    # Core navigation
    InteractionKind.NAVIGATION.value: 0.95,
    InteractionKind.CLICK.value: 0.9,
    InteractionKind.FORM_SUBMIT.value: 0.85,
    # Intent signalling
    InteractionKind.HOVER.value: 0.7,
    InteractionKind.FOCUS.value: 0.65,
    InteractionKind.SCROLL_END.value: 0.6,
    # Passive or incidental
    InteractionKind.VISIBILITY.value: 0.5,
    InteractionKind.SCROLL.value: 0.4,
    InteractionKind.MOUSEMOVE.value: 0.2,
})


def resolve_weight(kind: str) -> float:
    """Base weight for *kind*; unknown kinds get ``DEFAULT_EVENT_WEIGHT``."""
    return EVENT_WEIGHTS.get(kind, DEFAULT_EVENT_WEIGHT)


def is_known_kind(kind: str) -> bool:
    return kind in EVENT_WEIGHTS
