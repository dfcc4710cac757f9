"""Identifier generation for sessions and prediction sets."""

from __future__ import annotations

from uuid import uuid4


def new_id() -> str:
    """Generate a random UUID v4 rendered as a string."""
    return str(uuid4())
