"""Error taxonomy.

Two categories exist:

    InputValidationError  malformed input, raised synchronously to the caller.
    Degenerate states     well-defined empty/default results.  Never raised;
                          logged at WARNING with a ``degenerate_state`` extra
                          so telemetry can tell them apart from real errors.
"""

from __future__ import annotations

import logging

from prefetch_oracle.domain.enums import DegenerateState


class InputValidationError(ValueError):
    """Raised when caller-supplied input is malformed.

    The offending input never reaches tracker or model state.
    """

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


def log_degenerate(
    logger: logging.Logger,
    state: DegenerateState,
    detail: str,
    *args: object,
) -> None:
    """Log a degenerate (non-fatal) condition in a machine-distinguishable way."""
    logger.warning(
        "degenerate[%s] " + detail,
        state.value,
        *args,
        extra={"degenerate_state": state.value},
    )
