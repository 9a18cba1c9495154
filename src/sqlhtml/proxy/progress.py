"""Progress reporting on cumulative received bytes."""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Emit a status message each time the byte total crosses a step.

    Purely observational: nothing reads its state back.
    """

    def __init__(
        self,
        step: int = 1024,
        threshold: int = 0,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        if step <= 0:
            raise ValueError("step must be positive")
        self.step = step
        self.threshold = threshold
        self._on_status = on_status

    def report(self, previous_total: int, chunk_size: int) -> str | None:
        """Report a chunk; return the status message if one was emitted."""
        new_total = previous_total + chunk_size
        if new_total <= self.threshold:
            return None
        if new_total // self.step <= previous_total // self.step:
            return None
        message = f"Receiving response... {format_size(new_total)}"
        if self._on_status is not None:
            try:
                self._on_status(message)
            except Exception:
                logger.exception("Error in progress status callback")
        return message


def format_size(n: int) -> str:
    """Human-readable byte count."""
    if n < 1024:
        return f"{n} bytes"
    if n < 1024 * 1024:
        return f"{n / 1024:.0f} KiB"
    return f"{n / (1024 * 1024):.1f} MiB"
