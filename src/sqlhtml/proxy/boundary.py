"""Boundary detection — recognise the prompt that ends a response unit."""

from __future__ import annotations

import re

# SQL*Plus default prompt at the start of a line
DEFAULT_PROMPT = r"^SQL> "


class BoundaryDetector:
    """Find a prompt anchored at the very end of buffered text.

    The pattern only matches when nothing follows the prompt, so a match
    means the whole buffer is one complete response unit.

    Args:
        prompt: Regex for the prompt. Compiled with ``re.MULTILINE`` so
                ``^`` means start of line.
        window: If set, only the last ``window`` characters are scanned.
                Must be at least as long as any prompt match, since the
                match has to end at the end of the buffer.
    """

    def __init__(self, prompt: str = DEFAULT_PROMPT, window: int | None = None) -> None:
        if window is not None and window <= 0:
            raise ValueError("window must be positive")
        self.prompt = prompt
        self.pattern = re.compile(f"(?:{prompt})\\Z", re.MULTILINE)
        self.window = window

    @classmethod
    def literal(cls, prompt: str, window: int | None = None) -> BoundaryDetector:
        """Build a detector for a fixed prompt string at the start of a line.

        The scan window defaults to one character more than the prompt,
        enough to see the newline that precedes it.
        """
        if not prompt:
            raise ValueError("prompt must not be empty")
        minimum = len(prompt) + 1
        if window is None:
            window = minimum
        elif window < minimum:
            raise ValueError(
                f"window {window} is shorter than the prompt ({minimum} chars needed)"
            )
        return cls(prompt="^" + re.escape(prompt), window=window)

    def search(self, text: str) -> re.Match[str] | None:
        """Return the prompt match at the end of ``text``, if any."""
        start = 0
        if self.window is not None:
            start = max(0, len(text) - self.window)
        return self.pattern.search(text, start)

    def find(self, text: str) -> int | None:
        """Return the offset just after the prompt, or None.

        A returned offset always equals ``len(text)``.
        """
        m = self.search(text)
        return m.end() if m else None

    def __repr__(self) -> str:
        return f"BoundaryDetector(prompt={self.prompt!r}, window={self.window})"
