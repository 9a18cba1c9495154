"""Accumulation buffer for a proxy session."""

from __future__ import annotations

import threading


class AccumulationBuffer:
    """Thread-safe store of markup received since the last boundary.

    Chunks are kept as a list. ``read_tail()`` walks the list from the
    end without joining it, so a bounded tail read costs the same however
    long the response grows. Only ``read_all()`` and ``extract()`` join.
    """

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._length: int = 0
        self._lock = threading.Lock()

    def append(self, text: str) -> None:
        """Append decoded text to the buffer."""
        if not text:
            return
        with self._lock:
            self._chunks.append(text)
            self._length += len(text)

    def read_all(self) -> str:
        """Read the buffered content without consuming it."""
        with self._lock:
            return "".join(self._chunks)

    def read_tail(self, n: int) -> str:
        """Read the last ``n`` characters without consuming them."""
        if n <= 0:
            return ""
        parts: list[str] = []
        needed = n
        with self._lock:
            for chunk in reversed(self._chunks):
                if len(chunk) >= needed:
                    parts.append(chunk[len(chunk) - needed :])
                    break
                parts.append(chunk)
                needed -= len(chunk)
        return "".join(reversed(parts))

    def extract(self) -> str:
        """Return the whole buffer and reset it to empty."""
        with self._lock:
            text = "".join(self._chunks)
            self._chunks.clear()
            self._length = 0
            return text

    def __len__(self) -> int:
        with self._lock:
            return self._length

    def __bool__(self) -> bool:
        return len(self) > 0
