"""Wire protocol — decouples the proxy engine from the display layer.

Events flow from proxy sessions to display subscribers. A terminal
printer, a test harness, or an editor bridge all consume the same
events from the wire.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    UNIT = "unit"
    FLUSH = "flush"
    STATUS = "status"
    ERROR = "error"
    SESSION_END = "session_end"
    PTY_EXIT = "pty_exit"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Async message bus: proxy sessions -> display subscribers.

    Single-producer, multi-consumer broadcast. Producers may run in
    worker threads (renders happen off the event loop); call
    ``attach_loop()`` from the asyncio thread so those sends are
    marshalled onto the loop.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attach the event loop that owns the subscriber queues."""
        self._loop = loop or asyncio.get_running_loop()

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        if self._loop is not None and not self._on_loop_thread():
            self._loop.call_soon_threadsafe(self._dispatch, event)
            return
        self._dispatch(event)

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _dispatch(self, event: WireEvent | None) -> None:
        for q in self._subscribers:
            q.put_nowait(event)

    def send_unit(
        self,
        text: str,
        raw: str,
        backend: str,
        prompt: str = "",
        ok: bool = True,
        flushed: bool = False,
    ) -> None:
        """Emit a rendered response unit (or a teardown flush)."""
        self.send(
            WireEvent(
                type=EventType.FLUSH if flushed else EventType.UNIT,
                data={
                    "text": text,
                    "raw": raw,
                    "backend": backend,
                    "prompt": prompt,
                    "ok": ok,
                },
            )
        )

    def send_status(self, message: str) -> None:
        self.send(WireEvent(type=EventType.STATUS, data={"message": message}))

    def send_error(self, error: str) -> None:
        self.send(WireEvent(type=EventType.ERROR, data={"error": error}))

    def send_session_end(self, session_id: str) -> None:
        self.send(WireEvent(type=EventType.SESSION_END, data={"session_id": session_id}))

    def send_pty_exit(
        self,
        session_id: str,
        title: str,
        exit_code: int | None,
    ) -> None:
        """Notify subscribers that a PTY subprocess exited on its own."""
        self.send(
            WireEvent(
                type=EventType.PTY_EXIT,
                data={
                    "session_id": session_id,
                    "title": title,
                    "exit_code": exit_code,
                },
            )
        )

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        if self._closed:
            return
        self._closed = True
        if self._loop is not None and not self._on_loop_thread():
            self._loop.call_soon_threadsafe(self._dispatch, None)
        else:
            self._dispatch(None)
