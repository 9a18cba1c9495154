"""Output stage — the interception point in front of the display sink.

The stage is composed between the subprocess output and the original
sink. While active it routes chunks through a ``ProxySession`` and
forwards only rendered units; while inactive it forwards chunks as-is.
"""

from __future__ import annotations

import codecs
import logging
from typing import Callable

from sqlhtml.proxy.session import ProxySession, RenderedUnit

logger = logging.getLogger(__name__)


class OutputStage:
    """Stream-processing stage with an on/off interception mode.

    Args:
        sink: The original consumer of subprocess output.
        session_factory: Creates a fresh ``ProxySession`` each time
            interception is activated. May raise ``BackendUnavailable``.
        encoding: Used to decode chunks while interception is off.
    """

    def __init__(
        self,
        sink: Callable[[str], None],
        session_factory: Callable[[], ProxySession],
        encoding: str = "utf-8",
    ) -> None:
        self._sink = sink
        self._factory = session_factory
        self._session: ProxySession | None = None
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    @property
    def active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> ProxySession | None:
        return self._session

    def activate(self) -> ProxySession:
        """Start intercepting. Returns the (possibly existing) session."""
        if self._session is None:
            self._session = self._factory()
            logger.info("Interception on (session %s)", self._session.id)
        return self._session

    def deactivate(self) -> RenderedUnit | None:
        """Stop intercepting, flushing any partial unit to the sink."""
        session, self._session = self._session, None
        if session is None:
            return None
        unit = session.close()
        if unit is not None:
            self._forward(unit.display)
        logger.info("Interception off (session %s)", session.id)
        return unit

    async def deactivate_async(self) -> RenderedUnit | None:
        """``deactivate()`` with the flush render in a worker thread.

        Interception is off as soon as this is called; chunks fed while
        the flush renders pass straight through.
        """
        session, self._session = self._session, None
        if session is None:
            return None
        unit = await session.close_async()
        if unit is not None:
            self._forward(unit.display)
        logger.info("Interception off (session %s)", session.id)
        return unit

    def toggle(self) -> bool:
        """Flip interception; return the new state."""
        if self._session is None:
            self.activate()
        else:
            self.deactivate()
        return self.active

    def feed(self, chunk: bytes | str) -> None:
        """Deliver one raw chunk from the subprocess."""
        session = self._session
        if session is None:
            self._passthrough(chunk)
            return
        unit = session.accept(chunk)
        if unit is not None:
            self._forward(unit.display)

    async def feed_async(self, chunk: bytes | str) -> None:
        session = self._session
        if session is None:
            self._passthrough(chunk)
            return
        unit = await session.accept_async(chunk)
        if unit is not None:
            self._forward(unit.display)

    def _passthrough(self, chunk: bytes | str) -> None:
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        if text:
            self._forward(text)

    def _forward(self, text: str) -> None:
        try:
            self._sink(text)
        except Exception:
            logger.exception("Error in output sink")
