"""Proxy session — the segmentation engine for one subprocess connection.

Raw output chunks go in, in arrival order. Whenever the buffered markup
ends with the prompt, the whole buffer is handed to the session's
renderer backend and the rendered text comes out as a ``RenderedUnit``.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from sqlhtml.proxy.boundary import DEFAULT_PROMPT, BoundaryDetector
from sqlhtml.proxy.buffer import AccumulationBuffer
from sqlhtml.proxy.progress import ProgressReporter
from sqlhtml.render.base import RenderFailure, RendererBackend
from sqlhtml.render.registry import select_backend

if TYPE_CHECKING:
    from sqlhtml.config import SqlHtmlConfig
    from sqlhtml.session.wire import Wire

logger = logging.getLogger(__name__)


@dataclass
class RenderedUnit:
    """One response unit after rendering.

    ``raw`` is everything buffered for the unit, prompt included.
    ``text`` is the rendered markup that preceded the prompt, or that
    markup unmodified when rendering failed (``ok`` is False).
    ``prompt`` is the matched prompt, passed through verbatim; it is
    empty for a unit flushed at teardown.
    """

    text: str
    raw: str
    backend: str
    prompt: str = ""
    ok: bool = True
    error: str | None = None
    flushed: bool = False

    @property
    def display(self) -> str:
        """What the display layer should show for this unit.

        A failed render shows exactly the raw markup.
        """
        if not self.ok:
            return self.text + self.prompt
        if not self.text:
            return self.prompt
        if not self.prompt:
            return self.text
        sep = "" if self.text.endswith("\n") else "\n"
        return self.text + sep + self.prompt


class ProxySession:
    """Buffers subprocess output and renders it one response at a time.

    ``accept()`` must be called in arrival order; a per-session lock
    serializes callers. At most one response unit is accumulating at a
    time. Sessions share no mutable state with each other.
    """

    def __init__(
        self,
        backend: RendererBackend,
        detector: BoundaryDetector | None = None,
        wire: Wire | None = None,
        progress: ProgressReporter | None = None,
        encoding: str = "utf-8",
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex[:8]
        self.backend = backend
        self.detector = detector or BoundaryDetector()
        self.buffer = AccumulationBuffer()
        self.cumulative_received = 0
        self._wire = wire
        self._progress = progress
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def start(
        cls,
        prompt: str = DEFAULT_PROMPT,
        backends: Iterable[str] | None = None,
        wire: Wire | None = None,
        width: int = 200,
        render_timeout: float | None = 30.0,
        scan_window: int | None = None,
        progress_step: int | None = 1024,
        progress_threshold: int = 0,
        encoding: str = "utf-8",
    ) -> ProxySession:
        """Create a session, committing to the first available backend.

        Raises:
            BackendUnavailable: no backend in ``backends`` can run.
        """
        backend = select_backend(backends, width=width, timeout=render_timeout)
        progress = None
        if progress_step:
            progress = ProgressReporter(
                step=progress_step,
                threshold=progress_threshold,
                on_status=wire.send_status if wire is not None else None,
            )
        session = cls(
            backend=backend,
            detector=BoundaryDetector(prompt, window=scan_window),
            wire=wire,
            progress=progress,
            encoding=encoding,
        )
        logger.info(
            "Proxy session %s started: backend=%s prompt=%r",
            session.id,
            backend.name,
            prompt,
        )
        return session

    # ------------------------------------------------------------------
    # Chunk processing
    # ------------------------------------------------------------------

    def accept(self, chunk: bytes | str) -> RenderedUnit | None:
        """Process one raw chunk; return a unit when a response completes."""
        with self._lock:
            if self._closed:
                logger.debug("Session %s closed, dropping %d-byte chunk", self.id, len(chunk))
                return None

            size = len(chunk) if isinstance(chunk, bytes) else len(chunk.encode())
            if self._progress is not None:
                self._progress.report(self.cumulative_received, size)
            self.cumulative_received += size

            text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
            self.buffer.append(text)

            prompt_start = self._find_boundary()
            if prompt_start is None:
                return None

            # The match ends at the end of the buffer, so the whole
            # buffer is the unit.
            raw = self.buffer.extract()
            unit = self._render(raw, prompt_start=prompt_start)

        self._emit(unit)
        if self._wire is not None:
            # Clear any transient progress indicator
            self._wire.send_status("")
        return unit

    async def accept_async(self, chunk: bytes | str) -> RenderedUnit | None:
        """``accept()`` in a worker thread, keeping the event loop free.

        If the awaiting task is cancelled the render still runs to
        completion in the worker.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.accept, chunk)

    def _find_boundary(self) -> int | None:
        """Return the buffer offset where the prompt starts, or None.

        With a scan window only the tail of the buffer is read. One extra
        character is kept in front of the window so ``^`` can tell whether
        the window starts a line.
        """
        window = self.detector.window
        if window is None:
            text = self.buffer.read_all()
            offset = 0
        else:
            text = self.buffer.read_tail(window + 1)
            offset = len(self.buffer) - len(text)
        match = self.detector.search(text)
        if match is None:
            return None
        return offset + match.start()

    def _render(self, raw: str, prompt_start: int | None = None) -> RenderedUnit:
        if prompt_start is None:
            prompt_start = len(raw)
        body, prompt = raw[:prompt_start], raw[prompt_start:]
        name = self.backend.name
        if not body.strip():
            # Command produced no output before the prompt
            return RenderedUnit(text="", raw=raw, backend=name, prompt=prompt)
        try:
            text = self.backend.convert(body)
        except Exception as e:
            if isinstance(e, RenderFailure):
                error = str(e)
            else:
                error = f"{type(e).__name__}: {e}"
            logger.warning(
                "Render failed in session %s (backend=%s): %s", self.id, name, error
            )
            if self._wire is not None:
                self._wire.send_error(f"Render failed ({name}): {error}")
            # Pass the markup through unmodified
            return RenderedUnit(
                text=body,
                raw=raw,
                backend=name,
                prompt=prompt,
                ok=False,
                error=error,
            )
        return RenderedUnit(text=text, raw=raw, backend=name, prompt=prompt)

    def _emit(self, unit: RenderedUnit) -> None:
        if self._wire is not None:
            self._wire.send_unit(
                unit.text,
                unit.raw,
                unit.backend,
                prompt=unit.prompt,
                ok=unit.ok,
                flushed=unit.flushed,
            )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> RenderedUnit | None:
        """End the session, flushing any partial unit exactly once.

        Closing an already closed session is a no-op.
        """
        with self._lock:
            if self._closed:
                return None
            self._closed = True
            self.buffer.append(self._decoder.decode(b"", final=True))
            raw = self.buffer.extract()
            unit = None
            if raw:
                unit = self._render(raw)
                unit.flushed = True

        if unit is not None:
            logger.info("Session %s flushed %d chars on close", self.id, len(unit.raw))
            self._emit(unit)
        if self._wire is not None:
            self._wire.send_status("")
            self._wire.send_session_end(self.id)
        logger.info(
            "Proxy session %s closed (%d bytes received)",
            self.id,
            self.cumulative_received,
        )
        return unit

    async def close_async(self) -> RenderedUnit | None:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.close)

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        return (
            f"ProxySession(id={self.id!r}, backend={self.backend.name!r}, "
            f"buffered={len(self.buffer)}, closed={self._closed})"
        )


def start_session(config: SqlHtmlConfig, wire: Wire | None = None) -> ProxySession:
    """Create a proxy session from configuration."""
    progress = config.progress
    return ProxySession.start(
        prompt=config.prompt,
        backends=config.backends,
        wire=wire,
        width=config.width,
        render_timeout=config.render_timeout,
        scan_window=config.scan_window,
        progress_step=progress.step if progress.enabled else None,
        progress_threshold=progress.threshold,
        encoding=config.encoding,
    )
