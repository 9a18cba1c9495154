"""PTY Manager — manages multiple proxied PTY sessions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlhtml.pty.session import PTYSession

if TYPE_CHECKING:
    from sqlhtml.proxy.stage import OutputStage
    from sqlhtml.session.wire import Wire

logger = logging.getLogger(__name__)


@dataclass
class ProxiedProcess:
    """A running subprocess and the output stage in front of its sink."""

    pty: PTYSession
    stage: OutputStage


class PTYManager:
    """Manages the lifecycle of multiple proxied subprocesses.

    The manager ensures:
    - Each subprocess's output flows through its own output stage
    - Stages are deactivated (partial units flushed) when the subprocess
      exits or is killed
    - All sessions are killed on cleanup (no orphan processes)
    - Exit notifications are fired via Wire (if attached)
    """

    MAX_SESSIONS = 10

    def __init__(self, wire: Wire | None = None) -> None:
        self._sessions: dict[str, ProxiedProcess] = {}
        self._wire = wire
        # Stage flushes started by natural exits
        self._flushes: set[asyncio.Task] = set()

    async def spawn(
        self,
        command: list[str],
        stage: OutputStage,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        title: str = "",
        echo: bool = True,
    ) -> PTYSession:
        """Spawn a subprocess whose output is fed through ``stage``.

        Args:
            command: Command and arguments (e.g., ["sqlplus", "-s", "scott/tiger"]).
            stage: Output stage receiving raw chunks in arrival order.
            cwd: Working directory.
            env: Additional environment variables.
            title: Human-readable title for the session.
            echo: Whether the terminal echoes input back as output.

        Returns:
            The new PTY session.
        """
        if len(self._sessions) >= self.MAX_SESSIONS:
            oldest = next(iter(self._sessions))
            logger.warning("Max sessions reached, killing oldest: %s", oldest)
            await self.kill(oldest)

        session = PTYSession(
            command=command,
            cwd=cwd or ".",
            env=env or {},
            title=title or command[0],
            on_output=stage.feed_async,
            echo=echo,
        )

        wire = self._wire

        def _on_exit(s: PTYSession, exit_code: int | None) -> None:
            # Called on the event loop; the flush render runs in a worker
            task = asyncio.get_running_loop().create_task(stage.deactivate_async())
            self._flushes.add(task)
            task.add_done_callback(self._flushes.discard)
            self._sessions.pop(s.id, None)
            if wire is not None:
                wire.send_pty_exit(s.id, s.title, exit_code)

        session.set_on_exit(_on_exit)

        await session.start()
        self._sessions[session.id] = ProxiedProcess(pty=session, stage=stage)
        return session

    def get(self, session_id: str) -> PTYSession | None:
        """Get a session by ID."""
        entry = self._sessions.get(session_id)
        return entry.pty if entry else None

    def stage(self, session_id: str) -> OutputStage | None:
        """Get the output stage of a session by ID."""
        entry = self._sessions.get(session_id)
        return entry.stage if entry else None

    async def kill(self, session_id: str) -> None:
        """Kill a session, flush its stage, and stop tracking it.

        Unknown or already-dead sessions are ignored.
        """
        entry = self._sessions.pop(session_id, None)
        if entry is None:
            return
        entry.pty.kill()
        await entry.stage.deactivate_async()

    def list_sessions(self) -> list[dict[str, Any]]:
        """List all tracked sessions."""
        return [
            {
                "id": e.pty.id,
                "title": e.pty.title,
                "command": " ".join(e.pty.command),
                "alive": e.pty.alive,
                "status": e.pty.status.value,
                "intercepting": e.stage.active,
            }
            for e in self._sessions.values()
        ]

    async def cleanup(self) -> None:
        """Kill all sessions and wait for pending flushes. Called on shutdown."""
        for session_id in list(self._sessions.keys()):
            await self.kill(session_id)
        await self.wait_for_flushes()
        logger.info("All PTY sessions cleaned up")

    async def wait_for_flushes(self) -> None:
        """Wait until stages of exited sessions have finished flushing."""
        if self._flushes:
            await asyncio.gather(*list(self._flushes))

    def __len__(self) -> int:
        return len(self._sessions)
