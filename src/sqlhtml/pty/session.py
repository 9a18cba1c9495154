"""PTY session — runs the interactive subprocess whose output is proxied."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import pty
import signal
import subprocess
import termios
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

OutputCallback = Callable[[bytes], Awaitable[None]]


class PTYStatus(enum.Enum):
    """Lifecycle states for a PTY session."""

    RUNNING = "running"
    KILLING = "killing"  # Kill requested, waiting for process to die
    KILLED = "killed"  # Killed by us (SIGKILL)
    EXITED = "exited"  # Process exited on its own


@dataclass
class PTYSession:
    """A managed pseudo-terminal running one interactive subprocess.

    Raw output is read in 4 KiB chunks and handed, strictly in arrival
    order, to ``on_output``. The next read is not delivered until the
    callback has finished with the previous chunk, so the callback sees
    one chunk at a time.

    Uses subprocess.Popen (not os.fork) to avoid deadlocks when
    spawned from within an asyncio event loop on macOS.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    command: list[str] = field(default_factory=list)
    cwd: str = field(default_factory=os.getcwd)
    env: dict[str, str] = field(default_factory=dict)
    title: str = ""
    on_output: OutputCallback | None = None
    echo: bool = True  # Terminal echo of our own input

    # Internal state
    _master_fd: int = field(default=-1, init=False)
    _proc: subprocess.Popen | None = field(default=None, init=False)
    _pid: int = field(default=0, init=False)
    _pgid: int = field(default=0, init=False)
    _reader_task: asyncio.Task | None = field(default=None, init=False)
    _status: PTYStatus = field(default=PTYStatus.RUNNING, init=False)
    _on_exit: Callable[[PTYSession, int | None], None] | None = field(
        default=None, init=False
    )

    def set_on_exit(self, callback: Callable[[PTYSession, int | None], None]) -> None:
        """Set a callback to be invoked when the process exits on its own.

        Not called when the session is killed via kill().
        """
        self._on_exit = callback

    async def start(self) -> None:
        """Spawn the process in a new PTY with its own process group."""
        master_fd, slave_fd = pty.openpty()
        self._master_fd = master_fd

        if not self.echo:
            attrs = termios.tcgetattr(slave_fd)
            attrs[3] &= ~termios.ECHO
            termios.tcsetattr(slave_fd, termios.TCSANOW, attrs)

        env = {**os.environ, **self.env}
        env["TERM"] = "dumb"  # Minimize ANSI escape sequences

        try:
            self._proc = subprocess.Popen(
                self.command,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,  # Creates new process group
                env=env,
                cwd=self.cwd,
            )
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        self._pid = self._proc.pid
        self._pgid = os.getpgid(self._pid)
        self._status = PTYStatus.RUNNING

        self._reader_task = asyncio.create_task(self._read_loop())

        logger.info(
            "PTY session %s started: pid=%d pgid=%d cmd=%s",
            self.id,
            self._pid,
            self._pgid,
            " ".join(self.command),
        )

    async def _read_loop(self) -> None:
        """Continuously read output from the PTY master fd."""
        loop = asyncio.get_running_loop()
        try:
            while self._status == PTYStatus.RUNNING:
                try:
                    data = await loop.run_in_executor(
                        None, lambda: os.read(self._master_fd, 4096)
                    )
                except OSError:
                    break

                if not data:
                    break

                if self.on_output is not None:
                    await self.on_output(data)
        except Exception as e:
            logger.debug("PTY reader %s ended: %s", self.id, e)
        finally:
            # Only transition to EXITED if we weren't already killing
            if self._status == PTYStatus.RUNNING:
                exit_code = self._proc.poll() if self._proc else None
                self._status = PTYStatus.EXITED
                logger.info("PTY session %s exited (code=%s)", self.id, exit_code)
                if self._on_exit:
                    try:
                        self._on_exit(self, exit_code)
                    except Exception:
                        logger.exception(
                            "Error in on_exit callback for session %s", self.id
                        )

    def write(self, data: str) -> None:
        """Send a line of input to the subprocess, appending a newline if missing."""
        if not data.endswith("\n"):
            data += "\n"
        self.send_raw(data.encode())

    def send_raw(self, data: bytes) -> None:
        """Send bytes to the subprocess unchanged."""
        if self._status != PTYStatus.RUNNING:
            raise RuntimeError(f"PTY session {self.id} is not running")
        os.write(self._master_fd, data)

    def kill(self) -> None:
        """Kill the entire process tree. No-op if it is already gone."""
        if self._status not in (PTYStatus.RUNNING, PTYStatus.KILLING):
            return

        self._status = PTYStatus.KILLING
        try:
            os.killpg(self._pgid, signal.SIGKILL)
            logger.info("Killed PTY session %s (pgid=%d)", self.id, self._pgid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", self._pgid)
        except OSError as e:
            logger.warning("Error killing PTY session %s: %s", self.id, e)

        # Wait for process to be reaped (avoids zombies)
        if self._proc is not None:
            try:
                self._proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                logger.warning("PTY session %s did not exit after SIGKILL", self.id)

        try:
            os.close(self._master_fd)
        except OSError:
            pass

        self._status = PTYStatus.KILLED

    @property
    def alive(self) -> bool:
        return self._status == PTYStatus.RUNNING

    @property
    def status(self) -> PTYStatus:
        return self._status

    async def wait_for_exit(self, timeout: float | None = None) -> int | None:
        """Wait for the process to exit. Returns exit code or None on timeout."""
        if self._proc is None:
            return -1
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while deadline is None or loop.time() < deadline:
            ret = self._proc.poll()
            if ret is not None:
                if self._reader_task is not None:
                    # Let the reader drain the remaining output
                    await asyncio.wait({self._reader_task}, timeout=1.0)
                if self._status == PTYStatus.RUNNING:
                    self._status = PTYStatus.EXITED
                return ret
            await asyncio.sleep(0.1)
        return None

    def __del__(self) -> None:
        """Ensure cleanup on garbage collection."""
        if self._status in (PTYStatus.RUNNING, PTYStatus.KILLING) and self._pgid:
            self.kill()
