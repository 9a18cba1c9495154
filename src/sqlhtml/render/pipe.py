"""External renderers driven over standard input / output."""

from __future__ import annotations

import logging
import subprocess
from typing import ClassVar

from sqlhtml.render.base import RenderFailure, RendererBackend

logger = logging.getLogger(__name__)


def run_renderer(
    argv: list[str],
    stdin: bytes | None = None,
    timeout: float | None = None,
    encoding: str = "utf-8",
) -> str:
    """Run an external renderer and return its decoded standard output.

    The child is killed if it outlives ``timeout``.

    Raises:
        RenderFailure: the tool could not be launched, timed out, or
            exited with a non-zero status.
    """
    try:
        proc = subprocess.run(
            argv,
            input=stdin,
            stdin=None if stdin is not None else subprocess.DEVNULL,
            capture_output=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise RenderFailure(f"{argv[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise RenderFailure(f"Failed to run {argv[0]}: {e}") from e

    if proc.returncode != 0:
        stderr = proc.stderr.decode(encoding, errors="replace").strip()
        raise RenderFailure(
            f"{argv[0]} exited with status {proc.returncode}: {stderr[:200]}"
        )
    return proc.stdout.decode(encoding, errors="replace")


class PipeBackend(RendererBackend):
    """Feed markup to an external tool on stdin, read text from stdout.

    Fastest variant: no intermediate files.
    """

    encoding: ClassVar[str] = "utf-8"

    def command(self) -> list[str]:
        """Argument vector of the renderer."""
        if self.executable is None:
            raise RenderFailure(f"{type(self).__name__} has no executable configured")
        return [self.executable]

    def render(self, markup: str) -> str:
        argv = self.command()
        logger.debug("Rendering %d chars via %s", len(markup), argv[0])
        return run_renderer(
            argv,
            stdin=markup.encode(self.encoding, errors="replace"),
            timeout=self.timeout,
            encoding=self.encoding,
        )


class W3mBackend(PipeBackend):
    name: ClassVar[str] = "w3m"
    executable: ClassVar[str | None] = "w3m"

    def command(self) -> list[str]:
        return [
            "w3m",
            "-dump",
            "-T",
            "text/html",
            "-I",
            "UTF-8",
            "-O",
            "UTF-8",
            "-cols",
            str(self.width),
        ]
