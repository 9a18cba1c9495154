"""External renderers that read their input from a temporary file."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import ClassVar, Iterator

from sqlhtml.render.base import RenderFailure, RendererBackend
from sqlhtml.render.pipe import run_renderer

logger = logging.getLogger(__name__)


@contextmanager
def scratch_file(content: bytes, suffix: str = ".html") -> Iterator[Path]:
    """Write content to a uniquely named file in a private temp directory.

    The directory is removed on every exit path. Failure to remove it is
    logged and never propagated.
    """
    tmp_dir = Path(tempfile.mkdtemp(prefix="sqlhtml_"))
    try:
        path = tmp_dir / f"unit_{uuid.uuid4().hex[:8]}{suffix}"
        path.write_bytes(content)
        yield path
    finally:
        try:
            shutil.rmtree(tmp_dir)
        except OSError as e:
            logger.warning("Failed to remove temp dir %s: %s", tmp_dir, e)


class FileBackend(RendererBackend):
    """Hand markup to an external tool through a temporary file.

    For tools that cannot read HTML from a pipe.
    """

    encoding: ClassVar[str] = "utf-8"
    suffix: ClassVar[str] = ".html"

    def command(self, path: str) -> list[str]:
        """Argument vector of the renderer for the file at ``path``."""
        if self.executable is None:
            raise RenderFailure(f"{type(self).__name__} has no executable configured")
        return [self.executable, path]

    def render(self, markup: str) -> str:
        content = markup.encode(self.encoding, errors="replace")
        with scratch_file(content, suffix=self.suffix) as path:
            argv = self.command(os.fspath(path))
            logger.debug("Rendering %d bytes via %s (%s)", len(content), argv[0], path)
            return run_renderer(argv, timeout=self.timeout, encoding=self.encoding)


class LynxBackend(FileBackend):
    name: ClassVar[str] = "lynx"
    executable: ClassVar[str | None] = "lynx"
    # lynx -dump indents every line by three columns
    indent: ClassVar[int] = 3

    def command(self, path: str) -> list[str]:
        return [
            "lynx",
            "-dump",
            "-force_html",
            "-nolist",
            "-display_charset=utf-8",
            f"-width={self.width}",
            path,
        ]
