"""Base renderer classes and output normalization."""

from __future__ import annotations

import logging
import re
import shutil
from abc import ABC, abstractmethod
from typing import Callable, ClassVar

logger = logging.getLogger(__name__)

# Two or more blank lines at the very start of the output
_LEADING_BLANKS_RE = re.compile(r"\A(?:[ \t]*\r?\n){2,}")


class SqlHtmlError(Exception):
    """Base class for sqlhtml errors."""


class BackendUnavailable(SqlHtmlError):
    """No renderer backend in the priority list can run on this machine."""


class RenderFailure(SqlHtmlError):
    """A backend failed to convert a response unit."""


def normalize_output(text: str, indent: int = 0) -> str:
    """Normalize backend output before it reaches the display.

    Args:
        text: Raw backend output.
        indent: Number of leading spaces the backend prefixes every line
                with. Stripped from each line where present.

    Returns:
        Text with the indentation artifact removed, leading blank lines
        collapsed to at most one, and trailing newlines stripped.
    """
    if indent > 0:
        text = re.sub(rf"(?m)^ {{{indent}}}", "", text)
    text = _LEADING_BLANKS_RE.sub("\n", text)
    return text.rstrip("\r\n")


class RendererBackend(ABC):
    """Base class for all renderer backends.

    Subclasses implement ``render()``; callers use ``convert()``, which
    renders and then applies the shared normalization.

    Usage:
        class MyBackend(RendererBackend):
            name = "mine"

            def render(self, markup: str) -> str:
                return markup
    """

    name: ClassVar[str]
    indent: ClassVar[int] = 0
    executable: ClassVar[str | None] = None

    def __init__(self, width: int = 200, timeout: float | None = 30.0) -> None:
        self.width = width
        self.timeout = timeout

    @classmethod
    def available(cls, which: Callable[[str], str | None] = shutil.which) -> bool:
        """Whether the backend's external tool can be found."""
        if cls.executable is None:
            return True
        return which(cls.executable) is not None

    @abstractmethod
    def render(self, markup: str) -> str:
        """Convert markup to text. May raise RenderFailure."""
        ...

    def convert(self, markup: str) -> str:
        """Render markup and normalize the result."""
        return normalize_output(self.render(markup), indent=self.indent)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(width={self.width}, timeout={self.timeout})"
