"""Renderer backends — convert HTML response units to plain text.

Three interchangeable variants, probed in priority order at session start:
an external tool fed over a pipe (w3m), an external tool fed through a
temporary file (lynx), and an in-process renderer (builtin).
"""

from sqlhtml.render.base import (
    BackendUnavailable,
    RenderFailure,
    RendererBackend,
    SqlHtmlError,
    normalize_output,
)
from sqlhtml.render.builtin import BuiltinBackend
from sqlhtml.render.file import FileBackend, LynxBackend
from sqlhtml.render.pipe import PipeBackend, W3mBackend
from sqlhtml.render.registry import BACKENDS, DEFAULT_PRIORITY, select_backend

__all__ = [
    "BACKENDS",
    "DEFAULT_PRIORITY",
    "BackendUnavailable",
    "BuiltinBackend",
    "FileBackend",
    "LynxBackend",
    "PipeBackend",
    "RenderFailure",
    "RendererBackend",
    "SqlHtmlError",
    "W3mBackend",
    "normalize_output",
    "select_backend",
]
