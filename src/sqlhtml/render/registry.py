"""Backend registry and selection policy."""

from __future__ import annotations

import logging
import shutil
from typing import Callable, Iterable

from sqlhtml.render.base import BackendUnavailable, RendererBackend
from sqlhtml.render.builtin import BuiltinBackend
from sqlhtml.render.file import LynxBackend
from sqlhtml.render.pipe import W3mBackend

logger = logging.getLogger(__name__)

# Identifier -> implementation. Order is the default priority.
BACKENDS: dict[str, type[RendererBackend]] = {
    W3mBackend.name: W3mBackend,
    LynxBackend.name: LynxBackend,
    BuiltinBackend.name: BuiltinBackend,
}

DEFAULT_PRIORITY: list[str] = list(BACKENDS)


def select_backend(
    priority: Iterable[str] | None = None,
    width: int = 200,
    timeout: float | None = 30.0,
    which: Callable[[str], str | None] = shutil.which,
    registry: dict[str, type[RendererBackend]] | None = None,
) -> RendererBackend:
    """Instantiate the first available backend in ``priority`` order.

    Args:
        priority: Backend identifiers, most preferred first.
        width: Output width handed to the backend.
        timeout: Per-render timeout in seconds for external tools.
        which: Executable probe, ``shutil.which`` by default.
        registry: Identifier -> class mapping, ``BACKENDS`` by default.

    Raises:
        BackendUnavailable: none of the listed backends can run.
    """
    registry = BACKENDS if registry is None else registry
    names = list(priority) if priority is not None else list(registry)
    for name in names:
        cls = registry.get(name)
        if cls is None:
            logger.warning("Unknown renderer backend %r, skipping", name)
            continue
        if cls.available(which):
            logger.info("Selected renderer backend %s", name)
            return cls(width=width, timeout=timeout)
        logger.debug("Renderer backend %s not available", name)
    raise BackendUnavailable(
        f"No renderer backend available (tried: {', '.join(names) or 'none'})"
    )


def probe_backends(
    priority: Iterable[str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> list[tuple[str, bool]]:
    """Report availability of each backend, in priority order."""
    names = list(priority) if priority is not None else DEFAULT_PRIORITY
    return [
        (name, name in BACKENDS and BACKENDS[name].available(which))
        for name in names
    ]
