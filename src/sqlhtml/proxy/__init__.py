"""Proxy engine — segment subprocess output into rendered response units.

A ``ProxySession`` accumulates raw chunks, detects the prompt that ends
each response with a ``BoundaryDetector``, renders the unit with the
session's backend, and emits the result. An ``OutputStage`` composes a
session in front of the original output sink.
"""

from sqlhtml.proxy.boundary import DEFAULT_PROMPT, BoundaryDetector
from sqlhtml.proxy.buffer import AccumulationBuffer
from sqlhtml.proxy.progress import ProgressReporter
from sqlhtml.proxy.session import ProxySession, RenderedUnit, start_session
from sqlhtml.proxy.stage import OutputStage

__all__ = [
    "DEFAULT_PROMPT",
    "AccumulationBuffer",
    "BoundaryDetector",
    "OutputStage",
    "ProgressReporter",
    "ProxySession",
    "RenderedUnit",
    "start_session",
]
