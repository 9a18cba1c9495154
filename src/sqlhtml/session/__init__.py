"""Event bus between proxy sessions and the display layer."""

from sqlhtml.session.wire import EventType, Wire, WireEvent

__all__ = ["EventType", "Wire", "WireEvent"]
