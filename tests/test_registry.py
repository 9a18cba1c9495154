"""Tests for sqlhtml.render.registry (backend selection policy)."""

from __future__ import annotations

import pytest

from sqlhtml.render.base import BackendUnavailable
from sqlhtml.render.builtin import BuiltinBackend
from sqlhtml.render.file import LynxBackend
from sqlhtml.render.pipe import W3mBackend
from sqlhtml.render.registry import (
    BACKENDS,
    DEFAULT_PRIORITY,
    probe_backends,
    select_backend,
)


def _which(*present: str):
    def which(name: str) -> str | None:
        return f"/usr/bin/{name}" if name in present else None

    return which


class TestRegistry:
    def test_known_backends(self) -> None:
        assert set(BACKENDS) == {"w3m", "lynx", "builtin"}

    def test_default_priority_fastest_first(self) -> None:
        assert DEFAULT_PRIORITY == ["w3m", "lynx", "builtin"]

    def test_names_match_classes(self) -> None:
        for name, cls in BACKENDS.items():
            assert cls.name == name


class TestSelectBackend:
    def test_prefers_pipe_backend(self) -> None:
        backend = select_backend(which=_which("w3m", "lynx"))
        assert isinstance(backend, W3mBackend)

    def test_falls_back_to_file_backend(self) -> None:
        backend = select_backend(which=_which("lynx"))
        assert isinstance(backend, LynxBackend)

    def test_falls_back_to_builtin(self) -> None:
        backend = select_backend(which=_which())
        assert isinstance(backend, BuiltinBackend)

    def test_custom_priority(self) -> None:
        backend = select_backend(["lynx", "w3m"], which=_which("w3m", "lynx"))
        assert isinstance(backend, LynxBackend)

    def test_none_available_raises(self) -> None:
        with pytest.raises(BackendUnavailable, match="w3m, lynx"):
            select_backend(["w3m", "lynx"], which=_which())

    def test_empty_priority_raises(self) -> None:
        with pytest.raises(BackendUnavailable):
            select_backend([], which=_which("w3m"))

    def test_unknown_backend_skipped(self) -> None:
        backend = select_backend(["nope", "builtin"], which=_which())
        assert isinstance(backend, BuiltinBackend)

    def test_options_passed_through(self) -> None:
        backend = select_backend(["builtin"], width=90, timeout=5.0)
        assert backend.width == 90
        assert backend.timeout == 5.0

    def test_custom_registry(self) -> None:
        backend = select_backend(
            ["text"], which=_which(), registry={"text": BuiltinBackend}
        )
        assert isinstance(backend, BuiltinBackend)


class TestProbeBackends:
    def test_reports_in_order(self) -> None:
        result = probe_backends(which=_which("lynx"))
        assert result == [("w3m", False), ("lynx", True), ("builtin", True)]

    def test_unknown_reported_unavailable(self) -> None:
        assert probe_backends(["nope"], which=_which()) == [("nope", False)]
