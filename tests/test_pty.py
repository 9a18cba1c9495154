"""Tests for sqlhtml.pty (PTYSession, PTYManager) against real subprocesses."""

from __future__ import annotations

import asyncio
import sys
from typing import ClassVar

import pytest

from sqlhtml.proxy.session import ProxySession
from sqlhtml.proxy.stage import OutputStage
from sqlhtml.pty.manager import PTYManager
from sqlhtml.pty.session import PTYSession, PTYStatus
from sqlhtml.render.base import RendererBackend
from sqlhtml.session.wire import EventType, Wire

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX pty")


class UpperBackend(RendererBackend):
    name: ClassVar[str] = "upper"

    def render(self, markup: str) -> str:
        return markup.upper()


def _stage(out: list[str]) -> OutputStage:
    return OutputStage(out.append, lambda: ProxySession(UpperBackend()))


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


# ---------------------------------------------------------------------------
# PTYSession
# ---------------------------------------------------------------------------


class TestPTYSession:
    async def test_output_delivered_in_order(self) -> None:
        chunks: list[bytes] = []

        async def on_output(data: bytes) -> None:
            chunks.append(data)

        session = PTYSession(
            command=["sh", "-c", "printf 'one two three'"], on_output=on_output
        )
        await session.start()
        assert await session.wait_for_exit(timeout=5) == 0
        assert b"".join(chunks) == b"one two three"
        assert not session.alive

    async def test_write_reaches_subprocess(self) -> None:
        chunks: list[bytes] = []

        async def on_output(data: bytes) -> None:
            chunks.append(data)

        session = PTYSession(command=["cat"], on_output=on_output, echo=False)
        await session.start()
        try:
            session.write("hello")
            await _wait_for(lambda: b"hello" in b"".join(chunks))
            # No echo, so the line appears exactly once
            assert b"".join(chunks).count(b"hello") == 1
        finally:
            session.kill()
        assert session.status == PTYStatus.KILLED

    async def test_send_raw_after_kill_raises(self) -> None:
        session = PTYSession(command=["sleep", "10"])
        await session.start()
        session.kill()
        with pytest.raises(RuntimeError):
            session.send_raw(b"x")

    async def test_kill_twice_is_noop(self) -> None:
        session = PTYSession(command=["sleep", "10"])
        await session.start()
        session.kill()
        session.kill()
        assert session.status == PTYStatus.KILLED

    async def test_on_exit_called_for_natural_exit(self) -> None:
        exits: list[int | None] = []
        session = PTYSession(command=["sh", "-c", "exit 3"])
        session.set_on_exit(lambda s, code: exits.append(code))
        await session.start()
        await session.wait_for_exit(timeout=5)
        await _wait_for(lambda: bool(exits))
        assert session.status == PTYStatus.EXITED


# ---------------------------------------------------------------------------
# PTYManager
# ---------------------------------------------------------------------------


class TestPTYManager:
    async def test_rendered_unit_reaches_sink(self) -> None:
        out: list[str] = []
        stage = _stage(out)
        stage.activate()
        manager = PTYManager()
        session = await manager.spawn(
            ["sh", "-c", "printf '<p>x</p>\\nSQL> '"], stage, echo=False
        )
        await session.wait_for_exit(timeout=5)
        await _wait_for(lambda: bool(out))
        assert out[0] == "<P>X</P>\nSQL> "

    async def test_partial_unit_flushed_on_exit(self) -> None:
        out: list[str] = []
        wire = Wire()
        q = wire.subscribe()
        stage = _stage(out)
        stage.activate()
        manager = PTYManager(wire=wire)
        session = await manager.spawn(["sh", "-c", "printf '<p>partial</p>'"], stage)
        await session.wait_for_exit(timeout=5)
        await _wait_for(lambda: not stage.active)
        await manager.wait_for_flushes()
        assert out == ["<P>PARTIAL</P>"]
        assert len(manager) == 0
        types = []
        while not q.empty():
            event = q.get_nowait()
            if event is not None:
                types.append(event.type)
        assert EventType.PTY_EXIT in types

    async def test_passthrough_when_not_intercepting(self) -> None:
        out: list[str] = []
        stage = _stage(out)
        manager = PTYManager()
        session = await manager.spawn(["sh", "-c", "printf '<b>raw</b>'"], stage)
        await session.wait_for_exit(timeout=5)
        await _wait_for(lambda: "".join(out) == "<b>raw</b>")

    async def test_kill_and_cleanup(self) -> None:
        manager = PTYManager()
        stage = _stage([])
        stage.activate()
        a = await manager.spawn(["sleep", "10"], stage, title="first")
        b = await manager.spawn(["sleep", "10"], _stage([]))
        assert len(manager) == 2
        assert manager.get(a.id) is a
        assert manager.stage(a.id) is stage
        listed = {s["id"]: s for s in manager.list_sessions()}
        assert listed[a.id]["title"] == "first"
        assert listed[a.id]["intercepting"] is True
        assert listed[b.id]["intercepting"] is False

        await manager.kill(a.id)
        assert not a.alive
        assert not stage.active
        assert manager.get(a.id) is None

        await manager.cleanup()
        assert len(manager) == 0
        assert not b.alive

    async def test_kill_flushes_partial_unit(self) -> None:
        out: list[str] = []
        stage = _stage(out)
        stage.activate()
        manager = PTYManager()
        session = await manager.spawn(
            ["sh", "-c", "printf '<p>partial</p>'; sleep 10"], stage
        )
        await _wait_for(
            lambda: stage.session is not None and len(stage.session.buffer) == 14
        )
        await manager.kill(session.id)
        assert out == ["<P>PARTIAL</P>"]
        assert not stage.active

    async def test_kill_unknown_is_noop(self) -> None:
        await PTYManager().kill("nope")
