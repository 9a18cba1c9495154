"""Tests for sqlhtml.proxy.buffer.AccumulationBuffer."""

from __future__ import annotations

from sqlhtml.proxy.buffer import AccumulationBuffer


class TestAccumulationBufferBasics:
    def test_empty(self) -> None:
        buf = AccumulationBuffer()
        assert len(buf) == 0
        assert not buf
        assert buf.read_all() == ""

    def test_append(self) -> None:
        buf = AccumulationBuffer()
        buf.append("<p>")
        buf.append("hi</p>")
        assert len(buf) == 9
        assert buf
        assert buf.read_all() == "<p>hi</p>"

    def test_append_empty_is_noop(self) -> None:
        buf = AccumulationBuffer()
        buf.append("")
        assert len(buf) == 0

    def test_read_all_does_not_consume(self) -> None:
        buf = AccumulationBuffer()
        buf.append("abc")
        assert buf.read_all() == "abc"
        assert buf.read_all() == "abc"
        assert len(buf) == 3


class TestAccumulationBufferTail:
    def test_read_tail_within_last_chunk(self) -> None:
        buf = AccumulationBuffer()
        buf.append("hello ")
        buf.append("world")
        assert buf.read_tail(5) == "world"
        assert buf.read_tail(3) == "rld"

    def test_read_tail_spans_chunks(self) -> None:
        buf = AccumulationBuffer()
        for chunk in ("ab", "c", "", "def", "g"):
            buf.append(chunk)
        assert buf.read_tail(4) == "defg"
        assert buf.read_tail(5) == "cdefg"
        assert buf.read_tail(6) == "bcdefg"

    def test_read_tail_longer_than_buffer(self) -> None:
        buf = AccumulationBuffer()
        buf.append("hello ")
        buf.append("world")
        assert buf.read_tail(100) == "hello world"

    def test_read_tail_non_positive(self) -> None:
        buf = AccumulationBuffer()
        buf.append("abc")
        assert buf.read_tail(0) == ""
        assert buf.read_tail(-1) == ""

    def test_read_tail_empty_buffer(self) -> None:
        assert AccumulationBuffer().read_tail(5) == ""

    def test_read_tail_keeps_chunks_separate(self) -> None:
        buf = AccumulationBuffer()
        for _ in range(100):
            buf.append("0123456789")
        buf.read_tail(6)
        assert len(buf._chunks) == 100
        assert len(buf) == 1000


class TestAccumulationBufferExtract:
    def test_extract_returns_everything(self) -> None:
        buf = AccumulationBuffer()
        buf.append("a")
        buf.append("b")
        buf.append("c")
        assert buf.extract() == "abc"

    def test_extract_resets(self) -> None:
        buf = AccumulationBuffer()
        buf.append("abc")
        buf.extract()
        assert len(buf) == 0
        assert buf.read_all() == ""
        assert buf.read_tail(3) == ""

    def test_extract_empty(self) -> None:
        assert AccumulationBuffer().extract() == ""

    def test_append_after_extract(self) -> None:
        buf = AccumulationBuffer()
        buf.append("abc")
        buf.extract()
        buf.append("de")
        assert len(buf) == 2
        assert buf.read_all() == "de"

    def test_append_after_read_all(self) -> None:
        buf = AccumulationBuffer()
        buf.append("a")
        buf.append("b")
        buf.read_all()
        buf.append("c")
        assert buf.extract() == "abc"
