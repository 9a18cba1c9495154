"""In-process renderer — no external tools required.

Parses the markup with ``html.parser`` and lays tables out with Rich.
Slowest of the backends and only approximately faithful to a real
browser dump, so it is the last resort in the default priority order.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import ClassVar

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from sqlhtml.render.base import RenderFailure, RendererBackend

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

_BLOCK_TAGS = frozenset(
    {
        "p", "div", "h1", "h2", "h3", "h4", "h5", "h6",
        "ul", "ol", "li", "pre", "blockquote", "hr", "caption",
    }
)
_SKIP_TAGS = frozenset({"head", "title", "script", "style"})


@dataclass
class TableBlock:
    """A parsed HTML table: rows of cell strings."""

    rows: list[list[str]] = field(default_factory=list)
    header_rows: set[int] = field(default_factory=set)

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)


class _MarkupParser(HTMLParser):
    """Split markup into text lines and tables.

    Nested tables are flattened into the text of the enclosing cell.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.blocks: list[str | TableBlock] = []
        self._inline: list[str] = []
        self._skip = 0
        self._pre = 0
        self._table: TableBlock | None = None
        self._table_depth = 0
        self._row: list[str] | None = None
        self._row_is_header = False
        self._cell: list[str] | None = None

    # -- text helpers ---------------------------------------------------

    def _flush_line(self, keep_empty: bool = False) -> None:
        text = "".join(self._inline)
        self._inline = []
        if not self._pre:
            text = text.strip()
        if text or keep_empty:
            self.blocks.append(text)

    def _paragraph_break(self) -> None:
        self._flush_line()
        if self.blocks and self.blocks[-1] != "":
            self.blocks.append("")

    # -- parser callbacks -----------------------------------------------

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _SKIP_TAGS:
            self._skip += 1
            return
        if tag == "table":
            self._table_depth += 1
            if self._table_depth == 1:
                self._paragraph_break()
                self._table = TableBlock()
            return
        if self._table_depth > 1:
            if tag in ("td", "th", "br"):
                self._cell_append(" ")
            return
        if self._table is not None:
            if tag == "tr":
                self._end_row()
                self._row = []
                self._row_is_header = True
            elif tag in ("td", "th"):
                self._end_cell()
                if self._row is None:
                    self._row = []
                    self._row_is_header = True
                self._cell = []
                if tag == "td":
                    self._row_is_header = False
            elif tag == "br":
                self._cell_append("\n")
            return
        if tag == "br":
            self._flush_line(keep_empty=True)
        elif tag in _BLOCK_TAGS:
            self._paragraph_break()
            if tag == "pre":
                self._pre += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIP_TAGS:
            self._skip = max(0, self._skip - 1)
            return
        if tag == "table":
            self._table_depth = max(0, self._table_depth - 1)
            if self._table_depth == 0 and self._table is not None:
                self._end_row()
                if self._table.rows:
                    self.blocks.append(self._table)
                self._table = None
            return
        if self._table is not None:
            if self._table_depth == 1:
                if tag in ("td", "th"):
                    self._end_cell()
                elif tag == "tr":
                    self._end_row()
            return
        if tag in _BLOCK_TAGS:
            self._paragraph_break()
            if tag == "pre":
                self._pre = max(0, self._pre - 1)

    def handle_data(self, data: str) -> None:
        if self._skip:
            return
        if self._table is not None:
            self._cell_append(data)
            return
        if not self._pre:
            data = _WS_RE.sub(" ", data)
        self._inline.append(data.replace("\xa0", " "))

    def close(self) -> None:
        super().close()
        if self._table is not None:
            self._end_row()
            if self._table.rows:
                self.blocks.append(self._table)
            self._table = None
        self._flush_line()

    # -- table helpers --------------------------------------------------

    def _cell_append(self, data: str) -> None:
        if self._cell is None:
            # Stray text between cells
            return
        self._cell.append(data)

    def _end_cell(self) -> None:
        if self._cell is None or self._row is None:
            return
        text = "".join(self._cell)
        lines = [_WS_RE.sub(" ", ln).strip() for ln in text.split("\n")]
        self._row.append("\n".join(lines).strip().replace("\xa0", " "))
        self._cell = None

    def _end_row(self) -> None:
        self._end_cell()
        if self._row and self._table is not None:
            if self._row_is_header:
                self._table.header_rows.add(len(self._table.rows))
            self._table.rows.append(self._row)
        self._row = None


def render_table(table: TableBlock, width: int) -> str:
    """Lay a parsed table out as plain text."""
    ncols = table.column_count
    has_header = 0 in table.header_rows
    grid = Table(
        box=box.ASCII,
        show_header=has_header,
        show_edge=True,
        pad_edge=True,
        highlight=False,
    )
    header = table.rows[0] if has_header else []
    for i in range(ncols):
        grid.add_column(Text(header[i]) if i < len(header) else "")
    body = table.rows[1:] if has_header else table.rows
    for row in body:
        cells = [Text(c) for c in row] + [Text("")] * (ncols - len(row))
        grid.add_row(*cells)

    buf = io.StringIO()
    console = Console(
        file=buf,
        width=width,
        color_system=None,
        force_terminal=False,
        highlight=False,
        soft_wrap=False,
    )
    console.print(grid)
    return "\n".join(line.rstrip() for line in buf.getvalue().splitlines())


class BuiltinBackend(RendererBackend):
    """Render markup in-process with html.parser and Rich."""

    name: ClassVar[str] = "builtin"

    def render(self, markup: str) -> str:
        parser = _MarkupParser()
        try:
            parser.feed(markup)
            parser.close()
        except Exception as e:
            raise RenderFailure(f"Failed to parse markup: {e}") from e

        out: list[str] = []
        for block in parser.blocks:
            if isinstance(block, TableBlock):
                out.append(render_table(block, self.width))
            else:
                out.append(block)
        return "\n".join(out)
