"""Tests for the sqlhtml command line."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sqlhtml import __version__
from sqlhtml.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SQLHTML_PROMPT",
        "SQLHTML_BACKENDS",
        "SQLHTML_WIDTH",
        "SQLHTML_RENDER_TIMEOUT",
        "SQLHTML_PROGRESS_STEP",
    ):
        monkeypatch.delenv(name, raising=False)


class TestRenderCommand:
    def test_render_stdin(self) -> None:
        result = runner.invoke(app, ["render", "-b", "builtin"], input="<p>hello</p>\n")
        assert result.exit_code == 0
        assert result.stdout == "hello\n"

    def test_render_file(self, tmp_path: Path) -> None:
        path = tmp_path / "report.html"
        path.write_text("<table><tr><th>N</th></tr><tr><td>42</td></tr></table>")
        result = runner.invoke(app, ["render", str(path), "--backend", "builtin"])
        assert result.exit_code == 0
        assert "42" in result.stdout
        assert "<td>" not in result.stdout

    def test_render_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["render", str(tmp_path / "nope.html")])
        assert result.exit_code == 1

    def test_render_unknown_backend(self) -> None:
        result = runner.invoke(app, ["render", "-b", "elinks"], input="<p>x</p>")
        assert result.exit_code == 1


class TestBackendsCommand:
    def test_builtin_selected(self, tmp_path: Path) -> None:
        path = tmp_path / "sqlhtml.json"
        path.write_text(json.dumps({"backends": ["builtin"]}))
        result = runner.invoke(app, ["backends", "-c", str(path)])
        assert result.exit_code == 0
        assert result.stdout.startswith("* builtin")

    def test_lists_defaults(self) -> None:
        result = runner.invoke(app, ["backends"])
        assert result.exit_code == 0
        for name in ("w3m", "lynx", "builtin"):
            assert name in result.stdout


class TestVersionCommand:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX pty")
class TestRunCommand:
    def test_run_renders_response(self) -> None:
        result = runner.invoke(
            app,
            [
                "run",
                "-b",
                "builtin",
                "--",
                "sh",
                "-c",
                "printf '<p>done</p>\\nSQL> '",
            ],
        )
        assert result.exit_code == 0
        assert "done\nSQL> " in result.stdout
        assert "<p>" not in result.stdout

    def test_run_raw_passes_markup_through(self) -> None:
        result = runner.invoke(
            app, ["run", "--raw", "--", "sh", "-c", "printf '<p>done</p>'"]
        )
        assert result.exit_code == 0
        assert "<p>done</p>" in result.stdout

    def test_run_propagates_exit_code(self) -> None:
        result = runner.invoke(app, ["run", "-b", "builtin", "--", "sh", "-c", "exit 4"])
        assert result.exit_code == 4

    def test_run_invalid_prompt(self) -> None:
        result = runner.invoke(app, ["run", "-p", "SQL(> ", "--", "true"])
        assert result.exit_code == 1
