"""CLI entry point for sqlhtml."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import TYPE_CHECKING

import typer

from sqlhtml import __version__
from sqlhtml.config import SqlHtmlConfig
from sqlhtml.render.base import BackendUnavailable, RenderFailure
from sqlhtml.render.registry import probe_backends, select_backend

if TYPE_CHECKING:
    from sqlhtml.pty.session import PTYSession

app = typer.Typer(
    name="sqlhtml",
    help="Render the HTML output of interactive SQL clients as plain text.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(
    config_file: str | None,
    prompt: str | None = None,
    backends: list[str] | None = None,
    width: int | None = None,
) -> SqlHtmlConfig:
    """Load configuration and apply command-line overrides."""
    try:
        config = SqlHtmlConfig.load(config_file)
        overrides: dict[str, object] = {}
        if prompt:
            overrides["prompt"] = prompt
        if backends:
            overrides["backends"] = backends
        if width:
            overrides["width"] = width
        if overrides:
            config = SqlHtmlConfig.model_validate(
                {**config.model_dump(), **overrides}
            )
    except ValueError as e:
        typer.echo(f"Error: invalid configuration: {e}", err=True)
        raise typer.Exit(1)
    return config


@app.command()
def run(
    command: list[str] = typer.Argument(
        help="Interactive command to proxy, e.g. sqlplus -s scott/tiger."
    ),
    prompt: str | None = typer.Option(
        None, "--prompt", "-p", help="Prompt regex that ends each response."
    ),
    backend: list[str] | None = typer.Option(
        None, "--backend", "-b", help="Renderer backend (repeat for priority order)."
    ),
    width: int | None = typer.Option(None, "--width", "-w", help="Rendering width."),
    raw: bool = typer.Option(
        False, "--raw", help="Pass output through without rendering."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """Run COMMAND in a pseudo-terminal and render its HTML responses.

    Put ``--`` before COMMAND when it takes options of its own.
    """
    setup_logging(verbose)
    config = _load_config(config_file, prompt, backend, width)

    try:
        code = asyncio.run(_run_proxy(command, config, intercept=not raw))
    except BackendUnavailable as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    raise typer.Exit(code or 0)


async def _run_proxy(
    command: list[str], config: SqlHtmlConfig, intercept: bool = True
) -> int | None:
    """Proxy one subprocess until it exits; return its exit code."""
    from sqlhtml.proxy.session import start_session
    from sqlhtml.proxy.stage import OutputStage
    from sqlhtml.pty.manager import PTYManager
    from sqlhtml.session.wire import EventType, Wire

    wire = Wire()
    wire.attach_loop()

    # --- Wire consumer: status and diagnostics go to stderr ---
    async def _consume_wire() -> None:
        queue = wire.subscribe()
        status_shown = False
        while True:
            event = await queue.get()
            if event is None:
                break
            d = event.data

            if event.type == EventType.STATUS:
                message = d.get("message", "")
                if message:
                    print(f"\r{message}", end="", file=sys.stderr, flush=True)
                    status_shown = True
                elif status_shown:
                    print("\r\x1b[K", end="", file=sys.stderr, flush=True)
                    status_shown = False

            elif event.type == EventType.ERROR:
                error = d.get("error", "Unknown error")
                print(f"\n[sqlhtml] {error}", file=sys.stderr, flush=True)

            elif event.type == EventType.PTY_EXIT:
                title = d.get("title") or d.get("session_id", "?")
                exit_code = d.get("exit_code")
                code_str = str(exit_code) if exit_code is not None else "?"
                logger.info("%s exited (code=%s)", title, code_str)

        wire.unsubscribe(queue)

    consumer_task = asyncio.create_task(_consume_wire())

    def _display(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    stage = OutputStage(
        sink=_display,
        session_factory=lambda: start_session(config, wire=wire),
        encoding=config.encoding,
    )
    if intercept:
        try:
            stage.activate()
        except BackendUnavailable:
            wire.close()
            await consumer_task
            raise

    manager = PTYManager(wire=wire)
    # The user's terminal already echoes what they type
    session = await manager.spawn(command, stage=stage, cwd=os.getcwd(), echo=False)
    stdin_fd = _forward_stdin(session)

    try:
        exit_code = await session.wait_for_exit()
    finally:
        if stdin_fd is not None:
            asyncio.get_running_loop().remove_reader(stdin_fd)
        await manager.cleanup()
        wire.close()
        await consumer_task
    return exit_code


def _forward_stdin(session: PTYSession) -> int | None:
    """Copy terminal input to the subprocess without blocking the loop.

    Returns the watched file descriptor, or None when stdin cannot be
    watched (e.g. redirected from a regular file).
    """
    loop = asyncio.get_running_loop()
    try:
        fd = sys.stdin.fileno()
    except (OSError, ValueError):
        logger.warning("stdin has no file descriptor, input not forwarded")
        return None

    def _on_readable() -> None:
        data = os.read(fd, 4096)
        if not session.alive:
            loop.remove_reader(fd)
            return
        if not data:
            # EOF on our stdin: pass it on
            loop.remove_reader(fd)
            session.send_raw(b"\x04")
            return
        session.send_raw(data)

    try:
        loop.add_reader(fd, _on_readable)
    except OSError as e:
        logger.warning("Cannot watch stdin (%s), input not forwarded", e)
        return None
    return fd


@app.command()
def render(
    file: str | None = typer.Argument(
        None, help="HTML file to render. Reads stdin when omitted."
    ),
    backend: list[str] | None = typer.Option(
        None, "--backend", "-b", help="Renderer backend (repeat for priority order)."
    ),
    width: int | None = typer.Option(None, "--width", "-w", help="Rendering width."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """Render an HTML document to plain text."""
    setup_logging(verbose)
    config = _load_config(config_file, backends=backend, width=width)

    if file is not None:
        if not os.path.isfile(file):
            typer.echo(f"Error: File not found: {file}", err=True)
            raise typer.Exit(1)
        with open(file, encoding=config.encoding, errors="replace") as f:
            markup = f.read()
    else:
        markup = sys.stdin.read()

    try:
        renderer = select_backend(
            config.backends, width=config.width, timeout=config.render_timeout
        )
        typer.echo(renderer.convert(markup))
    except (BackendUnavailable, RenderFailure) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def backends(
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Path to config JSON file."
    ),
) -> None:
    """List renderer backends in priority order and whether they are available."""
    config = _load_config(config_file)
    selected = None
    for name, available in probe_backends(config.backends):
        marker = " "
        if available and selected is None:
            selected = name
            marker = "*"
        status = "available" if available else "not found"
        typer.echo(f"{marker} {name:<10} {status}")
    if selected is None:
        typer.echo("No renderer backend available.", err=True)
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Print the sqlhtml version."""
    typer.echo(f"sqlhtml v{__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
