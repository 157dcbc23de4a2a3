from __future__ import annotations

import json
import logging
import math
import time
import webbrowser
from typing import List, Optional

import typer
from rich import print
from rich.markup import escape

from . import __version__, vlog
from .config import CONFIG_ENV_OVERRIDES, get_config_path, get_env_overrides, load_config
from .errors import InitError
from .records import HexColor, LineStyle, NamedColor, PointStyle, TextAlignment
from .vlogger import Builder

app = typer.Typer(help="webvlog: stream visual debug logs to a browser tab")

DEMO_TARGET = "webvlog.demo"


def _draw_point_table(scale: float = 35.0) -> None:
    colors = [*NamedColor, HexColor(0xFF00FFFF)]
    offx, offy = 20.0, 50.0
    for row, _ in enumerate(colors):
        y = offy + row * scale
        vlog.line("table1", (offx, y), (offx + 12 * scale, y), "-", size=0.0, target=DEMO_TARGET)
    for col, style in enumerate(PointStyle):
        x = offx + col * scale
        vlog.line("table1", (x, offy), (x, offy + 8 * scale), "-", size=0.0, target=DEMO_TARGET)
        for row, color in enumerate(colors):
            size = (row + 2) * 3.0
            vlog.point(
                "table1",
                (x, offy + row * scale),
                str(row),
                size=size,
                style=style,
                color=color,
                target=DEMO_TARGET,
            )


def _draw_line_table(offset: float, scale: float = 60.0) -> None:
    colors = [NamedColor.BASE, NamedColor.HEALTHY, NamedColor.INFO, NamedColor.WARN, NamedColor.ERROR]
    for col, (style, color) in enumerate(zip(LineStyle, colors)):
        for row, align in enumerate(TextAlignment):
            size = row + 2.0
            y = row * scale + offset
            vlog.line(
                "table2",
                (col * scale, y),
                ((col + 1) * scale, y),
                f"L {col},{row}",
                size=size,
                style=style,
                color=color,
                target=DEMO_TARGET,
            )
            mid_y = (row + 0.5) * scale + offset
            vlog.line("table2", (col * scale, mid_y), ((col + 1) * scale, mid_y), "-", target=DEMO_TARGET)
            label_x = (col + 0.5) * scale
            vlog.label(
                "table2",
                (label_x, mid_y),
                str(col),
                size=col * 4.0 + 8.0,
                alignment=align,
                color=color,
                target=DEMO_TARGET,
            )


def _animate_loading(frames: int, delay: float) -> None:
    for i in range(frames + 1):
        t = i * 0.2
        vlog.clear("loading")
        for x in range(40):
            a = t + x * 0.1
            b = t + (x + 1) * 0.1
            vlog.line(
                "loading",
                (math.cos(a) * 20 + 400, math.sin(a) * 20 + 400),
                (math.cos(b) * 20 + 400, math.sin(b) * 20 + 400),
                size=x / 3 + 1,
                color=NamedColor.INFO,
                target=DEMO_TARGET,
            )
        progress = f"{i * 100 / max(frames, 1):.1f}%"
        vlog.label("loading", (400, 400), progress, target=DEMO_TARGET)
        vlog.message("loading", progress, target=DEMO_TARGET)
        time.sleep(delay)


def run_demo(*, frames: int = 200, delay: float = 0.016) -> None:
    vlog.message("early", "Early message", color=NamedColor.HEALTHY, target=DEMO_TARGET)
    _draw_point_table()
    _draw_line_table(offset=11 * 35.0)
    _animate_loading(frames, delay)
    for _ in range(100):
        vlog.message("spam", "repeated message", target=DEMO_TARGET)
    for i in range(20):
        vlog.message(
            "spam",
            f'<img src="x" onerror="alert(\'{"!" * i}\')"/> stays text',
            color=NamedColor.WARN,
            target=DEMO_TARGET,
        )


@app.command()
def demo(
    host: Optional[str] = typer.Option(None, help="Host to bind (default from config)"),
    port: Optional[int] = typer.Option(None, help="Port to bind, 0 picks a free one"),
    target: Optional[List[str]] = typer.Option(
        None, "--target", "-t", help="Allowed target prefix (repeatable)"
    ),
    open_browser: bool = typer.Option(True, "--open/--no-open", help="Open the viewer page"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for a viewer before drawing"),
    frames: int = typer.Option(200, help="Frames of the loading animation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log transport activity"),
) -> None:
    """Start a server and draw the style tables and a loading animation."""

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(message)s")
    cfg = load_config()
    if host is not None:
        cfg.host = host
    if port is not None:
        cfg.port = port
    if target:
        cfg.targets = list(target)
    try:
        handle = Builder.from_config(cfg).init()
    except InitError as exc:
        print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    with handle:
        print(f"[green]Viewer at {handle.url}[/green]")
        if open_browser:
            webbrowser.open(handle.url)
        if wait:
            print("[yellow]Waiting for a viewer to connect...[/yellow]")
            handle.wait_for_connection()
        run_demo(frames=frames)
        # Give the writer time to drain before the server shuts down.
        deadline = time.monotonic() + 2.0
        while len(handle.channel) and handle.is_connected and time.monotonic() < deadline:
            time.sleep(0.05)


@app.command("config")
def show_config() -> None:
    """Show the effective configuration."""

    cfg = load_config()
    print(f"[bold]Config file:[/bold] {get_config_path()}")
    for key, value in get_env_overrides().items():
        print(f"[bold]Override:[/bold] {CONFIG_ENV_OVERRIDES[key]}={escape(value)}")
    print(json.dumps(cfg.as_dict(), indent=2))


@app.command()
def version() -> None:
    """Print the webvlog version."""

    print(__version__)


if __name__ == "__main__":
    app()
