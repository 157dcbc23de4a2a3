"""Call-site functions for visual logging.

These write to the process-wide vlogger installed by ``webvlog.init()`` (or
``Builder().init()``) and do nothing when none is installed. The target
defaults to the calling module's ``__name__``; the caller's file and line are
attached so the viewer can link back to the source.

    from webvlog import vlog

    vlog.message("solver", "iteration 3", color="warn")
    vlog.point("solver", (x, y), "p", size=4, style=PointStyle.FILLED_CIRCLE)
    vlog.line("solver", (x0, y0), (x1, y1), style=LineStyle.ARROW)
    vlog.clear("solver")
"""

from __future__ import annotations

import sys
from collections.abc import Sequence

from .records import (
    Color,
    HexColor,
    Label,
    Line,
    LineStyle,
    Message,
    NamedColor,
    Point,
    PointStyle,
    TextAlignment,
    VisualRecord,
)
from .vlogger import WebVLogger, get_vlogger

ColorLike = Color | str | int


def _caller() -> tuple[str, str, int]:
    # 0 is this function, 1 the public helper, 2 the code that called it.
    frame = sys._getframe(2)
    return frame.f_globals.get("__name__", "__main__"), frame.f_code.co_filename, frame.f_lineno


def coerce_color(value: ColorLike) -> Color:
    if isinstance(value, (NamedColor, HexColor)):
        return value
    if isinstance(value, bool):
        raise TypeError("color must be a NamedColor, HexColor, name or 0xRRGGBBAA int")
    if isinstance(value, int):
        return HexColor(value)
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("#"):
            return HexColor(int(text[1:], 16))
        return NamedColor(text.lower())
    raise TypeError("color must be a NamedColor, HexColor, name or 0xRRGGBBAA int")


def _xyz(pos: Sequence[float]) -> tuple[float, float, float]:
    if len(pos) == 2:
        return float(pos[0]), float(pos[1]), 0.0
    if len(pos) == 3:
        return float(pos[0]), float(pos[1]), float(pos[2])
    raise ValueError(f"position needs 2 or 3 coordinates, got {len(pos)}")


def _active(target: str) -> WebVLogger | None:
    vlogger = get_vlogger()
    if vlogger is None or not vlogger.enabled(target):
        return None
    return vlogger


def enabled(target: str) -> bool:
    return _active(target) is not None


def message(
    surface: str,
    text: str,
    *,
    target: str | None = None,
    color: ColorLike = NamedColor.BASE,
) -> None:
    module, file, lineno = _caller()
    target = target if target is not None else module
    vlogger = _active(target)
    if vlogger is None:
        return
    vlogger.vlog(
        VisualRecord(
            target=target,
            surface=surface,
            visual=Message(),
            text=str(text),
            color=coerce_color(color),
            file=file,
            line=lineno,
        )
    )


def label(
    surface: str,
    pos: Sequence[float],
    text: str,
    *,
    size: float = 12.0,
    alignment: TextAlignment = TextAlignment.CENTER,
    target: str | None = None,
    color: ColorLike = NamedColor.BASE,
) -> None:
    module, file, lineno = _caller()
    target = target if target is not None else module
    vlogger = _active(target)
    if vlogger is None:
        return
    x, y, z = _xyz(pos)
    vlogger.vlog(
        VisualRecord(
            target=target,
            surface=surface,
            visual=Label(x, y, z, TextAlignment(alignment)),
            text=str(text),
            color=coerce_color(color),
            size=size,
            file=file,
            line=lineno,
        )
    )


def point(
    surface: str,
    pos: Sequence[float],
    text: str = "",
    *,
    size: float = 1.0,
    style: PointStyle = PointStyle.CIRCLE,
    target: str | None = None,
    color: ColorLike = NamedColor.BASE,
) -> None:
    module, file, lineno = _caller()
    target = target if target is not None else module
    vlogger = _active(target)
    if vlogger is None:
        return
    x, y, z = _xyz(pos)
    vlogger.vlog(
        VisualRecord(
            target=target,
            surface=surface,
            visual=Point(x, y, z, style),
            text=str(text),
            color=coerce_color(color),
            size=size,
            file=file,
            line=lineno,
        )
    )


def line(
    surface: str,
    start: Sequence[float],
    end: Sequence[float],
    text: str = "",
    *,
    size: float = 1.0,
    style: LineStyle = LineStyle.SIMPLE,
    target: str | None = None,
    color: ColorLike = NamedColor.BASE,
) -> None:
    module, file, lineno = _caller()
    target = target if target is not None else module
    vlogger = _active(target)
    if vlogger is None:
        return
    x1, y1, z1 = _xyz(start)
    x2, y2, z2 = _xyz(end)
    vlogger.vlog(
        VisualRecord(
            target=target,
            surface=surface,
            visual=Line(x1, y1, z1, x2, y2, z2, style),
            text=str(text),
            color=coerce_color(color),
            size=size,
            file=file,
            line=lineno,
        )
    )


def clear(surface: str) -> None:
    vlogger = get_vlogger()
    if vlogger is not None:
        vlogger.clear(surface)
