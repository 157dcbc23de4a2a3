"""Serialize visual records into the JSON payloads the viewer page consumes.

Every event is one JSON object. Free text (messages, labels, targets,
surfaces, file paths) is always a JSON string literal. Everything outside
ASCII, lone surrogates included, is written as ``\\uXXXX``, and so are ``<``,
``>`` and ``&``. The payload is therefore plain ASCII that always fits a text
frame, and no text, however hostile, can close the string or show up as markup
in the raw frame. ``JSON.parse`` on the page restores the exact original text.
"""

from __future__ import annotations

import json
import math
from typing import Any

from .records import Color, HexColor, Label, Line, Message, NamedColor, Point, VisualRecord

_HTML_SAFE = str.maketrans({"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"})


def _dumps(payload: dict[str, Any]) -> str:
    text = json.dumps(payload, ensure_ascii=True, separators=(",", ":"), allow_nan=False)
    return text.translate(_HTML_SAFE)


def _num(value: float) -> float | None:
    # NaN and infinities have no JSON spelling.
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _pos(x: float, y: float, z: float) -> list[float | None]:
    return [_num(x), _num(y), _num(z)]


def color_token(color: Color) -> str:
    if isinstance(color, NamedColor):
        return f"var(--{color.value})"
    if isinstance(color, HexColor):
        return f"#{color.rgba:08X}"
    raise TypeError(f"unsupported color: {color!r}")


def _meta(record: VisualRecord) -> dict[str, Any]:
    return {
        "target": record.target,
        "file": record.file or "",
        "line": record.line or 0,
        "col": color_token(record.color),
    }


def encode_record(record: VisualRecord) -> str:
    visual = record.visual
    payload: dict[str, Any]
    if isinstance(visual, Message):
        payload = {"msg": record.text, "surf": record.surface}
    elif isinstance(visual, Label):
        payload = {
            "lbl": record.text,
            "pos": _pos(visual.x, visual.y, visual.z),
            "align": int(visual.alignment),
            "surf": record.surface,
            "size": _num(record.size),
        }
    elif isinstance(visual, Point):
        payload = {
            "lbl": record.text,
            "pos": _pos(visual.x, visual.y, visual.z),
            "style": visual.style.value,
            "surf": record.surface,
            "size": _num(record.size),
        }
    elif isinstance(visual, Line):
        payload = {
            "lbl": record.text,
            "pos": _pos(visual.x1, visual.y1, visual.z1),
            "pos2": _pos(visual.x2, visual.y2, visual.z2),
            "style": visual.style.value,
            "surf": record.surface,
            "size": _num(record.size),
        }
    else:
        raise TypeError(f"unsupported visual: {visual!r}")
    payload["meta"] = _meta(record)
    return _dumps(payload)


def encode_clear(surface: str) -> str:
    return _dumps({"clear": 1, "surf": surface})
