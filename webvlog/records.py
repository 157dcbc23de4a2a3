from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Union


class NamedColor(enum.Enum):
    BASE = "base"
    HEALTHY = "healthy"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    X = "x"
    Y = "y"
    Z = "z"


@dataclass(frozen=True, slots=True)
class HexColor:
    """An explicit 32-bit color written as 0xRRGGBBAA."""

    rgba: int

    def __post_init__(self) -> None:
        if isinstance(self.rgba, bool) or not isinstance(self.rgba, int):
            raise TypeError(f"rgba must be an int, got {type(self.rgba).__name__}")
        if not 0 <= self.rgba <= 0xFFFFFFFF:
            raise ValueError(f"rgba out of range: {self.rgba:#x}")


Color = Union[NamedColor, HexColor]


class TextAlignment(enum.IntEnum):
    LEFT = 0
    CENTER = 1
    RIGHT = 2
    FLEXIBLE = 3


class PointStyle(enum.Enum):
    CIRCLE = "Circle"
    FILLED_CIRCLE = "FilledCircle"
    DASHED_CIRCLE = "DashedCircle"
    SQUARE = "Square"
    FILLED_SQUARE = "FilledSquare"
    DASHED_SQUARE = "DashedSquare"
    POINT = "Point"
    POINT_OUTLINE = "PointOutline"
    POINT_SQUARE = "PointSquare"
    POINT_SQUARE_OUTLINE = "PointSquareOutline"
    POINT_DIAMOND = "PointDiamond"
    POINT_DIAMOND_OUTLINE = "PointDiamondOutline"
    POINT_CROSS = "PointCross"


class LineStyle(enum.Enum):
    SIMPLE = "Simple"
    DASHED = "Dashed"
    ARROW = "Arrow"
    INSIDE_HARPOON_CCW = "InsideHarpoonCCW"
    INSIDE_HARPOON_CW = "InsideHarpoonCW"


@dataclass(frozen=True, slots=True)
class Message:
    pass


@dataclass(frozen=True, slots=True)
class Label:
    x: float
    y: float
    z: float = 0.0
    alignment: TextAlignment = TextAlignment.CENTER


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float
    z: float = 0.0
    style: PointStyle = PointStyle.CIRCLE


@dataclass(frozen=True, slots=True)
class Line:
    x1: float
    y1: float
    z1: float
    x2: float
    y2: float
    z2: float
    style: LineStyle = LineStyle.SIMPLE


Visual = Union[Message, Label, Point, Line]


@dataclass(frozen=True, slots=True)
class VisualRecord:
    """One visual log event as handed to the transport.

    ``text`` is the message or label text; ``size`` is the font size for
    labels and the marker/stroke size for points and lines.
    """

    target: str
    surface: str
    visual: Visual = field(default_factory=Message)
    text: str = ""
    color: Color = NamedColor.BASE
    size: float = 1.0
    file: str | None = None
    line: int | None = None
