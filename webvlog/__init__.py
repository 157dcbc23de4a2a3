"""Stream visual debug logs (messages, labels, points, lines) to a browser tab.

The page is served once over plain HTTP; the tab then upgrades to a
WebSocket and receives every enabled event. Nothing is encrypted or
authenticated: this is a local debugging aid.

    import webvlog
    from webvlog import vlog

    handle = webvlog.init()
    print(handle.url)
    handle.wait_for_connection()
    vlog.message("surface", "hello")
"""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import (
    AlreadyInitialized,
    BindFailure,
    InitError,
    ProtocolViolation,
    TransportFailure,
    WebVLogError,
)
from .records import (
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
from .vlogger import (
    Builder,
    TransportHandle,
    WebVLogger,
    get_vlogger,
    init,
    init_port,
    wait_for_connection,
)

__all__ = [
    "__version__",
    "AlreadyInitialized",
    "BindFailure",
    "Builder",
    "HexColor",
    "InitError",
    "Label",
    "Line",
    "LineStyle",
    "Message",
    "NamedColor",
    "Point",
    "PointStyle",
    "ProtocolViolation",
    "TextAlignment",
    "TransportFailure",
    "TransportHandle",
    "VisualRecord",
    "WebVLogError",
    "WebVLogger",
    "get_vlogger",
    "init",
    "init_port",
    "wait_for_connection",
]
