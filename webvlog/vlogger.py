"""Installing the transport and routing records into it.

``Builder.init()`` binds the listening socket, starts the accept thread and
returns a :class:`TransportHandle`. By default the logger is also installed
process-wide so the functions in :mod:`webvlog.vlog` reach it; a second
install raises :class:`AlreadyInitialized`.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable

from .channel import EventChannel
from .config import CONFIG_ENV_OVERRIDES, WebVLogConfig, load_config, parse_targets
from .encoder import encode_clear, encode_record
from .errors import AlreadyInitialized
from .records import VisualRecord
from .server import DEFAULT_HOST, DEFAULT_PORT, Rendezvous, VLogServer
from .targets import TargetFilter

logger = logging.getLogger(__name__)

TARGETS_ENV = CONFIG_ENV_OVERRIDES["targets"]


class WebVLogger:
    """Filters and encodes records on the caller's thread, then queues them."""

    def __init__(self, channel: EventChannel, targets: Iterable[str] = ()) -> None:
        self.channel = channel
        self.filter = TargetFilter(targets)

    @property
    def targets(self) -> tuple[str, ...]:
        return self.filter.targets

    def enabled(self, target: str) -> bool:
        return self.filter.enabled(target)

    def vlog(self, record: VisualRecord) -> None:
        if not self.enabled(record.target):
            return
        self.channel.send(encode_record(record))

    def clear(self, surface: str) -> None:
        self.channel.send(encode_clear(surface))


class TransportHandle:
    def __init__(self, vlogger: WebVLogger, server: VLogServer, *, installed: bool) -> None:
        self.vlogger = vlogger
        self.server = server
        self.installed = installed
        self._closed = False

    @property
    def channel(self) -> EventChannel:
        return self.vlogger.channel

    @property
    def address(self) -> tuple[str, int]:
        return self.server.address

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def url(self) -> str:
        host, port = self.address
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{port}/"

    @property
    def is_connected(self) -> bool:
        return self.server.rendezvous.attached

    def wait_for_connection(self, timeout: float | None = None) -> bool:
        """Block until a viewer has upgraded to a WebSocket.

        Without a timeout this waits indefinitely; returns whether a viewer
        is attached.
        """

        return self.server.rendezvous.wait(timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.server.close()
        if self.installed:
            reset_vlogger(self)

    def __enter__(self) -> TransportHandle:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


_INSTALL_LOCK = threading.Lock()
_INSTALLED: TransportHandle | None = None
# Process-wide so callers may wait before anything is installed.
_RENDEZVOUS = Rendezvous()


def get_vlogger() -> WebVLogger | None:
    handle = _INSTALLED
    return handle.vlogger if handle is not None else None


def get_handle() -> TransportHandle | None:
    return _INSTALLED


def reset_vlogger(handle: TransportHandle | None = None) -> None:
    """Uninstall ``handle`` (or whatever is installed) without closing it."""

    global _INSTALLED
    with _INSTALL_LOCK:
        if handle is None or _INSTALLED is handle:
            _INSTALLED = None


def wait_for_connection(timeout: float | None = None) -> bool:
    """Wait for a viewer of the installed vlogger.

    Blocks forever when no vlogger is ever installed and no timeout is given.
    """

    return _RENDEZVOUS.wait(timeout)


class Builder:
    def __init__(self) -> None:
        self._host = DEFAULT_HOST
        self._port = DEFAULT_PORT
        self._targets: list[str] = []
        self._max_pending: int | None = None
        self._page: bytes | None = None

    @classmethod
    def from_config(cls, cfg: WebVLogConfig) -> Builder:
        builder = cls().host(cfg.host).port(cfg.port).max_pending(cfg.max_pending)
        for target in cfg.targets:
            builder.add_target(target)
        return builder

    def host(self, host: str) -> Builder:
        self._host = host
        return self

    def port(self, port: int) -> Builder:
        """Set the listening port; 0 lets the OS choose one."""

        self._port = port
        return self

    def add_target(self, target: str) -> Builder:
        """Allow targets starting with ``target``; no targets allows all."""

        self._targets.append(target)
        return self

    def targets_from_env(self) -> Builder:
        for target in parse_targets(os.environ.get(TARGETS_ENV)):
            self.add_target(target)
        return self

    def max_pending(self, limit: int | None) -> Builder:
        self._max_pending = limit
        return self

    def page(self, body: bytes) -> Builder:
        self._page = body
        return self

    def build(self, *, rendezvous: Rendezvous | None = None) -> TransportHandle:
        """Bind the server without starting it or installing the logger."""

        channel = EventChannel(max_pending=self._max_pending)
        vlogger = WebVLogger(channel, self._targets)
        server = VLogServer(
            channel,
            host=self._host,
            port=self._port,
            page=self._page,
            rendezvous=rendezvous,
        )
        server.bind()
        return TransportHandle(vlogger, server, installed=False)

    def init(self, *, install: bool = True) -> TransportHandle:
        """Start the server and, unless ``install`` is false, install the logger.

        Raises :class:`AlreadyInitialized` if a logger is installed already
        and :class:`BindFailure` if the port cannot be bound.
        """

        global _INSTALLED
        if not install:
            handle = self.build()
            handle.server.start()
            return handle
        with _INSTALL_LOCK:
            if _INSTALLED is not None:
                raise AlreadyInitialized()
            handle = self.build(rendezvous=_RENDEZVOUS)
            handle.installed = True
            _INSTALLED = handle
        handle.server.start()
        logger.info("webvlog listening on %s", handle.url)
        return handle


def init() -> TransportHandle:
    """Install a vlogger configured from the config file and environment."""

    return Builder.from_config(load_config()).init()


def init_port(port: int) -> TransportHandle:
    """Install a vlogger on ``port`` that logs every target."""

    return Builder().port(port).init()
