"""HTTP request handling for the single endpoint the viewer talks to.

Each accepted connection carries exactly one request. The request is fed
line by line into :class:`Handshake`, a small state machine that ends in one
of four outcomes: the connection is upgraded to a WebSocket, the page is
served, the path is unknown (404) or the request is rejected (400). The
machine never touches a socket, so it can be driven from literal bytes.
"""

from __future__ import annotations

import base64
import enum
import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import BinaryIO

from .errors import ProtocolViolation

logger = logging.getLogger(__name__)

WEBSOCKET_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
MAX_LINE = 65536
MAX_HEADERS = 100

NOT_FOUND_BODY = b"<html><body>Path not found</body></html>"


def accept_token(key: str) -> str:
    """Compute ``Sec-WebSocket-Accept`` for a client key (RFC 6455, 4.2.2)."""

    digest = hashlib.sha1((key + WEBSOCKET_GUID).encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


class HandshakeState(enum.Enum):
    AWAITING_REQUEST_LINE = "awaiting_request_line"
    AWAITING_HEADERS = "awaiting_headers"
    UPGRADED = "upgraded"
    PLAIN_HTTP_SERVED = "plain_http_served"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"


TERMINAL_STATES = frozenset(
    {
        HandshakeState.UPGRADED,
        HandshakeState.PLAIN_HTTP_SERVED,
        HandshakeState.NOT_FOUND,
        HandshakeState.REJECTED,
    }
)

STATUS_CODES = {
    HandshakeState.UPGRADED: 101,
    HandshakeState.PLAIN_HTTP_SERVED: 200,
    HandshakeState.NOT_FOUND: 404,
    HandshakeState.REJECTED: 400,
}


@dataclass(frozen=True)
class RequestLine:
    method: str
    path: str
    version: str


def parse_request_line(line: str) -> RequestLine:
    parts = line.split(" ")
    if len(parts) != 3 or not all(parts):
        raise ProtocolViolation(f"malformed request line: {line!r}")
    method, path, version = parts
    return RequestLine(method=method, path=path, version=version)


def _http_response(status: str, headers: list[tuple[str, str]], body: bytes = b"") -> bytes:
    lines = [f"HTTP/1.1 {status}"]
    lines.extend(f"{key}: {value}" for key, value in headers)
    head = "\r\n".join(lines) + "\r\n\r\n"
    return head.encode("latin-1") + body


def upgrade_response(token: str) -> bytes:
    return _http_response(
        "101 Switching Protocols",
        [
            ("Upgrade", "websocket"),
            ("Connection", "Upgrade"),
            ("Sec-WebSocket-Accept", token),
        ],
    )


def page_response(body: bytes) -> bytes:
    return _http_response(
        "200 OK",
        [
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Length", str(len(body))),
            ("Connection", "close"),
        ],
        body,
    )


def not_found_response() -> bytes:
    return _http_response(
        "404 NOT FOUND",
        [
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Length", str(len(NOT_FOUND_BODY))),
            ("Connection", "close"),
        ],
        NOT_FOUND_BODY,
    )


def bad_request_response() -> bytes:
    return _http_response("400 BAD REQUEST", [("Content-Length", "0"), ("Connection", "close")])


def internal_error_response(detail: str) -> bytes:
    body = detail.encode("utf-8", errors="replace")
    return _http_response(
        "500 INTERNAL SERVER ERROR",
        [
            ("Content-Type", "text/plain; charset=utf-8"),
            ("Content-Length", str(len(body))),
            ("Connection", "close"),
        ],
        body,
    )


class Handshake:
    """Line-driven state machine for one inbound request.

    Feed raw lines (terminator included or not) with :meth:`feed_line` and
    call :meth:`finish` if the stream ends early. Once :attr:`done` is true,
    :meth:`response` renders the bytes to send back.
    """

    # (state, event) -> handler; events are "line", "blank" and "eof".
    _TRANSITIONS: dict[tuple[HandshakeState, str], str] = {
        (HandshakeState.AWAITING_REQUEST_LINE, "line"): "_on_request_line",
        (HandshakeState.AWAITING_REQUEST_LINE, "blank"): "_on_missing_request_line",
        (HandshakeState.AWAITING_REQUEST_LINE, "eof"): "_on_missing_request_line",
        (HandshakeState.AWAITING_HEADERS, "line"): "_on_header",
        (HandshakeState.AWAITING_HEADERS, "blank"): "_on_end_of_headers",
        (HandshakeState.AWAITING_HEADERS, "eof"): "_on_end_of_headers",
    }

    def __init__(self, on_upgrade: Callable[[], None] | None = None) -> None:
        self.state = HandshakeState.AWAITING_REQUEST_LINE
        self.request: RequestLine | None = None
        self.token: str | None = None
        self.header_count = 0
        self._violation: str | None = None
        self._on_upgrade = on_upgrade

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def status(self) -> int | None:
        return STATUS_CODES.get(self.state)

    def feed_line(self, raw: bytes) -> HandshakeState:
        if self.done:
            return self.state
        if len(raw) > MAX_LINE:
            self._violation = "request line or header too long"
            return self._enter(HandshakeState.REJECTED)
        line = raw.decode("latin-1").rstrip("\r\n")
        logger.debug("handshake line: %s", line)
        return self._dispatch("blank" if not line else "line", line)

    def finish(self) -> HandshakeState:
        if self.done:
            return self.state
        return self._dispatch("eof", "")

    def response(self, page: bytes) -> bytes:
        if self.state is HandshakeState.UPGRADED:
            if self.token is None:
                raise RuntimeError("upgraded handshake has no accept token")
            return upgrade_response(self.token)
        if self.state is HandshakeState.PLAIN_HTTP_SERVED:
            return page_response(page)
        if self.state is HandshakeState.NOT_FOUND:
            return not_found_response()
        if self.state is HandshakeState.REJECTED:
            return bad_request_response()
        raise RuntimeError(f"handshake not finished: {self.state.value}")

    def _dispatch(self, event: str, line: str) -> HandshakeState:
        handler = getattr(self, self._TRANSITIONS[(self.state, event)])
        return handler(line)

    def _enter(self, state: HandshakeState) -> HandshakeState:
        self.state = state
        if state is HandshakeState.REJECTED and self._violation:
            logger.debug("handshake rejected: %s", self._violation)
        if state is HandshakeState.UPGRADED and self._on_upgrade is not None:
            self._on_upgrade()
        return state

    def _on_request_line(self, line: str) -> HandshakeState:
        try:
            self.request = parse_request_line(line)
        except ProtocolViolation as exc:
            self._violation = str(exc)
        # Headers are consumed even for a bad request line so the reply is
        # not cut off by a reset from unread input.
        return self._enter(HandshakeState.AWAITING_HEADERS)

    def _on_missing_request_line(self, line: str) -> HandshakeState:
        self._violation = "missing request line"
        return self._enter(HandshakeState.REJECTED)

    def _on_header(self, line: str) -> HandshakeState:
        self.header_count += 1
        if self.header_count > MAX_HEADERS:
            self._violation = "too many headers"
            return self._enter(HandshakeState.REJECTED)
        name, sep, value = line.partition(":")
        if sep and name.strip().lower() == "sec-websocket-key":
            key = value.strip()
            if key:
                self.token = accept_token(key)
        return self.state

    def _on_end_of_headers(self, line: str) -> HandshakeState:
        request = self.request
        if self._violation or request is None:
            return self._enter(HandshakeState.REJECTED)
        if request.method != "GET" or request.version != "HTTP/1.1":
            self._violation = f"unsupported request: {request.method} {request.version}"
            return self._enter(HandshakeState.REJECTED)
        if self.token is not None:
            return self._enter(HandshakeState.UPGRADED)
        if request.path == "/":
            return self._enter(HandshakeState.PLAIN_HTTP_SERVED)
        return self._enter(HandshakeState.NOT_FOUND)


def run_handshake(
    reader: BinaryIO,
    *,
    on_upgrade: Callable[[], None] | None = None,
) -> Handshake:
    """Read one request from ``reader`` until the state machine settles."""

    handshake = Handshake(on_upgrade=on_upgrade)
    while not handshake.done:
        raw = reader.readline(MAX_LINE + 1)
        if not raw:
            handshake.finish()
            break
        handshake.feed_line(raw)
    return handshake
