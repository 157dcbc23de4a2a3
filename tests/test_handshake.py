from __future__ import annotations

import io

import pytest

from webvlog.handshake import (
    MAX_HEADERS,
    MAX_LINE,
    NOT_FOUND_BODY,
    Handshake,
    HandshakeState,
    accept_token,
    parse_request_line,
    run_handshake,
)
from webvlog.errors import ProtocolViolation

PAGE = b"<!DOCTYPE html><html><body>viewer</body></html>"
RFC_KEY = "dGhlIHNhbXBsZSBub25jZQ=="
RFC_ACCEPT = "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


def _run(raw: bytes, **kwargs: object) -> Handshake:
    return run_handshake(io.BytesIO(raw), **kwargs)  # type: ignore[arg-type]


def _split(response: bytes) -> tuple[str, dict[str, str], bytes]:
    head, _, body = response.partition(b"\r\n\r\n")
    status, *header_lines = head.decode("latin-1").split("\r\n")
    headers = dict(line.split(": ", 1) for line in header_lines)
    return status, headers, body


def test_accept_token_matches_rfc_vector() -> None:
    assert accept_token(RFC_KEY) == RFC_ACCEPT


def test_upgrade_request() -> None:
    upgrades: list[bool] = []
    handshake = _run(
        b"GET / HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Upgrade: websocket\r\n"
        b"Connection: Upgrade\r\n"
        b"Sec-WebSocket-Key: " + RFC_KEY.encode() + b"\r\n"
        b"Sec-WebSocket-Version: 13\r\n"
        b"\r\n",
        on_upgrade=lambda: upgrades.append(True),
    )

    assert handshake.state is HandshakeState.UPGRADED
    assert handshake.status == 101
    assert upgrades == [True]
    status, headers, body = _split(handshake.response(PAGE))
    assert status == "HTTP/1.1 101 Switching Protocols"
    assert headers == {
        "Upgrade": "websocket",
        "Connection": "Upgrade",
        "Sec-WebSocket-Accept": RFC_ACCEPT,
    }
    assert body == b""


def test_key_header_name_is_case_insensitive() -> None:
    handshake = _run(b"GET / HTTP/1.1\r\nsec-websocket-key:  " + RFC_KEY.encode() + b"  \r\n\r\n")
    assert handshake.state is HandshakeState.UPGRADED
    assert handshake.token == RFC_ACCEPT


def test_page_request_serves_page_verbatim() -> None:
    handshake = _run(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")

    assert handshake.state is HandshakeState.PLAIN_HTTP_SERVED
    status, headers, body = _split(handshake.response(PAGE))
    assert status == "HTTP/1.1 200 OK"
    assert headers["Content-Length"] == str(len(PAGE))
    assert body == PAGE


def test_unknown_path_is_404() -> None:
    handshake = _run(b"GET /favicon.ico HTTP/1.1\r\n\r\n")

    assert handshake.state is HandshakeState.NOT_FOUND
    status, _, body = _split(handshake.response(PAGE))
    assert status == "HTTP/1.1 404 NOT FOUND"
    assert body == NOT_FOUND_BODY


def test_upgrade_wins_over_path() -> None:
    handshake = _run(b"GET /ws HTTP/1.1\r\nSec-WebSocket-Key: " + RFC_KEY.encode() + b"\r\n\r\n")
    assert handshake.state is HandshakeState.UPGRADED


@pytest.mark.parametrize(
    "raw",
    [
        b"POST / HTTP/1.1\r\n\r\n",
        b"GET / HTTP/1.0\r\n\r\n",
        b"GET / HTTP/2\r\nSec-WebSocket-Key: " + RFC_KEY.encode() + b"\r\n\r\n",
        b"GET /\r\n\r\n",
        b"GET  / HTTP/1.1\r\n\r\n",
        b"GET / HTTP/1.1 extra\r\n\r\n",
        b"\r\nGET / HTTP/1.1\r\n\r\n",
        b"",
    ],
)
def test_bad_requests_are_rejected(raw: bytes) -> None:
    upgrades: list[bool] = []
    handshake = _run(raw, on_upgrade=lambda: upgrades.append(True))

    assert handshake.state is HandshakeState.REJECTED
    assert handshake.status == 400
    status, _, _ = _split(handshake.response(PAGE))
    assert status == "HTTP/1.1 400 BAD REQUEST"
    assert upgrades == []


def test_end_of_stream_after_request_line_still_answers() -> None:
    handshake = _run(b"GET / HTTP/1.1\r\nHost: localhost\r\n")
    assert handshake.state is HandshakeState.PLAIN_HTTP_SERVED


def test_overlong_line_is_rejected() -> None:
    handshake = _run(b"GET / HTTP/1.1\r\nX-Long: " + b"a" * MAX_LINE + b"\r\n\r\n")
    assert handshake.state is HandshakeState.REJECTED


def test_too_many_headers_are_rejected() -> None:
    headers = b"".join(b"X-H%d: v\r\n" % i for i in range(MAX_HEADERS + 1))
    handshake = _run(b"GET / HTTP/1.1\r\n" + headers + b"\r\n")
    assert handshake.state is HandshakeState.REJECTED


def test_state_machine_steps() -> None:
    handshake = Handshake()
    assert handshake.state is HandshakeState.AWAITING_REQUEST_LINE
    assert handshake.feed_line(b"GET / HTTP/1.1\r\n") is HandshakeState.AWAITING_HEADERS
    assert handshake.feed_line(b"Host: x\r\n") is HandshakeState.AWAITING_HEADERS
    assert not handshake.done
    with pytest.raises(RuntimeError):
        handshake.response(PAGE)
    assert handshake.feed_line(b"\r\n") is HandshakeState.PLAIN_HTTP_SERVED
    assert handshake.done
    # Terminal states absorb further input.
    assert handshake.feed_line(b"Sec-WebSocket-Key: abc\r\n") is HandshakeState.PLAIN_HTTP_SERVED
    assert handshake.finish() is HandshakeState.PLAIN_HTTP_SERVED


def test_run_handshake_leaves_following_bytes_unread() -> None:
    stream = io.BytesIO(b"GET / HTTP/1.1\r\nSec-WebSocket-Key: k\r\n\r\n\x88\x80")
    handshake = run_handshake(stream)
    assert handshake.state is HandshakeState.UPGRADED
    assert stream.read() == b"\x88\x80"


def test_parse_request_line() -> None:
    request = parse_request_line("GET /index HTTP/1.1")
    assert (request.method, request.path, request.version) == ("GET", "/index", "HTTP/1.1")
    with pytest.raises(ProtocolViolation):
        parse_request_line("GET")


def test_upgraded_response_requires_token() -> None:
    handshake = Handshake()
    handshake.state = HandshakeState.UPGRADED
    with pytest.raises(RuntimeError, match="no accept token"):
        handshake.response(PAGE)
