from __future__ import annotations

import json
import sys
import threading

import pytest

import webvlog
from webvlog import vlog
from webvlog.config import WebVLogConfig
from webvlog.errors import AlreadyInitialized, InitError
from webvlog.records import HexColor, LineStyle, NamedColor, PointStyle, TextAlignment
from webvlog.vlogger import Builder, TransportHandle, get_handle, get_vlogger


def _next(handle: TransportHandle) -> dict:
    payload = handle.channel.receive(timeout=0)
    assert payload is not None
    return json.loads(payload)


@pytest.fixture
def installed() -> TransportHandle:
    handle = Builder().port(0).init()
    yield handle
    handle.close()


def test_calls_are_noops_without_install() -> None:
    assert get_vlogger() is None
    vlog.message("s", "nobody listens")
    vlog.point("s", (1, 2))
    vlog.clear("s")
    assert vlog.enabled("anything") is False


def test_second_install_is_rejected(installed: TransportHandle) -> None:
    with pytest.raises(AlreadyInitialized) as excinfo:
        Builder().port(0).init()
    assert isinstance(excinfo.value, InitError)
    assert get_handle() is installed


def test_install_again_after_close() -> None:
    first = Builder().port(0).init()
    first.close()
    assert get_vlogger() is None
    second = Builder().port(0).init()
    try:
        assert get_vlogger() is second.vlogger
    finally:
        second.close()


def test_uninstalled_handle_does_not_block_install() -> None:
    side = Builder().port(0).init(install=False)
    try:
        installed = webvlog.init_port(0)
        installed.close()
    finally:
        side.close()


def test_message_records_call_site(installed: TransportHandle) -> None:
    line = sys._getframe().f_lineno + 1
    vlog.message("surface", "hello", color="warn")
    event = _next(installed)
    assert event["msg"] == "hello"
    assert event["surf"] == "surface"
    assert event["meta"] == {
        "target": __name__,
        "file": __file__,
        "line": line,
        "col": "var(--warn)",
    }


def test_shapes_reach_the_channel(installed: TransportHandle) -> None:
    vlog.label("s", (1, 2), "lbl", size=10, alignment=TextAlignment.LEFT, target="t")
    vlog.point("s", (3, 4, 5), "p", size=2, style=PointStyle.FILLED_SQUARE, target="t")
    vlog.line("s", (0, 0), (1, 1), style=LineStyle.ARROW, color=0xFF0000FF, target="t")
    vlog.clear("s")

    label = _next(installed)
    assert label["pos"] == [1.0, 2.0, 0.0]
    assert label["align"] == 0
    assert label["size"] == 10

    point = _next(installed)
    assert point["pos"] == [3.0, 4.0, 5.0]
    assert point["style"] == PointStyle.FILLED_SQUARE.value

    line = _next(installed)
    assert line["pos2"] == [1.0, 1.0, 0.0]
    assert line["style"] == "Arrow"
    assert line["meta"]["col"] == "#FF0000FF"

    assert _next(installed) == {"clear": 1, "surf": "s"}
    assert installed.channel.receive(timeout=0) is None


def test_target_filter_applies_to_call_sites() -> None:
    handle = Builder().port(0).add_target("solver").init()
    try:
        vlog.message("s", "kept", target="solver.step")
        vlog.message("s", "dropped", target="render")
        vlog.message("s", "dropped too")
        assert vlog.enabled("solver") is True
        assert vlog.enabled("render") is False
        assert _next(handle)["msg"] == "kept"
        assert handle.channel.receive(timeout=0) is None
    finally:
        handle.close()


def test_bad_position_raises(installed: TransportHandle) -> None:
    with pytest.raises(ValueError, match="2 or 3 coordinates"):
        vlog.point("s", (1,))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("error", NamedColor.ERROR),
        (" Healthy ", NamedColor.HEALTHY),
        (NamedColor.Z, NamedColor.Z),
        ("#ff8800ff", HexColor(0xFF8800FF)),
        (0x11223344, HexColor(0x11223344)),
        (HexColor(1), HexColor(1)),
    ],
)
def test_coerce_color(value: object, expected: object) -> None:
    assert vlog.coerce_color(value) == expected


@pytest.mark.parametrize("value", [True, 1.5, None])
def test_coerce_color_rejects_other_types(value: object) -> None:
    with pytest.raises(TypeError):
        vlog.coerce_color(value)


def test_coerce_color_rejects_unknown_name() -> None:
    with pytest.raises(ValueError):
        vlog.coerce_color("purple")


def test_builder_from_config_and_env(monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = WebVLogConfig(port=0, targets=["a"], max_pending=3)
    monkeypatch.setenv("WEBVLOG_TARGETS", "b, c")
    handle = Builder.from_config(cfg).targets_from_env().init(install=False)
    try:
        assert handle.vlogger.targets == ("a", "b", "c")
        assert handle.channel.max_pending == 3
        assert handle.installed is False
    finally:
        handle.close()


def test_custom_page_is_served() -> None:
    import http.client

    handle = Builder().port(0).page(b"<p>custom</p>").init(install=False)
    try:
        conn = http.client.HTTPConnection("127.0.0.1", handle.port, timeout=5)
        conn.request("GET", "/")
        assert conn.getresponse().read() == b"<p>custom</p>"
        conn.close()
    finally:
        handle.close()


def test_global_wait_releases_every_waiter(installed: TransportHandle) -> None:
    import socket

    results: list[bool] = []
    threads = [
        threading.Thread(target=lambda: results.append(webvlog.wait_for_connection(timeout=5)))
        for _ in range(3)
    ]
    for thread in threads:
        thread.start()
    with socket.create_connection(("127.0.0.1", installed.port), timeout=5) as sock:
        sock.sendall(
            b"GET / HTTP/1.1\r\nSec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n\r\n"
        )
        assert sock.recv(12).startswith(b"HTTP/1.1 101")
        for thread in threads:
            thread.join(timeout=5)
    assert results == [True, True, True]


def test_global_wait_times_out_without_viewer(installed: TransportHandle) -> None:
    assert webvlog.wait_for_connection(timeout=0.05) is False
