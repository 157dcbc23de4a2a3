from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from webvlog.vlogger import get_handle


@pytest.fixture(autouse=True)
def _isolate_webvlog(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    monkeypatch.setenv("WEBVLOG_CONFIG", str(tmp_path / "config.json"))
    for name in ("WEBVLOG_HOST", "WEBVLOG_PORT", "WEBVLOG_TARGETS", "WEBVLOG_MAX_PENDING"):
        monkeypatch.delenv(name, raising=False)
    yield
    handle = get_handle()
    if handle is not None:
        handle.close()
