from __future__ import annotations

import os
from importlib import resources

_SITE_HTML: bytes | None = None


def _no_cache_enabled() -> bool:
    return os.environ.get("WEBVLOG_VIEWER_NO_CACHE") == "1"


def _read_site_html() -> bytes:
    return resources.files(__package__).joinpath("viewer_static/site.html").read_bytes()


def get_site_html_bytes() -> bytes:
    global _SITE_HTML
    if _no_cache_enabled():
        return _read_site_html()
    if _SITE_HTML is None:
        _SITE_HTML = _read_site_html()
    return _SITE_HTML
