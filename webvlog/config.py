from __future__ import annotations

import json
import os
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/webvlog/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "host": "WEBVLOG_HOST",
    "port": "WEBVLOG_PORT",
    "targets": "WEBVLOG_TARGETS",
    "max_pending": "WEBVLOG_MAX_PENDING",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("WEBVLOG_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


def parse_targets(value: str | None) -> list[str]:
    """Split a comma separated prefix list, trimming and dropping empty entries."""

    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class WebVLogConfig:
    host: str = "127.0.0.1"
    port: int = 0
    # Empty means every target is logged.
    targets: list[str] = field(default_factory=list)
    # None keeps the event channel unbounded.
    max_pending: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_optional_int(value: object, default: int | None, *, key: str) -> int | None:
    if value is None:
        return default
    if isinstance(value, str) and value.strip().lower() in {"", "none", "unbounded"}:
        return None
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        return None
    return parsed


def _coerce_str_list(value: object, *, key: str) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, list):
        items: list[str] = []
        for item in value:
            if isinstance(item, str) and item.strip():
                items.append(item.strip())
        return items
    if isinstance(value, str):
        return parse_targets(value)
    warnings.warn(f"Invalid list for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return None


def load_config(path: Path | None = None) -> WebVLogConfig:
    cfg = WebVLogConfig()
    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(
            f"Invalid config file {get_config_path(path)}: {exc}", RuntimeWarning, stacklevel=2
        )
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: WebVLogConfig, data: dict[str, Any]) -> WebVLogConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key == "port":
            cfg.port = _parse_int(value, cfg.port, key=key)
            continue
        if key == "max_pending":
            cfg.max_pending = _parse_optional_int(value, cfg.max_pending, key=key)
            continue
        if key == "targets":
            parsed = _coerce_str_list(value, key=key)
            if parsed is not None:
                cfg.targets = parsed
            continue
        if key == "host" and isinstance(value, str) and value.strip():
            cfg.host = value.strip()
    return cfg


def _apply_env(cfg: WebVLogConfig, overrides: dict[str, str]) -> WebVLogConfig:
    # Environment values are strings; they go through the same coercion as the file.
    return _apply_dict(cfg, overrides)
