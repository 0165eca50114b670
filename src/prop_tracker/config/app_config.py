from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

CONFIG_ENV_VAR = "PROP_TRACKER_CONFIG"


@dataclass(frozen=True)
class AppSettings:
    db_path: Path
    host: str
    port: int
    reload: bool
    env_path: Path


@dataclass(frozen=True)
class SyncSettings:
    api_url: str | None
    timeout_seconds: float
    retry_attempts: int
    retry_backoff_seconds: float
    debounce_seconds: float


@dataclass(frozen=True)
class ServerSettings:
    blob_path: Path
    allowed_origins: list[str]


@dataclass(frozen=True)
class AnalyticsSettings:
    rr_bins: list[float]
    frequency_bins: list[tuple[int, int | None]]
    default_range: str


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    sync: SyncSettings
    server: ServerSettings
    analytics: AnalyticsSettings


def load_app_config(path: Path | None = None) -> AppConfig:
    config_path = path or Path(os.environ.get(CONFIG_ENV_VAR, "config/app.toml"))
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    sync_raw = _section(raw, "sync")
    server_raw = _section(raw, "server")
    analytics_raw = _section(raw, "analytics")

    app = AppSettings(
        db_path=Path(app_raw.get("db_path", "data/prop_tracker.sqlite")),
        host=str(app_raw.get("host", "127.0.0.1")),
        port=_int(app_raw.get("port"), 8000),
        reload=bool(app_raw.get("reload", False)),
        env_path=Path(app_raw.get("env_path", ".env")),
    )

    sync = SyncSettings(
        api_url=_str_or_none(sync_raw.get("api_url")),
        timeout_seconds=_float(sync_raw.get("timeout_seconds"), 30.0),
        retry_attempts=_int(sync_raw.get("retry_attempts"), 3),
        retry_backoff_seconds=_float(sync_raw.get("retry_backoff_seconds"), 0.75),
        debounce_seconds=_float(sync_raw.get("debounce_seconds"), 0.5),
    )

    server = ServerSettings(
        blob_path=Path(server_raw.get("blob_path", "data/proptracker.json")),
        allowed_origins=_str_list(server_raw.get("allowed_origins")),
    )

    analytics = AnalyticsSettings(
        rr_bins=_float_list(analytics_raw.get("rr_bins")) or _default_rr_bins(),
        frequency_bins=_parse_frequency_bins(analytics_raw.get("frequency_bins")) or _default_frequency_bins(),
        default_range=str(analytics_raw.get("default_range", "all")).strip().lower() or "all",
    )

    return AppConfig(app=app, sync=sync, server=server, analytics=analytics)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _int(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float) -> float:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _str_or_none(value: Any) -> str | None:
    if value in (None, ""):
        return None
    return str(value).strip().rstrip("/") or None


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [part for part in value.split(",")]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _float_list(value: Any) -> list[float]:
    if not isinstance(value, list):
        return []
    output: list[float] = []
    for item in value:
        try:
            output.append(float(item))
        except (TypeError, ValueError):
            continue
    return output


def _parse_frequency_bins(value: Any) -> list[tuple[int, int | None]]:
    if not isinstance(value, list):
        return []
    output: list[tuple[int, int | None]] = []
    for item in value:
        if not isinstance(item, (list, tuple)) or not item:
            continue
        try:
            low = int(item[0])
            high = int(item[1]) if len(item) > 1 and item[1] not in (None, "", 0) else None
        except (TypeError, ValueError):
            continue
        if low < 1 or (high is not None and high < low):
            continue
        output.append((low, high))
    return output


def _default_rr_bins() -> list[float]:
    return [1.0, 1.5, 2.0, 2.5, 3.0]


def _default_frequency_bins() -> list[tuple[int, int | None]]:
    return [(1, 1), (2, 3), (4, 5), (6, None)]
