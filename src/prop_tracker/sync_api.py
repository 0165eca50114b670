from __future__ import annotations

import argparse
import json
import logging
import os
import sqlite3
import sys
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from prop_tracker.config.app_config import SyncSettings, load_app_config
from prop_tracker.journal import Journal
from prop_tracker.storage.sqlite_store import (
    connect,
    init_db,
    load_journal,
    read_bundle,
    save_journal,
    write_bundle,
)

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_SYNCING = "syncing"
STATUS_SYNCED = "synced"
STATUS_ERROR = "error"
STATUS_DISABLED = "disabled"

SYNC_PATH = "/sync"


@dataclass(frozen=True)
class SyncConfig:
    api_url: str
    auth_token: str
    timeout_seconds: float
    retry_attempts: int
    retry_backoff_seconds: float
    debounce_seconds: float

    @classmethod
    def from_env(cls, env: Mapping[str, str], settings: SyncSettings) -> "SyncConfig | None":
        """Build a config, or ``None`` when the URL or token is missing (sync disabled)."""
        api_url = (env.get("PROP_TRACKER_SYNC_URL", "").strip() or settings.api_url or "").rstrip("/")
        auth_token = env.get("PROP_TRACKER_SYNC_TOKEN", "").strip()
        if not api_url or not auth_token:
            return None
        return cls(
            api_url=api_url,
            auth_token=auth_token,
            timeout_seconds=settings.timeout_seconds,
            retry_attempts=settings.retry_attempts,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            debounce_seconds=settings.debounce_seconds,
        )


def load_dotenv(path: Path) -> dict[str, str]:
    env: dict[str, str] = {}
    if not path.exists():
        return env

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        env[key.strip()] = value.strip().strip("\"").strip("'")
    return env


class SyncClient:
    def __init__(self, config: SyncConfig) -> None:
        self._config = config

    @property
    def url(self) -> str:
        return f"{self._config.api_url}{SYNC_PATH}"

    def push(self, bundle: Mapping[str, Any]) -> None:
        body = json.dumps(bundle).encode("utf-8")
        self._send("PUT", body)

    def pull(self) -> dict[str, Any]:
        payload = self._send("GET", None)
        if not payload:
            return {}
        try:
            data = json.loads(payload.decode("utf-8"))
        except json.JSONDecodeError as exc:
            snippet = payload[:200].decode("utf-8", errors="replace")
            raise RuntimeError(f"Non-JSON response from {self.url}: {snippet}") from exc
        if not isinstance(data, dict):
            raise RuntimeError(f"Unexpected sync payload type: {type(data).__name__}")
        return data

    def _send(self, method: str, body: bytes | None) -> bytes:
        attempts = max(1, self._config.retry_attempts)
        for attempt in range(attempts):
            try:
                return _send_request(
                    url=self.url,
                    method=method,
                    auth_token=self._config.auth_token,
                    body=body,
                    timeout_seconds=self._config.timeout_seconds,
                )
            except RuntimeError as exc:
                if not _should_retry(exc, attempt, attempts):
                    raise
                time.sleep(self._config.retry_backoff_seconds * (2**attempt))
        raise RuntimeError("Request retry loop exited without sending.")


class SyncScheduler:
    """Debounced push: each mutation restarts the timer, so the last scheduled push wins."""

    def __init__(
        self,
        client: SyncClient | None,
        bundle_fn: Callable[[], Mapping[str, Any]],
        *,
        debounce_seconds: float = 0.5,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ) -> None:
        self._client = client
        self._bundle_fn = bundle_fn
        self._debounce_seconds = debounce_seconds
        self._timer_factory = timer_factory
        self._timer: Any = None
        self._lock = threading.Lock()
        self.status = STATUS_IDLE if client is not None else STATUS_DISABLED

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def schedule(self, _key: str | None = None) -> None:
        if self._client is None:
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self._debounce_seconds, self.flush)
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def flush(self) -> bool:
        if self._client is None:
            return False
        with self._lock:
            self._timer = None
        self.status = STATUS_SYNCING
        try:
            self._client.push(self._bundle_fn())
        except RuntimeError as exc:
            logger.warning("Sync push failed: %s", exc)
            self.status = STATUS_ERROR
            return False
        self.status = STATUS_SYNCED
        return True

    def pull(self) -> dict[str, Any] | None:
        """Fetch the remote bundle; ``None`` when disabled or unreachable."""
        if self._client is None:
            return None
        self.status = STATUS_SYNCING
        try:
            payload = self._client.pull()
        except RuntimeError as exc:
            logger.warning("Sync pull failed: %s", exc)
            self.status = STATUS_IDLE
            return None
        self.status = STATUS_SYNCED
        return payload

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


def bind_journal(journal: Journal, conn: sqlite3.Connection, scheduler: SyncScheduler) -> None:
    """Persist each changed collection locally, then schedule a remote push."""

    def _on_change(key: str) -> None:
        save_journal(conn, journal, keys=[key])
        scheduler.schedule(key)

    journal.subscribe(_on_change)


def open_journal(conn: sqlite3.Connection, scheduler: SyncScheduler, **kwargs: Any) -> Journal:
    """Open the local store, overlaying the remote bundle when one can be pulled."""
    init_db(conn)
    remote = scheduler.pull()
    if remote:
        written = write_bundle(conn, remote)
        logger.info("Pulled %d collections from sync store.", len(written))
    journal = load_journal(conn, **kwargs)
    bind_journal(journal, conn, scheduler)
    return journal


def build_scheduler(journal_fn: Callable[[], Journal], env: Mapping[str, str], settings: SyncSettings) -> SyncScheduler:
    config = SyncConfig.from_env(env, settings)
    client = SyncClient(config) if config is not None else None
    return SyncScheduler(
        client,
        lambda: journal_fn().to_bundle(),
        debounce_seconds=settings.debounce_seconds,
    )


def _send_request(
    url: str,
    method: str,
    auth_token: str,
    body: bytes | None,
    timeout_seconds: float,
) -> bytes:
    headers = {
        "Authorization": f"Bearer {auth_token}",
        "Accept": "application/json",
    }
    if body is not None:
        headers["Content-Type"] = "application/json"

    request = urllib.request.Request(url, headers=headers, data=body, method=method)
    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            return response.read()
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode("utf-8") if exc.fp else ""
        raise RuntimeError(f"HTTP {exc.code}: {detail}") from exc
    except TimeoutError as exc:
        raise RuntimeError(f"Request timed out: {url}") from exc
    except (urllib.error.URLError, OSError) as exc:
        raise RuntimeError(f"Request failed: {exc}") from exc


def _should_retry(exc: Exception, attempt: int, attempts: int) -> bool:
    if attempt >= attempts - 1:
        return False
    message = str(exc).lower()
    if "timed out" in message:
        return True
    if "http 408" in message or "http 429" in message:
        return True
    if "http 5" in message:
        return True
    return False


def main(argv: list[str] | None = None) -> int:
    app_config = load_app_config()
    parser = argparse.ArgumentParser(description="Push or pull the journal bundle to the remote sync store.")
    parser.add_argument("direction", choices=("push", "pull"), help="Sync direction.")
    parser.add_argument("--db", type=Path, default=app_config.app.db_path, help="SQLite DB path.")
    parser.add_argument("--env", type=Path, default=app_config.app.env_path, help="Path to .env file.")
    args = parser.parse_args(argv)

    env = {**load_dotenv(args.env), **os.environ}
    config = SyncConfig.from_env(env, app_config.sync)
    if config is None:
        print("Sync disabled: set PROP_TRACKER_SYNC_URL and PROP_TRACKER_SYNC_TOKEN.", file=sys.stderr)
        return 1

    client = SyncClient(config)
    conn = connect(args.db)
    try:
        init_db(conn)
        if args.direction == "push":
            client.push(read_bundle(conn))
            print(f"Pushed journal to {client.url}.")
            return 0
        payload = client.pull()
        written = write_bundle(conn, payload)
        if not written:
            print("Remote store is empty; nothing pulled.")
            return 0
        print(f"Pulled {', '.join(written)} from {client.url}.")
    except RuntimeError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
