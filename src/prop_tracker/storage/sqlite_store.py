from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Mapping

from prop_tracker.journal import Journal
from prop_tracker.models import ACCOUNT_TYPE_EVALUATION, Account
from prop_tracker.storage import codec

_INITIALIZED_KEY = "initialized"


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS collections (
            key TEXT PRIMARY KEY,
            payload_json TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS store_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )
    conn.commit()
    _initialize(conn)
    migrate_accounts(conn)


def read_collection(conn: sqlite3.Connection, key: str) -> list[dict[str, Any]]:
    row = conn.execute("SELECT payload_json FROM collections WHERE key = ?", (key,)).fetchone()
    if row is None:
        return []
    try:
        payload = json.loads(row["payload_json"])
    except json.JSONDecodeError:
        return []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


def write_collection(conn: sqlite3.Connection, key: str, items: Iterable[Mapping[str, Any]]) -> int:
    if key not in codec.BUNDLE_KEYS:
        raise ValueError(f"Unknown collection: {key}")
    rows = [dict(item) for item in items]
    conn.execute(
        """
        INSERT INTO collections (key, payload_json, updated_at)
        VALUES (?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(key) DO UPDATE SET
            payload_json=excluded.payload_json,
            updated_at=excluded.updated_at
        """,
        (key, json.dumps(rows, sort_keys=True)),
    )
    conn.commit()
    return len(rows)


def read_bundle(conn: sqlite3.Connection) -> dict[str, list[dict[str, Any]]]:
    return {key: read_collection(conn, key) for key in codec.BUNDLE_KEYS}


def write_bundle(conn: sqlite3.Connection, payload: Mapping[str, Any]) -> list[str]:
    written: list[str] = []
    for key in codec.BUNDLE_KEYS:
        items = payload.get(key)
        if not isinstance(items, list):
            continue
        write_collection(conn, key, [item for item in items if isinstance(item, Mapping)])
        written.append(key)
    return written


def load_journal(conn: sqlite3.Connection, **kwargs: Any) -> Journal:
    return Journal.from_bundle(read_bundle(conn), **kwargs)


def save_journal(conn: sqlite3.Connection, journal: Journal, keys: Iterable[str] | None = None) -> None:
    bundle = journal.to_bundle()
    for key in keys or codec.BUNDLE_KEYS:
        write_collection(conn, key, bundle[key])


def save_accounts(conn: sqlite3.Connection, accounts: Iterable[Account]) -> int:
    return write_collection(conn, codec.KEY_ACCOUNTS, codec.encode_collection(codec.KEY_ACCOUNTS, accounts))


def migrate_accounts(conn: sqlite3.Connection) -> int:
    """Backfill ``type`` on accounts written before funded accounts existed."""
    accounts = read_collection(conn, codec.KEY_ACCOUNTS)
    missing = [account for account in accounts if not account.get("type")]
    if not missing:
        return 0
    migrated = [{**account, "type": account.get("type") or ACCOUNT_TYPE_EVALUATION} for account in accounts]
    write_collection(conn, codec.KEY_ACCOUNTS, migrated)
    return len(missing)


def reset(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM collections")
    conn.execute("DELETE FROM store_meta")
    conn.commit()
    _initialize(conn)


def _initialize(conn: sqlite3.Connection) -> None:
    row = conn.execute("SELECT value FROM store_meta WHERE key = ?", (_INITIALIZED_KEY,)).fetchone()
    if row is not None:
        return
    for key in codec.BUNDLE_KEYS:
        conn.execute(
            "INSERT OR IGNORE INTO collections (key, payload_json, updated_at) VALUES (?, '[]', CURRENT_TIMESTAMP)",
            (key,),
        )
    conn.execute("INSERT INTO store_meta (key, value) VALUES (?, '1')", (_INITIALIZED_KEY,))
    conn.commit()
