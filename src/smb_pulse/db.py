# SMB Pulse - Finance tracking dashboard insights for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Key-value storage layer for SMB Pulse.

The dashboard only persists small pieces of user state (for example the set
of dismissed insights). They are stored as named text slots in a single
SQLite table, which plays the role of the host application's key-value
storage.

------------------------------------------------------------------------------
Schema
------------------------------------------------------------------------------

1) kv_store
   One row per named slot.

   Columns:
   - key         TEXT PRIMARY KEY
   - value       TEXT NOT NULL      -- opaque text (JSON for structured data)
   - updated_at  TEXT NOT NULL      -- ISO datetime, UTC

------------------------------------------------------------------------------
Notes
------------------------------------------------------------------------------

- Functions in this module let `sqlite3.Error` propagate. Callers that
  treat persistence as best-effort (dismissals.py) decide how to degrade.
- `init_database` is idempotent and called by every accessor, so a fresh
  path works without an explicit setup step.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB Pulse.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


class Storage(Protocol):
    """Minimal key-value storage interface used by the dismissal store."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    return sqlite3.connect(cfg.path)


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """Create the kv_store table if it does not exist yet."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );
        """
    )
    conn.commit()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates the kv_store table if it is missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    _ensure_sqlite(cfg)
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


def get_value(cfg: DatabaseConfig, key: str) -> Optional[str]:
    """Return the text stored under `key`, or None if the slot is empty."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("SELECT value FROM kv_store WHERE key = ?;", (key,))
        row = cur.fetchone()
    finally:
        conn.close()

    return None if row is None else row[0]


def set_value(cfg: DatabaseConfig, key: str, value: str) -> None:
    """Create or overwrite the slot `key` with `value`."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at;
            """,
            (key, value, _now_utc_iso()),
        )
        conn.commit()
    finally:
        conn.close()


def delete_value(cfg: DatabaseConfig, key: str) -> bool:
    """
    Remove the slot `key`.

    Returns
    -------
    bool
        True if a slot was removed, False if it did not exist.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("DELETE FROM kv_store WHERE key = ?;", (key,))
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()


class KeyValueStorage:
    """Storage adapter exposing a SQLite database as named text slots."""

    def __init__(self, cfg: DatabaseConfig) -> None:
        self.cfg = cfg

    def get_item(self, key: str) -> Optional[str]:
        return get_value(self.cfg, key)

    def set_item(self, key: str, value: str) -> None:
        set_value(self.cfg, key, value)

    def remove_item(self, key: str) -> None:
        delete_value(self.cfg, key)


class MemoryStorage:
    """In-process storage, for embedding callers and tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
