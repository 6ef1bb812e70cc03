from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Union

import streamlit as st

from acai.errors import StoreError
from acai.logs import get_logger
from acai.schema import SCHEMA_SQL

_log = get_logger(__name__)


def connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def ensure_schema(conn: sqlite3.Connection) -> None:
    try:
        # Create base schema (for new installs)
        conn.executescript(SCHEMA_SQL)

        # ---- migrations for existing installs ----
        # Per-pote low-stock minimum (older installs used one global threshold)
        if not _column_exists(conn, "containers", "min_remaining_ml"):
            _log.info("Migrating: adding containers.min_remaining_ml")
            conn.execute("ALTER TABLE containers ADD COLUMN min_remaining_ml REAL NOT NULL DEFAULT 1000;")

        # Stored sale cost; pre-existing rows stay NULL and are derived at read time
        if not _column_exists(conn, "sales", "total_cost"):
            _log.info("Migrating: adding sales.total_cost")
            conn.execute("ALTER TABLE sales ADD COLUMN total_cost REAL;")

        conn.commit()
    except sqlite3.Error as e:
        _log.error("Schema bootstrap failed: %s", e)
        raise StoreError(f"Could not initialize the database: {e}") from e


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    try:
        cur = conn.execute(sql, tuple(params))
        rows = cur.fetchall()
        cur.close()
    except sqlite3.Error as e:
        _log.error("Query failed: %s | %s", e, " ".join(sql.split())[:200])
        raise StoreError(f"Database read failed: {e}") from e
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    """
    Execute a write. With commit=False the caller owns the transaction
    (see `transaction`) and a failure is left for it to roll back.
    """
    try:
        cur = conn.execute(sql, tuple(params))
        if commit:
            conn.commit()
        last = cur.lastrowid
        cur.close()
    except sqlite3.Error as e:
        _log.error("Write failed: %s | %s", e, " ".join(sql.split())[:200])
        if commit:
            conn.rollback()
        raise StoreError(f"Database write failed: {e}") from e
    return int(last or 0)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    One logical unit of work: commit on success, roll back on ANY exception
    and re-raise it. Writes inside must use x(..., commit=False).
    """
    try:
        yield conn
    except BaseException as e:
        conn.rollback()
        _log.error("Transaction rolled back: %s: %s", type(e).__name__, e)
        raise
    else:
        try:
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            _log.error("Commit failed, rolled back: %s", e)
            raise StoreError(f"Database commit failed: {e}") from e
