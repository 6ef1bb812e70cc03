# tests/conftest.py
# ---------------------------------------------------------------------
# - Every test gets its own in-memory SQLite DB with the full schema
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (same as the app)
# - Small factories for catalog entries / potes
# - Stand clock pinned to UTC and no low-stock override from the shell
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3

import pytest

from acai.config import ENV_LOW_STOCK_ML, ENV_TIMEZONE
from acai.db import connect, ensure_schema
from acai.services.catalog import create_entry
from acai.services.containers import register_container


@pytest.fixture(autouse=True)
def _stand_env(monkeypatch):
    monkeypatch.setenv(ENV_TIMEZONE, "UTC")
    monkeypatch.delenv(ENV_LOW_STOCK_ML, raising=False)


@pytest.fixture()
def conn():
    con = connect(":memory:")
    ensure_schema(con)
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def make_entry(conn: sqlite3.Connection):
    counter = {"n": 0}

    def _make(serving_ml: float = 400, sale_price: float = 20.0, name: str | None = None):
        counter["n"] += 1
        return create_entry(
            conn,
            name=name or f"Copo {serving_ml:g}ml #{counter['n']}",
            serving_ml=serving_ml,
            sale_price=sale_price,
        )

    return _make


@pytest.fixture()
def make_pote(conn: sqlite3.Connection):
    def _make(
        total_ml: float = 1000,
        cost: float = 10.0,
        remaining_ml: float | None = None,
        label: str = "Açaí Tradicional",
        purchase_date: str = "2026-10-01",
        min_remaining_ml: float | None = None,
    ):
        c = register_container(
            conn,
            label=label,
            total_ml=total_ml,
            cost_basis=cost,
            purchase_date=purchase_date,
            min_remaining_ml=min_remaining_ml,
        )
        if remaining_ml is not None:
            # Start from a partially used pote without going through sales
            conn.execute(
                "UPDATE containers SET remaining_ml=?, status=? WHERE id=?",
                (float(remaining_ml), "ACTIVE" if remaining_ml > 0 else "DEPLETED", c.id),
            )
            conn.commit()
            c.remaining_ml = float(remaining_ml)
        return c

    return _make


@pytest.fixture()
def remaining(conn: sqlite3.Connection):
    """remaining(container_id) -> remaining_ml as stored."""

    def _get(container_id: int) -> float:
        row = conn.execute("SELECT remaining_ml FROM containers WHERE id=?", (container_id,)).fetchone()
        return float(row[0])

    return _get
