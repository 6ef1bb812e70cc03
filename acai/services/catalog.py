from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from acai.db import q, x
from acai.errors import NotFoundError, ValidationError
from acai.logs import get_logger
from acai.utils import iso_now

_log = get_logger(__name__)

DEFAULT_CATEGORY = "Geral"


@dataclass
class CatalogEntry:
    id: int
    name: str
    serving_ml: float
    sale_price: float
    category: str

    @classmethod
    def from_row(cls, r) -> "CatalogEntry":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            serving_ml=float(r["serving_ml"]),
            sale_price=float(r["sale_price"]),
            category=str(r["category"]),
        )


def _validate(name: str, serving_ml: float, sale_price: float, category: Optional[str]) -> tuple:
    n = str(name or "").strip()
    if not n:
        raise ValidationError("Name is required.")
    try:
        ml = float(serving_ml)
        price = float(sale_price)
    except (TypeError, ValueError):
        raise ValidationError("Serving volume and price must be numbers.")
    if not (math.isfinite(ml) and math.isfinite(price)):
        raise ValidationError("Serving volume and price must be finite numbers.")
    if ml <= 0:
        raise ValidationError("Serving volume (ml) must be > 0.")
    if price <= 0:
        raise ValidationError("Sale price must be > 0.")
    cat = str(category or "").strip() or DEFAULT_CATEGORY
    return n, ml, price, cat


def _ensure_unique_name(conn, name: str, exclude_id: Optional[int] = None) -> None:
    rows = q(conn, "SELECT id FROM catalog_entries WHERE name=?", (name,))
    if rows and (exclude_id is None or int(rows[0]["id"]) != int(exclude_id)):
        raise ValidationError(f"A catalog entry named {name!r} already exists.")


def find_entry(conn, entry_id: int) -> Optional[CatalogEntry]:
    rows = q(conn, "SELECT * FROM catalog_entries WHERE id=?", (int(entry_id),))
    return CatalogEntry.from_row(rows[0]) if rows else None


def get_entry(conn, entry_id: int) -> CatalogEntry:
    e = find_entry(conn, entry_id)
    if e is None:
        raise NotFoundError(f"Catalog entry #{int(entry_id)} not found.")
    return e


def list_entries(conn) -> list[CatalogEntry]:
    rows = q(conn, "SELECT * FROM catalog_entries ORDER BY serving_ml, name")
    return [CatalogEntry.from_row(r) for r in rows]


def create_entry(
    conn,
    *,
    name: str,
    serving_ml: float,
    sale_price: float,
    category: Optional[str] = None,
) -> CatalogEntry:
    n, ml, price, cat = _validate(name, serving_ml, sale_price, category)
    _ensure_unique_name(conn, n)

    now = iso_now()
    entry_id = x(
        conn,
        """
        INSERT INTO catalog_entries (name, serving_ml, sale_price, category, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (n, ml, price, cat, now, now),
    )
    _log.info("Catalog entry #%s %r: %.0f ml @ %.2f", entry_id, n, ml, price)
    return get_entry(conn, entry_id)


def update_entry(
    conn,
    entry_id: int,
    *,
    name: str,
    serving_ml: float,
    sale_price: float,
    category: Optional[str] = None,
) -> CatalogEntry:
    current = get_entry(conn, entry_id)
    n, ml, price, cat = _validate(name, serving_ml, sale_price, category)
    _ensure_unique_name(conn, n, exclude_id=current.id)

    x(
        conn,
        """
        UPDATE catalog_entries
        SET name=?, serving_ml=?, sale_price=?, category=?, updated_at=?
        WHERE id=?
        """,
        (n, ml, price, cat, iso_now(), current.id),
    )
    _log.info("Catalog entry #%s updated", current.id)
    return get_entry(conn, current.id)


def delete_entry(conn, entry_id: int) -> None:
    e = get_entry(conn, entry_id)
    used = q(conn, "SELECT COUNT(1) AS n FROM sales WHERE catalog_entry_id=?", (e.id,))
    if int(used[0]["n"]) > 0:
        raise ValidationError(
            f"{e.name!r} is referenced by {int(used[0]['n'])} sale(s) and can't be deleted."
        )
    x(conn, "DELETE FROM catalog_entries WHERE id=?", (e.id,))
    _log.info("Catalog entry #%s %r deleted", e.id, e.name)
