from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from acai.db import q, transaction, x
from acai.errors import InsufficientVolumeError, NotFoundError, ValidationError
from acai.logs import get_logger
from acai.services.catalog import CatalogEntry, find_entry, get_entry
from acai.services.containers import Container, check_available, debit, find_container, get_container
from acai.utils import TimestampLike, iso_now, safe_div, to_iso_ts

_log = get_logger(__name__)


@dataclass
class SaleResult:
    sale_id: int
    quantity: int
    total_price: float
    total_cost: float
    ml_consumed: float
    per_container_ml: float
    container_ids: list[int]

    @property
    def profit(self) -> float:
        return self.total_price - self.total_cost


@dataclass
class SaleRecord:
    id: int
    sale_ts: str
    catalog_entry_id: int
    quantity: int
    unit_price: float
    total_price: float
    total_cost: Optional[float]  # None on legacy rows
    ml_consumed: float
    notes: Optional[str]
    entry_name: Optional[str] = None
    container_ids: list[int] = field(default_factory=list)

    @property
    def per_container_ml(self) -> float:
        return safe_div(self.ml_consumed, len(self.container_ids))


@dataclass
class SaleLink:
    position: int
    container_id: int
    volume_ml: float
    container: Optional[Container]  # None once the pote has been deleted


@dataclass
class SaleDetails:
    sale: SaleRecord
    entry: Optional[CatalogEntry]
    links: list[SaleLink]


def _record_from_row(r, container_ids: list[int]) -> SaleRecord:
    keys = r.keys()
    return SaleRecord(
        id=int(r["id"]),
        sale_ts=str(r["sale_ts"]),
        catalog_entry_id=int(r["catalog_entry_id"]),
        quantity=int(r["quantity"]),
        unit_price=float(r["unit_price"]),
        total_price=float(r["total_price"]),
        total_cost=float(r["total_cost"]) if r["total_cost"] is not None else None,
        ml_consumed=float(r["ml_consumed"]),
        notes=r["notes"],
        entry_name=(r["entry_name"] if "entry_name" in keys else None),
        container_ids=container_ids,
    )


def _links_by_sale(conn, sale_ids: list[int]) -> dict[int, list]:
    if not sale_ids:
        return {}
    marks = ",".join("?" for _ in sale_ids)
    rows = q(
        conn,
        f"""
        SELECT sale_id, position, container_id, volume_ml
        FROM sale_containers
        WHERE sale_id IN ({marks})
        ORDER BY sale_id, position
        """,
        sale_ids,
    )
    out: dict[int, list] = {int(s): [] for s in sale_ids}
    for r in rows:
        out[int(r["sale_id"])].append(r)
    return out


def _normalize_container_ids(container_ids: Optional[Iterable[int]]) -> list[int]:
    ids = [int(c) for c in (container_ids or []) if c is not None]
    if not ids:
        raise ValidationError("Select at least one pote.")
    if len(set(ids)) != len(ids):
        raise ValidationError("The same pote was selected more than once.")
    return ids


def _positive_int(value, what: str) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{what} must be a whole number.")
    if v <= 0 or v != float(value):
        raise ValidationError(f"{what} must be a whole number > 0.")
    return v


def _normalize_unit_price(unit_price: Optional[float], default: float) -> float:
    if unit_price is None:
        return float(default)
    try:
        up = float(unit_price)
    except (TypeError, ValueError):
        raise ValidationError("Unit price must be a number.")
    if not math.isfinite(up) or up <= 0:
        raise ValidationError("Unit price must be > 0.")
    return up


def _normalize_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    s = str(notes).strip()
    return s if s else None


def allocate_sale(
    conn,
    *,
    catalog_entry_id: int,
    quantity: int,
    container_ids: Iterable[int],
    unit_price: Optional[float] = None,
    notes: Optional[str] = None,
    sale_ts: Optional[TimestampLike] = None,
) -> SaleResult:
    """
    Record a sale drawing the same volume from each selected pote.

    Everything that can be checked up front is checked before any write, so
    a rejected sale leaves every pote untouched. The debits, the sale row and
    its pote links are then written in one transaction.
    """
    entry = get_entry(conn, catalog_entry_id)
    qty = _positive_int(quantity, "Quantity")
    total_ml = entry.serving_ml * qty

    ids = _normalize_container_ids(container_ids)
    per_container_ml = total_ml / len(ids)

    up = _normalize_unit_price(unit_price, entry.sale_price)
    ts = to_iso_ts(sale_ts)

    containers = [get_container(conn, cid) for cid in ids]
    for c in containers:
        try:
            check_available(c, per_container_ml)
        except InsufficientVolumeError as e:
            _log.warning("Sale rejected: %s", e)
            raise

    total_cost = sum(c.cost_per_ml * per_container_ml for c in containers)
    total_price = round(qty * up, 2)

    with transaction(conn):
        for c in containers:
            debit(conn, c.id, per_container_ml, commit=False)

        sale_id = x(
            conn,
            """
            INSERT INTO sales (
                sale_ts, catalog_entry_id, quantity, unit_price,
                total_price, total_cost, ml_consumed, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ts,
                entry.id,
                qty,
                up,
                total_price,
                float(total_cost),
                float(total_ml),
                _normalize_notes(notes),
                iso_now(),
            ),
            commit=False,
        )

        for pos, c in enumerate(containers):
            x(
                conn,
                """
                INSERT INTO sale_containers (sale_id, position, container_id, volume_ml)
                VALUES (?, ?, ?, ?)
                """,
                (int(sale_id), pos, c.id, float(per_container_ml)),
                commit=False,
            )

    _log.info(
        "Sale #%s: %s x %r, %.0f ml over %s pote(s), price %.2f, cost %.2f",
        sale_id,
        qty,
        entry.name,
        total_ml,
        len(containers),
        total_price,
        total_cost,
    )
    return SaleResult(
        sale_id=int(sale_id),
        quantity=qty,
        total_price=total_price,
        total_cost=float(total_cost),
        ml_consumed=float(total_ml),
        per_container_ml=float(per_container_ml),
        container_ids=[c.id for c in containers],
    )


def find_sale(conn, sale_id: int) -> Optional[SaleRecord]:
    rows = q(
        conn,
        """
        SELECT s.*, ce.name AS entry_name
        FROM sales s
        LEFT JOIN catalog_entries ce ON ce.id = s.catalog_entry_id
        WHERE s.id=?
        """,
        (int(sale_id),),
    )
    if not rows:
        return None
    links = _links_by_sale(conn, [int(sale_id)])[int(sale_id)]
    return _record_from_row(rows[0], [int(l["container_id"]) for l in links])


def get_sale(conn, sale_id: int) -> SaleRecord:
    s = find_sale(conn, sale_id)
    if s is None:
        raise NotFoundError(f"Sale #{int(sale_id)} not found.")
    return s


def get_sale_details(conn, sale_id: int) -> SaleDetails:
    sale = get_sale(conn, sale_id)
    links = [
        SaleLink(
            position=int(l["position"]),
            container_id=int(l["container_id"]),
            volume_ml=float(l["volume_ml"]),
            container=find_container(conn, int(l["container_id"])),
        )
        for l in _links_by_sale(conn, [sale.id])[sale.id]
    ]
    return SaleDetails(sale=sale, entry=find_entry(conn, sale.catalog_entry_id), links=links)


def list_sales(
    conn,
    start: Optional[TimestampLike] = None,
    end: Optional[TimestampLike] = None,
    limit: Optional[int] = None,
) -> list[SaleRecord]:
    """Newest first; optional [start, end) window on sale_ts."""
    where, params = [], []
    if start is not None:
        where.append("s.sale_ts >= ?")
        params.append(to_iso_ts(start))
    if end is not None:
        where.append("s.sale_ts < ?")
        params.append(to_iso_ts(end))

    sql = """
        SELECT s.*, ce.name AS entry_name
        FROM sales s
        LEFT JOIN catalog_entries ce ON ce.id = s.catalog_entry_id
    """
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY s.sale_ts DESC, s.id DESC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    rows = q(conn, sql, params)
    links = _links_by_sale(conn, [int(r["id"]) for r in rows])
    return [
        _record_from_row(r, [int(l["container_id"]) for l in links[int(r["id"])]])
        for r in rows
    ]
