from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from acai.config import low_stock_default_ml
from acai.db import q, x
from acai.errors import InsufficientVolumeError, NotFoundError, ValidationError
from acai.logs import get_logger
from acai.utils import ML_EPS, TimestampLike, iso_now, safe_div, to_iso_ts

_log = get_logger(__name__)

STATUS_ACTIVE = "ACTIVE"
STATUS_DEPLETED = "DEPLETED"
STATUSES = (STATUS_ACTIVE, STATUS_DEPLETED)


@dataclass
class Container:
    id: int
    label: str
    total_ml: float
    remaining_ml: float
    cost_basis: float
    purchase_date: str
    status: str
    min_remaining_ml: float

    @property
    def cost_per_ml(self) -> float:
        # Fixed at purchase: whole-pote cost over whole-pote volume.
        return safe_div(self.cost_basis, self.total_ml)

    @property
    def pct_remaining(self) -> float:
        return safe_div(self.remaining_ml, self.total_ml) * 100.0

    @property
    def is_low_stock(self) -> bool:
        return self.remaining_ml <= self.min_remaining_ml

    @classmethod
    def from_row(cls, r) -> "Container":
        return cls(
            id=int(r["id"]),
            label=str(r["label"]),
            total_ml=float(r["total_ml"]),
            remaining_ml=float(r["remaining_ml"]),
            cost_basis=float(r["cost_basis"]),
            purchase_date=str(r["purchase_date"]),
            status=str(r["status"]),
            min_remaining_ml=float(r["min_remaining_ml"]),
        )


def _status_for(remaining_ml: float) -> str:
    return STATUS_DEPLETED if remaining_ml <= ML_EPS else STATUS_ACTIVE


def _positive_float(value, what: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a number.")
    if not math.isfinite(v):
        raise ValidationError(f"{what} must be a finite number.")
    if v <= 0:
        raise ValidationError(f"{what} must be > 0.")
    return v


def _non_negative_float(value, what: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{what} must be a number.")
    if not math.isfinite(v):
        raise ValidationError(f"{what} must be a finite number.")
    if v < 0:
        raise ValidationError(f"{what} must be >= 0.")
    return v


def _normalize_label(label: Optional[str]) -> str:
    s = str(label or "").strip()
    if not s:
        raise ValidationError("Flavor/label is required.")
    return s


def find_container(conn, container_id: int) -> Optional[Container]:
    rows = q(conn, "SELECT * FROM containers WHERE id=?", (int(container_id),))
    return Container.from_row(rows[0]) if rows else None


def get_container(conn, container_id: int) -> Container:
    c = find_container(conn, container_id)
    if c is None:
        raise NotFoundError(f"Pote #{int(container_id)} not found.")
    return c


def list_containers(conn, status: Optional[str] = None) -> list[Container]:
    if status is None:
        rows = q(conn, "SELECT * FROM containers ORDER BY purchase_date DESC, id DESC")
    else:
        st_ = str(status).strip().upper()
        if st_ not in STATUSES:
            raise ValidationError(f"Invalid status {status!r}. Use ACTIVE or DEPLETED.")
        rows = q(
            conn,
            "SELECT * FROM containers WHERE status=? ORDER BY purchase_date DESC, id DESC",
            (st_,),
        )
    return [Container.from_row(r) for r in rows]


def list_available_containers(conn) -> list[Container]:
    """Potes a sale can draw from, oldest purchase first."""
    rows = q(
        conn,
        """
        SELECT * FROM containers
        WHERE status='ACTIVE' AND remaining_ml > 0
        ORDER BY purchase_date ASC, id ASC
        """,
    )
    return [Container.from_row(r) for r in rows]


def register_container(
    conn,
    *,
    label: str,
    total_ml: float,
    cost_basis: float,
    purchase_date: Optional[TimestampLike] = None,
    min_remaining_ml: Optional[float] = None,
) -> Container:
    label = _normalize_label(label)
    total = _positive_float(total_ml, "Total volume (ml)")
    cost = _non_negative_float(cost_basis, "Cost")
    if min_remaining_ml is None:
        min_ml = low_stock_default_ml()
    else:
        min_ml = _non_negative_float(min_remaining_ml, "Low-stock minimum (ml)")

    container_id = x(
        conn,
        """
        INSERT INTO containers (
            label, total_ml, remaining_ml, cost_basis, purchase_date,
            status, min_remaining_ml, created_at
        ) VALUES (?, ?, ?, ?, ?, 'ACTIVE', ?, ?)
        """,
        (label, total, total, cost, to_iso_ts(purchase_date), min_ml, iso_now()),
    )
    _log.info("Registered pote #%s %r: %.0f ml for %.2f", container_id, label, total, cost)
    return get_container(conn, container_id)


def update_container(
    conn,
    container_id: int,
    *,
    label: Optional[str] = None,
    cost_basis: Optional[float] = None,
    purchase_date: Optional[TimestampLike] = None,
    min_remaining_ml: Optional[float] = None,
    total_ml: Optional[float] = None,
) -> Container:
    """
    Edit descriptive fields. The volume can only be changed while the pote
    is untouched (remaining == total); afterwards it would corrupt the
    consumption history.
    """
    c = get_container(conn, container_id)

    new_label = c.label if label is None else _normalize_label(label)
    new_cost = c.cost_basis if cost_basis is None else _non_negative_float(cost_basis, "Cost")
    new_date = c.purchase_date if purchase_date is None else to_iso_ts(purchase_date)
    new_min = c.min_remaining_ml if min_remaining_ml is None else _non_negative_float(
        min_remaining_ml, "Low-stock minimum (ml)"
    )

    new_total, new_remaining = c.total_ml, c.remaining_ml
    if total_ml is not None:
        t = _positive_float(total_ml, "Total volume (ml)")
        if abs(t - c.total_ml) > ML_EPS:
            if abs(c.remaining_ml - c.total_ml) > ML_EPS:
                raise ValidationError(
                    "Volume can't be changed after the pote has been used in sales."
                )
            new_total, new_remaining = t, t

    x(
        conn,
        """
        UPDATE containers
        SET label=?, cost_basis=?, purchase_date=?, min_remaining_ml=?,
            total_ml=?, remaining_ml=?, status=?
        WHERE id=?
        """,
        (
            new_label,
            new_cost,
            new_date,
            new_min,
            new_total,
            new_remaining,
            _status_for(new_remaining),
            c.id,
        ),
    )
    _log.info("Updated pote #%s", c.id)
    return get_container(conn, c.id)


def delete_container(conn, container_id: int) -> None:
    # Past sales keep their link rows; reversal skips the missing pote.
    c = get_container(conn, container_id)
    x(conn, "DELETE FROM containers WHERE id=?", (c.id,))
    _log.info("Deleted pote #%s %r (%.0f ml left)", c.id, c.label, c.remaining_ml)


def check_available(c: Container, volume_ml: float) -> None:
    if float(volume_ml) > c.remaining_ml + ML_EPS:
        raise InsufficientVolumeError(
            c.id, needed_ml=float(volume_ml), available_ml=c.remaining_ml, label=c.label
        )


def debit(conn, container_id: int, volume_ml: float, *, commit: bool = True) -> Container:
    vol = _positive_float(volume_ml, "Volume (ml)")
    c = get_container(conn, container_id)
    check_available(c, vol)

    remaining = max(0.0, c.remaining_ml - vol)
    if remaining <= ML_EPS:
        remaining = 0.0
    status = _status_for(remaining)

    x(
        conn,
        "UPDATE containers SET remaining_ml=?, status=? WHERE id=?",
        (remaining, status, c.id),
        commit=commit,
    )
    _log.info("Debited %.2f ml from pote #%s (%.2f ml left, %s)", vol, c.id, remaining, status)

    c.remaining_ml = remaining
    c.status = status
    return c


def credit(conn, container_id: int, volume_ml: float, *, commit: bool = True) -> Container:
    vol = _non_negative_float(volume_ml, "Volume (ml)")
    c = get_container(conn, container_id)

    remaining = min(c.total_ml, c.remaining_ml + vol)
    status = _status_for(remaining)

    x(
        conn,
        "UPDATE containers SET remaining_ml=?, status=? WHERE id=?",
        (remaining, status, c.id),
        commit=commit,
    )
    _log.info("Credited %.2f ml to pote #%s (%.2f ml left, %s)", vol, c.id, remaining, status)

    c.remaining_ml = remaining
    c.status = status
    return c
