from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from acai.db import q, x
from acai.errors import NotFoundError, ValidationError
from acai.logs import get_logger
from acai.utils import TimestampLike, iso_now, to_iso_ts

_log = get_logger(__name__)

DEFAULT_CATEGORY = "Geral"
CATEGORIES = ["Geral", "Insumos", "Embalagens", "Aluguel", "Energia", "Transporte", "Outros"]


@dataclass
class Expense:
    id: int
    description: str
    amount: float
    category: str
    expense_date: str

    @classmethod
    def from_row(cls, r) -> "Expense":
        return cls(
            id=int(r["id"]),
            description=str(r["description"]),
            amount=float(r["amount"]),
            category=str(r["category"]),
            expense_date=str(r["expense_date"]),
        )


def _validate(description: str, amount: float, category: Optional[str]) -> tuple[str, float, str]:
    d = str(description or "").strip()
    if not d:
        raise ValidationError("Description is required.")
    try:
        a = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Amount must be a number.")
    if not math.isfinite(a) or a <= 0:
        raise ValidationError("Amount must be > 0.")
    cat = str(category or "").strip() or DEFAULT_CATEGORY
    return d, a, cat


def find_expense(conn, expense_id: int) -> Optional[Expense]:
    rows = q(conn, "SELECT * FROM expenses WHERE id=?", (int(expense_id),))
    return Expense.from_row(rows[0]) if rows else None


def get_expense(conn, expense_id: int) -> Expense:
    e = find_expense(conn, expense_id)
    if e is None:
        raise NotFoundError(f"Expense #{int(expense_id)} not found.")
    return e


def list_expenses(
    conn,
    start: Optional[TimestampLike] = None,
    end: Optional[TimestampLike] = None,
) -> list[Expense]:
    """Newest first; optional [start, end) window on expense_date."""
    where, params = [], []
    if start is not None:
        where.append("expense_date >= ?")
        params.append(to_iso_ts(start))
    if end is not None:
        where.append("expense_date < ?")
        params.append(to_iso_ts(end))

    sql = "SELECT * FROM expenses"
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY expense_date DESC, id DESC"
    return [Expense.from_row(r) for r in q(conn, sql, params)]


def create_expense(
    conn,
    *,
    description: str,
    amount: float,
    category: Optional[str] = None,
    expense_date: Optional[TimestampLike] = None,
) -> Expense:
    d, a, cat = _validate(description, amount, category)
    expense_id = x(
        conn,
        """
        INSERT INTO expenses (description, amount, category, expense_date, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (d, a, cat, to_iso_ts(expense_date), iso_now()),
    )
    _log.info("Expense #%s %r: %.2f (%s)", expense_id, d, a, cat)
    return get_expense(conn, expense_id)


def update_expense(
    conn,
    expense_id: int,
    *,
    description: str,
    amount: float,
    category: Optional[str] = None,
    expense_date: Optional[TimestampLike] = None,
) -> Expense:
    current = get_expense(conn, expense_id)
    d, a, cat = _validate(description, amount, category)
    date_s = current.expense_date if expense_date is None else to_iso_ts(expense_date)
    x(
        conn,
        "UPDATE expenses SET description=?, amount=?, category=?, expense_date=? WHERE id=?",
        (d, a, cat, date_s, current.id),
    )
    _log.info("Expense #%s updated", current.id)
    return get_expense(conn, current.id)


def delete_expense(conn, expense_id: int) -> None:
    e = get_expense(conn, expense_id)
    x(conn, "DELETE FROM expenses WHERE id=?", (e.id,))
    _log.info("Expense #%s deleted", e.id)
