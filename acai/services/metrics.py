from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Optional

import pandas as pd

from acai.config import local_timezone
from acai.db import q
from acai.errors import ValidationError
from acai.services.containers import Container
from acai.services.expenses import list_expenses
from acai.services.sales import SaleRecord, list_sales
from acai.utils import TimestampLike, local_day, safe_div, to_iso_ts

PERIODS = {
    "day": "Today",
    "week": "Last 7 days",
    "month": "Last 30 days",
}

COST_STORED = "STORED"
COST_DERIVED = "DERIVED"


@dataclass
class SaleCost:
    amount: float
    basis: str  # STORED / DERIVED


@dataclass
class MetricsSnapshot:
    window_start: str
    window_end: str
    sale_count: int
    total_revenue: float
    total_cost: float
    gross_profit: float
    total_expenses: float
    net_profit: float
    inventory_valuation: float

    @property
    def gross_margin_pct(self) -> float:
        return safe_div(self.gross_profit, self.total_revenue) * 100.0


def period_window(period: str, now: Optional[datetime] = None) -> tuple[str, str]:
    """
    [start, end) for a dashboard period as stored UTC strings. Midnight is
    the stand's local midnight, so "today" follows the local calendar.
      day   -> today 00:00 .. tomorrow 00:00
      week  -> now - 7 days .. tomorrow 00:00
      month -> now - 30 days .. tomorrow 00:00
    """
    p = str(period or "").strip().lower()
    if p not in PERIODS:
        raise ValidationError(f"Unknown period {period!r}. Use day, week or month.")

    tz = local_timezone()
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    now = now.astimezone(tz)

    today = now.date()
    midnight = datetime.combine(today, time.min, tzinfo=tz)
    end = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)

    if p == "day":
        start = midnight
    elif p == "week":
        start = now - timedelta(days=7)
    else:
        start = now - timedelta(days=30)
    return to_iso_ts(start), to_iso_ts(end)


def _cost_per_ml_by_container(conn, container_ids: list[int]) -> dict[int, float]:
    if not container_ids:
        return {}
    marks = ",".join("?" for _ in container_ids)
    rows = q(
        conn,
        f"SELECT id, cost_basis, total_ml FROM containers WHERE id IN ({marks})",
        container_ids,
    )
    return {int(r["id"]): safe_div(r["cost_basis"], r["total_ml"]) for r in rows}


def resolve_sale_cost(conn, sale: SaleRecord) -> SaleCost:
    """
    Cost of goods for one sale. Rows written by the allocator carry it;
    legacy rows (total_cost NULL) are priced from their potes' cost per ml.
    Deleted potes contribute nothing.
    """
    if sale.total_cost is not None:
        return SaleCost(amount=float(sale.total_cost), basis=COST_STORED)

    rates = _cost_per_ml_by_container(conn, sale.container_ids)
    share = sale.per_container_ml
    amount = sum(rates.get(cid, 0.0) * share for cid in sale.container_ids)
    return SaleCost(amount=float(amount), basis=COST_DERIVED)


def inventory_valuation(conn) -> float:
    """Cost value of what is left in ACTIVE potes (independent of any window)."""
    rows = q(
        conn,
        "SELECT cost_basis, total_ml, remaining_ml FROM containers WHERE status='ACTIVE'",
    )
    return float(
        sum(safe_div(r["cost_basis"], r["total_ml"]) * float(r["remaining_ml"]) for r in rows)
    )


def low_stock_containers(conn) -> list[Container]:
    # Depleted potes (remaining 0) always qualify and sort first.
    rows = q(
        conn,
        """
        SELECT * FROM containers
        WHERE remaining_ml <= min_remaining_ml
        ORDER BY remaining_ml ASC, id ASC
        """,
    )
    return [Container.from_row(r) for r in rows]


def summarize(conn, start: TimestampLike, end: TimestampLike) -> MetricsSnapshot:
    start_s, end_s = to_iso_ts(start), to_iso_ts(end)
    if start_s >= end_s:
        raise ValidationError("Window start must be before window end.")

    sales = list_sales(conn, start_s, end_s)
    total_revenue = sum(s.total_price for s in sales)
    total_cost = sum(resolve_sale_cost(conn, s).amount for s in sales)

    exp = q(
        conn,
        "SELECT COALESCE(SUM(amount), 0) AS total FROM expenses WHERE expense_date >= ? AND expense_date < ?",
        (start_s, end_s),
    )[0]
    total_expenses = float(exp["total"])

    gross_profit = total_revenue - total_cost
    return MetricsSnapshot(
        window_start=start_s,
        window_end=end_s,
        sale_count=len(sales),
        total_revenue=float(total_revenue),
        total_cost=float(total_cost),
        gross_profit=float(gross_profit),
        total_expenses=total_expenses,
        net_profit=float(gross_profit - total_expenses),
        inventory_valuation=inventory_valuation(conn),
    )


def summarize_period(conn, period: str, now: Optional[datetime] = None) -> MetricsSnapshot:
    start, end = period_window(period, now)
    return summarize(conn, start, end)


def daily_breakdown(conn, start: TimestampLike, end: TimestampLike) -> pd.DataFrame:
    """One row per local day with activity: revenue, cost, expenses, net_profit."""
    cols = ["day", "revenue", "cost", "expenses", "net_profit"]

    sales = list_sales(conn, start, end)
    s_df = pd.DataFrame(
        [
            {"day": local_day(s.sale_ts), "revenue": s.total_price, "cost": resolve_sale_cost(conn, s).amount}
            for s in sales
        ],
        columns=["day", "revenue", "cost"],
    )
    e_df = pd.DataFrame(
        [{"day": local_day(e.expense_date), "expenses": e.amount} for e in list_expenses(conn, start, end)],
        columns=["day", "expenses"],
    )

    if s_df.empty and e_df.empty:
        return pd.DataFrame(columns=cols)

    s_g = s_df.groupby("day")[["revenue", "cost"]].sum()
    e_g = e_df.groupby("day")[["expenses"]].sum()

    df = pd.concat([s_g, e_g], axis=1).fillna(0.0).astype(float)
    df = df.rename_axis("day").reset_index().sort_values("day")
    df["net_profit"] = df["revenue"] - df["cost"] - df["expenses"]
    return df[cols].reset_index(drop=True)
