from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from acai.config import ENV_TIMEZONE
from acai.errors import ValidationError
from acai.services.containers import debit, delete_container
from acai.services.expenses import create_expense
from acai.services.metrics import (
    COST_DERIVED,
    COST_STORED,
    daily_breakdown,
    inventory_valuation,
    low_stock_containers,
    period_window,
    resolve_sale_cost,
    summarize,
    summarize_period,
)
from acai.services.sales import allocate_sale, get_sale


def test_scenario_e_profit_rollup(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=400, sale_price=20.0)
    pote = make_pote(total_ml=1000, cost=20.0)  # 0.02/ml -> 8.00 for 400ml
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-10T12:00:00")
    create_expense(conn, description="Copos", amount=5.00, expense_date="2026-10-10")

    m = summarize(conn, "2026-10-10", "2026-10-11")

    assert m.sale_count == 1
    assert m.total_revenue == pytest.approx(20.00)
    assert m.total_cost == pytest.approx(8.00)
    assert m.gross_profit == pytest.approx(12.00)
    assert m.total_expenses == pytest.approx(5.00)
    assert m.net_profit == pytest.approx(7.00)
    assert m.gross_margin_pct == pytest.approx(60.0)


def test_window_is_half_open(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=100, sale_price=10.0)
    pote = make_pote(total_ml=5000)
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-10T00:00:00")
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-11T00:00:00")
    create_expense(conn, description="Start", amount=1, expense_date="2026-10-10")
    create_expense(conn, description="End", amount=100, expense_date="2026-10-11")

    m = summarize(conn, "2026-10-10", "2026-10-11")

    assert m.sale_count == 1
    assert m.total_expenses == pytest.approx(1)


def test_empty_window_and_bad_window(conn):
    m = summarize(conn, "2026-01-01", "2026-01-02")
    assert (m.sale_count, m.total_revenue, m.net_profit, m.inventory_valuation) == (0, 0, 0, 0)

    with pytest.raises(ValidationError):
        summarize(conn, "2026-01-02", "2026-01-01")


def test_inventory_valuation_counts_active_potes_only(conn, make_pote):
    make_pote(total_ml=1000, cost=10.0, remaining_ml=600)  # 6.00
    make_pote(total_ml=2000, cost=50.0)  # 50.00
    gone = make_pote(total_ml=1000, cost=99.0)
    debit(conn, gone.id, 1000)

    assert inventory_valuation(conn) == pytest.approx(56.00)


def test_inventory_valuation_never_increases_with_sales(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=300)
    a = make_pote(total_ml=1000, cost=10.0)
    b = make_pote(total_ml=1000, cost=30.0)

    values = [inventory_valuation(conn)]
    for ids in ([a.id], [a.id, b.id], [b.id], [a.id, b.id]):
        allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=ids)
        values.append(inventory_valuation(conn))

    assert values[0] == pytest.approx(40.0)
    assert all(v >= 0 for v in values)
    assert all(later <= earlier + 1e-9 for earlier, later in zip(values, values[1:]))


def test_legacy_sale_cost_is_derived_from_potes(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=400, sale_price=20.0)
    a = make_pote(total_ml=1000, cost=10.0)
    b = make_pote(total_ml=1000, cost=30.0)
    res = allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[a.id, b.id])

    stored = resolve_sale_cost(conn, get_sale(conn, res.sale_id))
    assert stored.basis == COST_STORED
    assert stored.amount == pytest.approx(200 * 0.01 + 200 * 0.03)

    conn.execute("UPDATE sales SET total_cost=NULL WHERE id=?", (res.sale_id,))
    conn.commit()

    derived = resolve_sale_cost(conn, get_sale(conn, res.sale_id))
    assert derived.basis == COST_DERIVED
    assert derived.amount == pytest.approx(8.00)

    # a deleted pote no longer contributes
    delete_container(conn, b.id)
    assert resolve_sale_cost(conn, get_sale(conn, res.sale_id)).amount == pytest.approx(2.00)


def test_summarize_mixes_stored_and_derived_costs(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=100, sale_price=5.0)
    pote = make_pote(total_ml=1000, cost=10.0)
    s1 = allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-05T09:00:00")
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=2, container_ids=[pote.id], sale_ts="2026-10-05T10:00:00")
    conn.execute("UPDATE sales SET total_cost=NULL WHERE id=?", (s1.sale_id,))
    conn.commit()

    m = summarize(conn, "2026-10-05", "2026-10-06")
    assert m.total_cost == pytest.approx(1.00 + 2.00)
    assert m.total_revenue == pytest.approx(15.0)


def test_low_stock_uses_per_pote_minimum(conn, make_pote):
    a = make_pote(total_ml=5000, remaining_ml=900, min_remaining_ml=1000)
    make_pote(total_ml=5000, remaining_ml=900, min_remaining_ml=500)
    c = make_pote(total_ml=5000, remaining_ml=400, min_remaining_ml=500)
    d = make_pote(total_ml=1000)
    debit(conn, d.id, 1000)

    low = low_stock_containers(conn)
    # out-of-stock potes lead the list
    assert [p.id for p in low] == [d.id, c.id, a.id]
    assert low[0].status == "DEPLETED"


def test_period_windows():
    now = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)

    assert period_window("day", now) == ("2026-10-18T00:00:00+00:00", "2026-10-19T00:00:00+00:00")
    assert period_window("week", now) == ("2026-10-11T15:30:00+00:00", "2026-10-19T00:00:00+00:00")
    assert period_window("MONTH", now) == ("2026-09-18T15:30:00+00:00", "2026-10-19T00:00:00+00:00")

    with pytest.raises(ValidationError):
        period_window("year", now)


def test_summarize_period(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=100, sale_price=10.0)
    pote = make_pote(total_ml=5000)
    now = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-18T09:00:00")
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-14T09:00:00")
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-09-25T09:00:00")

    assert summarize_period(conn, "day", now).sale_count == 1
    assert summarize_period(conn, "week", now).sale_count == 2
    assert summarize_period(conn, "month", now).sale_count == 3


def test_daily_breakdown(conn, make_entry, make_pote):
    entry = make_entry(serving_ml=100, sale_price=10.0)
    pote = make_pote(total_ml=1000, cost=10.0)
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-01T09:00:00")
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=2, container_ids=[pote.id], sale_ts="2026-10-01T18:00:00")
    create_expense(conn, description="Gelo", amount=4.0, expense_date="2026-10-02")

    df = daily_breakdown(conn, "2026-10-01", "2026-10-03")

    assert list(df.columns) == ["day", "revenue", "cost", "expenses", "net_profit"]
    assert list(df["day"]) == ["2026-10-01", "2026-10-02"]
    first, second = df.iloc[0], df.iloc[1]
    assert first["revenue"] == pytest.approx(30.0)
    assert first["cost"] == pytest.approx(3.0)
    assert first["expenses"] == 0
    assert first["net_profit"] == pytest.approx(27.0)
    assert second["revenue"] == 0
    assert second["net_profit"] == pytest.approx(-4.0)


def test_daily_breakdown_empty(conn):
    df = daily_breakdown(conn, "2026-10-01", "2026-10-03")
    assert df.empty
    assert list(df.columns) == ["day", "revenue", "cost", "expenses", "net_profit"]


SAO_PAULO = timezone(timedelta(hours=-3))


def test_today_follows_the_stand_calendar(conn, make_entry, make_pote, monkeypatch):
    monkeypatch.setenv(ENV_TIMEZONE, "America/Sao_Paulo")
    entry = make_entry(serving_ml=100, sale_price=10.0)
    pote = make_pote(total_ml=5000)
    evening = datetime(2026, 10, 18, 20, 0, tzinfo=SAO_PAULO)
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts=evening)
    # 23:00 local on the 17th
    allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-18T02:00:00Z")

    now = datetime(2026, 10, 18, 22, 0, tzinfo=SAO_PAULO)

    assert period_window("day", now) == ("2026-10-18T03:00:00+00:00", "2026-10-19T03:00:00+00:00")
    assert summarize_period(conn, "day", now).sale_count == 1


def test_daily_breakdown_groups_by_local_day(conn, make_entry, make_pote, monkeypatch):
    monkeypatch.setenv(ENV_TIMEZONE, "America/Sao_Paulo")
    entry = make_entry(serving_ml=100, sale_price=10.0)
    pote = make_pote(total_ml=1000, cost=10.0)
    res = allocate_sale(conn, catalog_entry_id=entry.id, quantity=1, container_ids=[pote.id], sale_ts="2026-10-01T22:30:00")
    create_expense(conn, description="Gelo", amount=4.0, expense_date="2026-10-02")

    assert get_sale(conn, res.sale_id).sale_ts == "2026-10-02T01:30:00+00:00"

    df = daily_breakdown(conn, "2026-10-01", "2026-10-03")

    assert list(df["day"]) == ["2026-10-01", "2026-10-02"]
    assert df.iloc[0]["revenue"] == pytest.approx(10.0)
    assert df.iloc[1]["expenses"] == pytest.approx(4.0)
