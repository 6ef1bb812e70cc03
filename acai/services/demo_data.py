from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

from acai.db import ensure_schema, q, transaction, x
from acai.logs import get_logger
from acai.services.catalog import list_entries
from acai.services.containers import list_available_containers, register_container
from acai.services.expenses import create_expense
from acai.services.sales import allocate_sale
from acai.utils import iso_now

_log = get_logger(__name__)

# (name, serving_ml, sale_price, category)
DEFAULT_CATALOG = [
    ("Copo 300ml", 300, 12.00, "Copo"),
    ("Copo 400ml", 400, 15.00, "Copo"),
    ("Copo 500ml", 500, 18.00, "Copo"),
    ("Copo 700ml", 700, 24.00, "Copo"),
    ("Barca 1L", 1000, 35.00, "Barca"),
]

DEMO_POTES = [
    # (flavor, liters, cost)
    ("Açaí Tradicional", 10, 120.00),
    ("Açaí Tradicional", 10, 120.00),
    ("Açaí com Banana", 5, 70.00),
    ("Açaí Zero", 5, 80.00),
    ("Cupuaçu", 3.6, 55.00),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    now = iso_now()
    for name, ml, price, cat in DEFAULT_CATALOG:
        x(
            conn,
            """
            INSERT OR IGNORE INTO catalog_entries(name, serving_ml, sale_price, category, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (name, float(ml), float(price), cat, now, now),
        )


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    with transaction(conn):
        for t in ["sale_containers", "sales", "expenses", "containers", "catalog_entries"]:
            x(conn, f"DELETE FROM {t};", commit=False)
    _log.info("All data wiped")


def load_demo_data(conn, *, seed: int = 7) -> None:
    random.seed(seed)
    upsert_reference_data(conn)

    today = datetime.now(timezone.utc).replace(hour=12, minute=0, second=0, microsecond=0)

    for i, (flavor, liters, cost) in enumerate(DEMO_POTES):
        register_container(
            conn,
            label=flavor,
            total_ml=float(round(liters * 1000)),
            cost_basis=cost,
            purchase_date=today - timedelta(days=10 - i),
        )

    entries = list_entries(conn)

    # Single-pote sales spread over the last two weeks
    for d in range(14, -1, -2):
        potes = list_available_containers(conn)
        if not potes:
            break
        entry = random.choice(entries)
        pote = potes[0]
        qty = random.randint(1, 3)
        if entry.serving_ml * qty > pote.remaining_ml:
            continue
        allocate_sale(
            conn,
            catalog_entry_id=entry.id,
            quantity=qty,
            container_ids=[pote.id],
            sale_ts=today - timedelta(days=d, hours=random.randint(0, 6)),
        )

    # A "meio a meio" sale across two flavors
    potes = list_available_containers(conn)
    by_flavor = {}
    for p in potes:
        by_flavor.setdefault(p.label, p)
    if len(by_flavor) >= 2:
        a, b = list(by_flavor.values())[:2]
        entry = next((e for e in entries if e.serving_ml == 500), entries[0])
        if min(a.remaining_ml, b.remaining_ml) >= entry.serving_ml / 2:
            allocate_sale(
                conn,
                catalog_entry_id=entry.id,
                quantity=1,
                container_ids=[a.id, b.id],
                notes="Meio a meio",
                sale_ts=today,
            )

    for desc, amount, cat, days_ago in [
        ("Copos descartáveis", 45.90, "Embalagens", 6),
        ("Granola e leite condensado", 62.30, "Insumos", 3),
        ("Conta de luz", 180.00, "Energia", 1),
    ]:
        create_expense(
            conn,
            description=desc,
            amount=amount,
            category=cat,
            expense_date=today - timedelta(days=days_ago),
        )

    n = q(conn, "SELECT COUNT(*) AS n FROM sales")[0]["n"]
    _log.info("Demo data loaded (%s sales)", n)
