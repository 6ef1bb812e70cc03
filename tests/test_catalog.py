from __future__ import annotations

import pytest

from acai.errors import NotFoundError, ValidationError
from acai.services.catalog import create_entry, delete_entry, get_entry, list_entries, update_entry
from acai.services.sales import allocate_sale


def test_create_and_list_ordered_by_volume(conn):
    big = create_entry(conn, name="Barca 1L", serving_ml=1000, sale_price=35)
    small = create_entry(conn, name=" Copo 300ml ", serving_ml=300, sale_price=12, category="Copo")

    assert small.name == "Copo 300ml"
    assert small.category == "Copo"
    assert big.category == "Geral"
    assert [e.id for e in list_entries(conn)] == [small.id, big.id]


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(name="", serving_ml=300, sale_price=10),
        dict(name="X", serving_ml=0, sale_price=10),
        dict(name="X", serving_ml=300, sale_price=0),
        dict(name="X", serving_ml=300, sale_price=-2),
        dict(name="X", serving_ml="abc", sale_price=10),
        dict(name="X", serving_ml=float("nan"), sale_price=10),
        dict(name="X", serving_ml=300, sale_price=float("nan")),
        dict(name="X", serving_ml=300, sale_price=float("inf")),
    ],
)
def test_create_rejects_bad_input(conn, kwargs):
    with pytest.raises(ValidationError):
        create_entry(conn, **kwargs)


def test_names_are_unique(conn):
    create_entry(conn, name="Copo 500ml", serving_ml=500, sale_price=18)
    with pytest.raises(ValidationError):
        create_entry(conn, name="Copo 500ml", serving_ml=400, sale_price=15)


def test_update_entry(conn):
    e = create_entry(conn, name="Copo 400ml", serving_ml=400, sale_price=15)
    u = update_entry(conn, e.id, name="Copo 400ml", serving_ml=400, sale_price=16.5)
    assert u.sale_price == 16.5

    other = create_entry(conn, name="Copo 300ml", serving_ml=300, sale_price=12)
    with pytest.raises(ValidationError):
        update_entry(conn, other.id, name="Copo 400ml", serving_ml=300, sale_price=12)
    with pytest.raises(NotFoundError):
        update_entry(conn, 999, name="Z", serving_ml=1, sale_price=1)


def test_delete_entry_blocked_while_sales_reference_it(conn, make_pote):
    e = create_entry(conn, name="Copo 300ml", serving_ml=300, sale_price=12)
    pote = make_pote()
    allocate_sale(conn, catalog_entry_id=e.id, quantity=1, container_ids=[pote.id])

    with pytest.raises(ValidationError):
        delete_entry(conn, e.id)

    unused = create_entry(conn, name="Copo 700ml", serving_ml=700, sale_price=24)
    delete_entry(conn, unused.id)
    with pytest.raises(NotFoundError):
        get_entry(conn, unused.id)
