"""Unit tests for catalog/store.py ProductStore search."""

import pytest

from catalog.models import Product
from catalog.store import ProductStore


@pytest.fixture
def store():
    s = ProductStore("sqlite:///:memory:")
    for name, price in [
        ("Trail Runner 2", 1_290_000),
        ("Road Runner Lite", 990_000),
        ("Running Socks 3-pack", 150_000),
        ("Hydration Vest", 1_750_000),
        ("100% Merino Tee", 450_000),
        ("Shoe_Cleaner", 80_000),
    ]:
        s.create_product(Product(name=name, price=price))
    yield s
    s.close()


def test_case_insensitive_substring(store):
    items, total = store.search("RUNNER")
    assert total == 2
    assert {p.name for p in items} == {"Trail Runner 2", "Road Runner Lite"}


def test_pagination(store):
    page1, total = store.search("run", page=1, limit=2)
    page2, _ = store.search("run", page=2, limit=2)
    assert total == 3
    assert len(page1) == 2
    assert len(page2) == 1
    assert page1[0].id < page1[1].id < page2[0].id


def test_no_match(store):
    items, total = store.search("kayak")
    assert items == []
    assert total == 0


def test_percent_matches_literally(store):
    items, total = store.search("100%")
    assert total == 1
    assert items[0].name == "100% Merino Tee"


def test_underscore_matches_literally(store):
    items, total = store.search("e_c")
    assert total == 1
    assert items[0].name == "Shoe_Cleaner"


def test_get_product(store):
    product_id = store.create_product(Product(name="Gel Pack", price=35_000, description="Citrus"))
    product = store.get_product(product_id)
    assert product.name == "Gel Pack"
    assert product.description == "Citrus"
    assert product.created_at
    assert store.get_product(product_id + 1000) is None
