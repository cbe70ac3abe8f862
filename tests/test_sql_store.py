# tests/test_sql_store.py
"""SqlCatalogStore — 인메모리 SQLite (aiosqlite)"""

import asyncio

import pytest

from catalog_search.errors import StoreError
from catalog_search.models import Product, QuantityValue, Unit
from catalog_search.sql_store import SqlCatalogStore

URL = "sqlite+aiosqlite:///:memory:"


async def _store() -> SqlCatalogStore:
    store = SqlCatalogStore.from_url(URL)
    await store.create_all()
    return store


async def _run_roundtrip():
    store = await _store()
    try:
        eur = await store.add_unit(Unit("unit-eur", "EUR"))
        acme = await store.add_brand("Acme")
        tools = await store.add_category("Tools")
        drills = await store.add_category("Drills", parent=tools)

        saved = await store.save_product(Product(
            key="abc-00001",
            path="/Products/abc-00001",
            name="Compact Drill",
            sku="ABC-00001",
            price=QuantityValue(19.99, eur),
            stock_quantity=5.0,
            brand=acme,
            category=drills,
        ))

        assert saved.id is not None
        assert saved.created_at is not None
        assert saved.updated_at >= saved.created_at
        assert saved.price.value == 19.99
        assert saved.price.unit.code == "EUR"
        assert saved.brand.path == "/Brands/Acme"
        assert saved.category.parent_id == tools.id
        assert saved.category.path == "/Categories/Tools/Drills"

        saved.name = "Compact Drill v2"
        saved.price = None
        again = await store.save_product(saved)
        assert again.id == saved.id
        assert again.name == "Compact Drill v2"
        assert again.price is None
        assert again.created_at == saved.created_at
        assert again.updated_at >= saved.updated_at

        assert (await store.find_unit("EUR")).id == "unit-eur"
        assert (await store.find_unit("unit-eur")).abbreviation == "EUR"
        assert await store.find_unit("USD") is None
        assert await store.get_product(999) is None
        assert [c.name for c in await store.list_categories()] == ["Drills", "Tools"]
    finally:
        await store.close()


def test_save_and_read_back():
    asyncio.run(_run_roundtrip())


async def _run_iteration():
    store = await _store()
    try:
        for i in range(7):
            await store.save_product(Product(key=f"k{i}", path=f"/Products/k{i}", name=f"P{i}"))

        ids = [p.id async for p in store.iter_products(batch_size=3)]
        limited = [p.id async for p in store.iter_products(batch_size=3, limit=4)]

        assert await store.count_products() == 7
        assert ids == sorted(ids) and len(ids) == 7
        assert limited == ids[:4]
    finally:
        await store.close()


def test_iter_products_keyset_pages():
    asyncio.run(_run_iteration())


async def _run_conflict():
    store = await _store()
    try:
        await store.save_product(Product(key="a", path="/Products/same"))
        with pytest.raises(StoreError):
            await store.save_product(Product(key="b", path="/Products/same"))
    finally:
        await store.close()


def test_unique_path_violation_wrapped():
    asyncio.run(_run_conflict())
