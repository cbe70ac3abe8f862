# tests/test_sync.py
"""SyncOrchestrator — 관계형 우선 쓰기 + 인덱스 동기화 + 결과 분류"""

import asyncio
import random
from unittest.mock import AsyncMock

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from catalog_search.config import Config
from catalog_search.errors import IndexServiceError, NotFoundError, StoreError, ValidationError
from catalog_search.models import ProductDraft, QuantityValue, Unit
from catalog_search.sync import Outcome, SyncOrchestrator

from fakes import InMemoryCatalogStore, make_es, make_indexer, make_product

EUR = Unit("EUR", "EUR")


def _sync(store, es=None, **config):
    es = es if es is not None else make_es()
    return SyncOrchestrator(store, make_indexer(es), Config(**config)), es


def _seeded_store(**kwargs) -> InMemoryCatalogStore:
    store = InMemoryCatalogStore(**kwargs)
    store.add_unit(EUR)
    store.add_brand(1, "Acme")
    store.add_brand(2, "Globex")
    store.add_category(10, "Tools")
    return store


# ============================================================
# 단건
# ============================================================

def test_patch_applied():
    store = _seeded_store()
    store.put(make_product(5, price=QuantityValue(10.0, EUR)))
    sync, es = _sync(store)

    result = asyncio.run(sync.patch_product(5, {
        "name": "Widget Pro",
        "price": {"value": "12.50", "unit": "EUR"},
        "brandId": 2,
    }))

    assert result.outcome is Outcome.APPLIED
    assert store.products[5].name == "Widget Pro"
    assert store.products[5].price.value == 12.5
    assert store.products[5].brand.name == "Globex"

    kwargs = es.index.call_args.kwargs
    assert kwargs["id"] == "5"
    assert kwargs["refresh"] == "wait_for"
    assert kwargs["document"]["brand"]["id"] == 2
    assert result.product["name"] == "Widget Pro"
    assert result.to_dict()["outcome"] == "applied"


def test_patch_partial_when_index_unreachable():
    """관계형 커밋은 유지, 인덱스 실패는 PARTIAL + warning"""
    store = _seeded_store()
    store.put(make_product(5))
    es = make_es()
    es.index = AsyncMock(side_effect=ESConnectionError("connection refused"))
    sync, _ = _sync(store, es)

    result = asyncio.run(sync.patch_product(5, {"name": "Renamed"}))

    assert result.outcome is Outcome.PARTIAL
    assert store.products[5].name == "Renamed"
    assert result.relational.ok
    assert not result.index.ok
    assert result.index.error["status"] is None
    payload = result.to_dict()
    assert "warning" in payload
    assert payload["product"]["name"] == "Renamed"


def test_patch_rejects_before_any_write():
    store = _seeded_store()
    store.put(make_product(5))
    sync, es = _sync(store)

    with pytest.raises(ValidationError):
        asyncio.run(sync.patch_product(5, {"price": "free", "color": "red"}))
    with pytest.raises(NotFoundError):
        asyncio.run(sync.patch_product(99, {"name": "x"}))
    with pytest.raises(NotFoundError):
        asyncio.run(sync.patch_product(5, {"brandId": 77}))
    with pytest.raises(ValidationError):
        asyncio.run(sync.patch_product(5, {"price": {"value": 1, "unit": "XYZ"}}))

    assert store.saves == 0
    es.index.assert_not_called()


def test_patch_clears_fields():
    store = _seeded_store()
    store.put(make_product(5, price=QuantityValue(10.0, EUR), brand=store.brands[1]))
    sync, es = _sync(store)

    asyncio.run(sync.patch_product(5, {"price": None, "brandId": None, "published": None}))

    saved = store.products[5]
    assert saved.price is None
    assert saved.brand is None
    assert saved.published is False
    assert es.index.call_args.kwargs["document"]["price"] == {"value": None, "unit": None}


def test_save_product_store_error_propagates():
    store = _seeded_store(fail_ids=[5])
    sync, es = _sync(store)

    with pytest.raises(StoreError):
        asyncio.run(sync.save_product(make_product(5)))
    es.index.assert_not_called()


def test_updated_at_never_decreases():
    store = _seeded_store()
    store.put(make_product(5))
    sync, es = _sync(store)

    first = asyncio.run(sync.patch_product(5, {"name": "A"}))
    second = asyncio.run(sync.patch_product(5, {"name": "B"}))
    assert second.product["updatedAt"] > first.product["updatedAt"]
    assert second.product["createdAt"] == first.product["createdAt"]


# ============================================================
# 벌크 가격 조정
# ============================================================

def test_bulk_price_adjust_with_skips():
    """10% 인상: 100 → 110.0, price 없음/값 없음은 건너뛰고 따로 집계"""
    store = _seeded_store()
    store.put(make_product(1, price=QuantityValue(100.0, EUR)))
    store.put(make_product(2, price=None))
    store.put(make_product(3, price=QuantityValue(None, EUR)))
    store.put(make_product(4, price=QuantityValue(19.99, EUR)))
    sync, es = _sync(store)

    result = asyncio.run(sync.bulk_adjust_prices(10))

    assert store.products[1].price.value == 110.0
    assert store.products[4].price.value == 21.99
    assert store.products[2].price is None
    assert result.outcome is Outcome.APPLIED
    assert result.updated == 2
    assert result.skipped == {"noPriceField": 1, "nullPriceValue": 1}
    assert result.index.indexed == 2

    assert len(es.bulk_calls) == 1
    assert es.bulk_calls[0]["refresh"] is None
    es.indices.refresh.assert_awaited_once()

    meta = result.to_dict()["meta"]
    assert meta["percent"] == 10.0
    assert meta["updated_sql"] == 2
    assert meta["indexed_es"] == 2


def test_bulk_price_uses_live_batch_size_and_limit():
    store = _seeded_store()
    for i in range(1, 11):
        store.put(make_product(i, price=QuantityValue(10.0, EUR)))
    sync, es = _sync(store, live_batch_size=3)

    result = asyncio.run(sync.bulk_adjust_prices("-50", limit=7))

    assert result.matched == 7
    assert result.updated == 7
    assert store.products[7].price.value == 5.0
    assert store.products[8].price.value == 10.0
    assert len(es.bulk_calls) == 3  # 3 + 3 + 1


def test_bulk_price_invalid_percent():
    sync, _ = _sync(_seeded_store())
    with pytest.raises(ValidationError):
        asyncio.run(sync.bulk_adjust_prices("ten"))


def test_bulk_price_row_failures_partial():
    store = _seeded_store(fail_ids=[2])
    for i in (1, 2, 3):
        store.put(make_product(i, price=QuantityValue(10.0, EUR)))
    sync, es = _sync(store)

    result = asyncio.run(sync.bulk_adjust_prices(10))

    assert result.outcome is Outcome.PARTIAL
    assert result.updated == 2
    assert result.relational_failed == 1
    assert result.relational_errors[0]["id"] == 2
    sent_ids = [op["index"]["_id"] for op in es.bulk_calls[0]["operations"][::2]]
    assert sent_ids == ["1", "3"]


def test_bulk_price_all_rows_failed_not_applied():
    store = _seeded_store(fail_ids=[1])
    store.put(make_product(1, price=QuantityValue(10.0, EUR)))
    sync, es = _sync(store)

    result = asyncio.run(sync.bulk_adjust_prices(10))

    assert result.outcome is Outcome.NOT_APPLIED
    es.bulk.assert_not_called()


def test_bulk_price_index_down_keeps_relational_pass():
    store = _seeded_store()
    for i in range(1, 6):
        store.put(make_product(i, price=QuantityValue(10.0, EUR)))
    es = make_es()
    es.bulk = AsyncMock(side_effect=ESConnectionError("connection refused"))
    sync, _ = _sync(store, es, live_batch_size=2)

    result = asyncio.run(sync.bulk_adjust_prices(10))

    assert result.outcome is Outcome.PARTIAL
    assert result.updated == 5
    assert all(store.products[i].price.value == 11.0 for i in range(1, 6))
    assert es.bulk.await_count == 1
    assert result.index.unsent == 5
    assert result.index.transport_error is not None
    es.indices.refresh.assert_not_called()


def test_bulk_price_item_errors_capped():
    store = _seeded_store()
    for i in range(1, 21):
        store.put(make_product(i, price=QuantityValue(10.0, EUR)))
    sync, _ = _sync(store, make_es(fail_ids=range(1, 21)))

    result = asyncio.run(sync.bulk_adjust_prices(10))

    assert result.outcome is Outcome.PARTIAL
    assert result.index.failed == 20
    assert len(result.index.errors) == 10
    assert result.to_dict()["meta"]["errors"] == 20


# ============================================================
# 벌크 생성 / 시드
# ============================================================

def test_bulk_create_reports_created_rows():
    store = _seeded_store()
    drafts = [
        ProductDraft(key="abc-00001", name="A", sku="ABC-00001", brand_id=1, category_id=10),
        ProductDraft(key="abc-00002", name="B", sku="ABC-00002", brand_id=99, category_id=10),
        ProductDraft(key="abc-00003", name="C", sku="ABC-00003", brand_id=2, category_id=None),
    ]
    sync, es = _sync(store)

    result = asyncio.run(sync.bulk_create(drafts))

    assert result.outcome is Outcome.PARTIAL
    assert [row["sku"] for row in result.created] == ["ABC-00001", "ABC-00003"]
    assert result.relational_errors[0]["id"] == "abc-00002"
    saved = store.products[result.created[0]["id"]]
    assert saved.path == "/Products/abc-00001"
    assert saved.brand.name == "Acme"
    assert saved.created_at is not None

    assert es.bulk_calls[0]["refresh"] == "wait_for"
    es.indices.refresh.assert_not_called()
    assert result.to_dict()["data"] == result.created


def test_seed_products():
    store = _seeded_store()
    sync, es = _sync(store, live_batch_size=750)

    result = asyncio.run(sync.seed_products(1500, rng=random.Random(7)))

    assert result.outcome is Outcome.APPLIED
    assert len(store.products) == 1500
    assert len(es.bulk_calls) == 2
    assert all(p.price.unit.code == "EUR" for p in store.products.values())
    assert {p.brand.id for p in store.products.values()} <= {1, 2}


def test_seed_requires_taxonomy():
    sync, _ = _sync(InMemoryCatalogStore())
    with pytest.raises(ValidationError):
        asyncio.run(sync.seed_products(5))


# ============================================================
# 전체 재색인
# ============================================================

def test_reindex_empty_catalog():
    sync, es = _sync(InMemoryCatalogStore())
    progress = []

    result = asyncio.run(sync.reindex(on_progress=lambda p, t: progress.append((p, t))))

    assert result.indexed == 0
    assert result.created is True
    es.bulk.assert_not_called()
    es.indices.refresh.assert_awaited_once()
    assert progress == []


def test_reindex_batches_in_id_order_with_progress():
    store = InMemoryCatalogStore()
    for i in range(2500, 0, -1):
        store.put(make_product(i))
    sync, es = _sync(store, reindex_batch_size=1000, progress_interval=1000)
    progress = []

    result = asyncio.run(sync.reindex(on_progress=lambda p, t: progress.append((p, t))))

    assert result.indexed == 2500
    assert result.total == 2500
    assert len(es.bulk_calls) == 3
    first_ids = [int(op["index"]["_id"]) for op in es.bulk_calls[0]["operations"][::2]]
    assert first_ids == list(range(1, 1001))
    assert progress == [(1000, 2500), (2000, 2500), (2500, 2500)]
    es.indices.refresh.assert_awaited_once()


def test_reindex_recreate_uses_configured_schema():
    es = make_es()
    es.indices.exists = AsyncMock(side_effect=[True, False])
    sync, _ = _sync(InMemoryCatalogStore(), es, number_of_shards=2)

    asyncio.run(sync.reindex(recreate=True))

    es.indices.delete.assert_awaited_once()
    assert es.indices.create.call_args.kwargs["settings"]["number_of_shards"] == 2


def test_reindex_transport_error_propagates():
    store = InMemoryCatalogStore()
    store.put(make_product(1))
    es = make_es()
    es.bulk = AsyncMock(side_effect=ESConnectionError("connection refused"))
    sync, _ = _sync(store, es)

    with pytest.raises(IndexServiceError):
        asyncio.run(sync.reindex())


def test_taxonomy_listings_sorted_by_name():
    store = _seeded_store()
    store.add_brand(3, "Aardvark")
    sync, _ = _sync(store)

    brands = asyncio.run(sync.list_brands())
    assert [b["name"] for b in brands] == ["Aardvark", "Acme", "Globex"]
    categories = asyncio.run(sync.list_categories())
    assert categories == [{"id": 10, "name": "Tools", "path": "/Categories/Tools", "parentId": None}]
