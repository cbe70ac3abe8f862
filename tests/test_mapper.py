# tests/test_mapper.py
"""상품 ↔ 문서 변환 (쓰기 방향 엄격, 읽기 방향 관대)"""

from datetime import datetime, timezone

import pytest

from catalog_search.errors import DocumentShapeError
from catalog_search.mapper import Document, from_document_source, to_document
from catalog_search.models import Brand, Category, Product, QuantityValue, Unit

from fakes import make_product


def test_to_document_full_product():
    product = make_product(
        7,
        name="Compact Drill",
        price=QuantityValue(19.99, Unit("EUR", "EUR")),
        brand=Brand(3, "Acme", "/Brands/Acme"),
        category=Category(5, "Tools", "/Categories/Tools"),
    )
    source = to_document(product).to_source()

    assert source["id"] == 7
    assert source["name"] == "Compact Drill"
    assert source["sku"] == "SKU-00007"
    assert source["sku_search"] == "SKU-00007"
    assert source["price"] == {"value": 19.99, "unit": "EUR"}
    assert source["brand"] == {"id": 3, "name": "Acme", "path": "/Brands/Acme"}
    assert source["category"] == {"id": 5, "name": "Tools", "path": "/Categories/Tools"}
    assert source["createdAt"] == "2024-01-01T12:00:00+00:00"


def test_to_document_missing_optionals():
    """price 없음 → {value: None, unit: None}, 참조 없음 → None, sku 없음 → 빈 sku_search"""
    product = Product(id=1, name="Bare", sku=None, stock_quantity="abc")
    source = to_document(product).to_source()

    assert source["price"] == {"value": None, "unit": None}
    assert source["brand"] is None
    assert source["category"] is None
    assert source["sku"] is None
    assert source["sku_search"] == ""
    assert source["stockQuantity"] is None
    assert source["createdAt"] is None


def test_unit_code_falls_back_to_id():
    product = make_product(2, price=QuantityValue(5, Unit("unit-eur")))
    assert to_document(product).price == {"value": 5.0, "unit": "unit-eur"}


def test_aware_datetime_keeps_offset():
    product = make_product(3)
    product.updated_at = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
    assert to_document(product).updated_at == "2024-05-01T08:30:00+00:00"


def test_strict_decode_rejects_unknown_and_missing():
    source = to_document(make_product(4)).to_source()
    assert Document.from_source(source).id == 4

    with pytest.raises(DocumentShapeError):
        Document.from_source({**source, "color": "red"})

    partial = dict(source)
    del partial["weight"]
    with pytest.raises(DocumentShapeError):
        Document.from_source(partial)


def test_lenient_decode_legacy_and_garbage():
    row = from_document_source({
        "id": "12",
        "name": "Legacy",
        "price": 9.5,
        "stockQuantity": "not-a-number",
        "brand": "Acme",
        "category": {"id": 2, "name": "Tools", "path": 99},
    })
    assert row["id"] == 12
    assert row["price"] == {"value": 9.5, "unit": None}
    assert row["stockQuantity"] is None
    assert row["brand"] is None
    assert row["category"] == {"id": 2, "name": "Tools", "path": None}
    assert row["sku"] is None


def test_lenient_decode_non_dict_source():
    row = from_document_source(None)
    assert set(row) == {
        "id", "key", "path", "name", "sku", "description", "price",
        "stockQuantity", "weight", "brand", "category", "createdAt", "updatedAt",
    }
    assert all(v is None for v in row.values())


def test_read_transform_reproduces_written_fields():
    product = make_product(
        9,
        price=QuantityValue(12.5, Unit("EUR", "EUR")),
        brand=Brand(3, "Acme", "/Brands/Acme"),
        category=Category(5, "Tools", "/Categories/Tools"),
    )
    source = to_document(product).to_source()
    row = from_document_source(source)

    expected = {k: v for k, v in source.items() if k != "sku_search"}
    assert row == expected
