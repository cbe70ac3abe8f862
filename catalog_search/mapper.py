"""상품 ↔ 검색 문서 변환

쓰기: to_document(product) → Document → to_source() (매핑과 동일한 필드 집합)
읽기: from_document_source(source) → API row (lenient decode)

lenient decode 규칙:
  - 모든 필드는 독립적으로 None 기본값 (누락 / 타입 불일치)
  - 숫자 필드는 is_numeric 확인 후 float 변환, 예외 없음
  - brand/category 는 dict 형태만 허용
  - 레거시 문서의 숫자 price → {"value": x, "unit": None}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .errors import DocumentShapeError
from .models import Brand, Category, Product, QuantityValue, is_numeric

# Document 속성명 → 인덱스 필드명
SOURCE_FIELDS = {
    "id": "id",
    "key": "key",
    "path": "path",
    "name": "name",
    "sku": "sku",
    "sku_search": "sku_search",
    "description": "description",
    "price": "price",
    "stock_quantity": "stockQuantity",
    "weight": "weight",
    "brand": "brand",
    "category": "category",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


@dataclass
class Document:
    """인덱스에 저장되는 상품의 비정규화 스냅샷. id = 상품 id = 문서 _id."""
    id: int
    key: str | None
    path: str | None
    name: str | None
    sku: str | None
    sku_search: str
    description: str | None
    price: dict[str, Any]
    stock_quantity: float | None
    weight: float | None
    brand: dict[str, Any] | None
    category: dict[str, Any] | None
    created_at: str | None
    updated_at: str | None

    def to_source(self) -> dict[str, Any]:
        return {es_name: getattr(self, attr) for attr, es_name in SOURCE_FIELDS.items()}

    @classmethod
    def from_source(cls, source: dict[str, Any]) -> Document:
        """엄격 디코드 — 매핑에 없는 필드나 빠진 필드가 있으면 DocumentShapeError."""
        expected = set(SOURCE_FIELDS.values())
        unknown = set(source) - expected
        missing = expected - set(source)
        if unknown or missing:
            raise DocumentShapeError(
                f"document fields mismatch: unknown={sorted(unknown)} missing={sorted(missing)}"
            )
        return cls(**{attr: source[es_name] for attr, es_name in SOURCE_FIELDS.items()})


# ============================================================
# 쓰기 방향
# ============================================================

def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")


def _num(value: Any) -> float | None:
    return float(value) if is_numeric(value) else None


def _ref(entity: Brand | Category | None) -> dict[str, Any] | None:
    if entity is None:
        return None
    return {"id": int(entity.id), "name": entity.name, "path": entity.path}


def _price(qv: QuantityValue | None) -> dict[str, Any]:
    if qv is None:
        return {"value": None, "unit": None}
    return {
        "value": _num(qv.value),
        "unit": qv.unit.code if qv.unit is not None else None,
    }


def to_document(product: Product) -> Document:
    return Document(
        id=int(product.id),
        key=product.key,
        path=product.path,
        name=product.name,
        sku=product.sku,
        sku_search=str(product.sku) if product.sku is not None else "",
        description=product.description,
        price=_price(product.price),
        stock_quantity=_num(product.stock_quantity),
        weight=_num(product.weight),
        brand=_ref(product.brand),
        category=_ref(product.category),
        created_at=_iso(product.created_at),
        updated_at=_iso(product.updated_at),
    )


# ============================================================
# 읽기 방향 (lenient)
# ============================================================

def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _int_or_none(value: Any) -> int | None:
    return int(float(value)) if is_numeric(value) else None


def _price_object(price: Any) -> dict[str, Any] | None:
    if isinstance(price, dict):
        return {"value": _num(price.get("value")), "unit": _str_or_none(price.get("unit"))}
    if is_numeric(price):
        return {"value": float(price), "unit": None}
    return None


def _simple_ref(value: Any) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        return None
    return {
        "id": _int_or_none(value.get("id")),
        "name": _str_or_none(value.get("name")),
        "path": _str_or_none(value.get("path")),
    }


def from_document_source(source: Any) -> dict[str, Any]:
    if not isinstance(source, dict):
        source = {}
    return {
        "id": _int_or_none(source.get("id")),
        "key": _str_or_none(source.get("key")),
        "path": _str_or_none(source.get("path")),
        "name": _str_or_none(source.get("name")),
        "sku": _str_or_none(source.get("sku")),
        "description": _str_or_none(source.get("description")),
        "price": _price_object(source.get("price")),
        "stockQuantity": _num(source.get("stockQuantity")),
        "weight": _num(source.get("weight")),
        "brand": _simple_ref(source.get("brand")),
        "category": _simple_ref(source.get("category")),
        "createdAt": _str_or_none(source.get("createdAt")),
        "updatedAt": _str_or_none(source.get("updatedAt")),
    }
