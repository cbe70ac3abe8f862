"""도메인 엔티티 + 요청/응답 데이터 구조"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .errors import ValidationError

MAX_PER_PAGE = 1_000_000


def is_numeric(value: Any) -> bool:
    """유한한 숫자 또는 숫자 문자열이면 True. bool / NaN / inf 는 False."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        if "_" in value:
            return False
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


# ============================================================
# 관계형 엔티티
# ============================================================

@dataclass
class Unit:
    id: str
    abbreviation: str | None = None

    @property
    def code(self) -> str:
        return self.abbreviation or self.id


@dataclass
class QuantityValue:
    value: float | None = None
    unit: Unit | None = None


@dataclass
class Brand:
    id: int
    name: str | None = None
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "path": self.path}


@dataclass
class Category:
    id: int
    name: str | None = None
    path: str | None = None
    parent_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "path": self.path, "parentId": self.parent_id}


@dataclass
class Product:
    """관계형 저장소의 상품 1행. id / 타임스탬프는 저장소가 부여."""
    id: int | None = None
    key: str | None = None
    path: str | None = None
    name: str | None = None
    sku: str | None = None
    description: str | None = None
    price: QuantityValue | None = None
    stock_quantity: float | None = None
    weight: float | None = None
    brand: Brand | None = None
    category: Category | None = None
    published: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ProductDraft:
    """신규 생성용 상품 (id 없음, 브랜드/카테고리는 id 참조)"""
    key: str
    name: str | None = None
    sku: str | None = None
    description: str | None = None
    price: QuantityValue | None = None
    stock_quantity: float | None = None
    weight: float | None = None
    brand_id: int | None = None
    category_id: int | None = None
    parent_path: str = "/Products"
    published: bool = True


# ============================================================
# 단건 패치
# ============================================================

_STRING_FIELDS = ("name", "sku", "description")
_NUMERIC_FIELDS = ("stockQuantity", "weight")
_REF_FIELDS = ("brandId", "categoryId")
PATCH_FIELDS = frozenset(_STRING_FIELDS + _NUMERIC_FIELDS + _REF_FIELDS + ("price", "published"))


@dataclass
class ProductPatch:
    """
    부분 수정 요청. 요청에 존재하는 키만 changes에 들어감 (null 포함).

    changes 값은 이미 정규화된 형태:
        name/sku/description → str | None
        price                → {"value": float | None, "unit": str | None} | None
        stockQuantity/weight → float | None
        brandId/categoryId   → int | None
        published            → bool | None
    """
    changes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ProductPatch:
        if not isinstance(data, dict):
            raise ValidationError.single("body", "Invalid JSON body")

        errors: list[dict[str, str]] = []
        changes: dict[str, Any] = {}

        for key in sorted(set(data) - PATCH_FIELDS):
            errors.append({"field": key, "message": "unknown field"})

        for key in _STRING_FIELDS:
            if key in data:
                v = data[key]
                if v is not None and not isinstance(v, str):
                    errors.append({"field": key, "message": f"{key} must be string or null"})
                elif isinstance(v, str) and key != "description" and not 1 <= len(v) <= 255:
                    errors.append({"field": key, "message": f"{key} length must be 1..255"})
                else:
                    changes[key] = v

        if "price" in data:
            price = data["price"]
            if price is None:
                changes["price"] = None
            elif not isinstance(price, dict):
                errors.append({"field": "price", "message": "price must be an object or null"})
            else:
                value, unit = price.get("value"), price.get("unit")
                if value is not None and not is_numeric(value):
                    errors.append({"field": "price.value", "message": "price.value must be numeric or null"})
                elif unit is not None and not isinstance(unit, str):
                    errors.append({"field": "price.unit", "message": "price.unit must be string or null"})
                else:
                    changes["price"] = {
                        "value": float(value) if value is not None else None,
                        "unit": unit or None,
                    }

        for key in _NUMERIC_FIELDS:
            if key in data:
                v = data[key]
                if v is not None and not is_numeric(v):
                    errors.append({"field": key, "message": f"{key} must be numeric or null"})
                else:
                    changes[key] = float(v) if v is not None else None

        for key in _REF_FIELDS:
            if key in data:
                v = data[key]
                if v is None:
                    changes[key] = None
                elif not is_numeric(v) or float(v) != int(float(v)) or int(float(v)) <= 0:
                    errors.append({"field": key, "message": f"{key} must be positive integer or null"})
                else:
                    changes[key] = int(float(v))

        if "published" in data:
            v = data["published"]
            if v is not None and not isinstance(v, bool):
                errors.append({"field": "published", "message": "published must be boolean or null"})
            else:
                changes["published"] = v

        if errors:
            raise ValidationError(errors)
        return cls(changes)

    def __contains__(self, key: str) -> bool:
        return key in self.changes

    def __getitem__(self, key: str) -> Any:
        return self.changes[key]


# ============================================================
# 검색 요청 / 결과
# ============================================================

@dataclass
class QueryRequest:
    q: str | None = None
    brand_id: int | None = None
    category_id: int | None = None
    price_min: float | None = None
    price_max: float | None = None
    stock_min: float | None = None
    stock_max: float | None = None
    sort: str = "name"
    direction: str = "asc"
    page: int = 1
    per_page: int = 25

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> QueryRequest:
        """
        원시 쿼리 파라미터(문자열 포함) → QueryRequest.

        잘못된 필드를 모두 모아 ValidationError 하나로 던짐.
        page/perPage 가 1 미만이면 1로 보정.
        """
        errors: list[dict[str, str]] = []

        def _int(name: str, minimum: int | None = None) -> int | None:
            raw = params.get(name)
            if raw is None or raw == "":
                return None
            try:
                if "_" in str(raw):
                    raise ValueError(raw)
                value = int(str(raw).strip())
            except ValueError:
                errors.append({"field": name, "message": "must be an integer"})
                return None
            if minimum is not None and value < minimum:
                errors.append({"field": name, "message": f"must be >= {minimum}"})
                return None
            return value

        def _num(name: str) -> float | None:
            raw = params.get(name)
            if raw is None or raw == "":
                return None
            if not is_numeric(raw):
                errors.append({"field": name, "message": "must be numeric"})
                return None
            return float(raw)

        q = params.get("q") or None
        brand_id = _int("brandId", minimum=0)
        category_id = _int("categoryId", minimum=0)
        price_min, price_max = _num("priceMin"), _num("priceMax")
        stock_min, stock_max = _num("stockMin"), _num("stockMax")
        page = _int("page")
        per_page = _int("perPage")

        page = max(1, page) if page is not None else 1
        per_page = max(1, per_page) if per_page is not None else 25
        if per_page > MAX_PER_PAGE:
            errors.append({"field": "perPage", "message": f"must be <= {MAX_PER_PAGE}"})

        if errors:
            raise ValidationError(errors)

        return cls(
            q=str(q) if q is not None else None,
            brand_id=brand_id,
            category_id=category_id,
            price_min=price_min,
            price_max=price_max,
            stock_min=stock_min,
            stock_max=stock_max,
            sort=str(params.get("sort") or "name"),
            direction=str(params.get("dir") or "asc"),
            page=page,
            per_page=per_page,
        )

    @property
    def filters(self) -> dict[str, Any]:
        return {
            "q": self.q,
            "brandId": self.brand_id,
            "categoryId": self.category_id,
            "priceMin": self.price_min,
            "priceMax": self.price_max,
            "stockMin": self.stock_min,
            "stockMax": self.stock_max,
        }


@dataclass
class QueryResult:
    total: int
    items: list[dict[str, Any]]
    page: int
    per_page: int
    sort: str
    direction: str
    filters: dict[str, Any]

    @property
    def pages(self) -> int:
        return math.ceil(self.total / max(1, self.per_page))

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": {
                "page": self.page,
                "perPage": self.per_page,
                "total": self.total,
                "pages": self.pages,
                "sort": self.sort,
                "dir": self.direction,
                "filters": dict(self.filters),
            },
            "data": self.items,
        }
