"""검색 요청 → Elasticsearch 쿼리 변환 + 실행"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import IndexServiceError, SearchServiceError
from .indexer import ESIndexer
from .log import get_logger
from .mapper import from_document_source
from .models import QueryRequest, QueryResult

logger = get_logger("query")

# 정렬 키 허용 목록 → 인덱스 필드
SORT_FIELDS = {
    "name": "name.keyword",
    "sku": "sku",
    "price": "price.value",
    "stockQuantity": "stockQuantity",
    "weight": "weight",
    "createdAt": "createdAt",
    "updatedAt": "updatedAt",
}
DEFAULT_SORT = "name"


def resolve_sort(sort: str | None) -> str:
    """허용 목록에 없거나 비어 있으면 name 정렬로 대체 (에러 없음)."""
    return SORT_FIELDS.get(sort or DEFAULT_SORT, SORT_FIELDS[DEFAULT_SORT])


def resolve_direction(direction: str | None) -> str:
    return "desc" if (direction or "").lower() == "desc" else "asc"


def _range(minimum: float | None, maximum: float | None) -> dict[str, float] | None:
    if minimum is None and maximum is None:
        return None
    bounds: dict[str, float] = {}
    if minimum is not None:
        bounds["gte"] = float(minimum)
    if maximum is not None:
        bounds["lte"] = float(maximum)
    return bounds


@dataclass
class StructuredQuery:
    query: dict[str, Any]
    sort: list[dict[str, Any]]
    offset: int
    size: int
    track_total_hits: bool = True
    sort_field: str = field(default=SORT_FIELDS[DEFAULT_SORT])
    direction: str = "asc"

    def to_search_kwargs(self) -> dict[str, Any]:
        """AsyncElasticsearch.search(**kwargs) 용"""
        return {
            "query": self.query,
            "sort": self.sort,
            "from_": self.offset,
            "size": self.size,
            "track_total_hits": self.track_total_hits,
        }

    @property
    def body(self) -> dict[str, Any]:
        return {
            "track_total_hits": self.track_total_hits,
            "from": self.offset,
            "size": self.size,
            "query": self.query,
            "sort": self.sort,
        }


def build_query(request: QueryRequest) -> StructuredQuery:
    """
    QueryRequest → StructuredQuery

      - q: must 안의 bool.should (name^2 + description multi_match, 또는 sku_search match),
           minimum_should_match=1. q 가 없으면 텍스트 조건 없음 (전체 매치).
      - brand/category/가격/재고: filter 컨텍스트 (점수에 영향 없음)
      - sort: 허용 목록 필드 + _score desc tie-break
      - from = (page-1) * perPage, 0 미만이면 0
    """
    must: list[dict[str, Any]] = []
    filters: list[dict[str, Any]] = []

    if request.q:
        must.append({
            "bool": {
                "should": [
                    {"multi_match": {"query": request.q, "fields": ["name^2", "description"]}},
                    {"match": {"sku_search": request.q}},
                ],
                "minimum_should_match": 1,
            }
        })

    if request.brand_id is not None:
        filters.append({"term": {"brand.id": int(request.brand_id)}})
    if request.category_id is not None:
        filters.append({"term": {"category.id": int(request.category_id)}})

    price = _range(request.price_min, request.price_max)
    if price:
        filters.append({"range": {"price.value": price}})
    stock = _range(request.stock_min, request.stock_max)
    if stock:
        filters.append({"range": {"stockQuantity": stock}})

    sort_field = resolve_sort(request.sort)
    direction = resolve_direction(request.direction)

    return StructuredQuery(
        query={"bool": {"must": must, "filter": filters}},
        sort=[{sort_field: {"order": direction}}, {"_score": "desc"}],
        offset=max(0, (request.page - 1) * request.per_page),
        size=request.per_page,
        sort_field=sort_field,
        direction=direction,
    )


def _total(hits: dict[str, Any]) -> int:
    total = hits.get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


async def search_products(indexer: ESIndexer, request: QueryRequest) -> QueryResult:
    """
    쿼리 실행 → QueryResult.

    인덱스 서비스가 쿼리를 거부하거나 연결 불가면 SearchServiceError —
    빈 결과로 위장하지 않음. 자동 재시도 없음.
    """
    structured = build_query(request)
    try:
        response = await indexer.search(**structured.to_search_kwargs())
    except IndexServiceError as e:
        logger.error(f"[red]search engine error[/red]: {e}")
        raise SearchServiceError("search engine error", status=e.status, body=e.body) from e

    hits = response.get("hits", {})
    items = [from_document_source(hit.get("_source")) for hit in hits.get("hits", [])]

    return QueryResult(
        total=_total(hits),
        items=items,
        page=request.page,
        per_page=request.per_page,
        sort=structured.sort_field,
        direction=structured.direction,
        filters=request.filters,
    )
