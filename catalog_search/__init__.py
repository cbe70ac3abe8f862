"""
catalog_search — 상품 카탈로그 검색 동기화 + 쿼리 패키지

전체 재색인:
    from catalog_search import Config, run_reindex
    run_reindex(Config(index_name="products"), recreate=True)

검색:
    from catalog_search import Config, QueryRequest, run_search
    result = run_search(Config(), QueryRequest.from_params({"q": "widget", "brandId": "3"}))
    print(result.to_dict()["meta"])

변경 + 동기화 (async):
    from catalog_search import ESIndexer, SqlCatalogStore, SyncOrchestrator
    sync = SyncOrchestrator(SqlCatalogStore.from_url(url), ESIndexer.from_config(config), config)
    result = await sync.patch_product(42, {"price": {"value": 19.9, "unit": "EUR"}})
    result.outcome  # Outcome.APPLIED / PARTIAL / NOT_APPLIED
"""

from .bulk import BulkIndexer, BulkReport
from .config import Config
from .errors import (
    CatalogSearchError,
    DocumentShapeError,
    IndexServiceError,
    NotFoundError,
    SearchServiceError,
    StoreError,
    ValidationError,
)
from .indexer import ESIndexer, build_es_client
from .mapper import Document, from_document_source, to_document
from .models import (
    Brand,
    Category,
    Product,
    ProductDraft,
    ProductPatch,
    QuantityValue,
    QueryRequest,
    QueryResult,
    Unit,
)
from .pipeline import run_bulk_price, run_patch, run_reindex, run_search, run_seed, run_taxonomy
from .query import StructuredQuery, build_query, search_products
from .schema import PRODUCT_SCHEMA, build_product_schema
from .sql_store import SqlCatalogStore
from .sync import Outcome, SyncOrchestrator

__all__ = [
    "Config", "ESIndexer", "build_es_client", "BulkIndexer", "BulkReport",
    "Document", "to_document", "from_document_source",
    "Unit", "QuantityValue", "Brand", "Category", "Product", "ProductDraft",
    "ProductPatch", "QueryRequest", "QueryResult",
    "StructuredQuery", "build_query", "search_products",
    "PRODUCT_SCHEMA", "build_product_schema",
    "SqlCatalogStore", "SyncOrchestrator", "Outcome",
    "run_reindex", "run_search", "run_patch", "run_bulk_price", "run_seed", "run_taxonomy",
    "CatalogSearchError", "ValidationError", "NotFoundError", "StoreError",
    "IndexServiceError", "SearchServiceError", "DocumentShapeError",
]
