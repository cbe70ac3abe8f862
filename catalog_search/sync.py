"""관계형 저장소 ↔ 검색 인덱스 동기화 오케스트레이터

순서: 관계형 커밋 → 문서 변환 → 인덱스 쓰기.
인덱스 쓰기가 실패해도 관계형 쓰기는 롤백하지 않음 — 결과에 두 leg 를 따로 담아 보고하고,
복구는 재색인으로.

  단건 (save/patch):  refresh="wait_for" 단건 쓰기, 실패 시 Outcome.PARTIAL
  벌크 (가격/생성):   id 오름차순, 행 단위 관계형 실패는 기록 후 계속, live_batch_size 로 flush
  전체 재색인:        ensure_index → 전 행 스트리밍 (reindex_batch_size) → 최종 refresh
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .bulk import BulkIndexer, BulkReport
from .config import Config
from .errors import IndexServiceError, NotFoundError, StoreError, ValidationError
from .failures import AsyncFailureLog
from .indexer import ESIndexer
from .log import get_logger
from .mapper import from_document_source, to_document
from .models import (
    Brand,
    Category,
    Product,
    ProductDraft,
    ProductPatch,
    QuantityValue,
    is_numeric,
)
from .schema import build_product_schema
from .store import CatalogStore
from .synthetic import generate_drafts

logger = get_logger("sync")

ProgressCallback = Callable[[int, int], None]


class Outcome(str, Enum):
    APPLIED = "applied"           # 전부 반영
    PARTIAL = "partial"           # 관계형은 (일부) 반영, 나머지 실패
    NOT_APPLIED = "not_applied"   # 아무것도 반영되지 않음


@dataclass
class Leg:
    ok: bool
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "error": self.error}


@dataclass
class SyncResult:
    """단건 변경 결과. relational 은 항상 ok (실패 시 예외로 전파)."""
    product: dict[str, Any]
    relational: Leg
    index: Leg

    @property
    def outcome(self) -> Outcome:
        if not self.relational.ok:
            return Outcome.NOT_APPLIED
        return Outcome.APPLIED if self.index.ok else Outcome.PARTIAL

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "outcome": self.outcome.value,
            "relational": self.relational.to_dict(),
            "index": self.index.to_dict(),
            "product": self.product,
        }
        if self.outcome is Outcome.PARTIAL:
            payload["warning"] = "Saved product, but failed to update the search index"
        return payload


@dataclass
class BulkSyncResult:
    operation: str
    index: BulkReport
    params: dict[str, Any] = field(default_factory=dict)
    matched: int = 0
    updated: int = 0
    skipped: dict[str, int] = field(default_factory=dict)
    relational_failed: int = 0
    relational_errors: list[dict[str, Any]] = field(default_factory=list)
    created: list[dict[str, Any]] = field(default_factory=list)
    max_errors: int = 10

    def record_relational_error(self, entity_id: Any, error: Exception):
        self.relational_failed += 1
        if len(self.relational_errors) < self.max_errors:
            self.relational_errors.append({"id": entity_id, "message": str(error)})

    @property
    def relational(self) -> Leg:
        return Leg(ok=self.relational_failed == 0)

    @property
    def outcome(self) -> Outcome:
        if self.updated == 0 and self.relational_failed > 0:
            return Outcome.NOT_APPLIED
        if self.relational_failed or not self.index.ok:
            return Outcome.PARTIAL
        return Outcome.APPLIED

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "outcome": self.outcome.value,
            "meta": {
                "operation": self.operation,
                **self.params,
                "matched": self.matched,
                "updated_sql": self.updated,
                "indexed_es": self.index.indexed,
                "skipped": dict(self.skipped),
                "errors": self.relational_failed + self.index.failed,
            },
            "relational": {
                "ok": self.relational.ok,
                "failed": self.relational_failed,
                "errors": list(self.relational_errors),
            },
            "index": self.index.to_dict(),
        }
        if self.created:
            payload["data"] = list(self.created)
        if self.outcome is Outcome.PARTIAL and self.updated:
            payload["warning"] = "Products saved in SQL, but some index operations failed."
        return payload


@dataclass
class ReindexResult:
    index_name: str
    created: bool
    total: int
    processed: int
    report: BulkReport
    wall_sec: float = 0.0

    @property
    def indexed(self) -> int:
        return self.report.indexed

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index_name,
            "created": self.created,
            "total": self.total,
            "processed": self.processed,
            "indexed": self.report.indexed,
            "failed": self.report.failed,
            "errors": list(self.report.errors),
            "wall_sec": round(self.wall_sec, 3),
        }


class SyncOrchestrator:
    """
    관계형 저장소와 인덱스를 주입받아 변경/재색인 흐름을 조율.

    사용 예:
        sync = SyncOrchestrator(store, ESIndexer.from_config(config), config)
        result = await sync.patch_product(42, {"name": "Widget"})
        if result.outcome is Outcome.PARTIAL:
            ...  # 관계형은 성공, 인덱스 실패 → 재색인 대상
    """

    def __init__(
        self,
        store: CatalogStore,
        indexer: ESIndexer,
        config: Config | None = None,
        failure_log: AsyncFailureLog | None = None,
    ):
        self.store = store
        self.indexer = indexer
        self.config = config or Config()
        self.failure_log = failure_log

    # ================================================================
    # 단건
    # ================================================================

    async def save_product(self, product: Product) -> SyncResult:
        """생성/전체 갱신. 관계형 실패(StoreError)는 그대로 전파."""
        saved = await self.store.save_product(product)
        return await self._index_single(saved)

    async def patch_product(self, product_id: int, data: Any) -> SyncResult:
        """
        부분 수정. 검증 → 조회(404) → 참조 해석(404/검증) → 저장 → 인덱스.
        검증/조회 실패는 어떤 쓰기보다 먼저 발생.
        """
        patch = ProductPatch.from_dict(data)
        product = await self.store.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        await self._apply_patch(product, patch)
        return await self.save_product(product)

    async def _apply_patch(self, product: Product, patch: ProductPatch):
        for key in ("name", "sku", "description"):
            if key in patch:
                setattr(product, key, patch[key])

        if "price" in patch:
            price = patch["price"]
            if price is None:
                product.price = None
            else:
                unit = None
                if price["unit"]:
                    unit = await self.store.find_unit(price["unit"])
                    if unit is None:
                        raise ValidationError.single("price.unit", f"unknown unit: {price['unit']}")
                product.price = QuantityValue(price["value"], unit)

        if "stockQuantity" in patch:
            product.stock_quantity = patch["stockQuantity"]
        if "weight" in patch:
            product.weight = patch["weight"]

        if "brandId" in patch:
            brand_id = patch["brandId"]
            product.brand = await self._require_brand(brand_id) if brand_id else None
        if "categoryId" in patch:
            category_id = patch["categoryId"]
            product.category = await self._require_category(category_id) if category_id else None

        if "published" in patch:
            product.published = bool(patch["published"])

    async def _index_single(self, product: Product) -> SyncResult:
        source = to_document(product).to_source()
        try:
            await self.indexer.index_document(product.id, source, refresh="wait_for")
            index = Leg(ok=True)
        except IndexServiceError as e:
            logger.warning(
                f"[yellow]관계형 저장 성공, 인덱스 실패[/yellow] id={product.id}: {e}"
            )
            if self.failure_log is not None:
                await self.failure_log.record(product.id, e.status, e.body)
            index = Leg(ok=False, error={"id": product.id, **e.to_dict()})
        return SyncResult(
            product=from_document_source(source),
            relational=Leg(ok=True),
            index=index,
        )

    async def _require_brand(self, brand_id: int) -> Brand:
        brand = await self.store.get_brand(brand_id)
        if brand is None:
            raise NotFoundError("Brand", brand_id)
        return brand

    async def _require_category(self, category_id: int) -> Category:
        category = await self.store.get_category(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    # ================================================================
    # 벌크 변경
    # ================================================================

    def _live_bulk(self, refresh: str | None) -> BulkIndexer:
        return BulkIndexer(
            self.indexer,
            self.config.live_batch_size,
            refresh=refresh,
            max_reported_errors=self.config.max_reported_errors,
            failure_log=self.failure_log,
        )

    async def _queue(self, bulk: BulkIndexer, product: Product):
        try:
            await bulk.add(product.id, to_document(product).to_source())
        except IndexServiceError:
            # bulk.report 에 기록됨. 이후 add() 는 unsent 로만 집계되고 관계형 패스는 계속
            pass

    async def _finish(self, bulk: BulkIndexer, refresh: bool):
        try:
            await bulk.flush()
            if refresh and not bulk.halted:
                await self.indexer.refresh()
        except IndexServiceError as e:
            if bulk.report.transport_error is None:
                bulk.report.transport_error = e.to_dict()
            logger.error(f"[red]인덱스 마무리 실패[/red]: {e}")

    async def bulk_adjust_prices(self, percent: Any, limit: Any = None) -> BulkSyncResult:
        """
        가격 일괄 조정: value × (1 + percent/100), 소수 2자리 반올림.

        price 없음 → skipped.noPriceField, price.value 없음 → skipped.nullPriceValue (에러 아님).
        끝나면 남은 배치 flush + 명시적 refresh.
        """
        if not is_numeric(percent):
            raise ValidationError.single("percent", 'Please provide {"percent": number}')
        percent = float(percent)
        limit = int(float(limit)) if is_numeric(limit) and float(limit) >= 1 else None
        multiplier = 1 + percent / 100.0

        total = await self.store.count_products()
        bulk = self._live_bulk(refresh=None)
        result = BulkSyncResult(
            operation="bulk_price",
            index=bulk.report,
            params={"percent": percent},
            matched=min(limit, total) if limit is not None else total,
            skipped={"noPriceField": 0, "nullPriceValue": 0},
            max_errors=self.config.max_reported_errors,
        )

        async for product in self.store.iter_products(
            batch_size=self.config.live_batch_size, limit=limit
        ):
            price = product.price
            if price is None:
                result.skipped["noPriceField"] += 1
                continue
            if price.value is None:
                result.skipped["nullPriceValue"] += 1
                continue

            product.price = QuantityValue(round(float(price.value) * multiplier, 2), price.unit)
            try:
                saved = await self.store.save_product(product)
            except StoreError as e:
                logger.warning(f"가격 갱신 실패 id={product.id}: {e}")
                result.record_relational_error(product.id, e)
                continue

            result.updated += 1
            await self._queue(bulk, saved)

        await self._finish(bulk, refresh=True)
        self._log_bulk(result)
        return result

    async def bulk_create(self, drafts: list[ProductDraft]) -> BulkSyncResult:
        """
        초안 목록 일괄 생성. 행마다 브랜드/카테고리 확인 → 저장 → 큐잉.
        인덱스 쓰기는 refresh="wait_for" (응답 시점 검색 가능), 별도 refresh 없음.
        """
        bulk = self._live_bulk(refresh="wait_for")
        result = BulkSyncResult(
            operation="bulk_create",
            index=bulk.report,
            params={"requested": len(drafts)},
            matched=len(drafts),
            max_errors=self.config.max_reported_errors,
        )
        brands: dict[int, Brand] = {}
        categories: dict[int, Category] = {}

        for draft in drafts:
            try:
                product = await self._product_from_draft(draft, brands, categories)
                saved = await self.store.save_product(product)
            except (StoreError, NotFoundError) as e:
                logger.warning(f"생성 실패 key={draft.key}: {e}")
                result.record_relational_error(draft.key, e)
                continue

            result.updated += 1
            result.created.append({"id": saved.id, "sku": saved.sku, "name": saved.name})
            await self._queue(bulk, saved)

        await self._finish(bulk, refresh=False)
        self._log_bulk(result)
        return result

    async def seed_products(self, count: int, rng: random.Random | None = None) -> BulkSyncResult:
        """기존 브랜드/카테고리에 무작위로 연결된 합성 상품 count 개 생성."""
        brands = await self.store.list_brands()
        categories = await self.store.list_categories()
        unit = await self.store.find_unit("EUR")
        drafts = generate_drafts(
            count,
            [b.id for b in brands],
            [c.id for c in categories],
            unit=unit,
            rng=rng,
        )
        return await self.bulk_create(drafts)

    async def _product_from_draft(
        self,
        draft: ProductDraft,
        brands: dict[int, Brand],
        categories: dict[int, Category],
    ) -> Product:
        brand = None
        if draft.brand_id is not None:
            if draft.brand_id not in brands:
                brands[draft.brand_id] = await self._require_brand(draft.brand_id)
            brand = brands[draft.brand_id]

        category = None
        if draft.category_id is not None:
            if draft.category_id not in categories:
                categories[draft.category_id] = await self._require_category(draft.category_id)
            category = categories[draft.category_id]

        return Product(
            key=draft.key,
            path=f"{draft.parent_path.rstrip('/')}/{draft.key}",
            name=draft.name,
            sku=draft.sku,
            description=draft.description,
            price=draft.price,
            stock_quantity=draft.stock_quantity,
            weight=draft.weight,
            brand=brand,
            category=category,
            published=draft.published,
        )

    def _log_bulk(self, result: BulkSyncResult):
        msg = (
            f"{result.operation}: matched={result.matched:,} updated={result.updated:,} "
            f"indexed={result.index.indexed:,} relational_failed={result.relational_failed:,} "
            f"index_failed={result.index.failed:,} unsent={result.index.unsent:,}"
        )
        if result.outcome is Outcome.APPLIED:
            logger.info(msg)
        else:
            logger.warning(f"[yellow]{result.outcome.value}[/yellow] {msg}")

    # ================================================================
    # 전체 재색인
    # ================================================================

    async def reindex(
        self,
        recreate: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> ReindexResult:
        """
        ensure_index(recreate) → 전체 상품을 id 순으로 스트리밍 → 최종 refresh.

        progress_interval 건마다 on_progress(processed, total) 호출 (마지막에도 1회).
        transport 실패는 IndexServiceError 로 전파 — 이미 쓴 문서는 그대로 (재실행으로 복구).
        """
        t0 = time.perf_counter()
        created = await self.indexer.ensure_index(
            recreate=recreate,
            schema=build_product_schema(
                self.config.number_of_shards, self.config.number_of_replicas
            ),
        )

        total = await self.store.count_products()
        logger.info(f"상품 {total:,}건 → '{self.indexer.index_name}' 색인 시작")

        bulk = BulkIndexer(
            self.indexer,
            self.config.reindex_batch_size,
            max_reported_errors=self.config.max_reported_errors,
            failure_log=self.failure_log,
        )
        interval = max(1, self.config.progress_interval)
        processed = 0

        async for product in self.store.iter_products(batch_size=self.config.reindex_batch_size):
            await bulk.add(product.id, to_document(product).to_source())
            processed += 1
            if processed % interval == 0:
                logger.info(f"  -> indexed {processed:,}/{total:,}")
                if on_progress is not None:
                    on_progress(processed, total)

        await bulk.flush()
        await self.indexer.refresh()

        if on_progress is not None and processed % interval != 0:
            on_progress(processed, total)

        result = ReindexResult(
            index_name=self.indexer.index_name,
            created=created,
            total=total,
            processed=processed,
            report=bulk.report,
            wall_sec=time.perf_counter() - t0,
        )
        logger.info(
            f"[bold green]완료[/bold green] indexed={result.indexed:,} failed={bulk.report.failed:,}"
        )
        return result

    # ================================================================
    # 택소노미
    # ================================================================

    async def list_brands(self) -> list[dict[str, Any]]:
        return [b.to_dict() for b in await self.store.list_brands()]

    async def list_categories(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in await self.store.list_categories()]
