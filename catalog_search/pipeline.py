"""작업 러너 — 저장소/인덱서 조립 + Rich 출력 + 동기 래퍼

콘솔: RichHandler (로그)  +  Rich Progress (재색인 진행)  +  Rich Table (요약)
파일: logs/<작업>_<timestamp>.log (plain text), 실패 문서는 *.failures.jsonl

  run_reindex     전체 재색인 (ensure_index → 스트리밍 → refresh)
  run_search      읽기 쿼리
  run_taxonomy    브랜드 / 카테고리 목록
  run_patch       단건 부분 수정
  run_bulk_price  가격 일괄 조정
  run_seed        합성 상품 생성
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from .config import Config
from .failures import AsyncFailureLog
from .indexer import ESIndexer
from .log import get_logger, setup_logging
from .models import QueryRequest, QueryResult
from .query import search_products
from .sql_store import SqlCatalogStore
from .sync import BulkSyncResult, ReindexResult, SyncOrchestrator, SyncResult

console = Console()
logger = get_logger("pipeline")


def _setup(config: Config, prefix: str) -> Path:
    log_file = config.log_dir / f"{prefix}_{time.strftime('%Y%m%d_%H%M%S')}.log"
    setup_logging(log_file=log_file)
    logger.info(f"Log → {log_file}")
    return log_file


def _failure_log(config: Config, log_file: Path) -> AsyncFailureLog:
    """실패 기록 경로. 미지정 시 로그 파일 옆에 자동 생성."""
    if config.failure_log_path:
        return AsyncFailureLog(config.failure_log_path)
    return AsyncFailureLog(log_file.with_suffix(".failures.jsonl"))


def _create_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        "[progress.description]{task.description}",
        BarColumn(bar_width=30),
        MofNCompleteColumn(),
        TextColumn("•"),
        TextColumn("[green]{task.fields[throughput]}[/]"),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=False,
    )


def _summary_table(title: str, rows: list[tuple[str, str]]) -> Table:
    table = Table(title=title, show_header=False, border_style="dim")
    table.add_column("항목", style="bold")
    table.add_column("값", justify="right", style="cyan")
    for label, value in rows:
        table.add_row(label, value)
    return table


def _print_summary(title: str, rows: list[tuple[str, str]]):
    console.print(_summary_table(title, rows))
    for label, value in rows:
        logger.info(f"{label}: {value}")


async def _with_sync(
    config: Config,
    log_file: Path,
    job: Callable[[SyncOrchestrator], Awaitable[Any]],
) -> Any:
    """저장소(테이블 없으면 생성) + 인덱서를 열고 job 실행 후 항상 닫음."""
    store = SqlCatalogStore.from_url(config.database_url)
    indexer = ESIndexer.from_config(config)
    sync = SyncOrchestrator(store, indexer, config, failure_log=_failure_log(config, log_file))
    try:
        await store.create_all()
        return await job(sync)
    finally:
        await indexer.close()
        await store.close()


# ============================================================
# 재색인
# ============================================================
async def _run_reindex(config: Config, recreate: bool) -> ReindexResult:
    log_file = _setup(config, "reindex")
    logger.info(
        f"인덱스: {config.index_name} (recreate={recreate}, "
        f"batch={config.reindex_batch_size}, shards={config.number_of_shards}, "
        f"replicas={config.number_of_replicas})"
    )

    progress = _create_progress()
    with progress:
        task_id = progress.add_task("Reindex", total=None, throughput="--")
        t0 = time.perf_counter()

        def on_progress(processed: int, total: int):
            elapsed = time.perf_counter() - t0
            rps = processed / elapsed if elapsed > 0 else 0
            progress.update(
                task_id, total=total, completed=processed, throughput=f"{rps:,.0f} docs/s"
            )

        result = await _with_sync(
            config, log_file, lambda sync: sync.reindex(recreate=recreate, on_progress=on_progress)
        )

    rows = [
        ("인덱스", result.index_name),
        ("신규 생성", "예" if result.created else "아니오"),
        ("상품 수", f"{result.total:,}"),
        ("색인 성공", f"{result.indexed:,}"),
        ("Wall time", f"{result.wall_sec:.1f}초"),
    ]
    if result.report.failed:
        rows.append(("실패 문서", f"[red]{result.report.failed:,}건[/]"))
    if result.report.flushes:
        rows.append(("bulk 합계", f"{result.report.bulk_ms / 1000:.1f}초 ({result.report.flushes}회)"))
    _print_summary("재색인 결과", rows)
    return result


# ============================================================
# 읽기
# ============================================================
async def _run_search(config: Config, request: QueryRequest) -> QueryResult:
    indexer = ESIndexer.from_config(config)
    try:
        return await search_products(indexer, request)
    finally:
        await indexer.close()


async def _run_taxonomy(config: Config, kind: str) -> list[dict[str, Any]]:
    log_file = config.log_dir / "taxonomy.log"
    if kind == "brands":
        return await _with_sync(config, log_file, lambda sync: sync.list_brands())
    return await _with_sync(config, log_file, lambda sync: sync.list_categories())


# ============================================================
# 변경
# ============================================================
async def _run_patch(config: Config, product_id: int, data: dict[str, Any]) -> SyncResult:
    log_file = _setup(config, "patch")
    return await _with_sync(config, log_file, lambda sync: sync.patch_product(product_id, data))


def _bulk_rows(result: BulkSyncResult) -> list[tuple[str, str]]:
    rows = [
        ("결과", result.outcome.value),
        ("대상", f"{result.matched:,}"),
        ("관계형 반영", f"{result.updated:,}"),
        ("인덱스 반영", f"{result.index.indexed:,}"),
    ]
    for reason, count in result.skipped.items():
        rows.append((f"skip ({reason})", f"{count:,}"))
    if result.relational_failed:
        rows.append(("관계형 실패", f"[red]{result.relational_failed:,}건[/]"))
    if result.index.failed or result.index.unsent:
        rows.append((
            "인덱스 실패",
            f"[red]{result.index.failed:,}건 (미전송 {result.index.unsent:,}건)[/]",
        ))
    return rows


async def _run_bulk_price(config: Config, percent: float, limit: int | None) -> BulkSyncResult:
    log_file = _setup(config, "bulk_price")
    result = await _with_sync(
        config, log_file, lambda sync: sync.bulk_adjust_prices(percent, limit=limit)
    )
    _print_summary("가격 일괄 조정", _bulk_rows(result))
    return result


async def _run_seed(config: Config, count: int) -> BulkSyncResult:
    log_file = _setup(config, "seed")
    result = await _with_sync(config, log_file, lambda sync: sync.seed_products(count))
    _print_summary("합성 상품 생성", _bulk_rows(result))
    return result


# ============================================================
# Public API: 동기 래퍼
# ============================================================
def run_reindex(config: Config, recreate: bool = False) -> ReindexResult:
    """전체 재색인 — 관계형 저장소 → 인덱스"""
    mode = "인덱스 재생성 + 전체 적재" if recreate else "인덱스 보존 + 전체 덮어쓰기"
    console.print(Panel.fit(f"[bold]Reindex[/] — {mode}", border_style="green"))
    return asyncio.run(_run_reindex(config, recreate))


def run_search(config: Config, request: QueryRequest) -> QueryResult:
    return asyncio.run(_run_search(config, request))


def run_patch(config: Config, product_id: int, data: dict[str, Any]) -> SyncResult:
    console.print(Panel.fit(f"[bold]Patch[/] — product {product_id}", border_style="blue"))
    return asyncio.run(_run_patch(config, product_id, data))


def run_bulk_price(config: Config, percent: float, limit: int | None = None) -> BulkSyncResult:
    console.print(Panel.fit(f"[bold]Bulk price[/] — {percent:+g}%", border_style="blue"))
    return asyncio.run(_run_bulk_price(config, percent, limit))


def run_seed(config: Config, count: int) -> BulkSyncResult:
    console.print(Panel.fit(f"[bold]Seed[/] — {count:,} products", border_style="blue"))
    return asyncio.run(_run_seed(config, count))


def run_taxonomy(config: Config, kind: str) -> list[dict[str, Any]]:
    """브랜드 / 카테고리 목록 (이름순)"""
    if kind not in ("brands", "categories"):
        raise ValueError(f"unknown taxonomy: {kind}")
    return asyncio.run(_run_taxonomy(config, kind))
