"""배치 벌크 인덱서 — 임계치 도달 시 flush, 문서 단위 에러 집계

  - add()/submit() 으로 (id, source) 를 쌓고 batch_size 에 도달하면 bulk 1회 호출
  - 응답의 errors 플래그가 켜져 있으면 items 를 돌며 실패 문서만 기록
  - 부분 실패는 보고만 하고 재시도하지 않음
  - transport/API 실패는 IndexServiceError 로 호출자에게 전파. 이후 인덱서는 halted 상태가
    되어 add() 된 문서를 전송하지 않고 unsent 로만 집계 (재색인으로 복구)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from .errors import IndexServiceError
from .failures import AsyncFailureLog
from .indexer import ESIndexer
from .log import get_logger

logger = get_logger("bulk")


@dataclass
class BulkReport:
    """벌크 누적 결과. errors 는 최대 max_errors 건만 보관, failed 는 실제 개수."""
    max_errors: int = 10
    submitted: int = 0
    indexed: int = 0
    failed: int = 0
    unsent: int = 0     # transport 장애로 전송되지 못한 문서
    flushes: int = 0
    bulk_ms: float = 0.0
    errors: list[dict[str, Any]] = field(default_factory=list)
    transport_error: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.unsent == 0 and self.transport_error is None

    def record_error(self, doc_id: Any, status: int | None, error: Any):
        self.failed += 1
        if len(self.errors) < self.max_errors:
            self.errors.append({"id": doc_id, "status": status, "error": error})

    def to_dict(self) -> dict[str, Any]:
        return {
            "submitted": self.submitted,
            "indexed": self.indexed,
            "failed": self.failed,
            "unsent": self.unsent,
            "flushes": self.flushes,
            "errors": list(self.errors),
            "transportError": self.transport_error,
        }


def _item_id(result: dict[str, Any]) -> Any:
    doc_id = result.get("_id")
    try:
        return int(doc_id)
    except (TypeError, ValueError):
        return doc_id


class BulkIndexer:
    """
    요청/작업 단위로 소유하는 벌크 버퍼 (요청 간 공유 없음, 락 불필요).

    사용 예:
        bulk = BulkIndexer(indexer, batch_size=750, refresh="wait_for")
        for product in products:
            await bulk.add(product.id, to_document(product).to_source())
        await bulk.flush()
        print(bulk.report.to_dict())
    """

    def __init__(
        self,
        indexer: ESIndexer,
        batch_size: int,
        *,
        refresh: str | None = None,
        max_reported_errors: int = 10,
        failure_log: AsyncFailureLog | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.indexer = indexer
        self.batch_size = batch_size
        self.refresh = refresh
        self.failure_log = failure_log
        self.report = BulkReport(max_errors=max_reported_errors)
        self._operations: list[dict] = []

    @property
    def pending(self) -> int:
        return len(self._operations) // 2

    @property
    def halted(self) -> bool:
        return self.report.transport_error is not None

    async def add(self, doc_id: int, source: dict[str, Any]):
        self.report.submitted += 1
        if self.halted:
            self.report.unsent += 1
            return
        self._operations.append(self.indexer.action(doc_id))
        self._operations.append(source)
        if self.pending >= self.batch_size:
            await self.flush()

    async def submit(self, operations: Iterable[tuple[int, dict[str, Any]]]):
        for doc_id, source in operations:
            await self.add(doc_id, source)

    async def flush(self) -> int:
        """남은 배치를 전송. 전송한 문서 수를 반환 (비어 있으면 호출 없이 0)."""
        if not self._operations:
            return 0

        operations, self._operations = self._operations, []
        count = len(operations) // 2

        t0 = time.perf_counter()
        try:
            response = await self.indexer.bulk(operations, refresh=self.refresh)
        except IndexServiceError as e:
            self.report.unsent += count
            self.report.transport_error = e.to_dict()
            logger.error(f"[red]bulk 전송 실패[/red] ({count:,}건 미전송): {e}")
            raise
        bulk_ms = (time.perf_counter() - t0) * 1000

        failed = 0
        if response.get("errors"):
            for item in response.get("items", []):
                for result in item.values():
                    error = result.get("error")
                    if not error:
                        continue
                    failed += 1
                    doc_id = _item_id(result)
                    status = result.get("status")
                    self.report.record_error(doc_id, status, error)
                    if self.failure_log is not None:
                        await self.failure_log.record(doc_id, status, error)

        self.report.flushes += 1
        self.report.indexed += count - failed
        self.report.bulk_ms += bulk_ms

        if failed:
            logger.warning(
                f"bulk flush: {count:,}건 중 [red]{failed:,}건 실패[/red] ({bulk_ms:.0f}ms)"
            )
        else:
            logger.debug(f"bulk flush: {count:,}건 ({bulk_ms:.0f}ms)")
        return count
