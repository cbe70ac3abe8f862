"""인덱싱 실패 문서 기록 (JSONL) — 수동/부분 재색인용"""

import asyncio
import json
import time
from pathlib import Path
from typing import Any

from .log import get_logger

logger = get_logger("failures")


class AsyncFailureLog:
    """
    실패 문서를 JSONL 파일에 비동기 안전하게 기록.

    파일 형식 (1줄 = 1 실패 문서):
        {"id": 42, "status": 400, "error": {...}, "timestamp": "..."}

    사용 예:
        fl = AsyncFailureLog(Path("logs/reindex.failures.jsonl"))
        await fl.record(42, 400, {"type": "mapper_parsing_exception"})
    """

    def __init__(self, path: Path, enabled: bool = True):
        self.path = path
        self.enabled = enabled
        self._lock = asyncio.Lock()
        self._count = 0
        if enabled:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    async def record(self, doc_id: Any, status: int | None, error: Any):
        if not self.enabled:
            return

        entry = {
            "id": doc_id,
            "status": status,
            "error": error,
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
        }
        async with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            self._count += 1

    @property
    def count(self) -> int:
        return self._count
