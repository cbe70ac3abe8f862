"""Elasticsearch 인덱스 관리 + 벌크/단건 쓰기 + 검색 어댑터

클라이언트 예외(ApiError / TransportError)는 이 경계에서 IndexServiceError 로 변환.
"""

from __future__ import annotations

from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from .config import Config
from .errors import IndexServiceError
from .log import get_logger
from .schema import build_product_schema

logger = get_logger("indexer")


def build_es_client(config: Config) -> AsyncElasticsearch:
    """Config 기반으로 AsyncElasticsearch 클라이언트를 생성.

    - 단일 노드 (HTTP): es_url 사용 — fingerprint 불필요
    - 클러스터 (HTTPS): es_nodes 사용 — fingerprint + 인증 필수

    Examples:
        config = Config(es_url="http://localhost:9200")

        config = Config(
            es_nodes=["https://es01:9200", "https://es02:9200"],
            es_fingerprint="B1:2A:...:CF",
            es_username="elastic",
            es_password="changeme",
        )
    """
    hosts = config.es_nodes or [config.es_url]
    is_cluster = config.es_nodes is not None

    if is_cluster:
        if not config.es_fingerprint:
            raise ValueError(
                "--es_fingerprint 필수: 클러스터 연결에는 TLS 인증서 fingerprint가 필요합니다."
            )
        if not config.es_api_key and not (config.es_username and config.es_password):
            raise ValueError(
                "인증 정보 필수: --es_api_key 또는 --es_username + --es_password를 지정하세요."
            )

    kwargs: dict = {"hosts": hosts}

    # API Key 우선, 없으면 Basic Auth
    if config.es_api_key:
        kwargs["api_key"] = config.es_api_key
    elif config.es_username and config.es_password:
        kwargs["basic_auth"] = (config.es_username, config.es_password)

    if config.es_fingerprint:
        kwargs["ssl_assert_fingerprint"] = config.es_fingerprint
        kwargs["verify_certs"] = False  # fingerprint가 CA 체인 검증을 대체

    return AsyncElasticsearch(**kwargs)


def _body(response: Any) -> Any:
    """ObjectApiResponse → dict (mock 이 돌려준 dict 는 그대로)"""
    return getattr(response, "body", response)


def _translate(op: str, error: Exception) -> IndexServiceError:
    if isinstance(error, ApiError):
        return IndexServiceError(
            f"{op} failed: {error.message}",
            status=error.meta.status,
            body=error.body,
        )
    # TransportError.__str__ 는 일반 문구만 반환. 원인은 message / errors 에 있음
    message = getattr(error, "message", None) or str(error)
    return IndexServiceError(
        f"{op} failed: {message}",
        status=None,
        body={
            "message": str(message),
            "errors": [str(e) for e in getattr(error, "errors", ())],
        },
    )


class ESIndexer:
    """
    상품 인덱스 1개에 대한 Elasticsearch 어댑터.

      - 프로비저닝: ensure_index(recreate)
      - 쓰기: bulk (action/document 쌍), index_document (단건 덮어쓰기)
      - 읽기: search, count
      - refresh
    """

    def __init__(self, es_url: str, index_name: str, client: AsyncElasticsearch | None = None):
        self.es = client if client is not None else AsyncElasticsearch(es_url)
        self.index_name = index_name

    @classmethod
    def from_config(cls, config: Config, index_name: str | None = None) -> ESIndexer:
        """Config 객체로 클러스터 연결이 포함된 ESIndexer 생성."""
        return cls(
            config.es_url,
            index_name or config.index_name,
            client=build_es_client(config),
        )

    # ================================================================
    # 스키마 프로비저닝
    # ================================================================

    async def ensure_index(self, recreate: bool = False, schema: dict | None = None) -> bool:
        """
        인덱스가 없으면 고정 스키마로 생성. recreate=True면 기존 인덱스를 먼저 삭제.

        생성은 비트랜잭션 / eventually-visible — 생성 직후 검색 가능하다고 가정하지 말 것.
        recreate 후에는 모든 문서를 다시 적재해야 함.

        Returns: True면 새로 생성됨, False면 이미 존재.
        """
        try:
            if recreate and await self.exists():
                await self.es.indices.delete(index=self.index_name)
                logger.info(f"인덱스 삭제: [bold]{self.index_name}[/bold]")

            if await self.exists():
                return False

            schema = schema or build_product_schema()
            await self.es.indices.create(
                index=self.index_name,
                settings=schema.get("settings", {}),
                mappings=schema.get("mappings", {}),
            )
        except (ApiError, TransportError) as e:
            raise _translate("ensure_index", e) from e

        logger.info(f"인덱스 생성: [bold]{self.index_name}[/bold]")
        return True

    async def exists(self) -> bool:
        return bool(await self.es.indices.exists(index=self.index_name))

    # ================================================================
    # 쓰기
    # ================================================================

    async def bulk(self, operations: list[dict], refresh: str | None = None) -> dict:
        """
        action header + document 쌍 목록을 1회의 bulk 호출로 전송.

        refresh="wait_for" → 응답 시점에 검색 가능 (인라인 요청용).
        문서 단위 실패는 응답의 errors/items 로 돌아오고, 예외는 transport/API 실패만.
        """
        kwargs: dict[str, Any] = {"operations": operations}
        if refresh is not None:
            kwargs["refresh"] = refresh
        try:
            return _body(await self.es.bulk(**kwargs))
        except (ApiError, TransportError) as e:
            raise _translate("bulk", e) from e

    async def index_document(self, doc_id: int, source: dict, refresh: str | None = "wait_for"):
        """단일 문서 덮어쓰기 (같은 id 재색인 = overwrite)."""
        kwargs: dict[str, Any] = {"index": self.index_name, "id": str(doc_id), "document": source}
        if refresh is not None:
            kwargs["refresh"] = refresh
        try:
            return _body(await self.es.index(**kwargs))
        except (ApiError, TransportError) as e:
            raise _translate("index", e) from e

    def action(self, doc_id: int) -> dict:
        return {"index": {"_index": self.index_name, "_id": str(doc_id)}}

    # ================================================================
    # 읽기 / 상태
    # ================================================================

    async def search(self, **kwargs) -> dict:
        try:
            return _body(await self.es.search(index=self.index_name, **kwargs))
        except (ApiError, TransportError) as e:
            raise _translate("search", e) from e

    async def count(self) -> int:
        try:
            result = _body(await self.es.count(index=self.index_name))
        except (ApiError, TransportError) as e:
            raise _translate("count", e) from e
        return result["count"]

    async def refresh(self):
        """수동 리프레시 — 모든 pending 문서를 검색 가능하게"""
        try:
            await self.es.indices.refresh(index=self.index_name)
        except (ApiError, TransportError) as e:
            raise _translate("refresh", e) from e

    async def close(self):
        await self.es.close()
