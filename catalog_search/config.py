"""카탈로그 검색 동기화 설정"""

import argparse
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    # Elasticsearch 연결
    es_url: str = "http://localhost:9200"
    es_nodes: list[str] | None = None       # 클러스터 노드 목록 (설정 시 es_url 무시)
    es_fingerprint: str | None = None       # TLS 인증서 SHA-256 fingerprint (클러스터 시 필수)
    es_username: str | None = None
    es_password: str | None = None
    es_api_key: str | None = None           # basic_auth 대신 사용 가능

    # 인덱스
    index_name: str = "products"
    number_of_shards: int = 1
    number_of_replicas: int = 0

    # 배치 크기 (전체 재색인 / 요청 인라인 벌크)
    reindex_batch_size: int = 1000
    live_batch_size: int = 750

    # 리포팅
    max_reported_errors: int = 10   # 응답에 싣는 에러 최대 개수 (실제 개수는 별도 집계)
    progress_interval: int = 1000   # 재색인 진행 로그 간격 (건)

    # 관계형 저장소 (SQLAlchemy async URL)
    database_url: str = "sqlite+aiosqlite:///catalog.db"

    # 로그 / 실패 기록
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    failure_log_path: Path | None = None  # None → log_dir 아래 자동 생성


def add_connection_args(parser: argparse.ArgumentParser):
    """CLI 공통 연결 옵션 (ES 단일 노드/클러스터 + 관계형 DB + 로그)"""
    parser.add_argument("--index", default=Config.index_name)
    parser.add_argument("--es_url", default=Config.es_url)
    parser.add_argument("--database_url", default=Config.database_url, help="SQLAlchemy async URL")
    parser.add_argument("--log_dir", type=Path, default=Path("logs"))
    parser.add_argument(
        "--failure_log", type=Path, default=None,
        help="실패 문서 JSONL 파일 경로 (미지정 시 log_dir 에 자동 생성)",
    )

    # ── ES 클러스터 연결 ──
    cluster = parser.add_argument_group("ES 클러스터 연결 (ES 9+)")
    cluster.add_argument(
        "--es_nodes", nargs="+", default=None,
        help="클러스터 노드 URL 목록 (설정 시 --es_url 무시)",
    )
    cluster.add_argument(
        "--es_fingerprint", default=None,
        help="TLS 인증서 SHA-256 fingerprint (--es_nodes 사용 시 필수)",
    )
    cluster.add_argument("--es_username", default=None, help="Basic Auth 사용자명")
    cluster.add_argument("--es_password", default=None, help="Basic Auth 비밀번호")
    cluster.add_argument(
        "--es_api_key", default=None,
        help="API Key (--es_username/--es_password 대신 사용)",
    )


def config_from_args(args: argparse.Namespace, **overrides) -> Config:
    return Config(
        es_url=args.es_url,
        es_nodes=args.es_nodes,
        es_fingerprint=args.es_fingerprint,
        es_username=args.es_username,
        es_password=args.es_password,
        es_api_key=args.es_api_key,
        index_name=args.index,
        database_url=args.database_url,
        log_dir=args.log_dir,
        failure_log_path=args.failure_log,
        **overrides,
    )
