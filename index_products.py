#!/usr/bin/env python3
# index_products.py
"""
관계형 카탈로그 → Elasticsearch 전체 재색인 (CLI 엔트리포인트)

사전 조건:
  Elasticsearch:  docker compose up -d
  관계형 DB:      --database_url 로 지정 (기본 sqlite+aiosqlite:///catalog.db)

실행:
  # 인덱스 보존 + 전체 덮어쓰기
  python index_products.py

  # 인덱스 삭제 후 재생성 (스키마 변경 시)
  python index_products.py --recreate --batch_size 2000

  # ES 9 클러스터 + fingerprint 인증
  python index_products.py --recreate \\
      --es_nodes https://es01:9200 https://es02:9200 https://es03:9200 \\
      --es_fingerprint "B1:2A:96:..." \\
      --es_username elastic --es_password changeme
"""

import argparse
import sys

from catalog_search import IndexServiceError, StoreError, run_reindex
from catalog_search.config import Config, add_connection_args, config_from_args


def main():
    parser = argparse.ArgumentParser(description="상품 카탈로그 → Elasticsearch 재색인")
    parser.add_argument(
        "--recreate", action="store_true",
        help="기존 인덱스를 삭제하고 고정 스키마로 재생성",
    )
    parser.add_argument("--batch_size", type=int, default=Config.reindex_batch_size)
    parser.add_argument("--shards", type=int, default=Config.number_of_shards)
    parser.add_argument("--replicas", type=int, default=Config.number_of_replicas)
    parser.add_argument(
        "--progress_interval", type=int, default=Config.progress_interval,
        help="진행 로그 간격 (건)",
    )
    add_connection_args(parser)

    args = parser.parse_args()

    config = config_from_args(
        args,
        reindex_batch_size=args.batch_size,
        number_of_shards=args.shards,
        number_of_replicas=args.replicas,
        progress_interval=args.progress_interval,
    )

    try:
        result = run_reindex(config, recreate=args.recreate)
    except (IndexServiceError, StoreError) as e:
        print(f"재색인 실패: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0 if result.report.ok else 3)


if __name__ == "__main__":
    main()
