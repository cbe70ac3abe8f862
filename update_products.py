#!/usr/bin/env python3
# update_products.py
"""
상품 변경 + 인덱스 동기화 (CLI 엔트리포인트)

실행:
  # 단건 부분 수정 (값은 JSON)
  python update_products.py patch 42 --set name='"Widget Pro"' --set price='{"value": 19.9, "unit": "EUR"}'
  python update_products.py patch 42 --set brandId=null

  # 가격 일괄 조정 (+10%, 앞에서부터 500건만)
  python update_products.py bulk-price --percent 10 --count 500

  # 합성 상품 생성
  python update_products.py seed --count 1000

종료 코드: 0 전부 반영, 3 부분 반영 (관계형 OK / 인덱스 일부 실패), 1 미반영, 2 입력 오류
"""

import argparse
import json
import sys

from rich.console import Console

from catalog_search import (
    NotFoundError,
    Outcome,
    StoreError,
    ValidationError,
    run_bulk_price,
    run_patch,
    run_seed,
)
from catalog_search.config import Config, add_connection_args, config_from_args

console = Console()

EXIT_CODES = {
    Outcome.APPLIED: 0,
    Outcome.PARTIAL: 3,
    Outcome.NOT_APPLIED: 1,
}


def _parse_set(values: list[str]) -> dict:
    """["name=\"x\"", "weight=1.5"] → {"name": "x", "weight": 1.5}"""
    data = {}
    for item in values:
        field, sep, raw = item.partition("=")
        if not sep or not field:
            raise ValidationError.single(item, "expected field=<json>")
        try:
            data[field] = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError.single(field, f"invalid JSON value: {raw}")
    return data


def main():
    parser = argparse.ArgumentParser(description="상품 변경 + Elasticsearch 동기화")
    sub = parser.add_subparsers(dest="command", required=True)

    patch = sub.add_parser("patch", help="단건 부분 수정")
    patch.add_argument("product_id", type=int)
    patch.add_argument("--set", dest="changes", action="append", default=[], metavar="FIELD=JSON")

    bulk_price = sub.add_parser("bulk-price", help="가격 일괄 조정")
    bulk_price.add_argument("--percent", type=float, required=True, help="예: 10 → ×1.10, -5 → ×0.95")
    bulk_price.add_argument("--count", type=int, default=None, help="id 순 앞에서 N건만 (기본 전체)")

    seed = sub.add_parser("seed", help="합성 상품 생성")
    seed.add_argument("--count", type=int, required=True)

    for sp in (patch, bulk_price, seed):
        sp.add_argument("--batch_size", type=int, default=Config.live_batch_size)
        add_connection_args(sp)

    args = parser.parse_args()
    config = config_from_args(args, live_batch_size=args.batch_size)

    try:
        if args.command == "patch":
            result = run_patch(config, args.product_id, _parse_set(args.changes))
        elif args.command == "bulk-price":
            result = run_bulk_price(config, args.percent, limit=args.count)
        else:
            result = run_seed(config, args.count)
    except ValidationError as e:
        console.print_json(data={"error": "validation", "errors": e.errors})
        sys.exit(2)
    except NotFoundError as e:
        console.print_json(data={"error": str(e)})
        sys.exit(1)
    except StoreError as e:
        console.print_json(data={"error": f"Failed to save: {e}"})
        sys.exit(1)

    console.print_json(data=result.to_dict())
    sys.exit(EXIT_CODES[result.outcome])


if __name__ == "__main__":
    main()
