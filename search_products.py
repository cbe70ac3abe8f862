#!/usr/bin/env python3
# search_products.py
"""
상품 검색 (CLI 엔트리포인트)

실행:
  python search_products.py --q widget
  python search_products.py --q abc-01 --brand-id 3 --price-min 10 --price-max 100
  python search_products.py --sort price --dir desc --page 2 --per-page 50
  python search_products.py --q widget --json
  python search_products.py --list brands        # 브랜드 / 카테고리 목록

종료 코드: 0 성공, 2 입력 오류, 1 검색 엔진 오류
"""

import argparse
import json
import sys

from rich.console import Console
from rich.table import Table

from catalog_search import QueryRequest, SearchServiceError, StoreError, ValidationError, run_search, run_taxonomy
from catalog_search.config import add_connection_args, config_from_args

console = Console()

# CLI 옵션 → 쿼리 파라미터 이름
PARAMS = {
    "q": "q",
    "brand_id": "brandId",
    "category_id": "categoryId",
    "price_min": "priceMin",
    "price_max": "priceMax",
    "stock_min": "stockMin",
    "stock_max": "stockMax",
    "sort": "sort",
    "dir": "dir",
    "page": "page",
    "per_page": "perPage",
}


def _fmt(value) -> str:
    return "-" if value is None else str(value)


def _result_table(items: list[dict]) -> Table:
    table = Table(border_style="dim")
    table.add_column("id", justify="right", style="bold")
    table.add_column("sku")
    table.add_column("name")
    table.add_column("price", justify="right", style="cyan")
    table.add_column("stock", justify="right")
    table.add_column("brand")
    table.add_column("category")
    for item in items:
        price = item["price"] or {}
        table.add_row(
            _fmt(item["id"]),
            _fmt(item["sku"]),
            _fmt(item["name"]),
            f"{_fmt(price.get('value'))} {price.get('unit') or ''}".strip(),
            _fmt(item["stockQuantity"]),
            _fmt((item["brand"] or {}).get("name")),
            _fmt((item["category"] or {}).get("name")),
        )
    return table


def _taxonomy_table(kind: str, rows: list[dict]) -> Table:
    table = Table(title=kind, border_style="dim")
    table.add_column("id", justify="right", style="bold")
    table.add_column("name")
    table.add_column("path", style="cyan")
    if kind == "categories":
        table.add_column("parentId", justify="right")
    for row in rows:
        cells = [_fmt(row["id"]), _fmt(row["name"]), _fmt(row["path"])]
        if kind == "categories":
            cells.append(_fmt(row["parentId"]))
        table.add_row(*cells)
    return table


def main():
    parser = argparse.ArgumentParser(description="상품 검색 (Elasticsearch)")
    parser.add_argument("--q", default=None, help="이름/설명/SKU 전문 검색어")
    parser.add_argument("--brand-id", dest="brand_id", default=None)
    parser.add_argument("--category-id", dest="category_id", default=None)
    parser.add_argument("--price-min", dest="price_min", default=None)
    parser.add_argument("--price-max", dest="price_max", default=None)
    parser.add_argument("--stock-min", dest="stock_min", default=None)
    parser.add_argument("--stock-max", dest="stock_max", default=None)
    parser.add_argument("--sort", default=None, help="name, sku, price, stockQuantity, weight, createdAt, updatedAt")
    parser.add_argument("--dir", default=None, help="asc | desc")
    parser.add_argument("--page", default=None)
    parser.add_argument("--per-page", dest="per_page", default=None)
    parser.add_argument("--json", action="store_true", help="결과를 JSON 으로 출력")
    parser.add_argument(
        "--list", dest="taxonomy", choices=["brands", "categories"], default=None,
        help="검색 대신 관계형 저장소의 브랜드/카테고리 목록 출력 (이름순)",
    )
    add_connection_args(parser)

    args = parser.parse_args()

    if args.taxonomy:
        try:
            rows = run_taxonomy(config_from_args(args), args.taxonomy)
        except StoreError as e:
            console.print_json(data={"error": str(e)})
            sys.exit(1)
        if args.json:
            print(json.dumps({"data": rows}, ensure_ascii=False, indent=2))
        else:
            console.print(_taxonomy_table(args.taxonomy, rows))
        return

    params = {name: getattr(args, attr) for attr, name in PARAMS.items()}

    try:
        request = QueryRequest.from_params(params)
    except ValidationError as e:
        console.print_json(data={"error": "validation", "errors": e.errors})
        sys.exit(2)

    try:
        result = run_search(config_from_args(args), request)
    except SearchServiceError as e:
        console.print_json(data={"error": str(e), "status": e.status})
        sys.exit(1)

    payload = result.to_dict()
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    console.print(_result_table(result.items))
    meta = payload["meta"]
    console.print(
        f"[bold]{meta['total']:,}[/]건 • page {meta['page']}/{meta['pages']} "
        f"• perPage {meta['perPage']} • sort {meta['sort']} {meta['dir']}"
    )


if __name__ == "__main__":
    main()
