"""상품 인덱스 스키마 (settings + mappings)

mappings는 dynamic=false — 매핑에 없는 필드는 인덱스가 조용히 버림.
mapper.Document 필드 집합과 항상 일치해야 함 (tests/test_schema.py 에서 확인).
"""

import copy

_DATE_FORMAT = "strict_date_optional_time||epoch_millis"

_REF_OBJECT = {
    "type": "object",
    "properties": {
        "id": {"type": "integer"},
        "name": {"type": "keyword"},
        "path": {"type": "keyword"},
    },
}

# ── SKU prefix 검색용 분석기: edge n-gram 2~12, 문자+숫자, 소문자 ──
SKU_ANALYZER = "edge_ngram"

ANALYSIS = {
    "analyzer": {
        SKU_ANALYZER: {
            "type": "custom",
            "tokenizer": "edge_ngram",
            "filter": ["lowercase"],
        },
    },
    "tokenizer": {
        "edge_ngram": {
            "type": "edge_ngram",
            "min_gram": 2,
            "max_gram": 12,
            "token_chars": ["letter", "digit"],
        },
    },
}

PRODUCT_MAPPINGS = {
    "dynamic": False,
    "properties": {
        "id": {"type": "integer"},
        "key": {"type": "keyword"},
        "path": {"type": "keyword"},
        "name": {
            "type": "text",
            "analyzer": "standard",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
        },
        "sku": {"type": "keyword"},
        "sku_search": {"type": "text", "analyzer": SKU_ANALYZER},
        "description": {"type": "text"},
        "price": {
            "type": "object",
            "properties": {
                "value": {"type": "double"},
                "unit": {"type": "keyword"},
            },
        },
        "stockQuantity": {"type": "double"},
        "weight": {"type": "double"},
        "brand": _REF_OBJECT,
        "category": _REF_OBJECT,
        "createdAt": {"type": "date", "format": _DATE_FORMAT},
        "updatedAt": {"type": "date", "format": _DATE_FORMAT},
    },
}


def build_product_schema(shards: int = 1, replicas: int = 0) -> dict:
    """인덱스 생성용 스키마 사본 (호출자가 수정해도 원본 불변)"""
    return {
        "settings": {
            "number_of_shards": shards,
            "number_of_replicas": replicas,
            "analysis": copy.deepcopy(ANALYSIS),
        },
        "mappings": copy.deepcopy(PRODUCT_MAPPINGS),
    }


PRODUCT_SCHEMA = build_product_schema()
