# tests/test_indexer.py
"""ESIndexer — 프로비저닝 / 쓰기 / 예외 변환 / 클라이언트 설정"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from elasticsearch import BadRequestError
from elasticsearch import ConnectionError as ESConnectionError

from catalog_search.config import Config
from catalog_search.errors import IndexServiceError
from catalog_search.indexer import build_es_client

from fakes import make_es, make_indexer


def test_ensure_index_creates_when_missing():
    es = make_es(exists=False)
    indexer = make_indexer(es)

    created = asyncio.run(indexer.ensure_index())

    assert created is True
    es.indices.delete.assert_not_called()
    kwargs = es.indices.create.call_args.kwargs
    assert kwargs["index"] == "products"
    assert kwargs["mappings"]["dynamic"] is False
    assert "analysis" in kwargs["settings"]


def test_ensure_index_keeps_existing():
    es = make_es(exists=True)
    created = asyncio.run(make_indexer(es).ensure_index())

    assert created is False
    es.indices.create.assert_not_called()
    es.indices.delete.assert_not_called()


def test_ensure_index_recreate_drops_first():
    es = make_es()
    es.indices.exists = AsyncMock(side_effect=[True, False])

    created = asyncio.run(make_indexer(es).ensure_index(recreate=True))

    assert created is True
    es.indices.delete.assert_awaited_once_with(index="products")
    es.indices.create.assert_awaited_once()


def test_index_document_overwrites_with_wait_for():
    es = make_es()
    asyncio.run(make_indexer(es).index_document(42, {"id": 42}))
    es.index.assert_awaited_once_with(
        index="products", id="42", document={"id": 42}, refresh="wait_for"
    )


def test_bulk_passes_refresh_only_when_set():
    es = make_es()
    indexer = make_indexer(es)
    ops = [indexer.action(1), {"id": 1}]

    asyncio.run(indexer.bulk(ops))
    asyncio.run(indexer.bulk(ops, refresh="wait_for"))

    assert [c["refresh"] for c in es.bulk_calls] == [None, "wait_for"]
    assert ops[0] == {"index": {"_index": "products", "_id": "1"}}


def test_api_error_translated():
    es = make_es()
    es.indices.create = AsyncMock(side_effect=BadRequestError(
        message="resource_already_exists_exception",
        meta=MagicMock(status=400),
        body={"error": {"type": "resource_already_exists_exception"}},
    ))

    with pytest.raises(IndexServiceError) as exc:
        asyncio.run(make_indexer(es).ensure_index())

    assert exc.value.status == 400
    assert exc.value.body["error"]["type"] == "resource_already_exists_exception"
    assert not exc.value.is_transport


def test_transport_error_translated():
    es = make_es()
    es.bulk = AsyncMock(side_effect=ESConnectionError("connection refused"))
    indexer = make_indexer(es)

    with pytest.raises(IndexServiceError) as exc:
        asyncio.run(indexer.bulk([indexer.action(1), {"id": 1}]))

    assert exc.value.is_transport
    assert "connection refused" in str(exc.value)
    # 원인 문구가 body 에도 남아야 재색인 판단 가능
    assert exc.value.body["message"] == "connection refused"
    assert exc.value.body["errors"] == []


def test_transport_error_keeps_nested_causes():
    es = make_es()
    es.index = AsyncMock(side_effect=ESConnectionError(
        "connection refused", errors=(OSError("[Errno 111] refused by es01"),)
    ))

    with pytest.raises(IndexServiceError) as exc:
        asyncio.run(make_indexer(es).index_document(5, {"id": 5}))

    assert exc.value.to_dict()["body"] == {
        "message": "connection refused",
        "errors": ["[Errno 111] refused by es01"],
    }


def test_count_and_refresh():
    es = make_es()
    es.count = AsyncMock(return_value={"count": 12})
    indexer = make_indexer(es)

    assert asyncio.run(indexer.count()) == 12
    asyncio.run(indexer.refresh())
    es.indices.refresh.assert_awaited_once_with(index="products")


def test_cluster_requires_fingerprint_and_credentials():
    with pytest.raises(ValueError):
        build_es_client(Config(es_nodes=["https://es01:9200"]))
    with pytest.raises(ValueError):
        build_es_client(Config(es_nodes=["https://es01:9200"], es_fingerprint="AA:BB"))
