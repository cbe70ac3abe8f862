"""에러 분류

  ValidationError      요청 입력 오류 — 어느 저장소에도 쓰기 전에 거부
  NotFoundError        상품/브랜드/카테고리 없음 — 쓰기 전에 중단
  StoreError           관계형 저장소 읽기/쓰기 실패
  IndexServiceError    인덱스 서비스 쓰기/생성/리프레시 실패 (transport 또는 API 응답)
  SearchServiceError   검색 쿼리 실패 — "결과 0건"과 구분됨
  DocumentShapeError   매핑에 없는/빠진 필드를 가진 문서 (엄격 디코드)
"""

from __future__ import annotations

from typing import Any


class CatalogSearchError(Exception):
    """패키지 공통 베이스"""


class ValidationError(CatalogSearchError):
    def __init__(self, errors: list[dict[str, str]]):
        self.errors = errors
        joined = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(joined or "invalid request")

    @classmethod
    def single(cls, field: str, message: str) -> ValidationError:
        return cls([{"field": field, "message": message}])


class NotFoundError(CatalogSearchError):
    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class StoreError(CatalogSearchError):
    def __init__(self, message: str, entity_id: int | None = None):
        self.entity_id = entity_id
        super().__init__(message)


class IndexServiceError(CatalogSearchError):
    """status=None 이면 transport 레벨 실패 (연결 불가 등)"""

    def __init__(self, message: str, status: int | None = None, body: Any = None):
        self.status = status
        self.body = body
        super().__init__(message)

    @property
    def is_transport(self) -> bool:
        return self.status is None

    def to_dict(self) -> dict[str, Any]:
        return {"message": str(self), "status": self.status, "body": self.body}


class SearchServiceError(CatalogSearchError):
    def __init__(self, message: str, status: int | None = None, body: Any = None):
        self.status = status
        self.body = body
        super().__init__(message)


class DocumentShapeError(CatalogSearchError, ValueError):
    pass
