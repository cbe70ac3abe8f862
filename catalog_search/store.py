"""관계형 저장소 계약 (외부 협력자)

저장소가 유일한 원본(source of truth). 구현체는 write 호출이 반환되는 순간 커밋된 것으로 간주.
구현체 실패는 StoreError 로 감싸서 던질 것.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from .models import Brand, Category, Product, Unit


class CatalogStore(Protocol):
    async def count_products(self) -> int:
        ...

    def iter_products(
        self, batch_size: int = 500, limit: int | None = None
    ) -> AsyncIterator[Product]:
        """id 오름차순 (재실행/페이지 결정적)."""
        ...

    async def get_product(self, product_id: int) -> Product | None:
        ...

    async def get_brand(self, brand_id: int) -> Brand | None:
        ...

    async def get_category(self, category_id: int) -> Category | None:
        ...

    async def find_unit(self, code: str) -> Unit | None:
        """약어 우선, 없으면 id 로 조회."""
        ...

    async def list_brands(self) -> list[Brand]:
        ...

    async def list_categories(self) -> list[Category]:
        ...

    async def save_product(self, product: Product) -> Product:
        """
        단일 행 upsert. id=None 이면 신규 id 부여.
        created_at 은 신규 시, updated_at 은 매 저장 시 (감소하지 않음) 저장소가 설정.
        """
        ...
