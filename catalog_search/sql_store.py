"""SQLAlchemy(async) 기반 CatalogStore 구현

사용법:
    store = SqlCatalogStore.from_url("postgresql+asyncpg://user:pw@localhost/catalog")
    await store.create_all()
    async for product in store.iter_products(batch_size=1000):
        ...
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncIterator

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, relationship

from .errors import StoreError
from .log import get_logger
from .models import Brand, Category, Product, QuantityValue, Unit

logger = get_logger("sql_store")

Base = declarative_base()


class UnitRow(Base):
    __tablename__ = "units"

    id = Column(String(32), primary_key=True)
    abbreviation = Column(String(32), nullable=True, index=True)


class BrandRow(Base):
    __tablename__ = "brands"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True, index=True)
    path = Column(String(1024), nullable=True)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True, index=True)
    path = Column(String(1024), nullable=True)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)


class ProductRow(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), nullable=True)
    path = Column(String(1024), nullable=True, unique=True)
    name = Column(String(255), nullable=True, index=True)
    sku = Column(String(255), nullable=True, index=True)
    description = Column(Text, nullable=True)
    price_value = Column(Float, nullable=True)
    price_unit_id = Column(String(32), ForeignKey("units.id"), nullable=True)
    has_price = Column(Boolean, default=False, nullable=False)
    stock_quantity = Column(Float, nullable=True)
    weight = Column(Float, nullable=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    published = Column(Boolean, default=True, nullable=False)
    # UTC naive 로 저장
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    price_unit = relationship(UnitRow, lazy="joined")
    brand = relationship(BrandRow, lazy="joined")
    category = relationship(CategoryRow, lazy="joined")

    def __repr__(self):
        return f"<ProductRow(id={self.id}, sku='{self.sku}')>"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _unit(row: UnitRow | None) -> Unit | None:
    return Unit(id=row.id, abbreviation=row.abbreviation) if row is not None else None


def _brand(row: BrandRow | None) -> Brand | None:
    return Brand(id=row.id, name=row.name, path=row.path) if row is not None else None


def _category(row: CategoryRow | None) -> Category | None:
    if row is None:
        return None
    return Category(id=row.id, name=row.name, path=row.path, parent_id=row.parent_id)


def _product(row: ProductRow) -> Product:
    price = None
    if row.has_price:
        price = QuantityValue(value=row.price_value, unit=_unit(row.price_unit))
    return Product(
        id=row.id,
        key=row.key,
        path=row.path,
        name=row.name,
        sku=row.sku,
        description=row.description,
        price=price,
        stock_quantity=row.stock_quantity,
        weight=row.weight,
        brand=_brand(row.brand),
        category=_category(row.category),
        published=row.published,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlCatalogStore:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> SqlCatalogStore:
        return cls(create_async_engine(url, echo=echo, future=True))

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        await self.engine.dispose()

    # ================================================================
    # 읽기
    # ================================================================

    async def count_products(self) -> int:
        try:
            async with self._sessions() as session:
                result = await session.execute(select(func.count()).select_from(ProductRow))
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise StoreError(f"count products failed: {e}") from e

    async def iter_products(
        self, batch_size: int = 500, limit: int | None = None
    ) -> AsyncIterator[Product]:
        """keyset 페이지네이션 (id > last_id ORDER BY id LIMIT n)"""
        last_id = 0
        yielded = 0
        while True:
            size = batch_size if limit is None else min(batch_size, limit - yielded)
            if size <= 0:
                return
            try:
                async with self._sessions() as session:
                    result = await session.execute(
                        select(ProductRow)
                        .where(ProductRow.id > last_id)
                        .order_by(ProductRow.id)
                        .limit(size)
                    )
                    rows = result.scalars().all()
            except SQLAlchemyError as e:
                raise StoreError(f"iterate products failed after id={last_id}: {e}") from e
            if not rows:
                return
            for row in rows:
                yield _product(row)
            last_id = rows[-1].id
            yielded += len(rows)

    async def get_product(self, product_id: int) -> Product | None:
        return await self._get(ProductRow, product_id, _product)

    async def get_brand(self, brand_id: int) -> Brand | None:
        return await self._get(BrandRow, brand_id, _brand)

    async def get_category(self, category_id: int) -> Category | None:
        return await self._get(CategoryRow, category_id, _category)

    async def find_unit(self, code: str) -> Unit | None:
        try:
            async with self._sessions() as session:
                result = await session.execute(select(UnitRow).where(UnitRow.abbreviation == code))
                row = result.scalars().first()
                if row is None:
                    row = await session.get(UnitRow, code)
                return _unit(row)
        except SQLAlchemyError as e:
            raise StoreError(f"find unit failed: {e}") from e

    async def list_brands(self) -> list[Brand]:
        try:
            async with self._sessions() as session:
                result = await session.execute(select(BrandRow).order_by(BrandRow.name, BrandRow.id))
                return [_brand(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"list brands failed: {e}") from e

    async def list_categories(self) -> list[Category]:
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(CategoryRow).order_by(CategoryRow.name, CategoryRow.id)
                )
                return [_category(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreError(f"list categories failed: {e}") from e

    async def _get(self, model, entity_id: int, convert):
        try:
            async with self._sessions() as session:
                row = await session.get(model, entity_id)
                return convert(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"get {model.__tablename__} {entity_id} failed: {e}") from e

    # ================================================================
    # 쓰기
    # ================================================================

    async def save_product(self, product: Product) -> Product:
        now = _utcnow()
        try:
            async with self._sessions() as session:
                async with session.begin():
                    row = None
                    if product.id is not None:
                        row = await session.get(ProductRow, product.id)
                    if row is None:
                        row = ProductRow(id=product.id, created_at=now)
                        session.add(row)

                    row.key = product.key
                    row.path = product.path
                    row.name = product.name
                    row.sku = product.sku
                    row.description = product.description
                    row.has_price = product.price is not None
                    row.price_value = product.price.value if product.price is not None else None
                    unit = product.price.unit if product.price is not None else None
                    if unit is not None:
                        await session.merge(UnitRow(id=unit.id, abbreviation=unit.abbreviation))
                    row.price_unit_id = unit.id if unit is not None else None
                    row.stock_quantity = product.stock_quantity
                    row.weight = product.weight
                    row.brand_id = product.brand.id if product.brand is not None else None
                    row.category_id = product.category.id if product.category is not None else None
                    row.published = product.published
                    row.updated_at = max(now, row.updated_at) if row.updated_at else now
                    await session.flush()
                    saved_id = row.id
        except SQLAlchemyError as e:
            raise StoreError(f"save product failed: {e}", entity_id=product.id) from e

        saved = await self.get_product(saved_id)
        if saved is None:
            raise StoreError(f"saved product {saved_id} not readable", entity_id=saved_id)
        return saved

    # ================================================================
    # 택소노미 (시드 / 테스트용)
    # ================================================================

    async def add_unit(self, unit: Unit) -> Unit:
        await self._merge(UnitRow(id=unit.id, abbreviation=unit.abbreviation))
        return unit

    async def add_brand(self, name: str, parent_path: str = "/Brands") -> Brand:
        row = await self._insert(BrandRow(name=name, path=f"{parent_path}/{name}"))
        return _brand(row)

    async def add_category(
        self, name: str, parent: Category | None = None, parent_path: str = "/Categories"
    ) -> Category:
        base = parent.path if parent is not None else parent_path
        row = await self._insert(
            CategoryRow(
                name=name,
                path=f"{base}/{name}",
                parent_id=parent.id if parent is not None else None,
            )
        )
        return _category(row)

    async def _merge(self, row):
        try:
            async with self._sessions() as session:
                async with session.begin():
                    await session.merge(row)
        except SQLAlchemyError as e:
            raise StoreError(f"save {row.__tablename__} failed: {e}") from e

    async def _insert(self, row):
        try:
            async with self._sessions() as session:
                async with session.begin():
                    session.add(row)
                    await session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"insert {row.__tablename__} failed: {e}") from e
        return row
