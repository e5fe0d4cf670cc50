import math
import re
from typing import List, Optional

from sqlalchemy import and_, asc, desc, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from .. import exceptions
from ..core.logger import setup_logger
from ..enums import OrderDirection, ProductStatus
from ..models import Category, Product
from ..schemas.product import (
    PaginationMeta,
    PaginationParams,
    ProductCreate,
    ProductFilters,
    ProductListResponse,
    ProductResponse,
    ProductStatsResponse,
    ProductUpdate,
)


logger = setup_logger(__name__)

DEFAULT_ORDER_BY = "created_at"


def to_snake_case(name: str) -> str:
    """ ``createdAt`` -> ``created_at``; snake_case input is returned unchanged. """
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def search_clause(term: str):
    pattern = f"%{term}%"
    return or_(
        Product.name.ilike(pattern),
        Product.description.ilike(pattern),
        Product.sku.ilike(pattern),
    )


class ProductService:

    def __init__(self, db: AsyncSession):
        self.db = db


    async def _load(self, product_id: int) -> Product:
        """ Fetches a product with its category, refreshing any stale copy in the session. """
        stmt = (
            select(Product)
            .options(selectinload(Product.category))
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        product = (await self.db.execute(stmt)).scalars().first()

        if not product:
            raise exceptions.ProductNotFoundException(f"Product with ID {product_id} not found")

        return product


    async def check_sku_exists(self, sku: str, product_id: Optional[int] = None) -> bool:
        query = select(Product.id).where(Product.sku == sku)

        # If updating existing product, exclude current product from check
        if product_id is not None:
            query = query.where(Product.id != product_id)

        return (await self.db.execute(query)).first() is not None


    async def check_category_exists(self, category_id: int) -> None:
        if not await self.db.get(Category, category_id):
            raise exceptions.CategoryNotFoundException(f"Category with ID {category_id} not found")


    async def create(self, data: ProductCreate, actor_id: Optional[int] = None) -> Product:
        if await self.check_sku_exists(data.sku):
            logger.warning(f"Rejected product create: SKU {data.sku} already exists")
            raise exceptions.SkuExistsException(f"Product with SKU {data.sku} already exists")

        if data.category_id is not None:
            await self.check_category_exists(data.category_id)

        product = Product(
            **data.model_dump(),
            created_by_id=actor_id,
            updated_by_id=actor_id,
        )

        try:
            self.db.add(product)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise exceptions.SkuExistsException(f"Product with SKU {data.sku} already exists")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Created product {product.id} (SKU {product.sku}) by user {actor_id}")
        return await self._load(product.id)


    def _apply_filters(self, query, filters: ProductFilters):
        conditions = []

        if filters.search:
            conditions.append(search_clause(filters.search))
        if filters.category_id is not None:
            conditions.append(Product.category_id == filters.category_id)
        if filters.status is not None:
            conditions.append(Product.status == filters.status)
        if filters.min_price is not None:
            conditions.append(Product.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Product.price <= filters.max_price)
        if filters.in_stock is not None:
            conditions.append(Product.stock > 0 if filters.in_stock else Product.stock == 0)
        if filters.is_featured is not None:
            conditions.append(Product.is_featured == filters.is_featured)
        if filters.brand:
            conditions.append(Product.brand.ilike(f"%{filters.brand}%"))
        if filters.tags:
            conditions.append(Product.tags.ilike(f"%{filters.tags}%"))

        if conditions:
            query = query.where(and_(*conditions))

        return query


    async def find_all(self, filters: ProductFilters, pagination: PaginationParams) -> ProductListResponse:
        """
        Filters, sorts and paginates products.

        Unknown sort columns fall back to ``created_at``. Rows with equal sort
        values are ordered by id so pages never overlap.
        """
        count_query = self._apply_filters(select(func.count()).select_from(Product), filters)
        total = await self.db.scalar(count_query) or 0

        order_by = to_snake_case(pagination.order_by or DEFAULT_ORDER_BY)
        if order_by not in Product.__table__.columns:
            order_by = DEFAULT_ORDER_BY

        direction = desc if pagination.order_direction == OrderDirection.DESC else asc
        column = Product.__table__.columns[order_by]

        query = (
            self._apply_filters(select(Product).options(selectinload(Product.category)), filters)
            .order_by(direction(column), direction(Product.id))
            .offset((pagination.page - 1) * pagination.limit)
            .limit(pagination.limit)
        )
        products = (await self.db.execute(query)).scalars().all()

        total_pages = math.ceil(total / pagination.limit) if total else 0

        return ProductListResponse(
            products=[ProductResponse.model_validate(product) for product in products],
            pagination=PaginationMeta(
                page=pagination.page,
                limit=pagination.limit,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
            ),
        )


    async def find_one(self, product_id: int) -> Product:
        """
        Returns the product and counts the read as a view.
        """
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            # updated_at is pinned so a view is not recorded as a modification
            .values(view_count=Product.view_count + 1, updated_at=Product.updated_at)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            raise exceptions.ProductNotFoundException(f"Product with ID {product_id} not found")

        await self.db.commit()
        return await self._load(product_id)


    async def update(self, product_id: int, data: ProductUpdate, actor_id: Optional[int] = None) -> Product:
        product = await self._load(product_id)

        update_data = data.model_dump(exclude_unset=True)

        # columns that cannot hold null
        for field in ("name", "sku", "price", "stock", "min_stock", "status", "is_featured"):
            if field in update_data and update_data[field] is None:
                update_data.pop(field)

        if update_data.get("category_id") is not None:
            await self.check_category_exists(update_data["category_id"])

        if "sku" in update_data and update_data["sku"] != product.sku:
            if await self.check_sku_exists(update_data["sku"], product_id):
                logger.warning(f"Rejected update of product {product_id}: SKU {update_data['sku']} already exists")
                raise exceptions.SkuExistsException(f"Product with SKU {update_data['sku']} already exists")

        try:
            for field, value in update_data.items():
                setattr(product, field, value)

            product.updated_by_id = actor_id
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise exceptions.SkuExistsException(f"Product with SKU {update_data.get('sku')} already exists")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Updated product {product_id} by user {actor_id}: {sorted(update_data)}")
        return await self._load(product_id)


    async def remove(self, product_id: int) -> None:
        product = await self._load(product_id)

        try:
            await self.db.delete(product)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Deleted product {product_id}")


    async def _list(self, query, limit: int) -> List[Product]:
        result = await self.db.execute(query.options(selectinload(Product.category)).limit(limit))
        return result.scalars().all()


    async def get_low_stock(self, limit: int = 10) -> List[Product]:
        query = (
            select(Product)
            .where(Product.stock <= Product.min_stock, Product.stock > 0)
            .order_by(Product.stock.asc(), Product.id)
        )
        return await self._list(query, limit)


    async def get_out_of_stock(self, limit: int = 10) -> List[Product]:
        query = (
            select(Product)
            .where(Product.stock == 0)
            .order_by(Product.updated_at.desc(), Product.id.desc())
        )
        return await self._list(query, limit)


    async def get_featured(self, limit: int = 10) -> List[Product]:
        query = (
            select(Product)
            .where(Product.is_featured.is_(True), Product.status == ProductStatus.ACTIVE)
            .order_by(Product.updated_at.desc(), Product.id.desc())
        )
        return await self._list(query, limit)


    async def get_by_category(self, category_id: int, limit: int = 20) -> List[Product]:
        query = (
            select(Product)
            .where(Product.category_id == category_id, Product.status == ProductStatus.ACTIVE)
            .order_by(Product.created_at.desc(), Product.id.desc())
        )
        return await self._list(query, limit)


    async def search(self, term: str, limit: int = 20) -> List[Product]:
        query = (
            select(Product)
            .where(search_clause(term), Product.status == ProductStatus.ACTIVE)
            .order_by(Product.view_count.desc(), Product.id)
        )
        return await self._list(query, limit)


    async def stats(self) -> ProductStatsResponse:
        total = await self.db.scalar(select(func.count(Product.id))) or 0
        active = await self.db.scalar(
            select(func.count(Product.id)).where(Product.status == ProductStatus.ACTIVE)
        ) or 0
        out_of_stock = await self.db.scalar(
            select(func.count(Product.id)).where(Product.stock == 0)
        ) or 0
        low_stock = await self.db.scalar(
            select(func.count(Product.id)).where(Product.stock <= Product.min_stock, Product.stock > 0)
        ) or 0

        return ProductStatsResponse(total=total, active=active, out_of_stock=out_of_stock, low_stock=low_stock)
