import time
from typing import List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..enums import ProductStatus
from ..models import Category, Product, User
from ..schemas.report import (
    CategoryStatsItem,
    DateRange,
    InventoryValueItem,
    LowStockItem,
    OutOfStockItem,
    ProductGrowthItem,
    ProductStatsReport,
    SystemHealthReport,
    TopProductItem,
    UserActivityItem,
)


# Reference point for the uptime figure in the health report
PROCESS_STARTED_AT = time.monotonic()


def in_range(column, date_range: Optional[DateRange]):
    """ Inclusive range condition, or None when no range was given. """
    if date_range is None:
        return None
    return column.between(date_range.start_date, date_range.end_date)


def stock_value():
    return func.coalesce(func.sum(Product.price * Product.stock), 0)


class ReportService:
    """
    Read-only aggregate queries for the reporting endpoints.
    """

    def __init__(self, db: AsyncSession):
        self.db = db


    async def get_product_stats(self, date_range: Optional[DateRange] = None) -> ProductStatsReport:
        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        query = select(
            func.count(Product.id),
            count_where(Product.status == ProductStatus.ACTIVE),
            count_where(Product.status == ProductStatus.INACTIVE),
            count_where(Product.status == ProductStatus.DRAFT),
            count_where(Product.stock == 0),
            count_where((Product.stock <= Product.min_stock) & (Product.stock > 0)),
            stock_value(),
            func.coalesce(func.avg(Product.price), 0),
        )

        condition = in_range(Product.created_at, date_range)
        if condition is not None:
            query = query.where(condition)

        total, active, inactive, draft, out_of_stock, low_stock, total_value, average_price = (
            await self.db.execute(query)
        ).one()

        return ProductStatsReport(
            total_products=total,
            active_products=active,
            inactive_products=inactive,
            draft_products=draft,
            out_of_stock_products=out_of_stock,
            low_stock_products=low_stock,
            total_value=float(total_value),
            average_price=round(float(average_price), 2),
        )


    async def get_category_stats(self, date_range: Optional[DateRange] = None) -> List[CategoryStatsItem]:
        """
        Product counts and stock per category. Products without a category are
        reported under a row whose category_id is None.
        """
        query = (
            select(
                Product.category_id,
                Category.name,
                func.count(Product.id).label("product_count"),
                func.coalesce(func.sum(Product.stock), 0),
                stock_value(),
            )
            .select_from(Product)
            .outerjoin(Category, Category.id == Product.category_id)
            .group_by(Product.category_id, Category.name)
            .order_by(func.count(Product.id).desc(), Product.category_id)
        )

        condition = in_range(Product.created_at, date_range)
        if condition is not None:
            query = query.where(condition)

        rows = (await self.db.execute(query)).all()
        return [
            CategoryStatsItem(
                category_id=category_id,
                category_name=category_name,
                product_count=product_count,
                total_stock=total_stock,
                total_value=float(total_value),
            )
            for category_id, category_name, product_count, total_stock, total_value in rows
        ]


    async def get_top_products(self, limit: int = 10, date_range: Optional[DateRange] = None) -> List[TopProductItem]:
        query = (
            select(Product.id, Product.name, Product.view_count, Category.name.label("category_name"))
            .select_from(Product)
            .outerjoin(Category, Category.id == Product.category_id)
            .order_by(Product.view_count.desc(), Product.id)
            .limit(limit)
        )

        condition = in_range(Product.created_at, date_range)
        if condition is not None:
            query = query.where(condition)

        rows = (await self.db.execute(query)).mappings().all()
        return [TopProductItem(**row) for row in rows]


    async def get_low_stock_report(self, limit: int = 20) -> List[LowStockItem]:
        query = (
            select(
                Product.id,
                Product.name,
                Product.sku,
                Product.stock.label("current_stock"),
                Product.min_stock,
                Category.name.label("category_name"),
            )
            .select_from(Product)
            .outerjoin(Category, Category.id == Product.category_id)
            .where(Product.stock <= Product.min_stock, Product.stock > 0)
            .order_by(Product.stock.asc(), Product.id)
            .limit(limit)
        )

        rows = (await self.db.execute(query)).mappings().all()
        return [LowStockItem(**row) for row in rows]


    async def get_out_of_stock_report(self, limit: int = 20) -> List[OutOfStockItem]:
        query = (
            select(
                Product.id,
                Product.name,
                Product.sku,
                Product.updated_at.label("last_stock_date"),
                Category.name.label("category_name"),
            )
            .select_from(Product)
            .outerjoin(Category, Category.id == Product.category_id)
            .where(Product.stock == 0)
            .order_by(Product.updated_at.desc(), Product.id.desc())
            .limit(limit)
        )

        rows = (await self.db.execute(query)).mappings().all()
        return [OutOfStockItem(**row) for row in rows]


    async def get_product_growth(self, date_range: DateRange) -> List[ProductGrowthItem]:
        """ Products created per day inside the range, oldest day first. """
        day = func.date(Product.created_at)

        query = (
            select(day.label("date"), func.count(Product.id).label("count"))
            .where(in_range(Product.created_at, date_range))
            .group_by(day)
            .order_by(day)
        )

        rows = (await self.db.execute(query)).mappings().all()
        return [ProductGrowthItem(**row) for row in rows]


    async def get_inventory_value(self) -> List[InventoryValueItem]:
        total_value = stock_value()

        query = (
            select(
                Category.name.label("category_name"),
                total_value.label("total_value"),
                func.count(Product.id).label("product_count"),
            )
            .select_from(Product)
            .outerjoin(Category, Category.id == Product.category_id)
            .group_by(Product.category_id, Category.name)
            .order_by(total_value.desc(), Product.category_id)
        )

        rows = (await self.db.execute(query)).all()
        return [
            InventoryValueItem(category_name=name, total_value=float(value), product_count=count)
            for name, value, count in rows
        ]


    async def get_user_activity(self, date_range: Optional[DateRange] = None) -> List[UserActivityItem]:
        products_created = (
            select(func.count(Product.id))
            .where(Product.created_by_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        products_updated = (
            select(func.count(Product.id))
            .where(Product.updated_by_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )

        query = (
            select(
                User.id,
                User.name,
                User.email,
                User.last_login_at,
                products_created.label("products_created"),
                products_updated.label("products_updated"),
            )
            .order_by(User.last_login_at.desc().nulls_last(), User.id)
        )

        condition = in_range(User.last_login_at, date_range)
        if condition is not None:
            query = query.where(condition)

        rows = (await self.db.execute(query)).mappings().all()
        return [UserActivityItem(**row) for row in rows]


    async def get_system_health(self) -> SystemHealthReport:
        total_products = await self.db.scalar(select(func.count(Product.id))) or 0
        total_categories = await self.db.scalar(select(func.count(Category.id))) or 0
        total_users = await self.db.scalar(select(func.count(User.id))) or 0
        active_users = await self.db.scalar(
            select(func.count(User.id)).where(User.is_active.is_(True))
        ) or 0

        return SystemHealthReport(
            database_status="OK",
            total_products=total_products,
            total_categories=total_categories,
            total_users=total_users,
            active_users=active_users,
            system_uptime=round(time.monotonic() - PROCESS_STARTED_AT, 3),
        )
