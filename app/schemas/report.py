from pydantic import BaseModel, model_validator
from typing import Optional
from datetime import date, datetime


class DateRange(BaseModel):
    start_date: datetime
    end_date: datetime

    @model_validator(mode='after')
    def check_order(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class ProductStatsReport(BaseModel):
    total_products: int
    active_products: int
    inactive_products: int
    draft_products: int
    out_of_stock_products: int
    low_stock_products: int
    total_value: float
    average_price: float


class CategoryStatsItem(BaseModel):
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    product_count: int
    total_stock: int
    total_value: float


class TopProductItem(BaseModel):
    id: int
    name: str
    view_count: int
    category_name: Optional[str] = None


class LowStockItem(BaseModel):
    id: int
    name: str
    sku: str
    current_stock: int
    min_stock: int
    category_name: Optional[str] = None


class OutOfStockItem(BaseModel):
    id: int
    name: str
    sku: str
    last_stock_date: datetime
    category_name: Optional[str] = None


class ProductGrowthItem(BaseModel):
    date: date
    count: int


class InventoryValueItem(BaseModel):
    category_name: Optional[str] = None
    total_value: float
    product_count: int


class UserActivityItem(BaseModel):
    id: int
    name: str
    email: str
    last_login_at: Optional[datetime] = None
    products_created: int
    products_updated: int


class SystemHealthReport(BaseModel):
    database_status: str
    total_products: int
    total_categories: int
    total_users: int
    active_users: int
    system_uptime: float
