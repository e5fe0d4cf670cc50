from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import bleach

from ..enums import OrderDirection, ProductStatus


# Tags allowed in product descriptions coming from the admin rich text editor
ALLOWED_TAGS = [
    'p', 'br', 'strong', 'b', 'em', 'i', 'u', 'ul', 'ol', 'li',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote', 'span',
    'div', 'a', 'img', 'table', 'tr', 'td', 'th', 'thead', 'tbody',
    'sub', 'sup', 'small', 'mark', 'del', 'ins'
]

ALLOWED_ATTRIBUTES = {
    'a': ['href', 'title', 'target'],
    'img': ['src', 'alt', 'title', 'width', 'height'],
    'td': ['colspan', 'rowspan'],
    'th': ['colspan', 'rowspan'],
    '*': ['class']
}

ALLOWED_PROTOCOLS = ['http', 'https', 'mailto']


def sanitize_html(value: Optional[str]) -> Optional[str]:
    """Strip disallowed markup and comments from rich text using bleach"""
    if not value:
        return value

    return bleach.clean(
        value,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )


class ProductBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    sku: str = Field(min_length=1, max_length=20)
    description: Optional[str] = Field(default=None, max_length=200)
    long_description: Optional[str] = None
    price: float = Field(ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    stock: int = Field(ge=0)
    min_stock: int = Field(default=0, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    length: Optional[float] = Field(default=None, ge=0)
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    color: Optional[str] = Field(default=None, max_length=7)
    material: Optional[str] = Field(default=None, max_length=50)
    brand: Optional[str] = Field(default=None, max_length=50)
    model: Optional[str] = Field(default=None, max_length=50)
    year: Optional[int] = None
    warranty: Optional[int] = Field(default=None, ge=0)
    tags: Optional[str] = None
    main_image: Optional[str] = Field(default=None, max_length=255)
    images: Optional[str] = None
    video: Optional[str] = Field(default=None, max_length=255)
    status: ProductStatus = ProductStatus.DRAFT
    is_featured: bool = False
    published_at: Optional[datetime] = None
    meta_title: Optional[str] = Field(default=None, max_length=100)
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    category_id: Optional[int] = None

    @field_validator('description', 'long_description', mode='before')
    @classmethod
    def sanitize_html_description(cls, v):
        return sanitize_html(v)

class ProductCreate(ProductBase):
    pass

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    sku: Optional[str] = Field(default=None, min_length=1, max_length=20)
    description: Optional[str] = Field(default=None, max_length=200)
    long_description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)
    length: Optional[float] = Field(default=None, ge=0)
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    color: Optional[str] = Field(default=None, max_length=7)
    material: Optional[str] = Field(default=None, max_length=50)
    brand: Optional[str] = Field(default=None, max_length=50)
    model: Optional[str] = Field(default=None, max_length=50)
    year: Optional[int] = None
    warranty: Optional[int] = Field(default=None, ge=0)
    tags: Optional[str] = None
    main_image: Optional[str] = Field(default=None, max_length=255)
    images: Optional[str] = None
    video: Optional[str] = Field(default=None, max_length=255)
    status: Optional[ProductStatus] = None
    is_featured: Optional[bool] = None
    published_at: Optional[datetime] = None
    meta_title: Optional[str] = Field(default=None, max_length=100)
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    category_id: Optional[int] = None

    @field_validator('description', 'long_description', mode='before')
    @classmethod
    def sanitize_html_description(cls, v):
        return sanitize_html(v)


class ProductCategorySummary(BaseModel):
    id: int
    name: str


class ProductResponse(BaseModel):
    id: int
    name: str
    sku: str
    description: Optional[str] = None
    long_description: Optional[str] = None
    price: float
    sale_price: Optional[float] = None
    stock: int
    min_stock: int
    weight: Optional[float] = None
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    color: Optional[str] = None
    material: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    warranty: Optional[int] = None
    tags: Optional[str] = None
    main_image: Optional[str] = None
    images: Optional[str] = None
    video: Optional[str] = None
    status: ProductStatus
    is_featured: bool
    published_at: Optional[datetime] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    view_count: int
    category_id: Optional[int] = None
    category: Optional[ProductCategorySummary] = None
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    # Derived on read
    is_in_stock: bool
    is_low_stock: bool
    is_on_sale: bool
    current_price: float
    discount_percentage: int

    @model_validator(mode='before')
    @classmethod
    def add_derived_fields(cls, data):
        """Flatten a Product row and attach the values computed from it"""
        if data is None:
            raise ValueError("Product data cannot be None")

        if isinstance(data, dict):
            return data

        # Only attributes already loaded on the instance are read, so no lazy load is triggered
        data_dict = {
            key: value for key, value in data.__dict__.items() if not key.startswith('_')
        }

        category = data_dict.pop('category', None)
        if category is not None:
            data_dict['category'] = {'id': category.id, 'name': category.name}

        data_dict.update(
            is_in_stock=data.is_in_stock(),
            is_low_stock=data.is_low_stock(),
            is_on_sale=data.is_on_sale(),
            current_price=data.get_current_price(),
            discount_percentage=data.get_discount_percentage(),
        )
        return data_dict

    class Config:
        from_attributes = True


class ProductFilters(BaseModel):
    search: Optional[str] = None
    category_id: Optional[int] = None
    status: Optional[ProductStatus] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock: Optional[bool] = None
    is_featured: Optional[bool] = None
    brand: Optional[str] = None
    tags: Optional[str] = None


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)
    order_by: str = "created_at"
    order_direction: OrderDirection = OrderDirection.DESC


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ProductListResponse(BaseModel):
    products: List[ProductResponse]
    pagination: PaginationMeta


class ProductStatsResponse(BaseModel):
    total: int
    active: int
    out_of_stock: int
    low_stock: int
