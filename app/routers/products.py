from fastapi import APIRouter, Depends, Path, Query, status
from typing import List, Optional

from ..core.config import Config
from ..core.dependencies import get_current_user, get_product_service, require_admin, require_editor
from ..enums import OrderDirection, ProductStatus
from ..models import User
from ..schemas.product import (
    PaginationParams,
    ProductCreate,
    ProductFilters,
    ProductListResponse,
    ProductResponse,
    ProductStatsResponse,
    ProductUpdate,
)
from ..services import ProductService


router = APIRouter()
admins_only = Depends(require_admin)
editors_only = Depends(require_editor)
authenticated = Depends(get_current_user)


@router.post('', dependencies=[editors_only], response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    service: ProductService = Depends(get_product_service),
    current_user: User = Depends(get_current_user),
):
    return await service.create(data, current_user.id)


@router.get('', response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(Config.DEFAULT_PAGE_SIZE, ge=1, le=Config.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, description="Matches name, description or SKU"),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    product_status: Optional[ProductStatus] = Query(None, alias="status"),
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    is_featured: Optional[bool] = Query(None, alias="isFeatured"),
    brand: Optional[str] = Query(None),
    tags: Optional[str] = Query(None),
    order_by: str = Query("created_at", alias="orderBy"),
    order_direction: OrderDirection = Query(OrderDirection.DESC, alias="orderDirection"),
    service: ProductService = Depends(get_product_service),
):
    filters = ProductFilters(
        search=search,
        category_id=category_id,
        status=product_status,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        is_featured=is_featured,
        brand=brand,
        tags=tags,
    )
    pagination = PaginationParams(
        page=page,
        limit=limit,
        order_by=order_by,
        order_direction=order_direction,
    )
    return await service.find_all(filters, pagination)


@router.get('/stats', dependencies=[authenticated], response_model=ProductStatsResponse)
async def get_product_stats(service: ProductService = Depends(get_product_service)):
    return await service.stats()


@router.get('/low-stock', dependencies=[authenticated], response_model=List[ProductResponse])
async def get_low_stock_products(
    limit: int = Query(10, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ProductService = Depends(get_product_service),
):
    return await service.get_low_stock(limit)


@router.get('/out-of-stock', dependencies=[authenticated], response_model=List[ProductResponse])
async def get_out_of_stock_products(
    limit: int = Query(10, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ProductService = Depends(get_product_service),
):
    return await service.get_out_of_stock(limit)


@router.get('/featured', response_model=List[ProductResponse])
async def get_featured_products(
    limit: int = Query(10, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ProductService = Depends(get_product_service),
):
    return await service.get_featured(limit)


@router.get('/category/{category_id}', response_model=List[ProductResponse])
async def get_products_by_category(
    category_id: int = Path(..., description='ID of the category'),
    limit: int = Query(20, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ProductService = Depends(get_product_service),
):
    return await service.get_by_category(category_id, limit)


@router.get('/search', response_model=List[ProductResponse])
async def search_products(
    q: str = Query(..., min_length=1, description="Search term"),
    limit: int = Query(20, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ProductService = Depends(get_product_service),
):
    return await service.search(q, limit)


@router.get('/{id}', response_model=ProductResponse)
async def get_product(
    id: int = Path(..., description='ID of the product'),
    service: ProductService = Depends(get_product_service),
):
    """
    Fetch a product. Every successful read increments its view count.
    """
    return await service.find_one(id)


@router.patch('/{id}', dependencies=[editors_only], response_model=ProductResponse)
async def update_product(
    data: ProductUpdate,
    id: int = Path(..., description='ID of the product'),
    service: ProductService = Depends(get_product_service),
    current_user: User = Depends(get_current_user),
):
    return await service.update(id, data, current_user.id)


@router.delete('/{id}', dependencies=[admins_only], status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    id: int = Path(..., description='ID of the product'),
    service: ProductService = Depends(get_product_service),
):
    await service.remove(id)
