from datetime import datetime
from fastapi import APIRouter, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from typing import List, Optional

from ..core.config import Config
from ..core.dependencies import get_report_service, require_admin, require_editor
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
from ..services import ReportService


router = APIRouter()
admins_only = Depends(require_admin)
editors_only = Depends(require_editor)


def build_date_range(start_date: datetime, end_date: datetime) -> DateRange:
    try:
        return DateRange(start_date=start_date, end_date=end_date)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


async def optional_date_range(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
) -> Optional[DateRange]:
    """ The range only applies when both bounds are given. """
    if start_date is None or end_date is None:
        return None
    return build_date_range(start_date, end_date)


async def required_date_range(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
) -> DateRange:
    return build_date_range(start_date, end_date)


@router.get('/products/stats', dependencies=[editors_only], response_model=ProductStatsReport)
async def get_product_stats_report(
    date_range: Optional[DateRange] = Depends(optional_date_range),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_product_stats(date_range)


@router.get('/categories/stats', dependencies=[editors_only], response_model=List[CategoryStatsItem])
async def get_category_stats_report(
    date_range: Optional[DateRange] = Depends(optional_date_range),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_category_stats(date_range)


@router.get('/products/top', dependencies=[editors_only], response_model=List[TopProductItem])
async def get_top_products_report(
    limit: int = Query(10, ge=1, le=Config.MAX_PAGE_SIZE),
    date_range: Optional[DateRange] = Depends(optional_date_range),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_top_products(limit, date_range)


@router.get('/inventory/low-stock', dependencies=[editors_only], response_model=List[LowStockItem])
async def get_low_stock_report(
    limit: int = Query(20, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_low_stock_report(limit)


@router.get('/inventory/out-of-stock', dependencies=[editors_only], response_model=List[OutOfStockItem])
async def get_out_of_stock_report(
    limit: int = Query(20, ge=1, le=Config.MAX_PAGE_SIZE),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_out_of_stock_report(limit)


@router.get('/products/growth', dependencies=[editors_only], response_model=List[ProductGrowthItem])
async def get_product_growth_report(
    date_range: DateRange = Depends(required_date_range),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_product_growth(date_range)


@router.get('/inventory/value', dependencies=[editors_only], response_model=List[InventoryValueItem])
async def get_inventory_value_report(service: ReportService = Depends(get_report_service)):
    return await service.get_inventory_value()


@router.get('/users/activity', dependencies=[admins_only], response_model=List[UserActivityItem])
async def get_user_activity_report(
    date_range: Optional[DateRange] = Depends(optional_date_range),
    service: ReportService = Depends(get_report_service),
):
    return await service.get_user_activity(date_range)


@router.get('/system/health', dependencies=[admins_only], response_model=SystemHealthReport)
async def get_system_health_report(service: ReportService = Depends(get_report_service)):
    return await service.get_system_health()
