from fastapi import APIRouter, Depends, Path, status
from typing import List

from ..core.dependencies import get_category_service, get_current_user, require_admin, require_editor
from ..models import Category
from ..schemas.category import (
    CategoryCreate,
    CategoryDetailResponse,
    CategoryResponse,
    CategoryStatsResponse,
    CategoryTreeResponse,
    CategoryUpdate,
)
from ..services import CategoryService


router = APIRouter()
admins_only = Depends(require_admin)
editors_only = Depends(require_editor)
authenticated = Depends(get_current_user)


async def to_detail(category: Category, service: CategoryService) -> CategoryDetailResponse:
    response = CategoryDetailResponse.model_validate(category)
    response.level = await service.get_level(category.id)
    response.is_leaf = await service.is_leaf(category.id)
    return response


@router.post('', dependencies=[editors_only], response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    service: CategoryService = Depends(get_category_service),
):
    return await service.create(data)


@router.get('', response_model=List[CategoryTreeResponse])
async def list_category_trees(service: CategoryService = Depends(get_category_service)):
    """
    Every root category with its full subtree nested under ``children``.
    """
    return await service.list_trees()


@router.get('/roots', response_model=List[CategoryResponse])
async def list_root_categories(service: CategoryService = Depends(get_category_service)):
    return await service.list_roots()


@router.get('/stats', dependencies=[authenticated], response_model=CategoryStatsResponse)
async def get_category_stats(service: CategoryService = Depends(get_category_service)):
    return await service.stats()


@router.get('/{id}', response_model=CategoryDetailResponse)
async def get_category(
    id: int = Path(..., description='ID of the category'),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.get(id)
    return await to_detail(category, service)


@router.get('/{id}/children', response_model=List[CategoryResponse])
async def get_category_descendants(
    id: int = Path(..., description='ID of the category'),
    service: CategoryService = Depends(get_category_service),
):
    """
    The category followed by all of its descendants, nearest first.
    """
    return await service.descendants(id)


@router.get('/{id}/parents', response_model=List[CategoryResponse])
async def get_category_ancestors(
    id: int = Path(..., description='ID of the category'),
    service: CategoryService = Depends(get_category_service),
):
    """
    The ancestor chain from the root down to the category itself.
    """
    return await service.ancestors(id)


@router.patch('/{id}', dependencies=[editors_only], response_model=CategoryDetailResponse)
async def update_category(
    data: CategoryUpdate,
    id: int = Path(..., description='ID of the category'),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.update(id, data)
    return await to_detail(category, service)


@router.patch('/{id}/move/{new_parent_id}', dependencies=[editors_only], response_model=CategoryDetailResponse)
async def move_category(
    id: int = Path(..., description='ID of the category to move'),
    new_parent_id: int = Path(..., description='ID of the new parent category'),
    service: CategoryService = Depends(get_category_service),
):
    category = await service.move(id, new_parent_id)
    return await to_detail(category, service)


@router.delete('/{id}', dependencies=[admins_only], status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    id: int = Path(..., description='ID of the category'),
    service: CategoryService = Depends(get_category_service),
):
    await service.remove(id)
