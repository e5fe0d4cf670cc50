from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    image: Optional[str] = Field(default=None, max_length=255)
    color: Optional[str] = Field(default=None, max_length=7, examples=["#FF5733"])
    is_active: bool = True
    parent_id: Optional[int] = None

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    """ Partial update; sending ``parent_id: null`` explicitly moves the category to root level. """
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    image: Optional[str] = Field(default=None, max_length=255)
    color: Optional[str] = Field(default=None, max_length=7)
    is_active: Optional[bool] = None
    parent_id: Optional[int] = None

class CategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    color: Optional[str] = None
    is_active: bool
    parent_id: Optional[int] = None
    is_root: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class CategoryDetailResponse(CategoryResponse):
    parent: Optional[CategoryResponse] = None
    children: List[CategoryResponse] = []
    is_leaf: bool = True
    level: int = 0

    class Config:
        from_attributes = True

class CategoryTreeResponse(CategoryResponse):
    children: List["CategoryTreeResponse"] = []

class CategoryStatsResponse(BaseModel):
    total: int
    root: int
    with_products: int
