"""
Category API endpoints.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ..core.caller import Caller
from ..models.article import Category
from ..services.category_service import CategoryService
from .auth import require_admin

router = APIRouter()


class CreateCategoryRequest(BaseModel):
    name: str
    description: Optional[str] = None


class UpdateCategoryRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str]
    created_at: Optional[datetime]
    article_count: int = 0

    class Config:
        from_attributes = True


def _category(category: Category, count: int) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        created_at=category.created_at,
        article_count=count,
    )


@router.get("/", response_model=List[CategoryResponse])
async def list_categories(category_service: CategoryService = Depends()):
    """Categories with their published article counts."""
    rows = await category_service.list_categories()
    return [_category(category, count) for category, count in rows]


@router.get("/{slug}", response_model=CategoryResponse)
async def get_category(slug: str, category_service: CategoryService = Depends()):
    category, count = await category_service.get_by_slug(slug)
    return _category(category, count)


@router.post("/", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    caller: Caller = Depends(require_admin),
    category_service: CategoryService = Depends()
):
    return await category_service.create(caller, request.name, request.description)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    request: UpdateCategoryRequest,
    caller: Caller = Depends(require_admin),
    category_service: CategoryService = Depends()
):
    category = await category_service.update(caller, category_id, **request.model_dump(exclude_unset=True))
    _, count = await category_service.get_by_slug(category.slug)
    return _category(category, count)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    caller: Caller = Depends(require_admin),
    category_service: CategoryService = Depends()
):
    """Delete a category that no article uses."""
    await category_service.delete(caller, category_id)
    return {"message": "Category deleted successfully"}
