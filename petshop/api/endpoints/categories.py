"""商品分类API（前台）"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.deps import get_db
from petshop.models.category import Category
from petshop.schemas.category import CategoryBrief, CategoryListResponse

router = APIRouter()


@router.get("", response_model=CategoryListResponse)
async def list_categories(*, db: AsyncSession = Depends(get_db)) -> Any:
    """启用的分类，按名称排序"""
    result = await db.execute(
        select(Category).where(Category.active.is_(True)).order_by(Category.name)
    )
    return CategoryListResponse(
        categories=[CategoryBrief.model_validate(c) for c in result.scalars().all()]
    )
