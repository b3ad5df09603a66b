"""后台 - 商品分类管理"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.deps import get_db, require_permission
from petshop.core.errors import BadRequestError, NotFoundError
from petshop.models.category import Category
from petshop.models.product import Product
from petshop.models.user import User
from petshop.schemas.category import (
    CategoryBrief, CategoryCreate, CategoryPage, CategoryResponse, CategorySearchResponse, CategoryUpdate,
)
from petshop.schemas.common import OkResponse
from petshop.services.audit import log_audit
from petshop.services.catalog import ensure_slug_free, slug_or_default, slugify

logger = logging.getLogger(__name__)

router = APIRouter()


def _products_count():
    return (
        select(func.count(Product.id))
        .where(Product.category_id == Category.id)
        .correlate(Category)
        .scalar_subquery()
    )


def _build_response(cat: Category, products_count: int = 0) -> CategoryResponse:
    """构建响应"""
    return CategoryResponse(
        id=cat.id,
        name=cat.name,
        slug=cat.slug,
        image_url=cat.image_url,
        active=cat.active,
        products_count=products_count or 0,
        created_at=cat.created_at,
    )


async def _get_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError(message="分类不存在")
    return category


@router.get("", response_model=CategoryPage)
async def list_categories(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("category:read")),
    page: int = Query(1, ge=1),
    limit: int = Query(50),
    q: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
) -> Any:
    """获取分类列表"""
    limit = max(1, min(limit, 200))
    conditions = []
    if q:
        conditions.append(Category.name.ilike(f"%{q}%"))
    if active is not None:
        conditions.append(Category.active == active)

    total = (await db.execute(select(func.count(Category.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Category, _products_count())
        .where(*conditions)
        .order_by(Category.name, Category.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return CategoryPage(
        items=[_build_response(cat, count) for cat, count in result.all()],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/search", response_model=CategorySearchResponse)
async def search_categories(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("category:read")),
    q: Optional[str] = Query(None),
    limit: int = Query(10),
) -> Any:
    limit = max(1, min(limit, 50))
    stmt = select(Category).order_by(Category.name).limit(limit)
    if q:
        stmt = stmt.where(Category.name.ilike(f"%{q.strip()}%") | Category.slug.ilike(f"%{q.strip()}%"))
    result = await db.execute(stmt)
    return CategorySearchResponse(items=[CategoryBrief.model_validate(c) for c in result.scalars().all()])


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("category:read")),
    category_id: int,
) -> Any:
    result = await db.execute(
        select(Category, _products_count()).where(Category.id == category_id)
    )
    row = result.first()
    if row is None:
        raise NotFoundError(message="分类不存在")
    return _build_response(*row)


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("category:create")),
    category_in: CategoryCreate,
) -> Any:
    """创建分类，slug 不传则由名称生成"""
    slug = await ensure_slug_free(db, Category, slug_or_default(category_in.slug or category_in.name, "category"))
    category = Category(
        name=category_in.name.strip(),
        slug=slug,
        image_url=category_in.image_url,
        active=category_in.active,
    )
    db.add(category)
    await db.commit()
    logger.info(f"✅ 创建分类 {category.slug}")
    await log_audit(db, "category.create", "Category", category.id, {"name": category.name}, user_id=actor.id)
    return _build_response(category)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("category:update")),
    category_id: int,
    category_in: CategoryUpdate,
) -> Any:
    """更新分类"""
    category = await _get_category(db, category_id)
    update_data = category_in.model_dump(exclude_unset=True)

    if "slug" in update_data or "name" in update_data:
        new_slug = slugify(update_data.get("slug") or update_data.get("name") or category.name) or category.slug
        if new_slug != category.slug:
            update_data["slug"] = await ensure_slug_free(db, Category, new_slug, exclude_id=category.id)
        else:
            update_data.pop("slug", None)
    for field, value in update_data.items():
        if value is not None or field == "image_url":
            setattr(category, field, value)

    await db.commit()
    count = (await db.execute(select(func.count(Product.id)).where(Product.category_id == category.id))).scalar()
    await log_audit(db, "category.update", "Category", category.id, {"fields": sorted(update_data)}, user_id=actor.id)
    return _build_response(category, count)


@router.delete("/{category_id}", response_model=OkResponse)
async def delete_category(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("category:delete")),
    category_id: int,
) -> Any:
    """删除分类，仍有商品时拒绝"""
    category = await _get_category(db, category_id)
    count = (await db.execute(select(func.count(Product.id)).where(Product.category_id == category.id))).scalar()
    if count:
        raise BadRequestError("CATEGORY_NOT_EMPTY", f"该分类下还有 {count} 个商品，无法删除")

    name = category.name
    await db.delete(category)
    await db.commit()
    logger.info(f"🗑️ 删除分类 {name}")
    await log_audit(db, "category.delete", "Category", category_id, {"name": name}, user_id=actor.id)
    return OkResponse()
