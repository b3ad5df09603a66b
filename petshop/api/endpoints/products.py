"""商品API（前台）"""

import math
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.deps import get_db
from petshop.core.errors import NotFoundError
from petshop.models.product import Product
from petshop.schemas.product import ProductListResponse, ProductResponse
from petshop.services.catalog import find_category, product_response, text_match

router = APIRouter()

SORTS = {
    "new": (Product.created_at.desc(), Product.id.desc()),
    "price_asc": (Product.price.asc(), Product.id.asc()),
    "price_desc": (Product.price.desc(), Product.id.desc()),
    "name": (Product.name.asc(), Product.id.asc()),
}


@router.get("", response_model=ProductListResponse)
async def list_products(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    per: int = Query(24),
    sort: str = Query("new"),
    q: Optional[str] = Query(None, description="关键字，至少 2 个字符"),
    cat: Optional[str] = Query(None, description="分类ID或 slug"),
) -> Any:
    """获取上架商品列表"""
    per = max(1, min(per, 60))
    conditions = [Product.active.is_(True)]
    if q and len(q.strip()) >= 2:
        conditions.append(text_match(q.strip()))
    if cat:
        category = await find_category(db, cat)
        if category is None:
            return ProductListResponse(items=[], page=page, per=per, total=0, total_pages=1)
        conditions.append(Product.category_id == category.id)

    total = (await db.execute(select(func.count(Product.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Product)
        .options(selectinload(Product.category))
        .where(*conditions)
        .order_by(*SORTS.get(sort, SORTS["new"]))
        .offset((page - 1) * per)
        .limit(per)
    )
    return ProductListResponse(
        items=[product_response(p) for p in result.scalars().all()],
        page=page,
        per=per,
        total=total,
        total_pages=max(1, math.ceil(total / per)),
    )


@router.get("/{slug_or_id}", response_model=ProductResponse)
async def get_product(
    *,
    db: AsyncSession = Depends(get_db),
    response: Response,
    slug_or_id: str,
) -> Any:
    """按 slug 或ID获取商品详情"""
    stmt = select(Product).options(selectinload(Product.category)).where(Product.active.is_(True))
    product = None
    if slug_or_id.isdigit():
        product = (await db.execute(stmt.where(Product.id == int(slug_or_id)))).scalar_one_or_none()
    if product is None:
        product = (await db.execute(stmt.where(Product.slug == slug_or_id))).scalar_one_or_none()
    if product is None:
        raise NotFoundError(message="商品不存在")
    response.headers["Cache-Control"] = "public, s-maxage=300, stale-while-revalidate=60"
    return product_response(product)
