from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.deps import get_db
from petshop.models.product import Product
from petshop.schemas.product import ProductSearchResponse
from petshop.services.catalog import product_brief, text_match

router = APIRouter()

SEARCH_LIMIT = 8


@router.get("", response_model=ProductSearchResponse)
async def search_products(
    *,
    db: AsyncSession = Depends(get_db),
    q: Optional[str] = Query(None),
) -> Any:
    """快速搜索，少于 2 个字符返回空"""
    q = (q or "").strip()
    if len(q) < 2:
        return ProductSearchResponse(items=[])
    result = await db.execute(
        select(Product)
        .where(Product.active.is_(True), text_match(q))
        .order_by(Product.name)
        .limit(SEARCH_LIMIT)
    )
    return ProductSearchResponse(items=[product_brief(p) for p in result.scalars().all()])
