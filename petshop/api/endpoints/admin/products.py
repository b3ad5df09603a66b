"""后台 - 商品管理"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.deps import get_db, require_permission
from petshop.core.errors import BadRequestError, NotFoundError
from petshop.models.category import Category
from petshop.models.product import Product
from petshop.models.user import User
from petshop.schemas.common import OkResponse
from petshop.schemas.product import ProductCreate, ProductPage, ProductResponse, ProductSearchResponse, ProductUpdate
from petshop.services.audit import log_audit
from petshop.services.catalog import (
    ensure_slug_free,
    find_category,
    product_brief,
    product_response,
    slug_or_default,
    slugify,
)
from petshop.services.uploads import delete_if_local

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product)
        .options(selectinload(Product.category))
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError(message="商品不存在")
    return product


async def _check_category(db: AsyncSession, category_id: int) -> None:
    if await db.get(Category, category_id) is None:
        raise BadRequestError("INVALID_CATEGORY", "分类不存在")


def _conditions(q: Optional[str], category: Optional[Category]) -> list:
    conditions = []
    if q:
        pattern = f"%{q.strip()}%"
        conditions.append(or_(Product.name.ilike(pattern), Product.slug.ilike(pattern)))
    if category is not None:
        conditions.append(Product.category_id == category.id)
    return conditions


@router.get("", response_model=ProductPage)
async def list_products(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("product:read")),
    page: int = Query(1, ge=1),
    limit: int = Query(50),
    q: Optional[str] = Query(None),
    cat: Optional[str] = Query(None, description="分类ID或 slug"),
) -> Any:
    """商品列表（含分类，包含下架商品）"""
    limit = max(1, min(limit, 200))
    category = await find_category(db, cat)
    if cat and category is None:
        return ProductPage(items=[], total=0, page=page, limit=limit)
    conditions = _conditions(q, category)

    total = (await db.execute(select(func.count(Product.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Product)
        .options(selectinload(Product.category))
        .where(*conditions)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ProductPage(
        items=[product_response(p) for p in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/search", response_model=ProductSearchResponse)
async def search_products(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("product:read")),
    q: Optional[str] = Query(None),
    cat: Optional[str] = Query(None),
    limit: int = Query(10),
) -> Any:
    limit = max(1, min(limit, 50))
    category = await find_category(db, cat)
    if cat and category is None:
        return ProductSearchResponse(items=[])
    result = await db.execute(
        select(Product).where(*_conditions(q, category)).order_by(Product.name).limit(limit)
    )
    return ProductSearchResponse(items=[product_brief(p) for p in result.scalars().all()])


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("product:read")),
    product_id: int,
) -> Any:
    return product_response(await _get_product(db, product_id))


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("product:create")),
    product_in: ProductCreate,
) -> Any:
    """创建商品"""
    await _check_category(db, product_in.category_id)
    slug = await ensure_slug_free(db, Product, slug_or_default(product_in.slug or product_in.name, "product"))

    product = Product(
        name=product_in.name.strip(),
        slug=slug,
        description=product_in.description,
        price=product_in.price,
        image_url=product_in.image_url,
        active=product_in.active,
        category_id=product_in.category_id,
    )
    db.add(product)
    await db.commit()
    logger.info(f"✅ 创建商品 {product.slug} ({product.price})")
    await log_audit(
        db, "product.create", "Product", product.id,
        {"name": product.name, "price": str(product.price)}, user_id=actor.id,
    )
    return product_response(await _get_product(db, product.id))


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("product:update")),
    product_id: int,
    product_in: ProductUpdate,
) -> Any:
    """更新商品；更换图片时删除旧的本地图片"""
    product = await _get_product(db, product_id)
    update_data = {k: v for k, v in product_in.model_dump(exclude_unset=True).items()
                   if v is not None or k in ("image_url", "description")}

    if "category_id" in update_data:
        await _check_category(db, update_data["category_id"])
    if "slug" in update_data or "name" in update_data:
        new_slug = slugify(update_data.get("slug") or update_data.get("name") or product.name) or product.slug
        if new_slug != product.slug:
            update_data["slug"] = await ensure_slug_free(db, Product, new_slug, exclude_id=product.id)
        else:
            update_data.pop("slug", None)

    old_image = product.image_url
    for field, value in update_data.items():
        setattr(product, field, value)
    await db.commit()

    if "image_url" in update_data and old_image and old_image != product.image_url:
        delete_if_local(old_image)
    await log_audit(db, "product.update", "Product", product.id, {"fields": sorted(update_data)}, user_id=actor.id)
    return product_response(await _get_product(db, product.id))


@router.delete("/{product_id}", response_model=OkResponse)
async def delete_product(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("product:delete")),
    product_id: int,
) -> Any:
    """删除商品及其本地图片"""
    product = await _get_product(db, product_id)
    name, image = product.name, product.image_url
    await db.delete(product)
    await db.commit()
    delete_if_local(image)
    logger.info(f"🗑️ 删除商品 {name}")
    await log_audit(db, "product.delete", "Product", product_id, {"name": name}, user_id=actor.id)
    return OkResponse()
