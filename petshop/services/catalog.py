"""商品目录公共逻辑：slug 生成与唯一性、响应构建"""

import re
import time
import unicodedata
from typing import Optional, Type

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.errors import ConflictError, FormValidationError
from petshop.models.category import Category
from petshop.models.product import Product
from petshop.schemas.category import CategoryBrief
from petshop.schemas.product import ProductBrief, ProductResponse


def slugify(text: Optional[str]) -> str:
    """转为小写 ASCII，非字母数字折叠为 -"""
    normalized = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", normalized.lower().strip()).strip("-")


def slug_or_default(text: Optional[str], prefix: str) -> str:
    """名称无法生成 slug（如纯中文）时退回 <prefix>-<毫秒时间戳>"""
    return slugify(text) or f"{prefix}-{int(time.time() * 1000)}"


async def ensure_slug_free(
    db: AsyncSession,
    model: Type,
    slug: str,
    exclude_id: Optional[int] = None,
) -> str:
    """slug 已被占用时抛 409 SLUG_TAKEN"""
    if not slug:
        raise FormValidationError({"slug": "slug 不能为空"})
    stmt = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise ConflictError("SLUG_TAKEN", f"slug 已存在: {slug}")
    return slug


async def find_category(db: AsyncSession, ref: Optional[str]) -> Optional[Category]:
    """按ID或 slug 查找分类"""
    if not ref:
        return None
    if ref.isdigit():
        category = await db.get(Category, int(ref))
        if category is not None:
            return category
    # 纯数字 slug（如 2024）ID 查不到时再按 slug 查
    result = await db.execute(select(Category).where(Category.slug == ref))
    return result.scalar_one_or_none()


def text_match(q: str):
    """名称或描述模糊匹配"""
    pattern = f"%{q}%"
    return or_(Product.name.ilike(pattern), Product.description.ilike(pattern))


def product_brief(product: Product) -> ProductBrief:
    return ProductBrief(
        id=product.id,
        name=product.name,
        slug=product.slug,
        price=float(product.price),
        image_url=product.display_image,
    )


def product_response(product: Product) -> ProductResponse:
    """构建商品响应（需预加载 category）"""
    return ProductResponse(
        id=product.id,
        name=product.name,
        slug=product.slug,
        price=float(product.price),
        image_url=product.display_image,
        description=product.description,
        active=product.active,
        category_id=product.category_id,
        category=CategoryBrief.model_validate(product.category) if product.category else None,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )
