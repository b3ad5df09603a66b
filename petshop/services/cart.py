"""
购物车

购物车只存在于 Cookie（JSON: {"items": [{"product_id": 1, "qty": 2}]}），服务端不持久化。
每次读取都按实时商品数据重算：已删除的商品静默丢弃，价格取当前售价。
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.config import settings
from petshop.core.errors import BadRequestError
from petshop.models.product import Product
from petshop.schemas.cart import CartItem, CartResponse, EnrichedCartItem

logger = logging.getLogger(__name__)


def parse_cart(raw: Optional[str]) -> List[CartItem]:
    """解析 Cookie，格式错误视为空车，非法行丢弃"""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("购物车 Cookie 无法解析，按空车处理")
        return []
    entries = data.get("items") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        return []

    items: List[CartItem] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            product_id = int(entry.get("product_id"))
            qty = int(entry.get("qty"))
        except (TypeError, ValueError):
            continue
        if qty > 0:
            items.append(CartItem(product_id=product_id, qty=qty))
    return items


def dump_cart(items: Iterable[CartItem]) -> str:
    return json.dumps(
        {"items": [{"product_id": i.product_id, "qty": i.qty} for i in items]},
        separators=(",", ":"),
    )


def total_quantity(items: Iterable[CartItem]) -> int:
    return sum(i.qty for i in items)


def _check_limit(items: List[CartItem], max_items: int) -> List[CartItem]:
    if total_quantity(items) > max_items:
        raise BadRequestError("CART_LIMIT", "购物车商品总数超过上限")
    return items


def add_item(
    items: List[CartItem],
    product_id: int,
    qty: int,
    max_per_item: Optional[int] = None,
    max_items: Optional[int] = None,
) -> List[CartItem]:
    """加入商品：已有则累加，单行数量封顶"""
    max_per_item = max_per_item or settings.CART_MAX_PER_ITEM
    max_items = max_items or settings.CART_MAX_ITEMS
    result = [i.model_copy() for i in items]
    for line in result:
        if line.product_id == product_id:
            line.qty = min(line.qty + qty, max_per_item)
            break
    else:
        result.append(CartItem(product_id=product_id, qty=min(qty, max_per_item)))
    return _check_limit(result, max_items)


def update_item(
    items: List[CartItem],
    product_id: int,
    qty: int,
    max_per_item: Optional[int] = None,
    max_items: Optional[int] = None,
) -> List[CartItem]:
    """修改数量，0 表示移除；商品不在车里抛 KeyError"""
    max_per_item = max_per_item or settings.CART_MAX_PER_ITEM
    max_items = max_items or settings.CART_MAX_ITEMS
    if not any(i.product_id == product_id for i in items):
        raise KeyError(product_id)
    result: List[CartItem] = []
    for line in items:
        if line.product_id != product_id:
            result.append(line.model_copy())
        elif qty > 0:
            result.append(CartItem(product_id=product_id, qty=min(qty, max_per_item)))
    return _check_limit(result, max_items)


def remove_item(items: List[CartItem], product_id: int) -> List[CartItem]:
    return [i.model_copy() for i in items if i.product_id != product_id]


def reconcile(items: List[CartItem], products: Mapping[int, Any]) -> CartResponse:
    """按实时商品补全购物车并计算小计；找不到的商品不计入"""
    enriched: List[EnrichedCartItem] = []
    subtotal = Decimal("0")
    for line in items:
        product = products.get(line.product_id)
        if product is None:
            continue
        price = Decimal(str(product.price))
        line_total = price * line.qty
        subtotal += line_total
        enriched.append(EnrichedCartItem(
            product_id=line.product_id,
            qty=line.qty,
            name=product.name,
            slug=product.slug,
            image_url=product.image_url,
            price=float(price),
            line_total=float(line_total),
        ))
    return CartResponse(items=items, enriched=enriched, subtotal=float(subtotal))


async def load_products(db: AsyncSession, product_ids: Iterable[int]) -> Dict[int, Product]:
    ids = list(set(product_ids))
    if not ids:
        return {}
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}


async def build_cart(db: AsyncSession, items: List[CartItem]) -> CartResponse:
    if not items:
        return CartResponse()
    return reconcile(items, await load_products(db, (i.product_id for i in items)))
