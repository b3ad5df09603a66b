"""
下单服务

订单明细按下单时的商品数据生成快照，购物车里已不存在的商品直接跳过。
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.errors import BadRequestError, NotFoundError
from petshop.models.order import Order, OrderItem
from petshop.models.product import Product
from petshop.schemas.cart import CartItem
from petshop.schemas.order import CheckoutForm, OrderItemResponse, OrderResponse, OrderSummary
from petshop.services.cart import load_products

logger = logging.getLogger(__name__)


def build_order_items(
    cart: Iterable[CartItem],
    products: Mapping[int, Product],
) -> Tuple[List[OrderItem], Decimal]:
    """按实时商品生成订单明细，返回 (明细, 小计)"""
    items: List[OrderItem] = []
    subtotal = Decimal("0")
    for line in cart:
        product = products.get(line.product_id)
        if product is None or line.qty <= 0:
            continue
        unit_price = Decimal(str(product.price))
        items.append(OrderItem(
            product_id=product.id,
            name=product.name,
            slug=product.slug,
            unit_price=unit_price,
            quantity=line.qty,
        ))
        subtotal += unit_price * line.qty
    return items, subtotal


async def place_order(
    db: AsyncSession,
    form: CheckoutForm,
    cart: List[CartItem],
    user_id: Optional[int] = None,
) -> Order:
    """创建订单；空车抛 CART_EMPTY，商品全部失效抛 NO_VALID_ITEMS"""
    if not cart:
        raise BadRequestError("CART_EMPTY", "购物车为空")

    products = await load_products(db, (line.product_id for line in cart))
    items, subtotal = build_order_items(cart, products)
    if not items:
        raise BadRequestError("NO_VALID_ITEMS", "购物车中没有有效商品")

    order = Order(
        user_id=user_id,
        customer=form.customer,
        email=form.email,
        phone=form.phone,
        address=form.address,
        status="PENDING",
        subtotal=subtotal,
        total=subtotal,
        items=items,
    )
    db.add(order)
    await db.commit()
    logger.info(f"🧾 新订单 #{order.id} 共 {len(items)} 行，金额 {subtotal}")
    return order


async def get_order(db: AsyncSession, order_id: int, user_id: Optional[int] = None) -> Order:
    """读取订单（含明细）；指定 user_id 时只能读自己的"""
    stmt = (
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.user))
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
    order = (await db.execute(stmt)).scalar_one_or_none()
    if order is None:
        raise NotFoundError(message="订单不存在")
    return order


async def count_orders(db: AsyncSession, conditions: list) -> int:
    result = await db.execute(select(func.count(Order.id)).where(*conditions))
    return result.scalar() or 0


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        status=order.status,
        created_at=order.created_at,
        customer=order.customer,
        email=order.email,
        phone=order.phone,
        address=order.address,
        subtotal=float(order.subtotal or 0),
        total=float(order.total or 0),
        user_id=order.user_id,
        user_email=order.user.email if order.user else None,
        items=[
            OrderItemResponse(
                product_id=it.product_id,
                name=it.name,
                slug=it.slug,
                qty=it.quantity,
                unit_price=float(it.unit_price),
                total=float(it.line_total),
            )
            for it in order.items
        ],
    )


def order_to_summary(order: Order) -> OrderSummary:
    return OrderSummary(
        id=order.id,
        status=order.status,
        created_at=order.created_at,
        customer=order.customer,
        email=order.email,
        subtotal=float(order.subtotal or 0),
        total=float(order.total or 0),
        items_count=order.items_count,
    )
