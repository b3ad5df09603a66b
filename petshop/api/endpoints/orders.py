"""订单API - 结账 / 我的订单"""

import math
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.api.endpoints.cart import read_cart
from petshop.core.config import settings
from petshop.core.deps import get_current_user, get_db, require_user
from petshop.models.order import ORDER_STATUSES, Order
from petshop.models.user import User
from petshop.schemas.order import CheckoutForm, MyOrdersResponse, OrderResponse
from petshop.services.orders import count_orders, get_order, order_to_response, order_to_summary, place_order

router = APIRouter()


@router.post("", response_model=OrderResponse, status_code=201)
async def checkout(
    *,
    db: AsyncSession = Depends(get_db),
    request: Request,
    response: Response,
    form: CheckoutForm,
    user: Optional[User] = Depends(get_current_user),
) -> Any:
    """提交订单：按当前购物车生成订单并清空购物车"""
    order = await place_order(db, form, read_cart(request), user_id=user.id if user else None)
    response.delete_cookie(settings.CART_COOKIE_NAME, path="/")
    return order_to_response(await get_order(db, order.id))


@router.get("/mine", response_model=MyOrdersResponse)
async def list_my_orders(
    *,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
    page: int = Query(1, ge=1),
    per: int = Query(20),
    status: Optional[str] = Query(None),
) -> Any:
    """我的订单（新到旧）"""
    per = max(1, min(per, 100))
    conditions = [Order.user_id == user.id]
    if status and status.upper() in ORDER_STATUSES:
        conditions.append(Order.status == status.upper())

    total = await count_orders(db, conditions)
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(*conditions)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * per)
        .limit(per)
    )
    return MyOrdersResponse(
        items=[order_to_summary(o) for o in result.scalars().all()],
        page=page,
        per=per,
        total=total,
        total_pages=max(1, math.ceil(total / per)),
    )


@router.get("/mine/{order_id}", response_model=OrderResponse)
async def get_my_order(
    *,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_user),
    order_id: int,
) -> Any:
    return order_to_response(await get_order(db, order_id, user_id=user.id))
