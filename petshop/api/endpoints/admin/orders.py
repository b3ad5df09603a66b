"""后台 - 订单管理"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.deps import get_db, require_permission
from petshop.core.errors import BadRequestError, NotFoundError
from petshop.models.order import ORDER_STATUSES, Order
from petshop.models.user import User
from petshop.schemas.order import AdminOrderListResponse, OrderResponse, OrderStatusChange, OrderStatusUpdate
from petshop.services.audit import log_audit
from petshop.services.orders import count_orders, get_order, order_to_response, order_to_summary

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=AdminOrderListResponse)
async def list_orders(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("order:read")),
    page: int = Query(1, ge=1),
    limit: int = Query(20),
    q: Optional[str] = Query(None, description="订单号 / 客户 / 邮箱"),
    status: Optional[str] = Query(None),
) -> Any:
    """订单列表"""
    limit = max(1, min(limit, 100))
    conditions = []
    if q and q.strip():
        q = q.strip()
        pattern = f"%{q}%"
        matches = [Order.customer.ilike(pattern), Order.email.ilike(pattern)]
        if q.isdigit():
            matches.append(Order.id == int(q))
        conditions.append(or_(*matches))
    if status and status.upper() in ORDER_STATUSES:
        conditions.append(Order.status == status.upper())

    total = await count_orders(db, conditions)
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(*conditions)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return AdminOrderListResponse(
        orders=[order_to_summary(o) for o in result.scalars().all()],
        total=total,
        page=page,
        page_size=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order_detail(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("order:read")),
    order_id: int,
) -> Any:
    return order_to_response(await get_order(db, order_id))


@router.api_route("/{order_id}", methods=["PATCH", "PUT"], response_model=OrderStatusChange, response_model_exclude_none=True)
async def update_order_status(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("order:manageStatus")),
    order_id: int,
    body: OrderStatusUpdate,
) -> Any:
    """修改订单状态，状态未变化时直接返回"""
    next_status = (body.status or "").strip().upper()
    if next_status not in ORDER_STATUSES:
        raise BadRequestError("INVALID_STATUS", f"无效的订单状态: {body.status}")

    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError(message="订单不存在")
    if order.status == next_status:
        return OrderStatusChange(unchanged=True)

    previous = order.status
    order.status = next_status
    await db.commit()
    logger.info(f"📦 订单 #{order_id} 状态 {previous} -> {next_status}")
    await log_audit(
        db, "order.status.update", "Order", order_id,
        {"from": previous, "to": next_status}, user_id=actor.id,
    )
    return OrderStatusChange(from_=previous, to=next_status)
