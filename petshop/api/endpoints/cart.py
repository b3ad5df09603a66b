"""购物车API（Cookie 存储）"""

from typing import Any, List

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.config import settings
from petshop.core.deps import get_db
from petshop.core.errors import NotFoundError
from petshop.models.product import Product
from petshop.schemas.cart import CartAdd, CartItem, CartRemove, CartResponse, CartUpdate
from petshop.services import cart as cart_service

router = APIRouter()

CART_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


def read_cart(request: Request) -> List[CartItem]:
    return cart_service.parse_cart(request.cookies.get(settings.CART_COOKIE_NAME))


def write_cart(response: Response, items: List[CartItem]) -> None:
    response.set_cookie(
        settings.CART_COOKIE_NAME,
        cart_service.dump_cart(items),
        max_age=CART_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )


@router.get("", response_model=CartResponse)
async def get_cart(
    *,
    db: AsyncSession = Depends(get_db),
    request: Request,
) -> Any:
    """读取购物车（按实时商品重算）"""
    return await cart_service.build_cart(db, read_cart(request))


@router.post("", response_model=CartResponse)
async def add_to_cart(
    *,
    db: AsyncSession = Depends(get_db),
    request: Request,
    response: Response,
    body: CartAdd,
) -> Any:
    """加入购物车"""
    product = await db.get(Product, body.product_id)
    if product is None:
        raise NotFoundError(message="商品不存在")
    items = cart_service.add_item(read_cart(request), body.product_id, body.qty)
    write_cart(response, items)
    return await cart_service.build_cart(db, items)


@router.put("", response_model=CartResponse)
async def update_cart(
    *,
    db: AsyncSession = Depends(get_db),
    request: Request,
    response: Response,
    body: CartUpdate,
) -> Any:
    """修改数量，0 为移除"""
    try:
        items = cart_service.update_item(read_cart(request), body.product_id, body.qty)
    except KeyError:
        raise NotFoundError("NOT_IN_CART", "购物车中没有该商品")
    write_cart(response, items)
    return await cart_service.build_cart(db, items)


@router.delete("", response_model=CartResponse)
async def remove_from_cart(
    *,
    db: AsyncSession = Depends(get_db),
    request: Request,
    response: Response,
    body: CartRemove,
) -> Any:
    items = cart_service.remove_item(read_cart(request), body.product_id)
    write_cart(response, items)
    return await cart_service.build_cart(db, items)
