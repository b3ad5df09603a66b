"""购物车 Schema"""

from typing import List, Optional
from pydantic import BaseModel, Field


class CartItem(BaseModel):
    """Cookie 中的一行：商品ID + 数量"""
    product_id: int
    qty: int


class CartAdd(BaseModel):
    product_id: int
    qty: int = Field(1, ge=1)


class CartUpdate(BaseModel):
    product_id: int
    qty: int = Field(..., ge=0)


class CartRemove(BaseModel):
    product_id: int


class EnrichedCartItem(CartItem):
    """按实时商品数据补全的购物车行"""
    name: str
    slug: str
    image_url: Optional[str] = None
    price: float
    line_total: float


class CartResponse(BaseModel):
    items: List[CartItem] = []
    enriched: List[EnrichedCartItem] = []
    subtotal: float = 0
