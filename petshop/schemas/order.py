"""订单 Schema"""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from petshop.schemas.common import email_text, phone_text, required_text


class CheckoutForm(BaseModel):
    """结账表单"""
    model_config = ConfigDict(validate_default=True)

    customer: Any = ""
    email: Any = ""
    phone: Any = ""
    address: Any = ""

    @field_validator("customer")
    @classmethod
    def check_customer(cls, v):
        return required_text(v, 2)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return email_text(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return phone_text(v)

    @field_validator("address")
    @classmethod
    def check_address(cls, v):
        return required_text(v, 5)


class OrderItemResponse(BaseModel):
    product_id: Optional[int] = None
    name: str
    slug: str
    qty: int
    unit_price: float
    total: float


class OrderResponse(BaseModel):
    id: int
    status: str
    created_at: datetime
    customer: str
    email: str
    phone: str
    address: str
    subtotal: float
    total: float
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    items: List[OrderItemResponse] = []


class OrderSummary(BaseModel):
    id: int
    status: str
    created_at: datetime
    customer: str
    email: str
    subtotal: float
    total: float
    items_count: int


class MyOrdersResponse(BaseModel):
    items: List[OrderSummary]
    page: int
    per: int
    total: int
    total_pages: int


class AdminOrderListResponse(BaseModel):
    orders: List[OrderSummary]
    total: int
    page: int
    page_size: int


class OrderStatusUpdate(BaseModel):
    status: str = ""


class OrderStatusChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    unchanged: bool = False
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
