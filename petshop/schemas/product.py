"""商品Schema"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from petshop.schemas.category import CategoryBrief


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, description="品名")
    slug: Optional[str] = Field(None, max_length=170)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    category_id: int
    image_url: Optional[str] = None
    active: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    slug: Optional[str] = Field(None, max_length=170)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    active: Optional[bool] = None


class ProductBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    price: float
    image_url: Optional[str] = None


class ProductResponse(ProductBrief):
    description: Optional[str] = None
    active: bool
    category_id: int
    category: Optional[CategoryBrief] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProductListResponse(BaseModel):
    items: List[ProductResponse]
    page: int
    per: int
    total: int
    total_pages: int


class ProductSearchResponse(BaseModel):
    items: List[ProductBrief]


class ProductPage(BaseModel):
    items: List[ProductResponse]
    total: int
    page: int
    limit: int
