"""商品分类Schema"""

from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="分类名称")
    slug: Optional[str] = Field(None, max_length=120, description="不传则由名称生成")
    image_url: Optional[str] = None
    active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    image_url: Optional[str] = None
    active: Optional[bool] = None


class CategoryBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    image_url: Optional[str] = None


class CategoryResponse(CategoryBrief):
    active: bool
    products_count: int = 0
    created_at: datetime


class CategoryListResponse(BaseModel):
    categories: List[CategoryBrief]


class CategoryPage(BaseModel):
    items: List[CategoryResponse]
    total: int
    page: int
    limit: int


class CategorySearchResponse(BaseModel):
    items: List[CategoryBrief]
