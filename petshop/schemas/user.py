from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = Field(None, min_length=6)
    role_ids: List[int] = []


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = Field(None, min_length=6)
    role_ids: Optional[List[int]] = None


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None


class UserResponse(UserBrief):
    role: str
    role_ids: List[int] = []
    created_at: datetime


class UserPage(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    limit: int


class UserSearchResponse(BaseModel):
    items: List[UserBrief]
