"""角色 / 权限 Schema"""
from typing import Optional, List
from pydantic import BaseModel, Field


class RoleCreate(BaseModel):
    name: str = ""
    label: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = []


class RoleUpdate(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[List[str]] = None


class RoleResponse(BaseModel):
    id: int
    name: str
    label: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = []
    users: int = 0  # 使用该角色的用户数


class RoleDetail(BaseModel):
    id: int
    name: str
    label: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = []
    users: List[int] = []


class RoleAssign(BaseModel):
    user_id: int


class PermissionInfo(BaseModel):
    key: str
    description: Optional[str] = None


class PermissionInvalidate(BaseModel):
    user_id: Optional[int] = None


class InvalidateResponse(BaseModel):
    ok: bool = True
    scope: str = Field(..., description="single / all")
