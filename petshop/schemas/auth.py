"""认证 Schema"""

from typing import Optional
from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RegisterRequest(BaseModel):
    email: str = ""
    password: str = ""
    name: str = ""


class MeResponse(BaseModel):
    authenticated: bool
    sub: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
