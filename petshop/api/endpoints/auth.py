"""认证API - 注册 / 登录 / 登出 / 当前用户"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.deps import get_current_user, get_db
from petshop.core.errors import BadRequestError, ConflictError, UnauthenticatedError
from petshop.core.permissions import get_user_permissions
from petshop.core.security import (
    clear_session_cookie, create_session_token, hash_password, set_session_cookie, verify_password,
)
from petshop.models.user import User
from petshop.schemas.auth import LoginRequest, MeResponse, RegisterRequest
from petshop.schemas.common import EMAIL_RE

logger = logging.getLogger(__name__)

router = APIRouter()


def _login_response(response: Response, user: User) -> dict:
    set_session_cookie(response, create_session_token(user.id, user.email, user.role))
    return {"ok": True, "user": {"id": user.id, "email": user.email, "name": user.name}}


@router.post("/register")
async def register(
    *,
    db: AsyncSession = Depends(get_db),
    response: Response,
    body: RegisterRequest,
) -> Any:
    """注册并直接登录"""
    email = body.email.strip().lower()
    if not EMAIL_RE.match(email):
        raise BadRequestError("INVALID_EMAIL", "邮箱格式不正确")
    if len(body.password) < 6:
        raise BadRequestError("WEAK_PASSWORD", "密码至少 6 位")

    exists = await db.execute(select(User.id).where(User.email == email))
    if exists.first() is not None:
        raise ConflictError("EMAIL_TAKEN", "邮箱已被注册")

    user = User(
        email=email,
        name=body.name.strip() or None,
        password_hash=hash_password(body.password),
        role="USER",
    )
    db.add(user)
    await db.commit()
    logger.info(f"👤 新用户注册: {email}")
    return _login_response(response, user)


@router.post("/login")
async def login(
    *,
    db: AsyncSession = Depends(get_db),
    response: Response,
    body: LoginRequest,
) -> Any:
    email = body.email.strip().lower()
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(body.password, user.password_hash):
        logger.warning(f"登录失败: {email}")
        raise UnauthenticatedError("INVALID_CREDENTIALS", "邮箱或密码错误")
    logger.info(f"🔑 用户登录: {email}")
    return _login_response(response, user)


@router.post("/logout")
async def logout(response: Response) -> Any:
    clear_session_cookie(response)
    return {"ok": True}


@router.get("/me", response_model=MeResponse, response_model_exclude_none=True)
async def me(user: Optional[User] = Depends(get_current_user)) -> Any:
    """当前会话信息"""
    if user is None:
        return MeResponse(authenticated=False)
    return MeResponse(authenticated=True, sub=user.id, email=user.email, name=user.name)


@router.get("/permissions")
async def my_permissions(
    *,
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_current_user),
) -> Any:
    """当前用户的权限列表，未登录为空"""
    if user is None:
        return {"permissions": []}
    return {"permissions": sorted(await get_user_permissions(db, user.id))}
