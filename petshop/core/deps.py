"""依赖注入 - 数据库会话、当前用户、权限守卫"""
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.config import settings
from petshop.core.errors import ForbiddenError, UnauthenticatedError
from petshop.core.permissions import get_user_permissions, has_all, has_any, has_permission
from petshop.core.security import decode_session_token
from petshop.db.session import SessionLocal
from petshop.models.user import User


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    获取数据库会话依赖
    """
    async with SessionLocal() as session:
        yield session


def get_session_payload(request: Request) -> Optional[Dict[str, Any]]:
    """读取并校验会话 Cookie，无效时返回 None"""
    return decode_session_token(request.cookies.get(settings.SESSION_COOKIE_NAME))


async def get_current_user(
    payload: Optional[Dict[str, Any]] = Depends(get_session_payload),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """当前登录用户，未登录或用户已删除返回 None"""
    if not payload:
        return None
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
    return await db.get(User, user_id)


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise UnauthenticatedError()
    return user


def _permission_guard(check, keys: List[str]):
    async def guard(
        user: Optional[User] = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if user is None:
            raise UnauthenticatedError()
        perms = await get_user_permissions(db, user.id)
        if not check(perms, keys):
            raise ForbiddenError()
        return user

    return guard


def require_permission(key: str):
    """需要指定权限（admin:access 放行）"""
    return _permission_guard(lambda perms, keys: has_permission(perms, keys[0]), [key])


def require_any(keys: List[str]):
    """需要任一权限"""
    return _permission_guard(has_any, list(keys))


def require_all(keys: List[str]):
    """需要全部权限"""
    return _permission_guard(has_all, list(keys))
