"""
会话与密码

会话令牌为 HS256 签名的 JWT，载荷: sub(用户ID字符串) / email / role(旧角色)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Response

from petshop.core.config import settings

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    """生成 bcrypt 密码哈希"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """校验密码，哈希为空或格式错误时返回 False"""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_session_token(sub: Any, email: str, role: str, max_age: Optional[int] = None) -> str:
    """签发会话令牌"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(sub),
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=max_age or settings.SESSION_MAX_AGE_SECONDS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_session_token(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """校验会话令牌，无效或过期返回 None"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("会话令牌已过期")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"会话令牌无效: {e}")
        return None
    if not payload.get("sub"):
        return None
    return payload


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
