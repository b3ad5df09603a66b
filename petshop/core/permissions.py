"""
权限解析与缓存

用户权限 = 其所有角色权限的并集；按用户ID在进程内缓存，TTL 默认 60 秒。
角色/分配变更时显式失效单个用户或全部用户。
admin:access 为超级权限，满足任何检查。
"""

import logging
import time
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.config import settings
from petshop.models.role import Permission, role_permissions, user_roles

logger = logging.getLogger(__name__)

ADMIN_ACCESS = "admin:access"

# 权限目录：key -> 描述
PERMISSIONS: Dict[str, str] = {
    ADMIN_ACCESS: "后台超级权限",
    "dashboard:access": "查看仪表盘",
    "product:read": "查看商品",
    "product:create": "创建商品",
    "product:update": "修改商品",
    "product:delete": "删除商品",
    "category:read": "查看分类",
    "category:create": "创建分类",
    "category:update": "修改分类",
    "category:delete": "删除分类",
    "order:read": "查看订单",
    "order:manageStatus": "修改订单状态",
    "user:read": "查看用户",
    "user:create": "创建用户",
    "user:update": "修改用户",
    "user:delete": "删除用户",
    "role:read": "查看角色",
    "role:update": "管理角色",
    "audit:read": "查看审计日志",
}

# 预置角色
DEFAULT_ROLES: Dict[str, List[str]] = {
    "admin": list(PERMISSIONS.keys()),
    "manager": [
        ADMIN_ACCESS, "dashboard:access",
        "product:read", "product:create", "product:update", "product:delete",
        "category:read", "category:create", "category:update", "category:delete",
        "order:read", "order:manageStatus",
    ],
    "support": ["product:read", "category:read", "order:read"],
    "viewer": ["product:read", "category:read"],
}


class PermissionCache:
    """按用户ID缓存权限集合，条目超过 ttl 秒即视为失效"""

    def __init__(self, ttl: float = 60, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[int, Tuple[FrozenSet[str], float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: int) -> bool:
        return self.get(user_id) is not None

    def get(self, user_id: int) -> Optional[FrozenSet[str]]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        perms, stored_at = entry
        if self._clock() - stored_at >= self.ttl:
            return None
        return perms

    def set(self, user_id: int, perms: Iterable[str]) -> FrozenSet[str]:
        frozen = frozenset(perms)
        self._entries[user_id] = (frozen, self._clock())
        return frozen

    def invalidate(self, user_id: Optional[int] = None) -> None:
        """失效单个用户；不传则清空全部"""
        if user_id is None:
            self._entries.clear()
        else:
            self._entries.pop(user_id, None)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [uid for uid, (_, ts) in self._entries.items() if now - ts >= self.ttl]
        for uid in expired:
            del self._entries[uid]
        return len(expired)


permission_cache = PermissionCache(ttl=settings.PERMISSION_CACHE_TTL_SECONDS)


async def load_user_permissions(db: AsyncSession, user_id: int) -> FrozenSet[str]:
    """从数据库读取用户所有角色的权限并集（不走缓存）"""
    result = await db.execute(
        select(Permission.key)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
        .where(user_roles.c.user_id == user_id)
    )
    return frozenset(result.scalars().all())


async def get_user_permissions(
    db: AsyncSession,
    user_id: int,
    cache: Optional[PermissionCache] = None,
) -> FrozenSet[str]:
    """获取用户权限，优先读缓存"""
    cache = cache if cache is not None else permission_cache
    cached = cache.get(user_id)
    if cached is not None:
        return cached
    perms = await load_user_permissions(db, user_id)
    return cache.set(user_id, perms)


def invalidate_permissions(user_id: Optional[int] = None) -> None:
    permission_cache.invalidate(user_id)
    logger.info(f"权限缓存失效: {'用户 ' + str(user_id) if user_id is not None else '全部'}")


def has_permission(perms: Iterable[str], key: str) -> bool:
    perms = set(perms)
    return ADMIN_ACCESS in perms or key in perms


def has_any(perms: Iterable[str], keys: Iterable[str]) -> bool:
    perms = set(perms)
    return ADMIN_ACCESS in perms or any(k in perms for k in keys)


def has_all(perms: Iterable[str], keys: Iterable[str]) -> bool:
    perms = set(perms)
    return ADMIN_ACCESS in perms or all(k in perms for k in keys)
