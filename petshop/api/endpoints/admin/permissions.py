"""后台 - 权限目录 / 缓存失效"""

from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from petshop.core.deps import get_db, require_permission
from petshop.core.permissions import invalidate_permissions
from petshop.models.role import Permission
from petshop.models.user import User
from petshop.schemas.role import InvalidateResponse, PermissionInfo, PermissionInvalidate
from petshop.services.audit import log_audit

router = APIRouter()


@router.get("", response_model=List[PermissionInfo])
async def list_permissions(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("role:read")),
) -> Any:
    """权限目录"""
    result = await db.execute(select(Permission).order_by(Permission.key))
    return [PermissionInfo(key=p.key, description=p.description) for p in result.scalars().all()]


@router.post("/invalidate", response_model=InvalidateResponse)
async def invalidate_cache(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    body: PermissionInvalidate = PermissionInvalidate(),
) -> Any:
    """手动失效权限缓存，不传 user_id 则全部失效"""
    invalidate_permissions(body.user_id)
    scope = "single" if body.user_id is not None else "all"
    await log_audit(db, "permissions.invalidate", "Permission", body.user_id, {"scope": scope}, user_id=actor.id)
    return InvalidateResponse(scope=scope)
