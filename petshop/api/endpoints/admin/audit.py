"""后台 - 审计日志"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.deps import get_db, require_permission
from petshop.models.audit_log import AuditLog
from petshop.models.user import User
from petshop.schemas.audit_log import AuditLogItem, AuditLogPage

router = APIRouter()


def build_log_response(log: AuditLog) -> AuditLogItem:
    """构建日志响应"""
    return AuditLogItem(
        id=log.id,
        created_at=log.created_at,
        user_email=log.user.email if log.user else None,
        action=log.action,
        entity=log.entity,
        entity_id=log.entity_id,
        metadata=log.meta,
    )


@router.get("", response_model=AuditLogPage)
async def list_logs(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("audit:read")),
    limit: int = Query(50),
    cursor: Optional[int] = Query(None, description="上一页最后一条的ID"),
    q: Optional[str] = Query(None),
) -> Any:
    """获取审计日志（新到旧，按ID游标分页）"""
    limit = max(1, min(limit, 200))
    query = select(AuditLog).options(selectinload(AuditLog.user)).outerjoin(User, AuditLog.user_id == User.id)

    conditions = []
    if cursor:
        conditions.append(AuditLog.id < cursor)
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        conditions.append(or_(
            AuditLog.action.ilike(pattern),
            AuditLog.entity.ilike(pattern),
            AuditLog.entity_id.ilike(pattern),
            User.email.ilike(pattern),
        ))
    if conditions:
        query = query.where(*conditions)

    result = await db.execute(query.order_by(AuditLog.id.desc()).limit(limit + 1))
    logs = list(result.scalars().all())
    next_cursor = None
    if len(logs) > limit:
        logs = logs[:limit]
        next_cursor = logs[-1].id

    return AuditLogPage(items=[build_log_response(log) for log in logs], next_cursor=next_cursor)
