"""
审计日志工具

写入失败只记录告警，不影响主流程；调用方应在主操作提交之后再调用。
"""

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from petshop.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def log_audit(
    db: AsyncSession,
    action: str,
    entity: Optional[str] = None,
    entity_id: Optional[Any] = None,
    meta: Optional[dict] = None,
    user_id: Optional[int] = None,
) -> Optional[AuditLog]:
    """记录一条审计日志，失败返回 None"""
    try:
        log = AuditLog(
            user_id=user_id,
            action=action,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            meta=meta,
        )
        db.add(log)
        await db.commit()
        return log
    except Exception as e:
        logger.warning(f"审计日志写入失败 {action} {entity}:{entity_id}: {e}")
        try:
            await db.rollback()
        except Exception as rollback_error:
            logger.warning(f"审计日志回滚失败: {rollback_error}")
        return None


async def log_role_change(
    db: AsyncSession,
    kind: str,
    role_id: Any,
    meta: Optional[dict] = None,
    user_id: Optional[int] = None,
) -> Optional[AuditLog]:
    """角色相关变更：role.create / role.update / role.assign ..."""
    return await log_audit(db, f"role.{kind}", "Role", role_id, meta, user_id=user_id)
