"""审计日志 Schema"""

from datetime import datetime
from typing import Optional, List, Any
from pydantic import BaseModel


class AuditLogItem(BaseModel):
    id: int
    created_at: datetime
    user_email: Optional[str] = None
    action: str
    entity: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Optional[Any] = None


class AuditLogPage(BaseModel):
    items: List[AuditLogItem]
    next_cursor: Optional[int] = None
