"""
审计日志模型
每次后台变更操作写一条，写入失败不影响主流程
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from petshop.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # 操作人，无会话时为空
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # 动作，如 product.create / role.assign / order.status.update
    action = Column(String(60), nullable=False, index=True)

    # 实体名（Product / Category / User / Role / Order / PermissionCache）
    entity = Column(String(50), nullable=True, index=True)
    entity_id = Column(String(50), nullable=True, index=True)

    # 附加信息（"metadata" 是声明式保留名，属性用 meta）
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", foreign_keys=[user_id])

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity}:{self.entity_id}>"
