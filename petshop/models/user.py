from datetime import datetime
from typing import List
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from petshop.db.base import Base
from petshop.models.role import user_roles


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(200), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    password_hash = Column(String(200), nullable=True)
    # 旧角色字段（USER / ADMIN），新系统用 roles 关联
    role = Column(String(20), nullable=False, default="USER")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 角色关联（RBAC）
    roles = relationship(
        "RoleEntity", secondary=user_roles, back_populates="users", passive_deletes=True
    )

    def __repr__(self):
        return f"<User {self.id}: {self.email}>"

    @property
    def is_legacy_admin(self) -> bool:
        return self.role == "ADMIN"

    @property
    def role_ids(self) -> List[int]:
        return [r.id for r in (self.roles or [])]
