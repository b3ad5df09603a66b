"""
角色 / 权限模型
RBAC：权限授予角色，角色授予用户
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from petshop.db.base import Base


# 用户-角色关联表
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime, default=datetime.utcnow),
)

# 角色-权限关联表
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class RoleEntity(Base):
    """角色"""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True, index=True, comment="角色名称（唯一标识）")
    label = Column(String(100), nullable=True, comment="显示名称")
    description = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    permissions = relationship(
        "Permission", secondary=role_permissions, back_populates="roles", passive_deletes=True
    )
    users = relationship(
        "User", secondary=user_roles, back_populates="roles", passive_deletes=True
    )

    def __repr__(self):
        return f"<Role {self.name}>"

    @property
    def permission_keys(self):
        return sorted(p.key for p in (self.permissions or []))


class Permission(Base):
    """权限，key 形如 product:update"""
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(String(200), nullable=True)

    roles = relationship(
        "RoleEntity", secondary=role_permissions, back_populates="permissions", passive_deletes=True
    )

    def __repr__(self):
        return f"<Permission {self.key}>"
