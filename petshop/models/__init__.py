# models包初始化文件

from petshop.models.role import RoleEntity, Permission, user_roles, role_permissions
from petshop.models.user import User
from petshop.models.category import Category
from petshop.models.product import Product
from petshop.models.order import Order, OrderItem, ORDER_STATUSES
from petshop.models.audit_log import AuditLog

__all__ = [
    "User",
    "RoleEntity",
    "Permission",
    "user_roles",
    "role_permissions",
    "Category",
    "Product",
    "Order",
    "OrderItem",
    "ORDER_STATUSES",
    "AuditLog",
]
