"""API 路由聚合"""
from fastapi import APIRouter

from petshop.api.endpoints import auth, cart, categories, contact, orders, products, search
from petshop.api.endpoints.admin import (
    audit, metrics, permissions, roles, uploads, users,
    categories as admin_categories,
    orders as admin_orders,
    products as admin_products,
)

api_router = APIRouter()

# 前台
api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
api_router.include_router(categories.router, prefix="/categories", tags=["商品分类"])
api_router.include_router(products.router, prefix="/products", tags=["商品"])
api_router.include_router(search.router, prefix="/search", tags=["搜索"])
api_router.include_router(cart.router, prefix="/cart", tags=["购物车"])
api_router.include_router(orders.router, prefix="/orders", tags=["订单"])
api_router.include_router(contact.router, prefix="/contact", tags=["联系我们"])

# 后台
api_router.include_router(admin_categories.router, prefix="/admin/categories", tags=["后台-分类管理"])
api_router.include_router(admin_products.router, prefix="/admin/products", tags=["后台-商品管理"])
api_router.include_router(admin_orders.router, prefix="/admin/orders", tags=["后台-订单管理"])
api_router.include_router(users.router, prefix="/admin/users", tags=["后台-用户管理"])
api_router.include_router(roles.router, prefix="/admin/roles", tags=["后台-角色管理"])
api_router.include_router(permissions.router, prefix="/admin/permissions", tags=["后台-权限"])
api_router.include_router(audit.router, prefix="/admin/audit", tags=["后台-审计日志"])
api_router.include_router(metrics.router, prefix="/admin/metrics", tags=["后台-统计报表"])
api_router.include_router(uploads.router, prefix="/admin/uploads", tags=["后台-上传"])
