"""
数据库初始化与种子数据

- ensure_tables_exist：启动时建表
- seed_rbac：写入权限目录与预置角色，旧 ADMIN 用户挂到 admin 角色
- seed_catalog：分类/商品为空时写入演示数据
- seed_admin：按配置创建首个管理员
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.config import settings
from petshop.core.permissions import DEFAULT_ROLES, PERMISSIONS
from petshop.core.security import hash_password
from petshop.db.base import Base
from petshop.db.session import SessionLocal, engine

# 导入所有模型，确保表能被创建
from petshop.models import (
    AuditLog, Category, Order, OrderItem, Permission, Product, RoleEntity, User, user_roles,
)

logger = logging.getLogger(__name__)

DEMO_CATEGORIES = [
    {"name": "Alimento", "slug": "alimento", "image_url": "/media/categories/alimento.webp"},
    {"name": "Juguetes", "slug": "juguetes", "image_url": "/media/categories/juguetes.webp"},
    {"name": "Accesorios", "slug": "accesorios", "image_url": "/media/categories/accesorios.webp"},
]

DEMO_PRODUCTS = [
    {
        "name": "Alimento Premium Perro Adulto 15kg",
        "slug": "alimento-premium-perro-adulto-15kg",
        "description": "Croquetas balanceadas para perros adultos.",
        "price": Decimal("34990.00"),
        "category": "alimento",
    },
    {
        "name": "Pelota Mordedora Resistente",
        "slug": "pelota-mordedora-resistente",
        "description": "Juguete de caucho natural para perros medianos.",
        "price": Decimal("5990.00"),
        "category": "juguetes",
    },
    {
        "name": "Collar Ajustable Reflectante",
        "slug": "collar-ajustable-reflectante",
        "description": "Collar de nylon con banda reflectante.",
        "price": Decimal("7490.00"),
        "category": "accesorios",
    },
]


async def ensure_tables_exist(bind=None) -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_rbac(db: AsyncSession) -> None:
    """写入权限目录和预置角色（幂等）"""
    result = await db.execute(select(Permission))
    existing = {p.key: p for p in result.scalars().all()}
    for key, description in PERMISSIONS.items():
        if key in existing:
            existing[key].description = description
        else:
            existing[key] = Permission(key=key, description=description)
            db.add(existing[key])
    await db.flush()

    result = await db.execute(select(RoleEntity).options(selectinload(RoleEntity.permissions)))
    roles = {r.name: r for r in result.scalars().all()}
    for name, keys in DEFAULT_ROLES.items():
        role = roles.get(name)
        if role is None:
            role = RoleEntity(name=name, label=name.upper(), permissions=[])
            db.add(role)
            roles[name] = role
            logger.info(f"✅ 创建预置角色 {name}")
            role.permissions = [existing[k] for k in keys]
        elif name == "admin":
            # admin 始终拥有完整目录，其余已存在角色保留后台修改
            owned = {p.key for p in role.permissions}
            role.permissions.extend(existing[k] for k in keys if k not in owned)
    await db.flush()

    # 旧 ADMIN 用户 -> admin 角色
    admin_role = roles["admin"]
    assigned = select(user_roles.c.user_id).where(user_roles.c.role_id == admin_role.id)
    result = await db.execute(
        select(User.id).where(User.role == "ADMIN", User.id.not_in(assigned))
    )
    legacy_ids = list(result.scalars().all())
    if legacy_ids:
        await db.execute(
            insert(user_roles),
            [{"user_id": uid, "role_id": admin_role.id} for uid in legacy_ids],
        )
        logger.info(f"旧管理员映射到 admin 角色: {legacy_ids}")
    await db.commit()


async def seed_catalog(db: AsyncSession) -> bool:
    """分类为空时写入演示分类和商品"""
    count = (await db.execute(select(func.count(Category.id)))).scalar() or 0
    if count:
        return False
    categories = {}
    for data in DEMO_CATEGORIES:
        category = Category(**data, active=True)
        db.add(category)
        categories[data["slug"]] = category
    await db.flush()
    for data in DEMO_PRODUCTS:
        data = dict(data)
        category = categories[data.pop("category")]
        db.add(Product(**data, category_id=category.id, active=True))
    await db.commit()
    logger.info(f"📦 已写入演示数据: {len(DEMO_CATEGORIES)} 个分类, {len(DEMO_PRODUCTS)} 个商品")
    return True


async def seed_admin(db: AsyncSession, email: Optional[str] = None, password: Optional[str] = None) -> Optional[User]:
    """创建管理员用户并挂到 admin 角色；已存在则只补角色"""
    email = (email or settings.FIRST_ADMIN_EMAIL or "").strip().lower()
    password = password or settings.FIRST_ADMIN_PASSWORD
    if not email or not password:
        return None

    result = await db.execute(
        select(User).options(selectinload(User.roles)).where(User.email == email)
    )
    admin = result.scalar_one_or_none()
    if admin is None:
        logger.info(f"创建管理员用户 {email}...")
        admin = User(email=email, name="Admin", password_hash=hash_password(password), role="ADMIN", roles=[])
        db.add(admin)

    role = (await db.execute(select(RoleEntity).where(RoleEntity.name == "admin"))).scalar_one_or_none()
    if role is not None and role not in admin.roles:
        admin.roles.append(role)
    await db.commit()
    return admin


async def init_db() -> None:
    """
    初始化数据库：建表 + 种子数据
    """
    await ensure_tables_exist()
    async with SessionLocal() as db:
        await seed_rbac(db)
        if settings.SEED_DEFAULT_DATA:
            await seed_catalog(db)
        await seed_admin(db)
    logger.info("数据库初始化完成")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_db())
