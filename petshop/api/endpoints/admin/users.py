"""后台 - 用户管理"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.deps import get_db, require_permission
from petshop.core.errors import BadRequestError, ConflictError, NotFoundError
from petshop.core.permissions import invalidate_permissions
from petshop.core.security import hash_password
from petshop.models.role import RoleEntity
from petshop.models.user import User
from petshop.schemas.common import OkResponse
from petshop.schemas.user import UserBrief, UserCreate, UserPage, UserResponse, UserSearchResponse, UserUpdate
from petshop.services.audit import log_audit

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        role_ids=sorted(user.role_ids),
        created_at=user.created_at,
    )


async def _get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(
        select(User)
        .options(selectinload(User.roles))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(message="用户不存在")
    return user


async def _load_roles(db: AsyncSession, role_ids: List[int]) -> List[RoleEntity]:
    ids = sorted(set(role_ids))
    if not ids:
        return []
    result = await db.execute(select(RoleEntity).where(RoleEntity.id.in_(ids)))
    roles = list(result.scalars().all())
    missing = set(ids) - {r.id for r in roles}
    if missing:
        raise BadRequestError("INVALID_ROLE", f"角色不存在: {sorted(missing)}")
    return roles


@router.get("", response_model=UserPage)
async def list_users(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("user:read")),
    page: int = Query(1, ge=1),
    limit: int = Query(50),
) -> Any:
    """用户列表（新到旧）"""
    limit = max(1, min(limit, 200))
    total = (await db.execute(select(func.count(User.id)))).scalar() or 0
    result = await db.execute(
        select(User)
        .options(selectinload(User.roles))
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return UserPage(
        items=[_build_response(u) for u in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("user:read")),
    q: Optional[str] = Query(None),
) -> Any:
    """按邮箱 / 姓名 / ID 搜索，最多 10 条"""
    q = (q or "").strip()
    if not q:
        return UserSearchResponse(items=[])
    pattern = f"%{q}%"
    matches = [User.email.ilike(pattern), User.name.ilike(pattern)]
    if q.isdigit():
        matches.append(User.id == int(q))
    result = await db.execute(select(User).where(or_(*matches)).order_by(User.email).limit(10))
    return UserSearchResponse(items=[UserBrief.model_validate(u) for u in result.scalars().all()])


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("user:read")),
    user_id: int,
) -> Any:
    return _build_response(await _get_user(db, user_id))


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("user:create")),
    user_in: UserCreate,
) -> Any:
    """创建用户，可同时分配角色"""
    email = str(user_in.email).strip().lower()
    if (await db.execute(select(User.id).where(User.email == email))).first() is not None:
        raise ConflictError("EMAIL_TAKEN", "邮箱已被注册")

    user = User(
        email=email,
        name=user_in.name,
        password_hash=hash_password(user_in.password) if user_in.password else None,
        role="USER",
        roles=await _load_roles(db, user_in.role_ids),
    )
    db.add(user)
    await db.commit()
    logger.info(f"✅ 创建用户 {email}")
    await log_audit(db, "user.create", "User", user.id, {"email": email, "role_ids": user.role_ids}, user_id=actor.id)
    return _build_response(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("user:update")),
    user_id: int,
    user_in: UserUpdate,
) -> Any:
    """更新用户；role_ids 会整体替换角色分配"""
    user = await _get_user(db, user_id)
    changed = []
    if user_in.name is not None:
        user.name = user_in.name
        changed.append("name")
    if user_in.password:
        user.password_hash = hash_password(user_in.password)
        changed.append("password")
    if user_in.role_ids is not None:
        user.roles = await _load_roles(db, user_in.role_ids)
        changed.append("role_ids")
    await db.commit()

    if "role_ids" in changed:
        invalidate_permissions(user.id)
    await log_audit(db, "user.update", "User", user.id, {"fields": changed}, user_id=actor.id)
    return _build_response(user)


@router.delete("/{user_id}", response_model=OkResponse)
async def delete_user(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("user:delete")),
    user_id: int,
) -> Any:
    user = await _get_user(db, user_id)
    email = user.email
    await db.delete(user)
    await db.commit()
    invalidate_permissions(user_id)
    logger.info(f"🗑️ 删除用户 {email}")
    # 删除自己时操作人已不存在
    actor_id = actor.id if actor.id != user_id else None
    await log_audit(db, "user.delete", "User", user_id, {"email": email}, user_id=actor_id)
    return OkResponse()
