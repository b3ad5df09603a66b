"""
后台 - 角色管理

角色变更（权限替换、删除）失效全部用户的权限缓存；
分配 / 撤销只失效对应用户。
"""

import logging
from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petshop.core.deps import get_db, require_permission
from petshop.core.errors import BadRequestError, ConflictError, NotFoundError
from petshop.core.permissions import invalidate_permissions
from petshop.models.role import Permission, RoleEntity, user_roles
from petshop.models.user import User
from petshop.schemas.common import OkResponse
from petshop.schemas.role import RoleAssign, RoleCreate, RoleDetail, RoleResponse, RoleUpdate
from petshop.schemas.user import UserBrief
from petshop.services.audit import log_role_change

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_role(db: AsyncSession, ref: str) -> RoleEntity:
    """按ID或名称读取角色（含权限）"""
    stmt = select(RoleEntity).options(selectinload(RoleEntity.permissions))
    if str(ref).isdigit():
        stmt = stmt.where(RoleEntity.id == int(ref))
    else:
        stmt = stmt.where(RoleEntity.name == str(ref).strip().lower())
    role = (await db.execute(stmt.execution_options(populate_existing=True))).scalar_one_or_none()
    if role is None:
        raise NotFoundError(message="角色不存在")
    return role


async def _load_permissions(db: AsyncSession, keys: List[str]) -> List[Permission]:
    wanted = sorted(set(k.strip() for k in keys if k and k.strip()))
    if not wanted:
        return []
    result = await db.execute(select(Permission).where(Permission.key.in_(wanted)))
    perms = list(result.scalars().all())
    unknown = set(wanted) - {p.key for p in perms}
    if unknown:
        raise BadRequestError("INVALID_PERMISSION", f"未知权限: {', '.join(sorted(unknown))}")
    return perms


async def _role_user_ids(db: AsyncSession, role_id: int) -> List[int]:
    result = await db.execute(
        select(user_roles.c.user_id).where(user_roles.c.role_id == role_id).order_by(user_roles.c.user_id)
    )
    return list(result.scalars().all())


def _build_detail(role: RoleEntity, user_ids: List[int]) -> RoleDetail:
    return RoleDetail(
        id=role.id,
        name=role.name,
        label=role.label,
        description=role.description,
        permissions=role.permission_keys,
        users=user_ids,
    )


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("role:read")),
) -> Any:
    """角色列表（含权限和用户数）"""
    result = await db.execute(
        select(RoleEntity).options(selectinload(RoleEntity.permissions)).order_by(RoleEntity.name)
    )
    roles = result.scalars().all()
    counts = dict((await db.execute(
        select(user_roles.c.role_id, func.count(user_roles.c.user_id)).group_by(user_roles.c.role_id)
    )).all())
    return [
        RoleResponse(
            id=r.id,
            name=r.name,
            label=r.label,
            description=r.description,
            permissions=r.permission_keys,
            users=counts.get(r.id, 0),
        )
        for r in roles
    ]


@router.get("/{ref}", response_model=RoleDetail)
async def get_role(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("role:read")),
    ref: str,
) -> Any:
    """按ID或名称获取角色"""
    role = await _get_role(db, ref)
    return _build_detail(role, await _role_user_ids(db, role.id))


@router.post("", response_model=RoleDetail, status_code=201)
async def create_role(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    role_in: RoleCreate,
) -> Any:
    """创建角色，label 默认为大写名称"""
    name = (role_in.name or "").strip().lower()
    if not name:
        raise BadRequestError("NAME_REQUIRED", "角色名称不能为空")
    if (await db.execute(select(RoleEntity.id).where(RoleEntity.name == name))).first() is not None:
        raise ConflictError("ROLE_EXISTS", f"角色已存在: {name}")

    role = RoleEntity(
        name=name,
        label=role_in.label or name.upper(),
        description=role_in.description,
        permissions=await _load_permissions(db, role_in.permissions),
    )
    db.add(role)
    await db.commit()
    logger.info(f"✅ 创建角色 {name}")
    await log_role_change(db, "create", role.id, {"name": name, "permissions": role.permission_keys}, user_id=actor.id)
    return _build_detail(role, [])


@router.api_route("/{role_id}", methods=["PUT", "PATCH"], response_model=RoleDetail)
async def update_role(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    role_id: int,
    role_in: RoleUpdate,
) -> Any:
    """更新角色；permissions 整体替换"""
    role = await _get_role(db, str(role_id))
    update_data = role_in.model_dump(exclude_unset=True)
    if "label" in update_data:
        role.label = role_in.label
    if "description" in update_data:
        role.description = role_in.description
    if role_in.permissions is not None:
        role.permissions = await _load_permissions(db, role_in.permissions)
    await db.commit()

    invalidate_permissions()
    await log_role_change(db, "update", role.id, {"fields": sorted(update_data)}, user_id=actor.id)
    return _build_detail(role, await _role_user_ids(db, role.id))


@router.delete("/{role_id}", response_model=OkResponse)
async def delete_role(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    role_id: int,
) -> Any:
    role = await _get_role(db, str(role_id))
    name = role.name
    await db.delete(role)
    await db.commit()

    invalidate_permissions()
    logger.info(f"🗑️ 删除角色 {name}")
    await log_role_change(db, "delete", role_id, {"name": name}, user_id=actor.id)
    return OkResponse()


@router.get("/{role_id}/users", response_model=List[UserBrief])
async def list_role_users(
    *,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_permission("role:read")),
    role_id: int,
) -> Any:
    """拥有该角色的用户"""
    await _get_role(db, str(role_id))
    result = await db.execute(
        select(User)
        .join(user_roles, user_roles.c.user_id == User.id)
        .where(user_roles.c.role_id == role_id)
        .order_by(User.email)
    )
    return [UserBrief.model_validate(u) for u in result.scalars().all()]


@router.post("/{role_id}/assign", response_model=OkResponse)
async def assign_role(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    role_id: int,
    body: RoleAssign,
) -> Any:
    """把角色分配给用户（已分配则忽略）"""
    await _get_role(db, str(role_id))
    if await db.get(User, body.user_id) is None:
        raise NotFoundError(message="用户不存在")

    exists = await db.execute(
        select(user_roles.c.user_id).where(
            user_roles.c.role_id == role_id, user_roles.c.user_id == body.user_id
        )
    )
    if exists.first() is None:
        await db.execute(insert(user_roles).values(user_id=body.user_id, role_id=role_id))
        await db.commit()

    invalidate_permissions(body.user_id)
    await log_role_change(db, "assign", role_id, {"user_id": body.user_id}, user_id=actor.id)
    return OkResponse()


async def _revoke(db: AsyncSession, actor: User, role_id: int, user_id: int) -> OkResponse:
    await _get_role(db, str(role_id))
    await db.execute(
        delete(user_roles).where(user_roles.c.role_id == role_id, user_roles.c.user_id == user_id)
    )
    await db.commit()

    invalidate_permissions(user_id)
    await log_role_change(db, "revoke", role_id, {"user_id": user_id}, user_id=actor.id)
    return OkResponse()


@router.delete("/{role_id}/assign", response_model=OkResponse)
async def revoke_role(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    role_id: int,
    body: RoleAssign,
) -> Any:
    """撤销用户的角色"""
    return await _revoke(db, actor, role_id, body.user_id)


@router.delete("/{role_id}/users/{user_id}", response_model=OkResponse)
async def revoke_role_user(
    *,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(require_permission("role:update")),
    role_id: int,
    user_id: int,
) -> Any:
    return await _revoke(db, actor, role_id, user_id)
