"""
Role service: CRUD for roles and their permission sets, plus role
assignment to users.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.cache import cache, roles_list_key
from blog_panel.config import settings
from blog_panel.exceptions import (
    ROLE_ALREADY_EXIST,
    ROLE_NOT_FOUND,
    USER_NOT_FOUND,
    ConflictError,
    NotFoundError,
)
from blog_panel.models import Role, User
from blog_panel.schemas import RoleCreate, RoleUpdate

logger = logging.getLogger(__name__)


def _role_to_dict(role: Role) -> dict:
    return {
        "id": role.id,
        "name": role.name,
        "permissions": list(role.permissions or []),
        "created_at": role.created_at.isoformat() if role.created_at else None,
        "updated_at": role.updated_at.isoformat() if role.updated_at else None,
    }


async def _get_role_by_name(db: AsyncSession, name: str) -> Role | None:
    result = await db.execute(select(Role).where(Role.name == name))
    return result.scalar_one_or_none()


async def _get_role(db: AsyncSession, role_id: int) -> Role:
    role = await db.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role", ROLE_NOT_FOUND, role_id)
    return role


async def create_role(db: AsyncSession, data: RoleCreate) -> dict:
    if await _get_role_by_name(db, data.name) is not None:
        raise ConflictError("Role", ROLE_ALREADY_EXIST, data.name)

    role = Role(name=data.name, permissions=[p.value for p in data.permissions])
    db.add(role)
    await db.flush()
    await db.refresh(role)
    logger.info("Role %r created with %s", role.name, role.permissions)
    return _role_to_dict(role)


async def find_all_roles(db: AsyncSession) -> dict:
    """Return every role and the total count, read through the cache."""
    cached = await cache.get(roles_list_key())
    if cached:
        return cached

    result = await db.execute(select(Role).order_by(Role.name.asc()))
    roles = [_role_to_dict(r) for r in result.scalars().all()]
    data = {"roles": roles, "total": len(roles)}
    await cache.set(roles_list_key(), data, ttl=settings.CACHE_TTL_LIST)
    return data


async def find_role_by_name(db: AsyncSession, name: str) -> dict:
    role = await _get_role_by_name(db, name)
    if role is None:
        raise NotFoundError("Role", ROLE_NOT_FOUND, name)
    return _role_to_dict(role)


async def find_role_by_id(db: AsyncSession, role_id: int) -> dict:
    return _role_to_dict(await _get_role(db, role_id))


async def update_role(db: AsyncSession, role_id: int, data: RoleUpdate) -> dict:
    role = await _get_role(db, role_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    new_name = update_data.get("name")
    if new_name and new_name != role.name:
        if await _get_role_by_name(db, new_name) is not None:
            raise ConflictError("Role", ROLE_ALREADY_EXIST, new_name)
        role.name = new_name
    if "permissions" in update_data:
        role.permissions = [p.value for p in data.permissions]

    await db.flush()
    await db.refresh(role)
    # Users embed their role name.
    cache.invalidate_after_commit(db, "/users")
    return _role_to_dict(role)


async def delete_role(db: AsyncSession, role_id: int) -> dict:
    role = await _get_role(db, role_id)
    data = _role_to_dict(role)
    await db.delete(role)
    await db.flush()
    cache.invalidate_after_commit(db, "/users")
    return data


async def assign_role(db: AsyncSession, user_id: int, role_name: str) -> User:
    """
    Attach the role named *role_name* to *user_id*, replacing any previous
    role.  Both lookups and the update share the request transaction.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", USER_NOT_FOUND, user_id)

    role = await _get_role_by_name(db, role_name)
    if role is None:
        raise NotFoundError("Role", ROLE_NOT_FOUND, role_name)

    user.role_id = role.id
    user.role = role
    await db.flush()
    logger.info("Assigned role %r to user %s", role_name, user_id, extra={"user_id": user_id})
    return user
