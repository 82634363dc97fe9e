"""
User service: accounts, credentials and profiles.

Single users and user listings are read through the cache
(``users:detail:{id}`` / ``users:list:...``).  Writes never touch the
cache directly: every mutating request under ``/users`` is swept by the
``CacheShieldMiddleware``.  Password hashes never leave this module.
"""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_panel.cache import cache, user_detail_key, users_list_key
from blog_panel.config import settings
from blog_panel.exceptions import (
    PASSWORD_NOT_MATCH,
    USER_ALREADY_EXIST,
    USER_NOT_FOUND,
    AuthenticationError,
    ConflictError,
    NotFoundError,
)
from blog_panel.models import Role, User
from blog_panel.schemas import UserCreate, UserPasswordUpdate, UserProfile, UserUpdate
from blog_panel.security import hash_password, verify_password
from blog_panel.services import session_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance (role eager-loaded) without its password."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "last_name": user.last_name,
        "bio": user.bio,
        "image": user.image,
        "birthday": user.birthday.isoformat() if user.birthday else None,
        "role": user.role.name if user.role is not None else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "updated_at": user.updated_at.isoformat() if user.updated_at else None,
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user_with_role(db: AsyncSession, user_id: int) -> User:
    """Load *user_id* with its role, raising ``NotFoundError`` when absent."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(joinedload(User.role))
        .execution_options(populate_existing=True)
    )
    user = result.unique().scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", USER_NOT_FOUND, user_id)
    return user


async def _get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).where(User.email == email).options(joinedload(User.role))
    )
    return result.unique().scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new account with the default role and return its dict.

    Raises ``ConflictError`` when the e-mail is already registered.
    """
    if await _get_user_by_email(db, data.email) is not None:
        raise ConflictError("User", USER_ALREADY_EXIST, data.email)

    role = (await db.execute(
        select(Role).where(Role.name == settings.DEFAULT_ROLE)
    )).scalar_one_or_none()

    user = User(
        email=data.email,
        name=data.name,
        password=hash_password(data.password),
        role_id=role.id if role else None,
    )
    db.add(user)
    await db.flush()
    logger.info("User %s created", user.id, extra={"user_id": user.id})
    return user_to_dict(await get_user_with_role(db, user.id))


async def find_by_login(db: AsyncSession, email: str, password: str) -> User:
    """Return the user owning *email* if *password* matches its hash."""
    user = await _get_user_by_email(db, email)
    if user is None:
        raise NotFoundError("User", USER_NOT_FOUND, email)
    if not verify_password(password, user.password):
        raise AuthenticationError("User", PASSWORD_NOT_MATCH, email)
    return user


async def find_user_by_id(db: AsyncSession, user_id: int) -> dict:
    cache_key = user_detail_key(user_id)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    data = user_to_dict(await get_user_with_role(db, user_id))
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_USER)
    return data


async def find_users(
    db: AsyncSession,
    offset: int = 0,
    limit: int = 10,
    q: str | None = None,
) -> dict:
    """
    Return a page of users, optionally filtered by a substring of their
    e-mail or name, together with the total number of matches.
    """
    cache_key = users_list_key(offset, limit, q)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    conditions = []
    if q:
        pattern = f"%{q}%"
        conditions.append(or_(User.email.ilike(pattern), User.name.ilike(pattern)))

    total: int = (await db.execute(
        select(func.count()).select_from(User).where(*conditions)
    )).scalar_one()

    result = await db.execute(
        select(User)
        .where(*conditions)
        .options(joinedload(User.role))
        .order_by(User.created_at.desc(), User.id.desc())
        .offset(offset)
        .limit(limit)
    )
    data = {
        "users": [user_to_dict(u) for u in result.unique().scalars().all()],
        "total": total,
    }
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_LIST)
    return data


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    user = await get_user_with_role(db, user_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, field, value)
    await db.flush()
    # Posts embed their author.
    cache.invalidate_after_commit(db, "/posts")
    return user_to_dict(await get_user_with_role(db, user_id))


async def update_profile(db: AsyncSession, user_id: int, data: UserProfile) -> dict:
    user = await get_user_with_role(db, user_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(user, field, value)
    await db.flush()
    cache.invalidate_after_commit(db, "/posts")
    return user_to_dict(await get_user_with_role(db, user_id))


async def update_password(db: AsyncSession, user_id: int, data: UserPasswordUpdate) -> dict:
    """
    Re-hash the user's password and revoke every session they hold, so
    all refresh tokens issued under the old password stop working.
    """
    user = await get_user_with_role(db, user_id)
    user.password = hash_password(data.password)
    await db.flush()
    revoked = await session_service.delete_session(db, user_id)
    logger.info(
        "Password changed for user %s, %d session(s) revoked", user_id, revoked,
        extra={"user_id": user_id},
    )
    return user_to_dict(await get_user_with_role(db, user_id))


async def delete_user(db: AsyncSession, user_id: int) -> dict:
    user = await get_user_with_role(db, user_id)
    data = user_to_dict(user)
    await db.delete(user)
    await db.flush()
    # Their posts cascade with them.
    cache.invalidate_after_commit(db, "/posts")
    logger.info("User %s deleted", user_id, extra={"user_id": user_id})
    return data
