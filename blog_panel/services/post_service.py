"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Public reads (list, detail, by-slug) go through the cache-aside pattern
  (Redis, falling back to the DB).  Cache keys encode every dimension that
  affects the result and are prefixed with ``posts:`` so that the
  ``CacheShieldMiddleware`` sweep after any write under ``/posts`` clears
  them.
- Eager loading via ``joinedload`` (many-to-one: author, category) and
  ``selectinload`` (collections: tags, resources) is used throughout to
  eliminate N+1 queries.  ``unique()`` is required after any query that
  uses ``joinedload``.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import math
import time
from datetime import datetime, timezone

from sqlalchemy import asc, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_panel.cache import cache, post_detail_key, post_slug_key, posts_list_key
from blog_panel.config import settings
from blog_panel.exceptions import (
    POST_ALREADY_EXISTS,
    POST_NOT_FOUND,
    USER_WITHOUT_ENOUGH_PERMISSION,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from blog_panel.models import Category, Permission, Post, Tag, User
from blog_panel.schemas import PaginatedResponse, PostCreate, PostUpdate
from blog_panel.services.taxonomy_service import category_to_dict, resolve_category, resolve_tags
from blog_panel.utils import slugify

logger = logging.getLogger(__name__)

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: frozenset[str] = frozenset(
    {"created_at", "published_at", "view_count", "title"}
)


def _resolve_sort_column(sort_by: str):
    """
    Return the SQLAlchemy column expression for *sort_by*.

    Falls back to ``Post.created_at`` for any unrecognised column name.
    """
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Post, sort_by)
    return Post.created_at


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _serialize_author(author: User | None) -> dict | None:
    if author is None:
        return None
    return {
        "id": author.id,
        "name": author.name,
        "last_name": author.last_name,
        "image": author.image,
    }


def post_to_dict(post: Post) -> dict:
    """Serialise a Post ORM instance to a plain dict (list view)."""
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "description": post.description,
        "published": post.published,
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "view_count": post.view_count,
        "created_at": post.created_at.isoformat() if post.created_at else None,
        "updated_at": post.updated_at.isoformat() if post.updated_at else None,
        "user_id": post.user_id,
        "author": _serialize_author(post.author),
        "category": category_to_dict(post.category),
        "tags": [{"id": t.id, "name": t.name} for t in post.tags],
    }


def post_detail_to_dict(post: Post) -> dict:
    """Serialise a Post ORM instance to a plain dict (detail view)."""
    data = post_to_dict(post)
    data["content"] = post.content
    data["resources"] = [
        {
            "id": r.id,
            "url": r.url,
            "resource_type": r.resource_type,
            "post_id": r.post_id,
            "created_at": r.created_at.isoformat() if r.created_at else None,
        }
        for r in post.resources
    ]
    return data


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

def _detail_query():
    return (
        select(Post)
        .options(
            joinedload(Post.author),
            joinedload(Post.category),
            selectinload(Post.tags),
            selectinload(Post.resources),
        )
        .execution_options(populate_existing=True)
    )


async def _load_post(db: AsyncSession, post_id: int) -> Post:
    result = await db.execute(_detail_query().where(Post.id == post_id))
    post = result.unique().scalar_one_or_none()
    if post is None:
        raise NotFoundError("Post", POST_NOT_FOUND, post_id)
    return post


async def get_post_or_404(db: AsyncSession, post_id: int) -> Post:
    """Plain existence check used by the resource and comment services."""
    post = await db.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post", POST_NOT_FOUND, post_id)
    return post


async def _unique_slug(db: AsyncSession, title: str, exclude_id: int | None = None) -> str:
    """
    Slug for *title*, with a Unix timestamp suffix on collision (rare but
    possible for titles differing only in punctuation).
    """
    slug = slugify(title)
    q = select(Post.id).where(Post.slug == slug)
    if exclude_id is not None:
        q = q.where(Post.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        slug = f"{slug}-{int(time.time())}"
    return slug


async def _ensure_title_free(db: AsyncSession, title: str, exclude_id: int | None = None) -> None:
    q = select(Post.id).where(Post.title == title)
    if exclude_id is not None:
        q = q.where(Post.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        raise ConflictError("Post", POST_ALREADY_EXISTS, "title")


def _ensure_can_modify(post: Post, user: User, permission: Permission) -> None:
    """Authors may always edit their own posts; others need *permission*."""
    if post.user_id == user.id or user.has_permissions(permission):
        return
    raise PermissionDeniedError("User", USER_WITHOUT_ENOUGH_PERMISSION, user.id)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(
    db: AsyncSession,
    page: int = 1,
    page_size: int = settings.DEFAULT_PAGE_SIZE,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    category: str | None = None,
    tag: str | None = None,
) -> PaginatedResponse:
    """
    Return a paginated list of published posts, optionally narrowed to a
    category (by name or slug) and/or a tag name.
    """
    cache_key = posts_list_key(page, page_size, sort_by, sort_order, category, tag)
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    conditions = [Post.published.is_(True)]
    if category:
        conditions.append(
            Post.category.has(
                (Category.slug == slugify(category)) | (Category.name == category)
            )
        )
    if tag:
        conditions.append(Post.tags.any(Tag.name == tag))

    total: int = (await db.execute(
        select(func.count()).select_from(Post).where(*conditions)
    )).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order_expr = desc(sort_col) if sort_order == "desc" else asc(sort_col)
    id_order = desc(Post.id) if sort_order == "desc" else asc(Post.id)

    posts_q = (
        select(Post)
        .where(*conditions)
        .options(
            joinedload(Post.author),
            joinedload(Post.category),
            selectinload(Post.tags),
        )
        .order_by(order_expr, id_order)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(posts_q)
    posts = result.unique().scalars().all()

    response = PaginatedResponse(
        items=[post_to_dict(p) for p in posts],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def get_post(db: AsyncSession, post_id: int) -> dict:
    """
    Return the full detail dict for *post_id*, incrementing the view
    counter on every database read.
    """
    cache_key = post_detail_key(post_id)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    post = await _load_post(db, post_id)
    # Counting a view must not bump updated_at.
    await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(view_count=Post.view_count + 1, updated_at=Post.updated_at)
        .execution_options(synchronize_session=False)
    )
    data = post_detail_to_dict(post)
    data["view_count"] += 1

    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def get_post_by_slug(db: AsyncSession, slug: str) -> dict:
    cache_key = post_slug_key(slug)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    result = await db.execute(_detail_query().where(Post.slug == slug))
    post = result.unique().scalar_one_or_none()
    if post is None:
        raise NotFoundError("Post", POST_NOT_FOUND, slug)

    data = post_detail_to_dict(post)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def create_post(db: AsyncSession, user_id: int, data: PostCreate) -> dict:
    """Create a post authored by *user_id* and return its detail dict."""
    await _ensure_title_free(db, data.title)

    post = Post(
        title=data.title,
        slug=await _unique_slug(db, data.title),
        description=data.description,
        content=data.content,
        published=data.published,
        user_id=user_id,
    )
    category = await resolve_category(db, data.category)
    if category is not None:
        post.category_id = category.id
    if data.published:
        post.published_at = datetime.now(timezone.utc)

    tags = await resolve_tags(db, data.tags) if data.tags else []
    db.add(post)
    await db.flush()
    if tags:
        # noload collections start empty; load before appending.
        post = await _load_post(db, post.id)
        post.tags.extend(tags)
        await db.flush()

    logger.info("Post %s created by user %s", post.id, user_id, extra={"user_id": user_id})
    return post_detail_to_dict(await _load_post(db, post.id))


async def update_post(db: AsyncSession, post_id: int, data: PostUpdate, user: User) -> dict:
    """
    Partially update a post.  Only fields explicitly set in the payload
    are modified (``model_dump(exclude_unset=True)``).
    """
    post = await _load_post(db, post_id)
    _ensure_can_modify(post, user, Permission.UPDATE)

    update_data = data.model_dump(exclude_unset=True)
    tags_data: list[str] | None = update_data.pop("tags", None)
    category_set = "category" in update_data
    category_name: str | None = update_data.pop("category", None)

    if update_data.get("title") and update_data["title"] != post.title:
        await _ensure_title_free(db, update_data["title"], exclude_id=post.id)
        post.slug = await _unique_slug(db, update_data["title"], exclude_id=post.id)

    for field, value in update_data.items():
        if value is None:
            continue
        setattr(post, field, value)

    # Set published_at the first time the post is published.
    if data.published and not post.published_at:
        post.published_at = datetime.now(timezone.utc)

    if category_set:
        category = await resolve_category(db, category_name)
        post.category_id = category.id if category else None

    if tags_data is not None:
        post.tags.clear()
        post.tags.extend(await resolve_tags(db, tags_data))

    await db.flush()
    return post_detail_to_dict(await _load_post(db, post_id))


async def delete_post(db: AsyncSession, post_id: int, user: User) -> None:
    post = await get_post_or_404(db, post_id)
    _ensure_can_modify(post, user, Permission.DELETE)
    await db.delete(post)
    await db.flush()
    logger.info("Post %s deleted by user %s", post_id, user.id, extra={"user_id": user.id})
