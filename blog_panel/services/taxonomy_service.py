"""
Taxonomy service: categories and tags attached to posts.

Both are resolved by name when a post is written and created on demand,
so an editor never has to pre-register a tag.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.exceptions import CATEGORY_ALREADY_EXISTS, ConflictError
from blog_panel.models import Category, Post, Tag
from blog_panel.utils import slugify


def category_to_dict(category: Category | None) -> dict | None:
    if category is None:
        return None
    return {"id": category.id, "name": category.name, "slug": category.slug}


async def resolve_category(db: AsyncSession, name: str | None) -> Category | None:
    """Return the Category called *name*, creating it if necessary."""
    if not name:
        return None
    result = await db.execute(select(Category).where(Category.name == name))
    category = result.scalar_one_or_none()
    if category is None:
        category = Category(name=name, slug=slugify(name))
        db.add(category)
        await db.flush()
    return category


async def resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag ORM instances for each name in *tag_names*, creating any
    that do not yet exist.  Duplicate names collapse to one tag.
    """
    tags: list[Tag] = []
    seen: set[str] = set()
    for name in tag_names:
        name = name.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        result = await db.execute(select(Tag).where(Tag.name == name))
        tag = result.scalar_one_or_none()
        if not tag:
            tag = Tag(name=name)
            db.add(tag)
            await db.flush()
        tags.append(tag)
    return tags


async def create_category(db: AsyncSession, name: str) -> dict:
    existing = await db.execute(select(Category).where(Category.name == name))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Category", CATEGORY_ALREADY_EXISTS, name)
    category = Category(name=name, slug=slugify(name))
    db.add(category)
    await db.flush()
    return {**category_to_dict(category), "post_count": 0}


async def list_categories(db: AsyncSession) -> list[dict]:
    """All categories with the number of published posts in each."""
    post_count = (
        select(func.count(Post.id))
        .where(Post.category_id == Category.id, Post.published.is_(True))
        .correlate(Category)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Category, post_count.label("post_count")).order_by(Category.name.asc())
    )
    return [
        {**category_to_dict(category), "post_count": count}
        for category, count in result.all()
    ]


async def list_tags(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Tag).order_by(Tag.name.asc()))
    return [{"id": t.id, "name": t.name} for t in result.scalars().all()]
