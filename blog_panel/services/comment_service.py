"""
Comment service: append-only comments on posts.

Comments cannot be edited through the API.  Writes happen under
``/posts/{id}/comments`` so the post cache entries are swept by the
``CacheShieldMiddleware`` like any other post write.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_panel.models import Comment
from blog_panel.schemas import CommentCreate
from blog_panel.services.post_service import get_post_or_404


def _comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "author_name": comment.author.name if comment.author is not None else None,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
    }


async def add_comment(
    db: AsyncSession,
    post_id: int,
    user_id: int,
    data: CommentCreate,
) -> dict:
    """
    Append a new comment by *user_id* to the post identified by *post_id*.

    Raises ``NotFoundError`` when the post does not exist.
    """
    await get_post_or_404(db, post_id)

    comment = Comment(content=data.content, post_id=post_id, user_id=user_id)
    db.add(comment)
    await db.flush()

    result = await db.execute(
        select(Comment)
        .where(Comment.id == comment.id)
        .options(joinedload(Comment.author))
        .execution_options(populate_existing=True)
    )
    return _comment_to_dict(result.unique().scalar_one())


async def list_comments(db: AsyncSession, post_id: int) -> list[dict]:
    """Comments of *post_id*, oldest first."""
    await get_post_or_404(db, post_id)
    result = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id)
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return [_comment_to_dict(c) for c in result.unique().scalars().all()]
