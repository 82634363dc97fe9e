"""
Session service: persisted refresh tokens.

Every successful sign-in stores its refresh token as a ``Session`` row.
A user may hold at most ``settings.MAX_SESSIONS_PER_USER`` sessions; when
a new one would exceed the cap the oldest sessions are evicted first.

All functions run inside the caller's transaction (the ``get_db``
request boundary): they flush but never commit, so an eviction and the
insert that triggered it either both land or neither does.
"""
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.config import settings
from blog_panel.exceptions import SESSION_NOT_FOUND, USER_NOT_FOUND, NotFoundError
from blog_panel.models import Session, User

logger = logging.getLogger(__name__)


async def _ensure_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", USER_NOT_FOUND, user_id)
    return user


async def list_sessions(db: AsyncSession, user_id: int) -> list[Session]:
    """Return *user_id*'s sessions, oldest first."""
    result = await db.execute(
        select(Session)
        .where(Session.user_id == user_id)
        .order_by(Session.created_at.asc(), Session.id.asc())
    )
    return list(result.scalars().all())


async def create_session_and_override(
    db: AsyncSession,
    user_id: int,
    token: str,
    max_sessions: int | None = None,
) -> Session:
    """
    Store *token* as a new session for *user_id*, evicting the oldest
    sessions so that the user ends up holding at most *max_sessions*.
    """
    cap = settings.MAX_SESSIONS_PER_USER if max_sessions is None else max_sessions
    if cap < 1:
        raise ValueError("max_sessions must be at least 1")
    await _ensure_user(db, user_id)

    sessions = await list_sessions(db, user_id)
    overflow = len(sessions) - cap + 1
    if overflow > 0:
        evicted = sessions[:overflow]
        for old in evicted:
            await db.delete(old)
        await db.flush()
        logger.info(
            "Evicted %d session(s) for user %s (cap=%d)", len(evicted), user_id, cap,
            extra={"user_id": user_id},
        )

    session = Session(token=token, user_id=user_id)
    db.add(session)
    await db.flush()
    return session


async def find_session_by_user(db: AsyncSession, user_id: int, token: str) -> Session:
    """Return the session of *user_id* holding *token*."""
    await _ensure_user(db, user_id)
    result = await db.execute(
        select(Session).where(Session.user_id == user_id, Session.token == token)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise NotFoundError("Session", SESSION_NOT_FOUND, user_id)
    return session


async def update_session(db: AsyncSession, user_id: int, old_token: str, new_token: str) -> Session:
    """Rotate the refresh token stored in one of *user_id*'s sessions."""
    session = await find_session_by_user(db, user_id, old_token)
    session.token = new_token
    await db.flush()
    return session


async def delete_session(db: AsyncSession, user_id: int, token: str | None = None) -> int:
    """
    Delete the session holding *token*, or every session of *user_id*
    when *token* is None.  Returns the number of sessions removed.

    A token that no longer matches a session (evicted by the cap, or
    already logged out) removes nothing and returns 0.
    """
    await _ensure_user(db, user_id)
    if token is not None:
        result = await db.execute(
            delete(Session).where(Session.user_id == user_id, Session.token == token)
        )
        await db.flush()
        if result.rowcount == 0:
            logger.info("Logout with unknown session for user %s", user_id, extra={"user_id": user_id})
        return result.rowcount

    count = (await db.execute(
        select(func.count()).select_from(Session).where(Session.user_id == user_id)
    )).scalar_one()
    await db.execute(delete(Session).where(Session.user_id == user_id))
    await db.flush()
    return count
