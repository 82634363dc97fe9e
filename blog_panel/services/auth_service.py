"""
Auth service: sign-up, sign-in, token refresh and logout.

Sign-in issues a short-lived access token and a long-lived refresh token.
Only the refresh token is persisted (as a ``Session``); the refresh
endpoint rotates it so that each refresh token can be used once.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.cache import cache
from blog_panel.schemas import UserCreate, UserLogin
from blog_panel.security import create_access_token, create_refresh_token, token_payload
from blog_panel.services import session_service, user_service

logger = logging.getLogger(__name__)


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    user: dict


async def sign_up(db: AsyncSession, data: UserCreate) -> dict:
    user = await user_service.create_user(db, data)
    # Signing up happens under /auth, outside the users sweep.
    cache.invalidate_after_commit(db, "/users")
    return {"message": "user_created", "success": True, "data": user}


async def sign_in(db: AsyncSession, data: UserLogin) -> IssuedTokens:
    """
    Verify credentials and open a new session.

    The user's oldest sessions are evicted when the new one would exceed
    the per-user cap.
    """
    user = await user_service.find_by_login(db, data.email, data.password)
    payload = token_payload(user)

    access_token = create_access_token(payload)
    refresh_token = create_refresh_token(payload)
    await session_service.create_session_and_override(db, user.id, refresh_token)

    logger.info("User %s signed in", user.id, extra={"user_id": user.id})
    return IssuedTokens(
        access_token=access_token,
        refresh_token=refresh_token,
        user=user_service.user_to_dict(user),
    )


async def refresh_tokens(db: AsyncSession, user_id: int, refresh_token: str) -> IssuedTokens:
    """
    Exchange a stored refresh token for a new access token and rotate the
    stored refresh token in place.
    """
    user = await user_service.get_user_with_role(db, user_id)
    payload = token_payload(user)

    access_token = create_access_token(payload)
    new_refresh_token = create_refresh_token(payload)
    await session_service.update_session(db, user.id, refresh_token, new_refresh_token)

    return IssuedTokens(
        access_token=access_token,
        refresh_token=new_refresh_token,
        user=user_service.user_to_dict(user),
    )


async def logout(db: AsyncSession, user_id: int, refresh_token: str | None = None) -> int:
    """
    Close the session holding *refresh_token*, or every session of the
    user when the caller has no token.  A stale token is treated as
    already logged out.
    """
    removed = await session_service.delete_session(db, user_id, refresh_token)
    logger.info("User %s logged out (%d session(s))", user_id, removed, extra={"user_id": user_id})
    return removed
