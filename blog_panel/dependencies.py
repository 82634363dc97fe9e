import logging
from dataclasses import dataclass

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.config import settings
from blog_panel.database import get_db
from blog_panel.exceptions import (
    PERMISSION_NOT_FOUND,
    TOKEN_INVALID,
    TOKEN_NOT_FOUND,
    USER_WITHOUT_ENOUGH_PERMISSION,
    AuthenticationError,
    PermissionDeniedError,
)
from blog_panel.models import Permission, User
from blog_panel.security import decode_access_token, decode_refresh_token
from blog_panel.services import session_service, user_service

logger = logging.getLogger(__name__)

AUTH_TOKEN = "auth_token"
REFRESH_TOKEN = "refresh_token"


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page.  Defaults to ``settings.DEFAULT_PAGE_SIZE``;
        values above ``settings.MAX_PAGE_SIZE`` are rejected with a 400.
    sort_by:
        ORM column name to sort by.  The service layer is responsible
        for validating that this maps to a real column.
    sort_order:
        ``"asc"`` or ``"desc"`` (enforced by the regex pattern).
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of items returned per page.",
        ),
        sort_by: str = Query(
            "created_at",
            description="Column name to sort results by.",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.sort_by = sort_by
        self.sort_order = sort_order

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and page size."""
        return (self.page - 1) * self.page_size


class OffsetParams:
    """Offset/limit query parameters used by the admin listings."""

    def __init__(
        self,
        offset: int = Query(0, ge=0, description="Number of rows to skip."),
        limit: int = Query(
            settings.DEFAULT_LIMIT,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Maximum number of rows to return.",
        ),
    ) -> None:
        self.offset = offset
        self.limit = limit


# ---------------------------------------------------------------------------
# Access-token guard
# ---------------------------------------------------------------------------

def get_token(request: Request) -> str:
    """
    Extract the access token from ``Authorization: Bearer <token>``,
    falling back to the ``auth_token`` cookie.
    """
    header = request.headers.get("authorization")
    if header:
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
        raise AuthenticationError("Token", TOKEN_INVALID)
    token = request.cookies.get(AUTH_TOKEN)
    if token:
        return token
    raise AuthenticationError("Token", TOKEN_NOT_FOUND)


async def get_current_user(
    token: str = Depends(get_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the access token and load its user with the user's role."""
    claims = decode_access_token(token)
    user_id = claims.get("id")
    if user_id is None:
        raise AuthenticationError("Token", TOKEN_INVALID)
    return await user_service.get_user_with_role(db, int(user_id))


class RequirePermissions:
    """
    Guard dependency: the current user's role must hold *every* listed
    permission.

    Usage in a router::

        @router.delete("/{id}")
        async def remove(user: User = Depends(RequirePermissions(Permission.DELETE))):
            ...
    """

    def __init__(self, *permissions: Permission) -> None:
        self.permissions = tuple(Permission(p) for p in permissions)

    async def __call__(self, user: User = Depends(get_current_user)) -> User:
        if not self.permissions:
            raise PermissionDeniedError("Permission", PERMISSION_NOT_FOUND)
        if not user.has_permissions(*self.permissions):
            logger.warning(
                "User %s lacks %s", user.id, [p.value for p in self.permissions],
                extra={"user_id": user.id},
            )
            raise PermissionDeniedError("User", USER_WITHOUT_ENOUGH_PERMISSION, user.id)
        return user


# ---------------------------------------------------------------------------
# Refresh-token guard
# ---------------------------------------------------------------------------

@dataclass
class RefreshClaims:
    user_id: int
    token: str
    claims: dict


async def get_refresh_claims(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> RefreshClaims:
    """
    Validate the ``refresh_token`` cookie: a well-signed, unexpired token
    that is still stored as one of its user's sessions.
    """
    token = request.cookies.get(REFRESH_TOKEN)
    if not token:
        raise AuthenticationError("Token", TOKEN_NOT_FOUND)

    claims = decode_refresh_token(token)
    user_id = claims.get("id")
    if user_id is None:
        raise AuthenticationError("Token", TOKEN_INVALID)

    await session_service.find_session_by_user(db, int(user_id), token)
    return RefreshClaims(user_id=int(user_id), token=token, claims=claims)
