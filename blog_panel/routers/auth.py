from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.config import settings
from blog_panel.database import get_db
from blog_panel.dependencies import (
    AUTH_TOKEN,
    REFRESH_TOKEN,
    RefreshClaims,
    get_current_user,
    get_refresh_claims,
)
from blog_panel.models import User
from blog_panel.schemas import SessionResponse, UserCreate, UserLogin
from blog_panel.services import auth_service, session_service, user_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _set_tokens(response: Response, access_token: str, refresh_token: str) -> None:
    response.headers[AUTH_TOKEN] = access_token
    response.set_cookie(
        REFRESH_TOKEN,
        refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="strict",
        secure=settings.APP_ENV == "production",
    )


@router.post("/signup", status_code=201)
async def signup(data: UserCreate, db: AsyncSession = Depends(get_db)):
    return await auth_service.sign_up(db, data)


@router.post("/signin")
async def signin(data: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    tokens = await auth_service.sign_in(db, data)
    _set_tokens(response, tokens.access_token, tokens.refresh_token)
    return {
        "message": "user_logged",
        "success": True,
        "data": tokens.user,
        "access_token": tokens.access_token,
    }


@router.get("/refresh_token")
async def refresh_token(
    response: Response,
    refresh: RefreshClaims = Depends(get_refresh_claims),
    db: AsyncSession = Depends(get_db),
):
    tokens = await auth_service.refresh_tokens(db, refresh.user_id, refresh.token)
    _set_tokens(response, tokens.access_token, tokens.refresh_token)
    return {"message": "token_refreshed", "success": True, "data": tokens.access_token}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.logout(db, user.id, request.cookies.get(REFRESH_TOKEN))
    response.delete_cookie(REFRESH_TOKEN)
    return {"message": "user_logged_out", "success": True}


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return user_service.user_to_dict(user)


@router.get("/sessions", response_model=list[SessionResponse])
async def sessions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.list_sessions(db, user.id)
