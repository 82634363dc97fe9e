from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.database import get_db
from blog_panel.dependencies import REFRESH_TOKEN, OffsetParams, RequirePermissions
from blog_panel.models import Permission, User
from blog_panel.schemas import (
    RoleAssign,
    UserListResponse,
    UserPasswordUpdate,
    UserProfile,
    UserResponse,
    UserUpdate,
)
from blog_panel.services import role_service, user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_users(
    paging: OffsetParams = Depends(),
    q: str | None = Query(None, max_length=100, description="Substring of e-mail or name."),
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.find_users(db, paging.offset, paging.limit, q)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.find_user_by_id(db, user_id)


@router.post("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    user_id: int,
    data: RoleAssign,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    user = await role_service.assign_role(db, user_id, data.role_name)
    return user_service.user_to_dict(await user_service.get_user_with_role(db, user.id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_user(db, user_id, data)


@router.patch("/{user_id}/password", response_model=UserResponse)
async def update_password(
    user_id: int,
    data: UserPasswordUpdate,
    response: Response,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_password(db, user_id, data)
    response.delete_cookie(REFRESH_TOKEN)
    return user


@router.patch("/{user_id}/profile", response_model=UserResponse)
async def update_profile(
    user_id: int,
    data: UserProfile,
    _: User = Depends(RequirePermissions(Permission.CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_profile(db, user_id, data)


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(
    user_id: int,
    _: User = Depends(RequirePermissions(Permission.DELETE)),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.delete_user(db, user_id)
