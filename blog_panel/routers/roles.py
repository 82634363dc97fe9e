from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.database import get_db
from blog_panel.dependencies import RequirePermissions
from blog_panel.models import Permission, User
from blog_panel.schemas import RoleCreate, RoleResponse, RoleUpdate
from blog_panel.services import role_service

router = APIRouter(prefix="/api/v1/roles", tags=["roles"])


@router.post("", status_code=201, response_model=RoleResponse)
async def create_role(
    data: RoleCreate,
    _: User = Depends(RequirePermissions(Permission.CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return await role_service.create_role(db, data)


@router.get("")
async def list_roles(
    name: str | None = Query(None, max_length=25, description="Return only the role with this name."),
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    if name:
        return await role_service.find_role_by_name(db, name)
    return await role_service.find_all_roles(db)


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: int,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await role_service.find_role_by_id(db, role_id)


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: int,
    data: RoleUpdate,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await role_service.update_role(db, role_id, data)


@router.delete("/{role_id}", response_model=RoleResponse)
async def delete_role(
    role_id: int,
    _: User = Depends(RequirePermissions(Permission.DELETE)),
    db: AsyncSession = Depends(get_db),
):
    return await role_service.delete_role(db, role_id)
