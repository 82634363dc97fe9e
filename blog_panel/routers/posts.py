from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.database import get_db
from blog_panel.dependencies import PaginationParams, RequirePermissions, get_current_user
from blog_panel.models import Permission, User
from blog_panel.schemas import (
    CategoryCreate,
    CategoryResponse,
    CommentCreate,
    CommentResponse,
    PaginatedResponse,
    PostCreate,
    PostUpdate,
    ResourceCreate,
    ResourceResponse,
    ResourceUpdate,
    TagResponse,
)
from blog_panel.services import comment_service, post_service, resource_service, taxonomy_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])


# --- Taxonomy (declared before /{post_id} so the literal paths win) ---

@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await taxonomy_service.list_categories(db)


@router.post("/categories", status_code=201, response_model=CategoryResponse)
async def create_category(
    data: CategoryCreate,
    _: User = Depends(RequirePermissions(Permission.CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return await taxonomy_service.create_category(db, data.name)


@router.get("/tags", response_model=list[TagResponse])
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await taxonomy_service.list_tags(db)


# --- Posts ---

@router.get("", response_model=PaginatedResponse)
async def list_posts(
    pagination: PaginationParams = Depends(),
    category: str | None = Query(None, max_length=100),
    tag: str | None = Query(None, max_length=50),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.get_posts(
        db,
        pagination.page,
        pagination.page_size,
        pagination.sort_by,
        pagination.sort_order,
        category=category,
        tag=tag,
    )


@router.get("/slug/{slug}")
async def get_post_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return await post_service.get_post_by_slug(db, slug)


@router.get("/{post_id}")
async def get_post(post_id: int, db: AsyncSession = Depends(get_db)):
    return await post_service.get_post(db, post_id)


@router.post("", status_code=201)
async def create_post(
    data: PostCreate,
    user: User = Depends(RequirePermissions(Permission.CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.create_post(db, user.id, data)


@router.patch("/{post_id}")
async def update_post(
    post_id: int,
    data: PostUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.update_post(db, post_id, data, user)


@router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await post_service.delete_post(db, post_id, user)


# --- Resources ---

@router.get("/{post_id}/resources", response_model=list[ResourceResponse])
async def list_resources(post_id: int, db: AsyncSession = Depends(get_db)):
    return await resource_service.list_resources(db, post_id)


@router.post("/{post_id}/resources", status_code=201, response_model=ResourceResponse)
async def add_resource(
    post_id: int,
    data: ResourceCreate,
    _: User = Depends(RequirePermissions(Permission.CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return await resource_service.add_resource(db, post_id, data)


@router.patch("/{post_id}/resources/{resource_id}", response_model=ResourceResponse)
async def update_resource(
    post_id: int,
    resource_id: int,
    data: ResourceUpdate,
    _: User = Depends(RequirePermissions(Permission.UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await resource_service.update_resource(db, post_id, resource_id, data)


@router.delete("/{post_id}/resources/{resource_id}", status_code=204)
async def delete_resource(
    post_id: int,
    resource_id: int,
    _: User = Depends(RequirePermissions(Permission.DELETE)),
    db: AsyncSession = Depends(get_db),
):
    await resource_service.delete_resource(db, post_id, resource_id)


# --- Comments ---

@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(post_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db, post_id)


@router.post("/{post_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    user: User = Depends(RequirePermissions(Permission.READ)),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, post_id, user.id, data)
