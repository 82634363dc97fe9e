"""
Resource service: media links attached to a post (images, videos, raw
files, external links).  Files themselves live on external storage;
only their URLs are recorded here.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_panel.exceptions import RESOURCE_NOT_FOUND, NotFoundError
from blog_panel.models import Resource
from blog_panel.schemas import ResourceCreate, ResourceUpdate
from blog_panel.services.post_service import get_post_or_404


def _resource_to_dict(resource: Resource) -> dict:
    return {
        "id": resource.id,
        "url": resource.url,
        "resource_type": resource.resource_type,
        "post_id": resource.post_id,
        "created_at": resource.created_at.isoformat() if resource.created_at else None,
    }


async def _get_resource(db: AsyncSession, post_id: int, resource_id: int) -> Resource:
    result = await db.execute(
        select(Resource).where(Resource.id == resource_id, Resource.post_id == post_id)
    )
    resource = result.scalar_one_or_none()
    if resource is None:
        raise NotFoundError("Resource", RESOURCE_NOT_FOUND, resource_id)
    return resource


async def add_resource(db: AsyncSession, post_id: int, data: ResourceCreate) -> dict:
    await get_post_or_404(db, post_id)
    resource = Resource(url=data.url, resource_type=data.resource_type.value, post_id=post_id)
    db.add(resource)
    await db.flush()
    await db.refresh(resource)
    return _resource_to_dict(resource)


async def list_resources(db: AsyncSession, post_id: int) -> list[dict]:
    await get_post_or_404(db, post_id)
    result = await db.execute(
        select(Resource).where(Resource.post_id == post_id).order_by(Resource.id.asc())
    )
    return [_resource_to_dict(r) for r in result.scalars().all()]


async def update_resource(
    db: AsyncSession, post_id: int, resource_id: int, data: ResourceUpdate
) -> dict:
    resource = await _get_resource(db, post_id, resource_id)
    if data.url is not None:
        resource.url = data.url
    if data.resource_type is not None:
        resource.resource_type = data.resource_type.value
    await db.flush()
    return _resource_to_dict(resource)


async def delete_resource(db: AsyncSession, post_id: int, resource_id: int) -> None:
    resource = await _get_resource(db, post_id, resource_id)
    await db.delete(resource)
    await db.flush()
