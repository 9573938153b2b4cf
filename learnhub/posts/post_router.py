from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params
from learnhub.posts import post_service as service
from learnhub.posts.post_models import PostCreate, PostUpdate

router = APIRouter(prefix="/communities/{community_id}/posts", tags=["Community Timeline"])


@router.get("")
async def get_posts(
    community_id: str,
    pagination: Pagination = Depends(pagination_params(default_limit=10)),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Community timeline, newest first
    """
    posts, total = await service.list_posts(db, community_id, pagination.skip, pagination.limit)
    return paginated_response(posts, pagination, total)


@router.post("", status_code=201)
async def create_post(
    community_id: str,
    data: PostCreate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.create_post(db, user, community_id, data)}


@router.put("/{post_id}")
async def update_post(
    community_id: str,
    post_id: str,
    data: PostUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Edit a post (author, community owner or admin)
    """
    return {"success": True, "data": await service.update_post(db, user, community_id, post_id, data)}


@router.delete("/{post_id}")
async def delete_post(
    community_id: str,
    post_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await service.delete_post(db, user, community_id, post_id)
    return {"success": True, "data": {}}
