from typing import Optional

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user, require_admin, require_publisher
from learnhub.communities import community_service as service
from learnhub.communities.community_models import CommunityCreate, CommunityUpdate, OwnershipTransfer
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params

router = APIRouter(prefix="/communities", tags=["Communities"])


@router.get("")
async def get_communities(
    topic: Optional[str] = None,
    owner_id: Optional[str] = None,
    is_paid: Optional[bool] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    pagination: Pagination = Depends(pagination_params()),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Browse communities

    Query Parameters:
    - topic: topic id or name
    - owner_id, is_paid
    - search: part of the community name
    - sort: field name, "-" prefix for descending (default -created_at)
    """
    communities, total = await service.list_communities(
        db,
        pagination.skip,
        pagination.limit,
        topic=topic,
        owner_id=owner_id,
        is_paid=is_paid,
        search=search,
        sort=sort,
    )
    return paginated_response(communities, pagination, total)


@router.get("/{community_id}")
async def get_community(community_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return {"success": True, "data": await service.get_community_detail(db, community_id)}


@router.post("", status_code=201)
async def create_community(
    data: CommunityCreate,
    user: UserContext = Depends(require_publisher),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Create a community (publishers own at most one)
    """
    return {"success": True, "data": await service.create_community(db, user, data)}


@router.put("/{community_id}")
async def update_community(
    community_id: str,
    data: CommunityUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.update_community(db, user, community_id, data)}


@router.delete("/{community_id}")
async def delete_community(
    community_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Delete a community along with its courses, reviews and posts
    """
    summary = await service.delete_community(db, user, community_id)
    return {"success": True, "data": {}, "summary": summary}


@router.put("/{community_id}/owner")
async def transfer_community_ownership(
    community_id: str,
    data: OwnershipTransfer,
    admin: UserContext = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Transfer a community to another publisher (admin only, audit logged)
    """
    community = await service.transfer_ownership(db, admin, community_id, data.new_owner_id)
    return {"success": True, "data": community}
