from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, get_current_user
from learnhub.core.database import Pagination, get_db, paginated_response, pagination_params
from learnhub.reviews import review_service as service
from learnhub.reviews.review_models import ReviewCreate, ReviewUpdate

router = APIRouter(tags=["Reviews"])


@router.get("/reviews")
async def get_reviews(
    pagination: Pagination = Depends(pagination_params()),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    reviews, total = await service.list_reviews(db, pagination.skip, pagination.limit)
    return paginated_response(reviews, pagination, total)


@router.get("/communities/{community_id}/reviews")
async def get_community_reviews(
    community_id: str,
    pagination: Pagination = Depends(pagination_params()),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    reviews, total = await service.list_reviews(db, pagination.skip, pagination.limit, community_id)
    return paginated_response(reviews, pagination, total)


@router.get("/reviews/{review_id}")
async def get_review(review_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    review = await service.get_review(db, review_id)
    review["community"] = await db.communities.find_one(
        {"community_id": review["community_id"]},
        {"_id": 0, "community_id": 1, "name": 1, "description": 1},
    )
    return {"success": True, "data": review}


@router.post("/communities/{community_id}/reviews", status_code=201)
async def add_review(
    community_id: str,
    data: ReviewCreate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Review a community (one review per user, rating 1-10)
    """
    return {"success": True, "data": await service.add_review(db, user, community_id, data)}


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: str,
    data: ReviewUpdate,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return {"success": True, "data": await service.update_review(db, user, review_id, data)}


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: str,
    user: UserContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await service.delete_review(db, user, review_id)
    return {"success": True, "data": {}}
