import logging
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.auth.permissions import UserContext, is_owner_or_admin
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import PermissionDeniedException, ResourceConflictException, ResourceNotFoundException
from learnhub.reviews.review_models import Review, ReviewCreate, ReviewUpdate

logger = logging.getLogger(__name__)

DUPLICATE_REVIEW = "You have already submitted a review for this community"


async def recompute_average_rating(db: AsyncIOMotorDatabase, community_id: str) -> Optional[float]:
    pipeline = [
        {"$match": {"community_id": community_id}},
        {"$group": {"_id": "$community_id", "average_rating": {"$avg": "$rating"}}},
    ]
    result = await db.reviews.aggregate(pipeline).to_list(length=1)
    average_rating = result[0]["average_rating"] if result else None

    await db.communities.update_one(
        {"community_id": community_id},
        {"$set": {"average_rating": average_rating}},
    )
    return average_rating


async def get_review(db: AsyncIOMotorDatabase, review_id: str) -> dict:
    review = await db.reviews.find_one({"review_id": review_id}, {"_id": 0})
    if not review:
        raise ResourceNotFoundException(f"No review found with the id of {review_id}")
    return review


async def list_reviews(
    db: AsyncIOMotorDatabase,
    skip: int,
    limit: int,
    community_id: str = None,
) -> Tuple[List[dict], int]:
    query = {"community_id": community_id} if community_id else {}
    total = await db.reviews.count_documents(query)
    cursor = db.reviews.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit), total


async def add_review(db: AsyncIOMotorDatabase, user: UserContext, community_id: str, data: ReviewCreate) -> dict:
    """
    One review per user per community; the unique index backs up the pre-check
    """
    if not await db.communities.find_one({"community_id": community_id}, {"_id": 1}):
        raise ResourceNotFoundException(f"No community with the id of {community_id}")

    if await db.reviews.find_one({"community_id": community_id, "user_id": user.user_id}, {"_id": 1}):
        raise ResourceConflictException(DUPLICATE_REVIEW)

    now = utcnow()
    review = Review(
        review_id=generate_id("REV"),
        community_id=community_id,
        user_id=user.user_id,
        created_at=now,
        updated_at=now,
        **data.model_dump(),
    ).model_dump()

    try:
        await db.reviews.insert_one(review)
    except DuplicateKeyError:
        raise ResourceConflictException(DUPLICATE_REVIEW)

    await recompute_average_rating(db, community_id)
    return serialize_doc(review)


async def update_review(db: AsyncIOMotorDatabase, user: UserContext, review_id: str, data: ReviewUpdate) -> dict:
    review = await get_review(db, review_id)
    if not is_owner_or_admin(user, review["user_id"]):
        raise PermissionDeniedException("Not authorized to update review")

    updates = data.model_dump(exclude_none=True)
    updates["updated_at"] = utcnow()
    updated = await db.reviews.find_one_and_update(
        {"review_id": review_id},
        {"$set": updates},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if "rating" in updates:
        await recompute_average_rating(db, review["community_id"])
    return updated


async def delete_review(db: AsyncIOMotorDatabase, user: UserContext, review_id: str) -> None:
    review = await get_review(db, review_id)
    if not is_owner_or_admin(user, review["user_id"]):
        raise PermissionDeniedException("Not authorized to delete review")

    await db.reviews.delete_one({"review_id": review_id})
    await recompute_average_rating(db, review["community_id"])
    logger.info("Review %s deleted by %s", review_id, user.user_id)
