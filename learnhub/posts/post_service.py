import logging
from typing import List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from learnhub.auth.permissions import UserContext
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import PermissionDeniedException, ResourceNotFoundException
from learnhub.posts.post_models import AUTHOR_FIELDS, Post, PostCreate, PostUpdate

logger = logging.getLogger(__name__)


async def _attach_authors(db: AsyncIOMotorDatabase, posts: List[dict]) -> List[dict]:
    user_ids = list({post["user_id"] for post in posts})
    authors = {}
    if user_ids:
        async for profile in db.users_profile.find({"user_id": {"$in": user_ids}}, AUTHOR_FIELDS):
            authors[profile["user_id"]] = profile
    for post in posts:
        post["author"] = authors.get(post["user_id"])
    return posts


async def _load_for_edit(db: AsyncIOMotorDatabase, user: UserContext, community_id: str, post_id: str) -> dict:
    """Author, community owner or admin"""
    post = await db.posts.find_one({"post_id": post_id, "community_id": community_id}, {"_id": 0})
    if not post:
        raise ResourceNotFoundException("Post not found")

    community = await db.communities.find_one({"community_id": community_id}, {"_id": 0, "owner_id": 1})
    if not community:
        raise ResourceNotFoundException("Community not found")

    if user.user_id not in (post["user_id"], community.get("owner_id")) and not user.is_admin:
        raise PermissionDeniedException("Not authorized to modify this post")
    return post


async def list_posts(db: AsyncIOMotorDatabase, community_id: str, skip: int, limit: int) -> Tuple[List[dict], int]:
    query = {"community_id": community_id}
    total = await db.posts.count_documents(query)
    cursor = db.posts.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    posts = await cursor.to_list(length=limit)
    return await _attach_authors(db, posts), total


async def create_post(db: AsyncIOMotorDatabase, user: UserContext, community_id: str, data: PostCreate) -> dict:
    if not await db.communities.find_one({"community_id": community_id}, {"_id": 1}):
        raise ResourceNotFoundException(f"Community not found with id of {community_id}")

    now = utcnow()
    post = Post(
        post_id=generate_id("PST"),
        community_id=community_id,
        user_id=user.user_id,
        content=data.content,
        attachments=data.attachments,
        created_at=now,
        updated_at=now,
    ).model_dump()
    await db.posts.insert_one(post)

    serialize_doc(post)
    (post,) = await _attach_authors(db, [post])
    return post


async def update_post(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    community_id: str,
    post_id: str,
    data: PostUpdate,
) -> dict:
    await _load_for_edit(db, user, community_id, post_id)

    updates = data.model_dump(exclude_none=True)
    updates["updated_at"] = utcnow()
    post = await db.posts.find_one_and_update(
        {"post_id": post_id},
        {"$set": updates},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    (post,) = await _attach_authors(db, [post])
    return post


async def delete_post(db: AsyncIOMotorDatabase, user: UserContext, community_id: str, post_id: str) -> None:
    await _load_for_edit(db, user, community_id, post_id)
    await db.posts.delete_one({"post_id": post_id})
    logger.info("Post %s deleted by %s", post_id, user.user_id)
