import logging
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.audit.common_audit import log_audit
from learnhub.auth.permissions import UserContext, is_owner_or_admin
from learnhub.communities.community_models import SORTABLE_FIELDS, Community, CommunityCreate, CommunityUpdate
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import (
    PermissionDeniedException,
    ResourceConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from learnhub.core.text_utils import contains_ci, exact_ci, slugify
from learnhub.courses import course_service
from learnhub.enrollments import enrollment_service
from learnhub.enrollments.enrollment_models import TargetKind
from learnhub.topics.topic_service import resolve_topic_ids
from learnhub.users.user_models import UserRole

logger = logging.getLogger(__name__)


def parse_sort(sort: Optional[str]) -> Tuple[str, int]:
    """'-created_at' -> ('created_at', -1)"""
    sort = (sort or "-created_at").strip()
    direction = -1 if sort.startswith("-") else 1
    field = sort.lstrip("-+")
    if field not in SORTABLE_FIELDS:
        raise ValidationException(f"Cannot sort by {field}", {"allowed": sorted(SORTABLE_FIELDS)})
    return field, direction


async def _ensure_name_free(db: AsyncIOMotorDatabase, name: str, exclude_id: str = None):
    query = {"name": exact_ci(name)}
    if exclude_id:
        query["community_id"] = {"$ne": exclude_id}
    if await db.communities.find_one(query, {"_id": 1}):
        raise ResourceConflictException(f"A community named '{name}' already exists")

# ==================== READS ====================

async def get_community(db: AsyncIOMotorDatabase, community_id: str) -> dict:
    community = await db.communities.find_one({"community_id": community_id}, {"_id": 0})
    if not community:
        raise ResourceNotFoundException(f"Community not found with id of {community_id}")
    return community


async def get_community_detail(db: AsyncIOMotorDatabase, community_id: str) -> dict:
    community = await get_community(db, community_id)
    community["courses"] = await course_service.list_community_courses(db, community_id)
    community["enrollment_count"] = await enrollment_service.count_active(db, TargetKind.COMMUNITY, community_id)
    return community


async def list_communities(
    db: AsyncIOMotorDatabase,
    skip: int,
    limit: int,
    topic: str = None,
    owner_id: str = None,
    is_paid: bool = None,
    search: str = None,
    sort: str = None,
) -> Tuple[List[dict], int]:
    field, direction = parse_sort(sort)

    query = {}
    if topic:
        match = await db.topics.find_one(
            {"$or": [{"topic_id": topic}, {"name": exact_ci(topic)}]},
            {"_id": 0, "topic_id": 1},
        )
        if not match:
            return [], 0
        query["topics"] = match["topic_id"]
    if owner_id:
        query["owner_id"] = owner_id
    if is_paid is not None:
        query["is_paid"] = is_paid
    if search:
        query["name"] = contains_ci(search)

    total = await db.communities.count_documents(query)
    cursor = db.communities.find(query, {"_id": 0}).sort(field, direction).skip(skip).limit(limit)
    return await cursor.to_list(length=limit), total

# ==================== WRITES ====================

async def create_community(db: AsyncIOMotorDatabase, user: UserContext, data: CommunityCreate) -> dict:
    """
    Create a community owned by the caller

    Raises:
        409: non-admin already owns a community, or the name is taken
        400: unknown topic
    """
    if not user.is_admin and await db.communities.find_one({"owner_id": user.user_id}, {"_id": 1}):
        raise ResourceConflictException(f"The user with ID {user.user_id} has already published a community")

    await _ensure_name_free(db, data.name)
    topics = await resolve_topic_ids(db, data.topics)

    now = utcnow()
    community = Community(
        community_id=generate_id("COM"),
        slug=slugify(data.name),
        owner_id=user.user_id,
        created_at=now,
        updated_at=now,
        **data.model_dump(exclude={"topics"}),
        topics=topics,
    ).model_dump()

    try:
        await db.communities.insert_one(community)
    except DuplicateKeyError:
        raise ResourceConflictException(f"A community named '{data.name}' already exists")

    logger.info("Community %s created by %s", community["community_id"], user.user_id)
    return serialize_doc(community)


async def update_community(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    community_id: str,
    data: CommunityUpdate,
) -> dict:
    community = await get_community(db, community_id)
    if not is_owner_or_admin(user, community["owner_id"]):
        raise PermissionDeniedException(f"User {user.user_id} is not authorized to update this community")

    updates = data.model_dump(exclude_unset=True, exclude={"topics"})
    if data.topics is not None:
        updates["topics"] = await resolve_topic_ids(db, data.topics)
    if data.name and data.name != community["name"]:
        await _ensure_name_free(db, data.name, exclude_id=community_id)
        updates["slug"] = slugify(data.name)
    for field in ("name", "description"):
        if field in updates and updates[field] is None:
            raise ValidationException(f"{field} cannot be empty")
    updates["updated_at"] = utcnow()

    try:
        updated = await db.communities.find_one_and_update(
            {"community_id": community_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise ResourceConflictException(f"A community named '{data.name}' already exists")

    logger.info("Community %s updated by %s", community_id, user.user_id)
    return updated


async def delete_community(db: AsyncIOMotorDatabase, user: UserContext, community_id: str) -> dict:
    """
    Delete a community with its courses, reviews and posts

    Enrollments are cancelled rather than deleted so learners keep their history.
    """
    community = await get_community(db, community_id)
    if not is_owner_or_admin(user, community["owner_id"]):
        raise PermissionDeniedException(f"User {user.user_id} is not authorized to delete this community")

    course_ids = [
        course["course_id"]
        async for course in db.courses.find({"community_id": community_id}, {"_id": 0, "course_id": 1})
    ]

    await db.communities.delete_one({"community_id": community_id})
    courses = await db.courses.delete_many({"community_id": community_id})
    reviews = await db.reviews.delete_many({"community_id": community_id})
    posts = await db.posts.delete_many({"community_id": community_id})
    cancelled = await enrollment_service.cancel_target_enrollments(db, TargetKind.COMMUNITY, [community_id])
    cancelled += await enrollment_service.cancel_target_enrollments(db, TargetKind.COURSE, course_ids)

    summary = {
        "courses_deleted": courses.deleted_count,
        "reviews_deleted": reviews.deleted_count,
        "posts_deleted": posts.deleted_count,
        "enrollments_cancelled": cancelled,
    }
    await log_audit(
        db,
        user.user_id,
        "community.delete",
        "community",
        community_id,
        previous_value={"name": community["name"], "owner_id": community["owner_id"]},
        metadata=summary,
    )
    logger.info("Community %s deleted by %s: %s", community_id, user.user_id, summary)
    return summary


async def transfer_ownership(
    db: AsyncIOMotorDatabase,
    admin: UserContext,
    community_id: str,
    new_owner_id: str,
) -> dict:
    """
    Hand a community (and its courses) to another publisher

    Raises:
        404: community or new owner not found
        400: new owner is a learner
        409: new owner already owns another community
    """
    community = await get_community(db, community_id)

    new_owner = await db.users_profile.find_one({"user_id": new_owner_id}, {"_id": 0, "user_id": 1, "role": 1})
    if not new_owner:
        raise ResourceNotFoundException(f"User not found with id of {new_owner_id}")
    if new_owner.get("role") not in (UserRole.PUBLISHER.value, UserRole.ADMIN.value):
        raise ValidationException("The new owner must be a publisher or an admin")

    previous_owner_id = community["owner_id"]
    if previous_owner_id == new_owner_id:
        return community

    if new_owner["role"] != UserRole.ADMIN.value and await db.communities.find_one(
        {"owner_id": new_owner_id, "community_id": {"$ne": community_id}}, {"_id": 1}
    ):
        raise ResourceConflictException(f"The user with ID {new_owner_id} has already published a community")

    now = utcnow()
    updated = await db.communities.find_one_and_update(
        {"community_id": community_id},
        {"$set": {"owner_id": new_owner_id, "updated_at": now}},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    courses = await db.courses.update_many(
        {"community_id": community_id},
        {"$set": {"owner_id": new_owner_id, "updated_at": now}},
    )

    await log_audit(
        db,
        admin.user_id,
        "community.transfer_ownership",
        "community",
        community_id,
        previous_value=previous_owner_id,
        new_value=new_owner_id,
        metadata={"courses_updated": courses.modified_count},
    )
    return updated
