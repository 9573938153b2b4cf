import logging
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.audit.common_audit import log_audit
from learnhub.auth.permissions import UserContext
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import ResourceConflictException, ResourceNotFoundException, ValidationException
from learnhub.core.text_utils import exact_ci, slugify
from learnhub.topics.topic_models import Topic, TopicCreate, TopicUpdate

logger = logging.getLogger(__name__)


async def list_topics(db: AsyncIOMotorDatabase) -> List[dict]:
    return await db.topics.find({}, {"_id": 0}).sort("name", 1).to_list(length=None)


async def get_topic(db: AsyncIOMotorDatabase, topic_id: str) -> dict:
    topic = await db.topics.find_one({"topic_id": topic_id}, {"_id": 0})
    if not topic:
        raise ResourceNotFoundException(f"Topic not found with id of {topic_id}")
    return topic


async def _ensure_name_free(db: AsyncIOMotorDatabase, name: str, exclude_id: str = None):
    query = {"name": exact_ci(name)}
    if exclude_id:
        query["topic_id"] = {"$ne": exclude_id}
    if await db.topics.find_one(query, {"_id": 1}):
        raise ResourceConflictException(f"Topic '{name}' already exists")


async def resolve_topic_ids(db: AsyncIOMotorDatabase, values: Optional[Iterable[str]]) -> List[str]:
    """
    Map topic ids or names (case-insensitive) to topic ids, keeping order

    Raises:
        400: a value matches no topic
    """
    resolved = []
    for value in values or []:
        value = (value or "").strip()
        if not value:
            continue
        topic = await db.topics.find_one(
            {"$or": [{"topic_id": value}, {"name": exact_ci(value)}]},
            {"_id": 0, "topic_id": 1},
        )
        if not topic:
            raise ValidationException(f"Unknown topic: {value}")
        if topic["topic_id"] not in resolved:
            resolved.append(topic["topic_id"])
    return resolved


async def create_topic(db: AsyncIOMotorDatabase, user: UserContext, data: TopicCreate) -> dict:
    await _ensure_name_free(db, data.name)

    topic = Topic(
        topic_id=generate_id("TOP"),
        name=data.name,
        slug=slugify(data.name),
        created_at=utcnow(),
    ).model_dump()
    try:
        await db.topics.insert_one(topic)
    except DuplicateKeyError:
        raise ResourceConflictException(f"Topic '{data.name}' already exists")

    logger.info("Topic %s (%s) created by %s", topic["topic_id"], data.name, user.user_id)
    return serialize_doc(topic)


async def update_topic(db: AsyncIOMotorDatabase, user: UserContext, topic_id: str, data: TopicUpdate) -> dict:
    await get_topic(db, topic_id)
    await _ensure_name_free(db, data.name, exclude_id=topic_id)

    try:
        topic = await db.topics.find_one_and_update(
            {"topic_id": topic_id},
            {"$set": {"name": data.name, "slug": slugify(data.name)}},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise ResourceConflictException(f"Topic '{data.name}' already exists")

    logger.info("Topic %s renamed to %s by %s", topic_id, data.name, user.user_id)
    return topic


async def delete_topic(db: AsyncIOMotorDatabase, user: UserContext, topic_id: str) -> int:
    """Delete a topic and strip it from every community. Returns communities touched."""
    topic = await get_topic(db, topic_id)

    await db.topics.delete_one({"topic_id": topic_id})
    result = await db.communities.update_many({"topics": topic_id}, {"$pull": {"topics": topic_id}})

    await log_audit(
        db,
        user.user_id,
        "topic.delete",
        "topic",
        topic_id,
        previous_value=topic["name"],
        metadata={"communities_modified": result.modified_count},
    )
    return result.modified_count


async def replace_topic(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    topic_id: str,
    replace_with_id: str = None,
) -> dict:
    """
    Re-point community references from one topic to another, or drop them

    Returns:
        {"matched_count", "modified_count", "message"}
    """
    await get_topic(db, topic_id)

    if replace_with_id:
        if replace_with_id == topic_id:
            raise ValidationException("replace_with_id must be different from the topic being replaced")
        if not await db.topics.find_one({"topic_id": replace_with_id}, {"_id": 1}):
            raise ResourceNotFoundException(f"Replacement topic not found with id of {replace_with_id}")

        added = await db.communities.update_many({"topics": topic_id}, {"$addToSet": {"topics": replace_with_id}})
        pulled = await db.communities.update_many({"topics": topic_id}, {"$pull": {"topics": topic_id}})
        outcome = {
            "message": "Replaced topic references in communities",
            "matched_count": added.matched_count,
            "modified_count": pulled.modified_count,
        }
    else:
        pulled = await db.communities.update_many({"topics": topic_id}, {"$pull": {"topics": topic_id}})
        outcome = {
            "message": "Removed topic references from communities",
            "matched_count": pulled.matched_count,
            "modified_count": pulled.modified_count,
        }

    await log_audit(
        db,
        user.user_id,
        "topic.replace",
        "topic",
        topic_id,
        previous_value=topic_id,
        new_value=replace_with_id,
        metadata={"matched_count": outcome["matched_count"], "modified_count": outcome["modified_count"]},
    )
    return outcome
