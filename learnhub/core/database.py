import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Query
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from learnhub.core.config import settings
from learnhub.core.exceptions import ValidationException

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


# ==================== CONNECTION ====================

def connect(mongo_url: str = None, db_name: str = None) -> AsyncIOMotorDatabase:
    """Open the shared Motor client (called from the app lifespan)"""
    global _client, _db
    _client = AsyncIOMotorClient(mongo_url or settings.MONGO_URL, tz_aware=True)
    _db = _client[db_name or settings.MONGO_DB_NAME]
    logger.info("MongoDB client created for database %s", _db.name)
    return _db


def close() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("MongoDB client closed")
    _client = None
    _db = None


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    if _db is None:
        return connect()
    return _db


# ==================== INDEXES ====================

async def create_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create every index the collections rely on, uniqueness constraints included"""

    # Users
    await db.users_profile.create_index("user_id", unique=True)
    await db.users_profile.create_index("email", unique=True)
    await db.users_profile.create_index("role")

    # Communities
    await db.communities.create_index("community_id", unique=True)
    await db.communities.create_index("name", unique=True)
    await db.communities.create_index("owner_id")
    await db.communities.create_index("topics")

    # Courses
    await db.courses.create_index("course_id", unique=True)
    await db.courses.create_index([("community_id", ASCENDING), ("created_at", DESCENDING)])
    await db.courses.create_index("owner_id")

    # Enrollments: one row per (user, target); status changes in place
    await db.enrollments.create_index("enrollment_id", unique=True)
    await db.enrollments.create_index(
        [("user_id", ASCENDING), ("target_kind", ASCENDING), ("target_id", ASCENDING)],
        unique=True,
        name="uniq_user_target",
    )
    await db.enrollments.create_index(
        [("target_kind", ASCENDING), ("target_id", ASCENDING), ("status", ASCENDING), ("enrolled_at", DESCENDING)]
    )
    await db.enrollments.create_index([("user_id", ASCENDING), ("enrolled_at", DESCENDING)])

    # Reviews: one per user per community
    await db.reviews.create_index("review_id", unique=True)
    await db.reviews.create_index([("community_id", ASCENDING), ("user_id", ASCENDING)], unique=True)

    # Posts
    await db.posts.create_index("post_id", unique=True)
    await db.posts.create_index([("community_id", ASCENDING), ("created_at", DESCENDING)])

    # Topics
    await db.topics.create_index("topic_id", unique=True)
    await db.topics.create_index("name", unique=True)

    # Audit logs
    await db.audit_logs.create_index("audit_id", unique=True)
    await db.audit_logs.create_index([("resource_type", ASCENDING), ("resource_id", ASCENDING)])
    await db.audit_logs.create_index([("performed_by", ASCENDING), ("created_at", DESCENDING)])
    await db.audit_logs.create_index("created_at")

    logger.info("MongoDB indexes ensured")


# ==================== HELPERS ====================

def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc.pop("_id", None)
    return doc


def serialize_many(docs: List[dict]) -> List[dict]:
    return [serialize_doc(doc) for doc in docs]


# ==================== PAGINATION ====================

class Pagination:
    """page/limit query params, validated against MAX_PAGE_SIZE"""

    def __init__(self, page: int, limit: int):
        if page < 1:
            raise ValidationException("page must be 1 or greater")
        if limit < 1 or limit > settings.MAX_PAGE_SIZE:
            raise ValidationException(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> Dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": total}


def pagination_params(default_limit: int = None):
    """Build a Pagination dependency with its own default page size"""
    default = default_limit or settings.DEFAULT_PAGE_SIZE

    def dependency(page: int = Query(1), limit: int = Query(default)) -> Pagination:
        return Pagination(page, limit)

    return dependency


def paginated_response(items: List[Any], pagination: Pagination, total: int) -> dict:
    return {
        "success": True,
        "count": len(items),
        "pagination": pagination.meta(total),
        "data": items,
    }
