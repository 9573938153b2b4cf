import logging
from typing import List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from learnhub.audit.common_audit import log_audit
from learnhub.auth.permissions import UserContext
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import ResourceConflictException, ResourceNotFoundException, ValidationException
from learnhub.enrollments import enrollment_service
from learnhub.users.user_models import UserCreate, UserProfile, UserUpdate

logger = logging.getLogger(__name__)


async def get_user(db: AsyncIOMotorDatabase, user_id: str) -> dict:
    profile = await db.users_profile.find_one({"user_id": user_id}, {"_id": 0})
    if not profile:
        raise ResourceNotFoundException(f"User not found with id of {user_id}")
    return profile


async def list_users(db: AsyncIOMotorDatabase, skip: int, limit: int, role: str = None) -> Tuple[List[dict], int]:
    query = {"role": role} if role else {}
    total = await db.users_profile.count_documents(query)
    cursor = db.users_profile.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit), total


async def create_user(db: AsyncIOMotorDatabase, admin: UserContext, data: UserCreate) -> dict:
    now = utcnow()
    profile = UserProfile(
        user_id=data.user_id or generate_id("USR"),
        name=data.name,
        email=data.email,
        role=data.role,
        created_at=now,
        updated_at=now,
    ).model_dump()

    try:
        await db.users_profile.insert_one(profile)
    except DuplicateKeyError:
        raise ResourceConflictException("A user with this id or email already exists")

    logger.info("User %s created by admin %s", profile["user_id"], admin.user_id)
    return serialize_doc(profile)


async def update_user(db: AsyncIOMotorDatabase, admin: UserContext, user_id: str, data: UserUpdate) -> dict:
    """
    Admin edit of a profile; role changes are audit logged
    """
    current = await get_user(db, user_id)

    updates = data.model_dump(exclude_none=True, mode="json")
    if not updates:
        raise ValidationException("Nothing to update")
    updates["updated_at"] = utcnow()

    try:
        profile = await db.users_profile.find_one_and_update(
            {"user_id": user_id},
            {"$set": updates},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise ResourceConflictException("A user with this email already exists")

    if "role" in updates and updates["role"] != current.get("role"):
        await log_audit(
            db,
            admin.user_id,
            "user.change_role",
            "user",
            user_id,
            previous_value=current.get("role"),
            new_value=updates["role"],
        )
    return profile


async def delete_user(db: AsyncIOMotorDatabase, admin: UserContext, user_id: str) -> None:
    """Remove the profile and cancel the user's active enrollments"""
    profile = await get_user(db, user_id)

    await db.users_profile.delete_one({"user_id": user_id})
    cancelled = await enrollment_service.cancel_user_enrollments(db, user_id)

    await log_audit(
        db,
        admin.user_id,
        "user.delete",
        "user",
        user_id,
        previous_value={"name": profile.get("name"), "email": profile.get("email"), "role": profile.get("role")},
        metadata={"enrollments_cancelled": cancelled},
    )
