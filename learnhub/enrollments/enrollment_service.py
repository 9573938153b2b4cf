import logging
from typing import Dict, Iterable, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from learnhub.audit.common_audit import log_audit
from learnhub.auth.permissions import UserContext, is_owner_or_admin
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import (
    InternalServerException,
    PermissionDeniedException,
    ResourceConflictException,
    ResourceNotFoundException,
)
from learnhub.enrollments.enrollment_models import Enrollment, EnrollmentStatus, TargetKind

logger = logging.getLogger(__name__)

# target_kind -> (collection, business id field)
TARGETS = {
    TargetKind.COMMUNITY.value: ("communities", "community_id"),
    TargetKind.COURSE.value: ("courses", "course_id"),
}

# fields copied onto each row of "my enrollments"
TARGET_SUMMARY_FIELDS = {
    TargetKind.COMMUNITY.value: {"_id": 0, "community_id": 1, "name": 1, "description": 1, "photo": 1},
    TargetKind.COURSE.value: {"_id": 0, "course_id": 1, "title": 1, "description": 1, "community_id": 1},
}

MEMBER_USER_FIELDS = {"_id": 0, "user_id": 1, "name": 1, "email": 1, "role": 1, "created_at": 1}


def _kind(target_kind) -> str:
    return target_kind.value if isinstance(target_kind, TargetKind) else target_kind


def _key(user_id: str, target_kind: str, target_id: str) -> dict:
    return {"user_id": user_id, "target_kind": target_kind, "target_id": target_id}

# ==================== TARGETS ====================

async def get_target(db: AsyncIOMotorDatabase, target_kind, target_id: str) -> Optional[dict]:
    collection, id_field = TARGETS[_kind(target_kind)]
    return await db[collection].find_one({id_field: target_id}, {"_id": 0})


async def load_target(db: AsyncIOMotorDatabase, target_kind, target_id: str) -> dict:
    """Fetch a community or course, raising 404 when it is gone"""
    target = await get_target(db, target_kind, target_id)
    if not target:
        raise ResourceNotFoundException(f"No {_kind(target_kind)} with the id of {target_id}")
    return target

# ==================== QUERIES ====================

async def count_active(db: AsyncIOMotorDatabase, target_kind, target_id: str) -> int:
    return await db.enrollments.count_documents({
        "target_kind": _kind(target_kind),
        "target_id": target_id,
        "status": EnrollmentStatus.ACTIVE.value,
    })


async def get_enrollment(db: AsyncIOMotorDatabase, user_id: str, target_kind, target_id: str) -> Optional[dict]:
    """The user's row for a target, whatever its status"""
    return await db.enrollments.find_one(_key(user_id, _kind(target_kind), target_id), {"_id": 0})


async def is_active_member(db: AsyncIOMotorDatabase, user_id: str, community_id: str) -> bool:
    enrollment = await get_enrollment(db, user_id, TargetKind.COMMUNITY, community_id)
    return enrollment is not None and enrollment["status"] == EnrollmentStatus.ACTIVE.value

# ==================== JOIN ====================

async def _check_course_join_rights(db: AsyncIOMotorDatabase, user: UserContext, course: dict) -> None:
    if user.is_admin:
        return

    community = await db.communities.find_one({"community_id": course.get("community_id")}, {"_id": 0, "owner_id": 1})
    if not community:
        logger.error("Course %s points at missing community %s", course["course_id"], course.get("community_id"))
        raise InternalServerException("Course community not found")

    if community.get("owner_id") == user.user_id:
        return

    if not await is_active_member(db, user.user_id, course["community_id"]):
        raise PermissionDeniedException("Join the community before enrolling in its courses")


async def join(db: AsyncIOMotorDatabase, user: UserContext, target_kind, target_id: str) -> Tuple[dict, int]:
    """
    Enroll the user in a community or course

    A cancelled row is re-activated in place; a first join inserts. The unique
    (user_id, target_kind, target_id) index settles concurrent joins.

    Returns:
        (enrollment, active member count)

    Raises:
        404: target not found
        403: course join without community membership
        409: already enrolled / already completed / lost a concurrent join
    """
    kind = _kind(target_kind)
    target = await load_target(db, kind, target_id)

    if kind == TargetKind.COURSE.value:
        await _check_course_join_rights(db, user, target)

    already = ResourceConflictException(f"Already enrolled in this {kind}")
    now = utcnow()
    existing = await get_enrollment(db, user.user_id, kind, target_id)

    if existing:
        if existing["status"] == EnrollmentStatus.ACTIVE.value:
            raise already
        if existing["status"] == EnrollmentStatus.COMPLETED.value:
            raise ResourceConflictException(f"This {kind} is already completed")

        result = await db.enrollments.update_one(
            {"enrollment_id": existing["enrollment_id"], "status": EnrollmentStatus.CANCELLED.value},
            {"$set": {
                "status": EnrollmentStatus.ACTIVE.value,
                "rejoined_at": now,
                "updated_at": now,
                "cancelled_at": None,
            }},
        )
        if result.modified_count == 0:
            # another request re-activated it first
            raise already
        enrollment = await db.enrollments.find_one({"enrollment_id": existing["enrollment_id"]}, {"_id": 0})
        logger.info("User %s re-joined %s %s", user.user_id, kind, target_id)
    else:
        enrollment = Enrollment(
            enrollment_id=generate_id("ENR"),
            user_id=user.user_id,
            target_kind=kind,
            target_id=target_id,
            enrolled_at=now,
            updated_at=now,
        ).model_dump()
        try:
            await db.enrollments.insert_one(enrollment)
        except DuplicateKeyError:
            raise already
        serialize_doc(enrollment)
        logger.info("User %s joined %s %s", user.user_id, kind, target_id)

    return enrollment, await count_active(db, kind, target_id)

# ==================== LEAVE ====================

async def leave(
    db: AsyncIOMotorDatabase,
    acting_user: UserContext,
    target_kind,
    target_id: str,
    target_user_id: str = None,
) -> int:
    """
    Cancel an active enrollment (soft delete)

    Only active -> cancelled matches, so repeating the call is a 404 and the
    member count drops once.

    Returns:
        active member count after the change
    """
    kind = _kind(target_kind)
    target_user_id = target_user_id or acting_user.user_id
    removing_other = target_user_id != acting_user.user_id

    if removing_other:
        target = await load_target(db, kind, target_id)
        if not is_owner_or_admin(acting_user, target.get("owner_id")):
            raise PermissionDeniedException(f"Only the {kind} owner can remove members")

    now = utcnow()
    enrollment = await db.enrollments.find_one_and_update(
        {**_key(target_user_id, kind, target_id), "status": EnrollmentStatus.ACTIVE.value},
        {"$set": {
            "status": EnrollmentStatus.CANCELLED.value,
            "cancelled_at": now,
            "updated_at": now,
        }},
        projection={"_id": 0, "enrollment_id": 1},
    )
    if not enrollment:
        raise ResourceNotFoundException(f"No active enrollment in this {kind}")

    if removing_other:
        await log_audit(
            db,
            acting_user.user_id,
            "enrollment.remove",
            "enrollment",
            enrollment["enrollment_id"],
            previous_value=EnrollmentStatus.ACTIVE.value,
            new_value=EnrollmentStatus.CANCELLED.value,
            metadata={"target_kind": kind, "target_id": target_id, "user_id": target_user_id},
        )
        logger.info("User %s removed %s from %s %s", acting_user.user_id, target_user_id, kind, target_id)
    else:
        logger.info("User %s left %s %s", acting_user.user_id, kind, target_id)

    return await count_active(db, kind, target_id)


async def cancel_target_enrollments(db: AsyncIOMotorDatabase, target_kind, target_ids: Iterable[str]) -> int:
    """Soft-cancel every active enrollment of deleted targets"""
    target_ids = list(target_ids)
    if not target_ids:
        return 0
    now = utcnow()
    result = await db.enrollments.update_many(
        {"target_kind": _kind(target_kind), "target_id": {"$in": target_ids}, "status": EnrollmentStatus.ACTIVE.value},
        {"$set": {"status": EnrollmentStatus.CANCELLED.value, "cancelled_at": now, "updated_at": now}},
    )
    return result.modified_count


async def cancel_user_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> int:
    now = utcnow()
    result = await db.enrollments.update_many(
        {"user_id": user_id, "status": EnrollmentStatus.ACTIVE.value},
        {"$set": {"status": EnrollmentStatus.CANCELLED.value, "cancelled_at": now, "updated_at": now}},
    )
    return result.modified_count

# ==================== STATUS & LISTINGS ====================

async def get_status(db: AsyncIOMotorDatabase, user: UserContext, target_kind, target_id: str) -> dict:
    enrollment = await get_enrollment(db, user.user_id, target_kind, target_id)
    status = enrollment["status"] if enrollment else None
    return {"enrolled": status == EnrollmentStatus.ACTIVE.value, "status": status}


async def _users_by_id(db: AsyncIOMotorDatabase, user_ids: List[str], projection: dict) -> Dict[str, dict]:
    users = {}
    if user_ids:
        async for profile in db.users_profile.find({"user_id": {"$in": user_ids}}, projection):
            users[profile["user_id"]] = profile
    return users


async def list_members(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    target_kind,
    target_id: str,
    skip: int,
    limit: int,
) -> Tuple[List[dict], int]:
    """
    Active members of a target, newest first (owner/admin only)

    Returns:
        (page of members, total active members)
    """
    kind = _kind(target_kind)
    target = await load_target(db, kind, target_id)
    if not is_owner_or_admin(user, target.get("owner_id")):
        raise PermissionDeniedException(f"Only the {kind} owner can view its members")

    query = {"target_kind": kind, "target_id": target_id, "status": EnrollmentStatus.ACTIVE.value}
    total = await db.enrollments.count_documents(query)
    cursor = db.enrollments.find(query, {"_id": 0, "progress": 0}).sort("enrolled_at", -1).skip(skip).limit(limit)
    rows = await cursor.to_list(length=limit)

    users = await _users_by_id(db, [row["user_id"] for row in rows], MEMBER_USER_FIELDS)
    for row in rows:
        row["user"] = users.get(row["user_id"])

    return rows, total


async def list_user_enrollments(
    db: AsyncIOMotorDatabase,
    user: UserContext,
    skip: int,
    limit: int,
    status: str = None,
) -> Tuple[List[dict], int]:
    """The caller's enrollments of both kinds, newest first, with a summary of each target"""
    query = {"user_id": user.user_id}
    if status:
        query["status"] = status

    total = await db.enrollments.count_documents(query)
    cursor = db.enrollments.find(query, {"_id": 0}).sort("enrolled_at", -1).skip(skip).limit(limit)
    rows = await cursor.to_list(length=limit)

    summaries = {}
    for kind, (collection, id_field) in TARGETS.items():
        ids = list({row["target_id"] for row in rows if row["target_kind"] == kind})
        if not ids:
            continue
        async for doc in db[collection].find({id_field: {"$in": ids}}, TARGET_SUMMARY_FIELDS[kind]):
            summaries[(kind, doc[id_field])] = doc

    for row in rows:
        row["target"] = summaries.get((row["target_kind"], row["target_id"]))

    return rows, total
