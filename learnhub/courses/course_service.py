import logging
import math
from typing import List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.auth.permissions import UserContext, is_owner_or_admin
from learnhub.core.database import generate_id, serialize_doc, utcnow
from learnhub.core.exceptions import PermissionDeniedException, ResourceNotFoundException
from learnhub.courses.course_models import (
    LESSON_SUMMARY_FIELDS,
    Course,
    CourseCreate,
    CourseUpdate,
    Lesson,
    LessonInput,
)
from learnhub.enrollments import enrollment_service
from learnhub.enrollments.enrollment_models import TargetKind

logger = logging.getLogger(__name__)

# ==================== HELPERS ====================

def summarize(course: dict) -> dict:
    """Public view of a course: lesson bodies and urls stay behind the enrollment gate"""
    course = dict(course)
    course["lessons"] = [
        {field: lesson.get(field) for field in LESSON_SUMMARY_FIELDS}
        for lesson in course.get("lessons", [])
    ]
    return course


def build_lessons(incoming: List[LessonInput], existing: List[dict] = None, course_id: str = None) -> List[dict]:
    """
    Turn lesson payloads into stored lessons, keeping identities stable

    A supplied lesson_id is kept; otherwise an existing lesson with the same
    title, url and type donates its id; otherwise a new id is minted.
    Stored progress is keyed by lesson_id, so this is what keeps learners'
    progress across edits.
    """
    existing = existing or []
    claimed = set()
    lessons = []

    for position, item in enumerate(incoming):
        lesson_id = item.lesson_id
        if lesson_id:
            logger.debug("Course %s: kept lesson id %s for %r", course_id, lesson_id, item.title)
        else:
            match = next(
                (
                    old for old in existing
                    if old["lesson_id"] not in claimed
                    and old.get("title") == item.title
                    and (old.get("url") or None) == (item.url or None)
                    and old.get("type") == item.type.value
                ),
                None,
            )
            if match:
                lesson_id = match["lesson_id"]
                logger.debug("Course %s: matched %r to existing lesson %s", course_id, item.title, lesson_id)
            else:
                lesson_id = generate_id("LES")
                logger.debug("Course %s: new lesson %s for %r", course_id, lesson_id, item.title)
        claimed.add(lesson_id)

        lessons.append(Lesson(
            lesson_id=lesson_id,
            title=item.title,
            type=item.type,
            url=item.url,
            content=item.content,
            duration=item.duration,
            order=item.order if item.order is not None else position,
        ).model_dump())

    return lessons


async def recompute_average_cost(db: AsyncIOMotorDatabase, community_id: str) -> Optional[int]:
    """Mean membership of a community's courses, rounded up to the nearest 10"""
    pipeline = [
        {"$match": {"community_id": community_id}},
        {"$group": {"_id": "$community_id", "average_cost": {"$avg": "$membership"}}},
    ]
    result = await db.courses.aggregate(pipeline).to_list(length=1)

    average_cost = None
    if result and result[0]["average_cost"] is not None:
        average_cost = int(math.ceil(result[0]["average_cost"] / 10) * 10)

    await db.communities.update_one(
        {"community_id": community_id},
        {"$set": {"average_cost": average_cost}},
    )
    return average_cost

# ==================== READS ====================

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await db.courses.find_one({"course_id": course_id}, {"_id": 0})
    if not course:
        raise ResourceNotFoundException(f"No course with the id of {course_id}")
    return course


async def list_courses(
    db: AsyncIOMotorDatabase,
    skip: int,
    limit: int,
    community_id: str = None,
    minimum_skill: str = None,
    max_membership: float = None,
) -> Tuple[List[dict], int]:
    query = {}
    if community_id:
        query["community_id"] = community_id
    if minimum_skill:
        query["minimum_skill"] = minimum_skill
    if max_membership is not None:
        query["membership"] = {"$lte": max_membership}

    total = await db.courses.count_documents(query)
    cursor = db.courses.find(query, {"_id": 0}).sort("created_at", -1).skip(skip).limit(limit)
    courses = await cursor.to_list(length=limit)
    return [summarize(course) for course in courses], total


async def list_community_courses(db: AsyncIOMotorDatabase, community_id: str) -> List[dict]:
    cursor = db.courses.find({"community_id": community_id}, {"_id": 0}).sort("created_at", -1)
    return [summarize(course) for course in await cursor.to_list(length=None)]

# ==================== WRITES ====================

async def create_course(db: AsyncIOMotorDatabase, user: UserContext, community_id: str, data: CourseCreate) -> dict:
    community = await db.communities.find_one({"community_id": community_id}, {"_id": 0, "owner_id": 1})
    if not community:
        raise ResourceNotFoundException(f"No community with the id of {community_id}")
    if not is_owner_or_admin(user, community.get("owner_id")):
        raise PermissionDeniedException(
            f"User {user.user_id} is not authorized to add a course to community {community_id}"
        )

    course_id = generate_id("CRS")
    now = utcnow()
    course = Course(
        course_id=course_id,
        community_id=community_id,
        owner_id=community["owner_id"],
        title=data.title,
        description=data.description,
        weeks=data.weeks,
        membership=data.membership,
        minimum_skill=data.minimum_skill,
        scholarship_available=data.scholarship_available,
        lessons=build_lessons(data.lessons, course_id=course_id),
        created_at=now,
        updated_at=now,
    ).model_dump()

    await db.courses.insert_one(course)
    await recompute_average_cost(db, community_id)

    logger.info("Course %s created in community %s by %s", course_id, community_id, user.user_id)
    return serialize_doc(course)


async def update_course(db: AsyncIOMotorDatabase, user: UserContext, course_id: str, data: CourseUpdate) -> dict:
    course = await get_course(db, course_id)
    if not is_owner_or_admin(user, course.get("owner_id")):
        raise PermissionDeniedException(f"User {user.user_id} is not authorized to update course {course_id}")

    updates = data.model_dump(exclude_none=True, exclude={"lessons"}, mode="json")
    if data.lessons is not None:
        updates["lessons"] = build_lessons(data.lessons, course.get("lessons", []), course_id)
    updates["updated_at"] = utcnow()

    await db.courses.update_one({"course_id": course_id}, {"$set": updates})
    if "membership" in updates:
        await recompute_average_cost(db, course["community_id"])

    logger.info("Course %s updated by %s", course_id, user.user_id)
    return await get_course(db, course_id)


async def delete_course(db: AsyncIOMotorDatabase, user: UserContext, course_id: str) -> None:
    course = await get_course(db, course_id)
    if not is_owner_or_admin(user, course.get("owner_id")):
        raise PermissionDeniedException(f"User {user.user_id} is not authorized to delete course {course_id}")

    await db.courses.delete_one({"course_id": course_id})
    cancelled = await enrollment_service.cancel_target_enrollments(db, TargetKind.COURSE, [course_id])
    await recompute_average_cost(db, course["community_id"])

    logger.info("Course %s deleted by %s (%d enrollments cancelled)", course_id, user.user_id, cancelled)
