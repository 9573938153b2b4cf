"""
Per-lesson progress and sequential unlocking

Lesson states are derived from the enrollment's progress list on every read:
a lesson is reachable when it is the first one (by `order`) or the lesson
before it is completed.
"""

import logging
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import utcnow
from learnhub.core.exceptions import (
    InternalServerException,
    PermissionDeniedException,
    ResourceConflictException,
    ResourceNotFoundException,
)
from learnhub.courses.course_models import LessonState
from learnhub.enrollments.enrollment_models import EnrollmentStatus, LessonProgress

logger = logging.getLogger(__name__)


def ordered_lessons(lessons: List[dict]) -> List[dict]:
    # sorted() is stable, ties keep their stored position
    return sorted(lessons or [], key=lambda lesson: lesson.get("order", 0))


def find_lesson(lessons: List[dict], lesson_id: str) -> Optional[dict]:
    return next((lesson for lesson in lessons or [] if lesson["lesson_id"] == lesson_id), None)


def lesson_states(lessons: List[dict], progress: List[dict]) -> Dict[str, str]:
    """
    Compute {lesson_id: state} for a course

    completed   - the progress record says so
    in-progress - reachable, playback position past 0
    pending     - reachable, not started
    blocked     - the previous lesson is not completed
    """
    records = {record["lesson_id"]: record for record in progress or []}
    states = {}
    previous_completed = True

    for lesson in ordered_lessons(lessons):
        record = records.get(lesson["lesson_id"])
        completed = bool(record and record.get("completed"))

        if completed:
            state = LessonState.COMPLETED
        elif not previous_completed:
            state = LessonState.BLOCKED
        elif record and (record.get("last_position_seconds") or 0) > 0:
            state = LessonState.IN_PROGRESS
        else:
            state = LessonState.PENDING

        states[lesson["lesson_id"]] = state.value
        previous_completed = completed

    return states


def next_lesson(lessons: List[dict], lesson_id: str) -> Optional[dict]:
    ordered = ordered_lessons(lessons)
    for position, lesson in enumerate(ordered[:-1]):
        if lesson["lesson_id"] == lesson_id:
            return ordered[position + 1]
    return None


def can_access_lesson(lessons: List[dict], progress: List[dict], lesson_id: str) -> bool:
    state = lesson_states(lessons, progress).get(lesson_id)
    return state is not None and state != LessonState.BLOCKED.value


def get_progress(enrollment: Optional[dict]) -> List[dict]:
    if not enrollment:
        return []
    return enrollment.get("progress", [])


async def record_progress(
    db: AsyncIOMotorDatabase,
    enrollment: dict,
    course: dict,
    lesson_id: str,
    last_position_seconds: float = None,
    completed: bool = None,
) -> List[dict]:
    """
    Update (or lazily create) the progress record for one lesson

    Only the provided fields change. Returns the enrollment's progress list.

    Raises:
        404: lesson not in this course
        403: completing a lesson that is still blocked
        409: un-completing a lesson while the next one is completed
    """
    lessons = course.get("lessons", [])
    if not find_lesson(lessons, lesson_id):
        raise ResourceNotFoundException(f"Lesson not found with id of {lesson_id}")

    if last_position_seconds is None and completed is None:
        return get_progress(enrollment)

    if completed and not can_access_lesson(lessons, get_progress(enrollment), lesson_id):
        raise PermissionDeniedException("Complete the previous lesson before this one")

    if completed is False:
        following = next_lesson(lessons, lesson_id)
        records = {record["lesson_id"]: record for record in get_progress(enrollment)}
        if following and records.get(following["lesson_id"], {}).get("completed"):
            raise ResourceConflictException("The next lesson is already completed")

    now = utcnow()
    enrollment_id = enrollment["enrollment_id"]

    set_ops = {"progress.$.updated_at": now}
    if last_position_seconds is not None:
        set_ops["progress.$.last_position_seconds"] = last_position_seconds
    if completed is not None:
        set_ops["progress.$.completed"] = completed

    async def update_existing() -> bool:
        result = await db.enrollments.update_one(
            {"enrollment_id": enrollment_id, "progress.lesson_id": lesson_id},
            {"$set": {**set_ops, "updated_at": now}},
        )
        return result.matched_count > 0

    written = await update_existing()

    if not written:
        entry = LessonProgress(
            lesson_id=lesson_id,
            last_position_seconds=last_position_seconds if last_position_seconds is not None else 0,
            completed=completed if completed is not None else False,
            updated_at=now,
        ).model_dump()
        # the $ne guard keeps two first writes from pushing the same lesson twice
        result = await db.enrollments.update_one(
            {"enrollment_id": enrollment_id, "progress.lesson_id": {"$ne": lesson_id}},
            {"$push": {"progress": entry}, "$set": {"updated_at": now}},
        )
        written = result.modified_count > 0

    if not written:
        # a concurrent request created the record between our two writes
        written = await update_existing()

    if not written:
        logger.error("Progress write for enrollment %s lesson %s matched nothing", enrollment_id, lesson_id)
        raise InternalServerException("Failed to update enrollment progress")

    updated = await db.enrollments.find_one({"enrollment_id": enrollment_id}, {"_id": 0, "progress": 1})
    return get_progress(updated)


async def complete_course(db: AsyncIOMotorDatabase, enrollment: dict) -> dict:
    """Mark a course enrollment completed. Repeating it returns the enrollment unchanged."""
    if enrollment["status"] == EnrollmentStatus.COMPLETED.value:
        return enrollment

    now = utcnow()
    enrollment_id = enrollment["enrollment_id"]
    result = await db.enrollments.update_one(
        {"enrollment_id": enrollment_id, "status": EnrollmentStatus.ACTIVE.value},
        {"$set": {"status": EnrollmentStatus.COMPLETED.value, "completed_at": now, "updated_at": now}},
    )
    if result.modified_count:
        logger.info("Enrollment %s completed", enrollment_id)

    current = await db.enrollments.find_one({"enrollment_id": enrollment_id}, {"_id": 0})
    # a lost race still ends completed; anything else means the enrollment was cancelled
    if current and current["status"] == EnrollmentStatus.COMPLETED.value:
        return current
    raise ResourceNotFoundException("No active enrollment in this course")
