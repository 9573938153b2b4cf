from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.core.database import get_db
from learnhub.core.exceptions import PermissionDeniedException, ResourceNotFoundException
from learnhub.courses import progress
from learnhub.courses.dependencies import CourseAccess, verify_course_access, verify_enrollment
from learnhub.enrollments.enrollment_models import ProgressUpdate

router = APIRouter(prefix="/courses/{course_id}", tags=["Course Content"])


@router.get("/content")
async def get_course_content(access: CourseAccess = Depends(verify_course_access)):
    """
    Full course with lesson bodies, each lesson tagged with its current state
    """
    states = progress.lesson_states(access.lessons, progress.get_progress(access.enrollment))
    course = dict(access.course)
    course["lessons"] = [
        {**lesson, "state": states.get(lesson["lesson_id"])}
        for lesson in progress.ordered_lessons(access.lessons)
    ]
    return {"success": True, "data": course}


@router.get("/lessons/{lesson_id}")
async def get_lesson(lesson_id: str, access: CourseAccess = Depends(verify_course_access)):
    """
    Single lesson; blocked lessons stay hidden until the previous one is completed
    """
    lesson = progress.find_lesson(access.lessons, lesson_id)
    if not lesson:
        raise ResourceNotFoundException(f"Lesson not found with id of {lesson_id}")

    if not access.is_manager and not progress.can_access_lesson(
        access.lessons, progress.get_progress(access.enrollment), lesson_id
    ):
        raise PermissionDeniedException("Complete the previous lesson to unlock this one")

    return {"success": True, "data": lesson}


@router.post("/lessons/{lesson_id}/progress")
async def update_lesson_progress(
    lesson_id: str,
    data: ProgressUpdate,
    access: CourseAccess = Depends(verify_enrollment),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Save playback position and/or completion for a lesson

    Body: {"lastPositionSeconds": 125, "completed": false} - both optional
    """
    items = await progress.record_progress(
        db,
        access.enrollment,
        access.course,
        lesson_id,
        last_position_seconds=data.last_position_seconds,
        completed=data.completed,
    )
    return {"success": True, "data": items}


@router.post("/complete")
async def complete_course(
    access: CourseAccess = Depends(verify_enrollment),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    enrollment = await progress.complete_course(db, access.enrollment)
    return {"success": True, "data": enrollment}


@router.get("/progress")
async def get_course_progress(access: CourseAccess = Depends(verify_course_access)):
    return {"success": True, "data": progress.get_progress(access.enrollment)}


@router.get("/lesson-states")
async def get_lesson_states(access: CourseAccess = Depends(verify_course_access)):
    states = progress.lesson_states(access.lessons, progress.get_progress(access.enrollment))
    return {"success": True, "data": states}
